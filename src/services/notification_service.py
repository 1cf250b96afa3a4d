# src/services/notification_service.py
"""
알림 서비스
===========

서버 준비 완료 메일처럼 고객에게 보내는 알림을 담당합니다.
메일 본문에는 평문 root 비밀번호가 들어가므로 로그에는 절대 남기지 않습니다.
"""

import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from src.config import SMTPConfig
from src.services.exceptions import NotificationError

logger = logging.getLogger(__name__)


@dataclass
class VpsProvisionedNotice:
    email: str
    first_name: str
    vps_name: str
    ip_address: str
    root_password: str
    region: str
    dashboard_url: str

    def __repr__(self) -> str:
        # root_password가 repr/로그에 노출되지 않도록 합니다.
        return f"VpsProvisionedNotice(email={self.email!r}, vps_name={self.vps_name!r})"


class INotificationService(ABC):
    @abstractmethod
    def send_vps_provisioned_email(self, notice: VpsProvisionedNotice) -> None:
        """
        서버 준비 완료 메일을 보냅니다.

        Raises:
            NotificationError: 발송에 실패했을 때.
        """
        pass


class SmtpNotificationService(INotificationService):
    """SMTP로 알림 메일을 보내는 구현체."""

    def __init__(self, config: SMTPConfig):
        self.config = config
        if not config.is_configured:
            logger.warning("SMTP not configured; set SMTP_USER and SMTP_PASSWORD to enable email delivery.")

    def _render_vps_provisioned(self, notice: VpsProvisionedNotice):
        subject = f"Your server {notice.vps_name} is ready"
        text = (
            f"Hi {notice.first_name},\n\n"
            f"Your server {notice.vps_name} has been provisioned in {notice.region}.\n\n"
            f"IP address: {notice.ip_address}\n"
            f"Username: root\n"
            f"Password: {notice.root_password}\n\n"
            f"Please change this password after your first login. "
            f"You can manage your server at {notice.dashboard_url}\n"
        )
        html = (
            f"<p>Hi {notice.first_name},</p>"
            f"<p>Your server <strong>{notice.vps_name}</strong> has been provisioned in {notice.region}.</p>"
            f"<ul><li>IP address: {notice.ip_address}</li><li>Username: root</li>"
            f"<li>Password: <code>{notice.root_password}</code></li></ul>"
            f"<p>Please change this password after your first login. "
            f"<a href=\"{notice.dashboard_url}\">Manage your server</a></p>"
        )
        return subject, text, html

    def _send(self, to_email: str, subject: str, text: str, html: str) -> None:
        if not self.config.is_configured:
            logger.error("Cannot send email to %s - SMTP not configured. Subject: %s", to_email, subject)
            raise NotificationError("SMTP not configured")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.config.from_email
        msg["To"] = to_email
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))

        try:
            with smtplib.SMTP(self.config.host, self.config.port) as server:
                if self.config.use_tls:
                    server.starttls(context=ssl.create_default_context())
                server.login(self.config.user, self.config.password)
                server.sendmail(self.config.from_email, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Failed to send email to {to_email}: {e}") from e

        logger.info("Email sent to %s: %s", to_email, subject)

    def send_vps_provisioned_email(self, notice: VpsProvisionedNotice) -> None:
        subject, text, html = self._render_vps_provisioned(notice)
        self._send(notice.email, subject, text, html)
