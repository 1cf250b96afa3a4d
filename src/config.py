# src/config.py
"""
애플리케이션 설정
=================

모든 설정 값을 환경 변수에서 읽어오며, 개발 환경을 위한 기본값을 제공합니다.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Tuple


@dataclass
class DatabaseConfig:
    url: str = "sqlite:///vps_orchestrator.db"
    echo: bool = False


@dataclass
class ProviderConfig:
    """컴퓨트 프로바이더(Contabo 호환 API) 접속 정보."""
    api_base: str = "https://api.contabo.com/v1"
    auth_url: str = "https://auth.contabo.com/auth/realms/contabo/protocol/openid-connect/token"
    client_id: str = ""
    client_secret: str = ""
    api_user: str = ""
    api_password: str = ""
    timeout: float = 30.0
    token_safety_margin: int = 60

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.api_user and self.api_password)


@dataclass
class SMTPConfig:
    host: str = "smtp.sendgrid.net"
    port: int = 587
    user: str = ""
    password: str = ""
    from_email: str = "Cloud Vertice <noreply@cloudvertice.com>"
    use_tls: bool = True

    @property
    def is_configured(self) -> bool:
        return bool(self.user and self.password)


@dataclass
class StripeConfig:
    secret_key: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key)


@dataclass
class BillingConfig:
    tax_rate: Decimal = Decimal("0.10")
    invoice_due_days: int = 30
    currency: str = "USD"
    allowed_periods: Tuple[int, ...] = (1, 3, 6, 12)


@dataclass
class AppConfig:
    """전체 애플리케이션 설정."""
    environment: str = "development"
    encryption_key: str = ""
    app_url: str = "http://localhost:3000"
    log_level: str = "INFO"
    log_format: str = "text"

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    smtp: SMTPConfig = field(default_factory=SMTPConfig)
    stripe: StripeConfig = field(default_factory=StripeConfig)
    billing: BillingConfig = field(default_factory=BillingConfig)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def dashboard_url(self) -> str:
        return f"{self.app_url.rstrip('/')}/servers"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """환경 변수에서 설정을 읽어 AppConfig를 생성합니다."""
        return cls(
            environment=os.environ.get("APP_ENV", "development"),
            encryption_key=os.environ.get("ENCRYPTION_KEY", ""),
            app_url=os.environ.get("APP_URL", "http://localhost:3000"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            log_format=os.environ.get("LOG_FORMAT", "text"),
            database=DatabaseConfig(
                url=os.environ.get("DATABASE_URL", "sqlite:///vps_orchestrator.db"),
                echo=os.environ.get("DATABASE_ECHO", "false").lower() == "true",
            ),
            provider=ProviderConfig(
                api_base=os.environ.get("CONTABO_API_BASE", "https://api.contabo.com/v1"),
                auth_url=os.environ.get(
                    "CONTABO_AUTH_URL",
                    "https://auth.contabo.com/auth/realms/contabo/protocol/openid-connect/token",
                ),
                client_id=os.environ.get("CONTABO_CLIENT_ID", ""),
                client_secret=os.environ.get("CONTABO_CLIENT_SECRET", ""),
                api_user=os.environ.get("CONTABO_API_USER", ""),
                api_password=os.environ.get("CONTABO_API_PASSWORD", ""),
                timeout=float(os.environ.get("PROVIDER_TIMEOUT", "30")),
            ),
            smtp=SMTPConfig(
                host=os.environ.get("SMTP_HOST", "smtp.sendgrid.net"),
                port=int(os.environ.get("SMTP_PORT", "587")),
                user=os.environ.get("SMTP_USER", ""),
                password=os.environ.get("SMTP_PASSWORD", ""),
                from_email=os.environ.get("EMAIL_FROM", "Cloud Vertice <noreply@cloudvertice.com>"),
            ),
            stripe=StripeConfig(
                secret_key=os.environ.get("STRIPE_SECRET_KEY", ""),
            ),
            billing=BillingConfig(
                tax_rate=Decimal(os.environ.get("TAX_RATE", "0.10")),
                invoice_due_days=int(os.environ.get("INVOICE_DUE_DAYS", "30")),
                currency=os.environ.get("BILLING_CURRENCY", "USD"),
            ),
        )
