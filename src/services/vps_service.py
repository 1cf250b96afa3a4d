# src/services/vps_service.py
"""
VPS 액션 프록시
===============

고객/관리자의 라이프사이클 명령(start/stop/restart/shutdown/rescue)을 프로바이더로 전달합니다.
모든 명령은 (1) 인스턴스 재조회, (2) 소유권 확인, (3) 상태 게이트, (4) 프로바이더 ID 확인,
(5) 프로바이더 호출, (6) 감사 기록, (7) 로컬 상태 투영 순서로 처리됩니다.
로컬 상태는 낙관적인 투영일 뿐이며 실제 상태는 동기화(reconciliation)로 맞춥니다.
"""

import logging
from typing import Callable, Iterable, List, Optional, Union

from src.database import models
from src.database.models import ActionStatus, SuspensionReason, VpsActionType, VpsStatus
from src.repositories.interfaces import IVpsActionRepository, IVpsInstanceRepository
from src.services.access import Actor, ensure_owner_or_admin
from src.services.credential_vault import CredentialVault
from src.services.exceptions import (
    ConfigurationError,
    InvalidStateError,
    NotFoundError,
    NotProvisionedError,
    ProviderTimeoutError,
    UpstreamProviderError,
)
from src.services.provider_client import ProviderClient
from src.utils.dates import utcnow

logger = logging.getLogger(__name__)

# 고객 API에서 사용하는 게이트
READY_STATUSES = frozenset({VpsStatus.RUNNING, VpsStatus.STOPPED, VpsStatus.PROVISIONING})
# 관리자 API에서 사용하는 게이트 (정지된 인스턴스도 조작 가능)
MANAGEABLE_STATUSES = READY_STATUSES | {VpsStatus.SUSPENDED}

# 만료 처리 대상에서 제외되는 상태
_EXPIRY_EXEMPT = {VpsStatus.EXPIRED, VpsStatus.TERMINATED}

# 액션 -> (프로바이더 메서드, 투영될 로컬 상태). None이면 상태를 바꾸지 않습니다.
ACTION_TABLE = {
    VpsActionType.START: ("start_instance", VpsStatus.RUNNING),
    VpsActionType.STOP: ("stop_instance", VpsStatus.STOPPED),
    VpsActionType.RESTART: ("restart_instance", VpsStatus.RUNNING),
    VpsActionType.SHUTDOWN: ("shutdown_instance", VpsStatus.STOPPED),
    VpsActionType.RESCUE: ("rescue_instance", None),
}

_SUSPENSION_MESSAGES = {
    SuspensionReason.PAYMENT_ISSUE: "VPS is suspended due to payment issues.",
    SuspensionReason.ADMIN_ACTION: "VPS has been suspended by administrator.",
    SuspensionReason.EXPIRED: "VPS service has expired.",
}


class VpsService:
    def __init__(self, vps_repo: IVpsInstanceRepository, action_repo: IVpsActionRepository,
                 vault: CredentialVault, provider_client: Optional[ProviderClient] = None,
                 clock: Callable = utcnow):
        self.vps_repo = vps_repo
        self.action_repo = action_repo
        self.vault = vault
        self.provider_client = provider_client
        self.clock = clock

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def _find(self, vps_id: int) -> models.VpsInstance:
        vps = self.vps_repo.find_by_id(vps_id)
        if not vps:
            raise NotFoundError(f"VPS instance {vps_id} not found.")
        return vps

    def _apply_expiry(self, vps: models.VpsInstance) -> models.VpsInstance:
        """만료일이 지난 인스턴스를 읽는 시점에 EXPIRED로 바꾸고 저장합니다."""
        if vps.expires_at and vps.expires_at < self.clock() and vps.status not in _EXPIRY_EXEMPT:
            logger.info("VPS %s expired at %s; marking EXPIRED", vps.id, vps.expires_at,
                        extra={"vps_id": vps.id})
            vps.status = VpsStatus.EXPIRED
            vps = self.vps_repo.update(vps)
        return vps

    def get_vps(self, vps_id: int, actor: Actor) -> models.VpsInstance:
        """
        인스턴스를 다시 읽어 반환합니다. 만료일이 지났으면 EXPIRED로 저장한 뒤 반환합니다.

        Raises:
            NotFoundError: 인스턴스가 없을 때.
            UnauthorizedAccessError: 소유자도 관리자도 아닐 때.
        """
        vps = self._find(vps_id)
        ensure_owner_or_admin(vps.user_id, actor, "VPS")
        return self._apply_expiry(vps)

    def list_instances(self, actor: Actor) -> List[models.VpsInstance]:
        return [self._apply_expiry(vps) for vps in self.vps_repo.list_by_user_id(actor.user_id)]

    def get_action_history(self, vps_id: int, actor: Actor) -> List[models.VpsAction]:
        vps = self.get_vps(vps_id, actor)
        return self.action_repo.list_by_vps_id(vps.id)

    # ------------------------------------------------------------------
    # 라이프사이클 액션
    # ------------------------------------------------------------------

    def _provider(self) -> ProviderClient:
        if self.provider_client is None:
            raise ConfigurationError("Provider client is not configured.")
        return self.provider_client

    @staticmethod
    def _check_gate(vps: models.VpsInstance, gate: Iterable[VpsStatus]) -> None:
        if vps.status in gate:
            return
        if vps.status == VpsStatus.SUSPENDED:
            reason = vps.suspension_reason or SuspensionReason.ADMIN_ACTION
            raise InvalidStateError(_SUSPENSION_MESSAGES.get(reason, "VPS is suspended."))
        raise InvalidStateError(f"VPS is {vps.status.value.lower()}; action not allowed.")

    def _prepare(self, vps_id: int, actor: Actor, gate: Iterable[VpsStatus]) -> models.VpsInstance:
        vps = self.get_vps(vps_id, actor)
        self._check_gate(vps, gate)
        if not vps.provider_instance_id:
            raise NotProvisionedError("VPS instance is not provisioned yet.")
        return vps

    def _record(self, vps: models.VpsInstance, action: VpsActionType, actor: Optional[Actor],
                status: ActionStatus, request_id: Optional[str] = None,
                error: Optional[str] = None) -> models.VpsAction:
        row = models.VpsAction(
            vps_instance_id=vps.id,
            action_type=action,
            status=status,
            provider_request_id=request_id,
            error_message=error,
            requested_by=actor.user_id if actor else None,
            requested_at=self.clock(),
            completed_at=self.clock() if status != ActionStatus.PENDING else None,
        )
        return self.action_repo.create(row)

    def execute_action(self, vps_id: int, action: Union[VpsActionType, str], actor: Actor,
                       gate: Iterable[VpsStatus] = READY_STATUSES) -> models.VpsAction:
        """
        라이프사이클 명령을 프로바이더로 전달합니다.

        Args:
            vps_id: 대상 인스턴스 ID.
            action: start, stop, restart, shutdown, rescue 중 하나.
            actor: 요청자.
            gate: 허용 상태 집합. 고객은 READY_STATUSES, 관리자는 MANAGEABLE_STATUSES.

        Returns:
            기록된 감사(VpsAction) 행. 프로바이더가 비동기로 접수했으므로 상태는 PENDING입니다.

        Raises:
            ValueError: 지원하지 않는 액션일 때. (비밀번호 재설정은 reset_password 사용)
            NotFoundError, UnauthorizedAccessError: 인스턴스가 없거나 권한이 없을 때.
            InvalidStateError: 인스턴스 상태가 게이트를 통과하지 못할 때.
            NotProvisionedError: 프로바이더 인스턴스 ID가 없을 때.
            UpstreamProviderError: 프로바이더 호출이 실패했을 때. 실패 기록을 남긴 뒤 다시 발생시킵니다.
        """
        action = VpsActionType(action.upper()) if isinstance(action, str) else action
        if action not in ACTION_TABLE:
            raise ValueError(f"Unsupported action: {action.value}")
        method_name, projected = ACTION_TABLE[action]

        vps = self._prepare(vps_id, actor, gate)
        provider = self._provider()

        try:
            result = getattr(provider, method_name)(vps.provider_instance_id)
        except ProviderTimeoutError as e:
            # 결과를 알 수 없으므로 PENDING으로 남기고 상태는 투영하지 않습니다.
            self._record(vps, action, actor, ActionStatus.PENDING, error=str(e))
            raise
        except UpstreamProviderError as e:
            self._record(vps, action, actor, ActionStatus.FAILED, error=str(e))
            raise

        row = self._record(vps, action, actor, ActionStatus.PENDING, request_id=result.request_id)
        logger.info("VPS %s: %s accepted by provider", vps.id, action.value,
                    extra={"vps_id": vps.id, "request_id": result.request_id})

        if projected is not None and vps.status != projected:
            vps.status = projected
            self.vps_repo.update(vps)
        return row

    def get_root_password(self, vps_id: int, actor: Actor) -> str:
        """
        저장된 root 비밀번호를 복호화해 반환합니다.
        호출자는 한 번만 보여주고 저장하지 않아야 합니다. 서버는 조회 여부를 추적하지 않습니다.

        Raises:
            NotFoundError: 저장된 비밀번호가 없을 때.
            IntegrityError: 암호문이 손상되었을 때.
        """
        vps = self.get_vps(vps_id, actor)
        if not vps.root_password_encrypted:
            raise NotFoundError("Root password not available.")
        return self.vault.decrypt(vps.root_password_encrypted)

    def reset_password(self, vps_id: int, actor: Actor, gate: Iterable[VpsStatus] = READY_STATUSES) -> str:
        """
        프로바이더에서 새 root 비밀번호를 받아 즉시 암호화해 덮어씁니다.
        이전 비밀번호는 복구할 수 없게 됩니다.

        Returns:
            새 root 비밀번호(평문).
        """
        vps = self._prepare(vps_id, actor, gate)
        provider = self._provider()

        try:
            new_password = provider.reset_password(vps.provider_instance_id)
        except UpstreamProviderError as e:
            self._record(vps, VpsActionType.RESET_PASSWORD, actor, ActionStatus.FAILED, error=str(e))
            raise

        vps.root_password_encrypted = self.vault.encrypt(new_password)
        self.vps_repo.update(vps)
        self._record(vps, VpsActionType.RESET_PASSWORD, actor, ActionStatus.COMPLETED)
        logger.info("VPS %s: root password reset", vps.id, extra={"vps_id": vps.id})
        return new_password

    # ------------------------------------------------------------------
    # 관리자 전용
    # ------------------------------------------------------------------

    def suspend_instance(self, vps_id: int,
                         reason: SuspensionReason = SuspensionReason.ADMIN_ACTION) -> models.VpsInstance:
        """인스턴스를 정지합니다. 프로바이더 shutdown이 실패해도 정지는 진행합니다."""
        vps = self._find(vps_id)
        if vps.status == VpsStatus.TERMINATED:
            raise InvalidStateError("Terminated instances cannot be suspended.")

        if vps.provider_instance_id and vps.status in READY_STATUSES and self.provider_client is not None:
            try:
                self.provider_client.shutdown_instance(vps.provider_instance_id)
            except UpstreamProviderError:
                logger.exception("Failed to shut down VPS %s during suspension", vps.id, extra={"vps_id": vps.id})

        vps.status = VpsStatus.SUSPENDED
        vps.suspended_at = self.clock()
        vps.suspension_reason = SuspensionReason(reason)
        vps = self.vps_repo.update(vps)
        logger.info("VPS %s suspended (%s)", vps.id, vps.suspension_reason.value, extra={"vps_id": vps.id})
        return vps

    def restore_instance(self, vps_id: int, auto_start: bool = False) -> models.VpsInstance:
        """
        정지 또는 만료된 인스턴스를 복구합니다. auto_start이면 프로바이더에서 시작을 시도합니다.

        Raises:
            InvalidStateError: SUSPENDED 또는 EXPIRED가 아닐 때.
        """
        vps = self._find(vps_id)
        if vps.status not in (VpsStatus.SUSPENDED, VpsStatus.EXPIRED):
            raise InvalidStateError("Only suspended or expired instances can be restored.")

        new_status = VpsStatus.STOPPED
        if auto_start and vps.provider_instance_id and self.provider_client is not None:
            try:
                self.provider_client.start_instance(vps.provider_instance_id)
                new_status = VpsStatus.RUNNING
            except UpstreamProviderError:
                logger.exception("Failed to start VPS %s during restore", vps.id, extra={"vps_id": vps.id})

        vps.status = new_status
        vps.suspended_at = None
        vps.suspension_reason = None
        return self.vps_repo.update(vps)

    def terminate_instance(self, vps_id: int) -> models.VpsInstance:
        """인스턴스를 종료 상태로 표시합니다. 행은 삭제하지 않으므로 액션 이력이 보존됩니다."""
        vps = self._find(vps_id)
        vps.status = VpsStatus.TERMINATED
        vps.suspended_at = self.clock()
        vps.suspension_reason = SuspensionReason.ADMIN_ACTION
        vps = self.vps_repo.update(vps)
        logger.info("VPS %s terminated", vps.id, extra={"vps_id": vps.id})
        return vps
