# src/services/provisioning_service.py
"""
프로비저닝 오케스트레이터
========================

관리자가 프로바이더에서 준비한 인스턴스를 결제된 주문에 바인딩하고,
root 비밀번호를 암호화해 저장한 뒤 고객에게 서버 준비 완료 메일을 보냅니다.

어느 단계에서 죽더라도 같은 요청을 다시 보내면 안전하게 이어서 처리되도록,
매 단계마다 DB 상태를 다시 읽고 provider_instance_id 유니크 제약을 동시성 제어로 사용합니다.
"""

import logging
import random
from typing import Callable, List, Optional

from src.database import models
from src.database.models import OrderStatus, VpsStatus
from src.repositories.interfaces import IOrderRepository, IUserRepository, IVpsInstanceRepository
from src.services.credential_vault import CredentialVault
from src.services.exceptions import (
    ConfigurationError,
    ConflictError,
    DuplicateRecordError,
    IntegrityError,
    InvalidStateError,
    NotFoundError,
)
from src.services.notification_service import INotificationService, VpsProvisionedNotice
from src.services.order_state_machine import OrderStateMachine
from src.services.provider_client import ProviderClient, ProviderInstance
from src.utils.dates import add_months, utcnow

logger = logging.getLogger(__name__)

PROVISIONABLE_STATUSES = {OrderStatus.PAID, OrderStatus.PROCESSING, OrderStatus.PROVISIONING}
ASSIGNABLE_STATUSES = PROVISIONABLE_STATUSES | {OrderStatus.COMPLETED}


class ProvisioningService:
    def __init__(self, order_repo: IOrderRepository, vps_repo: IVpsInstanceRepository,
                 user_repo: IUserRepository, vault: CredentialVault, state_machine: OrderStateMachine,
                 notifier: INotificationService, provider_client: Optional[ProviderClient] = None,
                 dashboard_url: str = "http://localhost:3000/servers", clock: Callable = utcnow):
        self.order_repo = order_repo
        self.vps_repo = vps_repo
        self.user_repo = user_repo
        self.vault = vault
        self.state_machine = state_machine
        self.notifier = notifier
        self.provider_client = provider_client
        self.dashboard_url = dashboard_url
        self.clock = clock

    def _get_order(self, order_id: int) -> models.Order:
        order = self.order_repo.find_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found.")
        return order

    @staticmethod
    def _generate_name() -> str:
        return f"vmd{random.randint(0, 99999):05d}"

    def _check_binding(self, order: models.Order, existing: Optional[models.VpsInstance],
                       provider_instance_id: int) -> None:
        """다른 주문에 묶인 인스턴스이거나, 주문이 이미 다른 인스턴스에 묶여 있으면 거부합니다."""
        if existing is not None and existing.order_id != order.id:
            raise ConflictError(
                f"Provider instance {provider_instance_id} is already assigned to a different order."
            )
        if existing is None:
            bound = self.vps_repo.find_by_order_id(order.id)
            if bound is not None and bound.provider_instance_id != provider_instance_id:
                raise ConflictError(
                    f"Order {order.order_number} is already bound to provider instance {bound.provider_instance_id}."
                )

    def _create_instance(self, order: models.Order, provider_instance_id: int, ip_address: str,
                         encrypted_password: str, region: Optional[str],
                         display_name: Optional[str]) -> models.VpsInstance:
        now = self.clock()
        name = self._generate_name()
        instance = models.VpsInstance(
            user_id=order.user_id,
            order_id=order.id,
            provider_instance_id=provider_instance_id,
            status=VpsStatus.RUNNING,
            ip_address=ip_address,
            root_password_encrypted=encrypted_password,
            name=name,
            display_name=display_name or name,
            region=region or order.region,
            # 만료일은 생성 시점에만 계산합니다. (갱신은 다루지 않음)
            expires_at=add_months(now, order.period_months),
        )
        return self.vps_repo.create(instance)

    def _update_instance(self, instance: models.VpsInstance, order: models.Order, ip_address: str,
                         encrypted_password: str, region: Optional[str]) -> bool:
        """
        재시도 경로. 주소/자격 증명/상태를 덮어씁니다.

        Returns:
            이전에 비밀번호가 없었으면 True. (아직 알림을 보내지 않은 것으로 간주)
        """
        had_password = instance.root_password_encrypted is not None
        instance.ip_address = ip_address
        instance.root_password_encrypted = encrypted_password
        instance.region = region or order.region
        instance.status = VpsStatus.RUNNING
        self.vps_repo.update(instance)
        return not had_password

    def _notify(self, order: models.Order, instance: models.VpsInstance, root_password: str) -> None:
        # 알림 실패는 프로비저닝 결과에 영향을 주지 않습니다.
        try:
            user = self.user_repo.find_by_id(order.user_id)
            if not user:
                logger.warning("No user %s for order %s; skipping notification", order.user_id,
                               order.order_number, extra={"order_id": order.id})
                return
            self.notifier.send_vps_provisioned_email(VpsProvisionedNotice(
                email=user.email,
                first_name=user.first_name or "Customer",
                vps_name=instance.display_name or instance.name or "VPS",
                ip_address=instance.ip_address,
                root_password=root_password,
                region=instance.region,
                dashboard_url=self.dashboard_url,
            ))
            logger.info("Provisioned notification sent for order %s", order.order_number,
                        extra={"order_id": order.id, "vps_id": instance.id})
        except Exception:
            logger.exception("Failed to send provisioned notification for order %s", order.order_number,
                             extra={"order_id": order.id, "vps_id": instance.id})

    def provision(self, order_id: int, provider_instance_id: int, ip_address: str, root_password: str,
                  region: Optional[str] = None, notes: Optional[str] = None,
                  display_name: Optional[str] = None) -> models.VpsInstance:
        """
        프로바이더 인스턴스를 주문에 바인딩하고 주문을 완료합니다.

        1. provider_instance_id로 기존 인스턴스를 찾습니다.
        2. 없으면 새로 만들고(비밀번호 암호화), 주문을 COMPLETED로 바꾸고, 알림을 한 번 보냅니다.
        3. 같은 주문의 인스턴스면 재시도로 보고 갱신합니다. 알림은 이전에 비밀번호가 없던 경우에만 보냅니다.
        4. 다른 주문의 인스턴스면 아무 것도 바꾸지 않고 ConflictError를 발생시킵니다.

        Args:
            order_id: 프로비저닝할 주문 ID.
            provider_instance_id: 프로바이더 인스턴스 ID.
            ip_address: 인스턴스 IP 주소.
            root_password: 평문 root 비밀번호. 암호화되어 저장되며 로그에 남지 않습니다.
            region: 리전 코드. 없으면 주문의 리전을 사용합니다.
            notes: 주문에 남길 관리자 메모.
            display_name: 표시 이름. 없으면 자동 생성된 이름을 사용합니다.

        Returns:
            주문에 바인딩된 VPS 인스턴스.

        Raises:
            NotFoundError: 주문이 존재하지 않을 때.
            InvalidStateError: 주문이 PAID, PROCESSING, PROVISIONING이 아닐 때.
                같은 인스턴스로 이미 완료된 주문의 재시도는 허용합니다.
            ConflictError: 인스턴스가 다른 주문에 이미 바인딩되어 있을 때. 주문과 인스턴스 모두 바뀌지 않습니다.
        """
        if not root_password:
            raise ValueError("Root password is required.")
        provider_instance_id = int(provider_instance_id)

        order = self._get_order(order_id)
        existing = self.vps_repo.find_by_provider_instance_id(provider_instance_id)
        self._check_binding(order, existing, provider_instance_id)

        is_retry = existing is not None
        if order.status not in PROVISIONABLE_STATUSES and not (is_retry and order.status == OrderStatus.COMPLETED):
            raise InvalidStateError(
                f"Order must be PAID, PROCESSING, or PROVISIONING to provision (current: {order.status.value})."
            )

        encrypted = self.vault.encrypt(root_password)

        if existing is None:
            try:
                instance = self._create_instance(order, provider_instance_id, ip_address, encrypted,
                                                 region, display_name)
                should_notify = True
                logger.info("VPS instance %s created for order %s", instance.id, order.order_number,
                            extra={"order_id": order.id, "vps_id": instance.id,
                                   "provider_instance_id": provider_instance_id})
            except DuplicateRecordError:
                # 동시에 들어온 다른 요청이 먼저 만들었습니다. 다시 읽어 재시도 경로를 탑니다.
                existing = self.vps_repo.find_by_provider_instance_id(provider_instance_id)
                if existing is None or existing.order_id != order.id:
                    raise ConflictError(
                        f"Provider instance {provider_instance_id} is already assigned to a different order."
                    )
                instance = existing
                should_notify = self._update_instance(instance, order, ip_address, encrypted, region)
        else:
            instance = existing
            should_notify = self._update_instance(instance, order, ip_address, encrypted, region)
            logger.info("VPS instance %s re-provisioned for order %s", instance.id, order.order_number,
                        extra={"order_id": order.id, "vps_id": instance.id,
                               "provider_instance_id": provider_instance_id})

        # 인스턴스를 확보한 뒤에만 주문을 전진시킵니다. 이미 COMPLETED이면 그대로 둡니다.
        order = self.state_machine.mark_completed(order.id, notes)

        if should_notify:
            self._notify(order, instance, root_password)
        return instance

    def assign_existing_instance(self, order_id: int, vps_instance_id: int) -> models.VpsInstance:
        """
        이미 로컬에 등록된(주문 없는) 인스턴스를 주문에 바인딩하고 주문을 완료합니다.

        Raises:
            NotFoundError: 주문 또는 인스턴스가 없을 때.
            InvalidStateError: 주문이 결제되지 않았거나 취소되었을 때.
            ConflictError: 인스턴스가 다른 주문에 바인딩되어 있거나, 주문에 다른 인스턴스가 있을 때.
        """
        order = self._get_order(order_id)
        instance = self.vps_repo.find_by_id(vps_instance_id)
        if not instance:
            raise NotFoundError(f"VPS instance {vps_instance_id} not found.")

        if instance.order_id is not None and instance.order_id != order.id:
            raise ConflictError("VPS instance is already assigned to another order.")
        bound = self.vps_repo.find_by_order_id(order.id)
        if bound is not None and bound.id != instance.id:
            raise ConflictError(f"Order {order.order_number} is already bound to another VPS instance.")
        if order.status not in ASSIGNABLE_STATUSES:
            raise InvalidStateError(
                f"Order must be paid before an instance can be assigned (current: {order.status.value})."
            )

        newly_bound = instance.order_id is None
        instance.order_id = order.id
        instance.user_id = order.user_id
        if instance.expires_at is None:
            instance.expires_at = add_months(self.clock(), order.period_months)
        try:
            instance = self.vps_repo.update(instance)
        except DuplicateRecordError as e:
            raise ConflictError(f"Order {order.order_number} is already bound to another VPS instance.") from e

        order = self.state_machine.mark_completed(order.id)
        logger.info("VPS instance %s assigned to order %s", instance.id, order.order_number,
                    extra={"order_id": order.id, "vps_id": instance.id})

        if newly_bound and instance.root_password_encrypted:
            try:
                root_password = self.vault.decrypt(instance.root_password_encrypted)
            except IntegrityError:
                logger.exception("Stored credential for VPS %s could not be decrypted; skipping notification",
                                 instance.id, extra={"vps_id": instance.id})
            else:
                self._notify(order, instance, root_password)
        return instance

    def list_unassigned_provider_instances(self) -> List[ProviderInstance]:
        """프로바이더에는 있지만 로컬 인스턴스에 바인딩되지 않은 인스턴스 목록."""
        if self.provider_client is None:
            raise ConfigurationError("Provider client is not configured.")
        assigned = set(self.vps_repo.list_all_provider_instance_ids())
        return [inst for inst in self.provider_client.list_instances() if inst.instance_id not in assigned]
