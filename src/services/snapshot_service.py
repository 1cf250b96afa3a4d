# src/services/snapshot_service.py
import logging
from typing import Callable, List, Optional

from src.database import models
from src.database.models import VpsStatus
from src.repositories.interfaces import ISnapshotRepository
from src.services.access import Actor
from src.services.exceptions import (
    ConfigurationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    NotProvisionedError,
)
from src.services.provider_client import ActionResult, ProviderClient
from src.services.vps_service import VpsService
from src.utils.dates import parse_iso, utcnow

logger = logging.getLogger(__name__)

SNAPSHOT_CREATE_STATUSES = {VpsStatus.RUNNING, VpsStatus.STOPPED}
SNAPSHOT_RESTORE_STATUSES = {VpsStatus.STOPPED}


class SnapshotService:
    def __init__(self, vps_service: VpsService, snapshot_repo: ISnapshotRepository,
                 provider_client: Optional[ProviderClient] = None, clock: Callable = utcnow):
        self.vps_service = vps_service
        self.snapshot_repo = snapshot_repo
        self.provider_client = provider_client
        self.clock = clock

    def _provider(self) -> ProviderClient:
        if self.provider_client is None:
            raise ConfigurationError("Provider client is not configured.")
        return self.provider_client

    def _get_snapshot(self, snapshot_id: int, actor: Actor):
        snapshot = self.snapshot_repo.find_by_id(snapshot_id)
        if not snapshot:
            raise NotFoundError(f"Snapshot {snapshot_id} not found.")
        vps = self.vps_service.get_vps(snapshot.vps_instance_id, actor)
        return snapshot, vps

    def list_snapshots(self, vps_id: int, actor: Actor) -> List[models.Snapshot]:
        vps = self.vps_service.get_vps(vps_id, actor)
        return self.snapshot_repo.list_by_vps_id(vps.id)

    def create_snapshot(self, vps_id: int, actor: Actor, name: str,
                        description: Optional[str] = None) -> models.Snapshot:
        """
        인스턴스의 스냅샷을 만듭니다. 실행 중이거나 중지된 인스턴스만 가능합니다.

        Raises:
            InvalidStateError: 인스턴스 상태가 RUNNING/STOPPED가 아닐 때.
            NotProvisionedError: 프로바이더 인스턴스 ID가 없을 때.
            ConflictError: 같은 이름의 스냅샷이 이미 있을 때.
        """
        if not name:
            raise ValueError("Snapshot name is required.")

        vps = self.vps_service.get_vps(vps_id, actor)
        if vps.status not in SNAPSHOT_CREATE_STATUSES:
            raise InvalidStateError(f"Cannot create snapshot while VPS is {vps.status.value}.")
        if not vps.provider_instance_id:
            raise NotProvisionedError("VPS instance is not provisioned yet.")
        if self.snapshot_repo.find_by_name(vps.id, name):
            raise ConflictError(f"Snapshot '{name}' already exists for this VPS.")

        remote = self._provider().create_snapshot(vps.provider_instance_id, name, description)
        snapshot = self.snapshot_repo.create(models.Snapshot(
            vps_instance_id=vps.id,
            provider_snapshot_id=remote.snapshot_id,
            name=name,
            description=description,
            size_mb=remote.size_mb,
            created_at=parse_iso(remote.created_at) or self.clock(),
        ))
        logger.info("Snapshot %s created for VPS %s", remote.snapshot_id, vps.id, extra={"vps_id": vps.id})
        return snapshot

    def restore_snapshot(self, snapshot_id: int, actor: Actor) -> ActionResult:
        """
        스냅샷으로 인스턴스를 되돌립니다. 인스턴스가 중지(STOPPED) 상태여야 합니다.

        Raises:
            InvalidStateError: 인스턴스가 STOPPED가 아닐 때.
        """
        snapshot, vps = self._get_snapshot(snapshot_id, actor)
        if vps.status not in SNAPSHOT_RESTORE_STATUSES:
            raise InvalidStateError("VPS must be stopped before restoring a snapshot.")
        if not vps.provider_instance_id or not snapshot.provider_snapshot_id:
            raise NotProvisionedError("Snapshot is not linked to a provider snapshot.")

        result = self._provider().restore_snapshot(vps.provider_instance_id, snapshot.provider_snapshot_id)
        logger.info("Snapshot %s restore requested for VPS %s", snapshot.provider_snapshot_id, vps.id,
                    extra={"vps_id": vps.id, "request_id": result.request_id})
        return result

    def delete_snapshot(self, snapshot_id: int, actor: Actor) -> None:
        """프로바이더에서 먼저 삭제하고, 성공하면 로컬 레코드를 삭제합니다."""
        snapshot, vps = self._get_snapshot(snapshot_id, actor)
        if snapshot.provider_snapshot_id and vps.provider_instance_id:
            self._provider().delete_snapshot(vps.provider_instance_id, snapshot.provider_snapshot_id)
        self.snapshot_repo.delete(snapshot)
        logger.info("Snapshot %s deleted for VPS %s", snapshot_id, vps.id, extra={"vps_id": vps.id})
