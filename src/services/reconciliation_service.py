# src/services/reconciliation_service.py
"""
프로바이더 상태와 로컬 레코드를 맞추는 동기화 서비스.
동기화 방향은 항상 프로바이더 -> 로컬입니다.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from src.database import models
from src.database.models import VpsStatus
from src.repositories.interfaces import ISnapshotRepository, IVpsInstanceRepository
from src.services.access import Actor
from src.services.exceptions import ConfigurationError, NotFoundError, NotProvisionedError
from src.services.provider_client import ProviderClient
from src.services.vps_service import VpsService
from src.utils.dates import parse_iso, utcnow

logger = logging.getLogger(__name__)

# 관리 상태. 프로바이더 상태로 덮어쓰지 않습니다.
PROTECTED_STATUSES = {VpsStatus.SUSPENDED, VpsStatus.EXPIRED, VpsStatus.TERMINATED}

PROVIDER_STATUS_MAP = {
    "running": VpsStatus.RUNNING,
    "stopped": VpsStatus.STOPPED,
    "provisioning": VpsStatus.PROVISIONING,
    "installing": VpsStatus.PROVISIONING,
}


@dataclass
class SyncResult:
    created: int = 0
    updated: int = 0
    deleted: int = 0


class ReconciliationService:
    def __init__(self, vps_service: VpsService, vps_repo: IVpsInstanceRepository,
                 snapshot_repo: ISnapshotRepository, provider_client: Optional[ProviderClient] = None,
                 clock: Callable = utcnow):
        self.vps_service = vps_service
        self.vps_repo = vps_repo
        self.snapshot_repo = snapshot_repo
        self.provider_client = provider_client
        self.clock = clock

    def _provider(self) -> ProviderClient:
        if self.provider_client is None:
            raise ConfigurationError("Provider client is not configured.")
        return self.provider_client

    def sync_snapshots(self, vps_id: int, actor: Actor) -> SyncResult:
        """
        프로바이더의 스냅샷 목록을 로컬에 반영합니다.

        처음 보는 스냅샷은 만들고, 이미 있는 스냅샷은 크기가 바뀐 경우에만 갱신한 뒤,
        프로바이더 목록에 없는 로컬 스냅샷을 삭제합니다.
        삭제를 마지막에 하므로 동기화 도중 스냅샷이 0개로 보이는 순간이 없습니다.

        Returns:
            생성/갱신/삭제된 개수.

        Raises:
            NotProvisionedError: 프로바이더 인스턴스 ID가 없을 때.
            UpstreamProviderError: 프로바이더 조회에 실패했을 때. 로컬 데이터는 바뀌지 않습니다.
        """
        vps = self.vps_service.get_vps(vps_id, actor)
        if not vps.provider_instance_id:
            raise NotProvisionedError("VPS instance is not provisioned yet.")

        remote_snapshots = self._provider().list_snapshots(vps.provider_instance_id)
        local_snapshots = self.snapshot_repo.list_by_vps_id(vps.id)
        local_by_remote_id = {
            snap.provider_snapshot_id: snap for snap in local_snapshots if snap.provider_snapshot_id
        }
        result = SyncResult()

        # 1. upsert
        for remote in remote_snapshots:
            local = local_by_remote_id.get(remote.snapshot_id)
            if local is None:
                self.snapshot_repo.create(models.Snapshot(
                    vps_instance_id=vps.id,
                    provider_snapshot_id=remote.snapshot_id,
                    name=remote.name,
                    description=remote.description,
                    size_mb=remote.size_mb,
                    created_at=parse_iso(remote.created_at) or self.clock(),
                ))
                result.created += 1
            elif remote.size_mb is not None and remote.size_mb != local.size_mb:
                local.size_mb = remote.size_mb
                self.snapshot_repo.update(local)
                result.updated += 1

        # 2. delete
        remote_ids = {remote.snapshot_id for remote in remote_snapshots}
        for local in local_snapshots:
            if local.provider_snapshot_id not in remote_ids:
                self.snapshot_repo.delete(local)
                result.deleted += 1

        logger.info("Snapshot sync for VPS %s: %s created, %s updated, %s deleted",
                    vps.id, result.created, result.updated, result.deleted, extra={"vps_id": vps.id})
        return result

    def sync_instance_status(self, vps_id: int) -> models.VpsInstance:
        """
        프로바이더가 보고하는 인스턴스 상태와 IP를 로컬에 반영합니다.
        SUSPENDED/EXPIRED/TERMINATED 같은 관리 상태는 덮어쓰지 않습니다.
        """
        vps = self.vps_repo.find_by_id(vps_id)
        if not vps:
            raise NotFoundError(f"VPS instance {vps_id} not found.")
        if not vps.provider_instance_id:
            raise NotProvisionedError("VPS instance is not provisioned yet.")
        if vps.status in PROTECTED_STATUSES:
            return vps

        remote = self._provider().get_instance(vps.provider_instance_id)
        changed = False

        mapped = PROVIDER_STATUS_MAP.get((remote.status or "").lower())
        if mapped is not None and mapped != vps.status:
            logger.info("VPS %s status %s -> %s (provider reported %s)", vps.id, vps.status.value,
                        mapped.value, remote.status, extra={"vps_id": vps.id})
            vps.status = mapped
            changed = True
        if remote.ip_address and remote.ip_address != vps.ip_address:
            vps.ip_address = remote.ip_address
            changed = True

        if changed:
            vps = self.vps_repo.update(vps)
        return vps
