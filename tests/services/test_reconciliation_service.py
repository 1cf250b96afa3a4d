# tests/services/test_reconciliation_service.py
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from src.database import models
from src.database.models import VpsStatus
from src.repositories.interfaces import ISnapshotRepository, IVpsInstanceRepository
from src.services.access import Actor
from src.services.exceptions import NotProvisionedError, UpstreamProviderError
from src.services.provider_client import ProviderClient, ProviderInstance, ProviderSnapshot
from src.services.reconciliation_service import ReconciliationService
from src.services.vps_service import VpsService

NOW = datetime(2024, 1, 15, 12, 0, 0)
OWNER = Actor(user_id=10)


def remote_snapshot(snapshot_id, size_mb=1024):
    return ProviderSnapshot(snapshot_id=snapshot_id, name=f"name-{snapshot_id}", description=None,
                            size_mb=size_mb, created_at="2024-01-10T00:00:00Z")


@pytest.fixture
def vps():
    return models.VpsInstance(id=5, user_id=10, provider_instance_id=202401, status=VpsStatus.RUNNING,
                              ip_address="203.0.113.5", region="EU")


@pytest.fixture
def mock_vps_service(vps) -> MagicMock:
    service = MagicMock(spec=VpsService)
    service.get_vps.return_value = vps
    return service


@pytest.fixture
def mock_vps_repo(vps) -> MagicMock:
    repo = MagicMock(spec=IVpsInstanceRepository)
    repo.find_by_id.return_value = vps
    repo.update.side_effect = lambda instance: instance
    return repo


@pytest.fixture
def mock_snapshot_repo() -> MagicMock:
    return MagicMock(spec=ISnapshotRepository)


@pytest.fixture
def mock_provider() -> MagicMock:
    return MagicMock(spec=ProviderClient)


@pytest.fixture
def reconciliation_service(mock_vps_service, mock_vps_repo, mock_snapshot_repo, mock_provider):
    return ReconciliationService(mock_vps_service, mock_vps_repo, mock_snapshot_repo,
                                 provider_client=mock_provider, clock=lambda: NOW)


# ===================================================================
#  sync_snapshots 테스트
# ===================================================================
class TestSyncSnapshots:
    def test_remote_list_wins(self, reconciliation_service, mock_snapshot_repo, mock_provider):
        """로컬 {A, C}, 원격 {A, B}: B는 생성, C는 삭제, A는 그대로."""
        # === Arrange ===
        local_a = models.Snapshot(id=1, vps_instance_id=5, provider_snapshot_id="A", name="a", size_mb=1024)
        local_c = models.Snapshot(id=3, vps_instance_id=5, provider_snapshot_id="C", name="c", size_mb=1024)
        mock_snapshot_repo.list_by_vps_id.return_value = [local_a, local_c]
        mock_provider.list_snapshots.return_value = [remote_snapshot("A"), remote_snapshot("B")]

        # === Act ===
        result = reconciliation_service.sync_snapshots(5, OWNER)

        # === Assert ===
        assert (result.created, result.updated, result.deleted) == (1, 0, 1)
        created = mock_snapshot_repo.create.call_args.args[0]
        assert created.provider_snapshot_id == "B"
        assert created.vps_instance_id == 5
        assert created.created_at == datetime(2024, 1, 10)
        mock_snapshot_repo.delete.assert_called_once_with(local_c)
        mock_snapshot_repo.update.assert_not_called()

    def test_changed_size_is_updated(self, reconciliation_service, mock_snapshot_repo, mock_provider):
        local = models.Snapshot(id=1, vps_instance_id=5, provider_snapshot_id="A", name="a", size_mb=1024)
        mock_snapshot_repo.list_by_vps_id.return_value = [local]
        mock_provider.list_snapshots.return_value = [remote_snapshot("A", size_mb=4096)]

        result = reconciliation_service.sync_snapshots(5, OWNER)

        assert result.updated == 1
        assert local.size_mb == 4096
        mock_snapshot_repo.update.assert_called_once_with(local)

    def test_unlinked_local_snapshots_are_removed(self, reconciliation_service, mock_snapshot_repo, mock_provider):
        orphans = [models.Snapshot(id=i, vps_instance_id=5, provider_snapshot_id=None, name=f"o{i}")
                   for i in (1, 2)]
        mock_snapshot_repo.list_by_vps_id.return_value = orphans
        mock_provider.list_snapshots.return_value = []

        assert reconciliation_service.sync_snapshots(5, OWNER).deleted == 2

    def test_unparseable_created_at_falls_back_to_clock(self, reconciliation_service, mock_snapshot_repo,
                                                        mock_provider):
        """생성 시각을 해석할 수 없어도 동기화는 삭제 단계까지 끝납니다."""
        stale = models.Snapshot(id=3, vps_instance_id=5, provider_snapshot_id="C", name="c", size_mb=1024)
        mock_snapshot_repo.list_by_vps_id.return_value = [stale]
        mock_provider.list_snapshots.return_value = [ProviderSnapshot(
            snapshot_id="B", name="b", description=None, size_mb=1024, created_at="15/01/2024 10:00")]

        result = reconciliation_service.sync_snapshots(5, OWNER)

        assert (result.created, result.deleted) == (1, 1)
        assert mock_snapshot_repo.create.call_args.args[0].created_at == NOW
        mock_snapshot_repo.delete.assert_called_once_with(stale)

    def test_provider_failure_leaves_local_data(self, reconciliation_service, mock_snapshot_repo, mock_provider):
        mock_provider.list_snapshots.side_effect = UpstreamProviderError(503, "unavailable")

        with pytest.raises(UpstreamProviderError):
            reconciliation_service.sync_snapshots(5, OWNER)
        mock_snapshot_repo.create.assert_not_called()
        mock_snapshot_repo.delete.assert_not_called()

    def test_requires_provider_instance(self, reconciliation_service, vps):
        vps.provider_instance_id = None
        with pytest.raises(NotProvisionedError):
            reconciliation_service.sync_snapshots(5, OWNER)


# ===================================================================
#  sync_instance_status 테스트
# ===================================================================
class TestSyncInstanceStatus:
    def remote(self, status, ip="203.0.113.5"):
        return ProviderInstance(instance_id=202401, name="vmi202401", display_name=None, status=status,
                                ip_address=ip, region="EU")

    def test_provider_status_is_applied(self, reconciliation_service, mock_provider, mock_vps_repo):
        mock_provider.get_instance.return_value = self.remote("stopped", ip="203.0.113.8")

        vps = reconciliation_service.sync_instance_status(5)

        assert vps.status == VpsStatus.STOPPED
        assert vps.ip_address == "203.0.113.8"
        mock_vps_repo.update.assert_called_once()

    def test_unchanged_instance_is_not_saved(self, reconciliation_service, mock_provider, mock_vps_repo):
        mock_provider.get_instance.return_value = self.remote("running")

        reconciliation_service.sync_instance_status(5)

        mock_vps_repo.update.assert_not_called()

    def test_unknown_provider_status_is_ignored(self, reconciliation_service, mock_provider, vps):
        mock_provider.get_instance.return_value = self.remote("error")

        assert reconciliation_service.sync_instance_status(5).status == VpsStatus.RUNNING

    @pytest.mark.parametrize("status", [VpsStatus.SUSPENDED, VpsStatus.EXPIRED, VpsStatus.TERMINATED])
    def test_protected_statuses_are_kept(self, reconciliation_service, vps, mock_provider, status):
        vps.status = status

        assert reconciliation_service.sync_instance_status(5).status == status
        mock_provider.get_instance.assert_not_called()
