# tests/repositories/test_sqlalchemy_repositories.py
"""
SQLAlchemy 저장소 테스트. 인메모리 SQLite에 실제 스키마를 만들어 제약 조건을 확인합니다.
"""
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import text

from src.database import models
from src.database.models import ActionStatus, InvoiceStatus, OrderStatus, VpsActionType, VpsStatus
from src.repositories.sqlalchemy import (
    SqlalchemyImageRepository,
    SqlalchemyInvoiceRepository,
    SqlalchemyOrderRepository,
    SqlalchemySnapshotRepository,
    SqlalchemySshKeyRepository,
    SqlalchemyUserRepository,
    SqlalchemyVpsActionRepository,
    SqlalchemyVpsInstanceRepository,
)
from src.services.exceptions import DuplicateRecordError


# ===================================================================
#  헬퍼 / Fixture
# ===================================================================

def new_order(user_id, number="ORD-202401-00001"):
    return models.Order(
        order_number=number,
        user_id=user_id,
        product_id=3,
        status=OrderStatus.PAID,
        total_amount=Decimal("25.00"),
        base_price=Decimal("20.00"),
        region_price_adj=Decimal("3.50"),
        os_price_adj=Decimal("1.50"),
        period_months=1,
        region="EU",
    )


def new_invoice(user_id, order_id, number="INV-202401-0001", deleted_at=None):
    return models.Invoice(
        user_id=user_id,
        order_id=order_id,
        invoice_number=number,
        amount=Decimal("25.00"),
        tax_amount=Decimal("2.50"),
        total=Decimal("27.50"),
        status=InvoiceStatus.PAID,
        deleted_at=deleted_at,
    )


@pytest.fixture
def user(db_session):
    return SqlalchemyUserRepository(db_session).create(models.User(email="alice@example.com", first_name="Alice"))


@pytest.fixture
def order(db_session, user):
    return SqlalchemyOrderRepository(db_session).create(new_order(user.id))


@pytest.fixture
def vps(db_session, user, order):
    return SqlalchemyVpsInstanceRepository(db_session).create(models.VpsInstance(
        user_id=user.id, order_id=order.id, provider_instance_id=202401, status=VpsStatus.RUNNING, region="EU",
    ))


# ===================================================================
#  사용자 / 이미지 / SSH 키
# ===================================================================
class TestUserImageSshKeyRepositories:
    def test_user_lookup(self, db_session, user):
        repo = SqlalchemyUserRepository(db_session)

        assert repo.find_by_email("alice@example.com").id == user.id
        assert repo.find_by_id(user.id).first_name == "Alice"
        assert repo.find_by_email("nobody@example.com") is None

    def test_duplicate_email(self, db_session, user):
        with pytest.raises(DuplicateRecordError):
            SqlalchemyUserRepository(db_session).create(models.User(email="alice@example.com"))

    def test_image_lookup_by_provider_id(self, db_session):
        repo = SqlalchemyImageRepository(db_session)
        image = repo.create(models.Image(provider_image_id="img-uuid", name="Ubuntu 22.04"))

        assert repo.find_by_provider_image_id("img-uuid").id == image.id
        assert repo.find_by_id(image.id).is_active is True

    def test_ssh_keys_by_ids(self, db_session, user):
        repo = SqlalchemySshKeyRepository(db_session)
        first = repo.create(models.SshKey(user_id=user.id, name="laptop", public_key="ssh-ed25519 AAA"))
        repo.create(models.SshKey(user_id=user.id, name="desktop", public_key="ssh-ed25519 BBB"))

        assert [k.id for k in repo.list_by_ids([first.id])] == [first.id]
        assert repo.list_by_ids([]) == []
        assert len(repo.list_by_user_id(user.id)) == 2


# ===================================================================
#  주문
# ===================================================================
class TestOrderRepository:
    def test_duplicate_order_number_is_translated(self, db_session, user, order):
        """유니크 제약 위반은 DuplicateRecordError로 바뀌고 세션은 계속 사용할 수 있습니다."""
        repo = SqlalchemyOrderRepository(db_session)

        with pytest.raises(DuplicateRecordError):
            repo.create(new_order(user.id, number=order.order_number))

        assert repo.find_by_id(order.id).order_number == order.order_number

    def test_count_by_number_prefix(self, db_session, user, order):
        repo = SqlalchemyOrderRepository(db_session)
        repo.create(new_order(user.id, number="ORD-202401-00002"))
        repo.create(new_order(user.id, number="ORD-202402-00001"))

        assert repo.count_by_number_prefix("ORD-202401-") == 2
        assert repo.count_by_number_prefix("ORD-202403-") == 0

    def test_update_persists_status(self, db_session, order):
        repo = SqlalchemyOrderRepository(db_session)
        order.status = OrderStatus.PROCESSING
        repo.update(order)

        assert repo.find_by_order_number(order.order_number).status == OrderStatus.PROCESSING

    def test_prices_stored_exactly(self, db_session, order):
        stored = SqlalchemyOrderRepository(db_session).find_by_id(order.id)
        assert stored.total_amount == stored.base_price + stored.region_price_adj + stored.os_price_adj


# ===================================================================
#  VPS 인스턴스 / 액션
# ===================================================================
class TestVpsInstanceRepository:
    def test_provider_instance_id_is_unique(self, db_session, user, vps):
        repo = SqlalchemyVpsInstanceRepository(db_session)

        with pytest.raises(DuplicateRecordError):
            repo.create(models.VpsInstance(user_id=user.id, provider_instance_id=202401,
                                           status=VpsStatus.RUNNING, region="EU"))

    def test_order_binds_to_one_instance(self, db_session, user, order, vps):
        repo = SqlalchemyVpsInstanceRepository(db_session)

        with pytest.raises(DuplicateRecordError):
            repo.create(models.VpsInstance(user_id=user.id, order_id=order.id, provider_instance_id=999,
                                           status=VpsStatus.RUNNING, region="EU"))

    def test_lookups(self, db_session, user, order, vps):
        repo = SqlalchemyVpsInstanceRepository(db_session)
        repo.create(models.VpsInstance(user_id=user.id, status=VpsStatus.PROVISIONING, region="EU"))

        assert repo.find_by_provider_instance_id(202401).id == vps.id
        assert repo.find_by_order_id(order.id).id == vps.id
        assert len(repo.list_by_user_id(user.id)) == 2
        assert repo.list_all_provider_instance_ids() == [202401]

    def test_lookup_by_order_rereads_row(self, db_session, order, vps):
        """세션에 이미 올라온 인스턴스도 DB 값으로 다시 읽습니다."""
        db_session.execute(text("UPDATE vps_instances SET ip_address = :ip WHERE id = :id"),
                           {"ip": "198.51.100.77", "id": vps.id})

        found = SqlalchemyVpsInstanceRepository(db_session).find_by_order_id(order.id)

        assert found is vps
        assert found.ip_address == "198.51.100.77"

    def test_actions_listed_newest_first(self, db_session, user, vps):
        repo = SqlalchemyVpsActionRepository(db_session)
        for i, action in enumerate([VpsActionType.START, VpsActionType.STOP]):
            repo.create(models.VpsAction(vps_instance_id=vps.id, action_type=action, status=ActionStatus.PENDING,
                                         requested_by=user.id, requested_at=datetime(2024, 1, 15, 12, i)))

        assert [a.action_type for a in repo.list_by_vps_id(vps.id)] == [VpsActionType.STOP, VpsActionType.START]


# ===================================================================
#  청구서
# ===================================================================
class TestInvoiceRepository:
    def test_one_active_invoice_per_order(self, db_session, user, order):
        """삭제되지 않은 청구서는 주문당 하나만 저장됩니다."""
        repo = SqlalchemyInvoiceRepository(db_session)
        repo.create(new_invoice(user.id, order.id))

        with pytest.raises(DuplicateRecordError):
            repo.create(new_invoice(user.id, order.id, number="INV-202401-0002"))

        assert repo.count_active_by_order_id(order.id) == 1

    def test_soft_deleted_invoice_does_not_block(self, db_session, user, order):
        repo = SqlalchemyInvoiceRepository(db_session)
        repo.create(new_invoice(user.id, order.id, deleted_at=datetime(2024, 1, 1)))
        active = repo.create(new_invoice(user.id, order.id, number="INV-202401-0002"))

        assert repo.find_active_by_order_id(order.id).id == active.id
        assert repo.count_by_number_prefix("INV-202401-") == 2

    def test_duplicate_invoice_number(self, db_session, user, order):
        repo = SqlalchemyInvoiceRepository(db_session)
        other = SqlalchemyOrderRepository(db_session).create(new_order(user.id, number="ORD-202401-00002"))
        repo.create(new_invoice(user.id, order.id))

        with pytest.raises(DuplicateRecordError):
            repo.create(new_invoice(user.id, other.id))


# ===================================================================
#  스냅샷
# ===================================================================
class TestSnapshotRepository:
    def test_crud(self, db_session, vps):
        repo = SqlalchemySnapshotRepository(db_session)
        snap = repo.create(models.Snapshot(vps_instance_id=vps.id, provider_snapshot_id="snap-1", name="s1",
                                           created_at=datetime(2024, 1, 10)))

        assert repo.find_by_name(vps.id, "s1").id == snap.id
        assert repo.find_by_name(vps.id, "missing") is None

        snap.size_mb = 2048
        repo.update(snap)
        assert repo.find_by_id(snap.id).size_mb == 2048

        assert repo.delete(snap) is True
        assert repo.list_by_vps_id(vps.id) == []

    def test_provider_snapshot_unique_per_instance(self, db_session, vps):
        repo = SqlalchemySnapshotRepository(db_session)
        repo.create(models.Snapshot(vps_instance_id=vps.id, provider_snapshot_id="snap-1", name="a"))

        with pytest.raises(DuplicateRecordError):
            repo.create(models.Snapshot(vps_instance_id=vps.id, provider_snapshot_id="snap-1", name="b"))
