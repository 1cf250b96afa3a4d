# src/bootstrap.py
"""
의존성 조립
===========

요청(또는 작업) 단위 DB 세션으로 리포지토리를 만들고, 서비스에 주입합니다.
ProviderClient는 토큰 캐시를 공유해야 하므로 프로세스당 한 번 만들어 재사용합니다.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from src.config import AppConfig
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
from src.services.credential_vault import CredentialVault
from src.services.invoice_service import InvoiceService
from src.services.notification_service import INotificationService, SmtpNotificationService
from src.services.order_service import OrderService
from src.services.order_state_machine import InvoiceGenerationHook, OrderStateMachine
from src.services.payment_gateway import IPaymentGateway, StripePaymentGateway
from src.services.pricing import IPricingCatalog
from src.services.provider_client import ProviderClient, TokenCache
from src.services.provisioning_service import ProvisioningService
from src.services.reconciliation_service import ReconciliationService
from src.services.snapshot_service import SnapshotService
from src.services.vps_service import VpsService


@dataclass
class Services:
    invoices: InvoiceService
    state_machine: OrderStateMachine
    orders: OrderService
    provisioning: ProvisioningService
    vps: VpsService
    snapshots: SnapshotService
    reconciliation: ReconciliationService


def build_provider_client(config: AppConfig) -> Optional[ProviderClient]:
    """프로바이더 자격 증명이 설정된 경우에만 클라이언트를 만듭니다."""
    if not config.provider.is_configured:
        return None
    cache = TokenCache(safety_margin=config.provider.token_safety_margin)
    return ProviderClient(config.provider, token_cache=cache)


def build_services(db_session: Session, config: AppConfig, pricing_catalog: IPricingCatalog,
                   notifier: Optional[INotificationService] = None,
                   payment_gateway: Optional[IPaymentGateway] = None,
                   provider_client: Optional[ProviderClient] = None,
                   vault: Optional[CredentialVault] = None) -> Services:
    # 1. 리포지토리
    user_repo = SqlalchemyUserRepository(db_session)
    image_repo = SqlalchemyImageRepository(db_session)
    ssh_key_repo = SqlalchemySshKeyRepository(db_session)
    order_repo = SqlalchemyOrderRepository(db_session)
    vps_repo = SqlalchemyVpsInstanceRepository(db_session)
    action_repo = SqlalchemyVpsActionRepository(db_session)
    invoice_repo = SqlalchemyInvoiceRepository(db_session)
    snapshot_repo = SqlalchemySnapshotRepository(db_session)

    # 2. 외부 협력자
    vault = vault or CredentialVault(config.encryption_key, production=config.is_production)
    notifier = notifier or SmtpNotificationService(config.smtp)
    if payment_gateway is None and config.stripe.is_configured:
        payment_gateway = StripePaymentGateway(config.stripe)

    # 3. 서비스
    invoice_service = InvoiceService(order_repo, invoice_repo, config.billing)
    state_machine = OrderStateMachine(order_repo, hooks=[InvoiceGenerationHook(invoice_service)])
    order_service = OrderService(order_repo, ssh_key_repo, image_repo, pricing_catalog, state_machine,
                                 payment_gateway=payment_gateway, billing=config.billing)
    provisioning_service = ProvisioningService(order_repo, vps_repo, user_repo, vault, state_machine, notifier,
                                               provider_client=provider_client,
                                               dashboard_url=config.dashboard_url)
    vps_service = VpsService(vps_repo, action_repo, vault, provider_client=provider_client)
    snapshot_service = SnapshotService(vps_service, snapshot_repo, provider_client=provider_client)
    reconciliation_service = ReconciliationService(vps_service, vps_repo, snapshot_repo,
                                                   provider_client=provider_client)

    return Services(
        invoices=invoice_service,
        state_machine=state_machine,
        orders=order_service,
        provisioning=provisioning_service,
        vps=vps_service,
        snapshots=snapshot_service,
        reconciliation=reconciliation_service,
    )
