from .sqlalchemy_user_repository import SqlalchemyUserRepository
from .sqlalchemy_image_repository import SqlalchemyImageRepository
from .sqlalchemy_ssh_key_repository import SqlalchemySshKeyRepository
from .sqlalchemy_order_repository import SqlalchemyOrderRepository
from .sqlalchemy_vps_instance_repository import SqlalchemyVpsInstanceRepository
from .sqlalchemy_vps_action_repository import SqlalchemyVpsActionRepository
from .sqlalchemy_invoice_repository import SqlalchemyInvoiceRepository
from .sqlalchemy_snapshot_repository import SqlalchemySnapshotRepository
