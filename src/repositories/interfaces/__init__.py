from .user import IUserRepository
from .image import IImageRepository
from .ssh_key import ISshKeyRepository
from .order import IOrderRepository
from .vps_instance import IVpsInstanceRepository
from .vps_action import IVpsActionRepository
from .invoice import IInvoiceRepository
from .snapshot import ISnapshotRepository
