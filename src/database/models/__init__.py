from .enums import (
    UserRole, OrderStatus, PaymentStatus, VpsStatus, SuspensionReason,
    VpsActionType, ActionStatus, InvoiceStatus,
)
from .user import User
from .image import Image
from .ssh_key import SshKey
from .order import Order
from .vps_instance import VpsInstance
from .vps_action import VpsAction
from .invoice import Invoice
from .snapshot import Snapshot
