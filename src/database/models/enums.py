from enum import Enum


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    PROVISIONING = "PROVISIONING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class VpsStatus(str, Enum):
    PROVISIONING = "PROVISIONING"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    SUSPENDED = "SUSPENDED"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


class SuspensionReason(str, Enum):
    PAYMENT_ISSUE = "PAYMENT_ISSUE"
    ADMIN_ACTION = "ADMIN_ACTION"
    EXPIRED = "EXPIRED"


class VpsActionType(str, Enum):
    START = "START"
    STOP = "STOP"
    RESTART = "RESTART"
    SHUTDOWN = "SHUTDOWN"
    RESCUE = "RESCUE"
    RESET_PASSWORD = "RESET_PASSWORD"


class ActionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class InvoiceStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
