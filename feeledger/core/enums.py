from enum import Enum


class PaymentMethod(str, Enum):
    cash = "cash"
    bank_transfer = "bank_transfer"
    upi = "upi"
    check = "check"
    other = "other"


class PaymentStatus(str, Enum):
    completed = "completed"
    pending = "pending"
    failed = "failed"


class LedgerState(str, Enum):
    unpaid = "unpaid"
    partial = "partial"
    paid = "paid"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RECONCILE = "RECONCILE"


class FeeManagerRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
