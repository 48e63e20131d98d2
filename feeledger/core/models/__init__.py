from feeledger.core.models.tenant import Tenant
from feeledger.core.models.student import Student
from feeledger.core.models.payment import Payment
from feeledger.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "Tenant",
    "Student",
    "Payment",
    "FeeAuditLog",
]
