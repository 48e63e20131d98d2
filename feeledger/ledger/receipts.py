"""
Receipt numbers for payments.
Unique per tenant. Format: RCT- + payment date as YYMMDD + - + 6 random alphanumeric.
"""

import secrets
import string
from datetime import datetime
from typing import Optional


def generate_receipt_number(paid_at: Optional[datetime] = None) -> str:
    """
    Generate a receipt number for a payment.

    Examples:
        2025-03-14 -> RCT-250314-7KQ2ZD

    Uses secrets for the random part.
    """
    stamp = (paid_at or datetime.now()).strftime("%y%m%d")
    alphabet = string.ascii_uppercase + string.digits
    random_part = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"RCT-{stamp}-{random_part}"
