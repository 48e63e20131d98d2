"""Shared service helpers: audit rows and the ledger unit-of-work runner."""

import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from feeledger.core.config import settings
from feeledger.core.exceptions import PersistenceFailure, ServiceError
from feeledger.core.models import FeeAuditLog

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _to_uuid(val):
    if val is None:
        return None
    return val if isinstance(val, UUID) else UUID(str(val))


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    return value


async def log_fee_audit(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    reference_table: str,
    reference_id: UUID,
    action_type: str,
    old_value: Optional[dict],
    new_value: Optional[dict],
    changed_by: Optional[UUID],
) -> None:
    log = FeeAuditLog(
        tenant_id=tenant_id,
        student_id=student_id,
        reference_table=reference_table,
        reference_id=reference_id,
        action_type=action_type,
        old_value=_jsonable(old_value) if old_value is not None else None,
        new_value=_jsonable(new_value) if new_value is not None else None,
        changed_by=changed_by,
    )
    db.add(log)


async def run_ledger_transaction(db: AsyncSession, work: Callable[[], Awaitable[T]], label: str) -> T:
    """
    Run work() and commit once. Payment row, ledger and audit rows land together or not at all.

    work() must re-read everything it needs: on a stale student version the session is rolled
    back and work() runs again, up to LEDGER_MAX_RETRIES attempts.
    """
    attempts = settings.ledger_max_retries
    for attempt in range(1, attempts + 1):
        try:
            result = await work()
            await db.commit()
            return result
        except ServiceError:
            await db.rollback()
            raise
        except StaleDataError:
            await db.rollback()
            if attempt == attempts:
                logger.error("%s: student ledger changed concurrently, giving up after %d attempts", label, attempts)
                raise PersistenceFailure("The ledger was changed by another user, please retry")
            logger.warning("%s: stale student version, retrying (attempt %d of %d)", label, attempt, attempts)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("%s: database write failed, rolled back", label, exc_info=True)
            raise PersistenceFailure() from e
        except Exception:
            await db.rollback()
            raise
    raise PersistenceFailure()
