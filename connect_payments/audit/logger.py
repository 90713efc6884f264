"""
Immutable audit trail for payment operations.

Every state change gets an append-only entry, from the routing choice
through settlement. Rejected requests write nothing here; they only reach
the application log. Entries are never modified or deleted; operators use
them to follow up on transfer_failed payments and orphaned intents.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from connect_payments.models.payment import AuditLog

logger = logging.getLogger("connect_payments.audit")


def _default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def _dumps(details: Optional[dict[str, Any]]) -> Optional[str]:
    return json.dumps(details, default=_default) if details else None


async def log_event(
    session: AsyncSession,
    action: str,
    payment_id: Optional[str] = None,
    user_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> AuditLog:
    """
    Create an immutable audit log entry.

    Args:
        session: Database session. The entry is added, not committed.
        action: What happened (e.g. "routing_selected", "transfer_failed").
        payment_id: The payment this event relates to, if one exists yet.
        user_id: The acting or affected user.
        details: Arbitrary context (serialized to JSON).
    """
    serialized = _dumps(details)
    entry = AuditLog(
        payment_id=payment_id,
        user_id=user_id,
        action=action,
        details=serialized,
        timestamp=datetime.now(timezone.utc),
    )
    session.add(entry)
    logger.info(
        "AUDIT | payment=%s user=%s action=%s | %s",
        payment_id or "-",
        user_id or "-",
        action,
        serialized[:200] if serialized else "",
    )
    return entry


def append_note(existing_notes: Optional[str], message: str) -> str:
    """Append a timestamped line to a payment's running notes."""
    prefix = f"[{datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}] "
    new_note = prefix + message
    if not existing_notes:
        return new_note
    return f"{existing_notes}\n{new_note}"
