"""Row-change event construction and decoding."""

import uuid
from datetime import datetime, timezone
from typing import Any

from loan_ledger.models import ChangeAction, ChangeEvent
from loan_ledger.serialization import parse_datetime, serialize_value

TABLES = ("clients", "loans", "payments", "receipts")


def make_change_event(
    table: str,
    action: ChangeAction,
    record_id: str,
    loan_id: str | None = None,
    data: dict[str, Any] | None = None,
) -> ChangeEvent:
    """Build a change event for one row.

    Parameters
    ----------
    table : str
        One of ``clients``, ``loans``, ``payments``, ``receipts``.
    action : ChangeAction
        Insert, update or delete.
    record_id : str
        Primary key of the changed row (the loan id for bulk deletes).
    loan_id : str | None
        Loan the row belongs to, used as the partition key.
    data : dict[str, Any] | None
        Row payload.
    """
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table}")
    return ChangeEvent(
        event_id=uuid.uuid4().hex,
        event_type=f"{table}.{action.value}",
        event_time=datetime.now(timezone.utc),
        table=table,
        action=action,
        record_id=record_id,
        loan_id=loan_id,
        data=data or {},
    )


def event_to_dict(event: ChangeEvent) -> dict[str, Any]:
    return {
        "event_id": event.event_id,
        "event_type": event.event_type,
        "event_time": event.event_time.isoformat(),
        "table": event.table,
        "action": event.action.value,
        "record_id": event.record_id,
        "loan_id": event.loan_id,
        "data": serialize_value(event.data),
    }


def event_from_dict(data: dict[str, Any]) -> ChangeEvent:
    """Decode an event payload.

    Raises
    ------
    ValueError
        If required fields are missing or malformed.
    """
    try:
        return ChangeEvent(
            event_id=data["event_id"],
            event_type=data["event_type"],
            event_time=parse_datetime(data["event_time"]),
            table=data["table"],
            action=ChangeAction(data["action"]),
            record_id=data["record_id"],
            loan_id=data.get("loan_id"),
            data=data.get("data") or {},
        )
    except KeyError as e:
        raise ValueError(f"Missing event field: {e}") from e
