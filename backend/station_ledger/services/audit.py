from sqlalchemy.orm import Session
from station_ledger.models.audit_log import AuditLog


def log_event(
    s: Session,
    user: dict,
    action: str,
    entity_type: str,
    entity_id=None,
    details: dict | None = None,
) -> AuditLog:
    """Persist one audit row for an already-committed change.

    `user` is the decoded bearer token; `details` must be JSON-serializable,
    so Decimals and dates are expected to arrive as strings.
    """
    row = AuditLog(
        actor=str(user.get("sub") or "system"),
        role=user.get("role"),
        station_id=user.get("station_id"),
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=details,
    )
    s.add(row)
    s.commit()
    return row
