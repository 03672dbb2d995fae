from sqlalchemy.orm import Session
from loanbook.models.audit_log import AuditLog


def log_event(
    s: Session,
    username: str,
    action: str,
    entity_type: str,
    entity_id: int | None = None,
    details: dict | None = None,
):
    """Stage an audit row; it commits (or rolls back) with the caller's work."""
    row = AuditLog(
        username=username or "system",
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    s.add(row)
    return row
