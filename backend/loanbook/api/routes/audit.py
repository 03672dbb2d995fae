from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from loanbook.api.deps import db, require_admin
from loanbook.models.audit_log import AuditLog
from loanbook.schemas.audit import AuditPage
from loanbook.services.paging import paginate

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=AuditPage)
def list_audit(
    entity_type: str | None = Query(None),
    entity_id: int | None = Query(None),
    action: str | None = Query(None),
    username: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=1000),
    s: Session = Depends(db),
    u=Depends(require_admin),
):
    q = select(AuditLog)
    for col, val in (
        (AuditLog.entity_type, entity_type),
        (AuditLog.entity_id, entity_id),
        (AuditLog.action, action),
        (AuditLog.username, username),
    ):
        if val is not None and val != "":
            q = q.where(col == val)
    q = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())

    pg = paginate(s, q, page, limit)
    return {"items": pg.items, "page": pg.page, "total_pages": pg.total_pages, "total": pg.total}
