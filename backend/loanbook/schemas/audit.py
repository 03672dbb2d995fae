from datetime import datetime

from pydantic import BaseModel


class AuditOut(BaseModel):
    id: int
    created_at: datetime | None = None
    username: str
    # e.g. "entry.create", "loan.restore", "bin.empty"
    action: str
    entity_type: str
    entity_id: int | None = None
    details: dict | None = None

    class Config:
        from_attributes = True


class AuditPage(BaseModel):
    items: list[AuditOut]
    page: int
    total_pages: int
    total: int
