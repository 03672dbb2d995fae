from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from loanbook.api.deps import db, current_user, require_admin
from loanbook.schemas.common import BinCounts
from loanbook.schemas.entry import EntryCreate, EntryOut, EntryPage
from loanbook.schemas.loan import LoanPreviewOut
from loanbook.services import entries as svc
from loanbook.services.preview import loan_preview

router = APIRouter(prefix="/entries", tags=["entries"])


@router.get("", response_model=EntryPage)
def list_entries(
    loan_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    sort_by: str = Query("entryDate"),
    sort_order: str = Query("desc"),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    pg = svc.list_entries(s, loan_id=loan_id, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)
    return {"items": pg.items, "page": pg.page, "total_pages": pg.total_pages, "total": pg.total}


@router.get("/loan/{loan_id}/details", response_model=LoanPreviewOut)
def entry_form_details(loan_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return loan_preview(s, loan_id)


@router.get("/{entry_id}", response_model=EntryOut)
def get_entry(entry_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return svc.get_entry(s, entry_id)


@router.post("", response_model=EntryOut, status_code=201)
def create_entry(body: EntryCreate, s: Session = Depends(db), u=Depends(require_admin)):
    return svc.retry_on_conflict(
        lambda: svc.post_entry(
            s,
            loan_id=body.loan_id,
            entry_date=body.entry_date,
            received_date=body.received_date,
            received_amount=body.received_amount,
            received_interest=body.received_interest,
            username=u.get("sub"),
        )
    )


@router.delete("/{entry_id}", response_model=BinCounts)
def delete_entry(entry_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    counts = svc.delete_entry(s, entry_id, username=u.get("sub"))
    return {"message": "Entry moved to the recycle bin", **counts}
