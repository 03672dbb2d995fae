from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from loanbook.api.deps import db, current_user, require_admin
from loanbook.schemas.common import BinCounts
from loanbook.schemas.entry import BinEntryOut, BinEntryPage
from loanbook.schemas.loan import LoanPage
from loanbook.services import recycle_bin as svc

router = APIRouter(prefix="/recycle-bin", tags=["recycle-bin"])


@router.get("/loans", response_model=LoanPage)
def binned_loans(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    pg = svc.deleted_loans(s, page=page, limit=limit)
    return {"items": pg.items, "page": pg.page, "total_pages": pg.total_pages, "total": pg.total}


@router.get("/entries", response_model=BinEntryPage)
def binned_entries(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    pg = svc.deleted_entries(s, page=page, limit=limit)
    in_bin = svc.binned_loan_ids(s, (e.loan_id for e in pg.items))
    items = [
        BinEntryOut.model_validate(e).model_copy(update={"loan_in_bin": e.loan_id in in_bin})
        for e in pg.items
    ]
    return {"items": items, "page": pg.page, "total_pages": pg.total_pages, "total": pg.total}


@router.post("/loans/{loan_id}/restore", response_model=BinCounts)
def restore_loan(loan_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    counts = svc.restore_loan(s, loan_id, username=u.get("sub"))
    return {"message": "Loan and related entries restored", **counts}


@router.post("/entries/{entry_id}/restore", response_model=BinCounts)
def restore_entry(entry_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    counts = svc.restore_entry(s, entry_id, username=u.get("sub"))
    return {"message": "Entry restored", **counts}


@router.delete("/empty", response_model=BinCounts)
def empty_bin(type: str = Query("all"), s: Session = Depends(db), u=Depends(require_admin)):
    counts = svc.empty_bin(s, type, username=u.get("sub"))
    return {"message": "Recycle bin emptied", **counts}


@router.delete("/loans/{loan_id}", response_model=BinCounts)
def purge_loan(loan_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    counts = svc.permanently_delete_loan(s, loan_id, username=u.get("sub"))
    return {"message": "Loan and related entries permanently deleted", **counts}


@router.delete("/entries/{entry_id}", response_model=BinCounts)
def purge_entry(entry_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    counts = svc.permanently_delete_entry(s, entry_id, username=u.get("sub"))
    return {"message": "Entry permanently deleted", **counts}
