import re
from datetime import date
from io import BytesIO

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from loanbook.api.deps import db, current_user, require_admin
from loanbook.schemas.common import BinCounts
from loanbook.schemas.loan import LoanCreate, LoanUpdate, LoanOut, LoanPage, LoanReconciliationOut
from loanbook.services import loans as svc
from loanbook.services.day_close import last_day_close
from loanbook.services.recycle_bin import delete_loan as bin_loan
from loanbook.services.reports import build_loan_statement, monthly_summary

router = APIRouter(prefix="/loans", tags=["loans"])


def _safe_part(v: str) -> str:
    s = re.sub(r"[^A-Za-z0-9._-]+", "_", (v or "").strip())
    s = re.sub(r"_+", "_", s).strip("_")
    return s[:40] or "unknown"


@router.get("", response_model=LoanPage)
def list_loans(
    party_id: int | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    sort_by: str = Query("loanDate"),
    sort_order: str = Query("desc"),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    pg = svc.list_loans(s, party_id=party_id, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order, search=search)
    dc = last_day_close(s)
    return {
        "items": pg.items,
        "page": pg.page,
        "total_pages": pg.total_pages,
        "total": pg.total,
        "last_day_close": dc.closed_on if dc is not None else None,
    }


@router.get("/monthly-summary")
def loans_monthly_summary(
    start: date | None = Query(None),
    end: date | None = Query(None),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    year = date.today().year
    start = start or date(year, 1, 1)
    end = end or date(year, 12, 31)
    data = monthly_summary(s, start, end)
    return {
        str(loan_id): {m: {k: float(v) for k, v in vals.items()} for m, vals in months.items()}
        for loan_id, months in data.items()
    }


@router.get("/{loan_id}", response_model=LoanOut)
def get_loan(loan_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return svc.get_loan(s, loan_id)


@router.post("", response_model=LoanOut, status_code=201)
def create_loan(body: LoanCreate, s: Session = Depends(db), u=Depends(require_admin)):
    return svc.create_loan(
        s,
        party_id=body.party_id,
        loan_date=body.loan_date,
        loan_amount=body.loan_amount,
        interest=body.interest,
        username=u.get("sub"),
    )


@router.put("/{loan_id}", response_model=LoanOut)
def update_loan(loan_id: int, body: LoanUpdate, s: Session = Depends(db), u=Depends(require_admin)):
    return svc.update_loan(s, loan_id, username=u.get("sub"), **body.model_dump(exclude_unset=True))


@router.delete("/{loan_id}", response_model=BinCounts)
def delete_loan(loan_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    counts = bin_loan(s, loan_id, username=u.get("sub"))
    return {"message": "Loan and its entries moved to the recycle bin", **counts}


@router.get("/{loan_id}/verify", response_model=LoanReconciliationOut)
def verify_loan(loan_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    return svc.verify_loan(s, loan_id)


@router.get("/{loan_id}/statement")
def loan_statement(loan_id: int, s: Session = Depends(db), u=Depends(current_user)):
    loan = svc.get_loan(s, loan_id)
    buf = BytesIO()
    build_loan_statement(s, loan.id, buf)
    buf.seek(0)

    filename = f"{_safe_part(loan.party_name)}_loan_{loan.id}.xlsx"
    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
