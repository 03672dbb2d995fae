from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from loanbook.api.deps import db, current_user, require_admin
from loanbook.schemas.day_close import DayCloseIn, DayCloseOut, DayCloseResult
from loanbook.services.day_close import close_day, last_day_close

router = APIRouter(prefix="/day-closes", tags=["day-closes"])


@router.post("", response_model=DayCloseResult, status_code=201)
def create_day_close(body: DayCloseIn, s: Session = Depends(db), u=Depends(require_admin)):
    return close_day(s, username=u.get("sub"), on=body.closed_on)


@router.get("/last", response_model=DayCloseOut | None)
def get_last_day_close(s: Session = Depends(db), u=Depends(current_user)):
    return last_day_close(s)
