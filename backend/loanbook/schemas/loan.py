from pydantic import BaseModel, field_validator
from datetime import date, datetime

from loanbook.schemas.common import finite_or_none

class LoanCreate(BaseModel):
    party_id: int
    loan_date: date
    loan_amount: float
    interest: float  # percent per entry period

    @field_validator("loan_amount", "interest")
    @classmethod
    def finite(cls, v: float):
        return finite_or_none(v)

class LoanUpdate(BaseModel):
    loan_date: date | None = None
    loan_amount: float | None = None
    interest: float | None = None

    @field_validator("loan_amount", "interest")
    @classmethod
    def finite(cls, v: float | None):
        return finite_or_none(v)

class LoanOut(BaseModel):
    id: int
    party_id: int
    party_name: str | None = None
    loan_date: date
    loan_amount: float
    interest: float
    balance_amount: float
    balance_interest: float
    total_interest_received: float
    deleted_at: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True

class LoanPage(BaseModel):
    items: list[LoanOut]
    page: int
    total_pages: int
    total: int
    last_day_close: date | None = None

class LoanPreviewOut(BaseModel):
    id: int
    loan_date: date
    balance_amount: float
    balance_interest: float
    interest: float
    calculated_interest_amount: float
    total_pending_interest: float
    next_entry_date: date

class LoanReconciliationOut(BaseModel):
    loan_id: int
    entries: int
    stored_balance_amount: float
    stored_balance_interest: float
    replayed_balance_amount: float
    replayed_balance_interest: float
    consistent: bool
