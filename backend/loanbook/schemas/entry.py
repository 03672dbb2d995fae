from pydantic import BaseModel, field_validator
from datetime import date, datetime

from loanbook.schemas.common import finite_or_none

class EntryCreate(BaseModel):
    loan_id: int
    entry_date: date
    received_date: date | None = None
    received_amount: float | None = None
    received_interest: float | None = None

    @field_validator("received_amount", "received_interest")
    @classmethod
    def finite(cls, v: float | None):
        return finite_or_none(v)

class EntryOut(BaseModel):
    id: int
    loan_id: int
    entry_date: date
    balance_amount: float
    interest_amount: float
    received_date: date | None
    received_amount: float | None
    received_interest: float | None
    deleted_at: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True

class BinEntryOut(EntryOut):
    # entries of a binned loan come back only with the loan itself
    loan_in_bin: bool = False

class EntryPage(BaseModel):
    items: list[EntryOut]
    page: int
    total_pages: int
    total: int

class BinEntryPage(BaseModel):
    items: list[BinEntryOut]
    page: int
    total_pages: int
    total: int
