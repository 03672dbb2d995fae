from pydantic import BaseModel
from datetime import date, datetime

class DayCloseIn(BaseModel):
    closed_on: date | None = None

class DayCloseResult(BaseModel):
    closed_on: date
    next_day: date
    closed_by: str

class DayCloseOut(BaseModel):
    id: int
    closed_on: date
    closed_by: str
    closed_at: datetime | None = None

    class Config:
        from_attributes = True
