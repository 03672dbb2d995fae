from pydantic import BaseModel, field_validator
from datetime import datetime

class PartyCreate(BaseModel):
    party_name: str
    account_number: str
    address: str | None = None
    mobile1: str | None = None
    mobile2: str | None = None
    reference: str | None = None
    reference_mobile1: str | None = None
    reference_mobile2: str | None = None

    @field_validator("party_name", "account_number")
    @classmethod
    def required_trim(cls, v: str):
        v = (v or "").strip()
        if not v:
            raise ValueError("is required")
        return v

class PartyUpdate(BaseModel):
    party_name: str | None = None
    account_number: str | None = None
    address: str | None = None
    mobile1: str | None = None
    mobile2: str | None = None
    reference: str | None = None
    reference_mobile1: str | None = None
    reference_mobile2: str | None = None

class PartyOut(BaseModel):
    id: int
    party_name: str
    account_number: str
    address: str | None
    mobile1: str | None
    mobile2: str | None
    reference: str | None
    reference_mobile1: str | None
    reference_mobile2: str | None
    created_at: datetime | None = None

    class Config:
        from_attributes = True

class PartyPage(BaseModel):
    items: list[PartyOut]
    page: int
    total_pages: int
    total: int
