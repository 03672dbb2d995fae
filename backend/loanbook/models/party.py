from sqlalchemy import String, Integer, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from loanbook.db.base import Base

class Party(Base):
    __tablename__ = "parties"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    party_name: Mapped[str] = mapped_column(String(128), index=True)
    account_number: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    address: Mapped[str | None] = mapped_column(String(256), nullable=True)
    mobile1: Mapped[str | None] = mapped_column(String(32), nullable=True)
    mobile2: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reference_mobile1: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reference_mobile2: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())
