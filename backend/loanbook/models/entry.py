from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Integer, Date, DateTime, func, ForeignKey, Numeric, inspect
from sqlalchemy.orm import Mapped, mapped_column, validates
from loanbook.core.errors import ValidationError
from loanbook.db.base import Base

FINANCIAL_FIELDS = (
    "entry_date",
    "balance_amount",
    "interest_amount",
    "received_date",
    "received_amount",
    "received_interest",
)


class Entry(Base):
    __tablename__ = "entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    loan_id: Mapped[int] = mapped_column(ForeignKey("loans.id", ondelete="CASCADE"), index=True)

    entry_date: Mapped[date] = mapped_column(Date, index=True)
    # loan principal before this entry's payment, i.e. what the interest was charged on
    balance_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    interest_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))

    received_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    received_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    received_interest: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())

    @validates(*FINANCIAL_FIELDS)
    def _freeze_posted(self, key, value):
        # only deleted_at may change once the row has been written
        if inspect(self).has_identity:
            raise ValidationError("entry_immutable", f"{key} cannot change on a posted entry")
        return value

    @property
    def in_bin(self) -> bool:
        return self.deleted_at is not None
