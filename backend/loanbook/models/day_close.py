from sqlalchemy import Integer, Date, DateTime, func, String
from sqlalchemy.orm import Mapped, mapped_column
from loanbook.db.base import Base

class DayClose(Base):
    __tablename__ = "day_closes"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    closed_on: Mapped[Date] = mapped_column(Date, unique=True, index=True)
    closed_by: Mapped[str] = mapped_column(String(64))
    closed_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())
