from __future__ import annotations

import logging
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from loanbook.core.errors import ValidationError
from loanbook.models.day_close import DayClose
from loanbook.services.audit import log_event
from loanbook.utils.timezone import today_local

log = logging.getLogger(__name__)


def last_day_close(s: Session) -> DayClose | None:
    return (
        s.execute(select(DayClose).order_by(DayClose.closed_on.desc()).limit(1))
        .scalars()
        .first()
    )


def close_day(s: Session, username: str, on: date | None = None) -> dict:
    last = last_day_close(s)
    if on is None:
        on = last.closed_on + timedelta(days=1) if last is not None else today_local()

    exists = s.execute(select(DayClose.id).where(DayClose.closed_on == on)).first()
    if exists is not None:
        raise ValidationError("day_already_closed", f"{on} is already closed")

    row = DayClose(closed_on=on, closed_by=username or "system")
    try:
        s.add(row)
        s.flush()
        log_event(s, username=username, action="day.close", entity_type="day_close", entity_id=row.id,
                  details={"closed_on": str(on)})
        s.commit()
    except Exception:
        s.rollback()
        raise

    log.info("day %s closed by %s", on, username)
    return {"closed_on": on, "next_day": on + timedelta(days=1), "closed_by": row.closed_by}
