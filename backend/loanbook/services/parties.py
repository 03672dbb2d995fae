from __future__ import annotations

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from loanbook.core.errors import NotFound, ValidationError
from loanbook.models.loan import Loan
from loanbook.models.party import Party
from loanbook.services.audit import log_event
from loanbook.services.entries import require_id
from loanbook.services.paging import Page, paginate

CONTACT_FIELDS = ("address", "mobile1", "mobile2", "reference", "reference_mobile1", "reference_mobile2")


def _clean(v: str | None) -> str | None:
    if v is None:
        return None
    v = str(v).strip()
    return v or None


def _account_taken(s: Session, account_number: str, exclude_id: int | None = None) -> bool:
    q = select(Party.id).where(Party.account_number == account_number)
    if exclude_id is not None:
        q = q.where(Party.id != exclude_id)
    return s.execute(q).first() is not None


def create_party(s: Session, party_name: str, account_number: str, username: str | None = None, **contact) -> Party:
    name = _clean(party_name)
    acct = _clean(account_number)
    if not name:
        raise ValidationError("party_name_required")
    if not acct:
        raise ValidationError("account_number_required")
    if _account_taken(s, acct):
        raise ValidationError("account_number_exists")

    p = Party(party_name=name, account_number=acct, **{k: _clean(contact.get(k)) for k in CONTACT_FIELDS})
    try:
        s.add(p)
        s.flush()
        log_event(s, username=username, action="party.create", entity_type="party", entity_id=p.id,
                  details={"party_name": name, "account_number": acct})
        s.commit()
    except IntegrityError:
        s.rollback()
        raise ValidationError("account_number_exists")
    except Exception:
        s.rollback()
        raise
    s.refresh(p)
    return p


def get_party(s: Session, party_id: int) -> Party:
    p = s.get(Party, require_id(party_id, "party"))
    if p is None:
        raise NotFound("party_not_found")
    return p


def update_party(s: Session, party_id: int, username: str | None = None, **fields) -> Party:
    """Contact details are always editable; name and account only until a loan points at the party."""
    p = get_party(s, party_id)
    identity = {k: _clean(fields[k]) for k in ("party_name", "account_number") if fields.get(k) is not None}
    contact = {k: _clean(fields[k]) for k in CONTACT_FIELDS if k in fields}
    if not identity and not contact:
        raise ValidationError("nothing_to_update")

    if identity:
        has_loans = s.execute(select(func.count(Loan.id)).where(Loan.party_id == p.id)).scalar_one()
        if has_loans:
            raise ValidationError("party_has_loans", "name and account number are fixed once loans exist")
        if not all(identity.values()):
            raise ValidationError("party_identity_required")
        acct = identity.get("account_number")
        if acct and _account_taken(s, acct, exclude_id=p.id):
            raise ValidationError("account_number_exists")

    for k, v in {**identity, **contact}.items():
        setattr(p, k, v)
    try:
        log_event(s, username=username, action="party.update", entity_type="party", entity_id=p.id,
                  details={k: v for k, v in {**identity, **contact}.items()})
        s.commit()
    except Exception:
        s.rollback()
        raise
    s.refresh(p)
    return p


def list_parties(s: Session, search: str | None = None, page: int = 1, limit: int = 10) -> Page:
    q = select(Party)
    if search:
        like = f"%{search.strip()}%"
        q = q.where(Party.party_name.ilike(like) | Party.account_number.ilike(like))
    q = q.order_by(Party.party_name.asc(), Party.id.asc())
    return paginate(s, q, page, limit)
