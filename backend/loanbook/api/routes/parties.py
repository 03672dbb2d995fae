from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from loanbook.api.deps import db, current_user, require_admin
from loanbook.schemas.party import PartyCreate, PartyUpdate, PartyOut, PartyPage
from loanbook.services import parties as svc

router = APIRouter(prefix="/parties", tags=["parties"])


@router.get("", response_model=PartyPage)
def list_parties(
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    pg = svc.list_parties(s, search=search, page=page, limit=limit)
    return {"items": pg.items, "page": pg.page, "total_pages": pg.total_pages, "total": pg.total}


@router.get("/{party_id}", response_model=PartyOut)
def get_party(party_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return svc.get_party(s, party_id)


@router.post("", response_model=PartyOut, status_code=201)
def create_party(body: PartyCreate, s: Session = Depends(db), u=Depends(require_admin)):
    return svc.create_party(s, username=u.get("sub"), **body.model_dump())


@router.put("/{party_id}", response_model=PartyOut)
def update_party(party_id: int, body: PartyUpdate, s: Session = Depends(db), u=Depends(require_admin)):
    return svc.update_party(s, party_id, username=u.get("sub"), **body.model_dump(exclude_unset=True))
