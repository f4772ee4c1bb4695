from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from station_ledger.api.deps import current_user, db
from station_ledger.schemas.common import Envelope, Page, ok
from station_ledger.schemas.journal import EntryCreate, EntryOut
from station_ledger.services import ledger
from station_ledger.services.audit import log_event

router = APIRouter(tags=["journal"])


@router.post("/accounts/{account_id}/entries", response_model=Envelope[EntryOut])
def record_entry(account_id: int, body: EntryCreate, s: Session = Depends(db), u=Depends(current_user)):
    e = ledger.record(
        s,
        account_id,
        body.entry_type,
        body.amount,
        body.description,
        direction=body.direction,
        category=body.category,
        entry_date=body.entry_date,
        reference=body.reference,
        created_by=u.get("sub"),
    )
    log_event(
        s,
        u,
        action="journal.record",
        entity_type="account",
        entity_id=account_id,
        details={
            "entry_id": e.id,
            "entry_type": e.entry_type,
            "direction": e.direction,
            "amount": str(e.amount),
            "reference": e.reference,
        },
    )
    return ok(e)


@router.get("/journal", response_model=Envelope[Page[EntryOut]])
def list_entries(
    s: Session = Depends(db),
    u=Depends(current_user),
    account_id: int | None = Query(default=None),
    entry_type: str | None = Query(default=None),
    category: str | None = Query(default=None),
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    reconciled: bool | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    total, rows = ledger.list_entries(
        s,
        account_id=account_id,
        entry_type=entry_type,
        category=category,
        start=start,
        end=end,
        reconciled=reconciled,
        limit=limit,
        offset=offset,
    )
    return ok({"total": total, "items": rows})


@router.get("/journal/{entry_id}", response_model=Envelope[EntryOut])
def get_entry(entry_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return ok(ledger.get_entry(s, entry_id))
