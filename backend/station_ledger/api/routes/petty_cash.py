from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from station_ledger.api.deps import current_user, db, require_petty_cash_approver
from station_ledger.schemas.common import Envelope, Page, ok
from station_ledger.schemas.petty_cash import (
    EntryUpdate,
    LimitsIn,
    PettyCashBalanceOut,
    PettyCashEntryOut,
    PettyCashSummaryOut,
    RejectIn,
    ReplenishmentCreate,
    WithdrawalCreate,
)
from station_ledger.services import petty_cash as pc
from station_ledger.services.audit import log_event

router = APIRouter(prefix="/petty-cash", tags=["petty-cash"])


def _entry_details(e) -> dict:
    return {
        "entry_code": e.entry_code,
        "station_id": e.station_id,
        "entry_type": e.entry_type,
        "amount": str(e.amount),
        "approval_status": e.approval_status,
    }


@router.get("/stations/{station_id}", response_model=Envelope[PettyCashBalanceOut])
def get_balance(station_id: str, s: Session = Depends(db), u=Depends(current_user)):
    return ok(pc.get_balance(s, station_id))


@router.get("/stations/{station_id}/entries", response_model=Envelope[Page[PettyCashEntryOut]])
def list_entries(
    station_id: str,
    s: Session = Depends(db),
    u=Depends(current_user),
    entry_type: str | None = Query(default=None),
    status: str | None = Query(default=None),
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    total, rows = pc.list_entries(
        s, station_id, entry_type=entry_type, status=status, start=start, end=end, limit=limit, offset=offset
    )
    return ok({"total": total, "items": rows})


@router.get("/stations/{station_id}/summary", response_model=Envelope[PettyCashSummaryOut])
def summary(
    station_id: str,
    s: Session = Depends(db),
    u=Depends(current_user),
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
):
    return ok(pc.summary(s, station_id, start, end))


@router.post("/stations/{station_id}/withdrawals", response_model=Envelope[PettyCashEntryOut])
def request_withdrawal(station_id: str, body: WithdrawalCreate, s: Session = Depends(db), u=Depends(current_user)):
    e = pc.request_withdrawal(
        s,
        station_id,
        body.amount,
        body.description,
        requested_by=u.get("sub"),
        role=u.get("role"),
        category=body.category,
        entry_date=body.entry_date,
        notes=body.notes,
    )
    log_event(s, u, action="petty_cash.withdrawal", entity_type="petty_cash_entry", entity_id=e.id, details=_entry_details(e))
    return ok(e)


@router.post("/stations/{station_id}/replenishments", response_model=Envelope[PettyCashEntryOut])
def replenish(station_id: str, body: ReplenishmentCreate, s: Session = Depends(db), u=Depends(current_user)):
    e = pc.replenish(
        s,
        station_id,
        body.amount,
        body.description,
        requested_by=u.get("sub"),
        role=u.get("role"),
        bank_account_id=body.bank_account_id,
        entry_date=body.entry_date,
        notes=body.notes,
    )
    details = _entry_details(e)
    details["bank_account_id"] = e.bank_account_id
    log_event(s, u, action="petty_cash.replenish", entity_type="petty_cash_entry", entity_id=e.id, details=details)
    return ok(e)


@router.put("/stations/{station_id}/limits", response_model=Envelope[PettyCashBalanceOut])
def update_limits(station_id: str, body: LimitsIn, s: Session = Depends(db), u=Depends(require_petty_cash_approver)):
    acct = pc.update_limits(s, station_id, body.min_limit, body.max_limit, u.get("sub"))
    log_event(
        s,
        u,
        action="petty_cash.limits",
        entity_type="petty_cash",
        entity_id=station_id,
        details={"min_limit": str(acct.min_limit), "max_limit": str(acct.max_limit)},
    )
    return ok(acct)


@router.post("/entries/{entry_id}/approve", response_model=Envelope[PettyCashEntryOut])
def approve(entry_id: int, s: Session = Depends(db), u=Depends(require_petty_cash_approver)):
    e = pc.approve(s, entry_id, u.get("sub"))
    log_event(s, u, action="petty_cash.approve", entity_type="petty_cash_entry", entity_id=entry_id, details=_entry_details(e))
    return ok(e)


@router.post("/entries/{entry_id}/reject", response_model=Envelope[PettyCashEntryOut])
def reject(entry_id: int, body: RejectIn, s: Session = Depends(db), u=Depends(require_petty_cash_approver)):
    e = pc.reject(s, entry_id, u.get("sub"), body.reason)
    log_event(s, u, action="petty_cash.reject", entity_type="petty_cash_entry", entity_id=entry_id, details=_entry_details(e))
    return ok(e)


@router.patch("/entries/{entry_id}", response_model=Envelope[PettyCashEntryOut])
def update_entry(entry_id: int, body: EntryUpdate, s: Session = Depends(db), u=Depends(current_user)):
    changes = body.model_dump(exclude_unset=True)
    e = pc.update_entry(s, entry_id, **changes)
    log_event(
        s,
        u,
        action="petty_cash.update",
        entity_type="petty_cash_entry",
        entity_id=entry_id,
        details={k: str(v) for k, v in changes.items()},
    )
    return ok(e)


@router.delete("/entries/{entry_id}", response_model=Envelope[dict])
def delete_entry(entry_id: int, s: Session = Depends(db), u=Depends(current_user)):
    if not pc.can_delete(pc.get_entry(s, entry_id), u.get("sub"), u.get("role")):
        raise HTTPException(status_code=403, detail="forbidden")
    pc.delete_entry(s, entry_id, u.get("sub"))
    log_event(s, u, action="petty_cash.delete", entity_type="petty_cash_entry", entity_id=entry_id)
    return ok({"deleted": entry_id})
