from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from station_ledger.api.deps import current_user, db, require_admin
from station_ledger.schemas.account import AccountCreate, AccountOut, AccountUpdate, BalanceCheckOut
from station_ledger.schemas.common import Envelope, ok
from station_ledger.schemas.journal import StatementOut
from station_ledger.services import ledger
from station_ledger.services.audit import log_event

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("", response_model=Envelope[list[AccountOut]])
def list_accounts(
    s: Session = Depends(db),
    u=Depends(current_user),
    active: bool | None = Query(default=None),
):
    return ok(ledger.list_accounts(s, active=active))


@router.post("", response_model=Envelope[AccountOut])
def create_account(body: AccountCreate, s: Session = Depends(db), u=Depends(require_admin)):
    acct = ledger.create_account(s, **body.model_dump())
    log_event(
        s,
        u,
        action="account.create",
        entity_type="account",
        entity_id=acct.id,
        details={
            "bank_name": acct.bank_name,
            "account_number": acct.account_number,
            "opening_balance": str(acct.opening_balance),
        },
    )
    return ok(acct)


@router.get("/verify", response_model=Envelope[list[BalanceCheckOut]])
def verify_all(s: Session = Depends(db), u=Depends(require_admin)):
    return ok([BalanceCheckOut.model_validate(c) for c in ledger.verify_all(s)])


@router.get("/{account_id}", response_model=Envelope[AccountOut])
def get_account(account_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return ok(ledger.get_account(s, account_id))


@router.patch("/{account_id}", response_model=Envelope[AccountOut])
def update_account(account_id: int, body: AccountUpdate, s: Session = Depends(db), u=Depends(require_admin)):
    changes = body.model_dump(exclude_unset=True)
    acct = ledger.update_account(s, account_id, **changes)
    log_event(s, u, action="account.update", entity_type="account", entity_id=account_id, details=changes)
    return ok(acct)


@router.post("/{account_id}/deactivate", response_model=Envelope[AccountOut])
def deactivate_account(account_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    acct = ledger.set_active(s, account_id, False)
    log_event(s, u, action="account.deactivate", entity_type="account", entity_id=account_id)
    return ok(acct)


@router.post("/{account_id}/activate", response_model=Envelope[AccountOut])
def activate_account(account_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    acct = ledger.set_active(s, account_id, True)
    log_event(s, u, action="account.activate", entity_type="account", entity_id=account_id)
    return ok(acct)


@router.delete("/{account_id}", response_model=Envelope[dict])
def delete_account(account_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    ledger.delete_account(s, account_id)
    log_event(s, u, action="account.delete", entity_type="account", entity_id=account_id)
    return ok({"deleted": account_id})


@router.get("/{account_id}/verify", response_model=Envelope[BalanceCheckOut])
def verify_account(account_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return ok(BalanceCheckOut.model_validate(ledger.verify_account(s, account_id)))


@router.get("/{account_id}/statement", response_model=Envelope[StatementOut])
def account_statement(
    account_id: int,
    start: date = Query(...),
    end: date = Query(...),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    return ok(ledger.statement(s, account_id, start, end))
