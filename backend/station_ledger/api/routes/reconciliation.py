from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from station_ledger.api.deps import current_user, db, require_admin
from station_ledger.schemas.common import Envelope, ok
from station_ledger.schemas.reconciliation import (
    ReconcileEntriesIn,
    ReconcileIn,
    ReconciliationHistoryOut,
    ReconciliationOut,
    ReconciliationSummaryOut,
)
from station_ledger.services import reconciliation as recon
from station_ledger.services.audit import log_event

router = APIRouter(prefix="/accounts/{account_id}/reconciliation", tags=["reconciliation"])


@router.post("", response_model=Envelope[ReconciliationOut])
def reconcile(account_id: int, body: ReconcileIn, s: Session = Depends(db), u=Depends(require_admin)):
    res = recon.reconcile(s, account_id, body.statement_balance, body.as_of, performed_by=u.get("sub"))
    log_event(
        s,
        u,
        action="account.reconcile",
        entity_type="account",
        entity_id=account_id,
        details={
            "as_of": res.as_of.isoformat(),
            "statement_balance": str(res.statement_balance),
            "system_balance": str(res.system_balance),
            "difference": str(res.difference),
        },
    )
    return ok(ReconciliationOut.model_validate(res))


@router.post("/entries", response_model=Envelope[ReconciliationSummaryOut])
def reconcile_entries(
    account_id: int, body: ReconcileEntriesIn, s: Session = Depends(db), u=Depends(require_admin)
):
    summary = recon.reconcile_entries(s, account_id, body.entry_ids, body.reconciled_on)
    log_event(
        s,
        u,
        action="account.reconcile_entries",
        entity_type="account",
        entity_id=account_id,
        details={"entry_ids": sorted(set(body.entry_ids)), "discrepancy": str(summary.discrepancy)},
    )
    return ok(ReconciliationSummaryOut.model_validate(summary))


@router.get("/summary", response_model=Envelope[ReconciliationSummaryOut])
def reconciliation_summary(account_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return ok(ReconciliationSummaryOut.model_validate(recon.reconciliation_summary(s, account_id)))


@router.get("/history", response_model=Envelope[list[ReconciliationHistoryOut]])
def reconciliation_history(
    account_id: int,
    s: Session = Depends(db),
    u=Depends(current_user),
    limit: int = Query(default=50, ge=1, le=500),
):
    return ok(recon.reconciliation_history(s, account_id, limit=limit))
