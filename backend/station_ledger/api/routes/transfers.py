from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from station_ledger.api.deps import current_user, db
from station_ledger.schemas.common import Envelope, ok
from station_ledger.schemas.transfer import TransferCreate, TransferOut
from station_ledger.services.audit import log_event
from station_ledger.services.transfers import transfer

router = APIRouter(prefix="/transfers", tags=["transfers"])


@router.post("", response_model=Envelope[TransferOut])
def create_transfer(body: TransferCreate, s: Session = Depends(db), u=Depends(current_user)):
    res = transfer(
        s,
        body.from_account_id,
        body.to_account_id,
        body.amount,
        body.description,
        entry_date=body.entry_date,
        reference=body.reference,
        created_by=u.get("sub"),
    )
    log_event(
        s,
        u,
        action="transfer.create",
        entity_type="account",
        entity_id=body.from_account_id,
        details={
            "transfer_ref": res.transfer_ref,
            "to_account_id": body.to_account_id,
            "amount": str(res.debit.amount),
        },
    )
    return ok(TransferOut.model_validate(res))
