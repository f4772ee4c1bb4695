from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from station_ledger.core.errors import InvalidAmount, InvalidState, SameAccount
from station_ledger.models.journal_entry import CREDIT, DEBIT, JournalEntry
from station_ledger.services import ledger
from station_ledger.services.locks import account_key, run_unit
from station_ledger.utils.money import money

log = logging.getLogger(__name__)


@dataclass
class TransferResult:
    transfer_ref: str
    debit: JournalEntry
    credit: JournalEntry


def transfer(
    s: Session,
    from_id: int,
    to_id: int,
    amount,
    description: str,
    *,
    entry_date: date | None = None,
    reference: str | None = None,
    created_by: str | None = None,
) -> TransferResult:
    """Move `amount` from one account to another as a single commit.

    The debit leg runs first; if it raises (insufficient funds, missing or
    inactive account) the credit leg never runs. If the credit leg raises, the
    whole unit is rolled back so the source keeps its balance.
    """
    if from_id == to_id:
        raise SameAccount("cannot transfer to the same account", account_id=from_id)
    amt = money(amount)
    if amt <= 0:
        raise InvalidAmount("amount must be greater than zero", amount=str(amount))

    ref = reference or f"TRF-{uuid4().hex[:12].upper()}"
    common = dict(
        entry_type="transfer",
        description=description,
        category="transfer",
        entry_date=entry_date,
        reference=ref,
        transfer_ref=ref,
        created_by=created_by,
    )

    def _do() -> TransferResult:
        prior = _existing_legs(s, ref)
        if prior:
            return _replayed(ref, prior, from_id, to_id, amt)
        out = ledger._apply_delta(s, from_id, amt, DEBIT, related_account_id=to_id, **common)
        inc = ledger._apply_delta(s, to_id, amt, CREDIT, related_account_id=from_id, **common)
        return TransferResult(transfer_ref=ref, debit=out, credit=inc)

    res = run_unit(s, [account_key(from_id), account_key(to_id)], _do, label="transfer")
    log.info(
        "transfer committed",
        extra={"transfer_ref": ref, "from_account": from_id, "to_account": to_id, "amount": str(amt)},
    )
    return res


def _existing_legs(s: Session, ref: str) -> list[JournalEntry]:
    return list(
        s.execute(select(JournalEntry).where(JournalEntry.transfer_ref == ref).order_by(JournalEntry.id))
        .scalars()
        .all()
    )


def _replayed(ref: str, legs: list[JournalEntry], from_id: int, to_id: int, amount) -> TransferResult:
    """Return the legs of an earlier transfer with the same reference, or refuse a mismatch."""
    debit = [e for e in legs if e.direction == DEBIT]
    credit = [e for e in legs if e.direction == CREDIT]
    matches = (
        len(legs) == 2
        and len(debit) == 1
        and len(credit) == 1
        and debit[0].account_id == from_id
        and debit[0].related_account_id == to_id
        and credit[0].account_id == to_id
        and credit[0].related_account_id == from_id
        and all(e.amount == amount and e.entry_type == "transfer" for e in legs)
    )
    if not matches:
        raise InvalidState(
            "transfer reference already used for a different movement",
            transfer_ref=ref,
            from_account=from_id,
            to_account=to_id,
        )
    log.info("replayed transfer reference", extra={"transfer_ref": ref})
    return TransferResult(transfer_ref=ref, debit=debit[0], credit=credit[0])
