from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from station_ledger.core.config import role_list, settings
from station_ledger.core.errors import (
    EntryNotFound,
    InsufficientFunds,
    InvalidAmount,
    InvalidState,
    LimitExceeded,
)
from station_ledger.models.journal_entry import CREDIT, DEBIT
from station_ledger.models.petty_cash import (
    APPROVED,
    PENDING,
    REJECTED,
    REPLENISHMENT,
    WITHDRAWAL,
    PettyCashAccount,
    PettyCashEntry,
)
from station_ledger.services import ledger
from station_ledger.services.locks import account_key, for_update, petty_cash_key, run_unit
from station_ledger.utils.codes import generate_code
from station_ledger.utils.dates import today_local
from station_ledger.utils.money import ZERO, d2, money, to_dec

log = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("description", "category", "date", "notes")


def is_approver(role: str | None) -> bool:
    return (role or "").strip().lower() in role_list(settings.petty_cash_approver_roles)


def _positive(amount) -> Decimal:
    amt = money(amount)
    if amt <= 0:
        raise InvalidAmount("amount must be greater than zero", amount=str(amount))
    return amt


def _load_or_create(s: Session, station_id: str, *, lock: bool = True) -> PettyCashAccount:
    if lock:
        pc = for_update(s, PettyCashAccount, PettyCashAccount.station_id == station_id)
    else:
        pc = s.execute(select(PettyCashAccount).where(PettyCashAccount.station_id == station_id)).scalars().first()
    if pc is None:
        pc = PettyCashAccount(
            station_id=station_id,
            current_balance=ZERO,
            min_limit=money(settings.petty_cash_min_limit),
            max_limit=money(settings.petty_cash_max_limit),
        )
        s.add(pc)
        s.flush()
        log.info("petty cash balance created", extra={"station_id": station_id})
    return pc


def get_balance(s: Session, station_id: str) -> PettyCashAccount:
    return run_unit(
        s,
        [petty_cash_key(station_id)],
        lambda: _load_or_create(s, station_id, lock=False),
        label="petty_cash_balance",
    )


def _get_entry(s: Session, entry_id: int, *, lock: bool = False) -> PettyCashEntry:
    if lock:
        e = for_update(s, PettyCashEntry, PettyCashEntry.id == entry_id)
    else:
        e = s.get(PettyCashEntry, entry_id)
    if e is None:
        raise EntryNotFound(f"petty cash entry {entry_id} not found", entry_id=entry_id)
    return e


def get_entry(s: Session, entry_id: int) -> PettyCashEntry:
    return _get_entry(s, entry_id)


def can_delete(entry: PettyCashEntry, user_id: str | None, role: str | None) -> bool:
    """Admins may delete any entry; a requester only their own entry that is not yet Approved."""
    if (role or "").strip().lower() == "admin":
        return True
    return entry.approval_status != APPROVED and user_id is not None and entry.requested_by == user_id


def _apply_withdrawal(pc: PettyCashAccount, entry: PettyCashEntry, by: str) -> None:
    current = to_dec(pc.current_balance)
    if current < entry.amount:
        raise InsufficientFunds(
            "petty cash balance cannot cover withdrawal",
            station_id=pc.station_id,
            available=str(current),
            requested=str(entry.amount),
        )
    pc.current_balance = d2(current - entry.amount)
    pc.updated_by = by


def _apply_replenishment(s: Session, pc: PettyCashAccount, entry: PettyCashEntry, by: str) -> None:
    current = to_dec(pc.current_balance)
    if current + entry.amount > pc.max_limit:
        raise LimitExceeded(
            "replenishment would exceed the petty cash maximum",
            station_id=pc.station_id,
            current=str(current),
            amount=str(entry.amount),
            max_limit=str(pc.max_limit),
        )
    if entry.bank_account_id is not None:
        bank_entry = ledger._apply_delta(
            s,
            entry.bank_account_id,
            entry.amount,
            DEBIT,
            entry_type="withdrawal",
            category="petty_cash",
            description=f"Petty cash replenishment {entry.entry_code}",
            entry_date=entry.date,
            reference=entry.entry_code,
            created_by=by,
        )
        entry.bank_entry_id = bank_entry.id
    pc.current_balance = d2(current + entry.amount)
    pc.last_replenishment_amount = entry.amount
    pc.last_replenishment_date = entry.date
    pc.updated_by = by


def request_withdrawal(
    s: Session,
    station_id: str,
    amount,
    description: str,
    *,
    requested_by: str,
    role: str | None = None,
    category: str = "other",
    entry_date: date | None = None,
    notes: str = "",
) -> PettyCashEntry:
    amt = _positive(amount)
    auto = is_approver(role) and amt <= money(settings.petty_cash_auto_approval_limit)

    def _do() -> PettyCashEntry:
        pc = _load_or_create(s, station_id)
        if to_dec(pc.current_balance) < amt:
            raise InsufficientFunds(
                "petty cash balance cannot cover withdrawal",
                station_id=station_id,
                available=str(pc.current_balance),
                requested=str(amt),
            )
        day = entry_date or today_local()
        entry = PettyCashEntry(
            entry_code=generate_code("PCW", day),
            station_id=station_id,
            entry_type=WITHDRAWAL,
            amount=amt,
            date=day,
            description=description,
            category=category,
            notes=notes or "",
            approval_status=PENDING,
            requested_by=requested_by,
        )
        s.add(entry)
        if auto:
            _apply_withdrawal(pc, entry, requested_by)
            entry.approval_status = APPROVED
            entry.approved_by = requested_by
        s.flush()
        return entry

    entry = run_unit(s, [petty_cash_key(station_id)], _do, label="petty_cash_withdrawal")
    log.info(
        "petty cash withdrawal recorded",
        extra={"station_id": station_id, "entry_code": entry.entry_code, "amount": str(amt), "auto_approved": auto},
    )
    return entry


def replenish(
    s: Session,
    station_id: str,
    amount,
    description: str = "Petty cash replenishment",
    *,
    requested_by: str,
    role: str | None = None,
    bank_account_id: int | None = None,
    entry_date: date | None = None,
    notes: str = "",
) -> PettyCashEntry:
    amt = _positive(amount)
    auto = is_approver(role)
    keys = [petty_cash_key(station_id)]
    if bank_account_id is not None:
        keys.append(account_key(bank_account_id))

    def _do() -> PettyCashEntry:
        pc = _load_or_create(s, station_id)
        if to_dec(pc.current_balance) + amt > pc.max_limit:
            raise LimitExceeded(
                "replenishment would exceed the petty cash maximum",
                station_id=station_id,
                current=str(pc.current_balance),
                amount=str(amt),
                max_limit=str(pc.max_limit),
            )
        day = entry_date or today_local()
        entry = PettyCashEntry(
            entry_code=generate_code("PCR", day),
            station_id=station_id,
            entry_type=REPLENISHMENT,
            amount=amt,
            date=day,
            description=description,
            category="replenishment",
            notes=notes or "",
            approval_status=PENDING,
            requested_by=requested_by,
            bank_account_id=bank_account_id,
        )
        s.add(entry)
        if auto:
            _apply_replenishment(s, pc, entry, requested_by)
            entry.approval_status = APPROVED
            entry.approved_by = requested_by
        s.flush()
        return entry

    entry = run_unit(s, keys, _do, label="petty_cash_replenish")
    log.info(
        "petty cash replenishment recorded",
        extra={
            "station_id": station_id,
            "entry_code": entry.entry_code,
            "amount": str(amt),
            "bank_account_id": bank_account_id,
            "auto_approved": auto,
        },
    )
    return entry


def _keys_for(entry: PettyCashEntry) -> list:
    keys = [petty_cash_key(entry.station_id)]
    if entry.bank_account_id is not None:
        keys.append(account_key(entry.bank_account_id))
    return keys


def approve(s: Session, entry_id: int, approved_by: str) -> PettyCashEntry:
    found = _get_entry(s, entry_id)

    def _do() -> PettyCashEntry:
        entry = _get_entry(s, entry_id, lock=True)
        if entry.approval_status != PENDING:
            raise InvalidState(
                f"entry is {entry.approval_status}, only Pending entries can be approved",
                entry_id=entry_id,
            )
        pc = _load_or_create(s, entry.station_id)
        if entry.entry_type == WITHDRAWAL:
            _apply_withdrawal(pc, entry, approved_by)
        else:
            _apply_replenishment(s, pc, entry, approved_by)
        entry.approval_status = APPROVED
        entry.approved_by = approved_by
        return entry

    entry = run_unit(s, _keys_for(found), _do, label="petty_cash_approve")
    log.info("petty cash entry approved", extra={"entry_id": entry_id, "approved_by": approved_by})
    return entry


def reject(s: Session, entry_id: int, rejected_by: str, reason: str | None = None) -> PettyCashEntry:
    found = _get_entry(s, entry_id)

    def _do() -> PettyCashEntry:
        entry = _get_entry(s, entry_id, lock=True)
        if entry.approval_status != PENDING:
            raise InvalidState(
                f"entry is {entry.approval_status}, only Pending entries can be rejected",
                entry_id=entry_id,
            )
        entry.approval_status = REJECTED
        entry.approved_by = rejected_by
        if reason:
            entry.notes = f"{entry.notes}\nRejected: {reason}".strip()
        return entry

    entry = run_unit(s, [petty_cash_key(found.station_id)], _do, label="petty_cash_reject")
    log.info("petty cash entry rejected", extra={"entry_id": entry_id, "rejected_by": rejected_by})
    return entry


def update_entry(s: Session, entry_id: int, *, amount=None, **fields) -> PettyCashEntry:
    found = _get_entry(s, entry_id)
    new_amount = _positive(amount) if amount is not None else None

    def _do() -> PettyCashEntry:
        entry = _get_entry(s, entry_id, lock=True)
        if entry.approval_status != PENDING:
            raise InvalidState("only Pending entries can be edited", entry_id=entry_id)
        for k, v in fields.items():
            if k in _EDITABLE_FIELDS and v is not None:
                setattr(entry, k, v)
        if new_amount is not None:
            entry.amount = new_amount
        return entry

    return run_unit(s, [petty_cash_key(found.station_id)], _do, label="petty_cash_update")


def _reverse_bank_replenishment(s: Session, pc: PettyCashAccount, entry: PettyCashEntry, by: str) -> None:
    # bank and box are both reversed by the full amount
    current = to_dec(pc.current_balance)
    if current < entry.amount:
        raise InsufficientFunds(
            "petty cash no longer holds the replenished amount",
            station_id=pc.station_id,
            available=str(current),
            requested=str(entry.amount),
        )
    ledger._apply_delta(
        s,
        entry.bank_account_id,
        entry.amount,
        CREDIT,
        entry_type="deposit",
        category="petty_cash",
        description=f"Reversal of petty cash replenishment {entry.entry_code}",
        reference=f"{entry.entry_code}-REV",
        created_by=by,
    )
    pc.current_balance = d2(current - entry.amount)


def delete_entry(s: Session, entry_id: int, deleted_by: str) -> None:
    """Remove an entry; an Approved one has its balance effect reversed first."""
    found = _get_entry(s, entry_id)
    status = found.approval_status
    station_id = found.station_id

    def _do() -> None:
        entry = _get_entry(s, entry_id, lock=True)
        if entry.approval_status == APPROVED:
            pc = _load_or_create(s, entry.station_id)
            current = to_dec(pc.current_balance)
            if entry.entry_type == WITHDRAWAL:
                restored = d2(current + entry.amount)
                if restored > pc.max_limit:
                    log.warning(
                        "restored petty cash balance is above the maximum",
                        extra={"station_id": pc.station_id, "balance": str(restored), "max_limit": str(pc.max_limit)},
                    )
                pc.current_balance = restored
            elif entry.bank_account_id is not None:
                _reverse_bank_replenishment(s, pc, entry, deleted_by)
            else:
                reduced = d2(current - entry.amount)
                pc.current_balance = reduced if reduced > 0 else ZERO
            pc.updated_by = deleted_by
        s.delete(entry)

    run_unit(s, _keys_for(found), _do, label="petty_cash_delete")
    log.info(
        "petty cash entry deleted",
        extra={"entry_id": entry_id, "status": status, "deleted_by": deleted_by},
    )


def update_limits(s: Session, station_id: str, min_limit, max_limit, updated_by: str) -> PettyCashAccount:
    lo = money(min_limit)
    hi = money(max_limit)
    if lo < 0 or hi < lo:
        raise InvalidAmount("limits must satisfy 0 <= min <= max", min_limit=str(lo), max_limit=str(hi))

    def _do() -> PettyCashAccount:
        pc = _load_or_create(s, station_id)
        if to_dec(pc.current_balance) > hi:
            raise LimitExceeded(
                "current balance is above the new maximum",
                station_id=station_id,
                current=str(pc.current_balance),
                max_limit=str(hi),
            )
        pc.min_limit = lo
        pc.max_limit = hi
        pc.updated_by = updated_by
        return pc

    return run_unit(s, [petty_cash_key(station_id)], _do, label="petty_cash_limits")


def list_entries(
    s: Session,
    station_id: str,
    *,
    entry_type: str | None = None,
    status: str | None = None,
    start: date | None = None,
    end: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[PettyCashEntry]]:
    conds = [PettyCashEntry.station_id == station_id]
    if entry_type:
        conds.append(PettyCashEntry.entry_type == entry_type)
    if status:
        conds.append(PettyCashEntry.approval_status == status)
    if start is not None:
        conds.append(PettyCashEntry.date >= start)
    if end is not None:
        conds.append(PettyCashEntry.date <= end)

    total = s.execute(select(func.count(PettyCashEntry.id)).where(*conds)).scalar_one()
    rows = (
        s.execute(
            select(PettyCashEntry)
            .where(*conds)
            .order_by(PettyCashEntry.date.desc(), PettyCashEntry.id.desc())
            .limit(limit)
            .offset(offset)
        )
        .scalars()
        .all()
    )
    return int(total), list(rows)


def summary(s: Session, station_id: str, start: date | None = None, end: date | None = None) -> dict:
    pc = get_balance(s, station_id)
    conds = [PettyCashEntry.station_id == station_id]
    if start is not None:
        conds.append(PettyCashEntry.date >= start)
    if end is not None:
        conds.append(PettyCashEntry.date <= end)

    entries = s.execute(select(PettyCashEntry).where(*conds)).scalars().all()

    withdrawals = ZERO
    replenishments = ZERO
    by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
    pending_count = 0
    pending_amount = ZERO
    for e in entries:
        amt = to_dec(e.amount)
        if e.approval_status == PENDING:
            pending_count += 1
            pending_amount += amt
        if e.approval_status != APPROVED:
            continue
        if e.entry_type == WITHDRAWAL:
            withdrawals += amt
            by_category[e.category] += amt
        else:
            replenishments += amt

    top = sorted(by_category.items(), key=lambda kv: kv[1], reverse=True)[:5]
    return {
        "station_id": station_id,
        "current_balance": to_dec(pc.current_balance),
        "min_limit": to_dec(pc.min_limit),
        "max_limit": to_dec(pc.max_limit),
        "needs_replenishment": pc.needs_replenishment,
        "recommended_replenishment": d2(to_dec(pc.recommended_replenishment)),
        "total_withdrawals": d2(withdrawals),
        "total_replenishments": d2(replenishments),
        "net_change": d2(replenishments - withdrawals),
        "withdrawals_by_category": {k: d2(v) for k, v in by_category.items()},
        "top_categories": [{"category": k, "amount": d2(v)} for k, v in top],
        "pending_count": pending_count,
        "pending_amount": d2(pending_amount),
    }
