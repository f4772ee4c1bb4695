from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from station_ledger.core.config import settings
from station_ledger.core.errors import (
    AccountNotFound,
    DuplicateAccount,
    EntryNotFound,
    InsufficientFunds,
    InvalidAmount,
    InvalidState,
)
from station_ledger.models.account import Account
from station_ledger.models.journal_entry import CREDIT, DEBIT, ENTRY_TYPES, JournalEntry
from station_ledger.services.locks import account_key, for_update, run_unit
from station_ledger.utils.dates import today_local
from station_ledger.utils.money import ZERO, d2, money, to_dec

log = logging.getLogger(__name__)

_TYPE_DIRECTION = {
    "deposit": CREDIT,
    "interest": CREDIT,
    "withdrawal": DEBIT,
    "charge": DEBIT,
}

_UPDATABLE_FIELDS = ("bank_name", "account_type", "branch", "description", "station_id")


@dataclass
class BalanceCheck:
    account_id: int
    recorded_balance: Decimal
    journal_balance: Decimal
    difference: Decimal
    entry_count: int
    chain_breaks: list[int] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return self.difference == 0 and not self.chain_breaks


def _positive(amount) -> Decimal:
    amt = money(amount)
    if amt <= 0:
        raise InvalidAmount("amount must be greater than zero", amount=str(amount))
    return amt


def _signed():
    return case((JournalEntry.direction == CREDIT, JournalEntry.amount), else_=-JournalEntry.amount)


def create_account(
    s: Session,
    *,
    bank_name: str,
    account_number: str,
    opening_balance=ZERO,
    currency: str | None = None,
    account_type: str = "current",
    branch: str | None = None,
    description: str | None = None,
    station_id: str | None = None,
) -> Account:
    number = (account_number or "").strip()
    opening = money(opening_balance)
    if opening < 0:
        raise InvalidAmount("opening balance cannot be negative", amount=str(opening_balance))

    exists = s.execute(select(Account.id).where(Account.account_number == number)).scalar_one_or_none()
    if exists is not None:
        raise DuplicateAccount(f"account number {number} already exists", account_id=exists)

    acct = Account(
        bank_name=bank_name.strip(),
        account_number=number,
        account_type=account_type,
        branch=branch,
        currency=currency or settings.default_currency,
        description=description,
        station_id=station_id,
        opening_balance=opening,
        current_balance=opening,
        is_active=True,
    )
    s.add(acct)
    s.commit()
    s.refresh(acct)
    log.info("account created", extra={"account_id": acct.id, "opening_balance": str(opening)})
    return acct


def get_account(s: Session, account_id: int) -> Account:
    acct = s.get(Account, account_id)
    if acct is None:
        raise AccountNotFound(f"account {account_id} not found", account_id=account_id)
    return acct


def list_accounts(s: Session, active: bool | None = None) -> list[Account]:
    q = select(Account).order_by(Account.bank_name.asc(), Account.account_number.asc())
    if active is not None:
        q = q.where(Account.is_active == active)
    return list(s.execute(q).scalars().all())


def update_account(s: Session, account_id: int, **fields) -> Account:
    def _do():
        acct = for_update(s, Account, Account.id == account_id)
        if acct is None:
            raise AccountNotFound(f"account {account_id} not found", account_id=account_id)
        for k, v in fields.items():
            if k in _UPDATABLE_FIELDS and v is not None:
                setattr(acct, k, v)
        return acct

    return run_unit(s, [account_key(account_id)], _do, label="update_account")


def set_active(s: Session, account_id: int, active: bool) -> Account:
    def _do():
        acct = for_update(s, Account, Account.id == account_id)
        if acct is None:
            raise AccountNotFound(f"account {account_id} not found", account_id=account_id)
        acct.is_active = active
        return acct

    acct = run_unit(s, [account_key(account_id)], _do, label="set_active")
    log.info("account activation changed", extra={"account_id": account_id, "active": active})
    return acct


def delete_account(s: Session, account_id: int) -> None:
    def _do():
        acct = for_update(s, Account, Account.id == account_id)
        if acct is None:
            raise AccountNotFound(f"account {account_id} not found", account_id=account_id)
        referenced = s.execute(
            select(func.count(JournalEntry.id)).where(
                (JournalEntry.account_id == account_id) | (JournalEntry.related_account_id == account_id)
            )
        ).scalar_one()
        if referenced:
            raise InvalidState(
                "account has journal entries; deactivate it instead",
                account_id=account_id,
                entries=referenced,
            )
        s.delete(acct)

    run_unit(s, [account_key(account_id)], _do, label="delete_account")


def _apply_delta(
    s: Session,
    account_id: int,
    amount: Decimal,
    direction: str,
    *,
    entry_type: str,
    description: str,
    category: str = "other",
    entry_date: date | None = None,
    reference: str | None = None,
    related_account_id: int | None = None,
    transfer_ref: str | None = None,
    created_by: str | None = None,
) -> JournalEntry:
    # caller holds the account lock and commits
    if direction not in (CREDIT, DEBIT):
        raise InvalidState(f"unknown direction {direction!r}")
    if entry_type not in ENTRY_TYPES:
        raise InvalidState(f"unknown entry type {entry_type!r}")

    acct = for_update(s, Account, Account.id == account_id)
    if acct is None:
        raise AccountNotFound(f"account {account_id} not found", account_id=account_id)

    if reference:
        prior = s.execute(
            select(JournalEntry).where(JournalEntry.account_id == account_id, JournalEntry.reference == reference)
        ).scalar_one_or_none()
        if prior is not None:
            if (
                prior.amount != amount
                or prior.direction != direction
                or prior.entry_type != entry_type
                or prior.related_account_id != related_account_id
                or prior.transfer_ref != transfer_ref
            ):
                raise InvalidState(
                    "reference already used for a different movement",
                    account_id=account_id,
                    reference=reference,
                )
            log.info("replayed journal reference", extra={"account_id": account_id, "reference": reference})
            return prior

    if not acct.is_active:
        raise InvalidState(f"account {account_id} is inactive", account_id=account_id)

    current = to_dec(acct.current_balance)
    if direction == DEBIT:
        if current < amount:
            raise InsufficientFunds(
                f"account {account_id} cannot cover {amount}",
                account_id=account_id,
                available=str(current),
                requested=str(amount),
            )
        new_balance = d2(current - amount)
    else:
        new_balance = d2(current + amount)

    acct.current_balance = new_balance
    entry = JournalEntry(
        account_id=account_id,
        related_account_id=related_account_id,
        date=entry_date or today_local(),
        entry_type=entry_type,
        direction=direction,
        amount=amount,
        balance_after=new_balance,
        category=category,
        description=description,
        reference=reference,
        transfer_ref=transfer_ref,
        reconciled=False,
        created_by=created_by,
    )
    s.add(entry)
    s.flush()

    log.info(
        "balance updated",
        extra={
            "account_id": account_id,
            "entry_id": entry.id,
            "direction": direction,
            "amount": str(amount),
            "balance_after": str(new_balance),
        },
    )
    return entry


def apply_delta(s: Session, account_id: int, amount, direction: str, **kw) -> JournalEntry:
    amt = _positive(amount)
    kw.setdefault("entry_type", "deposit" if direction == CREDIT else "withdrawal")
    kw.setdefault("description", kw["entry_type"])
    return run_unit(
        s,
        [account_key(account_id)],
        lambda: _apply_delta(s, account_id, amt, direction, **kw),
        label="apply_delta",
    )


def direction_for(entry_type: str, direction: str | None = None) -> str:
    if entry_type not in ENTRY_TYPES:
        raise InvalidState(f"unknown entry type {entry_type!r}")
    implied = _TYPE_DIRECTION.get(entry_type)
    if implied is None:
        if direction not in (CREDIT, DEBIT):
            raise InvalidState(f"{entry_type} entries need an explicit direction")
        return direction
    if direction is not None and direction != implied:
        raise InvalidState(f"{entry_type} entries are always {implied}s")
    return implied


def record(
    s: Session,
    account_id: int,
    entry_type: str,
    amount,
    description: str,
    *,
    direction: str | None = None,
    **kw,
) -> JournalEntry:
    """Journal a balance-affecting event against one account."""
    d = direction_for(entry_type, direction)
    return apply_delta(s, account_id, amount, d, entry_type=entry_type, description=description, **kw)


def get_entry(s: Session, entry_id: int) -> JournalEntry:
    e = s.get(JournalEntry, entry_id)
    if e is None:
        raise EntryNotFound(f"journal entry {entry_id} not found", entry_id=entry_id)
    return e


def list_entries(
    s: Session,
    *,
    account_id: int | None = None,
    entry_type: str | None = None,
    category: str | None = None,
    start: date | None = None,
    end: date | None = None,
    reconciled: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[JournalEntry]]:
    conds = []
    if account_id is not None:
        conds.append(JournalEntry.account_id == account_id)
    if entry_type:
        conds.append(JournalEntry.entry_type == entry_type)
    if category:
        conds.append(JournalEntry.category == category)
    if start is not None:
        conds.append(JournalEntry.date >= start)
    if end is not None:
        conds.append(JournalEntry.date <= end)
    if reconciled is not None:
        conds.append(JournalEntry.reconciled == reconciled)

    total = s.execute(select(func.count(JournalEntry.id)).where(*conds)).scalar_one()
    rows = (
        s.execute(
            select(JournalEntry)
            .where(*conds)
            .order_by(JournalEntry.date.desc(), JournalEntry.id.desc())
            .limit(limit)
            .offset(offset)
        )
        .scalars()
        .all()
    )
    return int(total), list(rows)


def journal_balance(s: Session, account_id: int) -> Decimal:
    acct = get_account(s, account_id)
    net = s.execute(
        select(func.coalesce(func.sum(_signed()), 0)).where(JournalEntry.account_id == account_id)
    ).scalar_one()
    return d2(to_dec(acct.opening_balance) + to_dec(net))


def verify_account(s: Session, account_id: int) -> BalanceCheck:
    """Recompute an account from its journal. Reports divergence, never corrects it."""
    acct = get_account(s, account_id)
    s.refresh(acct)
    entries = (
        s.execute(select(JournalEntry).where(JournalEntry.account_id == account_id).order_by(JournalEntry.id.asc()))
        .scalars()
        .all()
    )

    running = to_dec(acct.opening_balance)
    breaks: list[int] = []
    for e in entries:
        running = d2(running + e.signed_amount)
        if to_dec(e.balance_after) != running:
            breaks.append(e.id)

    recorded = to_dec(acct.current_balance)
    check = BalanceCheck(
        account_id=account_id,
        recorded_balance=recorded,
        journal_balance=running,
        difference=d2(recorded - running),
        entry_count=len(entries),
        chain_breaks=breaks,
    )
    if not check.consistent:
        log.warning(
            "account balance diverges from journal",
            extra={
                "account_id": account_id,
                "recorded_balance": str(recorded),
                "journal_balance": str(running),
                "chain_breaks": breaks,
            },
        )
    return check


def verify_all(s: Session) -> list[BalanceCheck]:
    ids = s.execute(select(Account.id).order_by(Account.id.asc())).scalars().all()
    return [verify_account(s, i) for i in ids]


def statement(s: Session, account_id: int, start: date, end: date) -> dict:
    acct = get_account(s, account_id)

    before = s.execute(
        select(func.coalesce(func.sum(_signed()), 0)).where(
            JournalEntry.account_id == account_id, JournalEntry.date < start
        )
    ).scalar_one()
    opening = d2(to_dec(acct.opening_balance) + to_dec(before))

    entries = (
        s.execute(
            select(JournalEntry)
            .where(JournalEntry.account_id == account_id, JournalEntry.date >= start, JournalEntry.date <= end)
            .order_by(JournalEntry.date.asc(), JournalEntry.id.asc())
        )
        .scalars()
        .all()
    )
    credits = sum((to_dec(e.amount) for e in entries if e.direction == CREDIT), ZERO)
    debits = sum((to_dec(e.amount) for e in entries if e.direction == DEBIT), ZERO)

    return {
        "account_id": account_id,
        "start": start,
        "end": end,
        "opening_balance": opening,
        "total_credits": d2(credits),
        "total_debits": d2(debits),
        "closing_balance": d2(opening + credits - debits),
        "entries": list(entries),
    }
