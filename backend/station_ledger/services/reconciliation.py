"""Bank statement reconciliation.

Reconciliation only reports. It stamps ``last_reconciled_at``, flips the
``reconciled`` flag of journal entries and stores a history row, but it never
touches ``current_balance``; a difference is for a person to investigate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from station_ledger.core.config import settings
from station_ledger.core.errors import AccountNotFound, AlreadyReconciled, EntryNotFound, InvalidState
from station_ledger.models.account import Account
from station_ledger.models.journal_entry import CREDIT, DEBIT, JournalEntry
from station_ledger.models.reconciliation import AccountReconciliation
from station_ledger.services.locks import account_key, for_update, run_unit
from station_ledger.utils.dates import today_local
from station_ledger.utils.money import d2, money, to_dec

log = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    account_id: int
    as_of: date
    statement_balance: Decimal
    system_balance: Decimal
    difference: Decimal

    @property
    def balanced(self) -> bool:
        return abs(self.difference) <= settings.reconciliation_tolerance


@dataclass
class ReconciliationSummary:
    account_id: int
    opening_balance: Decimal
    current_balance: Decimal
    reconciled_credits: Decimal
    reconciled_debits: Decimal
    unreconciled_credits: Decimal
    unreconciled_debits: Decimal
    reconciled_balance: Decimal
    expected_balance: Decimal
    discrepancy: Decimal
    reconciled_count: int
    unreconciled_count: int
    last_reconciled_at: date | None

    @property
    def integrity_warning(self) -> bool:
        return abs(self.discrepancy) > settings.reconciliation_tolerance


def reconcile(
    s: Session,
    account_id: int,
    statement_balance,
    as_of: date | None = None,
    *,
    performed_by: str | None = None,
) -> ReconciliationResult:
    stmt_bal = money(statement_balance)
    day = as_of or today_local()

    def _do() -> ReconciliationResult:
        acct = for_update(s, Account, Account.id == account_id)
        if acct is None:
            raise AccountNotFound(f"account {account_id} not found", account_id=account_id)

        system = to_dec(acct.current_balance)
        diff = d2(stmt_bal - system)
        acct.last_reconciled_at = day
        s.add(
            AccountReconciliation(
                account_id=account_id,
                as_of=day,
                statement_balance=stmt_bal,
                system_balance=system,
                difference=diff,
                performed_by=performed_by,
            )
        )
        return ReconciliationResult(account_id, day, stmt_bal, system, diff)

    res = run_unit(s, [account_key(account_id)], _do, label="reconcile")
    if res.difference != 0:
        log.warning(
            "statement balance differs from system balance",
            extra={
                "account_id": account_id,
                "statement_balance": str(res.statement_balance),
                "system_balance": str(res.system_balance),
                "difference": str(res.difference),
            },
        )
    else:
        log.info("account reconciled", extra={"account_id": account_id, "as_of": day.isoformat()})
    return res


def _summarize(s: Session, acct: Account) -> ReconciliationSummary:
    rows = s.execute(
        select(
            JournalEntry.reconciled,
            func.coalesce(func.sum(case((JournalEntry.direction == CREDIT, JournalEntry.amount), else_=0)), 0),
            func.coalesce(func.sum(case((JournalEntry.direction == DEBIT, JournalEntry.amount), else_=0)), 0),
            func.count(JournalEntry.id),
        )
        .where(JournalEntry.account_id == acct.id)
        .group_by(JournalEntry.reconciled)
    ).all()

    totals = {True: (Decimal("0"), Decimal("0"), 0), False: (Decimal("0"), Decimal("0"), 0)}
    for flag, credits, debits, n in rows:
        totals[bool(flag)] = (to_dec(credits), to_dec(debits), int(n))

    rc, rd, rn = totals[True]
    uc, ud, un = totals[False]
    opening = to_dec(acct.opening_balance)
    current = to_dec(acct.current_balance)
    reconciled_balance = d2(opening + rc - rd)
    expected = d2(reconciled_balance + uc - ud)

    return ReconciliationSummary(
        account_id=acct.id,
        opening_balance=opening,
        current_balance=current,
        reconciled_credits=d2(rc),
        reconciled_debits=d2(rd),
        unreconciled_credits=d2(uc),
        unreconciled_debits=d2(ud),
        reconciled_balance=reconciled_balance,
        expected_balance=expected,
        discrepancy=d2(current - expected),
        reconciled_count=rn,
        unreconciled_count=un,
        last_reconciled_at=acct.last_reconciled_at,
    )


def reconcile_entries(
    s: Session,
    account_id: int,
    entry_ids: Iterable[int],
    reconciled_on: date | None = None,
) -> ReconciliationSummary:
    """Mark journal entries as matched against the bank statement.

    All listed entries must belong to the account and be unreconciled,
    otherwise nothing is marked.
    """
    ids = sorted(set(int(i) for i in entry_ids))
    if not ids:
        raise InvalidState("no entries to reconcile", account_id=account_id)
    day = reconciled_on or today_local()

    def _do() -> ReconciliationSummary:
        acct = for_update(s, Account, Account.id == account_id)
        if acct is None:
            raise AccountNotFound(f"account {account_id} not found", account_id=account_id)

        entries = (
            s.execute(
                select(JournalEntry)
                .where(JournalEntry.account_id == account_id, JournalEntry.id.in_(ids))
                .with_for_update()
            )
            .scalars()
            .all()
        )
        found = {e.id for e in entries}
        missing = [i for i in ids if i not in found]
        if missing:
            raise EntryNotFound("entries not found on this account", account_id=account_id, entry_ids=missing)
        done = [e.id for e in entries if e.reconciled]
        if done:
            raise AlreadyReconciled("entries already reconciled", account_id=account_id, entry_ids=done)

        for e in entries:
            e.reconciled = True
            e.reconciled_at = day
        s.flush()
        return _summarize(s, acct)

    summary = run_unit(s, [account_key(account_id)], _do, label="reconcile_entries")
    if summary.integrity_warning:
        log.warning(
            "account balance does not match reconciled journal",
            extra={
                "account_id": account_id,
                "current_balance": str(summary.current_balance),
                "expected_balance": str(summary.expected_balance),
                "discrepancy": str(summary.discrepancy),
            },
        )
    log.info("entries reconciled", extra={"account_id": account_id, "entry_ids": ids})
    return summary


def reconciliation_summary(s: Session, account_id: int) -> ReconciliationSummary:
    acct = s.get(Account, account_id)
    if acct is None:
        raise AccountNotFound(f"account {account_id} not found", account_id=account_id)
    s.refresh(acct)
    return _summarize(s, acct)


def reconciliation_history(s: Session, account_id: int, limit: int = 50) -> list[AccountReconciliation]:
    if s.get(Account, account_id) is None:
        raise AccountNotFound(f"account {account_id} not found", account_id=account_id)
    return list(
        s.execute(
            select(AccountReconciliation)
            .where(AccountReconciliation.account_id == account_id)
            .order_by(AccountReconciliation.as_of.desc(), AccountReconciliation.id.desc())
            .limit(limit)
        )
        .scalars()
        .all()
    )
