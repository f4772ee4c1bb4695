from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from station_ledger.core.errors import (
    AccountNotFound,
    DuplicateAccount,
    InsufficientFunds,
    InvalidAmount,
    InvalidState,
)
from station_ledger.models.journal_entry import CREDIT, DEBIT, JournalEntry
from station_ledger.services import ledger


def _entry_count(session, account_id: int) -> int:
    return session.execute(
        select(func.count(JournalEntry.id)).where(JournalEntry.account_id == account_id)
    ).scalar_one()


def test_create_account_starts_at_opening_balance(make_account):
    acct = make_account("2500.50", currency="LKR")
    assert acct.current_balance == Decimal("2500.50")
    assert acct.opening_balance == Decimal("2500.50")
    assert acct.is_active is True
    assert acct.last_reconciled_at is None


def test_duplicate_account_number_rejected(make_account):
    make_account("0", account_number="001-22")
    with pytest.raises(DuplicateAccount):
        make_account("0", account_number="001-22")


def test_credit_and_debit_write_one_entry_each(session, make_account):
    acct = make_account("1000")

    e1 = ledger.apply_delta(session, acct.id, "250", CREDIT, description="cash sales")
    assert e1.balance_after == Decimal("1250.00")
    assert e1.entry_type == "deposit"

    e2 = ledger.apply_delta(session, acct.id, Decimal("200.25"), DEBIT, description="supplier")
    assert e2.balance_after == Decimal("1049.75")
    assert e2.entry_type == "withdrawal"

    assert ledger.get_account(session, acct.id).current_balance == Decimal("1049.75")
    assert _entry_count(session, acct.id) == 2


def test_debit_larger_than_balance_leaves_account_unchanged(session, make_account):
    acct = make_account("100")

    with pytest.raises(InsufficientFunds) as exc:
        ledger.apply_delta(session, acct.id, "100.01", DEBIT, description="too much")

    assert exc.value.code == "insufficient_funds"
    session.expire_all()
    assert ledger.get_account(session, acct.id).current_balance == Decimal("100.00")
    assert _entry_count(session, acct.id) == 0


def test_debit_of_exact_balance_is_allowed(session, make_account):
    acct = make_account("75")
    e = ledger.apply_delta(session, acct.id, "75", DEBIT)
    assert e.balance_after == Decimal("0.00")


@pytest.mark.parametrize("amount", ["0", "-5", "0.001"])
def test_non_positive_amounts_rejected(session, make_account, amount):
    acct = make_account("10")
    with pytest.raises(InvalidAmount):
        ledger.apply_delta(session, acct.id, amount, CREDIT)


def test_unknown_account(session):
    with pytest.raises(AccountNotFound):
        ledger.apply_delta(session, 999, "10", CREDIT)


def test_inactive_account_rejects_mutations(session, make_account):
    acct = make_account("500")
    ledger.set_active(session, acct.id, False)

    with pytest.raises(InvalidState):
        ledger.apply_delta(session, acct.id, "10", CREDIT)

    ledger.set_active(session, acct.id, True)
    ledger.apply_delta(session, acct.id, "10", CREDIT)
    assert ledger.get_account(session, acct.id).current_balance == Decimal("510.00")


def test_replayed_reference_returns_original_entry(session, make_account):
    acct = make_account("0")

    first = ledger.apply_delta(session, acct.id, "40", CREDIT, reference="POS-2024-0001")
    again = ledger.apply_delta(session, acct.id, "40", CREDIT, reference="POS-2024-0001")

    assert again.id == first.id
    assert ledger.get_account(session, acct.id).current_balance == Decimal("40.00")
    assert _entry_count(session, acct.id) == 1


def test_reused_reference_with_different_amount_rejected(session, make_account):
    acct = make_account("0")
    ledger.apply_delta(session, acct.id, "40", CREDIT, reference="POS-7")

    with pytest.raises(InvalidState):
        ledger.apply_delta(session, acct.id, "41", CREDIT, reference="POS-7")


def test_reused_reference_with_different_entry_type_rejected(session, make_account):
    acct = make_account("0")
    ledger.record(session, acct.id, "deposit", "40", "cash in", reference="POS-8")

    with pytest.raises(InvalidState):
        ledger.record(session, acct.id, "interest", "40", "interest", reference="POS-8")
    assert _entry_count(session, acct.id) == 1


def test_record_maps_entry_type_to_direction(session, make_account):
    acct = make_account("100")

    assert ledger.record(session, acct.id, "interest", "5", "monthly interest").direction == CREDIT
    assert ledger.record(session, acct.id, "charge", "2", "bank charge").direction == DEBIT
    assert ledger.record(session, acct.id, "other", "3", "adjustment", direction=DEBIT).direction == DEBIT

    with pytest.raises(InvalidState):
        ledger.record(session, acct.id, "other", "3", "no direction")
    with pytest.raises(InvalidState):
        ledger.record(session, acct.id, "deposit", "3", "contradiction", direction=DEBIT)

    assert ledger.get_account(session, acct.id).current_balance == Decimal("100.00")


def test_account_with_entries_cannot_be_deleted(session, make_account):
    acct = make_account("0")
    ledger.apply_delta(session, acct.id, "1", CREDIT)

    with pytest.raises(InvalidState):
        ledger.delete_account(session, acct.id)
    assert ledger.get_account(session, acct.id) is not None


def test_unused_account_can_be_deleted(session, make_account):
    acct = make_account("0")
    ledger.delete_account(session, acct.id)
    with pytest.raises(AccountNotFound):
        ledger.get_account(session, acct.id)


def test_update_account_changes_descriptive_fields_only(session, make_account):
    acct = make_account("10")
    ledger.update_account(session, acct.id, branch="Colombo 03", current_balance=Decimal("999"))
    acct = ledger.get_account(session, acct.id)
    assert acct.branch == "Colombo 03"
    assert acct.current_balance == Decimal("10.00")


def test_verify_account_detects_tampered_balance(session, make_account):
    acct = make_account("100")
    ledger.apply_delta(session, acct.id, "50", CREDIT)
    assert ledger.verify_account(session, acct.id).consistent

    acct = ledger.get_account(session, acct.id)
    acct.current_balance = Decimal("175.00")
    session.commit()

    check = ledger.verify_account(session, acct.id)
    assert not check.consistent
    assert check.journal_balance == Decimal("150.00")
    assert check.difference == Decimal("25.00")


def test_statement_splits_period(session, make_account):
    acct = make_account("1000")
    ledger.apply_delta(session, acct.id, "200", CREDIT, entry_date=date(2024, 1, 10))
    ledger.apply_delta(session, acct.id, "50", DEBIT, entry_date=date(2024, 2, 5))
    ledger.apply_delta(session, acct.id, "30", CREDIT, entry_date=date(2024, 2, 20))
    ledger.apply_delta(session, acct.id, "10", DEBIT, entry_date=date(2024, 3, 1))

    st = ledger.statement(session, acct.id, date(2024, 2, 1), date(2024, 2, 29))

    assert st["opening_balance"] == Decimal("1200.00")
    assert st["total_credits"] == Decimal("30.00")
    assert st["total_debits"] == Decimal("50.00")
    assert st["closing_balance"] == Decimal("1180.00")
    assert len(st["entries"]) == 2


def test_list_entries_filters_and_paginates(session, make_account):
    a = make_account("0")
    b = make_account("0")
    for i in range(5):
        ledger.apply_delta(session, a.id, "10", CREDIT, category="sales")
    ledger.apply_delta(session, b.id, "10", CREDIT, category="sales")
    ledger.apply_delta(session, a.id, "5", DEBIT, category="fees")

    total, rows = ledger.list_entries(session, account_id=a.id, category="sales", limit=3)
    assert total == 5
    assert len(rows) == 3

    total, rows = ledger.list_entries(session, account_id=a.id, entry_type="withdrawal")
    assert total == 1
    assert rows[0].category == "fees"
