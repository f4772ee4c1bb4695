from datetime import date
from decimal import Decimal

import pytest

from station_ledger.core.errors import (
    AlreadyPaid,
    InstallmentNotFound,
    InvalidAmount,
    InvalidState,
    LoanNotFound,
)
from station_ledger.models.loan import (
    INSTALLMENT_OVERDUE,
    INSTALLMENT_PAID,
    INSTALLMENT_PENDING,
    LOAN_ACTIVE,
    LOAN_CANCELLED,
    LOAN_COMPLETED,
    LOAN_PENDING,
    LOAN_REJECTED,
)
from station_ledger.services import loans


def _statuses(ln):
    return [i.status for i in ln.installments]


def test_flat_interest_schedule():
    sched = loans.build_schedule("12000", 12, "20", date(2024, 1, 1))

    assert sched.total_repayable == Decimal("14400.00")
    assert sched.installment_amount == Decimal("1200.00")
    assert [r.amount for r in sched.rows] == [Decimal("1200.00")] * 12
    assert [r.number for r in sched.rows] == list(range(1, 13))
    assert sched.rows[0].due_date == date(2024, 2, 1)
    assert sched.rows[-1].due_date == date(2025, 1, 1)


def test_last_installment_absorbs_rounding():
    sched = loans.build_schedule("1000", 3, "0", date(2024, 1, 31))

    assert [r.amount for r in sched.rows] == [Decimal("333.33"), Decimal("333.33"), Decimal("333.34")]
    assert sum(r.amount for r in sched.rows) == sched.total_repayable
    assert [r.due_date for r in sched.rows] == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


@pytest.mark.parametrize(
    "principal,months,rate",
    [("0", 12, "10"), ("-1", 12, "10"), ("1000", 0, "10"), ("1000", 12, "-1")],
)
def test_schedule_rejects_bad_input(principal, months, rate):
    with pytest.raises(InvalidAmount):
        loans.build_schedule(principal, months, rate, date(2024, 1, 1))


def test_full_repayment_completes_loan(session):
    ln = loans.apply_for_loan(
        session, "EMP-7", "12000", "medical", 12,
        requested_by="hr", role="admin", start_date=date(2024, 1, 1), interest_rate="20",
    )
    assert ln.status == LOAN_ACTIVE
    assert ln.remaining_amount == Decimal("14400.00")
    assert ln.end_date == date(2025, 1, 1)

    for n in range(1, 13):
        ln = loans.record_payment(session, ln.id, n, paid_on=date(2024, 1, 25), payroll_ref=f"PR-{n}")
        if n < 12:
            assert ln.status == LOAN_ACTIVE
            assert ln.remaining_amount == Decimal("1200.00") * (12 - n)

    assert ln.status == LOAN_COMPLETED
    assert ln.remaining_amount == Decimal("0.00")
    assert ln.end_date == date(2024, 1, 25)
    assert ln.remaining_installments == 0
    assert all(s == INSTALLMENT_PAID for s in _statuses(ln))


def test_remaining_matches_unpaid_installments(session):
    ln = loans.apply_for_loan(session, "EMP-8", "1000", "school fees", 3, requested_by="hr", role="admin", interest_rate="0")
    loans.record_payment(session, ln.id, 3)
    ln = loans.get_loan(session, ln.id)

    unpaid = sum((i.amount for i in ln.installments if i.status != INSTALLMENT_PAID), Decimal("0"))
    assert ln.remaining_amount == unpaid == Decimal("666.66")


def test_paying_twice_raises_already_paid(session):
    ln = loans.apply_for_loan(session, "EMP-1", "600", "x", 6, requested_by="hr", role="admin")
    loans.record_payment(session, ln.id, 1)

    with pytest.raises(AlreadyPaid):
        loans.record_payment(session, ln.id, 1)
    with pytest.raises(InstallmentNotFound):
        loans.record_payment(session, ln.id, 7)
    with pytest.raises(LoanNotFound):
        loans.record_payment(session, 999, 1)


def test_default_interest_rate_applies(session):
    ln = loans.apply_for_loan(session, "EMP-2", "1000", "x", 10, requested_by="hr", role="admin")
    assert ln.interest_rate == Decimal("23")
    assert ln.total_repayable == Decimal("1230.00")


def test_request_by_non_approver_is_pending(session):
    ln = loans.apply_for_loan(session, "EMP-3", "1000", "x", 10, requested_by="EMP-3", role="cashier")
    assert ln.status == LOAN_PENDING

    with pytest.raises(InvalidState):
        loans.record_payment(session, ln.id, 1)

    ln = loans.approve_loan(session, ln.id, "owner")
    assert ln.status == LOAN_ACTIVE
    assert ln.approved_by == "owner"
    assert ln.approval_date is not None


def test_one_open_loan_per_employee(session):
    loans.apply_for_loan(session, "EMP-4", "1000", "x", 10, requested_by="EMP-4", role="cashier")
    with pytest.raises(InvalidState):
        loans.apply_for_loan(session, "EMP-4", "500", "y", 5, requested_by="EMP-4", role="cashier")

    loans.apply_for_loan(session, "EMP-5", "500", "y", 5, requested_by="EMP-5", role="cashier")


def test_state_machine_transitions(session):
    a = loans.apply_for_loan(session, "EMP-10", "1000", "x", 10, requested_by="c", role="cashier")
    with pytest.raises(InvalidState):
        loans.reject_loan(session, a.id, "owner", "  ")
    a = loans.reject_loan(session, a.id, "owner", "exceeds policy")
    assert a.status == LOAN_REJECTED
    assert a.rejection_reason == "exceeds policy"
    with pytest.raises(InvalidState):
        loans.approve_loan(session, a.id, "owner")
    with pytest.raises(InvalidState):
        loans.cancel_loan(session, a.id, "owner")

    b = loans.apply_for_loan(session, "EMP-10", "1000", "x", 10, requested_by="hr", role="admin")
    b = loans.cancel_loan(session, b.id, "owner", "left company")
    assert b.status == LOAN_CANCELLED
    with pytest.raises(InvalidState):
        loans.record_payment(session, b.id, 1)

    c = loans.apply_for_loan(session, "EMP-10", "1000", "x", 10, requested_by="c", role="cashier")
    assert loans.cancel_loan(session, c.id, "c").status == LOAN_CANCELLED


def test_reschedule_pending_loan(session):
    ln = loans.apply_for_loan(
        session, "EMP-11", "12000", "x", 12, requested_by="c", role="cashier", start_date=date(2024, 1, 1), interest_rate="20"
    )
    ln = loans.reschedule_loan(session, ln.id, duration_months=6, start_date=date(2024, 3, 15))

    assert ln.duration_months == 6
    assert len(ln.installments) == 6
    assert ln.installment_amount == Decimal("2400.00")
    assert ln.installments[0].due_date == date(2024, 4, 15)
    assert ln.remaining_amount == Decimal("14400.00")

    loans.approve_loan(session, ln.id, "owner")
    with pytest.raises(InvalidState):
        loans.reschedule_loan(session, ln.id, duration_months=3)


def test_sweep_overdue_is_idempotent(session):
    ln = loans.apply_for_loan(
        session, "EMP-12", "1200", "x", 12, requested_by="hr", role="admin", start_date=date(2024, 1, 1), interest_rate="0"
    )
    loans.record_payment(session, ln.id, 1)

    as_of = date(2024, 4, 15)
    first = loans.sweep_overdue(session, as_of)
    snapshot = _statuses(loans.get_loan(session, ln.id))
    second = loans.sweep_overdue(session, as_of)

    assert first == 2
    assert second == 0
    assert _statuses(loans.get_loan(session, ln.id)) == snapshot
    assert snapshot[:4] == [INSTALLMENT_PAID, INSTALLMENT_OVERDUE, INSTALLMENT_OVERDUE, INSTALLMENT_PENDING]


def test_sweep_skips_closed_loans(session):
    ln = loans.apply_for_loan(
        session, "EMP-13", "1200", "x", 12, requested_by="hr", role="admin", start_date=date(2024, 1, 1)
    )
    loans.cancel_loan(session, ln.id, "hr")
    assert loans.sweep_overdue(session, date(2025, 6, 1)) == 0
    assert set(_statuses(loans.get_loan(session, ln.id))) == {INSTALLMENT_PENDING}


def test_overdue_installment_can_still_be_paid(session):
    ln = loans.apply_for_loan(
        session, "EMP-14", "1200", "x", 12, requested_by="hr", role="admin", start_date=date(2024, 1, 1), interest_rate="0"
    )
    loans.sweep_overdue(session, date(2024, 3, 1))
    ln = loans.record_payment(session, ln.id, 1, payroll_ref="PR-2024-03")
    assert ln.installments[0].status == INSTALLMENT_PAID
    assert ln.installments[0].payroll_ref == "PR-2024-03"


def test_payroll_deductions_and_summary(session):
    ln = loans.apply_for_loan(
        session, "EMP-15", "1200", "x", 12, requested_by="hr", role="admin", start_date=date(2024, 1, 1), interest_rate="0"
    )
    loans.record_payment(session, ln.id, 1)
    loans.sweep_overdue(session, date(2024, 3, 10))

    ded = loans.payroll_deductions(session, "EMP-15")
    assert len(ded) == 1
    assert ded[0]["installment_number"] == 2
    assert ded[0]["amount"] == Decimal("100.00")
    assert ded[0]["status"] == INSTALLMENT_OVERDUE

    out = loans.employee_loan_summary(session, "EMP-15")
    assert out["status_counts"][LOAN_ACTIVE] == 1
    assert out["total_borrowed"] == Decimal("1200.00")
    assert out["outstanding_amount"] == Decimal("1100.00")
    assert [o["installment_number"] for o in out["overdue_installments"]] == [2]
    assert out["overdue_amount"] == Decimal("100.00")

    assert loans.payroll_deductions(session, "nobody") == []


def test_sweep_once_uses_its_own_session(session, session_factory, monkeypatch):
    from station_ledger.services import loan_sweep

    ln = loans.apply_for_loan(
        session, "EMP-16", "1200", "x", 12, requested_by="hr", role="admin", start_date=date(2024, 1, 1)
    )
    monkeypatch.setattr(loan_sweep, "SessionLocal", session_factory)

    assert loan_sweep.sweep_once(date(2024, 2, 2)) == 1
    session.expire_all()
    assert loans.get_loan(session, ln.id).installments[0].status == INSTALLMENT_OVERDUE
