from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from station_ledger.core.config import role_list, settings
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
    TERMINAL_STATUSES,
    Loan,
    LoanInstallment,
)
from station_ledger.services.locks import employee_key, for_update, loan_key, run_unit
from station_ledger.utils.codes import generate_code
from station_ledger.utils.dates import add_months, today_local
from station_ledger.utils.money import ZERO, d2, money, to_dec

log = logging.getLogger(__name__)


@dataclass
class ScheduleRow:
    number: int
    due_date: date
    amount: Decimal


@dataclass
class Schedule:
    principal: Decimal
    interest_rate: Decimal
    duration_months: int
    installment_amount: Decimal
    total_repayable: Decimal
    rows: list[ScheduleRow]

    @property
    def end_date(self) -> date:
        return self.rows[-1].due_date


def is_approver(role: str | None) -> bool:
    return (role or "").strip().lower() in role_list(settings.loan_approver_roles)


def build_schedule(principal, duration_months: int, interest_rate, start_date: date) -> Schedule:
    """Flat-interest schedule: one installment per month starting a month after `start_date`.

    Installments are rounded to cents; the last one absorbs the rounding
    remainder so the rows always add up to the total repayable.
    """
    p = money(principal)
    rate = to_dec(interest_rate)
    n = int(duration_months)
    if p <= 0:
        raise InvalidAmount("principal must be greater than zero", amount=str(principal))
    if n < 1:
        raise InvalidAmount("duration must be at least one month", duration_months=duration_months)
    if rate < 0:
        raise InvalidAmount("interest rate cannot be negative", interest_rate=str(interest_rate))

    total = d2(p * (Decimal("1") + rate / Decimal("100")))
    per = d2(total / n)

    rows: list[ScheduleRow] = []
    allocated = ZERO
    for i in range(n):
        amt = per if i < n - 1 else d2(total - allocated)
        allocated += amt
        rows.append(ScheduleRow(number=i + 1, due_date=add_months(start_date, i + 1), amount=amt))

    return Schedule(
        principal=p,
        interest_rate=rate,
        duration_months=n,
        installment_amount=per,
        total_repayable=total,
        rows=rows,
    )


def _fill(loan: Loan, sched: Schedule) -> None:
    loan.amount = sched.principal
    loan.interest_rate = sched.interest_rate
    loan.duration_months = sched.duration_months
    loan.installment_amount = sched.installment_amount
    loan.total_repayable = sched.total_repayable
    loan.remaining_amount = sched.total_repayable
    loan.end_date = sched.end_date
    loan.installments = [
        LoanInstallment(number=r.number, due_date=r.due_date, amount=r.amount, status=INSTALLMENT_PENDING)
        for r in sched.rows
    ]


def get_loan(s: Session, loan_id: int) -> Loan:
    ln = s.get(Loan, loan_id)
    if ln is None:
        raise LoanNotFound(f"loan {loan_id} not found", loan_id=loan_id)
    return ln


def _locked(s: Session, loan_id: int) -> Loan:
    ln = for_update(s, Loan, Loan.id == loan_id)
    if ln is None:
        raise LoanNotFound(f"loan {loan_id} not found", loan_id=loan_id)
    return ln


def list_loans(
    s: Session,
    *,
    employee_id: str | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[Loan]]:
    conds = []
    if employee_id:
        conds.append(Loan.employee_id == employee_id)
    if status:
        conds.append(Loan.status == status)
    total = s.execute(select(func.count(Loan.id)).where(*conds)).scalar_one()
    rows = (
        s.execute(select(Loan).where(*conds).order_by(Loan.created_at.desc(), Loan.id.desc()).limit(limit).offset(offset))
        .scalars()
        .all()
    )
    return int(total), list(rows)


def apply_for_loan(
    s: Session,
    employee_id: str,
    amount,
    purpose: str,
    duration_months: int,
    *,
    requested_by: str,
    role: str | None = None,
    start_date: date | None = None,
    interest_rate=None,
) -> Loan:
    rate = settings.loan_interest_rate_percent if interest_rate is None else interest_rate
    start = start_date or today_local()
    sched = build_schedule(amount, duration_months, rate, start)
    auto = is_approver(role)

    def _do() -> Loan:
        open_loans = s.execute(
            select(func.count(Loan.id)).where(
                Loan.employee_id == employee_id,
                Loan.status.in_((LOAN_PENDING, LOAN_ACTIVE)),
            )
        ).scalar_one()
        if open_loans >= settings.loan_max_active_per_employee:
            raise InvalidState(
                "employee already has an open loan",
                employee_id=employee_id,
                open_loans=open_loans,
            )

        ln = Loan(
            loan_code=generate_code("LN", start),
            employee_id=employee_id,
            purpose=purpose,
            start_date=start,
            status=LOAN_PENDING,
            created_by=requested_by,
        )
        _fill(ln, sched)
        if auto:
            ln.status = LOAN_ACTIVE
            ln.approved_by = requested_by
            ln.approval_date = today_local()
        s.add(ln)
        s.flush()
        return ln

    ln = run_unit(s, [employee_key(employee_id)], _do, label="loan_apply")
    log.info(
        "loan created",
        extra={
            "loan_id": ln.id,
            "employee_id": employee_id,
            "amount": str(sched.principal),
            "total_repayable": str(sched.total_repayable),
            "status": ln.status,
        },
    )
    return ln


def _transition(s: Session, loan_id: int, allowed: tuple[str, ...], label: str, apply) -> Loan:
    def _do() -> Loan:
        ln = _locked(s, loan_id)
        if ln.status not in allowed:
            raise InvalidState(f"cannot {label} a {ln.status} loan", loan_id=loan_id, status=ln.status)
        apply(ln)
        return ln

    ln = run_unit(s, [loan_key(loan_id)], _do, label=f"loan_{label}")
    log.info("loan status changed", extra={"loan_id": loan_id, "action": label, "status": ln.status})
    return ln


def approve_loan(s: Session, loan_id: int, approved_by: str) -> Loan:
    def _apply(ln: Loan) -> None:
        ln.status = LOAN_ACTIVE
        ln.approved_by = approved_by
        ln.approval_date = today_local()

    return _transition(s, loan_id, (LOAN_PENDING,), "approve", _apply)


def reject_loan(s: Session, loan_id: int, rejected_by: str, reason: str) -> Loan:
    if not (reason or "").strip():
        raise InvalidState("a rejection reason is required", loan_id=loan_id)

    def _apply(ln: Loan) -> None:
        ln.status = LOAN_REJECTED
        ln.approved_by = rejected_by
        ln.rejection_reason = reason.strip()

    return _transition(s, loan_id, (LOAN_PENDING,), "reject", _apply)


def cancel_loan(s: Session, loan_id: int, cancelled_by: str, reason: str | None = None) -> Loan:
    def _apply(ln: Loan) -> None:
        ln.status = LOAN_CANCELLED
        if reason:
            ln.rejection_reason = reason.strip()
        log.info("loan cancelled", extra={"loan_id": ln.id, "cancelled_by": cancelled_by})

    return _transition(s, loan_id, (LOAN_PENDING, LOAN_ACTIVE), "cancel", _apply)


def reschedule_loan(
    s: Session,
    loan_id: int,
    *,
    amount=None,
    duration_months: int | None = None,
    interest_rate=None,
    start_date: date | None = None,
    purpose: str | None = None,
) -> Loan:
    def _do() -> Loan:
        ln = _locked(s, loan_id)
        if ln.status != LOAN_PENDING:
            raise InvalidState("only pending loans can be rescheduled", loan_id=loan_id, status=ln.status)
        start = start_date or ln.start_date
        sched = build_schedule(
            ln.amount if amount is None else amount,
            ln.duration_months if duration_months is None else duration_months,
            ln.interest_rate if interest_rate is None else interest_rate,
            start,
        )
        # old rows must be gone before new numbers reuse (loan_id, number)
        ln.installments.clear()
        s.flush()
        ln.start_date = start
        if purpose:
            ln.purpose = purpose
        _fill(ln, sched)
        s.flush()
        return ln

    ln = run_unit(s, [loan_key(loan_id)], _do, label="loan_reschedule")
    log.info("loan rescheduled", extra={"loan_id": loan_id, "total_repayable": str(ln.total_repayable)})
    return ln


def record_payment(
    s: Session,
    loan_id: int,
    installment_number: int,
    *,
    paid_on: date | None = None,
    payroll_ref: str | None = None,
    notes: str | None = None,
) -> Loan:
    def _do() -> Loan:
        ln = _locked(s, loan_id)
        inst = next((i for i in ln.installments if i.number == installment_number), None)
        if inst is None:
            raise InstallmentNotFound(
                f"loan {loan_id} has no installment {installment_number}",
                loan_id=loan_id,
                installment=installment_number,
            )
        if inst.status == INSTALLMENT_PAID:
            raise AlreadyPaid(
                f"installment {installment_number} already paid",
                loan_id=loan_id,
                installment=installment_number,
            )
        if ln.status != LOAN_ACTIVE:
            raise InvalidState(f"cannot take payments on a {ln.status} loan", loan_id=loan_id, status=ln.status)

        day = paid_on or today_local()
        inst.status = INSTALLMENT_PAID
        inst.paid_date = day
        inst.payroll_ref = payroll_ref
        if notes:
            inst.notes = notes

        remaining = d2(to_dec(ln.remaining_amount) - to_dec(inst.amount))
        ln.remaining_amount = remaining if remaining > 0 else ZERO
        if remaining <= 0:
            ln.status = LOAN_COMPLETED
            ln.end_date = day
        return ln

    ln = run_unit(s, [loan_key(loan_id)], _do, label="loan_payment")
    log.info(
        "loan installment paid",
        extra={
            "loan_id": loan_id,
            "installment": installment_number,
            "remaining_amount": str(ln.remaining_amount),
            "status": ln.status,
        },
    )
    return ln


def sweep_overdue(s: Session, as_of: date | None = None) -> int:
    """Mark pending installments past their due date as overdue. Safe to repeat."""
    day = as_of or today_local()
    live = select(Loan.id).where(Loan.status.not_in(TERMINAL_STATUSES))
    res = s.execute(
        update(LoanInstallment)
        .where(
            LoanInstallment.status == INSTALLMENT_PENDING,
            LoanInstallment.due_date < day,
            LoanInstallment.loan_id.in_(live),
        )
        .values(status=INSTALLMENT_OVERDUE)
        .execution_options(synchronize_session=False)
    )
    s.commit()
    n = res.rowcount or 0
    if n:
        log.info("installments marked overdue", extra={"as_of": day.isoformat(), "count": n})
    return n


def payroll_deductions(s: Session, employee_id: str) -> list[dict]:
    loans = (
        s.execute(
            select(Loan)
            .where(Loan.employee_id == employee_id, Loan.status == LOAN_ACTIVE)
            .order_by(Loan.start_date.asc(), Loan.id.asc())
        )
        .scalars()
        .all()
    )
    out = []
    for ln in loans:
        nxt = next((i for i in ln.installments if i.status != INSTALLMENT_PAID), None)
        if nxt is None:
            continue
        out.append(
            {
                "loan_id": ln.id,
                "loan_code": ln.loan_code,
                "installment_number": nxt.number,
                "due_date": nxt.due_date,
                "amount": to_dec(nxt.amount),
                "status": nxt.status,
            }
        )
    return out


def employee_loan_summary(s: Session, employee_id: str) -> dict:
    loans = s.execute(select(Loan).where(Loan.employee_id == employee_id)).scalars().all()

    counts = {st: 0 for st in (LOAN_PENDING, LOAN_ACTIVE, LOAN_COMPLETED, LOAN_REJECTED, LOAN_CANCELLED)}
    borrowed = ZERO
    outstanding = ZERO
    overdue = []
    for ln in loans:
        counts[ln.status] = counts.get(ln.status, 0) + 1
        if ln.status in (LOAN_ACTIVE, LOAN_COMPLETED):
            borrowed += to_dec(ln.amount)
        if ln.status == LOAN_ACTIVE:
            outstanding += to_dec(ln.remaining_amount)
            for i in ln.installments:
                if i.status == INSTALLMENT_OVERDUE:
                    overdue.append(
                        {
                            "loan_id": ln.id,
                            "installment_number": i.number,
                            "due_date": i.due_date,
                            "amount": to_dec(i.amount),
                        }
                    )

    return {
        "employee_id": employee_id,
        "loan_count": len(loans),
        "status_counts": counts,
        "total_borrowed": d2(borrowed),
        "outstanding_amount": d2(outstanding),
        "overdue_installments": overdue,
        "overdue_amount": d2(sum((o["amount"] for o in overdue), ZERO)),
    }
