from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from station_ledger.api.deps import current_user, db, require_loan_approver
from station_ledger.core.config import settings
from station_ledger.schemas.common import Envelope, Page, ok
from station_ledger.schemas.loan import (
    DeductionOut,
    EmployeeLoanSummaryOut,
    LoanApply,
    LoanOut,
    LoanReschedule,
    PaymentIn,
    ReasonIn,
    ScheduleIn,
    ScheduleOut,
    SweepOut,
)
from station_ledger.services import loans
from station_ledger.services.audit import log_event
from station_ledger.utils.dates import today_local

router = APIRouter(prefix="/loans", tags=["loans"])


def _loan_details(ln) -> dict:
    return {
        "loan_code": ln.loan_code,
        "employee_id": ln.employee_id,
        "status": ln.status,
        "remaining_amount": str(ln.remaining_amount),
    }


@router.post("/schedule", response_model=Envelope[ScheduleOut])
def preview_schedule(body: ScheduleIn, u=Depends(current_user)):
    rate = settings.loan_interest_rate_percent if body.interest_rate is None else body.interest_rate
    sched = loans.build_schedule(body.principal, body.duration_months, rate, body.start_date)
    return ok(ScheduleOut.model_validate(sched))


@router.get("", response_model=Envelope[Page[LoanOut]])
def list_loans(
    s: Session = Depends(db),
    u=Depends(current_user),
    employee_id: str | None = Query(default=None),
    status: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    total, rows = loans.list_loans(s, employee_id=employee_id, status=status, limit=limit, offset=offset)
    return ok({"total": total, "items": rows})


@router.post("", response_model=Envelope[LoanOut])
def apply_for_loan(body: LoanApply, s: Session = Depends(db), u=Depends(current_user)):
    ln = loans.apply_for_loan(
        s,
        body.employee_id,
        body.amount,
        body.purpose,
        body.duration_months,
        requested_by=u.get("sub"),
        role=u.get("role"),
        start_date=body.start_date,
        interest_rate=body.interest_rate,
    )
    log_event(s, u, action="loan.apply", entity_type="loan", entity_id=ln.id, details=_loan_details(ln))
    return ok(ln)


@router.post("/sweep-overdue", response_model=Envelope[SweepOut])
def sweep_overdue(
    s: Session = Depends(db),
    u=Depends(require_loan_approver),
    as_of: date | None = Query(default=None),
):
    day = as_of or today_local()
    n = loans.sweep_overdue(s, day)
    return ok({"as_of": day, "marked_overdue": n})


@router.get("/employees/{employee_id}/summary", response_model=Envelope[EmployeeLoanSummaryOut])
def employee_summary(employee_id: str, s: Session = Depends(db), u=Depends(current_user)):
    return ok(loans.employee_loan_summary(s, employee_id))


@router.get("/employees/{employee_id}/deductions", response_model=Envelope[list[DeductionOut]])
def payroll_deductions(employee_id: str, s: Session = Depends(db), u=Depends(current_user)):
    return ok(loans.payroll_deductions(s, employee_id))


@router.get("/{loan_id}", response_model=Envelope[LoanOut])
def get_loan(loan_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return ok(loans.get_loan(s, loan_id))


@router.post("/{loan_id}/approve", response_model=Envelope[LoanOut])
def approve_loan(loan_id: int, s: Session = Depends(db), u=Depends(require_loan_approver)):
    ln = loans.approve_loan(s, loan_id, u.get("sub"))
    log_event(s, u, action="loan.approve", entity_type="loan", entity_id=loan_id, details=_loan_details(ln))
    return ok(ln)


@router.post("/{loan_id}/reject", response_model=Envelope[LoanOut])
def reject_loan(loan_id: int, body: ReasonIn, s: Session = Depends(db), u=Depends(require_loan_approver)):
    ln = loans.reject_loan(s, loan_id, u.get("sub"), body.reason or "")
    log_event(s, u, action="loan.reject", entity_type="loan", entity_id=loan_id, details={"reason": ln.rejection_reason})
    return ok(ln)


@router.post("/{loan_id}/cancel", response_model=Envelope[LoanOut])
def cancel_loan(loan_id: int, body: ReasonIn, s: Session = Depends(db), u=Depends(require_loan_approver)):
    ln = loans.cancel_loan(s, loan_id, u.get("sub"), body.reason)
    log_event(s, u, action="loan.cancel", entity_type="loan", entity_id=loan_id, details=_loan_details(ln))
    return ok(ln)


@router.put("/{loan_id}/schedule", response_model=Envelope[LoanOut])
def reschedule_loan(loan_id: int, body: LoanReschedule, s: Session = Depends(db), u=Depends(require_loan_approver)):
    ln = loans.reschedule_loan(s, loan_id, **body.model_dump(exclude_unset=True))
    log_event(s, u, action="loan.reschedule", entity_type="loan", entity_id=loan_id, details=_loan_details(ln))
    return ok(ln)


@router.post("/{loan_id}/installments/{number}/pay", response_model=Envelope[LoanOut])
def record_payment(
    loan_id: int, number: int, body: PaymentIn, s: Session = Depends(db), u=Depends(require_loan_approver)
):
    ln = loans.record_payment(s, loan_id, number, paid_on=body.paid_on, payroll_ref=body.payroll_ref, notes=body.notes)
    details = _loan_details(ln)
    details["installment"] = number
    log_event(s, u, action="loan.payment", entity_type="loan", entity_id=loan_id, details=details)
    return ok(ln)
