"""
Payroll Service Layer

Business logic for payroll runs and payslips. Routers stay focused on
HTTP request/response handling and delegate everything here.

Architecture:
- Router -> Service (this module) -> Calculator / Assembler / Renderer -> Models
- Per-employee payslip builds are independent: a failure is recorded
  against the run instead of aborting the whole batch
"""
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from payroll_app.core.config import settings
from payroll_app.core.exceptions import (
    AppException,
    DuplicateRunError,
    InvalidTransitionError,
    NotFoundError,
    PartialRunFailure,
    PersistenceError,
)
from payroll_app.models.employee import Employee, EmployeeStatus
from payroll_app.models.payroll_run import ACTIVE_RUN_STATUSES, PayrollRun, PayrollRunStatus
from payroll_app.models.payslip import PAYSLIP_TRANSITIONS, Payslip, PayslipDeduction, PayslipStatus
from payroll_app.services.deduction_calculator import (
    DeductionLine,
    ZERO,
    calculate_deductions,
    rules_from_entries,
    to_money,
)
from payroll_app.services.payslip_assembler import (
    AssembledPayslip,
    EmployeeSnapshot,
    PayPeriod,
    assemble_payslip,
)
from payroll_app.services import payslip_renderer
from payroll_app.services.base import commit_or_raise

logger = logging.getLogger(__name__)

# Payslips that count towards paid-out totals
SETTLED_PAYSLIP_STATUSES = (PayslipStatus.PROCESSED.value, PayslipStatus.PAID.value)


def _money(value: Any) -> Decimal:
    if value is None:
        return ZERO
    return to_money(value if isinstance(value, Decimal) else Decimal(str(value)))


# ============================================================================
# PAYSLIP BUILDING
# ============================================================================

def snapshot_employee(employee: Employee) -> EmployeeSnapshot:
    return EmployeeSnapshot(
        employee_id=employee.id,
        name=employee.full_name,
        department=employee.department,
        position=employee.position,
    )


def build_employee_payslip(employee: Employee, period: PayPeriod) -> AssembledPayslip:
    """Run one employee through the deduction calculator and the assembler."""
    gross = employee.salary if employee.salary is not None else ZERO
    rules = rules_from_entries(employee.deductions, period.start, period.end)
    breakdown = calculate_deductions(gross, rules)
    return assemble_payslip(snapshot_employee(employee), period, gross, breakdown)


def _persist_payslip(db: Session, run: PayrollRun, assembled: AssembledPayslip) -> Payslip:
    payslip = Payslip(
        employee_id=assembled.employee.employee_id,
        payroll_run_id=run.id,
        employee_name=assembled.employee.name,
        department=assembled.employee.department,
        position=assembled.employee.position,
        gross_amount=assembled.gross_amount,
        total_deductions=assembled.total_deductions,
        net_amount=assembled.net_amount,
        deductions_exceed_gross=assembled.deductions_exceed_gross,
        status=assembled.status,
    )
    payslip.lines = [
        PayslipDeduction(
            position=index,
            name=line.name,
            deduction_type=line.deduction_type,
            amount=line.amount,
        )
        for index, line in enumerate(assembled.deductions)
    ]
    db.add(payslip)
    db.flush()
    return payslip


# ============================================================================
# PAYROLL RUNS
# ============================================================================

def find_active_run(db: Session, period: PayPeriod) -> Optional[PayrollRun]:
    return db.query(PayrollRun).filter(
        PayrollRun.month == period.month,
        PayrollRun.year == period.year,
        PayrollRun.status.in_(ACTIVE_RUN_STATUSES)
    ).first()


def start_run(db: Session, month: int, year: int) -> Dict[str, Any]:
    """
    Process payroll for every active employee for the given period.

    Transitions: pending -> processing -> completed | failed.
    A run only fails when every employee's payslip failed; otherwise it
    completes and lists the skipped employees in its metadata.

    Raises:
        InvalidInputError: month/year out of range
        DuplicateRunError: a pending, processing or completed run exists
            (abandoned pending or processing runs are failed and replaced)
        PersistenceError: the run itself could not be written
    """
    period = PayPeriod.of(month, year)

    existing = find_active_run(db, period)
    if existing is not None and is_stale(existing):
        logger.warning(
            f"Payroll run {existing.id} stuck in {existing.status}, marking it failed",
            extra={"run_id": existing.id}
        )
        _mark_run_failed(db, existing.id)
        existing = None
    if existing is not None:
        raise DuplicateRunError(period.month, period.year)

    run = PayrollRun(
        month=period.month,
        year=period.year,
        period_start=period.start,
        period_end=period.end,
        status=PayrollRunStatus.PENDING.value,
    )
    db.add(run)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against a concurrent request for the same period
        db.rollback()
        raise DuplicateRunError(period.month, period.year) from None
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Failed to create payroll run", details={"period": period.label}) from e
    db.refresh(run)

    run.status = PayrollRunStatus.PROCESSING.value
    try:
        commit_or_raise(db, "start payroll run", run_id=run.id)
    except PersistenceError:
        _mark_run_failed(db, run.id)
        raise
    logger.info(f"Payroll run {run.id} processing for {period.label}", extra={"run_id": run.id})

    try:
        employees = (
            db.query(Employee)
            .options(selectinload(Employee.deductions))
            .filter(Employee.status == EmployeeStatus.ACTIVE.value)
            .order_by(Employee.id)
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not load employees for run {run.id}: {e}", extra={"run_id": run.id})
        _mark_run_failed(db, run.id)
        raise PersistenceError("Failed to load employees for payroll run", details={"run_id": run.id}) from e

    built: List[AssembledPayslip] = []
    skipped: List[Dict[str, Any]] = []

    for employee in employees:
        try:
            assembled = build_employee_payslip(employee, period)
            with db.begin_nested():
                _persist_payslip(db, run, assembled)
            built.append(assembled)
        except AppException as e:
            logger.warning(
                f"Skipping employee {employee.id} in run {run.id}: {e.message}",
                extra={"run_id": run.id, "employee_id": employee.id, "code": e.error_code}
            )
            skipped.append({"employee_id": employee.id, "reason": e.message, "code": e.error_code})
        except SQLAlchemyError as e:
            failure = PersistenceError(
                f"Failed to save payslip for employee {employee.id}",
                details={"employee_id": employee.id}
            )
            logger.error(
                f"{failure.message} in run {run.id}: {e}",
                extra={"run_id": run.id, "employee_id": employee.id}
            )
            skipped.append({"employee_id": employee.id, "reason": failure.message, "code": failure.error_code})

    run.skipped_employees = skipped
    if employees and not built:
        run.status = PayrollRunStatus.FAILED.value
        logger.error(f"Payroll run {run.id} failed: no payslip could be built", extra={"run_id": run.id})
    else:
        run.status = PayrollRunStatus.COMPLETED.value
        run.completed_at = datetime.now(timezone.utc)
        run.total_employees = len(built)
        run.total_gross_amount = _money(sum((p.gross_amount for p in built), ZERO))
        run.total_deductions = _money(sum((p.total_deductions for p in built), ZERO))
        run.total_net_amount = _money(sum((p.net_amount for p in built), ZERO))
        if skipped:
            partial = PartialRunFailure(run.id, skipped)
            logger.warning(partial.message, extra={"run_id": run.id, "skipped": partial.skipped_employee_ids})

    try:
        commit_or_raise(db, "complete payroll run", run_id=run.id)
    except PersistenceError:
        _mark_run_failed(db, run.id)
        raise

    logger.info(
        f"Payroll run {run.id} {run.status}",
        extra={"run_id": run.id, "payslips": len(built), "skipped": len(skipped)}
    )
    return get_run(db, run.id)


def is_stale(run: PayrollRun, now: Optional[datetime] = None) -> bool:
    """A pending or processing run older than the configured limit was abandoned mid-run."""
    if run.status not in (PayrollRunStatus.PENDING.value, PayrollRunStatus.PROCESSING.value):
        return False
    if run.created_at is None:
        return False
    started = run.created_at
    if started.tzinfo is None:
        # SQLite hands back naive UTC timestamps
        started = started.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return now - started > timedelta(minutes=settings.stale_run_minutes)


def _mark_run_failed(db: Session, run_id: int) -> None:
    run = db.get(PayrollRun, run_id)
    if run is None:
        return
    run.status = PayrollRunStatus.FAILED.value
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not mark payroll run {run_id} as failed: {e}", extra={"run_id": run_id})


def _derived_totals(db: Session, run_ids: List[int]) -> Dict[int, Dict[str, Any]]:
    """Run totals aggregated from persisted payslips."""
    if not run_ids:
        return {}
    rows = db.query(
        Payslip.payroll_run_id,
        func.count(Payslip.id),
        func.sum(Payslip.gross_amount),
        func.sum(Payslip.total_deductions),
        func.sum(Payslip.net_amount),
    ).filter(
        Payslip.payroll_run_id.in_(run_ids)
    ).group_by(Payslip.payroll_run_id).all()

    return {
        run_id: {
            "total_employees": count,
            "total_gross_amount": _money(gross),
            "total_deductions": _money(deductions),
            "total_net_amount": _money(net),
        }
        for run_id, count, gross, deductions, net in rows
    }


def _run_to_dict(run: PayrollRun, totals: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    totals = totals or {
        "total_employees": 0,
        "total_gross_amount": ZERO,
        "total_deductions": ZERO,
        "total_net_amount": ZERO,
    }
    return {
        "id": run.id,
        "month": run.month,
        "year": run.year,
        "period": PayPeriod(run.month, run.year).label,
        "status": run.status,
        "total_employees": totals["total_employees"],
        "total_gross_amount": totals["total_gross_amount"],
        "total_deductions": totals["total_deductions"],
        "total_net_amount": totals["total_net_amount"],
        "total_amount": totals["total_net_amount"],
        "skipped_employees": run.skipped_employees or [],
        "created_at": run.created_at,
        "completed_at": run.completed_at,
    }


def _get_run_or_404(db: Session, run_id: int) -> PayrollRun:
    run = db.get(PayrollRun, run_id)
    if run is None:
        raise NotFoundError("Payroll run", run_id)
    return run


def get_run(db: Session, run_id: int) -> Dict[str, Any]:
    run = _get_run_or_404(db, run_id)
    return _run_to_dict(run, _derived_totals(db, [run.id]).get(run.id))


def list_runs(db: Session) -> List[Dict[str, Any]]:
    runs = db.query(PayrollRun).order_by(PayrollRun.created_at.desc(), PayrollRun.id.desc()).all()
    totals = _derived_totals(db, [r.id for r in runs])
    return [_run_to_dict(run, totals.get(run.id)) for run in runs]


def get_run_payslips(db: Session, run_id: int) -> List[Payslip]:
    _get_run_or_404(db, run_id)
    return (
        db.query(Payslip)
        .options(selectinload(Payslip.lines), selectinload(Payslip.payroll_run))
        .filter(Payslip.payroll_run_id == run_id)
        .order_by(Payslip.employee_id)
        .all()
    )


# ============================================================================
# PAYSLIPS
# ============================================================================

def payslip_to_document(payslip: Payslip) -> AssembledPayslip:
    """Rebuild the assembled form of a stored payslip for rendering."""
    run = payslip.payroll_run
    return AssembledPayslip(
        employee=EmployeeSnapshot(
            employee_id=payslip.employee_id,
            name=payslip.employee_name,
            department=payslip.department,
            position=payslip.position,
        ),
        period=PayPeriod(run.month, run.year) if run else None,
        gross_amount=payslip.gross_amount,
        deductions=tuple(
            DeductionLine(name=line.name, amount=line.amount, deduction_type=line.deduction_type)
            for line in payslip.lines
        ),
        total_deductions=payslip.total_deductions,
        net_amount=payslip.net_amount,
        deductions_exceed_gross=payslip.deductions_exceed_gross,
        status=payslip.status,
        payslip_id=payslip.id,
        paid_on=payslip.paid_on,
    )


def _payslip_to_dict(payslip: Payslip) -> Dict[str, Any]:
    """Convert Payslip model to dict representation."""
    run = payslip.payroll_run
    return {
        "id": payslip.id,
        "employee_id": payslip.employee_id,
        "employee_name": payslip.employee_name,
        "department": payslip.department,
        "position": payslip.position,
        "payroll_run_id": payslip.payroll_run_id,
        "month": run.month,
        "year": run.year,
        "period": PayPeriod(run.month, run.year).label,
        "gross_amount": payslip.gross_amount,
        "total_deductions": payslip.total_deductions,
        "net_amount": payslip.net_amount,
        "deductions": [
            {"name": line.name, "deduction_type": line.deduction_type, "amount": line.amount}
            for line in payslip.lines
        ],
        "deductions_exceed_gross": payslip.deductions_exceed_gross,
        "status": payslip.status,
        "paid_on": payslip.paid_on,
        "created_at": payslip.created_at,
    }


def get_payslip(db: Session, payslip_id: int) -> Payslip:
    payslip = db.get(Payslip, payslip_id)
    if payslip is None:
        raise NotFoundError("Payslip", payslip_id)
    return payslip


def get_payslip_details(db: Session, payslip_id: int) -> Dict[str, Any]:
    return _payslip_to_dict(get_payslip(db, payslip_id))


def list_employee_payslips(db: Session, employee_id: int) -> List[Dict[str, Any]]:
    payslips = (
        db.query(Payslip)
        .join(PayrollRun)
        .filter(Payslip.employee_id == employee_id)
        .order_by(PayrollRun.year.desc(), PayrollRun.month.desc())
        .all()
    )
    return [_payslip_to_dict(p) for p in payslips]


def list_recent_payslips(db: Session, limit: int) -> List[Dict[str, Any]]:
    payslips = db.query(Payslip).order_by(Payslip.created_at.desc(), Payslip.id.desc()).limit(limit).all()
    return [_payslip_to_dict(p) for p in payslips]


def mark_payslip_paid(db: Session, payslip_id: int, paid_on: Optional[datetime] = None) -> Dict[str, Any]:
    """Move a processed payslip to paid. Figures are never touched."""
    payslip = get_payslip(db, payslip_id)
    target = PayslipStatus.PAID.value
    if target not in PAYSLIP_TRANSITIONS.get(payslip.status, set()):
        raise InvalidTransitionError(payslip.status, target)

    payslip.status = target
    payslip.paid_on = paid_on or datetime.now(timezone.utc)
    commit_or_raise(db, "mark payslip paid", payslip_id=payslip_id)
    db.refresh(payslip)
    logger.info(f"Payslip {payslip_id} marked paid", extra={"payslip_id": payslip_id})
    return _payslip_to_dict(payslip)


def get_monthly_total(db: Session, today: Optional[date] = None) -> Decimal:
    """Net pay of settled payslips in completed runs for the current month."""
    today = today or date.today()
    total = db.query(func.sum(Payslip.net_amount)).join(PayrollRun).filter(
        PayrollRun.month == today.month,
        PayrollRun.year == today.year,
        PayrollRun.status == PayrollRunStatus.COMPLETED.value,
        Payslip.status.in_(SETTLED_PAYSLIP_STATUSES)
    ).scalar()
    return _money(total)


def get_ytd_earnings(db: Session, employee_id: int, today: Optional[date] = None) -> Decimal:
    """Year-to-date net pay for one employee."""
    today = today or date.today()
    total = db.query(func.sum(Payslip.net_amount)).join(PayrollRun).filter(
        Payslip.employee_id == employee_id,
        PayrollRun.year == today.year,
        PayrollRun.month <= today.month,
        Payslip.status.in_(SETTLED_PAYSLIP_STATUSES)
    ).scalar()
    return _money(total)


# ============================================================================
# DOCUMENTS
# ============================================================================

def generate_payslip_pdf(db: Session, payslip_id: int) -> bytes:
    payslip = get_payslip(db, payslip_id)
    return payslip_renderer.render_payslip(payslip_to_document(payslip))


def generate_run_payslips_pdf(db: Session, run_id: int) -> bytes:
    """All payslips of a run as one document, one page each, ordered by employee id."""
    payslips = get_run_payslips(db, run_id)
    if not payslips:
        raise NotFoundError("Payslips for payroll run", run_id)
    return payslip_renderer.render_payslips([payslip_to_document(p) for p in payslips])


def generate_run_report_pdf(db: Session, run_id: int) -> bytes:
    summary = get_run(db, run_id)
    payslips = get_run_payslips(db, run_id)
    return payslip_renderer.render_run_report(summary, [payslip_to_document(p) for p in payslips])
