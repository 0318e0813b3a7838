import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from sqlalchemy.exc import OperationalError

from payroll_app.core.exceptions import (
    DuplicateRunError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
)
from payroll_app.models.payroll_run import PayrollRun
from payroll_app.models.payslip import Payslip
from payroll_app.services import payroll_service


def test_run_builds_payslips_for_active_employees(db_session, make_employee, standard_deductions):
    alice = make_employee(salary="5000.00", deductions=standard_deductions)
    bob = make_employee(salary="3000.00")
    make_employee(salary="9000.00", status="inactive")

    run = payroll_service.start_run(db_session, 3, 2024)

    assert run["status"] == "completed"
    assert run["period"] == "March 2024"
    assert run["total_employees"] == 2
    assert run["total_gross_amount"] == Decimal("8000.00")
    assert run["total_deductions"] == Decimal("800.00")
    assert run["total_net_amount"] == Decimal("7200.00")
    assert run["skipped_employees"] == []
    assert run["completed_at"] is not None

    payslips = payroll_service.get_run_payslips(db_session, run["id"])
    assert [p.employee_id for p in payslips] == [alice.id, bob.id]
    assert payslips[0].net_amount == Decimal("4200.00")
    assert [line.name for line in payslips[0].lines] == ["Tax", "Health Insurance"]
    assert payslips[0].employee_name == alice.full_name
    assert all(p.status == "processed" for p in payslips)


def test_duplicate_run_is_rejected(db_session, make_employee):
    make_employee()
    payroll_service.start_run(db_session, 1, 2024)

    with pytest.raises(DuplicateRunError) as exc:
        payroll_service.start_run(db_session, 1, 2024)
    assert exc.value.status_code == 409
    assert db_session.query(PayrollRun).filter_by(month=1, year=2024).count() == 1


def test_invalid_period_is_rejected(db_session):
    with pytest.raises(InvalidInputError):
        payroll_service.start_run(db_session, 13, 2024)
    assert db_session.query(PayrollRun).count() == 0


def test_one_failing_employee_is_skipped(db_session, make_employee):
    first = make_employee(salary="1000.00")
    broken = make_employee(salary="-50.00")
    third = make_employee(salary="2000.00")

    run = payroll_service.start_run(db_session, 4, 2024)

    assert run["status"] == "completed"
    assert run["total_employees"] == 2
    assert [s["employee_id"] for s in run["skipped_employees"]] == [broken.id]
    assert run["skipped_employees"][0]["code"] == "INVALID_INPUT"
    payslips = payroll_service.get_run_payslips(db_session, run["id"])
    assert [p.employee_id for p in payslips] == [first.id, third.id]


def test_all_employees_failing_fails_the_run(db_session, make_employee):
    make_employee(salary="-1.00")
    make_employee(salary="-2.00")

    run = payroll_service.start_run(db_session, 5, 2024)

    assert run["status"] == "failed"
    assert len(run["skipped_employees"]) == 2
    assert db_session.query(Payslip).filter(Payslip.payroll_run_id == run["id"]).count() == 0


def test_failed_run_does_not_block_a_retry(db_session, make_employee):
    employee = make_employee(salary="-1.00")
    failed = payroll_service.start_run(db_session, 6, 2024)
    assert failed["status"] == "failed"

    employee.salary = Decimal("1000.00")
    db_session.commit()

    retry = payroll_service.start_run(db_session, 6, 2024)
    assert retry["status"] == "completed"
    assert retry["id"] != failed["id"]


def test_persistence_failure_skips_employee(db_session, make_employee, monkeypatch):
    good = make_employee(salary="1000.00")
    unlucky = make_employee(salary="2000.00")
    original = payroll_service._persist_payslip

    def flaky_persist(db, run, assembled):
        if assembled.employee.employee_id == unlucky.id:
            raise OperationalError("INSERT INTO payslips", {}, Exception("disk I/O error"))
        return original(db, run, assembled)

    monkeypatch.setattr(payroll_service, "_persist_payslip", flaky_persist)

    run = payroll_service.start_run(db_session, 7, 2024)

    assert run["status"] == "completed"
    assert run["skipped_employees"][0]["employee_id"] == unlucky.id
    assert run["skipped_employees"][0]["code"] == "PERSISTENCE_ERROR"
    assert [p.employee_id for p in payroll_service.get_run_payslips(db_session, run["id"])] == [good.id]


def test_run_with_no_active_employees_completes_empty(db_session):
    run = payroll_service.start_run(db_session, 8, 2024)
    assert run["status"] == "completed"
    assert run["total_employees"] == 0
    assert run["total_net_amount"] == Decimal("0.00")


def test_deductions_outside_validity_window_are_ignored(db_session, make_employee):
    employee = make_employee(salary="1000.00", deductions=[
        {"deduction_type": "other", "name": "Loan", "value": Decimal("100"), "end_date": date(2024, 1, 31)},
        {"deduction_type": "pension", "value": Decimal("25"), "start_date": date(2024, 2, 15)},
    ])

    run = payroll_service.start_run(db_session, 2, 2024)

    [payslip] = payroll_service.get_run_payslips(db_session, run["id"])
    assert payslip.employee_id == employee.id
    assert [line.name for line in payslip.lines] == ["Pension"]
    assert payslip.net_amount == Decimal("975.00")


def test_deductions_exceeding_gross_are_flagged(db_session, make_employee):
    make_employee(salary="100.00", deductions=[{"deduction_type": "other", "value": Decimal("150")}])

    run = payroll_service.start_run(db_session, 9, 2024)

    [payslip] = payroll_service.get_run_payslips(db_session, run["id"])
    assert payslip.net_amount == Decimal("0.00")
    assert payslip.deductions_exceed_gross is True


def test_payslip_snapshot_survives_employee_changes(db_session, make_employee):
    employee = make_employee(first_name="Jane", last_name="Doe", department="Finance")
    run = payroll_service.start_run(db_session, 10, 2024)

    employee.department = "Operations"
    employee.last_name = "Smith"
    db_session.commit()

    [payslip] = payroll_service.get_run_payslips(db_session, run["id"])
    details = payroll_service.get_payslip_details(db_session, payslip.id)
    assert details["employee_name"] == "Jane Doe"
    assert details["department"] == "Finance"


def test_list_runs_newest_first(db_session, make_employee):
    make_employee()
    first = payroll_service.start_run(db_session, 1, 2023)
    second = payroll_service.start_run(db_session, 2, 2023)

    runs = payroll_service.list_runs(db_session)

    assert [r["id"] for r in runs] == [second["id"], first["id"]]


def test_get_run_not_found(db_session):
    with pytest.raises(NotFoundError):
        payroll_service.get_run(db_session, 999)


def test_mark_payslip_paid_moves_forward_only(db_session, make_employee):
    make_employee(salary="1200.00")
    run = payroll_service.start_run(db_session, 11, 2024)
    [payslip] = payroll_service.get_run_payslips(db_session, run["id"])
    paid_on = datetime(2024, 11, 30, 12, 0, tzinfo=timezone.utc)

    paid = payroll_service.mark_payslip_paid(db_session, payslip.id, paid_on)

    assert paid["status"] == "paid"
    assert paid["paid_on"] is not None
    assert paid["net_amount"] == Decimal("1200.00")
    with pytest.raises(InvalidTransitionError):
        payroll_service.mark_payslip_paid(db_session, payslip.id)


def test_pending_payslip_cannot_be_paid(db_session, make_employee):
    make_employee()
    run = payroll_service.start_run(db_session, 12, 2024)
    [payslip] = payroll_service.get_run_payslips(db_session, run["id"])
    payslip.status = "pending"
    db_session.commit()

    with pytest.raises(InvalidTransitionError):
        payroll_service.mark_payslip_paid(db_session, payslip.id)


def test_monthly_total_counts_current_month_completed_runs(db_session, make_employee):
    make_employee(salary="1000.00")
    make_employee(salary="500.00", deductions=[{"deduction_type": "tax", "value": Decimal("50")}])
    payroll_service.start_run(db_session, 3, 2025)
    payroll_service.start_run(db_session, 2, 2025)

    assert payroll_service.get_monthly_total(db_session, today=date(2025, 3, 20)) == Decimal("1450.00")
    assert payroll_service.get_monthly_total(db_session, today=date(2025, 4, 1)) == Decimal("0.00")


def test_ytd_earnings_sum_the_year_so_far(db_session, make_employee):
    employee = make_employee(salary="2000.00", deductions=[{"deduction_type": "tax", "value": Decimal("200")}])
    for month in (1, 2, 3):
        payroll_service.start_run(db_session, month, 2025)
    payroll_service.start_run(db_session, 12, 2024)

    assert payroll_service.get_ytd_earnings(db_session, employee.id, today=date(2025, 2, 15)) == Decimal("3600.00")
    assert payroll_service.get_ytd_earnings(db_session, employee.id, today=date(2025, 6, 1)) == Decimal("5400.00")


def test_list_employee_payslips_newest_period_first(db_session, make_employee):
    employee = make_employee()
    other = make_employee()
    payroll_service.start_run(db_session, 1, 2025)
    payroll_service.start_run(db_session, 2, 2025)

    payslips = payroll_service.list_employee_payslips(db_session, employee.id)

    assert [(p["month"], p["year"]) for p in payslips] == [(2, 2025), (1, 2025)]
    assert all(p["employee_id"] == employee.id for p in payslips)
    assert len(payroll_service.list_employee_payslips(db_session, other.id)) == 2


def test_run_documents(db_session, make_employee):
    make_employee()
    make_employee()
    run = payroll_service.start_run(db_session, 6, 2025)

    assert payroll_service.generate_run_payslips_pdf(db_session, run["id"]).startswith(b"%PDF")
    assert payroll_service.generate_run_report_pdf(db_session, run["id"]).startswith(b"%PDF")


def test_run_payslips_pdf_requires_payslips(db_session):
    run = payroll_service.start_run(db_session, 7, 2025)
    with pytest.raises(NotFoundError):
        payroll_service.generate_run_payslips_pdf(db_session, run["id"])


def test_failed_processing_commit_marks_run_failed(db_session, make_employee, monkeypatch):
    make_employee(salary="1000.00")
    original = payroll_service.commit_or_raise
    calls = {"n": 0}

    def failing_once(db, action, **context):
        if action == "start payroll run" and calls["n"] == 0:
            calls["n"] += 1
            db.rollback()
            raise PersistenceError(f"Failed to {action}", details=context)
        return original(db, action, **context)

    monkeypatch.setattr(payroll_service, "commit_or_raise", failing_once)

    with pytest.raises(PersistenceError):
        payroll_service.start_run(db_session, 10, 2024)

    stuck = db_session.query(PayrollRun).filter_by(month=10, year=2024).one()
    assert stuck.status == "failed"

    retry = payroll_service.start_run(db_session, 10, 2024)
    assert retry["status"] == "completed"
    assert retry["total_employees"] == 1


def test_abandoned_run_is_failed_and_retried(db_session, make_employee):
    make_employee(salary="1000.00")
    abandoned = PayrollRun(
        month=11,
        year=2024,
        period_start=date(2024, 11, 1),
        period_end=date(2024, 11, 30),
        status="processing",
        created_at=datetime.now(timezone.utc) - timedelta(hours=3),
    )
    db_session.add(abandoned)
    db_session.commit()

    run = payroll_service.start_run(db_session, 11, 2024)

    assert run["status"] == "completed"
    db_session.refresh(abandoned)
    assert abandoned.status == "failed"


def test_recent_processing_run_still_blocks(db_session):
    in_flight = PayrollRun(
        month=12,
        year=2024,
        period_start=date(2024, 12, 1),
        period_end=date(2024, 12, 31),
        status="processing",
        created_at=datetime.now(timezone.utc) - timedelta(minutes=5),
    )
    db_session.add(in_flight)
    db_session.commit()

    with pytest.raises(DuplicateRunError):
        payroll_service.start_run(db_session, 12, 2024)
    assert not payroll_service.is_stale(in_flight)
