"""
Employee Service Layer

Employee CRUD and the deduction entries that feed payroll runs.
Employees are never hard-deleted: deletion is a status change to
inactive so historical payslips keep their owner.
"""
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from payroll_app.core.exceptions import AppException, NotFoundError
from payroll_app.models.deduction import DeductionEntry
from payroll_app.models.employee import Employee, EmployeeStatus
from payroll_app.schemas.employee import DeductionCreate, EmployeeCreate, EmployeeUpdate
from payroll_app.services.base import commit_or_raise

logger = logging.getLogger(__name__)


class EmailAlreadyExistsError(AppException):
    def __init__(self, email: str):
        super().__init__(
            message=f"An employee with email {email} already exists",
            status_code=409,
            error_code="EMAIL_ALREADY_EXISTS",
            details={"email": email}
        )


def ensure_unique_email(db: Session, email: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Employee).filter(func.lower(Employee.email) == email.lower())
    if exclude_id is not None:
        query = query.filter(Employee.id != exclude_id)
    if query.first():
        raise EmailAlreadyExistsError(email)


def get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("Employee", employee_id)
    return employee


def list_employees(db: Session, status: Optional[EmployeeStatus] = None) -> List[Employee]:
    query = db.query(Employee)
    if status is not None:
        query = query.filter(Employee.status == status.value)
    return query.order_by(Employee.id).all()


def count_employees(db: Session, status: Optional[EmployeeStatus] = None) -> int:
    query = db.query(func.count(Employee.id))
    if status is not None:
        query = query.filter(Employee.status == status.value)
    return query.scalar() or 0


def create_employee(db: Session, data: EmployeeCreate) -> Employee:
    ensure_unique_email(db, data.email)

    employee = Employee(
        first_name=data.first_name,
        last_name=data.last_name,
        email=data.email,
        department=data.department,
        position=data.position,
        salary=data.salary,
        status=data.status.value,
    )
    employee.deductions = [_build_deduction(d) for d in data.deductions]
    db.add(employee)
    commit_or_raise(db, "create employee", email=data.email)
    db.refresh(employee)
    logger.info(f"Employee {employee.id} created", extra={"employee_id": employee.id})
    return employee


def update_employee(db: Session, employee_id: int, data: EmployeeUpdate) -> Employee:
    employee = get_employee(db, employee_id)
    changes = data.model_dump(exclude_unset=True)

    if "email" in changes and changes["email"] is not None:
        ensure_unique_email(db, changes["email"], exclude_id=employee_id)

    for field, value in changes.items():
        if field == "status" and value is not None:
            value = EmployeeStatus(value).value
        setattr(employee, field, value)

    commit_or_raise(db, "update employee", employee_id=employee_id)
    db.refresh(employee)
    return employee


def deactivate_employee(db: Session, employee_id: int) -> Employee:
    employee = get_employee(db, employee_id)
    employee.status = EmployeeStatus.INACTIVE.value
    commit_or_raise(db, "deactivate employee", employee_id=employee_id)
    db.refresh(employee)
    logger.info(f"Employee {employee_id} deactivated", extra={"employee_id": employee_id})
    return employee


def _build_deduction(data: DeductionCreate) -> DeductionEntry:
    return DeductionEntry(
        deduction_type=data.deduction_type.value,
        name=data.name,
        calculation_type=data.calculation_type.value,
        value=data.value,
        is_active=data.is_active,
        start_date=data.start_date,
        end_date=data.end_date,
    )


def list_deductions(db: Session, employee_id: int) -> List[DeductionEntry]:
    return get_employee(db, employee_id).deductions


def add_deduction(db: Session, employee_id: int, data: DeductionCreate) -> DeductionEntry:
    employee = get_employee(db, employee_id)
    entry = _build_deduction(data)
    employee.deductions.append(entry)
    commit_or_raise(db, "add deduction", employee_id=employee_id)
    db.refresh(entry)
    return entry


def remove_deduction(db: Session, employee_id: int, deduction_id: int) -> None:
    entry = db.query(DeductionEntry).filter(
        DeductionEntry.id == deduction_id,
        DeductionEntry.employee_id == employee_id
    ).first()
    if entry is None:
        raise NotFoundError("Deduction", deduction_id)
    db.delete(entry)
    commit_or_raise(db, "remove deduction", employee_id=employee_id, deduction_id=deduction_id)
