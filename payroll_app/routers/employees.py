"""
Employees Router

Admin management of employee records and the deduction entries
payroll runs read from.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from payroll_app.database import get_db
from payroll_app.models.employee import EmployeeStatus
from payroll_app.routers.auth_deps import require_admin, require_feature
from payroll_app.schemas.employee import (
    DeductionCreate,
    DeductionResponse,
    EmployeeCountResponse,
    EmployeeCreate,
    EmployeeDetailResponse,
    EmployeeResponse,
    EmployeeUpdate,
)
from payroll_app.services import employee_service

router = APIRouter(
    prefix="/employees",
    tags=["employees"],
    dependencies=[Depends(require_feature("employeeManagement")), Depends(require_admin())]
)


@router.get("", response_model=List[EmployeeResponse])
def list_employees(
    status_filter: Optional[EmployeeStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db)
):
    return employee_service.list_employees(db, status_filter)


@router.post("", response_model=EmployeeDetailResponse, status_code=status.HTTP_201_CREATED)
def create_employee(request: EmployeeCreate, db: Session = Depends(get_db)):
    return employee_service.create_employee(db, request)


@router.get("/count", response_model=EmployeeCountResponse)
def count_employees(
    status_filter: Optional[EmployeeStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db)
):
    return {"count": employee_service.count_employees(db, status_filter)}


@router.get("/{employee_id}", response_model=EmployeeDetailResponse)
def get_employee(employee_id: int, db: Session = Depends(get_db)):
    return employee_service.get_employee(db, employee_id)


@router.put("/{employee_id}", response_model=EmployeeResponse)
def update_employee(employee_id: int, request: EmployeeUpdate, db: Session = Depends(get_db)):
    return employee_service.update_employee(db, employee_id, request)


@router.delete("/{employee_id}", response_model=EmployeeResponse)
def deactivate_employee(employee_id: int, db: Session = Depends(get_db)):
    """Employees are deactivated rather than deleted so past payslips keep their owner."""
    return employee_service.deactivate_employee(db, employee_id)


@router.get("/{employee_id}/deductions", response_model=List[DeductionResponse])
def list_deductions(employee_id: int, db: Session = Depends(get_db)):
    return employee_service.list_deductions(db, employee_id)


@router.post(
    "/{employee_id}/deductions",
    response_model=DeductionResponse,
    status_code=status.HTTP_201_CREATED
)
def add_deduction(employee_id: int, request: DeductionCreate, db: Session = Depends(get_db)):
    return employee_service.add_deduction(db, employee_id, request)


@router.delete("/{employee_id}/deductions/{deduction_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_deduction(employee_id: int, deduction_id: int, db: Session = Depends(get_db)):
    employee_service.remove_deduction(db, employee_id, deduction_id)
