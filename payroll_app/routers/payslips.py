"""
Payslips Router

Employees see only their own payslips; admins see everyone's and
settle processed payslips.
"""
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from payroll_app.core.config import settings
from payroll_app.core.exceptions import AccessDeniedError
from payroll_app.database import get_db
from payroll_app.routers.auth_deps import Actor, get_current_actor, require_admin, require_feature
from payroll_app.routers.payroll import pdf_response
from payroll_app.schemas.common import TotalResponse
from payroll_app.schemas.payslip import MarkPaidRequest, PayslipResponse
from payroll_app.services import payroll_service

router = APIRouter(
    prefix="/payslips",
    tags=["payslips"],
    dependencies=[Depends(require_feature("payslipView"))]
)


def _resolve_employee_id(actor: Actor, requested: Optional[int]) -> int:
    """Admins may look at any employee; everyone else only at themselves."""
    if actor.is_admin and requested is not None:
        return requested
    if actor.employee_id is None:
        raise AccessDeniedError("Actor is not linked to an employee record")
    if requested is not None and requested != actor.employee_id:
        raise AccessDeniedError("You can only access your own payslips")
    return actor.employee_id


def _ensure_can_view(actor: Actor, employee_id: int) -> None:
    if not actor.is_admin and actor.employee_id != employee_id:
        raise AccessDeniedError("You can only access your own payslips")


@router.get("", response_model=List[PayslipResponse])
def list_payslips(
    employee_id: Optional[int] = Query(None, alias="employeeId"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Payslips of the caller, newest period first."""
    target = _resolve_employee_id(actor, employee_id)
    return payroll_service.list_employee_payslips(db, target)


@router.get("/recent", response_model=List[PayslipResponse])
def list_recent_payslips(
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin())
):
    return payroll_service.list_recent_payslips(db, limit or settings.payslip.recent_limit)


@router.get("/ytd-earnings", response_model=TotalResponse)
def get_ytd_earnings(
    employee_id: Optional[int] = Query(None, alias="employeeId"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    target = _resolve_employee_id(actor, employee_id)
    return {"total": payroll_service.get_ytd_earnings(db, target)}


@router.get("/{payslip_id}", response_model=PayslipResponse)
def get_payslip(
    payslip_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    payslip = payroll_service.get_payslip(db, payslip_id)
    _ensure_can_view(actor, payslip.employee_id)
    return payroll_service.get_payslip_details(db, payslip_id)


@router.get("/{payslip_id}/pdf")
def download_payslip(
    payslip_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    payslip = payroll_service.get_payslip(db, payslip_id)
    _ensure_can_view(actor, payslip.employee_id)
    pdf = payroll_service.generate_payslip_pdf(db, payslip_id)
    return pdf_response(pdf, f"payslip-{payslip_id}.pdf")


@router.post("/{payslip_id}/pay", response_model=PayslipResponse)
def mark_payslip_paid(
    payslip_id: int,
    request: Optional[MarkPaidRequest] = Body(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin())
):
    """Settle a processed payslip. Paid payslips cannot be paid again."""
    paid_on = request.paid_on if request else None
    return payroll_service.mark_payslip_paid(db, payslip_id, paid_on)
