"""
Payroll Router

Handles HTTP endpoints for payroll runs.
All business logic is delegated to the payroll service layer.
"""
import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from payroll_app.database import get_db
from payroll_app.models.payroll_run import PayrollRunStatus
from payroll_app.routers.auth_deps import Actor, require_admin, require_feature
from payroll_app.schemas.common import TotalResponse
from payroll_app.schemas.payroll import RunCreate, RunListResponse, RunSummary
from payroll_app.services import payroll_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/payroll",
    tags=["payroll"],
    dependencies=[Depends(require_feature("payrollProcessing"))]
)


def pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.post("/runs", response_model=RunSummary, status_code=status.HTTP_201_CREATED)
def start_payroll_run(
    request: RunCreate,
    response: Response,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin())
):
    """
    Process payroll for every active employee for the given month.

    Employees whose payslip cannot be built are listed under
    `skippedEmployees`; the run only fails when none could be built.
    """
    logger.info(
        f"Payroll run requested for {request.month}/{request.year}",
        extra={"actor_id": actor.id}
    )
    run = payroll_service.start_run(db, request.month, request.year)
    if run["status"] == PayrollRunStatus.FAILED.value:
        response.status_code = status.HTTP_200_OK
    return run


@router.get("/runs", response_model=RunListResponse)
def list_payroll_runs(
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin())
):
    """All payroll runs, newest first."""
    return {"runs": payroll_service.list_runs(db)}


@router.get("/runs/{run_id}", response_model=RunSummary)
def get_payroll_run(
    run_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin())
):
    return payroll_service.get_run(db, run_id)


@router.get("/runs/{run_id}/report")
def download_run_report(
    run_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin())
):
    pdf = payroll_service.generate_run_report_pdf(db, run_id)
    return pdf_response(pdf, f"payroll-run-{run_id}-report.pdf")


@router.get("/runs/{run_id}/payslips/pdf")
def download_run_payslips(
    run_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin())
):
    """Every payslip of the run in one document, one page per employee."""
    pdf = payroll_service.generate_run_payslips_pdf(db, run_id)
    return pdf_response(pdf, f"payroll-run-{run_id}-payslips.pdf")


@router.get("/monthly-total", response_model=TotalResponse)
def get_monthly_total(
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin())
):
    """Net pay settled by completed runs for the current month."""
    return {"total": payroll_service.get_monthly_total(db)}
