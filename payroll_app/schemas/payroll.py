from pydantic import Field
from typing import List, Optional
from datetime import datetime

from payroll_app.schemas.common import CamelModel, Money


class RunCreate(CamelModel):
    month: int = Field(..., description="Calendar month, 1-12")
    year: int = Field(..., description="Four digit year")


class SkippedEmployee(CamelModel):
    employee_id: int
    reason: str
    code: Optional[str] = None


class RunSummary(CamelModel):
    id: int
    month: int
    year: int
    period: str
    status: str
    total_employees: int
    total_gross_amount: Money
    total_deductions: Money
    total_net_amount: Money
    total_amount: Money
    skipped_employees: List[SkippedEmployee] = []
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class RunListResponse(CamelModel):
    runs: List[RunSummary]
