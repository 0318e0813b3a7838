from typing import List, Optional
from datetime import datetime

from payroll_app.schemas.common import CamelModel, Money


class PayslipLineResponse(CamelModel):
    name: str
    deduction_type: Optional[str] = None
    amount: Money


class PayslipResponse(CamelModel):
    id: int
    employee_id: int
    employee_name: str
    department: Optional[str] = None
    position: Optional[str] = None
    payroll_run_id: int
    month: int
    year: int
    period: str
    gross_amount: Money
    total_deductions: Money
    net_amount: Money
    deductions: List[PayslipLineResponse] = []
    deductions_exceed_gross: bool = False
    status: str
    paid_on: Optional[datetime] = None
    created_at: Optional[datetime] = None


class MarkPaidRequest(CamelModel):
    paid_on: Optional[datetime] = None
