"""
Payslip Assembler

Combines an employee snapshot, a pay period, the gross amount and a
deduction breakdown into one payslip record with its net pay.
"""
import calendar
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Tuple

from payroll_app.core.exceptions import InvalidInputError
from payroll_app.models.payslip import PayslipStatus
from payroll_app.services.deduction_calculator import (
    DeductionBreakdown,
    DeductionLine,
    ZERO,
    to_decimal,
    to_money,
)


@dataclass(frozen=True)
class PayPeriod:
    month: int
    year: int

    @classmethod
    def of(cls, month: Any, year: Any) -> "PayPeriod":
        try:
            month, year = int(month), int(year)
        except (TypeError, ValueError):
            raise InvalidInputError("month and year must be integers", details={"month": month, "year": year}) from None
        if not 1 <= month <= 12:
            raise InvalidInputError("month must be between 1 and 12", details={"month": month})
        if not 1900 <= year <= 9999:
            raise InvalidInputError("year is out of range", details={"year": year})
        return cls(month=month, year=year)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    @property
    def label(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class EmployeeSnapshot:
    employee_id: int
    name: str
    department: Optional[str] = None
    position: Optional[str] = None


@dataclass(frozen=True)
class AssembledPayslip:
    employee: EmployeeSnapshot
    period: Optional[PayPeriod]
    gross_amount: Decimal
    deductions: Tuple[DeductionLine, ...]
    total_deductions: Decimal
    net_amount: Optional[Decimal]
    deductions_exceed_gross: bool = False
    status: str = PayslipStatus.PROCESSED.value
    payslip_id: Optional[int] = None
    paid_on: Optional[datetime] = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)


def assemble_payslip(
    employee: EmployeeSnapshot,
    period: PayPeriod,
    gross_amount: Any,
    breakdown: DeductionBreakdown,
) -> AssembledPayslip:
    """
    Net pay is `gross - total_deductions`. When deductions exceed gross the
    net is clamped to zero and the payslip carries the
    `deductions_exceed_gross` warning instead of a negative figure.
    """
    gross = to_decimal(gross_amount, "gross_amount")
    if gross < 0:
        raise InvalidInputError("gross_amount must not be negative", details={"gross_amount": str(gross)})
    gross = to_money(gross)
    total = to_money(breakdown.total_deductions)

    net = gross - total
    exceeds = net < 0
    warnings: Tuple[str, ...] = ()
    if exceeds:
        net = ZERO
        warnings = ("deductionsExceedGross",)

    return AssembledPayslip(
        employee=employee,
        period=period,
        gross_amount=gross,
        deductions=breakdown.lines,
        total_deductions=total,
        net_amount=to_money(net),
        deductions_exceed_gross=exceeds,
        warnings=warnings,
    )
