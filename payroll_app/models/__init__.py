# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import employee, deduction, payroll_run, payslip

# Explicit class exports for cleaner imports
from .employee import Employee, EmployeeStatus
from .deduction import DeductionEntry, DeductionType, CalculationType
from .payroll_run import PayrollRun, PayrollRunStatus
from .payslip import Payslip, PayslipDeduction, PayslipStatus

__all__ = [
    "Employee",
    "EmployeeStatus",
    "DeductionEntry",
    "DeductionType",
    "CalculationType",
    "PayrollRun",
    "PayrollRunStatus",
    "Payslip",
    "PayslipDeduction",
    "PayslipStatus",
]
