from pydantic import EmailStr, Field, model_validator
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal

from payroll_app.models.deduction import CalculationType, DeductionType
from payroll_app.models.employee import EmployeeStatus
from payroll_app.schemas.common import CamelModel, Money

REQUIRED_EMPLOYEE_FIELDS = ("first_name", "last_name", "email", "status")


class DeductionCreate(CamelModel):
    deduction_type: DeductionType
    name: Optional[str] = Field(None, max_length=100)
    calculation_type: CalculationType = CalculationType.FIXED
    value: Decimal = Field(..., ge=0, allow_inf_nan=False)
    is_active: bool = True
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def check_value_and_window(self):
        if self.calculation_type == CalculationType.PERCENTAGE and self.value > 1:
            raise ValueError("percentage deductions take a rate between 0 and 1")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class DeductionResponse(CamelModel):
    id: int
    employee_id: int
    deduction_type: str
    name: str = Field(validation_alias="display_name")
    calculation_type: str
    value: Money
    is_active: bool
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class EmployeeBase(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    department: Optional[str] = None
    position: Optional[str] = None
    salary: Optional[Decimal] = Field(None, ge=0, allow_inf_nan=False)


class EmployeeCreate(EmployeeBase):
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    deductions: List[DeductionCreate] = []


class EmployeeUpdate(CamelModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    department: Optional[str] = None
    position: Optional[str] = None
    salary: Optional[Decimal] = Field(None, ge=0, allow_inf_nan=False)
    status: Optional[EmployeeStatus] = None

    @model_validator(mode="after")
    def reject_null_required_fields(self):
        # Omitting a field leaves it unchanged; sending null would clear a NOT NULL column
        cleared = [f for f in REQUIRED_EMPLOYEE_FIELDS if f in self.model_fields_set and getattr(self, f) is None]
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class EmployeeResponse(CamelModel):
    id: int
    first_name: str
    last_name: str
    full_name: str
    email: str
    status: str
    department: Optional[str] = None
    position: Optional[str] = None
    salary: Optional[Money] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EmployeeDetailResponse(EmployeeResponse):
    deductions: List[DeductionResponse] = []


class EmployeeCountResponse(CamelModel):
    count: int
