from sqlalchemy import Column, Integer, String, Numeric, Boolean, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payroll_app.database import Base
import enum


class DeductionType(str, enum.Enum):
    TAX = "tax"
    HEALTH_INSURANCE = "health_insurance"
    PENSION = "pension"
    OTHER = "other"


class CalculationType(str, enum.Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


DEFAULT_DEDUCTION_NAMES = {
    DeductionType.TAX: "Tax",
    DeductionType.HEALTH_INSURANCE: "Health Insurance",
    DeductionType.PENSION: "Pension",
    DeductionType.OTHER: "Other",
}


class DeductionEntry(Base):
    __tablename__ = "deduction_entries"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    deduction_type = Column(String, nullable=False)  # Store enum value as string
    name = Column(String, nullable=True)  # Display label; defaults per type
    calculation_type = Column(String, default=CalculationType.FIXED.value, nullable=False)
    value = Column(Numeric(12, 4), nullable=False)  # Amount, or a rate in [0, 1]
    is_active = Column(Boolean, default=True, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    employee = relationship("Employee", back_populates="deductions")

    def __repr__(self):
        return f"<DeductionEntry {self.deduction_type} {self.calculation_type}={self.value}>"

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        try:
            return DEFAULT_DEDUCTION_NAMES[DeductionType(self.deduction_type)]
        except ValueError:
            return self.deduction_type

    def applies_to(self, period_start, period_end) -> bool:
        """True when the entry is active and its validity window overlaps the period."""
        if not self.is_active:
            return False
        if self.start_date and self.start_date > period_end:
            return False
        if self.end_date and self.end_date < period_start:
            return False
        return True
