from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payroll_app.database import Base
import enum


class EmployeeStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Theme(str, enum.Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    status = Column(String, default=EmployeeStatus.ACTIVE.value, nullable=False, index=True)
    department = Column(String, nullable=True)
    position = Column(String, nullable=True)
    salary = Column(Numeric(12, 2), nullable=True)  # Monthly gross amount

    # Self-service settings; NULL means the defaults apply
    notification_preferences = Column(JSON, nullable=True)
    theme = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    deductions = relationship(
        "DeductionEntry",
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="DeductionEntry.id",
    )
    payslips = relationship("Payslip", back_populates="employee")

    def __repr__(self):
        return f"<Employee {self.email} ({self.status})>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == EmployeeStatus.ACTIVE.value
