from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payroll_app.database import Base
import enum


class PayslipStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    PAID = "paid"


# Allowed forward moves; processed figures are otherwise immutable
PAYSLIP_TRANSITIONS = {
    PayslipStatus.PENDING.value: {PayslipStatus.PROCESSED.value},
    PayslipStatus.PROCESSED.value: {PayslipStatus.PAID.value},
    PayslipStatus.PAID.value: set(),
}


class Payslip(Base):
    __tablename__ = "payslips"
    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="uq_payslip_run_employee"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    payroll_run_id = Column(Integer, ForeignKey("payroll_runs.id"), nullable=False, index=True)

    # Employee display fields as of the run
    employee_name = Column(String, nullable=False)
    department = Column(String, nullable=True)
    position = Column(String, nullable=True)

    gross_amount = Column(Numeric(12, 2), nullable=False)
    total_deductions = Column(Numeric(12, 2), nullable=False)
    net_amount = Column(Numeric(12, 2), nullable=False)
    deductions_exceed_gross = Column(Boolean, default=False, nullable=False)

    status = Column(String, default=PayslipStatus.PROCESSED.value, nullable=False)
    paid_on = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    employee = relationship("Employee", back_populates="payslips")
    payroll_run = relationship("PayrollRun", back_populates="payslips")
    lines = relationship(
        "PayslipDeduction",
        back_populates="payslip",
        cascade="all, delete-orphan",
        order_by="PayslipDeduction.position",
    )

    def __repr__(self):
        return f"<Payslip employee={self.employee_id} run={self.payroll_run_id} net={self.net_amount}>"


class PayslipDeduction(Base):
    __tablename__ = "payslip_deductions"

    id = Column(Integer, primary_key=True, index=True)
    payslip_id = Column(Integer, ForeignKey("payslips.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)  # Order of the rule that produced it
    name = Column(String, nullable=False)
    deduction_type = Column(String, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)

    payslip = relationship("Payslip", back_populates="lines")
