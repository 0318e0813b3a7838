from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, JSON, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payroll_app.database import Base
import enum


class PayrollRunStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Statuses that block a new run for the same period
ACTIVE_RUN_STATUSES = (
    PayrollRunStatus.PENDING.value,
    PayrollRunStatus.PROCESSING.value,
    PayrollRunStatus.COMPLETED.value,
)


class PayrollRun(Base):
    __tablename__ = "payroll_runs"
    __table_args__ = (
        # At most one non-failed run per period
        Index(
            "uq_payroll_runs_active_period",
            "year",
            "month",
            unique=True,
            sqlite_where=text("status != 'failed'"),
            postgresql_where=text("status != 'failed'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    status = Column(String, default=PayrollRunStatus.PENDING.value, nullable=False)

    total_employees = Column(Integer, default=0, nullable=False)
    total_gross_amount = Column(Numeric(14, 2), default=0, nullable=False)
    total_deductions = Column(Numeric(14, 2), default=0, nullable=False)
    total_net_amount = Column(Numeric(14, 2), default=0, nullable=False)
    skipped_employees = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    payslips = relationship(
        "Payslip",
        back_populates="payroll_run",
        cascade="all, delete-orphan",
        order_by="Payslip.employee_id",
    )

    def __repr__(self):
        return f"<PayrollRun {self.month:02d}/{self.year} ({self.status})>"
