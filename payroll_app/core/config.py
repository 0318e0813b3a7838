import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class FeatureSettings(BaseModel):
    """Capability switches, keyed by the flag names the frontend uses."""
    payslip_view: bool = Field(default=_env_flag("FEATURE_PAYSLIP_VIEW", "true"))
    employee_management: bool = Field(default=_env_flag("FEATURE_EMPLOYEE_MANAGEMENT", "true"))
    payroll_processing: bool = Field(default=_env_flag("FEATURE_PAYROLL_PROCESSING", "true"))
    on_demand_pay: bool = Field(default=_env_flag("FEATURE_ON_DEMAND_PAY", "false"))
    wellness_program: bool = Field(default=_env_flag("FEATURE_WELLNESS_PROGRAM", "false"))


class PayslipSettings(BaseModel):
    company_name: str = Field(default=os.getenv("COMPANY_NAME", "PAYROLL APP"))
    currency: str = Field(default=os.getenv("CURRENCY", "USD"))
    page_size: str = Field(default=os.getenv("PAYSLIP_PAGE_SIZE", "A4").upper())
    recent_limit: int = Field(default=int(os.getenv("RECENT_PAYSLIPS_LIMIT", "5")))


class Config(BaseModel):
    app_name: str = "Payroll Core"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./payroll.db")

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Pending or processing runs older than this are treated as abandoned
    stale_run_minutes: int = int(os.getenv("PAYROLL_STALE_RUN_MINUTES", "60"))

    # Actor context forwarded by the upstream auth gateway
    actor_id_header: str = "X-Actor-Id"
    actor_role_header: str = "X-Actor-Role"

    # CORS: comma-separated origins loaded from env
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

    payslip: PayslipSettings = PayslipSettings()
    features: FeatureSettings = FeatureSettings()


settings = Config()

_logger = logging.getLogger(__name__)
if settings.payslip.page_size not in ("A4", "LETTER"):
    raise RuntimeError(
        f"FATAL: PAYSLIP_PAGE_SIZE must be A4 or LETTER, got {settings.payslip.page_size!r}"
    )
if settings.environment != "development" and settings.database_url.startswith("sqlite:///./"):
    _logger.warning("Using a local SQLite file outside development.")
