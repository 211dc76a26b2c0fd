import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()

class PayrollSettings(BaseModel):
    # Leave engine
    work_hours_per_day: float = Field(default=float(os.getenv("WORK_HOURS_PER_DAY", "9.0")))
    breach_tolerance_days: float = 0.01
    default_leave_start: str = os.getenv("DEFAULT_LEAVE_START", "09:00")
    default_leave_end: str = os.getenv("DEFAULT_LEAVE_END", "18:00")
    # Used only when the leave_types table carries no category mapping yet
    default_annual_type_id: int = int(os.getenv("ANNUAL_LEAVE_TYPE_ID", "1"))
    default_medical_type_id: int = int(os.getenv("MEDICAL_LEAVE_TYPE_ID", "2"))

    # Statutory rates (percent)
    default_epf_rate: float = 8.00
    default_employer_epf_rate: float = 12.00
    default_etf_rate: float = 3.00

    # Deductions whose name contains this marker are handled as statutory EPF
    epf_deduction_marker: str = "EPF"
    # Daily rate for unpaid leave = basic salary / divisor
    unpaid_leave_day_divisor: float = Field(default=float(os.getenv("UNPAID_LEAVE_DAY_DIVISOR", "30")))

class Config(BaseModel):
    app_name: str = "HR Payroll Back Office"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./database.db")

    # Enterprise Architecture
    version: str = "1.0.0"
    build_id: str = os.getenv("BUILD_ID", "local")
    request_id_header: str = "X-Request-ID"

    # Actor context forwarded by the upstream auth gateway
    user_id_header: str = "X-User-ID"
    user_role_header: str = "X-User-Role"

    # CORS: comma-separated origins loaded from env
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://localhost:3001,"
                "http://127.0.0.1:3000,http://127.0.0.1:3001",
            ).split(",")
            if o.strip()
        ]
    )

    # Payroll / leave engine defaults
    payroll: PayrollSettings = PayrollSettings()

settings = Config()

# --- Startup Validation ---
_logger = logging.getLogger(__name__)
if settings.payroll.work_hours_per_day <= 0:
    raise RuntimeError(
        f"FATAL: WORK_HOURS_PER_DAY must be positive, got {settings.payroll.work_hours_per_day}."
    )
if settings.payroll.unpaid_leave_day_divisor <= 0:
    raise RuntimeError(
        f"FATAL: UNPAID_LEAVE_DAY_DIVISOR must be positive, got {settings.payroll.unpaid_leave_day_divisor}."
    )
if settings.environment != "development" and settings.database_url.startswith("sqlite:///./"):
    _logger.warning("Using the local SQLite file outside development.")
