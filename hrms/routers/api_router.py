from fastapi import APIRouter
from hrms.routers import audit_logs, etf_epf, leave, payroll, salary

# Centralized API router hub
# This follows the "Leaf Node" pattern: Routers are aggregated here,
# and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(leave.router, tags=["Leave"])
api_router.include_router(salary.router, tags=["Salary Components"])
api_router.include_router(payroll.router, tags=["Payroll"])
api_router.include_router(etf_epf.router, tags=["ETF/EPF"])
api_router.include_router(audit_logs.router, tags=["Audit"])
