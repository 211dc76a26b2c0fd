# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    department, employee, leave_type,
    leave_request, leave_balance, leave_rule, unpaid_leave,
    calendar_restriction, salary_component, etf_epf,
    payroll, audit_log
)

# Explicit class exports for cleaner imports
from .department import Department
from .employee import Employee, EmployeeStatus, Grade
from .leave_type import LeaveCategory, LeaveType
from .leave_request import LeaveAction, LeaveRequest, LeaveStatus
from .leave_balance import LeaveBalance, LeaveBalanceEntry
from .leave_rule import LeaveRule
from .unpaid_leave import UnpaidLeave, UnpaidLeaveStatus
from .calendar_restriction import CalendarRestriction
from .salary_component import (
    Allowance, Bonus, ComponentStatus, Deduction, DeductionBasis,
    OvertimeAdjustment, Salary,
)
from .etf_epf import EtfEpfConfig, EtfEpfTransaction
from .payroll import PayrollTransfer, TransferStatus
from .audit_log import AuditLog

__all__ = [
    "Department",
    "Employee",
    "EmployeeStatus",
    "Grade",
    "LeaveCategory",
    "LeaveType",
    "LeaveAction",
    "LeaveRequest",
    "LeaveStatus",
    "LeaveBalance",
    "LeaveBalanceEntry",
    "LeaveRule",
    "UnpaidLeave",
    "UnpaidLeaveStatus",
    "CalendarRestriction",
    "Allowance",
    "Bonus",
    "ComponentStatus",
    "Deduction",
    "DeductionBasis",
    "OvertimeAdjustment",
    "Salary",
    "EtfEpfConfig",
    "EtfEpfTransaction",
    "PayrollTransfer",
    "TransferStatus",
    "AuditLog",
]
