"""Expense Approvals - Rule-driven approval workflow for employee expenses."""

from .config import PolicyConfig
from .exceptions import (
    ConfigurationError,
    ConflictError,
    ExpenseApprovalError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    RequestValidationError,
)
from .expenses import CurrencyConverter, ExpenseService, FixedRateConverter
from .flow import build_approval_flow
from .logging_config import LogContext, configure_logging, get_logger
from .matching import rule_matches
from .models import (
    AmountRange,
    ApprovalAction,
    ApprovalRule,
    ApprovalStep,
    ApprovalWorkflow,
    ApproverKind,
    ApproverSpec,
    BaseCurrencyAmount,
    Company,
    CompanySettings,
    EmployeeRole,
    Expense,
    ExpenseCategory,
    ExpenseStatus,
    Money,
    RuleConditions,
    StepStatus,
    User,
    WorkflowLevel,
    WorkflowType,
)
from .resolution import RuleResolver
from .rules import RuleService, rule_problems
from .stores import InMemoryDirectory, InMemoryExpenseRepository, InMemoryRuleStore
from .workflow import ApprovalWorkflowEngine, StatusTransition, TransitionLog

__all__ = [
    "AmountRange",
    "ApprovalAction",
    "ApprovalRule",
    "ApprovalStep",
    "ApprovalWorkflow",
    "ApprovalWorkflowEngine",
    "ApproverKind",
    "ApproverSpec",
    "BaseCurrencyAmount",
    "Company",
    "CompanySettings",
    "ConfigurationError",
    "ConflictError",
    "CurrencyConverter",
    "EmployeeRole",
    "Expense",
    "ExpenseApprovalError",
    "ExpenseCategory",
    "ExpenseService",
    "ExpenseStatus",
    "FixedRateConverter",
    "ForbiddenError",
    "InMemoryDirectory",
    "InMemoryExpenseRepository",
    "InMemoryRuleStore",
    "InvalidStateError",
    "LogContext",
    "Money",
    "NotFoundError",
    "PolicyConfig",
    "RequestValidationError",
    "RuleConditions",
    "RuleResolver",
    "RuleService",
    "StatusTransition",
    "StepStatus",
    "TransitionLog",
    "User",
    "WorkflowLevel",
    "WorkflowType",
    "build_approval_flow",
    "configure_logging",
    "get_logger",
    "rule_matches",
    "rule_problems",
    "__version__",
]
__version__ = "0.1.0"
