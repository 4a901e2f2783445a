"""Core models for expenses, approval rules, and the people involved."""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ExpenseStatus(str, Enum):
    """Lifecycle status of an expense."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    WAITING_APPROVAL = "waiting-approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


IN_FLIGHT_STATUSES = frozenset({ExpenseStatus.SUBMITTED, ExpenseStatus.WAITING_APPROVAL})


class ExpenseCategory(str, Enum):
    """Categories an expense can be filed under."""

    TRAVEL = "travel"
    MEALS = "meals"
    ACCOMMODATION = "accommodation"
    TRANSPORTATION = "transportation"
    OFFICE_SUPPLIES = "office-supplies"
    SOFTWARE = "software"
    TRAINING = "training"
    MARKETING = "marketing"
    ENTERTAINMENT = "entertainment"
    HEALTHCARE = "healthcare"
    OTHER = "other"


class EmployeeRole(str, Enum):
    """Roles a user can hold within a company."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    ADMIN = "admin"


class StepStatus(str, Enum):
    """Status of a single approver's slot in an approval flow."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApproverKind(str, Enum):
    """How an approver specification is turned into a concrete user."""

    SPECIFIC_USER = "specific-user"
    MANAGER = "manager"
    DEPARTMENT_HEAD = "department-head"
    CFO = "cfo"
    CEO = "ceo"


RESOLVABLE_APPROVER_KINDS = frozenset({ApproverKind.SPECIFIC_USER, ApproverKind.MANAGER})


class WorkflowType(str, Enum):
    """Descriptive workflow shape recorded on a rule."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    CONDITIONAL = "conditional"


class ApprovalAction(str, Enum):
    """Decision an approver can take on a pending step."""

    APPROVE = "approve"
    REJECT = "reject"


class CompanySettings(BaseModel):
    """Company-wide approval settings."""

    auto_approval_limit: Annotated[Decimal, Field(ge=0)] = Field(
        default=Decimal("100"),
        description="Base-currency amount up to which unmatched expenses auto-approve",
    )
    approval_threshold: Annotated[Decimal, Field(ge=0)] = Field(
        default=Decimal("1000"),
        description="Amount above which approval is normally expected",
    )


class Company(BaseModel):
    """A company scoping users, rules, and expenses."""

    company_id: str = Field(..., description="Unique company identifier")
    name: str = Field(..., description="Display name")
    base_currency: str = Field(
        default="USD", min_length=3, max_length=3, description="Accounting currency"
    )
    settings: CompanySettings = Field(default_factory=CompanySettings)


class User(BaseModel):
    """An employee, manager, or administrator."""

    user_id: str = Field(..., description="Unique user identifier")
    company_id: str = Field(..., description="Company the user belongs to")
    name: str = Field(default="", description="Display name")
    role: EmployeeRole = Field(default=EmployeeRole.EMPLOYEE)
    department: str | None = Field(default=None, description="Department name")
    manager: str | None = Field(
        default=None, description="User id of the direct manager, if any"
    )
    is_active: bool = Field(default=True)


class Money(BaseModel):
    """An amount in the currency it was entered in."""

    value: Annotated[Decimal, Field(gt=0)] = Field(..., description="Entered amount")
    currency_code: str = Field(..., min_length=3, max_length=3)


class BaseCurrencyAmount(BaseModel):
    """Company base-currency equivalent of an expense amount."""

    value: Annotated[Decimal, Field(ge=0)] = Field(..., description="Converted amount")
    exchange_rate: Decimal = Field(default=Decimal("1"))
    converted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ApprovalStep(BaseModel):
    """One concrete approver's slot within an expense's approval flow."""

    approver: str = Field(..., description="User id of the approver")
    level: int = Field(..., ge=1, description="Rule level that produced the step")
    status: StepStatus = Field(default=StepStatus.PENDING)
    is_required: bool = Field(default=True)
    comments: str | None = Field(default=None)
    action_date: datetime | None = Field(default=None)


class Expense(BaseModel):
    """A single reimbursement claim and its approval state."""

    expense_id: str = Field(..., description="Unique expense identifier")
    submitted_by: str = Field(..., description="User id of the submitter")
    company_id: str = Field(..., description="Company the expense belongs to")
    title: str = Field(default="", max_length=100)
    description: str = Field(default="", max_length=500)
    amount: Money
    amount_in_base_currency: BaseCurrencyAmount
    category: ExpenseCategory
    expense_date: date | None = Field(default=None)
    vendor: str | None = Field(default=None, max_length=100)
    status: ExpenseStatus = Field(default=ExpenseStatus.DRAFT)
    approval_flow: list[ApprovalStep] = Field(
        default_factory=list, description="Ordered approval steps"
    )
    approval_rule_id: str | None = Field(
        default=None, description="Rule that produced the approval flow"
    )
    rejection_reason: str | None = Field(default=None, max_length=500)
    submitted_at: datetime | None = Field(default=None)
    approved_at: datetime | None = Field(default=None)
    paid_at: datetime | None = Field(default=None)
    version: int = Field(default=0, ge=0, description="Optimistic concurrency token")

    def _first_pending_step(self) -> ApprovalStep | None:
        return next(
            (step for step in self.approval_flow if step.status == StepStatus.PENDING),
            None,
        )

    @property
    def current_approval_level(self) -> int | None:
        """Level of the first pending step, if any."""

        step = self._first_pending_step()
        return step.level if step else None

    @property
    def current_approver(self) -> str | None:
        """Approver of the first pending step, if any."""

        step = self._first_pending_step()
        return step.approver if step else None

    @property
    def is_fully_approved(self) -> bool:
        """True when every required step is approved.

        Informational only: completion of an approval flow is decided by
        the absence of pending steps, whether they are required or not.
        """

        return all(
            step.status == StepStatus.APPROVED
            for step in self.approval_flow
            if step.is_required
        )

    def has_pending_step_for(self, user_id: str) -> bool:
        """Return True when ``user_id`` still owns a pending step."""

        return any(
            step.approver == user_id and step.status == StepStatus.PENDING
            for step in self.approval_flow
        )

    def stamp(self, status: ExpenseStatus, when: datetime) -> None:
        """Set the timestamp for ``status`` the first time it is reached."""

        field_name = _STATUS_TIMESTAMPS.get(status)
        if field_name is not None and getattr(self, field_name) is None:
            setattr(self, field_name, when)


_STATUS_TIMESTAMPS: dict[ExpenseStatus, str] = {
    ExpenseStatus.SUBMITTED: "submitted_at",
    ExpenseStatus.APPROVED: "approved_at",
    ExpenseStatus.PAID: "paid_at",
}


class AmountRange(BaseModel):
    """Inclusive base-currency amount range; a missing bound is unbounded."""

    min: Annotated[Decimal, Field(ge=0)] | None = Field(default=None)
    max: Annotated[Decimal, Field(ge=0)] | None = Field(default=None)

    @model_validator(mode="after")
    def _validate_bounds(self) -> AmountRange:
        if self.min is not None and self.max is not None and self.max < self.min:
            msg = "amount_range.max must be greater than or equal to amount_range.min"
            raise ValueError(msg)
        return self

    def contains(self, value: Decimal) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


class RuleConditions(BaseModel):
    """Criteria an expense must meet for a rule to apply."""

    amount_range: AmountRange = Field(default_factory=AmountRange)
    categories: list[ExpenseCategory] = Field(
        default_factory=list, description="Allowed categories; empty means any"
    )
    departments: list[str] = Field(
        default_factory=list, description="Allowed departments; empty means any"
    )
    employee_roles: list[EmployeeRole] = Field(
        default_factory=list, description="Allowed submitter roles; empty means any"
    )
    specific_employees: list[str] = Field(
        default_factory=list, description="Allowed submitter ids; empty means any"
    )


class ApproverSpec(BaseModel):
    """Approver specification inside a workflow level."""

    role: ApproverKind = Field(..., description="How to resolve the approver")
    user: str | None = Field(
        default=None, description="User id for specific-user approvers"
    )
    is_required: bool = Field(default=True)


class WorkflowLevel(BaseModel):
    """One level of approvers."""

    level: int = Field(..., ge=1)
    approvers: list[ApproverSpec] = Field(default_factory=list)


class ApprovalWorkflow(BaseModel):
    """Ordered approval levels for a rule."""

    type: WorkflowType = Field(default=WorkflowType.SEQUENTIAL)
    levels: list[WorkflowLevel] = Field(default_factory=list)


class ApprovalRule(BaseModel):
    """Company-configured policy selecting who approves matching expenses."""

    rule_id: str = Field(..., description="Unique rule identifier")
    company_id: str = Field(..., description="Company the rule belongs to")
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_active: bool = Field(default=True)
    priority: int = Field(default=1, ge=1, description="Lower values win")
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    approval_workflow: ApprovalWorkflow = Field(default_factory=ApprovalWorkflow)

    model_config = ConfigDict(extra="forbid")

    def matches(self, expense: Expense, submitter: User | None) -> bool:
        """Return True when the rule applies to the expense and its submitter."""

        from .matching import rule_matches

        return rule_matches(self, expense, submitter)
