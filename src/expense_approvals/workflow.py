"""Approval workflow engine driving expenses through their status machine."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .exceptions import (
    ConfigurationError,
    ExpenseApprovalError,
    ForbiddenError,
    InvalidStateError,
    RequestValidationError,
)
from .flow import build_approval_flow
from .logging_config import LogContext, get_logger
from .models import (
    ApprovalAction,
    ApprovalStep,
    EmployeeRole,
    Expense,
    ExpenseStatus,
    StepStatus,
)
from .resolution import RuleResolver
from .stores import Directory, ExpenseRepository, RuleStore

logger = get_logger("workflow")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _parse_action(action: ApprovalAction | str) -> ApprovalAction:
    try:
        return ApprovalAction(action)
    except ValueError as exc:
        raise RequestValidationError(
            'Invalid action. Must be "approve" or "reject"', action=str(action)
        ) from exc


@dataclass(frozen=True)
class StatusTransition:
    """A single status change applied to an expense."""

    expense_id: str
    actor: str
    previous_status: ExpenseStatus
    new_status: ExpenseStatus
    timestamp: datetime
    rule_id: str | None = None


@dataclass
class TransitionLog:
    """Append-only in-memory record of status transitions."""

    entries: list[StatusTransition] = field(default_factory=list)

    def record(self, transition: StatusTransition) -> StatusTransition:
        self.entries.append(transition)
        return transition

    def for_expense(self, expense_id: str) -> list[StatusTransition]:
        return [entry for entry in self.entries if entry.expense_id == expense_id]


@dataclass
class ApprovalWorkflowEngine:
    """Submit expenses for approval and apply approver decisions.

    Every operation reads the expense, validates, mutates the copy, and
    writes it back once. A concurrent write surfaces as ``ConflictError``
    from the repository. ``transitions`` is an in-memory audit trail of the
    status changes this engine applied; pass a shared log to collect them
    elsewhere.
    """

    expenses: ExpenseRepository
    rules: RuleStore
    directory: Directory
    transitions: TransitionLog = field(default_factory=TransitionLog)
    clock: Callable[[], datetime] = _utcnow

    @property
    def resolver(self) -> RuleResolver:
        return RuleResolver(self.rules)

    def submit(self, expense_id: str, acting_user_id: str) -> Expense:
        """Move a draft expense to ``approved`` or ``waiting-approval``."""

        with LogContext.bind(actor_id=acting_user_id, expense_id=expense_id):
            try:
                expense = self.expenses.get(expense_id)
                with LogContext.bind(company_id=expense.company_id):
                    return self._submit(expense, acting_user_id)
            except ExpenseApprovalError as exc:
                logger.info("Submission refused", extra={"error_code": exc.code})
                raise

    def _submit(self, expense: Expense, acting_user_id: str) -> Expense:
        expense_id = expense.expense_id
        if expense.submitted_by != acting_user_id:
            raise ForbiddenError("Access denied", expense_id=expense_id)
        if expense.status != ExpenseStatus.DRAFT:
            raise InvalidStateError(
                "Only draft expenses can be submitted",
                expense_id=expense_id,
                status=expense.status.value,
            )

        company = self.directory.get_company(expense.company_id)
        submitter = self.directory.find_user(expense.submitted_by)
        rule = self.resolver.resolve(expense.company_id, expense, submitter)
        now = self.clock()
        previous_status = expense.status

        if rule is not None and submitter is not None:
            expense.approval_flow = build_approval_flow(rule, submitter)
            expense.approval_rule_id = rule.rule_id
            expense.status = (
                ExpenseStatus.WAITING_APPROVAL
                if expense.approval_flow
                else ExpenseStatus.APPROVED
            )
        else:
            limit = company.settings.auto_approval_limit
            if expense.amount_in_base_currency.value <= limit:
                expense.approval_flow = []
                expense.status = ExpenseStatus.APPROVED
            elif submitter is not None and submitter.manager:
                expense.approval_flow = [
                    ApprovalStep(
                        approver=submitter.manager,
                        level=1,
                        status=StepStatus.PENDING,
                        is_required=True,
                    )
                ]
                expense.status = ExpenseStatus.WAITING_APPROVAL
            else:
                raise ConfigurationError(
                    "No manager assigned and no approval rules configured",
                    expense_id=expense_id,
                    company_id=expense.company_id,
                )
            expense.approval_rule_id = None

        expense.stamp(ExpenseStatus.SUBMITTED, now)
        expense.stamp(expense.status, now)
        saved = self.expenses.save(expense)
        self._record(saved, acting_user_id, previous_status, now)
        return saved

    def act(
        self,
        expense_id: str,
        acting_user_id: str,
        action: ApprovalAction | str,
        comment: str | None = None,
    ) -> Expense:
        """Apply an approver's decision to their first pending step."""

        with LogContext.bind(actor_id=acting_user_id, expense_id=expense_id):
            try:
                decision = _parse_action(action)
                expense = self.expenses.get(expense_id)
                with LogContext.bind(company_id=expense.company_id):
                    return self._act(expense, acting_user_id, decision, comment)
            except ExpenseApprovalError as exc:
                logger.info("Approval action refused", extra={"error_code": exc.code})
                raise

    def _act(
        self,
        expense: Expense,
        acting_user_id: str,
        decision: ApprovalAction,
        comment: str | None,
    ) -> Expense:
        expense_id = expense.expense_id
        step = next(
            (
                candidate
                for candidate in expense.approval_flow
                if candidate.approver == acting_user_id
                and candidate.status == StepStatus.PENDING
            ),
            None,
        )
        if step is None:
            raise ForbiddenError(
                "You are not authorized to approve this expense "
                "or it has already been processed",
                expense_id=expense_id,
            )
        if expense.status != ExpenseStatus.WAITING_APPROVAL:
            raise InvalidStateError(
                "Only expenses waiting for approval can be acted on",
                expense_id=expense_id,
                status=expense.status.value,
            )

        now = self.clock()
        previous_status = expense.status
        step.comments = comment
        step.action_date = now

        if decision == ApprovalAction.REJECT:
            step.status = StepStatus.REJECTED
            expense.status = ExpenseStatus.REJECTED
            expense.rejection_reason = comment
        else:
            step.status = StepStatus.APPROVED
            if not any(s.status == StepStatus.PENDING for s in expense.approval_flow):
                expense.status = ExpenseStatus.APPROVED
                expense.stamp(ExpenseStatus.APPROVED, now)

        saved = self.expenses.save(expense)
        logger.info(
            "Approval step decided",
            extra={"decision": decision.value, "approval_level": step.level},
        )
        self._record(saved, acting_user_id, previous_status, now)
        return saved

    def mark_paid(self, expense_id: str, acting_user_id: str) -> Expense:
        """Record reimbursement of an approved expense."""

        with LogContext.bind(actor_id=acting_user_id, expense_id=expense_id):
            expense = self.expenses.get(expense_id)
            with LogContext.bind(company_id=expense.company_id):
                return self._mark_paid(expense, acting_user_id)

    def _mark_paid(self, expense: Expense, acting_user_id: str) -> Expense:
        actor = self.directory.get_user(acting_user_id)
        if actor.role != EmployeeRole.ADMIN or actor.company_id != expense.company_id:
            raise ForbiddenError(
                "Only company administrators can mark expenses as paid",
                expense_id=expense.expense_id,
            )
        if expense.status != ExpenseStatus.APPROVED:
            raise InvalidStateError(
                "Only approved expenses can be marked as paid",
                expense_id=expense.expense_id,
                status=expense.status.value,
            )

        now = self.clock()
        expense.status = ExpenseStatus.PAID
        expense.stamp(ExpenseStatus.PAID, now)
        saved = self.expenses.save(expense)
        self._record(saved, acting_user_id, ExpenseStatus.APPROVED, now)
        return saved

    def pending_approvals(self, approver_id: str) -> list[Expense]:
        """Expenses waiting on a pending step owned by ``approver_id``."""

        return self.expenses.pending_for_approver(approver_id)

    def _record(
        self,
        expense: Expense,
        actor: str,
        previous_status: ExpenseStatus,
        when: datetime,
    ) -> None:
        if expense.status == previous_status:
            return
        self.transitions.record(
            StatusTransition(
                expense_id=expense.expense_id,
                actor=actor,
                previous_status=previous_status,
                new_status=expense.status,
                timestamp=when,
                rule_id=expense.approval_rule_id,
            )
        )
        logger.info(
            "Expense status changed",
            extra={
                "previous_status": previous_status.value,
                "new_status": expense.status.value,
                "version": expense.version,
            },
        )
