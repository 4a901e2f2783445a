"""Storage contracts and in-memory implementations.

Expenses are versioned documents: ``save`` only succeeds when the caller's
copy carries the version currently stored, and every successful write bumps
the version. Reads always hand out deep copies so callers can mutate freely
without touching stored state.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from .exceptions import ConflictError, NotFoundError, RequestValidationError
from .models import (
    IN_FLIGHT_STATUSES,
    ApprovalRule,
    Company,
    Expense,
    ExpenseStatus,
    StepStatus,
    User,
)


class ExpenseRepository(Protocol):
    def get(self, expense_id: str) -> Expense: ...

    def add(self, expense: Expense) -> Expense: ...

    def save(self, expense: Expense) -> Expense: ...

    def delete(self, expense_id: str, *, expected_version: int) -> None: ...

    def pending_for_approver(self, approver_id: str) -> list[Expense]: ...

    def count_in_flight_for_rule(self, rule_id: str) -> int: ...


class RuleStore(Protocol):
    def get(self, rule_id: str) -> ApprovalRule: ...

    def list_rules(self, company_id: str) -> list[ApprovalRule]: ...

    def active_rules(self, company_id: str) -> list[ApprovalRule]: ...

    def add(self, rule: ApprovalRule) -> ApprovalRule: ...

    def put(self, rule: ApprovalRule) -> ApprovalRule: ...

    def delete(self, rule_id: str) -> None: ...


class Directory(Protocol):
    def get_user(self, user_id: str) -> User: ...

    def find_user(self, user_id: str) -> User | None: ...

    def get_company(self, company_id: str) -> Company: ...


@dataclass
class InMemoryExpenseRepository:
    """Thread-safe expense store with compare-and-swap writes."""

    expenses: dict[str, Expense] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def get(self, expense_id: str) -> Expense:
        with self._lock:
            stored = self.expenses.get(expense_id)
            if stored is None:
                raise NotFoundError.for_resource("Expense", expense_id)
            return stored.model_copy(deep=True)

    def add(self, expense: Expense) -> Expense:
        with self._lock:
            if expense.expense_id in self.expenses:
                raise RequestValidationError(
                    "Expense already exists", expense_id=expense.expense_id
                )
            stored = expense.model_copy(deep=True, update={"version": 0})
            self.expenses[expense.expense_id] = stored
            return stored.model_copy(deep=True)

    def save(self, expense: Expense) -> Expense:
        with self._lock:
            stored = self.expenses.get(expense.expense_id)
            if stored is None:
                raise NotFoundError.for_resource("Expense", expense.expense_id)
            if stored.version != expense.version:
                raise ConflictError(
                    "Expense was modified concurrently; reload and retry",
                    expense_id=expense.expense_id,
                    expected_version=expense.version,
                    current_version=stored.version,
                )
            updated = expense.model_copy(deep=True, update={"version": stored.version + 1})
            self.expenses[expense.expense_id] = updated
            return updated.model_copy(deep=True)

    def delete(self, expense_id: str, *, expected_version: int) -> None:
        with self._lock:
            stored = self.expenses.get(expense_id)
            if stored is None:
                raise NotFoundError.for_resource("Expense", expense_id)
            if stored.version != expected_version:
                raise ConflictError(
                    "Expense was modified concurrently; reload and retry",
                    expense_id=expense_id,
                    expected_version=expected_version,
                    current_version=stored.version,
                )
            del self.expenses[expense_id]

    def pending_for_approver(self, approver_id: str) -> list[Expense]:
        with self._lock:
            return [
                expense.model_copy(deep=True)
                for expense in self.expenses.values()
                if expense.status == ExpenseStatus.WAITING_APPROVAL
                and any(
                    step.approver == approver_id and step.status == StepStatus.PENDING
                    for step in expense.approval_flow
                )
            ]

    def count_in_flight_for_rule(self, rule_id: str) -> int:
        with self._lock:
            return sum(
                1
                for expense in self.expenses.values()
                if expense.approval_rule_id == rule_id
                and expense.status in IN_FLIGHT_STATUSES
            )


@dataclass
class InMemoryRuleStore:
    """Approval rules keyed by id, preserving insertion order."""

    rules: dict[str, ApprovalRule] = field(default_factory=dict)

    @classmethod
    def from_rules(cls, rules: Iterable[ApprovalRule]) -> InMemoryRuleStore:
        return cls({rule.rule_id: rule for rule in rules})

    def get(self, rule_id: str) -> ApprovalRule:
        rule = self.rules.get(rule_id)
        if rule is None:
            raise NotFoundError.for_resource("Approval rule", rule_id)
        return rule.model_copy(deep=True)

    def list_rules(self, company_id: str) -> list[ApprovalRule]:
        return [
            rule.model_copy(deep=True)
            for rule in self.rules.values()
            if rule.company_id == company_id
        ]

    def active_rules(self, company_id: str) -> list[ApprovalRule]:
        """Active rules for a company, ascending priority; ties keep insertion order."""

        active = [rule for rule in self.list_rules(company_id) if rule.is_active]
        return sorted(active, key=lambda rule: rule.priority)

    def add(self, rule: ApprovalRule) -> ApprovalRule:
        if rule.rule_id in self.rules:
            raise RequestValidationError(
                "Approval rule with this id already exists", rule_id=rule.rule_id
            )
        self.rules[rule.rule_id] = rule.model_copy(deep=True)
        return rule

    def put(self, rule: ApprovalRule) -> ApprovalRule:
        self.rules[rule.rule_id] = rule.model_copy(deep=True)
        return rule

    def delete(self, rule_id: str) -> None:
        if self.rules.pop(rule_id, None) is None:
            raise NotFoundError.for_resource("Approval rule", rule_id)


@dataclass
class InMemoryDirectory:
    """Read-only lookup of users and companies."""

    users: dict[str, User] = field(default_factory=dict)
    companies: dict[str, Company] = field(default_factory=dict)

    @classmethod
    def from_records(
        cls, users: Iterable[User] = (), companies: Iterable[Company] = ()
    ) -> InMemoryDirectory:
        return cls(
            users={user.user_id: user for user in users},
            companies={company.company_id: company for company in companies},
        )

    def find_user(self, user_id: str) -> User | None:
        return self.users.get(user_id)

    def get_user(self, user_id: str) -> User:
        user = self.find_user(user_id)
        if user is None:
            raise NotFoundError.for_resource("User", user_id)
        return user

    def get_company(self, company_id: str) -> Company:
        company = self.companies.get(company_id)
        if company is None:
            raise NotFoundError.for_resource("Company", company_id)
        return company
