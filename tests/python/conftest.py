"""Test configuration for adding src to the import path."""

from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from expense_approvals import (
    ApprovalRule,
    ApprovalWorkflowEngine,
    BaseCurrencyAmount,
    Company,
    CompanySettings,
    EmployeeRole,
    Expense,
    ExpenseCategory,
    InMemoryDirectory,
    InMemoryExpenseRepository,
    InMemoryRuleStore,
    Money,
    User,
)


class TickingClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2025, 3, 1, 9, 0, tzinfo=UTC)
        self.calls = 0

    def __call__(self) -> datetime:
        self.calls += 1
        self.current = self.current + timedelta(minutes=1)
        return self.current


@pytest.fixture()
def directory() -> InMemoryDirectory:
    company = Company(
        company_id="acme",
        name="Acme Corp",
        base_currency="USD",
        settings=CompanySettings(auto_approval_limit=Decimal("100")),
    )
    users = [
        User(
            user_id="alex",
            company_id="acme",
            name="Alex Rivera",
            role=EmployeeRole.EMPLOYEE,
            department="Engineering",
            manager="morgan",
        ),
        User(
            user_id="morgan",
            company_id="acme",
            name="Morgan Lead",
            role=EmployeeRole.MANAGER,
            department="Engineering",
            manager="casey",
        ),
        User(user_id="casey", company_id="acme", name="Casey Chief", role=EmployeeRole.ADMIN),
        User(
            user_id="fran",
            company_id="acme",
            name="Fran Ledger",
            role=EmployeeRole.MANAGER,
            department="Finance",
            manager="casey",
        ),
        User(
            user_id="sam",
            company_id="acme",
            name="Sam Solo",
            role=EmployeeRole.EMPLOYEE,
            department="Sales",
        ),
    ]
    return InMemoryDirectory.from_records(users=users, companies=[company])


@pytest.fixture()
def rule_store() -> InMemoryRuleStore:
    return InMemoryRuleStore()


@pytest.fixture()
def repository() -> InMemoryExpenseRepository:
    return InMemoryExpenseRepository()


@pytest.fixture()
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture()
def engine(
    repository: InMemoryExpenseRepository,
    rule_store: InMemoryRuleStore,
    directory: InMemoryDirectory,
    clock: TickingClock,
) -> ApprovalWorkflowEngine:
    return ApprovalWorkflowEngine(
        expenses=repository, rules=rule_store, directory=directory, clock=clock
    )


@pytest.fixture()
def expense_factory() -> Callable[..., Expense]:
    def _factory(*, base_value: str | Decimal = "150.00", **overrides: object) -> Expense:
        value = Decimal(str(base_value))
        data: dict[str, object] = {
            "expense_id": "EXP-001",
            "submitted_by": "alex",
            "company_id": "acme",
            "title": "Client visit",
            "amount": Money(value=value, currency_code="USD"),
            "amount_in_base_currency": BaseCurrencyAmount(value=value),
            "category": ExpenseCategory.TRAVEL,
        }
        data.update(overrides)
        return Expense(**data)

    return _factory


@pytest.fixture()
def draft_expense(
    expense_factory: Callable[..., Expense], repository: InMemoryExpenseRepository
) -> Callable[..., Expense]:
    """Create a draft expense and store it in the repository."""

    def _factory(**overrides: object) -> Expense:
        return repository.add(expense_factory(**overrides))

    return _factory


@pytest.fixture()
def rule_factory() -> Callable[..., ApprovalRule]:
    def _factory(**overrides: object) -> ApprovalRule:
        data: dict[str, object] = {
            "rule_id": "R1",
            "company_id": "acme",
            "name": "Default rule",
            "priority": 1,
            "conditions": {},
            "approval_workflow": {
                "levels": [{"level": 1, "approvers": [{"role": "manager"}]}]
            },
        }
        data.update(overrides)
        if "name" not in overrides:
            data["name"] = f"Rule {data['rule_id']}"
        return ApprovalRule.model_validate(data)

    return _factory


@pytest.fixture()
def add_rule(
    rule_factory: Callable[..., ApprovalRule], rule_store: InMemoryRuleStore
) -> Callable[..., ApprovalRule]:
    def _factory(**overrides: object) -> ApprovalRule:
        return rule_store.put(rule_factory(**overrides))

    return _factory
