"""Select the approval rule that governs an expense."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .exceptions import RequestValidationError
from .models import ApprovalRule, Expense, ExpenseCategory, User
from .stores import RuleStore


@dataclass
class RuleResolver:
    """Resolve rules by priority; the first matching rule wins."""

    rules: RuleStore

    def resolve(
        self, company_id: str, expense: Expense, submitter: User | None
    ) -> ApprovalRule | None:
        """Return the highest-precedence active rule matching the expense."""

        for rule in self.rules.active_rules(company_id):
            if rule.matches(expense, submitter):
                return rule
        return None

    def resolve_applicable_rules(
        self,
        company_id: str,
        amount: Decimal,
        category: ExpenseCategory | str | None = None,
        department: str | None = None,
    ) -> list[ApprovalRule]:
        """Preview which active rules could apply to a prospective expense.

        Only amount, category, and department are considered; omitted
        values do not filter. Results are in priority order.
        """

        try:
            wanted_category = ExpenseCategory(category) if category is not None else None
        except ValueError as exc:
            raise RequestValidationError(
                f"Unknown expense category: {category}", category=category
            ) from exc

        applicable: list[ApprovalRule] = []
        for rule in self.rules.active_rules(company_id):
            conditions = rule.conditions
            if not conditions.amount_range.contains(amount):
                continue
            if (
                wanted_category is not None
                and conditions.categories
                and wanted_category not in conditions.categories
            ):
                continue
            if (
                department is not None
                and conditions.departments
                and department not in conditions.departments
            ):
                continue
            applicable.append(rule)
        return applicable
