"""Predicate deciding whether an approval rule applies to an expense."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - import cycles avoided at runtime
    from .models import ApprovalRule, Expense, User


def rule_matches(rule: ApprovalRule, expense: Expense, submitter: User | None) -> bool:
    """Return True when every configured condition of ``rule`` holds.

    Unconfigured conditions (an empty list, an unbounded amount) are always
    satisfied. A missing submitter never matches.
    """

    if submitter is None:
        return False

    conditions = rule.conditions
    if not conditions.amount_range.contains(expense.amount_in_base_currency.value):
        return False

    if conditions.categories and expense.category not in conditions.categories:
        return False

    # Submitters without a recorded department are not filtered out.
    if (
        conditions.departments
        and submitter.department
        and submitter.department not in conditions.departments
    ):
        return False

    if conditions.employee_roles and submitter.role not in conditions.employee_roles:
        return False

    if (
        conditions.specific_employees
        and submitter.user_id not in conditions.specific_employees
    ):
        return False

    return True
