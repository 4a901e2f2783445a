"""Administration of approval rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from .exceptions import InvalidStateError, NotFoundError, RequestValidationError
from .logging_config import get_logger
from .models import RESOLVABLE_APPROVER_KINDS, ApprovalRule, ApproverKind
from .stores import ExpenseRepository, RuleStore

logger = get_logger("rules")


def rule_problems(rule: ApprovalRule) -> list[str]:
    """Return reasons the rule cannot produce a usable approval flow."""

    problems: list[str] = []
    approver_count = 0
    for level in rule.approval_workflow.levels:
        for position, spec in enumerate(level.approvers, start=1):
            approver_count += 1
            where = f"level {level.level} approver {position}"
            if spec.role not in RESOLVABLE_APPROVER_KINDS:
                problems.append(
                    f"{where}: approver role '{spec.role.value}' is not supported"
                )
            elif spec.role == ApproverKind.SPECIFIC_USER and not spec.user:
                problems.append(f"{where}: specific-user approver requires a user")
    if approver_count == 0:
        problems.append("rule must define at least one approver")
    return problems


def _validate_rule(rule: ApprovalRule) -> None:
    problems = rule_problems(rule)
    if problems:
        raise RequestValidationError(
            f"Approval rule '{rule.name}' is invalid", problems=problems
        )


@dataclass
class RuleService:
    """Create, update, and delete approval rules for a company."""

    rules: RuleStore
    expenses: ExpenseRepository

    def get_rule(self, company_id: str, rule_id: str) -> ApprovalRule:
        rule = self.rules.get(rule_id)
        if rule.company_id != company_id:
            raise NotFoundError.for_resource("Approval rule", rule_id)
        return rule

    def list_rules(self, company_id: str) -> list[ApprovalRule]:
        return self.rules.list_rules(company_id)

    def _ensure_unique_name(
        self, company_id: str, name: str, exclude_rule_id: str | None = None
    ) -> None:
        for existing in self.rules.list_rules(company_id):
            if existing.name == name and existing.rule_id != exclude_rule_id:
                raise RequestValidationError(
                    "Approval rule with this name already exists", name=name
                )

    def create_rule(self, company_id: str, data: dict[str, Any]) -> ApprovalRule:
        """Validate and store a new rule."""

        payload = {**data, "company_id": company_id}
        payload.setdefault("rule_id", uuid4().hex)
        try:
            rule = ApprovalRule.model_validate(payload)
        except ValidationError as exc:
            raise RequestValidationError(
                "Approval rule payload is invalid", errors=exc.errors()
            ) from exc

        self._ensure_unique_name(company_id, rule.name)
        _validate_rule(rule)
        self.rules.add(rule)
        logger.info("Approval rule created", extra={"rule_id": rule.rule_id})
        return rule

    def update_rule(
        self, company_id: str, rule_id: str, changes: dict[str, Any]
    ) -> ApprovalRule:
        """Apply a partial update; nested ``conditions`` are merged."""

        current = self.get_rule(company_id, rule_id)
        data = current.model_dump()
        for key, value in changes.items():
            if key in {"rule_id", "company_id"}:
                continue
            if key == "conditions" and isinstance(value, dict):
                data["conditions"] = {**data["conditions"], **value}
            else:
                data[key] = value

        try:
            rule = ApprovalRule.model_validate(data)
        except ValidationError as exc:
            raise RequestValidationError(
                "Approval rule payload is invalid", errors=exc.errors()
            ) from exc

        if rule.name != current.name:
            self._ensure_unique_name(company_id, rule.name, exclude_rule_id=rule_id)
        _validate_rule(rule)
        self.rules.put(rule)
        logger.info("Approval rule updated", extra={"rule_id": rule_id})
        return rule

    def delete_rule(self, company_id: str, rule_id: str) -> None:
        """Delete a rule unless an in-flight expense still depends on it."""

        rule = self.get_rule(company_id, rule_id)
        in_flight = self.expenses.count_in_flight_for_rule(rule.rule_id)
        if in_flight > 0:
            raise InvalidStateError(
                f"Cannot delete rule: {in_flight} pending expenses are using this rule",
                rule_id=rule_id,
                pending_expenses=in_flight,
            )
        self.rules.delete(rule_id)
        logger.info("Approval rule deleted", extra={"rule_id": rule_id})
