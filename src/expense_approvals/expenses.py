"""Draft expense lifecycle: create, edit, and discard before submission."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol
from uuid import uuid4

from pydantic import ValidationError

from .exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    RequestValidationError,
)
from .logging_config import get_logger
from .models import BaseCurrencyAmount, Expense, ExpenseStatus, Money
from .stores import Directory, ExpenseRepository

logger = get_logger("expenses")

_CENT = Decimal("0.01")

_EDITABLE_FIELDS = frozenset(
    {"title", "description", "category", "expense_date", "vendor", "amount"}
)


class CurrencyConverter(Protocol):
    def convert(
        self, value: Decimal, from_currency: str, to_currency: str
    ) -> BaseCurrencyAmount: ...


@dataclass
class FixedRateConverter:
    """Converter backed by a static table of rates into each target currency.

    ``rates[(from, to)]`` is the multiplier applied to ``from`` amounts.
    """

    rates: Mapping[tuple[str, str], Decimal] = field(default_factory=dict)

    def convert(
        self, value: Decimal, from_currency: str, to_currency: str
    ) -> BaseCurrencyAmount:
        source, target = from_currency.upper(), to_currency.upper()
        if source == target:
            rate = Decimal("1")
        else:
            try:
                rate = Decimal(self.rates[(source, target)])
            except KeyError as exc:
                raise NotFoundError(
                    f"No exchange rate from {source} to {target}",
                    from_currency=source,
                    to_currency=target,
                ) from exc
        return BaseCurrencyAmount(
            value=(value * rate).quantize(_CENT, rounding=ROUND_HALF_UP),
            exchange_rate=rate,
            converted_at=datetime.now(UTC),
        )


@dataclass
class ExpenseService:
    """Manage draft expenses owned by their submitter."""

    expenses: ExpenseRepository
    directory: Directory
    converter: CurrencyConverter = field(default_factory=FixedRateConverter)

    def _to_base(self, amount: Money, company_id: str) -> BaseCurrencyAmount:
        company = self.directory.get_company(company_id)
        return self.converter.convert(
            amount.value, amount.currency_code, company.base_currency
        )

    def _owned_draft(self, expense_id: str, acting_user_id: str, verb: str) -> Expense:
        expense = self.expenses.get(expense_id)
        if expense.submitted_by != acting_user_id:
            raise ForbiddenError("Access denied", expense_id=expense_id)
        if expense.status != ExpenseStatus.DRAFT:
            raise InvalidStateError(
                f"Only draft expenses can be {verb}",
                expense_id=expense_id,
                status=expense.status.value,
            )
        return expense

    def create_draft(self, acting_user_id: str, data: dict[str, Any]) -> Expense:
        """Create a draft expense for the acting user."""

        user = self.directory.get_user(acting_user_id)
        try:
            amount = Money.model_validate(data.get("amount"))
            payload = {
                key: value for key, value in data.items() if key in _EDITABLE_FIELDS
            }
            payload.update(
                expense_id=data.get("expense_id") or uuid4().hex,
                submitted_by=user.user_id,
                company_id=user.company_id,
                amount=amount,
                amount_in_base_currency=self._to_base(amount, user.company_id),
                status=ExpenseStatus.DRAFT,
            )
            expense = Expense.model_validate(payload)
        except ValidationError as exc:
            raise RequestValidationError(
                "Expense payload is invalid", errors=exc.errors()
            ) from exc

        _reject_future_date(expense.expense_date)
        created = self.expenses.add(expense)
        logger.info(
            "Draft expense created",
            extra={"expense_id": created.expense_id, "actor_id": acting_user_id},
        )
        return created

    def update_draft(
        self, expense_id: str, acting_user_id: str, changes: dict[str, Any]
    ) -> Expense:
        """Apply edits to a draft, reconverting the amount when it changes."""

        expense = self._owned_draft(expense_id, acting_user_id, "updated")
        data = expense.model_dump()
        data.update(
            {key: value for key, value in changes.items() if key in _EDITABLE_FIELDS}
        )
        try:
            updated = Expense.model_validate(data)
            if "amount" in changes:
                updated.amount_in_base_currency = self._to_base(
                    updated.amount, updated.company_id
                )
        except ValidationError as exc:
            raise RequestValidationError(
                "Expense payload is invalid", errors=exc.errors()
            ) from exc

        _reject_future_date(updated.expense_date)
        return self.expenses.save(updated)

    def delete_draft(self, expense_id: str, acting_user_id: str) -> None:
        expense = self._owned_draft(expense_id, acting_user_id, "deleted")
        self.expenses.delete(expense_id, expected_version=expense.version)
        logger.info("Draft expense deleted", extra={"expense_id": expense_id})


def _reject_future_date(expense_date: date | None) -> None:
    if expense_date is not None and expense_date > datetime.now(UTC).date():
        raise RequestValidationError(
            "Expense date cannot be in the future", expense_date=expense_date.isoformat()
        )
