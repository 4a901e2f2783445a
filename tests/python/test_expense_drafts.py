"""Tests for the draft expense lifecycle."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from expense_approvals.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    RequestValidationError,
)
from expense_approvals.expenses import ExpenseService, FixedRateConverter
from expense_approvals.models import ExpenseCategory, ExpenseStatus


@pytest.fixture()
def service(repository, directory) -> ExpenseService:
    converter = FixedRateConverter({("EUR", "USD"): Decimal("1.10")})
    return ExpenseService(expenses=repository, directory=directory, converter=converter)


def _payload(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "expense_id": "EXP-NEW",
        "title": "Team lunch",
        "category": "meals",
        "amount": {"value": "42.50", "currency_code": "USD"},
        "expense_date": date(2025, 1, 15),
    }
    data.update(overrides)
    return data


def test_create_draft_in_base_currency(service) -> None:
    expense = service.create_draft("alex", _payload())

    assert expense.status == ExpenseStatus.DRAFT
    assert expense.submitted_by == "alex"
    assert expense.company_id == "acme"
    assert expense.category == ExpenseCategory.MEALS
    assert expense.amount_in_base_currency.value == Decimal("42.50")
    assert expense.amount_in_base_currency.exchange_rate == Decimal("1")


def test_create_draft_converts_foreign_currency(service) -> None:
    expense = service.create_draft(
        "alex", _payload(amount={"value": "100", "currency_code": "EUR"})
    )

    assert expense.amount.currency_code == "EUR"
    assert expense.amount_in_base_currency.value == Decimal("110.00")
    assert expense.amount_in_base_currency.exchange_rate == Decimal("1.10")


def test_create_draft_without_rate_fails(service) -> None:
    with pytest.raises(NotFoundError, match="No exchange rate"):
        service.create_draft("alex", _payload(amount={"value": "5", "currency_code": "GBP"}))


def test_create_draft_rejects_bad_payload(service) -> None:
    with pytest.raises(RequestValidationError):
        service.create_draft("alex", _payload(amount={"value": "-1", "currency_code": "USD"}))
    with pytest.raises(RequestValidationError):
        service.create_draft("alex", _payload(category="yachts"))
    with pytest.raises(RequestValidationError, match="future"):
        service.create_draft(
            "alex", _payload(expense_date=date.today() + timedelta(days=30))
        )


def test_create_draft_for_unknown_user(service) -> None:
    with pytest.raises(NotFoundError):
        service.create_draft("ghost", _payload())


def test_update_draft_reconverts_amount(service) -> None:
    service.create_draft("alex", _payload())

    updated = service.update_draft(
        "EXP-NEW",
        "alex",
        {"amount": {"value": "20", "currency_code": "EUR"}, "status": "approved"},
    )

    assert updated.amount_in_base_currency.value == Decimal("22.00")
    assert updated.status == ExpenseStatus.DRAFT
    assert updated.version == 1


def test_update_keeps_conversion_when_amount_unchanged(service) -> None:
    created = service.create_draft(
        "alex", _payload(amount={"value": "10", "currency_code": "EUR"})
    )

    updated = service.update_draft("EXP-NEW", "alex", {"title": "Renamed"})

    assert updated.title == "Renamed"
    assert updated.amount_in_base_currency == created.amount_in_base_currency


def test_only_owner_may_edit_or_delete(service) -> None:
    service.create_draft("alex", _payload())

    with pytest.raises(ForbiddenError):
        service.update_draft("EXP-NEW", "morgan", {"title": "Mine now"})
    with pytest.raises(ForbiddenError):
        service.delete_draft("EXP-NEW", "morgan")


def test_submitted_expenses_are_locked(service, engine) -> None:
    service.create_draft("alex", _payload())
    engine.submit("EXP-NEW", "alex")

    with pytest.raises(InvalidStateError, match="Only draft expenses can be updated"):
        service.update_draft("EXP-NEW", "alex", {"title": "Too late"})
    with pytest.raises(InvalidStateError, match="Only draft expenses can be deleted"):
        service.delete_draft("EXP-NEW", "alex")


def test_delete_draft(service, repository) -> None:
    service.create_draft("alex", _payload())

    service.delete_draft("EXP-NEW", "alex")

    with pytest.raises(NotFoundError):
        repository.get("EXP-NEW")
