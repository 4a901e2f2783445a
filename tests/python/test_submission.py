"""Tests for submitting draft expenses into the approval workflow."""

from __future__ import annotations

import pytest

from expense_approvals.exceptions import (
    ConfigurationError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)
from expense_approvals.models import ApprovalStep, ExpenseStatus, StepStatus
from expense_approvals.workflow import ApprovalWorkflowEngine, TransitionLog


def test_submit_unknown_expense(engine) -> None:
    with pytest.raises(NotFoundError):
        engine.submit("missing", "alex")


def test_only_owner_can_submit(engine, draft_expense) -> None:
    draft_expense()

    with pytest.raises(ForbiddenError):
        engine.submit("EXP-001", "morgan")


def test_only_drafts_can_be_submitted(engine, draft_expense) -> None:
    draft_expense(status=ExpenseStatus.APPROVED)

    with pytest.raises(InvalidStateError, match="Only draft expenses can be submitted"):
        engine.submit("EXP-001", "alex")


def test_no_rule_under_limit_auto_approves(engine, draft_expense) -> None:
    draft_expense(base_value="50")

    expense = engine.submit("EXP-001", "alex")

    assert expense.status == ExpenseStatus.APPROVED
    assert expense.approval_flow == []
    assert expense.approved_at is not None
    assert expense.submitted_at is not None
    assert expense.approval_rule_id is None


def test_no_rule_at_limit_auto_approves(engine, draft_expense) -> None:
    draft_expense(base_value="100")

    assert engine.submit("EXP-001", "alex").status == ExpenseStatus.APPROVED


def test_no_rule_over_limit_routes_to_manager(engine, draft_expense) -> None:
    draft_expense(base_value="150")

    expense = engine.submit("EXP-001", "alex")

    assert expense.status == ExpenseStatus.WAITING_APPROVAL
    assert expense.approval_flow == [
        ApprovalStep(approver="morgan", level=1, status=StepStatus.PENDING, is_required=True)
    ]
    assert expense.approved_at is None
    assert expense.submitted_at is not None


def test_no_rule_over_limit_without_manager_fails(engine, draft_expense, repository) -> None:
    draft_expense(submitted_by="sam", base_value="150")

    with pytest.raises(ConfigurationError, match="No manager assigned"):
        engine.submit("EXP-001", "sam")

    stored = repository.get("EXP-001")
    assert stored.status == ExpenseStatus.DRAFT
    assert stored.submitted_at is None
    assert stored.version == 0


def test_matched_rule_builds_flow(engine, draft_expense, add_rule) -> None:
    add_rule(
        rule_id="travel",
        conditions={"categories": ["travel"]},
        approval_workflow={
            "levels": [
                {"level": 1, "approvers": [{"role": "manager"}]},
                {"level": 2, "approvers": [{"role": "specific-user", "user": "fran"}]},
            ]
        },
    )
    draft_expense(base_value="40")

    expense = engine.submit("EXP-001", "alex")

    assert expense.status == ExpenseStatus.WAITING_APPROVAL
    assert [(s.approver, s.level) for s in expense.approval_flow] == [
        ("morgan", 1),
        ("fran", 2),
    ]
    assert expense.approval_rule_id == "travel"
    assert expense.version == 1


def test_matched_rule_with_empty_flow_auto_approves(engine, draft_expense, add_rule) -> None:
    """A rule whose approvers all resolve to nobody approves immediately."""

    add_rule(rule_id="mgr-only")
    draft_expense(submitted_by="sam", base_value="5000")

    expense = engine.submit("EXP-001", "sam")

    assert expense.status == ExpenseStatus.APPROVED
    assert expense.approval_flow == []
    assert expense.approved_at is not None
    assert expense.approval_rule_id == "mgr-only"


def test_submission_records_transition(engine, draft_expense) -> None:
    draft_expense(base_value="150")

    engine.submit("EXP-001", "alex")

    [transition] = engine.transitions.for_expense("EXP-001")
    assert transition.previous_status == ExpenseStatus.DRAFT
    assert transition.new_status == ExpenseStatus.WAITING_APPROVAL
    assert transition.actor == "alex"


def test_resubmission_is_rejected(engine, draft_expense) -> None:
    draft_expense(base_value="150")
    engine.submit("EXP-001", "alex")

    with pytest.raises(InvalidStateError):
        engine.submit("EXP-001", "alex")


def test_unknown_submitter_falls_back_to_auto_approval(
    engine, draft_expense, add_rule
) -> None:
    add_rule(rule_id="catch-all")
    draft_expense(submitted_by="ghost", base_value="50")

    expense = engine.submit("EXP-001", "ghost")

    assert expense.status == ExpenseStatus.APPROVED
    assert expense.approval_rule_id is None


def test_unknown_submitter_over_limit_has_no_route(
    engine, draft_expense, add_rule
) -> None:
    add_rule(rule_id="catch-all")
    draft_expense(submitted_by="ghost", base_value="150")

    with pytest.raises(ConfigurationError, match="No manager assigned"):
        engine.submit("EXP-001", "ghost")


def test_transitions_collect_into_a_shared_log(
    repository, rule_store, directory, clock, draft_expense
) -> None:
    shared = TransitionLog()
    engine = ApprovalWorkflowEngine(
        expenses=repository,
        rules=rule_store,
        directory=directory,
        transitions=shared,
        clock=clock,
    )
    draft_expense(base_value="50")

    engine.submit("EXP-001", "alex")

    assert [t.new_status for t in shared.entries] == [ExpenseStatus.APPROVED]
