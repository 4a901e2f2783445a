"""Materialize an approval rule into concrete approval steps."""

from __future__ import annotations

from .logging_config import get_logger
from .models import ApprovalRule, ApprovalStep, ApproverKind, ApproverSpec, StepStatus, User

logger = get_logger("flow")


def _resolve_approver(spec: ApproverSpec, submitter: User) -> str | None:
    if spec.role == ApproverKind.SPECIFIC_USER:
        return spec.user
    if spec.role == ApproverKind.MANAGER:
        return submitter.manager
    return None


def build_approval_flow(rule: ApprovalRule, submitter: User) -> list[ApprovalStep]:
    """Return pending approval steps in level order, then approver order.

    Specifications that cannot be resolved to a user are left out, so the
    result may be empty.
    """

    steps: list[ApprovalStep] = []
    for level in rule.approval_workflow.levels:
        for spec in level.approvers:
            approver = _resolve_approver(spec, submitter)
            if approver is None:
                logger.warning(
                    "Skipping unresolved approver",
                    extra={
                        "rule_id": rule.rule_id,
                        "approval_level": level.level,
                        "approver_role": spec.role.value,
                    },
                )
                continue
            steps.append(
                ApprovalStep(
                    approver=approver,
                    level=level.level,
                    status=StepStatus.PENDING,
                    is_required=spec.is_required,
                )
            )
    return steps
