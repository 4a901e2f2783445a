"""Command-line interface for inspecting approval rule configuration."""

from __future__ import annotations

import argparse
import json
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import PolicyConfig
from .exceptions import ExpenseApprovalError
from .resolution import RuleResolver
from .rules import rule_problems


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"Invalid amount: {value}") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="expense-approvals",
        description="Preview and validate expense approval rules.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    preview = subparsers.add_parser(
        "preview", help="List active rules that would apply to an expense."
    )
    preview.add_argument("--config", type=Path, help="Path to the YAML configuration.")
    preview.add_argument("--company", required=True, help="Company identifier.")
    preview.add_argument(
        "--amount", required=True, type=_decimal, help="Base-currency amount."
    )
    preview.add_argument("--category", help="Expense category.")
    preview.add_argument("--department", help="Submitter department.")

    validate = subparsers.add_parser(
        "validate", help="Report rules that cannot produce a usable approval flow."
    )
    validate.add_argument("--config", type=Path, help="Path to the YAML configuration.")
    return parser


def _preview(config: PolicyConfig, args: argparse.Namespace) -> int:
    resolver = RuleResolver(config.rule_store())
    rules = resolver.resolve_applicable_rules(
        args.company, args.amount, category=args.category, department=args.department
    )
    payload = [
        {"rule_id": rule.rule_id, "name": rule.name, "priority": rule.priority}
        for rule in rules
    ]
    print(json.dumps(payload, indent=2))
    return 0


def _validate(config: PolicyConfig) -> int:
    failures = 0
    for rule in config.rules:
        for problem in rule_problems(rule):
            failures += 1
            print(f"{rule.rule_id}: {problem}", file=sys.stderr)
    if failures:
        return 1
    print(f"{len(config.rules)} rules OK")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = PolicyConfig.from_file(args.config)
        if args.command == "preview":
            return _preview(config, args)
        return _validate(config)
    except ValidationError as exc:
        print("Error: approval configuration validation failed.", file=sys.stderr)
        print(str(exc), file=sys.stderr)
        return 1
    except yaml.YAMLError as exc:
        print(f"Error: invalid YAML: {exc}", file=sys.stderr)
        return 1
    except ExpenseApprovalError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
