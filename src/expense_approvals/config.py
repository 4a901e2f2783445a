"""Load companies, users, and approval rules from YAML configuration."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from .models import ApprovalRule, Company, User
from .stores import InMemoryDirectory, InMemoryRuleStore

DEFAULT_ENV_VAR = "EXPENSE_APPROVAL_CONFIG"


def _default_config_path() -> Path | None:
    """Return the default approval configuration path if present."""

    for parent in Path(__file__).resolve().parents:
        candidate = parent / "config" / "approval_rules.yaml"
        if candidate.exists():
            return candidate
    return None


class PolicyConfig(BaseModel):
    """Companies, users, and rules describing an approval setup."""

    companies: list[Company] = Field(default_factory=list)
    users: list[User] = Field(default_factory=list)
    rules: list[ApprovalRule] = Field(default_factory=list)

    @classmethod
    def from_yaml(cls, content: str) -> PolicyConfig:
        """Parse and validate YAML content."""

        data = yaml.safe_load(content) or {}
        if not isinstance(data, dict):
            raise ValueError("Approval configuration must be a mapping")
        return cls.model_validate(data)

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> PolicyConfig:
        """Load configuration from a YAML file."""

        target_path = Path(path) if path is not None else _default_config_path()
        if target_path is None:
            raise FileNotFoundError("No approval configuration file found")
        return cls.from_yaml(target_path.read_text(encoding="utf-8"))

    @classmethod
    def from_environment(cls, env_var: str = DEFAULT_ENV_VAR) -> PolicyConfig:
        """Load configuration from an environment variable containing YAML."""

        content = os.getenv(env_var)
        if not content:
            raise ValueError(f"Environment variable '{env_var}' is not set or empty")
        return cls.from_yaml(content)

    def rule_store(self) -> InMemoryRuleStore:
        return InMemoryRuleStore.from_rules(self.rules)

    def directory(self) -> InMemoryDirectory:
        return InMemoryDirectory.from_records(users=self.users, companies=self.companies)
