"""
Plan loader — reads a YAML plan into validated agent-mode inputs.

A plan runs several phases in agent mode.  Keys are the same as the
agent flags (``allow-users``) or the option field names
(``allow_users``):

    phases:
      firewall:
        allow: [22/tcp, 80/tcp, 443/tcp]
        deny: 3000 8080
      ssh:
        level: harden
        allow-users: deploy
      ufw-logging:
        level: medium

Every phase in the plan is validated before any of them runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from vps_setup.core.errors import ConfigurationError, ValidationError
from vps_setup.core.services.phases import AgentInput, Phase, get_phase

logger = logging.getLogger(__name__)


class Plan(BaseModel):
    """Top-level plan file schema."""

    model_config = ConfigDict(extra="forbid")

    phases: dict[str, dict[str, Any] | None] = Field(default_factory=dict)


@dataclass
class PlanStep:
    phase: Phase
    source: AgentInput


def _field_values(phase: Phase, raw: dict[str, Any]) -> dict[str, Any]:
    """Map flag-style keys onto option field names."""
    by_flag = {flag.name: flag.field for flag in phase.flags}
    fields = set(phase.options_model.model_fields)
    values: dict[str, Any] = {}
    for key, value in raw.items():
        name = str(key)
        if name in by_flag:
            values[by_flag[name]] = value
        elif name.replace("-", "_") in fields:
            values[name.replace("-", "_")] = value
        else:
            known = ", ".join(sorted(by_flag) + ["force"])
            raise ConfigurationError(f"Unknown key '{name}' for phase {phase.key.value} (known: {known})")
    return values


def parse_plan(data: Any, source: str = "<plan>") -> list[PlanStep]:
    """Validate plan data into runnable steps, in file order.

    Raises:
        ConfigurationError: structural problems (unknown phase or key).
        ValidationError: a value failed its format check.
    """
    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a YAML mapping in {source}, got {type(data).__name__}")
    try:
        plan = Plan.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid plan {source}: {ValidationError.from_pydantic(e)}") from e
    if not plan.phases:
        raise ConfigurationError(f"Plan {source} lists no phases")

    steps: list[PlanStep] = []
    for name, raw in plan.phases.items():
        try:
            phase = get_phase(name)
        except KeyError as e:
            raise ConfigurationError(e.args[0]) from e
        source_input = AgentInput(_field_values(phase, raw or {}))
        try:
            source_input.initial_options(phase)
        except ValidationError as e:
            field = f"{phase.key.value}.{e.field}" if e.field else phase.key.value
            raise ValidationError(field, e.message) from e
        steps.append(PlanStep(phase=phase, source=source_input))
    return steps


def load_plan(path: Path) -> list[PlanStep]:
    """Load and validate a plan file.

    Raises:
        ConfigurationError: the file is missing, unreadable or malformed.
        ValidationError: a phase option failed validation.
    """
    if not path.is_file():
        raise ConfigurationError(f"Plan file not found: {path}")

    logger.debug("Loading plan from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    steps = parse_plan(data, str(path))
    logger.info("Loaded plan %s with %d phases", path, len(steps))
    return steps
