"""
Input sources — where a phase's options come from.

Two implementations feed the same phase body:

    AgentInput        pre-supplied flag values, validated up front,
                      never prompts
    InteractiveInput  starts from defaults and asks the operator via a
                      Prompter (``ClickPrompter`` on a terminal)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, Literal

import click

from vps_setup.core.errors import UserDeclined
from vps_setup.core.models.options import PhaseOptions
from vps_setup.core.services.phases.base import Phase, Session

Answer = Literal["y", "n", "s"]
ShowStyle = Literal["plain", "heading", "warning", "danger"]


class Prompter(ABC):
    """Operator dialogue used by ``Phase.prompt``."""

    @abstractmethod
    def show(self, message: str, *, style: ShowStyle = "plain") -> None:
        """Display a line of text."""

    @abstractmethod
    def ask(self, message: str, default: Answer = "s") -> Answer:
        """Yes / no / skip question."""

    @abstractmethod
    def text(self, message: str, default: str = "") -> str:
        """Free-text answer (stripped)."""

    @abstractmethod
    def choose(
        self,
        message: str,
        choices: Sequence[tuple[str, str]],
        default: str | None = None,
    ) -> str:
        """Pick one ``(value, label)`` pair; returns the value."""

    def confirm(self, message: str, default: Answer = "y", *, decline: str = "") -> None:
        """Ask; anything but yes raises UserDeclined with ``decline``."""
        if self.ask(message, default) != "y":
            raise UserDeclined(decline or "Skipped by operator.")


class ClickPrompter(Prompter):
    """Terminal prompts via click."""

    _STYLES: dict[str, dict[str, Any]] = {
        "plain": {},
        "heading": {"bold": True},
        "warning": {"fg": "yellow"},
        "danger": {"fg": "red", "bold": True},
    }

    def show(self, message: str, *, style: ShowStyle = "plain") -> None:
        click.secho(message, **self._STYLES[style])

    def ask(self, message: str, default: Answer = "s") -> Answer:
        return click.prompt(
            f"{message} (y=yes, n=no, s=skip)",
            type=click.Choice(["y", "n", "s"], case_sensitive=False),
            default=default,
            show_choices=False,
        ).lower()

    def text(self, message: str, default: str = "") -> str:
        return click.prompt(message, default=default, show_default=bool(default)).strip()

    def choose(
        self,
        message: str,
        choices: Sequence[tuple[str, str]],
        default: str | None = None,
    ) -> str:
        click.echo(message)
        for i, (_value, label) in enumerate(choices, start=1):
            click.echo(f"  {i}) {label}")
        values = [value for value, _ in choices]
        default_index = str(values.index(default) + 1) if default in values else None
        picked = click.prompt(
            "Choice",
            type=click.Choice([str(i) for i in range(1, len(choices) + 1)]),
            default=default_index,
            show_choices=False,
        )
        return values[int(picked) - 1]


class InputSource(ABC):
    """Supplies a phase's options for one run."""

    interactive: bool = False

    @abstractmethod
    def initial_options(self, phase: Phase) -> PhaseOptions:
        """Options used for the satisfaction check. Must not touch the host."""

    def reconfigure(self, phase: Phase, options: PhaseOptions) -> PhaseOptions | None:
        """Options to re-apply an already satisfied phase with, or None to skip."""
        return None

    def complete(self, phase: Phase, session: Session, options: PhaseOptions) -> PhaseOptions:
        """Fill in anything missing before apply."""
        return options


class AgentInput(InputSource):
    """Flag-driven input; everything is validated before the first command."""

    def __init__(self, values: Mapping[str, Any] | None = None):
        # Unset flags arrive as None and fall back to model defaults.
        self._values = {k: v for k, v in (values or {}).items() if v is not None}

    @property
    def values(self) -> dict[str, Any]:
        return dict(self._values)

    def initial_options(self, phase: Phase) -> PhaseOptions:
        return phase.parse_options(self._values, agent=True)


class InteractiveInput(InputSource):
    """Prompt-driven input."""

    interactive = True

    def __init__(self, prompter: Prompter | None = None, *, force: bool = False):
        self.prompter = prompter or ClickPrompter()
        self.force = force

    def initial_options(self, phase: Phase) -> PhaseOptions:
        return phase.default_options(force=self.force)

    def reconfigure(self, phase: Phase, options: PhaseOptions) -> PhaseOptions | None:
        if self.prompter.ask(f"{phase.title} is already satisfied. Reconfigure anyway?", "n") != "y":
            return None
        return phase.revise(options, force=True)

    def complete(self, phase: Phase, session: Session, options: PhaseOptions) -> PhaseOptions:
        self.prompter.show(f"\n========== {phase.title} ==========", style="heading")
        return phase.prompt(self.prompter, session, options)
