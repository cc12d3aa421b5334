"""
Phase protocol — the contract between the runner and each phase.

A phase is a declarative target state:

    satisfied(session, options)         read-only: does the target hold?
    prompt(prompter, session, options)  interactive only: gather input
    apply(session, options)             mutate the host toward the target

``apply`` must be safe to re-run: after it succeeds, ``satisfied``
returns True for the same options.

To create a new phase:
    1. Subclass Phase, set key/letter/label/options_model/flags
    2. Implement satisfied and apply (and prompt, for interactive input)
    3. Add it to PHASES in ``phases/__init__.py``
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Literal

from pydantic import ValidationError as PydanticValidationError

from vps_setup.adapters.shell.executor import PrivilegedExecutor
from vps_setup.adapters.shell.filesystem import RootFileWriter
from vps_setup.core.context import ExecutionContext
from vps_setup.core.errors import ValidationError
from vps_setup.core.models.options import PhaseOptions

if TYPE_CHECKING:
    from vps_setup.core.services.phases.inputs import Prompter

logger = logging.getLogger(__name__)


class PhaseKey(str, Enum):
    """Stable phase identifiers (closed set)."""

    PREREQUISITES = "prerequisites"
    FIREWALL = "firewall"
    UPDATES = "updates"
    SSH = "ssh"
    SUDO = "sudo"
    NGINX = "nginx"
    FAIL2BAN = "fail2ban"
    UFW_LOGGING = "ufw-logging"
    MOSH = "mosh"


ReportLevel = Literal["info", "ok", "warn"]


@dataclass
class Session:
    """Everything a phase needs to inspect and change the host.

    ``report`` receives progress lines (the CLI renders them);
    warnings are also kept in ``notes`` for the outcome.
    """

    context: ExecutionContext
    executor: PrivilegedExecutor
    files: RootFileWriter
    report: Callable[[ReportLevel, str], None] | None = None
    notes: list[str] = field(default_factory=list)

    def info(self, message: str) -> None:
        self._emit("info", message)

    def ok(self, message: str) -> None:
        self._emit("ok", message)

    def warn(self, message: str) -> None:
        self.notes.append(message)
        self._emit("warn", message)

    def _emit(self, level: ReportLevel, message: str) -> None:
        logger.debug("[%s] %s", level, message)
        if self.report is not None:
            self.report(level, message)


FlagKind = Literal["switch", "list", "text", "choice"]


@dataclass(frozen=True)
class Flag:
    """One agent-mode flag and the option field it fills.

    ``switch`` flags render as ``--name/--off-name`` pairs; ``list``
    flags accept comma- or whitespace-separated values.
    """

    name: str
    field: str
    help: str
    kind: FlagKind = "text"
    choices: tuple[str, ...] = ()
    off_name: str | None = None

    @property
    def opt(self) -> str:
        return f"--{self.name}"

    @property
    def off_opt(self) -> str:
        return f"--{self.off_name or 'no-' + self.name}"


class Phase(ABC):
    """Base class for all phases."""

    key: ClassVar[PhaseKey]
    letter: ClassVar[str]
    label: ClassVar[str]
    options_model: ClassVar[type[PhaseOptions]] = PhaseOptions
    flags: ClassVar[tuple[Flag, ...]] = ()

    # ── Options ────────────────────────────────────────────────

    def default_options(self, *, force: bool = False) -> PhaseOptions:
        return self.options_model(force=force)

    def parse_options(self, values: Mapping[str, Any], *, agent: bool = True) -> PhaseOptions:
        """Validate raw values into this phase's options model.

        Raises:
            ValidationError: a field is missing or malformed.
        """
        try:
            return self.options_model.model_validate(dict(values), context={"agent": agent})
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

    def revise(self, options: PhaseOptions, **updates: Any) -> PhaseOptions:
        """Return a re-validated copy of ``options`` with ``updates`` applied."""
        return self.parse_options({**options.model_dump(), **updates}, agent=False)

    # ── Behaviour ──────────────────────────────────────────────

    @abstractmethod
    def satisfied(self, session: Session, options: PhaseOptions) -> bool:
        """Read-only probe of live state. Must never mutate."""

    def prompt(self, prompter: Prompter, session: Session, options: PhaseOptions) -> PhaseOptions:
        """Interactively complete ``options``; raise UserDeclined to skip."""
        return options

    @abstractmethod
    def apply(self, session: Session, options: PhaseOptions) -> str:
        """Bring the host to the target state; return a summary line."""

    @property
    def title(self) -> str:
        return f"Phase {self.letter.upper()}: {self.label}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} key={self.key.value!r}>"
