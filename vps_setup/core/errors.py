"""
Error taxonomy — every failure the core can raise.

Core services raise these; the CLI layer renders them as a single
``[ERROR]`` line and exits non-zero.  ``PhaseSkipped`` and
``UserDeclined`` are not failures: the runner turns them into
``skipped`` outcomes.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pydantic import ValidationError as PydanticValidationError


class VpsSetupError(Exception):
    """Base class for all vps-setup errors."""


class ConfigurationError(VpsSetupError):
    """The environment cannot support the operation.

    No privilege path, no package manager, unreadable plan file.
    Fatal for the entire run.
    """


class ValidationError(VpsSetupError):
    """Agent- or prompt-supplied input failed a presence/format check.

    Raised before any command runs, so no side effects have happened.
    """

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> ValidationError:
        """Collapse a pydantic error into one message naming the first bad field."""
        errors = exc.errors()
        if not errors:
            return cls("", str(exc))
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if not isinstance(p, int))
        msg = first.get("msg", "invalid value")
        # pydantic prefixes custom ValueErrors with "Value error, "
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        if len(errors) > 1:
            msg = f"{msg} (+{len(errors) - 1} more)"
        return cls(loc.replace("_", "-"), msg)


class ExecutionError(VpsSetupError):
    """A privileged command exited non-zero where failure was not tolerated."""

    def __init__(self, message: str, argv: Sequence[str] = (), returncode: int | None = None):
        self.argv = list(argv)
        self.returncode = returncode
        super().__init__(message)


class PhaseSkipped(VpsSetupError):
    """A phase decided there is nothing to do (unsupported distro, toggle off)."""

    def __init__(self, reason: str = ""):
        self.reason = reason
        super().__init__(reason)


class UserDeclined(PhaseSkipped):
    """The operator answered no/skip to an interactive prompt."""
