"""
Outcome model — the result contract of a phase run.

The runner turns every path through a phase into exactly one Outcome:
``skipped`` (already satisfied or declined), ``applied`` (changes
made) or ``failed`` (validation or execution error).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


OutcomeStatus = Literal["skipped", "applied", "failed"]
ErrorKind = Literal["validation", "execution"]


class Outcome(BaseModel):
    """Result of running one phase."""

    phase: str
    status: OutcomeStatus
    message: str = ""
    error_kind: ErrorKind | None = None
    notes: list[str] = Field(default_factory=list)   # advisories shown after the run
    forced: bool = False

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        """Whether the run ended without failure."""
        return self.status != "failed"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @classmethod
    def applied(cls, phase: str, message: str = "", **kwargs: Any) -> Outcome:
        """Create an applied outcome."""
        return cls(phase=phase, status="applied", message=message, **kwargs)

    @classmethod
    def skip(cls, phase: str, reason: str = "", **kwargs: Any) -> Outcome:
        """Create a skipped outcome."""
        return cls(phase=phase, status="skipped", message=reason, **kwargs)

    @classmethod
    def failure(
        cls,
        phase: str,
        error: str,
        error_kind: ErrorKind,
        **kwargs: Any,
    ) -> Outcome:
        """Create a failed outcome."""
        return cls(
            phase=phase,
            status="failed",
            message=error,
            error_kind=error_kind,
            **kwargs,
        )
