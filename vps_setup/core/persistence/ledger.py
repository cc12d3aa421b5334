"""
Run ledger — append-only history of phase outcomes.

Every phase run appends one entry to an NDJSON (newline-delimited
JSON) file.  The ledger is for humans (``vps-setup history``); phases
never consult it to decide whether they are satisfied, since the host
may have been changed by other hands since.

Writing is best-effort: a ledger that cannot be written logs an error
and never aborts a phase.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from vps_setup.core.models.outcome import Outcome

logger = logging.getLogger(__name__)

DEFAULT_LEDGER = "~/.local/state/vps-setup/history.ndjson"
LEDGER_ENV = "VPS_SETUP_LEDGER"


def default_ledger_path() -> Path:
    return Path(os.environ.get(LEDGER_ENV) or DEFAULT_LEDGER).expanduser()


class LedgerEntry(BaseModel):
    """A single ledger line."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    phase: str = ""
    mode: str = ""                 # interactive, agent
    status: str = ""               # skipped, applied, failed
    message: str = ""
    error_kind: str | None = None
    forced: bool = False
    duration_ms: int = 0
    notes: list[str] = Field(default_factory=list)

    # Host context
    distro_id: str = ""
    package_manager: str = ""
    elevated: bool = False

    @classmethod
    def from_outcome(cls, outcome: Outcome, **context) -> LedgerEntry:
        return cls(
            timestamp=outcome.ended_at,
            phase=outcome.phase,
            status=outcome.status,
            message=outcome.message,
            error_kind=outcome.error_kind,
            forced=outcome.forced,
            duration_ms=outcome.duration_ms,
            notes=list(outcome.notes),
            **context,
        )


class RunLedger:
    """Append-only ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file and its directory are created if they don't exist.
    """

    def __init__(self, path: Path | None = None):
        self._path = path or default_ledger_path()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: LedgerEntry) -> None:
        """Append an entry; failures are logged, never raised."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Ledger entry written: %s/%s", entry.phase, entry.status)
        except OSError as e:
            logger.error("Failed to write ledger entry to %s: %s", self._path, e)

    def read_all(self) -> list[LedgerEntry]:
        """Read all entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(LedgerEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, PydanticValidationError) as e:
                        logger.warning("Skipping corrupt ledger entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read ledger %s: %s", self._path, e)

        return entries

    def read_recent(self, n: int = 20) -> list[LedgerEntry]:
        """Read the most recent N entries."""
        if n <= 0:
            return []
        return self.read_all()[-n:]

    def entry_count(self) -> int:
        """Count entries without parsing them."""
        if not self._path.is_file():
            return 0
        try:
            with self._path.open("r", encoding="utf-8") as f:
                return sum(1 for line in f if line.strip())
        except OSError:
            return 0
