"""
Phase runner — the state machine every phase goes through.

    Pending → Validating (agent) → CheckingSatisfaction (unless force)
            → Skipped | Reconfigure? (interactive, when satisfied)
            → Prompting (interactive) → Applying → Applied | Failed

The runner is the only place that turns exceptions into outcomes:

    PhaseSkipped / UserDeclined  → skipped (with the reason)
    ValidationError              → failed, error_kind="validation"
    ExecutionError               → failed, error_kind="execution"
    ConfigurationError           → propagates; fatal for the whole run

There is no rollback: a phase that fails midway leaves whatever its
completed steps changed, and re-running it converges.  A sequence of
phases stops at the first failure.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from vps_setup.core.errors import ExecutionError, PhaseSkipped, ValidationError
from vps_setup.core.models.outcome import Outcome
from vps_setup.core.persistence.ledger import LedgerEntry, RunLedger
from vps_setup.core.services.phases.base import Phase, Session
from vps_setup.core.services.phases.inputs import InputSource

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Outcomes of a sequence of phase runs."""

    outcomes: list[Outcome] = field(default_factory=list)

    @property
    def applied(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "applied")

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.failed)

    @property
    def all_ok(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> dict:
        return {
            "applied": self.applied,
            "skipped": self.skipped,
            "failed": self.failed,
            "outcomes": [o.model_dump(mode="json") for o in self.outcomes],
        }


class PhaseRunner:
    """Run phases against one session, recording outcomes in the ledger."""

    def __init__(self, session: Session, ledger: RunLedger | None = None):
        self.session = session
        self.ledger = ledger

    def run(self, phase: Phase, source: InputSource) -> Outcome:
        started_at = datetime.now(UTC).isoformat()
        start = time.monotonic()
        self.session.notes = []
        forced = False

        try:
            options = source.initial_options(phase)
            forced = options.force
            if not forced and phase.satisfied(self.session, options):
                logger.info("%s already satisfied", phase.key.value)
                revisit = source.reconfigure(phase, options)
                if revisit is None:
                    raise PhaseSkipped("Already satisfied.")
                options = revisit
            options = source.complete(phase, self.session, options)
            forced = options.force
            logger.info("Applying %s", phase.key.value)
            message = phase.apply(self.session, options)
            outcome = Outcome.applied(phase.key.value, message)
        except PhaseSkipped as e:
            logger.info("%s skipped: %s", phase.key.value, e.reason)
            outcome = Outcome.skip(phase.key.value, e.reason)
        except ValidationError as e:
            logger.info("%s rejected input: %s", phase.key.value, e)
            outcome = Outcome.failure(phase.key.value, str(e), "validation")
        except ExecutionError as e:
            logger.info("%s failed: %s (argv=%s)", phase.key.value, e, e.argv)
            outcome = Outcome.failure(phase.key.value, str(e), "execution")

        outcome = outcome.model_copy(
            update={
                "notes": list(self.session.notes),
                "forced": forced,
                "started_at": started_at,
                "ended_at": datetime.now(UTC).isoformat(),
                "duration_ms": int((time.monotonic() - start) * 1000),
            }
        )
        self._record(outcome, source)
        return outcome

    def run_many(self, items: Iterable[tuple[Phase, InputSource]]) -> RunReport:
        """Run phases in order, stopping after the first failed one."""
        report = RunReport()
        for phase, source in items:
            outcome = self.run(phase, source)
            report.outcomes.append(outcome)
            if outcome.failed:
                logger.info("Stopping after failed phase %s", phase.key.value)
                break
        return report

    def _record(self, outcome: Outcome, source: InputSource) -> None:
        if self.ledger is None:
            return
        ctx = self.session.context
        self.ledger.write(
            LedgerEntry.from_outcome(
                outcome,
                mode="interactive" if source.interactive else "agent",
                distro_id=ctx.distro_id,
                package_manager=ctx.package_manager.value,
                elevated=ctx.use_elevation,
            )
        )
