"""
Status overview — satisfaction of every phase with default options.

Read-only: only satisfaction checks run, and those never mutate.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from vps_setup.core.errors import PhaseSkipped
from vps_setup.core.services.phases import PHASES, Phase, Session

logger = logging.getLogger(__name__)


@dataclass
class PhaseStatus:
    phase: str
    letter: str
    label: str
    state: str          # satisfied, pending, needs-input, unsupported
    detail: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def phase_status(session: Session, phase: Phase) -> PhaseStatus:
    row = PhaseStatus(phase=phase.key.value, letter=phase.letter, label=phase.label, state="pending")
    required = phase.options_model.REQUIRED
    if required:
        row.state = "needs-input"
        row.detail = "requires " + ", ".join(f"--{name.replace('_', '-')}" for name in required)
        return row
    try:
        if phase.satisfied(session, phase.default_options()):
            row.state = "satisfied"
    except PhaseSkipped as e:
        row.state = "unsupported"
        row.detail = e.reason
    return row


def collect_status(session: Session) -> list[PhaseStatus]:
    return [phase_status(session, phase) for phase in PHASES]
