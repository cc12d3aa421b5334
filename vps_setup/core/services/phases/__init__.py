"""
Phase registry — the ordered, closed catalogue of phases.

    from vps_setup.core.services.phases import PHASES, get_phase

    phase = get_phase("firewall")   # or get_phase("b")
"""

from __future__ import annotations

from vps_setup.core.services.phases.base import Flag, Phase, PhaseKey, Session
from vps_setup.core.services.phases.fail2ban import Fail2banPhase
from vps_setup.core.services.phases.firewall import FirewallPhase
from vps_setup.core.services.phases.inputs import (
    AgentInput,
    ClickPrompter,
    InputSource,
    InteractiveInput,
    Prompter,
)
from vps_setup.core.services.phases.mosh import MoshPhase
from vps_setup.core.services.phases.nginx import NginxPhase
from vps_setup.core.services.phases.prerequisites import PrerequisitesPhase
from vps_setup.core.services.phases.ssh import SshPhase
from vps_setup.core.services.phases.sudo import SudoPhase
from vps_setup.core.services.phases.ufw_logging import UfwLoggingPhase
from vps_setup.core.services.phases.updates import UpdatesPhase

PHASES: tuple[Phase, ...] = (
    PrerequisitesPhase(),
    FirewallPhase(),
    UpdatesPhase(),
    SshPhase(),
    SudoPhase(),
    NginxPhase(),
    Fail2banPhase(),
    UfwLoggingPhase(),
    MoshPhase(),
)

_BY_KEY: dict[str, Phase] = {p.key.value: p for p in PHASES}
_BY_LETTER: dict[str, Phase] = {p.letter: p for p in PHASES}


def get_phase(name: str | PhaseKey) -> Phase:
    """Look up a phase by key (``firewall``) or menu letter (``b``).

    Raises:
        KeyError: unknown phase.
    """
    if isinstance(name, PhaseKey):
        return _BY_KEY[name.value]
    token = name.strip().lower()
    phase = _BY_KEY.get(token) or _BY_LETTER.get(token)
    if phase is None:
        raise KeyError(f"Unknown phase: {name!r} (choose from {', '.join(_BY_KEY)})")
    return phase


__all__ = [
    "AgentInput",
    "ClickPrompter",
    "Flag",
    "InputSource",
    "InteractiveInput",
    "PHASES",
    "Phase",
    "PhaseKey",
    "Prompter",
    "Session",
    "get_phase",
]
