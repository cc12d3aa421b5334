"""
Phase H — UFW logging level.
"""

from __future__ import annotations

from vps_setup.core.errors import PhaseSkipped
from vps_setup.core.models.options import UFW_LOG_LEVELS, UfwLoggingOptions
from vps_setup.core.services.packages import is_pkg_installed
from vps_setup.core.services.phases.base import Flag, Phase, PhaseKey, Session
from vps_setup.core.services.phases.inputs import Prompter
from vps_setup.core.services.phases.ufw import ufw_status


class UfwLoggingPhase(Phase):
    key = PhaseKey.UFW_LOGGING
    letter = "h"
    label = "UFW logging level"
    options_model = UfwLoggingOptions
    flags = (Flag("level", "level", "UFW log level (default: medium).", kind="choice", choices=UFW_LOG_LEVELS),)

    def satisfied(self, session: Session, options: UfwLoggingOptions) -> bool:
        return ufw_status(session.executor).logging == options.level

    def prompt(self, prompter: Prompter, session: Session, options: UfwLoggingOptions) -> UfwLoggingOptions:
        _require_ufw(session)
        prompter.show(f"Current: Logging {ufw_status(session.executor).logging}")
        level = prompter.choose(
            "UFW logging level",
            [(lvl, lvl) for lvl in UFW_LOG_LEVELS],
            default=options.level,
        )
        prompter.confirm(f"Set UFW logging to '{level}'?", "n")
        return self.revise(options, level=level)

    def apply(self, session: Session, options: UfwLoggingOptions) -> str:
        _require_ufw(session)
        session.executor.run_root(["ufw", "logging", options.level])
        return f"UFW logging set to {options.level}."


def _require_ufw(session: Session) -> None:
    if not is_pkg_installed(session.executor, "ufw"):
        raise PhaseSkipped("UFW is not installed. Run the firewall phase first.")
