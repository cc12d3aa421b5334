"""
Phase I — mosh (mobile shell) and its UDP port range.
"""

from __future__ import annotations

from vps_setup.core.models.options import MoshOptions
from vps_setup.core.services.packages import is_pkg_installed, packages_for, pkg_install, pkg_update
from vps_setup.core.services.phases.base import Flag, Phase, PhaseKey, Session
from vps_setup.core.services.phases.inputs import Prompter
from vps_setup.core.services.phases.ufw import ufw_status

MOSH_RULE = "60000:61000/udp"


class MoshPhase(Phase):
    key = PhaseKey.MOSH
    letter = "i"
    label = "Mosh (optional)"
    options_model = MoshOptions
    flags = (Flag("enable", "enable", "Install mosh and open its UDP ports (or close them).", kind="switch"),)

    def satisfied(self, session: Session, options: MoshOptions) -> bool:
        status = ufw_status(session.executor)
        if not options.enable:
            return MOSH_RULE not in status.allow
        if not is_pkg_installed(session.executor, "mosh"):
            return False
        return not status.active or MOSH_RULE in status.allow

    def prompt(self, prompter: Prompter, session: Session, options: MoshOptions) -> MoshOptions:
        prompter.show(f"Will: install mosh and allow {MOSH_RULE} when UFW is active.\n")
        prompter.confirm("Install mosh?", "n")
        return options

    def apply(self, session: Session, options: MoshOptions) -> str:
        ex = session.executor
        active = ufw_status(ex).active
        if not options.enable:
            if active:
                ex.run_root(["ufw", "delete", "allow", MOSH_RULE])
            return f"Closed {MOSH_RULE}; the mosh package is left installed."

        pkg_update(ex)
        pkg_install(ex, packages_for(session.context.package_manager, "mosh", ["mosh"]))
        if not active:
            session.info("UFW is not active; no firewall rule added.")
            return "Mosh installed."
        ex.run_root(["ufw", "allow", MOSH_RULE])
        return f"Mosh installed and {MOSH_RULE} allowed."
