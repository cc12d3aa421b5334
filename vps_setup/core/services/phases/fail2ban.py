"""
Phase G — fail2ban with an sshd jail.
"""

from __future__ import annotations

import logging

from vps_setup.core.models.options import Fail2banOptions
from vps_setup.core.services.packages import (
    is_pkg_installed,
    packages_for,
    pkg_install,
    pkg_update,
    service_enabled,
    service_state,
)
from vps_setup.core.services.phases.base import Flag, Phase, PhaseKey, Session
from vps_setup.core.services.phases.inputs import Prompter

logger = logging.getLogger(__name__)

JAIL_DIR = "/etc/fail2ban/jail.d"
JAIL = f"{JAIL_DIR}/vps-setup-sshd.local"

JAIL_CONTENT = (
    "# Created by vps-setup - sshd jail\n"
    "[sshd]\n"
    "enabled = true\n"
    "maxretry = 5\n"
    "findtime = 10m\n"
    "bantime = 1h\n"
)


class Fail2banPhase(Phase):
    key = PhaseKey.FAIL2BAN
    letter = "g"
    label = "Fail2ban (optional)"
    options_model = Fail2banOptions
    flags = (Flag("enable", "enable", "Enable (or disable) fail2ban.", kind="switch"),)

    def satisfied(self, session: Session, options: Fail2banOptions) -> bool:
        ex = session.executor
        active = service_state(ex, "fail2ban") == "active"
        if not options.enable:
            return not active and not service_enabled(ex, "fail2ban")
        return (
            is_pkg_installed(ex, "fail2ban")
            and session.files.read_text(JAIL) == JAIL_CONTENT
            and active
        )

    def prompt(self, prompter: Prompter, session: Session, options: Fail2banOptions) -> Fail2banOptions:
        prompter.show("Will: install fail2ban, enable sshd jail.\n")
        prompter.confirm("Install and enable fail2ban (sshd jail)?", "n")
        return options

    def apply(self, session: Session, options: Fail2banOptions) -> str:
        ex = session.executor
        if not options.enable:
            ex.run_root(["systemctl", "disable", "--now", "fail2ban"])
            return "Fail2ban disabled."

        pkg_update(ex)
        pkg_install(ex, packages_for(session.context.package_manager, "fail2ban", ["fail2ban"]))
        if session.files.read_text(JAIL) != JAIL_CONTENT:
            session.files.make_dirs(JAIL_DIR)
            session.files.write_protected_file(JAIL, JAIL_CONTENT)
            session.files.set_mode(JAIL, "644")
        ex.run_root(["systemctl", "enable", "--now", "fail2ban"])
        ex.run_root(["systemctl", "restart", "fail2ban"])
        return "Fail2ban enabled. Check: sudo fail2ban-client status sshd"
