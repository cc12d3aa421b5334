"""
Phase C — automatic security updates.

apt:      unattended-upgrades + ``20auto-upgrades`` periodic settings
dnf/yum:  ``dnf-automatic-install.timer`` enabled
others:   not supported; the phase skips with an advisory
"""

from __future__ import annotations

import logging

from vps_setup.core.distro import PackageManager
from vps_setup.core.errors import PhaseSkipped
from vps_setup.core.models.options import UpdatesOptions
from vps_setup.core.services.packages import (
    all_installed,
    packages_for,
    pkg_install,
    pkg_update,
    service_enabled,
)
from vps_setup.core.services.phases.base import Flag, Phase, PhaseKey, Session
from vps_setup.core.services.phases.inputs import Prompter

logger = logging.getLogger(__name__)

AUTO_UPGRADES = "/etc/apt/apt.conf.d/20auto-upgrades"
UNATTENDED_UPGRADES = "/etc/apt/apt.conf.d/50unattended-upgrades"
DNF_TIMER = "dnf-automatic-install.timer"


def auto_upgrades_content(enable: bool) -> str:
    flag = "1" if enable else "0"
    return (
        f'APT::Periodic::Update-Package-Lists "{flag}";\n'
        f'APT::Periodic::Unattended-Upgrade "{flag}";\n'
    )


def _require_support(session: Session) -> list[str]:
    pkgs = packages_for(session.context.package_manager, "updates")
    if not pkgs:
        raise PhaseSkipped(
            "Automatic security updates are not configured for this distro. Configure manually if desired."
        )
    return pkgs


class UpdatesPhase(Phase):
    key = PhaseKey.UPDATES
    letter = "c"
    label = "Automatic security updates"
    options_model = UpdatesOptions
    flags = (Flag("enable", "enable", "Enable (or disable) automatic updates.", kind="switch"),)

    def satisfied(self, session: Session, options: UpdatesOptions) -> bool:
        pkgs = _require_support(session)
        ex = session.executor
        if session.context.package_manager is PackageManager.APT:
            current = session.files.read_text(AUTO_UPGRADES)
            if not options.enable:
                return current is None or current == auto_upgrades_content(False)
            return all_installed(ex, pkgs) and current == auto_upgrades_content(True)
        return service_enabled(ex, DNF_TIMER) == options.enable

    def prompt(self, prompter: Prompter, session: Session, options: UpdatesOptions) -> UpdatesOptions:
        _require_support(session)
        prompter.show("Will: install and enable automatic security updates (no auto-reboot).\n")
        prompter.confirm("Configure automatic updates?", "y")
        return options

    def apply(self, session: Session, options: UpdatesOptions) -> str:
        pkgs = _require_support(session)
        ex = session.executor
        apt = session.context.package_manager is PackageManager.APT

        if not options.enable:
            if apt:
                session.files.write_protected_file(AUTO_UPGRADES, auto_upgrades_content(False))
            else:
                ex.run_root(["systemctl", "disable", "--now", DNF_TIMER])
            return "Automatic updates disabled."

        pkg_update(ex)
        pkg_install(ex, pkgs)
        if apt:
            session.files.write_protected_file(AUTO_UPGRADES, auto_upgrades_content(True))
            fifty = session.files.read_text(UNATTENDED_UPGRADES) or ""
            if 'updates";' in fifty:
                session.warn(f"{UNATTENDED_UPGRADES} may include -updates. Check that file.")
        else:
            ex.run_root(["systemctl", "enable", "--now", DNF_TIMER])
        return "Security updates will run automatically (daily/timer)."
