"""
Phase D — SSH hardening through an sshd drop-in.

Target state: ``/etc/ssh/sshd_config.d/99-vps-setup.conf`` holds the
rendered level.  The main ``sshd_config`` is never edited.
"""

from __future__ import annotations

import logging
import os

from vps_setup.core.errors import UserDeclined
from vps_setup.core.models.options import SshOptions
from vps_setup.core.services.phases.base import Flag, Phase, PhaseKey, Session
from vps_setup.core.services.phases.inputs import Prompter
from vps_setup.core.validation import split_list, validate_username

logger = logging.getLogger(__name__)

SSHD_CONFIG_DIR = "/etc/ssh/sshd_config.d"
DROPIN = f"{SSHD_CONFIG_DIR}/99-vps-setup.conf"

_RESTART_HINT = "Restart SSH after testing in a NEW terminal: sudo systemctl restart sshd || sudo systemctl restart ssh"


def render_dropin(options: SshOptions) -> str:
    if options.level == "harden":
        return (
            "# Created by vps-setup - SSH hardening\n"
            "KbdInteractiveAuthentication no\n"
            "PasswordAuthentication no\n"
            "PermitRootLogin no\n"
            "MaxAuthTries 3\n"
            "X11Forwarding no\n"
            f"AllowUsers {' '.join(options.allow_users)}\n"
        )
    return (
        "# Created by vps-setup - match current VPS\n"
        "KbdInteractiveAuthentication no\n"
        "PermitRootLogin prohibit-password\n"
    )


def current_login() -> str:
    user = os.environ.get("SUDO_USER") or os.environ.get("USER") or "root"
    return user if validate_username(user) is None else "root"


class SshPhase(Phase):
    key = PhaseKey.SSH
    letter = "d"
    label = "SSH hardening"
    options_model = SshOptions
    flags = (
        Flag("level", "level", "match (safe) or harden.", kind="choice", choices=("match", "harden")),
        Flag("allow-users", "allow_users", "AllowUsers list (required with --level harden).", kind="list"),
        Flag("restart", "restart", "Validate and restart sshd after writing.", kind="switch"),
    )

    def satisfied(self, session: Session, options: SshOptions) -> bool:
        return session.files.read_text(DROPIN) == render_dropin(options)

    def prompt(self, prompter: Prompter, session: Session, options: SshOptions) -> SshOptions:
        bang = "!" * 80
        prompter.show(f"\n{bang}", style="danger")
        prompter.show("!!!  WARNING: YOU CAN BE LOCKED OUT OF THIS SERVER  !!!", style="danger")
        prompter.show(f"{bang}\n", style="danger")
        prompter.show("SSH hardening will disable password login and/or root login.", style="danger")
        prompter.show("If your SSH key login is not working, you will NOT be able to log in again.\n", style="danger")
        prompter.show("You MUST do this first, in a SEPARATE terminal (keep this one open):", style="warning")
        prompter.show("  1. Open a new terminal on your laptop.", style="warning")
        prompter.show("  2. Log in with: ssh <your-user>@<this-server-ip>", style="warning")
        prompter.show("  3. Confirm you get in using ONLY your SSH key (no password prompt).", style="warning")
        prompter.show('  4. Run "sudo -v" to confirm sudo works.', style="warning")
        prompter.show("  5. Leave that session open, then return here.\n", style="warning")

        verified = prompter.choose(
            "Have you verified key-only login from another terminal?",
            [
                ("y", "Yes - I have logged in with my key only and I am sure"),
                ("n", "No / Skip - I have not verified yet (SSH hardening will be skipped)"),
            ],
            default="n",
        )
        if verified != "y":
            raise UserDeclined("SSH hardening skipped. Verify key-only login, then run this phase again.")

        level = prompter.choose(
            "Hardening level",
            [
                ("match", "Match only (safe)"),
                ("harden", "Harden (key-only, no root, MaxAuthTries 3, X11 off, AllowUsers)"),
            ],
            default=options.level,
        )
        allow_users = options.allow_users
        if level == "harden":
            raw = prompter.text(
                "AllowUsers: comma-separated list, or Enter for the current user only",
                default=" ".join(allow_users) or current_login(),
            )
            allow_users = split_list(raw)
        restart = prompter.ask("Restart SSH now? (only if you have another session open)", "n") == "y"
        return self.revise(options, level=level, allow_users=allow_users, restart=restart)

    def apply(self, session: Session, options: SshOptions) -> str:
        files = session.files
        files.make_dirs(SSHD_CONFIG_DIR)
        files.write_protected_file(DROPIN, render_dropin(options))
        files.set_mode(DROPIN, "644")
        session.ok(f"Wrote {DROPIN}")

        if not options.restart:
            session.warn(_RESTART_HINT)
            return f"SSH drop-in written ({options.level})."

        ex = session.executor
        ex.run_root(["sshd", "-t"], capture=True)
        # Debian/Ubuntu name the unit "ssh", most others "sshd".
        r = ex.run_root(["systemctl", "restart", "sshd"], capture=True, allow_fail=True)
        if not r.ok:
            ex.run_root(["systemctl", "restart", "ssh"])
        session.warn("SSH restarted. Test login in a new terminal before closing this one.")
        return f"SSH drop-in written ({options.level}) and sshd restarted."
