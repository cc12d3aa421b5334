"""
Phase A — prerequisites: a non-root admin user with an SSH key.

Target state: the user exists, belongs to the admin group
(``sudo`` or ``wheel``) and has the key in ``~/.ssh/authorized_keys``;
optionally passwordless sudo through a validated sudoers drop-in.
"""

from __future__ import annotations

import logging

from vps_setup.adapters.shell.executor import PrivilegedExecutor
from vps_setup.core.distro import PackageManager
from vps_setup.core.errors import ExecutionError, UserDeclined, ValidationError
from vps_setup.core.models.options import PrerequisitesOptions
from vps_setup.core.services.phases.base import Flag, Phase, PhaseKey, Session
from vps_setup.core.services.phases.inputs import Prompter

logger = logging.getLogger(__name__)

SUDOERS_DROPIN = "/etc/sudoers.d/90-vps-setup-{user}"

_VERIFY_REMINDER = "Verify key login and sudo from another terminal before enabling the firewall or changing SSH."


# ── Probes ──────────────────────────────────────────────────────


def user_exists(executor: PrivilegedExecutor, user: str) -> bool:
    return executor.query(["id", "--", user], privileged=False).ok


def user_groups(executor: PrivilegedExecutor, user: str) -> set[str]:
    r = executor.query(["id", "-nG", "--", user], privileged=False)
    return set(r.stdout.split()) if r.ok else set()


def home_dir(executor: PrivilegedExecutor, user: str) -> str:
    """Home directory from the passwd database, ``/home/<user>`` if unknown."""
    r = executor.query(["getent", "passwd", user], privileged=False)
    fields = r.stdout.strip().split(":")
    if r.ok and len(fields) >= 6 and fields[5]:
        return fields[5]
    return f"/home/{user}"


def has_key(session: Session, authorized_keys: str, key: str) -> bool:
    content = session.files.read_text(authorized_keys) or ""
    return key.strip() in (line.strip() for line in content.splitlines())


def sudoers_line(user: str) -> str:
    return f"{user} ALL=(ALL) NOPASSWD:ALL\n"


class PrerequisitesPhase(Phase):
    key = PhaseKey.PREREQUISITES
    letter = "a"
    label = "Prerequisites (user + SSH key)"
    options_model = PrerequisitesOptions
    flags = (
        Flag("user", "user", "Admin username to create or update (required)."),
        Flag("ssh-key", "ssh_key", "SSH public key, or path to a .pub file."),
        Flag("sudo-nopasswd", "sudo_nopasswd", "Grant passwordless sudo.", kind="switch"),
    )

    def satisfied(self, session: Session, options: PrerequisitesOptions) -> bool:
        user = options.user
        if not user:
            return False
        ex = session.executor
        if not user_exists(ex, user):
            return False
        if session.context.admin_group not in user_groups(ex, user):
            return False
        if options.ssh_key:
            keys = f"{home_dir(ex, user)}/.ssh/authorized_keys"
            if not has_key(session, keys, options.ssh_key):
                return False
        if options.sudo_nopasswd:
            dropin = SUDOERS_DROPIN.format(user=user)
            if session.files.read_text(dropin) != sudoers_line(user):
                return False
        return True

    def prompt(self, prompter: Prompter, session: Session, options: PrerequisitesOptions) -> PrerequisitesOptions:
        prompter.show("Before firewall or SSH changes:")
        prompter.show("  1. Create a non-root user with sudo")
        prompter.show("  2. Add your SSH public key to that user's ~/.ssh/authorized_keys")
        prompter.show("  3. From your laptop: ssh <user>@<vps-ip> and run sudo -v")
        prompter.show("  4. Keep this session open and test changes from a second terminal.\n")
        prompter.confirm("Create or update a sudo user now?", "n", decline=_VERIFY_REMINDER)

        user = options.user or prompter.text("Username for the admin user")
        if not user:
            raise UserDeclined("No username given; user creation skipped.")
        key = prompter.text("Paste your SSH public key (one line) or a .pub path, Enter to skip")
        nopasswd = prompter.ask("Allow passwordless sudo for this user?", "n") == "y"
        return self.revise(options, user=user, ssh_key=key or None, sudo_nopasswd=nopasswd)

    def apply(self, session: Session, options: PrerequisitesOptions) -> str:
        user = options.user
        if not user:
            raise ValidationError("user", "--user is required")
        ex = session.executor
        group = session.context.admin_group

        if user_exists(ex, user):
            session.info(f"User {user} already exists.")
        else:
            self._create_user(session, user)
            session.ok(f"Created {user}.")

        if group not in user_groups(ex, user):
            ex.run_root(["usermod", "-aG", group, user])
            session.ok(f"Added {user} to the {group} group.")

        ssh_dir = f"{home_dir(ex, user)}/.ssh"
        ex.run_root(["mkdir", "-p", ssh_dir])
        ex.run_root(["chmod", "700", ssh_dir])
        ex.run_root(["chown", f"{user}:", ssh_dir])

        if options.ssh_key:
            self._install_key(session, user, f"{ssh_dir}/authorized_keys", options.ssh_key)
        else:
            session.warn(f"No SSH key given. Add one to {ssh_dir}/authorized_keys")

        if options.sudo_nopasswd:
            self._grant_nopasswd(session, user)

        session.warn(_VERIFY_REMINDER)
        return f"{user} is ready (group {group})."

    # ── Steps ──────────────────────────────────────────────────

    def _create_user(self, session: Session, user: str) -> None:
        ex = session.executor
        if session.context.package_manager is PackageManager.APT:
            ex.run_root(["adduser", "--disabled-password", "--gecos", "", user])
        else:
            ex.run_root(["useradd", "-m", "-s", "/bin/bash", user])
            ex.run_root(["passwd", "-l", user])

    def _install_key(self, session: Session, user: str, path: str, key: str) -> None:
        ex = session.executor
        if has_key(session, path, key):
            session.info("SSH key already present.")
        else:
            ex.run_root(["tee", "-a", path], stdin=key.strip() + "\n", capture=True)
            session.ok(f"Key added. Test with: ssh {user}@<this-server-ip>")
        ex.run_root(["chmod", "600", path])
        ex.run_root(["chown", f"{user}:", path])

    def _grant_nopasswd(self, session: Session, user: str) -> None:
        dropin = SUDOERS_DROPIN.format(user=user)
        ex = session.executor
        session.files.write_protected_file(dropin, sudoers_line(user))
        try:
            ex.run_root(["visudo", "-cf", dropin], capture=True)
        except ExecutionError:
            # A broken sudoers file would break sudo for everyone.
            session.files.remove(dropin)
            raise
        session.files.set_mode(dropin, "440")
        session.ok(f"Passwordless sudo granted via {dropin}")
