"""
Phase E — remove root NOPASSWD left behind by cloud-init.
"""

from __future__ import annotations

import logging
import re

from vps_setup.core.errors import PhaseSkipped
from vps_setup.core.models.options import SudoOptions
from vps_setup.core.services.phases.base import Flag, Phase, PhaseKey, Session
from vps_setup.core.services.phases.inputs import Prompter

logger = logging.getLogger(__name__)

CLOUD_SUDOERS = "/etc/sudoers.d/90-cloud-init-users"

ROOT_NOPASSWD = re.compile(r"^(\s*root\s+ALL=.*NOPASSWD.*)$", re.MULTILINE)


def comment_out_root_nopasswd(content: str) -> str:
    return ROOT_NOPASSWD.sub(r"# \1", content)


class SudoPhase(Phase):
    key = PhaseKey.SUDO
    letter = "e"
    label = "Sudo (remove root NOPASSWD)"
    options_model = SudoOptions
    flags = (
        Flag(
            "remove-nopasswd",
            "remove_nopasswd",
            "Comment out root NOPASSWD (default) or leave it.",
            kind="switch",
            off_name="keep-nopasswd",
        ),
    )

    def satisfied(self, session: Session, options: SudoOptions) -> bool:
        if not options.remove_nopasswd:
            return True
        content = session.files.read_text(CLOUD_SUDOERS)
        return content is None or ROOT_NOPASSWD.search(content) is None

    def prompt(self, prompter: Prompter, session: Session, options: SudoOptions) -> SudoOptions:
        prompter.show(f"Found root NOPASSWD in {CLOUD_SUDOERS} (weakens audit).")
        prompter.confirm("Comment out root NOPASSWD?", "n")
        return self.revise(options, remove_nopasswd=True)

    def apply(self, session: Session, options: SudoOptions) -> str:
        if not options.remove_nopasswd:
            return f"{CLOUD_SUDOERS} left unchanged."
        files = session.files
        content = files.read_text(CLOUD_SUDOERS)
        if content is None:
            raise PhaseSkipped("No cloud-init sudoers file found. Nothing to change.")
        updated = comment_out_root_nopasswd(content)
        if updated == content:
            return "No root NOPASSWD in file. Nothing to change."

        backup = f"{CLOUD_SUDOERS}.bak"
        files.write_protected_file(backup, content)
        files.set_mode(backup, "440")
        files.write_protected_file(CLOUD_SUDOERS, updated)
        files.set_mode(CLOUD_SUDOERS, "440")
        return f"Commented out root NOPASSWD. Restore from {backup} if needed."
