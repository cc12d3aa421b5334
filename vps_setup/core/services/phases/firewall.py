"""
Phase B — firewall (UFW).

Target state: ufw active with default-deny incoming, every requested
allow rule present and no requested deny port exposed.  Rules added
by other phases (mosh) or by hand are left alone.
"""

from __future__ import annotations

import logging
import re

from vps_setup.core.models.options import FirewallOptions
from vps_setup.core.services.packages import is_pkg_installed, packages_for, pkg_install, pkg_update
from vps_setup.core.services.phases.base import Flag, Phase, PhaseKey, Session
from vps_setup.core.services.phases.inputs import Prompter
from vps_setup.core.services.phases.ufw import ufw_status
from vps_setup.core.validation import split_list

logger = logging.getLogger(__name__)

UFW_DEFAULTS = "/etc/default/ufw"
SSH_RULE = "22/tcp"

_IPV6_LINE = re.compile(r"^IPV6=.*$", re.MULTILINE)


def _added_rules(output: str) -> set[str]:
    """Rules from ``ufw show added`` (``ufw allow 22/tcp`` lines)."""
    rules = set()
    for line in output.splitlines():
        parts = line.split()
        if len(parts) == 3 and parts[0] == "ufw":
            rules.add(f"{parts[1]} {parts[2]}")
    return rules


class FirewallPhase(Phase):
    key = PhaseKey.FIREWALL
    letter = "b"
    label = "Firewall (UFW)"
    options_model = FirewallOptions
    flags = (
        Flag("allow", "allow_ports", "Ports to allow (default: 22/tcp 80/tcp 443/tcp).", kind="list"),
        Flag("deny", "deny_ports", "Ports to deny (default: 3000 8080).", kind="list"),
        Flag("enable", "enable", "Enable ufw after adding rules.", kind="switch"),
    )

    def satisfied(self, session: Session, options: FirewallOptions) -> bool:
        ex = session.executor
        if not options.enable:
            # Inactive ufw does not list rules in status; ask for the added ones.
            r = ex.query(["ufw", "show", "added"])
            if not r.ok:
                return False
            added = _added_rules(r.stdout)
            wanted = {f"allow {p}" for p in options.allow_ports} | {f"deny {p}" for p in options.deny_ports}
            return wanted <= added

        status = ufw_status(ex)
        if not status.active or status.default_incoming != "deny":
            return False
        if not set(options.allow_ports) <= status.allow:
            return False
        return not (set(options.deny_ports) & status.allow)

    def prompt(self, prompter: Prompter, session: Session, options: FirewallOptions) -> FirewallOptions:
        prompter.show(
            "Will: install ufw, default deny incoming, "
            f"allow {' '.join(options.allow_ports)}, deny {' '.join(options.deny_ports)}.\n"
        )
        prompter.confirm("Configure the firewall?", "y")
        extra = split_list(prompter.text("Extra ports to DENY (space-separated), Enter to skip"))
        enable = prompter.ask("Enable UFW now?", "y") == "y"
        deny = options.deny_ports + [p for p in extra if p not in options.deny_ports]
        return self.revise(options, deny_ports=deny, enable=enable)

    def apply(self, session: Session, options: FirewallOptions) -> str:
        ex = session.executor
        if not is_pkg_installed(ex, "ufw"):
            pkg_update(ex)
            pkg_install(ex, packages_for(session.context.package_manager, "ufw", ["ufw"]))

        ex.run_root(["ufw", "default", "deny", "incoming"])
        ex.run_root(["ufw", "default", "allow", "outgoing"])
        ex.run_root(["ufw", "default", "deny", "routed"])
        for port in options.allow_ports:
            ex.run_root(["ufw", "allow", port])
        for port in options.deny_ports:
            ex.run_root(["ufw", "deny", port])

        self._enable_ipv6(session)
        ex.run_root(["ufw", "show", "added"])

        if SSH_RULE not in options.allow_ports:
            session.warn(f"{SSH_RULE} is not in the allow list; SSH access may be blocked.")
        if not options.enable:
            session.warn("UFW not enabled. Run: sudo ufw enable")
            return "Firewall rules added (ufw not enabled)."
        ex.run_root(["ufw", "--force", "enable"])
        return f"UFW enabled: allow {', '.join(options.allow_ports)}."

    def _enable_ipv6(self, session: Session) -> None:
        content = session.files.read_text(UFW_DEFAULTS)
        if content is None or "IPV6=yes" in content or "IPV6=" not in content:
            return
        session.files.write_protected_file(UFW_DEFAULTS, _IPV6_LINE.sub("IPV6=yes", content))
        session.ok("Enabled IPv6 rules in /etc/default/ufw")
