"""
UFW status parsing shared by the firewall, ufw-logging and mosh phases.

Parses ``ufw status verbose``:

    Status: active
    Logging: on (medium)
    Default: deny (incoming), allow (outgoing), deny (routed)
    New profiles: skip

    To                         Action      From
    --                         ------      ----
    22/tcp                     ALLOW IN    Anywhere
    3000                       DENY IN     Anywhere
    22/tcp (v6)                ALLOW IN    Anywhere (v6)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from vps_setup.adapters.shell.executor import PrivilegedExecutor

_COLUMNS = re.compile(r"\s{2,}")
_LOGGING = re.compile(r"^Logging:\s*(on|off)(?:\s*\((\w+)\))?", re.IGNORECASE)
_ACTIONS = ("ALLOW", "DENY", "REJECT", "LIMIT")


@dataclass
class UfwStatus:
    active: bool = False
    logging: str = "off"  # "off" or the level when on
    default_incoming: str = ""
    allow: set[str] = field(default_factory=set)
    deny: set[str] = field(default_factory=set)


def parse_ufw_status(output: str) -> UfwStatus:
    status = UfwStatus()
    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue
        lower = line.lower()
        if lower.startswith("status:"):
            status.active = lower.split(":", 1)[1].strip() == "active"
            continue
        m = _LOGGING.match(line)
        if m:
            status.logging = (m.group(2) or "low").lower() if m.group(1).lower() == "on" else "off"
            continue
        if lower.startswith("default:"):
            for part in lower.split(":", 1)[1].split(","):
                if "(incoming)" in part:
                    status.default_incoming = part.replace("(incoming)", "").strip()
            continue
        cols = _COLUMNS.split(line)
        if len(cols) < 2 or not cols[1]:
            continue
        action = cols[1].split()[0].upper()
        if action not in _ACTIONS:
            continue
        target = cols[0].replace(" (v6)", "").strip()
        if action in ("ALLOW", "LIMIT"):
            status.allow.add(target)
        else:
            status.deny.add(target)
    return status


def ufw_status(executor: PrivilegedExecutor) -> UfwStatus:
    """Read-only probe; an absent or broken ufw reads as inactive."""
    r = executor.query(["ufw", "status", "verbose"])
    if not r.ok:
        return UfwStatus()
    return parse_ufw_status(r.stdout)
