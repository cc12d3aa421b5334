"""
Distro detection — package manager and admin group from os-release.

Read-only: parses ``/etc/os-release`` (or ``$OS_RELEASE_PATH``) and
probes PATH for the package manager binary.  The result is computed at
most once per process via ``get_distro_info()``.
"""

from __future__ import annotations

import functools
import logging
import os
import re
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_OS_RELEASE = "/etc/os-release"

_LINE_RE = re.compile(r"^([A-Z_]+)=(.*)$")


class PackageManager(str, Enum):
    """Supported package managers (closed set)."""

    APT = "apt"
    DNF = "dnf"
    YUM = "yum"
    PACMAN = "pacman"
    ZYPPER = "zypper"
    NONE = "none"


@dataclass(frozen=True)
class _Family:
    name: str
    ids: frozenset[str]
    like: tuple[str, ...]
    # (manager, executable probed on PATH), first present wins
    managers: tuple[tuple[PackageManager, str], ...]
    admin_group: str


# Order matters only for ID_LIKE substring matching.
_FAMILIES: tuple[_Family, ...] = (
    _Family(
        name="debian",
        ids=frozenset({"debian", "ubuntu", "raspbian", "linuxmint", "pop"}),
        like=("debian", "ubuntu"),
        managers=((PackageManager.APT, "apt-get"),),
        admin_group="sudo",
    ),
    _Family(
        name="rhel",
        ids=frozenset({"fedora", "rhel", "centos", "rocky", "almalinux", "alma", "ol"}),
        like=("fedora", "rhel", "centos"),
        managers=((PackageManager.DNF, "dnf"), (PackageManager.YUM, "yum")),
        admin_group="wheel",
    ),
    _Family(
        name="arch",
        ids=frozenset({"arch", "manjaro", "endeavouros"}),
        like=("arch",),
        managers=((PackageManager.PACMAN, "pacman"),),
        admin_group="wheel",
    ),
    _Family(
        name="suse",
        ids=frozenset({"opensuse", "opensuse-leap", "opensuse-tumbleweed", "sles"}),
        like=("suse", "opensuse"),
        managers=((PackageManager.ZYPPER, "zypper"),),
        admin_group="wheel",
    ),
)


@dataclass(frozen=True)
class DistroInfo:
    """What the phases need to know about the host OS."""

    distro_id: str = ""
    family: str = ""
    package_manager: PackageManager = PackageManager.NONE
    admin_group: str = "sudo"

    @property
    def supported(self) -> bool:
        return self.package_manager is not PackageManager.NONE


def read_os_release(path: str | Path | None = None) -> dict[str, str]:
    """Parse os-release ``KEY=value`` lines into a dict.

    Values may be wrapped in single or double quotes; one layer is
    stripped.  A missing or unreadable file yields ``{}``.
    """
    target = Path(path or os.environ.get("OS_RELEASE_PATH") or DEFAULT_OS_RELEASE)
    try:
        content = target.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError) as e:
        logger.debug("Cannot read %s: %s", target, e)
        return {}

    out: dict[str, str] = {}
    for line in content.splitlines():
        m = _LINE_RE.match(line.strip())
        if not m:
            continue
        key, value = m.group(1), m.group(2).strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        out[key] = value
    return out


def _match_family(distro_id: str, id_like: str) -> _Family | None:
    # Exact ID wins over any ID_LIKE hint.
    for family in _FAMILIES:
        if distro_id in family.ids:
            return family
    for family in _FAMILIES:
        if any(token in id_like for token in family.like):
            return family
    return None


def detect_distro(
    os_release: dict[str, str],
    which: Callable[[str], str | None] = shutil.which,
) -> DistroInfo:
    """Map os-release data to a package manager and admin group.

    Args:
        os_release: Parsed os-release mapping (see ``read_os_release``).
        which: PATH probe, injectable for tests.

    Returns:
        DistroInfo; ``package_manager`` is ``NONE`` when the family is
        unknown or none of its managers is installed.
    """
    distro_id = os_release.get("ID", "").lower()
    id_like = os_release.get("ID_LIKE", "").lower()

    family = _match_family(distro_id, id_like)
    if family is None:
        logger.info("Unrecognised distro (ID=%r, ID_LIKE=%r)", distro_id, id_like)
        return DistroInfo(distro_id=distro_id)

    manager = PackageManager.NONE
    for candidate, binary in family.managers:
        if which(binary):
            manager = candidate
            break

    if manager is PackageManager.NONE:
        logger.warning("No %s-family package manager found on PATH", family.name)

    return DistroInfo(
        distro_id=distro_id,
        family=family.name,
        package_manager=manager,
        admin_group=family.admin_group,
    )


@functools.cache
def get_distro_info() -> DistroInfo:
    """Detect the host distro once per process."""
    info = detect_distro(read_os_release())
    logger.debug("Distro: %s", info)
    return info
