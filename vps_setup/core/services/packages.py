"""
Package management — per-distro package names, install and query.

Installs go through ``run_root``; installed-checks go through
``query`` and never mutate.  Without a package manager every install
is refused up front with a clear ConfigurationError.
"""

from __future__ import annotations

import logging

from vps_setup.adapters.shell.executor import PrivilegedExecutor
from vps_setup.core.distro import PackageManager
from vps_setup.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

_RHEL = {
    "ufw": ["ufw"],
    "updates": ["dnf-automatic"],
    "nginx": ["nginx", "certbot", "python3-certbot-nginx"],
    "fail2ban": ["fail2ban"],
    "mosh": ["mosh"],
}

# Package names per concern per package manager.
PACKAGES: dict[PackageManager, dict[str, list[str]]] = {
    PackageManager.APT: {
        "ufw": ["ufw"],
        "updates": ["unattended-upgrades", "apt-listchanges"],
        "nginx": ["nginx", "certbot", "python3-certbot-nginx"],
        "fail2ban": ["fail2ban"],
        "mosh": ["mosh"],
    },
    PackageManager.DNF: _RHEL,
    PackageManager.YUM: _RHEL,
    PackageManager.PACMAN: {
        "ufw": ["ufw"],
        "updates": [],
        "nginx": ["nginx", "certbot", "certbot-nginx"],
        "fail2ban": ["fail2ban"],
        "mosh": ["mosh"],
    },
    PackageManager.ZYPPER: {
        "ufw": ["ufw"],
        "updates": [],
        "nginx": ["nginx", "certbot", "python3-certbot-nginx"],
        "fail2ban": ["fail2ban"],
        "mosh": ["mosh"],
    },
}

_NO_MANAGER = "No supported package manager found (apt, dnf, yum, pacman, zypper)."


def packages_for(manager: PackageManager, concern: str, fallback: list[str] | None = None) -> list[str]:
    """Package names for ``concern`` on ``manager`` (``fallback`` if unknown)."""
    table = PACKAGES.get(manager)
    if table is None or concern not in table:
        return list(fallback or [])
    return list(table[concern])


def pkg_update(executor: PrivilegedExecutor) -> None:
    """Refresh package metadata where the manager needs it before installs."""
    manager = executor.context.package_manager
    if manager is PackageManager.APT:
        executor.run_root(["apt-get", "update", "-qq"])
    elif manager in (PackageManager.DNF, PackageManager.YUM):
        # check-update exits 100 when updates are available
        executor.run_root([manager.value, "check-update", "-q"], allow_fail=True)
    # pacman/zypper: no separate refresh needed before install


def pkg_install(executor: PrivilegedExecutor, packages: list[str]) -> None:
    """Install packages non-interactively.

    Raises:
        ConfigurationError: no supported package manager on this host.
        ExecutionError: the install command failed.
    """
    if not packages:
        return
    manager = executor.context.package_manager
    if manager is PackageManager.APT:
        cmd = ["apt-get", "install", "-y", *packages]
    elif manager in (PackageManager.DNF, PackageManager.YUM):
        cmd = [manager.value, "install", "-y", *packages]
    elif manager is PackageManager.PACMAN:
        cmd = ["pacman", "-S", "--needed", "--noconfirm", *packages]
    elif manager is PackageManager.ZYPPER:
        cmd = ["zypper", "--non-interactive", "install", *packages]
    else:
        raise ConfigurationError(_NO_MANAGER)
    logger.info("Installing %s via %s", ", ".join(packages), manager.value)
    executor.run_root(cmd)


def is_pkg_installed(executor: PrivilegedExecutor, pkg: str) -> bool:
    """Check if a single system package is installed.

    Uses the appropriate checker for the host's package manager:
      apt    → dpkg-query -W -f='${Status}' PKG
      dnf    → rpm -q PKG
      yum    → rpm -q PKG
      zypper → rpm -q PKG
      pacman → pacman -Q PKG
    """
    manager = executor.context.package_manager
    if manager is PackageManager.APT:
        r = executor.query(["dpkg-query", "-W", "-f=${Status}", pkg], privileged=False)
        return "install ok installed" in r.stdout
    if manager in (PackageManager.DNF, PackageManager.YUM, PackageManager.ZYPPER):
        return executor.query(["rpm", "-q", pkg], privileged=False).ok
    if manager is PackageManager.PACMAN:
        return executor.query(["pacman", "-Q", pkg], privileged=False).ok
    return False


def all_installed(executor: PrivilegedExecutor, packages: list[str]) -> bool:
    return all(is_pkg_installed(executor, pkg) for pkg in packages)


def service_state(executor: PrivilegedExecutor, unit: str) -> str:
    """``systemctl is-active`` state (``active``, ``inactive``, ...)."""
    r = executor.query(["systemctl", "is-active", unit], privileged=False)
    return r.stdout.strip() or "unknown"


def service_enabled(executor: PrivilegedExecutor, unit: str) -> bool:
    r = executor.query(["systemctl", "is-enabled", unit], privileged=False)
    return r.stdout.strip() == "enabled"
