"""
Execution context — the process-wide facts every phase depends on.

Built ONCE at startup by whichever entry point launches the run:

    - CLI:    main.py   → build_context()
    - Tests:  conftest  → ExecutionContext(...) directly

and then passed explicitly to the executor, the file writer and every
phase.  Nothing re-derives privilege or distro mid-run.
"""

from __future__ import annotations

import logging
import os

from pydantic import BaseModel, ConfigDict

from vps_setup.core.distro import DistroInfo, PackageManager, get_distro_info
from vps_setup.core.privilege import ELEVATION_TOOL, Privilege, ensure_root

logger = logging.getLogger(__name__)


class ExecutionContext(BaseModel):
    """Privilege and distro facts, immutable after construction."""

    model_config = ConfigDict(frozen=True)

    is_root: bool = False
    use_elevation: bool = True
    elevation_tool: str = ELEVATION_TOOL
    package_manager: PackageManager = PackageManager.NONE
    admin_group: str = "sudo"
    distro_id: str = ""

    @property
    def has_package_manager(self) -> bool:
        return self.package_manager is not PackageManager.NONE

    @classmethod
    def from_parts(cls, privilege: Privilege, distro: DistroInfo) -> ExecutionContext:
        return cls(
            is_root=privilege.is_root,
            use_elevation=privilege.use_elevation,
            package_manager=distro.package_manager,
            admin_group=distro.admin_group,
            distro_id=distro.distro_id,
        )


def build_context(*, probe_privilege: bool = True) -> ExecutionContext:
    """Resolve privilege and distro and freeze them into a context.

    Args:
        probe_privilege: When False (mock runs), skip ``sudo -v`` and
            derive elevation from the effective uid alone.

    Raises:
        ConfigurationError: privilege validation failed.
    """
    if probe_privilege:
        privilege = ensure_root()
    else:
        is_root = os.geteuid() == 0
        privilege = Privilege(is_root=is_root, use_elevation=not is_root)

    context = ExecutionContext.from_parts(privilege, get_distro_info())
    logger.info(
        "Context: distro=%s pm=%s group=%s elevation=%s",
        context.distro_id or "?",
        context.package_manager.value,
        context.admin_group,
        context.use_elevation,
    )
    return context
