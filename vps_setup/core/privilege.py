"""
Privilege resolution — are we root, and if not, does sudo work?

Runs once at startup, before any phase.  The result feeds the
``ExecutionContext`` that every executor call consults.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable
from dataclasses import dataclass

import click

from vps_setup.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

ELEVATION_TOOL = "sudo"


@dataclass(frozen=True)
class Privilege:
    is_root: bool
    use_elevation: bool


def ensure_root(
    *,
    geteuid: Callable[[], int] = os.geteuid,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> Privilege:
    """Make sure privileged commands can run.

    As root nothing is probed.  Otherwise ``sudo -v`` is run with the
    terminal attached so the operator can enter a password; the cached
    credential is then reused by every elevated command.

    Raises:
        ConfigurationError: sudo is missing or validation failed.
    """
    if geteuid() == 0:
        logger.debug("Running as root, no elevation needed")
        return Privilege(is_root=True, use_elevation=False)

    click.secho(
        "This tool needs root for some steps. You may be asked for your password.\n",
        fg="yellow",
    )
    try:
        result = runner([ELEVATION_TOOL, "-v"])
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"{ELEVATION_TOOL} is not installed. Run this tool as root."
        ) from e

    if result.returncode != 0:
        raise ConfigurationError(
            f"{ELEVATION_TOOL} failed or password not entered. "
            f"Run with: {ELEVATION_TOOL} vps-setup"
        )

    logger.debug("%s credentials validated", ELEVATION_TOOL)
    return Privilege(is_root=False, use_elevation=True)
