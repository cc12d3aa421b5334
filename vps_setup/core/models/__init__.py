"""
Domain models — Pydantic types for vps-setup.

All models are re-exported here for convenient access:

    from vps_setup.core.models import Outcome, FirewallOptions, PhaseOptions
"""

from vps_setup.core.models.options import (
    DEFAULT_ALLOW_PORTS,
    DEFAULT_DENY_PORTS,
    UFW_LOG_LEVELS,
    Fail2banOptions,
    FirewallOptions,
    MoshOptions,
    NginxOptions,
    PhaseOptions,
    PrerequisitesOptions,
    SshOptions,
    SudoOptions,
    UfwLoggingOptions,
    UpdatesOptions,
)
from vps_setup.core.models.outcome import Outcome

__all__ = [
    # options.py
    "DEFAULT_ALLOW_PORTS",
    "DEFAULT_DENY_PORTS",
    "Fail2banOptions",
    "FirewallOptions",
    "MoshOptions",
    "NginxOptions",
    "PhaseOptions",
    "PrerequisitesOptions",
    "SshOptions",
    "SudoOptions",
    "UFW_LOG_LEVELS",
    "UfwLoggingOptions",
    "UpdatesOptions",
    # outcome.py
    "Outcome",
]
