"""Adapters — process and filesystem bindings for the phases.

Public re-exports for convenient access.
"""

from vps_setup.adapters.mock import MemoryFileWriter, MockExecutor
from vps_setup.adapters.shell.executor import CommandResult, PrivilegedExecutor
from vps_setup.adapters.shell.filesystem import RootFileWriter

__all__ = [
    "CommandResult",
    "MemoryFileWriter",
    "MockExecutor",
    "PrivilegedExecutor",
    "RootFileWriter",
]
