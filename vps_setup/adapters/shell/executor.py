"""
Privileged executor — the SINGLE PLACE where ``subprocess.run`` is called
for phase work.

Security rules:
- Commands are argument vectors, never shell strings (``shell=False``).
  A username such as ``bob; rm -rf /`` stays one literal argv token.
- When the context says elevation is needed, EVERY call is prefixed
  with the elevation tool; when running as root, none is.
- No timeouts: package installs and certificate issuance run to
  completion or fail.
"""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Sequence
from dataclasses import dataclass

from vps_setup.core.context import ExecutionContext
from vps_setup.core.errors import ExecutionError

logger = logging.getLogger(__name__)

# Shell convention for "command not found"
EXIT_NOT_FOUND = 127


@dataclass
class CommandResult:
    """Outcome of a single child process."""

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _check_argv(cmd: Sequence[str]) -> list[str]:
    if isinstance(cmd, (str, bytes)):
        raise TypeError("Commands must be argument vectors, not strings")
    argv = list(cmd)
    if not argv:
        raise ValueError("Empty command")
    for arg in argv:
        if not isinstance(arg, str):
            raise TypeError(f"Command arguments must be str, got {type(arg).__name__}")
    return argv


def _failure_message(result: CommandResult) -> str:
    return (
        result.stderr.strip()
        or result.stdout.strip()
        or f"Command failed: {' '.join(result.argv)}"
    )


class PrivilegedExecutor:
    """Run commands, elevating each one when the process is not root.

    ``run_root`` is for mutations, ``query`` for read-only probes used
    by satisfaction checks and status displays.
    """

    def __init__(self, context: ExecutionContext):
        self._context = context

    @property
    def context(self) -> ExecutionContext:
        return self._context

    def _elevate(self, argv: list[str]) -> list[str]:
        if self._context.use_elevation:
            return [self._context.elevation_tool, *argv]
        return argv

    def run_root(
        self,
        cmd: Sequence[str],
        *,
        stdin: str | None = None,
        capture: bool = False,
        allow_fail: bool = False,
    ) -> CommandResult:
        """Run a (mutating) command with root privileges.

        Args:
            cmd: Argument vector.
            stdin: Optional text piped to the child's stdin.
            capture: Collect stdout/stderr instead of inheriting the terminal.
            allow_fail: Return the result instead of raising on non-zero exit.

        Raises:
            ExecutionError: non-zero exit and ``allow_fail`` is False.
        """
        argv = self._elevate(_check_argv(cmd))
        result = self._spawn(argv, stdin=stdin, capture=capture, mutating=True)
        if not result.ok and not allow_fail:
            raise ExecutionError(_failure_message(result), argv, result.returncode)
        return result

    def query(self, cmd: Sequence[str], *, privileged: bool = True) -> CommandResult:
        """Run a read-only probe; output captured, failure tolerated."""
        argv = _check_argv(cmd)
        if privileged:
            argv = self._elevate(argv)
        return self._spawn(argv, stdin=None, capture=True, mutating=False)

    def _spawn(
        self,
        argv: list[str],
        *,
        stdin: str | None,
        capture: bool,
        mutating: bool,
    ) -> CommandResult:
        logger.debug("%s: %s", "run" if mutating else "query", argv)
        start = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                input=stdin,
                capture_output=capture,
                text=True,
                shell=False,
                check=False,
            )
        except FileNotFoundError:
            return CommandResult(
                argv=argv,
                returncode=EXIT_NOT_FOUND,
                stderr=f"Command not found: {argv[0]}",
            )
        elapsed_ms = int((time.monotonic() - start) * 1000)
        return CommandResult(
            argv=argv,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            duration_ms=elapsed_ms,
        )
