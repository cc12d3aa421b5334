"""
Root file writer — read and write privilege-protected paths.

An unprivileged process cannot write ``/etc/...`` directly, so writes
are staged: content goes to a unique scratch file, which is copied into
place with an elevated ``cp`` and removed in ``finally``.  As root the
destination is written directly.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import time
from pathlib import Path

from vps_setup.adapters.shell.executor import PrivilegedExecutor
from vps_setup.core.context import ExecutionContext

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = "vps-setup-"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def default_scratch_dir() -> Path:
    """``$VPS_SETUP_SCRATCH_DIR`` or the system temp directory."""
    return Path(os.environ.get("VPS_SETUP_SCRATCH_DIR") or tempfile.gettempdir())


def _scratch_prefix(path: str) -> str:
    fragment = _UNSAFE_CHARS.sub("-", path).strip("-")[-60:]
    return f"{SCRATCH_PREFIX}{time.time_ns()}-{fragment}-"


class RootFileWriter:
    """Filesystem access for phases, elevated where required."""

    def __init__(
        self,
        context: ExecutionContext,
        executor: PrivilegedExecutor,
        scratch_dir: Path | None = None,
    ):
        self._context = context
        self._executor = executor
        self._scratch_dir = scratch_dir

    @property
    def scratch_dir(self) -> Path:
        return self._scratch_dir or default_scratch_dir()

    # ── Write ──────────────────────────────────────────────────

    def write_protected_file(self, path: str, content: str) -> None:
        """Replace ``path`` with ``content``.

        The scratch file never outlives this call, whether the copy
        succeeds, fails or is interrupted.
        """
        if not self._context.use_elevation:
            Path(path).write_text(content, encoding="utf-8")
            logger.debug("Wrote %s directly (%d bytes)", path, len(content))
            return

        scratch = self.scratch_dir
        scratch.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=scratch, prefix=_scratch_prefix(path))
        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            self._executor.run_root(["cp", str(tmp), path])
            logger.debug("Wrote %s via %s (%d bytes)", path, tmp.name, len(content))
        finally:
            tmp.unlink(missing_ok=True)

    def make_dirs(self, path: str) -> None:
        self._executor.run_root(["mkdir", "-p", path])

    def remove(self, path: str) -> None:
        self._executor.run_root(["rm", "-f", path])

    def set_mode(self, path: str, mode: str) -> None:
        self._executor.run_root(["chmod", mode, path])

    # ── Read (never mutates) ───────────────────────────────────

    def read_text(self, path: str) -> str | None:
        """Return file content, or None when missing or unreadable."""
        try:
            return Path(path).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except PermissionError:
            if not self._context.use_elevation:
                logger.warning("Cannot read %s: permission denied", path)
                return None
        except OSError as e:
            logger.warning("Cannot read %s: %s", path, e)
            return None

        # Parent directory may be unreadable to us (e.g. /etc/sudoers.d)
        result = self._executor.query(["cat", path])
        return result.stdout if result.ok else None

    def exists(self, path: str) -> bool:
        if os.path.exists(path):
            return True
        if not self._context.use_elevation:
            return False
        return self._executor.query(["test", "-e", path]).ok
