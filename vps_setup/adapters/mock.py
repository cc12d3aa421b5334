"""
Mock adapters — test doubles for the executor and the file writer.

Used by ``--mock`` runs and the test-suite to exercise phases without
touching the host.  ``MockExecutor`` keeps the real elevation logic
(only process spawning is replaced) and records every call;
``MemoryFileWriter`` keeps files in a dict.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from vps_setup.adapters.shell.executor import CommandResult, PrivilegedExecutor
from vps_setup.adapters.shell.filesystem import RootFileWriter
from vps_setup.core.context import ExecutionContext


@dataclass
class RecordedCall:
    argv: list[str]
    stdin: str | None
    mutating: bool


class MockExecutor(PrivilegedExecutor):
    """Executor that records commands instead of running them.

    By default every command succeeds with empty output.  Responses can
    be configured per argv prefix (matched without the elevation tool);
    the most recently configured matching prefix wins.
    """

    def __init__(self, context: ExecutionContext | None = None):
        super().__init__(context or ExecutionContext())
        self._responses: list[tuple[tuple[str, ...], int, str, str]] = []
        self._calls: list[RecordedCall] = []

    @property
    def calls(self) -> list[RecordedCall]:
        return self._calls

    @property
    def mutations(self) -> list[list[str]]:
        """Argv of every mutating call, elevation prefix included."""
        return [c.argv for c in self._calls if c.mutating]

    @property
    def queries(self) -> list[list[str]]:
        return [c.argv for c in self._calls if not c.mutating]

    def set_response(
        self,
        prefix: Sequence[str],
        *,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        """Configure the result for commands starting with ``prefix``."""
        self._responses.append((tuple(prefix), returncode, stdout, stderr))

    def set_failure(self, prefix: Sequence[str], error: str = "Mock failure") -> None:
        self.set_response(prefix, returncode=1, stderr=error)

    def reset(self) -> None:
        self._calls.clear()
        self._responses.clear()

    def _unelevated(self, argv: list[str]) -> list[str]:
        if self.context.use_elevation and argv and argv[0] == self.context.elevation_tool:
            return argv[1:]
        return argv

    def _spawn(
        self,
        argv: list[str],
        *,
        stdin: str | None,
        capture: bool,
        mutating: bool,
    ) -> CommandResult:
        self._calls.append(RecordedCall(argv=list(argv), stdin=stdin, mutating=mutating))
        bare = tuple(self._unelevated(argv))
        for prefix, returncode, stdout, stderr in reversed(self._responses):
            if bare[: len(prefix)] == prefix:
                return CommandResult(argv=argv, returncode=returncode, stdout=stdout, stderr=stderr)
        return CommandResult(argv=argv, returncode=0)


class MemoryFileWriter(RootFileWriter):
    """In-memory stand-in for ``RootFileWriter``.

    ``files`` holds current content; ``writes`` logs every write in
    order so tests can assert that nothing was written.
    """

    def __init__(self, files: dict[str, str] | None = None):
        # No context or executor: nothing here reaches the host.
        self.files: dict[str, str] = dict(files or {})
        self.writes: list[tuple[str, str]] = []
        self.removed: list[str] = []
        self.dirs: list[str] = []
        self.modes: dict[str, str] = {}

    @property
    def mutation_count(self) -> int:
        return len(self.writes) + len(self.removed) + len(self.dirs) + len(self.modes)

    def write_protected_file(self, path: str, content: str) -> None:
        self.files[path] = content
        self.writes.append((path, content))

    def make_dirs(self, path: str) -> None:
        self.dirs.append(path)

    def remove(self, path: str) -> None:
        self.files.pop(path, None)
        self.removed.append(path)

    def set_mode(self, path: str, mode: str) -> None:
        self.modes[path] = mode

    def read_text(self, path: str) -> str | None:
        return self.files.get(path)

    def exists(self, path: str) -> bool:
        return path in self.files or path in self.dirs
