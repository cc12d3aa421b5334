"""
Shared test fixtures and configuration.
"""

from collections.abc import Sequence
from pathlib import Path

import pytest

from vps_setup.adapters.mock import MemoryFileWriter, MockExecutor
from vps_setup.core.context import ExecutionContext
from vps_setup.core.distro import DistroInfo, PackageManager, get_distro_info
from vps_setup.core.services.phases import Prompter, Session

ED25519_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIOMqqnkVzrm0SdG6UOoqKLsabgH5C9okWi0dh2l9GKJl deploy@laptop"


class ScriptedPrompter(Prompter):
    """Prompter that replays canned answers in order."""

    def __init__(self, answers: Sequence[str] = ()):
        self.answers = list(answers)
        self.shown: list[str] = []
        self.asked: list[str] = []

    def _next(self, message: str) -> str:
        self.asked.append(message)
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {message}")
        return self.answers.pop(0)

    def show(self, message, *, style="plain"):
        self.shown.append(message)

    def ask(self, message, default="s"):
        return self._next(message)

    def text(self, message, default=""):
        answer = self._next(message)
        return default if answer == "" else answer

    def choose(self, message, choices, default=None):
        return self._next(message)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path: Path):
    """Keep ledger, scratch files and log settings inside tmp_path."""
    get_distro_info.cache_clear()
    monkeypatch.setenv("VPS_SETUP_LEDGER", str(tmp_path / "state" / "history.ndjson"))
    monkeypatch.setenv("VPS_SETUP_SCRATCH_DIR", str(tmp_path / "scratch"))
    for var in ("VPS_SETUP_LOG_LEVEL", "VPS_SETUP_LOG_FILE", "VPS_SETUP_LOG_FILE_LEVEL", "OS_RELEASE_PATH"):
        monkeypatch.delenv(var, raising=False)
    yield
    get_distro_info.cache_clear()


@pytest.fixture
def apt_context() -> ExecutionContext:
    """Ubuntu host, running as a sudo-capable non-root user."""
    return ExecutionContext(
        is_root=False,
        use_elevation=True,
        package_manager=PackageManager.APT,
        admin_group="sudo",
        distro_id="ubuntu",
    )


@pytest.fixture
def executor(apt_context: ExecutionContext) -> MockExecutor:
    return MockExecutor(apt_context)


@pytest.fixture
def files() -> MemoryFileWriter:
    return MemoryFileWriter()


@pytest.fixture
def session(apt_context, executor, files) -> Session:
    return Session(context=apt_context, executor=executor, files=files)


@pytest.fixture
def ubuntu_host(monkeypatch):
    """Make build_context() see an Ubuntu host with apt-get installed."""
    info = DistroInfo(distro_id="ubuntu", family="debian", package_manager=PackageManager.APT, admin_group="sudo")
    monkeypatch.setattr("vps_setup.core.context.get_distro_info", lambda: info)
    return info


@pytest.fixture
def scripted():
    """Factory: ``scripted(["y", "deploy", ...])`` builds a ScriptedPrompter."""
    return ScriptedPrompter


@pytest.fixture
def ssh_key() -> str:
    return ED25519_KEY
