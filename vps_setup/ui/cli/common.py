"""
Shared CLI plumbing — session construction, error rendering, output.

Core services raise; this layer renders a single ``[ERROR]`` line on
stderr and exits 1.  Tracebacks are logged at DEBUG, so they only show
with ``--debug``.
"""

from __future__ import annotations

import functools
import logging
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import click

from vps_setup.core.errors import VpsSetupError
from vps_setup.core.models.outcome import Outcome

if TYPE_CHECKING:
    from vps_setup.core.engine.runner import PhaseRunner
    from vps_setup.core.services.phases import Session

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_REPORT_STYLE: dict[str, tuple[str, str | None]] = {
    "info": ("  ·", None),
    "ok": ("  ✓", "green"),
    "warn": ("  ⚠️ ", "yellow"),
}


def fail(message: str) -> None:
    """Print the single error line and exit 1."""
    click.secho(f"[ERROR] {message}", fg="red", err=True)
    sys.exit(1)


def handle_errors(fn: F) -> F:
    """Render any VpsSetupError escaping a command as ``[ERROR]`` + exit 1."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except VpsSetupError as e:
            logger.debug("Command failed", exc_info=True)
            fail(str(e))

    return wrapper  # type: ignore[return-value]


def _reporter(quiet: bool) -> Callable[[str, str], None]:
    def report(level: str, message: str) -> None:
        if quiet and level != "warn":
            return
        prefix, color = _REPORT_STYLE.get(level, ("  ", None))
        click.secho(f"{prefix} {message}", fg=color)

    return report


def get_session(ctx: click.Context) -> Session:
    """Build (once per invocation) the context, executor and file writer.

    With ``--mock`` nothing touches the host: commands are recorded by
    MockExecutor and files live in memory.
    """
    obj = ctx.ensure_object(dict)
    if "session" in obj:
        return obj["session"]

    from vps_setup.adapters.mock import MemoryFileWriter, MockExecutor
    from vps_setup.adapters.shell.executor import PrivilegedExecutor
    from vps_setup.adapters.shell.filesystem import RootFileWriter
    from vps_setup.core.context import build_context
    from vps_setup.core.services.phases import Session

    mock = obj.get("mock", False)
    context = build_context(probe_privilege=not mock)
    if not context.has_package_manager:
        click.secho(
            "⚠️  No supported package manager detected (apt, dnf, yum, pacman, zypper). "
            "Package-install phases will fail.",
            fg="yellow",
            err=True,
        )

    if mock:
        executor = MockExecutor(context)
        files = MemoryFileWriter()
    else:
        executor = PrivilegedExecutor(context)
        files = RootFileWriter(context, executor)

    session = Session(
        context=context,
        executor=executor,
        files=files,
        report=_reporter(obj.get("quiet", False)),
    )
    obj["session"] = session
    return session


def get_runner(ctx: click.Context) -> PhaseRunner:
    """Phase runner bound to the session; mock runs keep no history."""
    from vps_setup.core.engine.runner import PhaseRunner
    from vps_setup.core.persistence.ledger import RunLedger

    obj = ctx.ensure_object(dict)
    ledger = None if obj.get("mock") else RunLedger()
    return PhaseRunner(get_session(ctx), ledger)


def render_outcome(outcome: Outcome) -> None:
    """One summary line per phase, then any advisories."""
    if outcome.status == "applied":
        click.secho(f"✅ {outcome.phase}: {outcome.message or 'applied'}", fg="green")
    elif outcome.status == "skipped":
        click.secho(f"⏭️  {outcome.phase}: skipped — {outcome.message}", fg="cyan")
    else:
        click.secho(f"❌ {outcome.phase}: {outcome.error_kind} error: {outcome.message}", fg="red")

    for note in outcome.notes:
        click.secho(f"   ⚠️  {note}", fg="yellow")


def finish(outcomes: list[Outcome]) -> None:
    """Exit 1 with the first failure's message if any phase failed."""
    for outcome in outcomes:
        if outcome.failed:
            fail(f"{outcome.phase}: {outcome.message}")
