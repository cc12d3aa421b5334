"""
vps-setup — CLI entrypoint.

Usage:
    vps-setup                      interactive menu
    vps-setup run firewall         one phase, with prompts
    vps-setup agent ssh --level harden --allow-users deploy
    vps-setup apply plan.yml       several phases from a YAML plan
    vps-setup status --json
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from vps_setup import __version__
from vps_setup.core.observability.logging_config import setup_from_env
from vps_setup.ui.cli.common import finish, get_runner, get_session, handle_errors, render_outcome


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="vps-setup")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option("--mock", is_flag=True, help="Record commands instead of running them; nothing on the host changes.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, debug: bool, mock: bool) -> None:
    """VPS security setup — firewall, SSH, updates, Nginx, fail2ban.

    Phases are idempotent: a phase whose target state already holds is
    skipped unless --force is given.  Do not run two instances against
    the same host at the same time.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["mock"] = mock

    # ── Logging setup (once, at process start) ──────────────────
    setup_from_env(debug=debug, verbose=verbose, quiet=quiet)

    if ctx.invoked_subcommand is None:
        ctx.invoke(menu)


@cli.command()
@click.pass_context
@handle_errors
def menu(ctx: click.Context) -> None:
    """Interactive phase menu (the default)."""
    from vps_setup.ui.cli.menu import menu_loop

    finish(menu_loop(ctx))


@cli.command()
@click.argument("phase_name", metavar="PHASE", required=False)
@click.option("--all", "run_all", is_flag=True, help="Run every phase in order, with prompts.")
@click.option("--force", is_flag=True, help="Run even if already satisfied.")
@click.pass_context
@handle_errors
def run(ctx: click.Context, phase_name: str | None, run_all: bool, force: bool) -> None:
    """Run one phase (key or letter) or --all, interactively."""
    from vps_setup.core.services.phases import PHASES, get_phase
    from vps_setup.ui.cli.menu import run_interactive

    if run_all == bool(phase_name):
        raise click.UsageError("Give exactly one of PHASE or --all.")
    if run_all:
        phases = PHASES
    else:
        try:
            phases = (get_phase(phase_name),)
        except KeyError as e:
            raise click.BadParameter(e.args[0], param_hint="PHASE") from e

    try:
        outcomes = run_interactive(ctx, phases, force=force)
    except click.Abort:
        click.echo("\nBye.")
        return
    finish(outcomes)


@cli.command("list")
def list_phases() -> None:
    """List phases and their agent flags."""
    from vps_setup.core.services.phases import PHASES

    for phase in PHASES:
        click.secho(f"  {phase.letter.upper()}) {phase.key.value:<14}", fg="cyan", nl=False)
        click.echo(f" {phase.label}")
        for flag in phase.flags:
            opt = f"{flag.opt}/{flag.off_opt}" if flag.kind == "switch" else flag.opt
            click.echo(f"       {opt:<34} {flag.help}")


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
@handle_errors
def status(ctx: click.Context, as_json: bool) -> None:
    """Show which phases are satisfied with default options (read-only)."""
    from vps_setup.core.services.status import collect_status

    session = get_session(ctx)
    rows = collect_status(session)

    if as_json:
        click.echo(json.dumps([row.to_dict() for row in rows], indent=2))
        return

    host = session.context
    click.secho(
        f"\n📋 {host.distro_id or 'unknown distro'} "
        f"({host.package_manager.value}, admin group {host.admin_group})",
        fg="cyan",
        bold=True,
    )
    colors = {"satisfied": "green", "pending": "yellow", "needs-input": "white", "unsupported": "white"}
    for row in rows:
        click.echo(f"   {row.letter.upper()}) {row.phase:<14} ", nl=False)
        click.secho(row.state, fg=colors.get(row.state, "white"), nl=False)
        click.echo(f"  {row.detail}" if row.detail else "")
    click.echo()


@cli.command()
@click.argument("plan_path", metavar="PLAN", type=click.Path(path_type=Path))
@click.pass_context
@handle_errors
def apply(ctx: click.Context, plan_path: Path) -> None:
    """Run several phases in agent mode from a YAML plan.

    Every phase in the plan is validated before the first one runs, and
    the run stops at the first failed phase.
    """
    from vps_setup.core.config.loader import load_plan

    steps = load_plan(plan_path)
    report = get_runner(ctx).run_many((step.phase, step.source) for step in steps)
    for outcome in report.outcomes:
        render_outcome(outcome)
    if not ctx.obj.get("quiet"):
        summary = f"\n{report.applied} applied, {report.skipped} skipped, {report.failed} failed"
        not_run = len(steps) - len(report.outcomes)
        if not_run:
            summary += f", {not_run} not run"
        click.echo(summary)
    finish(report.outcomes)


@cli.command()
@click.option("-n", "count", default=20, show_default=True, help="Number of entries.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def history(count: int, as_json: bool) -> None:
    """Show recent phase outcomes from the run ledger."""
    from vps_setup.core.persistence.ledger import RunLedger

    ledger = RunLedger()
    entries = ledger.read_recent(count)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo(f"No history yet ({ledger.path}).")
        return

    colors = {"applied": "green", "skipped": "cyan", "failed": "red"}
    for entry in entries:
        click.echo(f"  {entry.timestamp[:19]}  {entry.phase:<14} ", nl=False)
        click.secho(f"{entry.status:<8}", fg=colors.get(entry.status, "white"), nl=False)
        click.echo(f" {entry.message}")


from vps_setup.ui.cli.agent import agent  # noqa: E402

cli.add_command(agent)


if __name__ == "__main__":
    cli()
