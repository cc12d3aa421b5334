"""
Interactive mode — the phase menu and prompt-driven runs.

    vps-setup              (menu)
    vps-setup run firewall
    vps-setup run --all
"""

from __future__ import annotations

import click

from vps_setup.core.models.outcome import Outcome
from vps_setup.core.services.phases import PHASES, InteractiveInput, Phase, Prompter
from vps_setup.ui.cli.common import get_runner, render_outcome

RUN_ALL = "1"
QUIT = "q"


def run_interactive(
    ctx: click.Context,
    phases: tuple[Phase, ...] | list[Phase],
    *,
    force: bool = False,
    prompter: Prompter | None = None,
) -> list[Outcome]:
    """Prompt through ``phases`` in order, stopping after the first failure."""
    runner = get_runner(ctx)
    source = InteractiveInput(prompter, force=force)
    outcomes = []
    for phase in phases:
        outcome = runner.run(phase, source)
        render_outcome(outcome)
        outcomes.append(outcome)
        if outcome.failed:
            break
    return outcomes


def _menu_choice() -> str:
    click.echo()
    click.secho("VPS Security Setup — choose phase", bold=True)
    for phase in PHASES:
        click.echo(f"  {phase.letter.upper()}) {phase.label}")
    click.echo(f"  {RUN_ALL}) Run all (A–E, then optional phases with prompts)")
    click.echo(f"  {QUIT}) Quit")
    return click.prompt(
        "Choice",
        type=click.Choice([p.letter for p in PHASES] + [RUN_ALL, QUIT], case_sensitive=False),
        show_choices=False,
    ).lower()


def menu_loop(ctx: click.Context, prompter: Prompter | None = None) -> list[Outcome]:
    """Loop until quit and return the latest outcome of each phase run.

    A failed phase is shown and the menu comes back; running it again
    successfully replaces the failure.
    """
    click.secho("VPS Security Setup — interactive. Run phases in order (A then B then C ...).", fg="cyan")
    latest: dict[str, Outcome] = {}
    try:
        while True:
            choice = _menu_choice()
            if choice == QUIT:
                break
            if choice == RUN_ALL:
                selected = list(PHASES)
            else:
                selected = [next(p for p in PHASES if p.letter == choice)]
            for outcome in run_interactive(ctx, selected, prompter=prompter):
                latest[outcome.phase] = outcome
    except click.Abort:
        click.echo()
    click.echo("Bye.")
    return list(latest.values())
