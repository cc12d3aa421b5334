"""
CLI commands for agent mode — one non-interactive sub-command per phase.

The commands are generated from each phase's ``flags`` so the CLI and
the option models cannot drift apart.

Usage::

    vps-setup agent firewall --allow 22/tcp,443/tcp --deny 3000
    vps-setup agent ssh --level harden --allow-users deploy --restart
    vps-setup agent nginx --domain example.com --backends 127.0.0.1:3000
"""

from __future__ import annotations

from typing import Any

import click
from click.core import ParameterSource

from vps_setup.core.services.phases import PHASES, AgentInput, Flag, Phase
from vps_setup.ui.cli.common import finish, get_runner, handle_errors, render_outcome


@click.group()
def agent() -> None:
    """Agent mode — run one phase from flags, never prompting.

    All flags are validated before any command runs; invalid input
    exits 1 without touching the host.
    """


def _option(flag: Flag) -> click.Option:
    if flag.kind == "switch":
        return click.Option([f"{flag.opt}/{flag.off_opt}", flag.field], default=None, help=flag.help)
    if flag.kind == "list":
        return click.Option([flag.opt, flag.field], multiple=True, help=f"{flag.help} Comma- or space-separated.")
    if flag.kind == "choice":
        return click.Option([flag.opt, flag.field], type=click.Choice(flag.choices), help=flag.help)
    return click.Option([flag.opt, flag.field], help=flag.help)


def _supplied(ctx: click.Context, phase: Phase, params: dict[str, Any]) -> dict[str, Any]:
    """Values the operator actually passed; the rest fall back to model defaults."""
    kinds = {flag.field: flag.kind for flag in phase.flags}
    values: dict[str, Any] = {}
    for name, value in params.items():
        if ctx.get_parameter_source(name) in (None, ParameterSource.DEFAULT):
            continue
        values[name] = " ".join(value) if kinds.get(name) == "list" else value
    return values


def _command(phase: Phase) -> click.Command:
    @handle_errors
    def callback(**params: Any) -> None:
        ctx = click.get_current_context()
        source = AgentInput(_supplied(ctx, phase, params))
        # Reject bad input before privilege or distro probing.
        source.initial_options(phase)
        outcome = get_runner(ctx).run(phase, source)
        render_outcome(outcome)
        finish([outcome])

    params = [_option(flag) for flag in phase.flags]
    params.append(click.Option(["--force"], is_flag=True, help="Apply even if already satisfied."))
    return click.Command(
        name=phase.key.value,
        callback=callback,
        params=params,
        help=f"Phase {phase.letter.upper()}: {phase.label}.",
        short_help=phase.label,
    )


for _phase in PHASES:
    agent.add_command(_command(_phase))
