from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_report, render_run


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the building age reports service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Reports API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("report")
def report_command(
    ctx: typer.Context,
    building_id: str = typer.Argument("", help="Building identifier (slug)."),
    from_date: Optional[datetime] = typer.Option(
        None,
        "--from-date",
        formats=["%Y-%m-%d"],
        help="Start of the date range (accepted, not applied yet).",
    ),
    to_date: Optional[datetime] = typer.Option(
        None,
        "--to-date",
        formats=["%Y-%m-%d"],
        help="End of the date range (accepted, not applied yet).",
    ),
) -> None:
    """Show the latest average-age report for a building."""
    state = _get_state(ctx)
    payload = state.client.get_report(
        building_id,
        from_date=from_date.date() if from_date else None,
        to_date=to_date.date() if to_date else None,
    )
    render_report(payload, building_id)


@app.command("aggregate")
def aggregate_command(ctx: typer.Context) -> None:
    """Run an aggregation now and print its summary."""
    state = _get_state(ctx)
    typer.echo(f"Triggering aggregation on {state.config.base_url} ...")
    payload = state.client.run_aggregation()
    render_run(payload)
    if payload.get("failed"):
        raise typer.Exit(code=2)


if __name__ == "__main__":
    app()
