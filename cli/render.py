from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_report(payload: Optional[Dict[str, Any]], building_id: str) -> None:
    echo_heading("Average Age Report")
    if not payload:
        typer.echo(f"No report available for building {building_id!r} yet.")
        return
    echo_key_values(
        [
            ("buildingId", payload.get("buildingId")),
            ("averageAge", payload.get("averageAge")),
            ("dateAdded", payload.get("dateAdded")),
        ]
    )


def render_run(payload: Dict[str, Any]) -> None:
    echo_heading("Aggregation Run")
    echo_key_values(
        [
            ("succeeded", payload.get("succeeded")),
            ("cancelled", payload.get("cancelled")),
        ]
    )
    failed = payload.get("failed") or []
    if failed:
        typer.secho("failed:", fg=typer.colors.YELLOW)
        for building_id in failed:
            typer.echo(f"  - {building_id}")
    else:
        typer.echo("No failed buildings.")
