"""CLI utilities for dynamic field registry maintenance."""

# purpose: give administrators a shell entry point for inspecting and repairing field definitions
# status: active
# depends_on: dynamic_fields.database, dynamic_fields.registry

from __future__ import annotations

import json
from typing import Optional

import typer

from ..context import build_context
from ..database import SessionLocal, init_db
from ..errors import DynamicFieldError
from ..ordering import sweep_field_order
from ..registry import DynamicFieldRegistry

app = typer.Typer(help="Dynamic field registry maintenance commands")


def _registry(session) -> DynamicFieldRegistry:
    return DynamicFieldRegistry(build_context(session))


@app.command("init")
def init_command() -> None:
    """Create the registry tables and default validity statuses."""

    init_db()
    typer.echo("Dynamic field tables ready")


@app.command("list")
def list_command(
    all_fields: bool = typer.Option(False, "--all", help="Include invalid definitions"),
    object_type: Optional[str] = typer.Option(None, "--object-type", help="Restrict to one object type"),
) -> None:
    """Print definitions ordered by field order."""

    session = SessionLocal()
    try:
        records = _registry(session).list_full(valid=not all_fields, object_type=object_type)
    finally:
        session.close()
    for record in records:
        typer.echo(
            f"{record.field_order:>5}  {record.id:>5}  {record.name}  "
            f"[{record.field_type}/{record.object_type}] valid_id={record.valid_id}"
        )


@app.command("show")
def show_command(name: str) -> None:
    """Print one definition as JSON."""

    session = SessionLocal()
    try:
        record = _registry(session).get(name=name)
    except DynamicFieldError as exc:
        raise typer.BadParameter(str(exc)) from exc
    finally:
        session.close()
    typer.echo(json.dumps(record.model_dump(mode="json"), indent=2))


@app.command("sweep")
def sweep_command() -> None:
    """Repair field orders held by more than one definition."""

    session = SessionLocal()
    try:
        result = sweep_field_order(_registry(session))
    finally:
        session.close()
    if not result.duplicate_orders:
        typer.echo("No duplicate field orders found")
        return
    if result.remaining:
        typer.echo(
            f"Duplicate orders {result.remaining} remain after {result.reordered} reorder passes",
            err=True,
        )
        raise typer.Exit(code=1)
    typer.echo(
        f"Repaired duplicate orders {result.duplicate_orders} with {result.reordered} reorder passes"
    )


if __name__ == "__main__":
    app()
