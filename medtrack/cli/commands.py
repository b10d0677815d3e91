"""medtrack CLI commands."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(help="medtrack: family medical tracking", no_args_is_help=True)
console = Console()

TYPE_LABELS = {
    "med": "Medicamento (toma)",
    "chemo": "Quimioterapia",
    "exam": "Examen",
    "control": "Control",
}


def _async_run(coro):
    """Run an async coroutine."""
    return asyncio.run(coro)


@app.command()
def serve() -> None:
    """Start the API server."""
    from medtrack.main import run

    run()


@app.command("export-ics")
def export_ics(
    entry_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON entry, or {entry, professional}"),
    professional_file: Optional[Path] = typer.Option(
        None, "--professional", "-p", exists=True, dir_okay=False, help="JSON professional",
    ),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Output file (default: derived from title)"),
) -> None:
    """Write one entry as an .ics calendar file."""
    from medtrack.config import get_settings
    from medtrack.errors import ValidationError
    from medtrack.modules.calendar.service import CalendarExportService

    try:
        data = json.loads(entry_file.read_text(encoding="utf-8"))
        professional = json.loads(professional_file.read_text(encoding="utf-8")) if professional_file else None
    except json.JSONDecodeError as exc:
        console.print(f"[red]✗[/red] Invalid JSON: {exc}")
        raise typer.Exit(code=1)

    if isinstance(data, dict) and isinstance(data.get("entry"), dict):
        professional = professional or data.get("professional")
        data = data["entry"]

    try:
        result = CalendarExportService(get_settings()).export(data, professional)
    except ValidationError as exc:
        console.print(f"[red]✗[/red] Cannot export entry: {exc}")
        raise typer.Exit(code=1)

    target = out or Path(result.attachment_filename)
    target.write_bytes(result.content)
    console.print(f"[green]✓[/green] Calendar file written to [bold]{target}[/bold]")


@app.command()
def summary(
    case_id: Optional[str] = typer.Option(None, "--case", "-c", help="Case id (default: per-device case)"),
    user_id: Optional[str] = typer.Option(None, "--user", "-u", help="User id for shared cases"),
) -> None:
    """Show done / pending counts per entry type."""
    from medtrack.config import get_settings
    from medtrack.database import close_db, init_db
    from medtrack.errors import MedtrackError
    from medtrack.security.rbac import UserIdentity
    from medtrack.services import Services

    settings = get_settings()
    case = case_id or settings.default_case_id
    user = UserIdentity(user_id=user_id) if user_id else None

    async def _summary() -> dict[str, dict[str, int]]:
        if not settings.is_remote:
            await init_db()
        services = Services(settings)
        try:
            return await services.entries.summary(case, user)
        finally:
            await services.shutdown()
            await close_db()

    try:
        counts = _async_run(_summary())
    except (MedtrackError, PermissionError) as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(code=1)

    table = Table(title=f"Resumen (Hechos / Pendientes): {case}")
    table.add_column("Tipo")
    table.add_column("Hechos", justify="right", style="green")
    table.add_column("Pendientes", justify="right", style="red")
    for entry_type, row in counts.items():
        table.add_row(TYPE_LABELS.get(entry_type, entry_type), str(row["done"]), str(row["planned"]))
    console.print(table)


if __name__ == "__main__":
    app()
