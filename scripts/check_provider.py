#!/usr/bin/env python3
"""
NoteCanvas Provider Check

Runs the provider diagnostics from a terminal:
- Credential present and accepted (GET /auth/key)
- Credits left
- Image model listed (GET /models)
- Optional live test generation
- Optional analysis of an error message

Usage:
    python scripts/check_provider.py
    python scripts/check_provider.py --test
    python scripts/check_provider.py --error "402 insufficient credits"
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from notecanvas.core.config import settings
from notecanvas.services import diagnostics
from notecanvas.services.providers import ConnectionTest, ImageProvider, build_image_client

console = Console()


def _mark(ok: bool) -> str:
    return "[green]✓[/green]" if ok else "[red]✗[/red]"


def print_report(
    status: diagnostics.ProviderStatus,
    analysis: diagnostics.ErrorAnalysis,
    test: ConnectionTest | None,
) -> None:
    table = Table(title="Provider status", box=box.ROUNDED)
    table.add_column("Check")
    table.add_column("Result", justify="center")
    table.add_row("API key present", _mark(status.api_key_present))
    table.add_row("API key valid", _mark(status.api_key_valid))
    table.add_row("Credits available", _mark(status.has_credits))
    table.add_row(f"Model {settings.IMAGE_MODEL}", _mark(status.model_available))
    if test is not None:
        table.add_row("Test generation", _mark(test.success))
    console.print(table)

    if status.last_error:
        console.print(f"[yellow]Last error:[/yellow] {status.last_error}")
    if test is not None:
        console.print(f"[dim]Test:[/dim] {test.message}")

    if analysis.error_type != "no_error_provided":
        console.print(
            Panel(
                f"[bold]{analysis.error_type}[/bold] ({analysis.severity}, {analysis.category})\n"
                f"{analysis.root_cause}\n\n"
                + "\n".join(f"• {solution}" for solution in analysis.solutions),
                title="Error analysis",
                style="magenta",
            )
        )

    for recommendation in diagnostics.build_recommendations(status, analysis, test):
        console.print(f"→ {recommendation}")


async def run(error_message: str | None, test_generation: bool) -> int:
    client = build_image_client(settings)
    provider = ImageProvider(client, settings.IMAGE_MODEL)
    try:
        status = await diagnostics.check_configuration(provider)
        test = None
        if test_generation:
            with console.status("Running test generation..."):
                test = await provider.test_connection("Generate a simple test image: red circle")
    finally:
        if client is not None:
            await client.aclose()

    analysis = diagnostics.analyze_error(error_message)
    print_report(status, analysis, test)
    return 0 if diagnostics.can_proceed(status, analysis) else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="NoteCanvas image provider check")
    parser.add_argument("--error", default=None, help="Provider error message to analyze")
    parser.add_argument("--test", action="store_true", help="Run one live test generation")
    args = parser.parse_args()

    console.print(Panel("[bold]NoteCanvas provider check[/bold]", style="blue"))
    console.print(f"[dim]Endpoint:[/dim] {settings.OPENROUTER_BASE_URL}")
    return asyncio.run(run(args.error, args.test))


if __name__ == "__main__":
    sys.exit(main())
