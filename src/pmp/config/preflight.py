"""Preflight checks to validate environment."""

from pmp.config.schema import PmpConfig
from pmp.console import console
from pmp.engines import ENGINES, get_engine_by_name


def check_engine(config: PmpConfig) -> bool:
    """Check that the configured IaC engine is installed."""
    console.print("[bold]IaC Engines:[/bold]")

    for engine in ENGINES:
        if engine.is_installed():
            console.print(
                f"  [green]✓[/green] {engine.name} ([cyan]{engine.cli_command}[/cyan])"
            )
        else:
            console.print(
                f"  [dim]✗[/dim] {engine.name} - [dim]{engine.install_info}[/dim]"
            )

    configured = get_engine_by_name(config.engine or "")
    if configured is None:
        console.print(f"\n[red]✗[/red] Unknown engine in config: {config.engine}")
        return False
    if not configured.is_installed():
        console.print(
            f"\n[yellow]⚠[/yellow] Configured engine {configured.name} is not installed."
        )
        console.print(
            "[dim]`pmp create` works; `pmp plan` and `pmp apply` will not.[/dim]"
        )
        return False

    console.print(f"\n[green]✓[/green] Using {configured.name}")
    return True


def run_all_checks(config: PmpConfig) -> bool:
    """Run all preflight checks."""
    console.print("[bold]Running preflight checks...[/bold]\n")

    all_passed = check_engine(config)

    if all_passed:
        console.print("\n[bold green]All preflight checks passed![/bold green]")
    else:
        console.print("\n[bold red]Some preflight checks failed.[/bold red]")

    return all_passed
