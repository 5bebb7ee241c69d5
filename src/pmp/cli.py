"""Command-line interface for pmp."""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from pmp import __version__
from pmp.config.init import copy_default_packs, ensure_home_pmp_dir, ensure_pmp_dir
from pmp.config.loader import (
    get_home_config_path,
    get_local_config_path,
    home_config_exists,
    load_config,
    local_config_exists,
    save_config,
)
from pmp.config.preflight import run_all_checks
from pmp.config.schema import DEFAULT_CONFIG, PmpConfig
from pmp.console import console
from pmp.driver import ApplyDriver, ApplyResult
from pmp.engines import Engine, get_engine_by_name
from pmp.errors import ApplyEngineError, PmpError, ProjectExistsError, ValidationError
from pmp.inputs import (
    collect_inputs,
    load_values_file,
    parse_assignments,
    prompt_for_inputs,
    select,
)
from pmp.packs.base import Template, TemplatePack
from pmp.packs.loader import get_global_packs_path, get_local_packs_path
from pmp.packs.registry import TemplateRegistry
from pmp.projects import (
    DependencyGraph,
    PluginBinding,
    ProjectHandle,
    ProjectRef,
    create_project,
    discover_projects,
    open_project,
    rerender,
)
from pmp.projects.base import check_name

logger = logging.getLogger(__name__)

_SENSITIVE_KEYS = ("password", "secret", "token")


def version_callback(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    console.print(f"pmp [bold cyan]{__version__}[/bold cyan]")
    ctx.exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Turn pmp errors into a red message and a non-zero exit."""
    try:
        yield
    except ApplyEngineError as e:
        _print_engine_output(e.result)
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        if e.result.log_path is not None:
            console.print(f"[dim]Log: {e.result.log_path}[/dim]")
        raise SystemExit(e.result.exit_code or 1) from None
    except PmpError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1) from None


def _print_engine_output(result: ApplyResult) -> None:
    if result.stdout:
        console.print(escape(result.stdout.rstrip()), highlight=False)
    if result.stderr:
        console.print(f"[red]{escape(result.stderr.rstrip())}[/red]", highlight=False)


def _load_registry(config: PmpConfig) -> TemplateRegistry:
    with _handle_errors():
        return TemplateRegistry.discover(config.packs_paths or [])


def _resolve_engine(config: PmpConfig) -> Engine:
    engine = get_engine_by_name(config.engine or "")
    if engine is None:
        console.print(f"[red]Unknown engine: {config.engine}[/red]")
        console.print("[dim]Supported: opentofu, terraform[/dim]")
        raise SystemExit(1)
    return engine


def _projects_root(config: PmpConfig) -> Path:
    return Path(config.projects_root or ".")


def _make_driver(config: PmpConfig) -> ApplyDriver:
    return ApplyDriver(
        _resolve_engine(config),
        lock_timeout=config.lock_timeout or DEFAULT_CONFIG.lock_timeout or 10.0,
    )


def _get_source_label(pack: TemplatePack) -> str:
    """Get a label indicating where a pack was loaded from."""
    if pack.source is None:
        return ""
    if pack.source.is_relative_to(get_local_packs_path()):
        return "(local)"
    if pack.source.is_relative_to(get_global_packs_path()):
        return "(global)"
    if pack.source.is_relative_to(Path(__file__).parent):
        return "(bundled)"
    return f"({pack.source.parent})"


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    callback=version_callback,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """pmp - render infrastructure projects from template packs."""
    _configure_logging(verbose)
    ensure_pmp_dir()

    if ctx.invoked_subcommand is None:
        console.print("[bold]pmp[/bold] - parameterized infrastructure templates")
        console.print("\nRun [cyan]pmp --help[/cyan] for available commands.")


@main.command()
def preflight() -> None:
    """Validate environment is ready (IaC engine installed)."""
    if not run_all_checks(load_config()):
        raise SystemExit(1)


def show_current_config() -> None:
    """Display the current effective configuration."""
    config = load_config()
    console.print("\n[bold]Current Effective Configuration:[/bold]")
    console.print(f"  [dim]Global: {get_home_config_path()}[/dim]")
    console.print(f"  [dim]Local: {get_local_config_path()}[/dim]")
    console.print()

    for key, value in config.to_dict().items():
        console.print(f"  {key}: {escape(str(value))}")

    console.print()
    if home_config_exists():
        console.print("  [green]Global config: exists[/green]")
    else:
        console.print("  [dim]Global config: not found[/dim]")
    if local_config_exists():
        console.print("  [green]Local config: exists[/green]")
    else:
        console.print("  [dim]Local config: not found[/dim]")


@main.command()
@click.option(
    "--local",
    "-l",
    "local",
    is_flag=True,
    help="Write ./.pmp/config.yaml and copy packs to ./.pmp/packs/.",
)
@click.option(
    "--show",
    is_flag=True,
    help="Show current effective configuration and exit.",
)
@click.option(
    "--force",
    is_flag=True,
    help="Replace packs that were copied before.",
)
def init(local: bool, show: bool, force: bool) -> None:
    """Initialize pmp configuration and copy the bundled template packs.

    Config locations:
      - Global: ~/.pmp/config.yaml (user defaults)
      - Local: ./.pmp/config.yaml (project overrides)
    """
    if show:
        show_current_config()
        return

    ensure_home_pmp_dir()
    if local:
        config_path = get_local_config_path()
        exists = local_config_exists()
    else:
        config_path = get_home_config_path()
        exists = home_config_exists()

    if exists:
        console.print(f"[dim]Config already exists at {config_path}[/dim]")
    else:
        save_config(DEFAULT_CONFIG, config_path)
        console.print(f"[green]Wrote default config to {config_path}[/green]")

    copied = copy_default_packs(local=local, overwrite=force)
    target = "./.pmp/packs/" if local else "~/.pmp/packs/"
    if copied:
        console.print(f"[green]Copied {len(copied)} pack(s) to {target}[/green]")
    else:
        console.print(f"[dim]Packs already present in {target}[/dim]")


# --- Packs and templates ---


@main.group(invoke_without_command=True)
@click.pass_context
def pack(ctx: click.Context) -> None:
    """Inspect template packs.

    Use subcommands: pmp pack list
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@pack.command("list")
@click.option("--verbose", "-v", is_flag=True, help="Show templates and plugins.")
def pack_list(verbose: bool) -> None:
    """List available template packs."""
    registry = _load_registry(load_config())
    packs = registry.list_packs()

    if not packs:
        console.print("[yellow]No template packs found.[/yellow]")
        console.print("[dim]Run 'pmp init' to copy the bundled packs.[/dim]")
        return

    console.print("[bold]Available Template Packs:[/bold]\n")
    for template_pack in packs:
        console.print(
            f"  [cyan]{template_pack.id}[/cyan] {_get_source_label(template_pack)}"
        )
        if template_pack.description:
            console.print(f"    {escape(template_pack.description)}")
        if verbose:
            for template in template_pack.templates:
                console.print(
                    f"    - [bold]{template.id}[/bold] "
                    f"[dim]{escape(template.description)}[/dim]"
                )
            for plugin in template_pack.plugins:
                console.print(
                    f"    [dim]plugin[/dim] {plugin.name} "
                    f"[dim]({', '.join(plugin.attributes)})[/dim]"
                )
            console.print()


@main.group(invoke_without_command=True)
@click.pass_context
def template(ctx: click.Context) -> None:
    """Inspect templates.

    Use subcommands: pmp template list, pmp template show
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@template.command("list")
def template_list() -> None:
    """List templates across all packs."""
    registry = _load_registry(load_config())
    for tmpl in registry.all_templates():
        console.print(
            f"  [cyan]{tmpl.qualified_name}[/cyan] [dim]{escape(tmpl.description)}[/dim]"
        )


@template.command("show")
@click.argument("name")
def template_show(name: str) -> None:
    """Show a template's inputs, files and plugins (NAME is PACK/TEMPLATE)."""
    registry = _load_registry(load_config())
    with _handle_errors():
        tmpl = registry.resolve(name)

    console.print(f"[bold]{tmpl.qualified_name}[/bold]")
    if tmpl.description:
        console.print(escape(tmpl.description))
    console.print(f"[dim]Category: {tmpl.category}[/dim]\n")

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Input", style="cyan")
    table.add_column("Type")
    table.add_column("Default")
    table.add_column("Constraint", style="dim")
    for input_field in tmpl.inputs:
        constraint = []
        if input_field.minimum is not None or input_field.maximum is not None:
            low = "" if input_field.minimum is None else f"{input_field.minimum:g}"
            high = "" if input_field.maximum is None else f"{input_field.maximum:g}"
            constraint.append(f"{low}..{high}")
        if input_field.options:
            constraint.append("|".join(input_field.options))
        if input_field.pattern:
            constraint.append(input_field.pattern)
        if input_field.has_default and input_field.is_secret:
            default = "[dim](hidden)[/dim]"
        elif input_field.has_default:
            default = escape(str(input_field.to_dict()["default"]))
        else:
            default = "[red]required[/red]" if input_field.required else "-"
        table.add_row(
            input_field.name, input_field.kind, default, escape(" ".join(constraint))
        )
    console.print(table)

    console.print("\n[bold]Files:[/bold]")
    for file in tmpl.files:
        condition = ""
        if file.when is not None:
            condition = f" [dim](when {escape(file.when.describe())})[/dim]"
        console.print(f"  {file.output}{condition}")

    if tmpl.plugins:
        console.print("\n[bold]Plugins:[/bold]")
        for plugin_name in tmpl.plugins:
            console.print(f"  {plugin_name}")


# --- Project lifecycle ---


def _choose_template(registry: TemplateRegistry) -> Template:
    packs = registry.list_packs()
    chosen_pack = select(
        "Template pack:",
        packs,
        [f"{p.id} [dim]{escape(p.description)}[/dim]" for p in packs],
    )
    return select(
        "Template:",
        chosen_pack.templates,
        [f"{t.id} [dim]{escape(t.description)}[/dim]" for t in chosen_pack.templates],
    )


def _print_created(handle: ProjectHandle, verb: str) -> None:
    console.print(
        f"\n[green]✓[/green] {verb} [cyan]{handle.ref}[/cyan] "
        f"from {handle.project.template_name}"
    )
    console.print(f"  [dim]{handle.path}[/dim]")
    for path in handle.project.files:
        console.print(f"    {path}")


def _run_apply(handle: ProjectHandle, config: PmpConfig, yes: bool) -> None:
    if not yes and not click.confirm(f"Apply {handle.ref}?", default=False):
        console.print("No changes applied.")
        return
    driver = _make_driver(config)
    with _handle_errors():
        result = driver.apply(handle, auto_approve=True)
    _print_engine_output(result)
    console.print(f"[green]✓[/green] Applied {handle.ref}")
    console.print(
        f"[dim]Run 'pmp output {handle.path}' to record outputs "
        "for dependent projects.[/dim]"
    )


@main.command()
@click.option("--template", "-t", "template_name", help="Template as PACK/TEMPLATE.")
@click.option("--name", "-n", "project_name", help="Project name.")
@click.option("--environment", "-e", help="Environment to create.")
@click.option(
    "--set",
    "-s",
    "assignments",
    multiple=True,
    help="Input value as KEY=VALUE (repeatable).",
)
@click.option(
    "--values",
    "-f",
    "values_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file with input values.",
)
@click.option(
    "--plugin",
    "-p",
    "plugins",
    multiple=True,
    help="Plugin binding PLUGIN:INSTANCE=CATEGORY/NAME[@ENV] (repeatable).",
)
@click.option("--overwrite", is_flag=True, help="Replace an existing environment.")
@click.option("--apply", "apply_after", is_flag=True, help="Apply after creating.")
@click.option("--yes", "-y", is_flag=True, help="Do not ask before applying.")
@click.option("--no-input", is_flag=True, help="Never prompt; fail on missing values.")
def create(
    template_name: str | None,
    project_name: str | None,
    environment: str | None,
    assignments: tuple[str, ...],
    values_file: Path | None,
    plugins: tuple[str, ...],
    overwrite: bool,
    apply_after: bool,
    yes: bool,
    no_input: bool,
) -> None:
    """Create a project environment from a template.

    Anything not given on the command line is asked for interactively:
    pack, template, environment, project name and each input.
    """
    config = load_config()
    registry = _load_registry(config)
    engine = _resolve_engine(config)
    root = _projects_root(config)

    with _handle_errors():
        if template_name:
            tmpl = registry.resolve(template_name)
        elif no_input:
            raise ValidationError("template", "required")
        else:
            tmpl = _choose_template(registry)

        environments = config.environments or [config.default_environment or "dev"]
        if environment is None:
            if no_input:
                environment = config.default_environment or environments[0]
            else:
                environment = select("Environment:", environments, environments)
        if environment not in environments:
            raise ValidationError(
                "environment", f"not one of {', '.join(environments)}", environment
            )

        if project_name is None:
            if no_input:
                raise ValidationError("name", "required")
            project_name = click.prompt("Project name")
        check_name("name", project_name)

        ref = ProjectRef(tmpl.category, project_name, environment)
        env_dir = ref.environment_dir(root)
        if env_dir.exists() and not overwrite:
            raise ProjectExistsError(env_dir)

        bindings = [PluginBinding.parse(p, environment) for p in plugins]

        raw = load_values_file(values_file) if values_file else {}
        raw.update(parse_assignments(assignments))
        if not no_input:
            raw = prompt_for_inputs(tmpl.inputs, raw)
        inputs = collect_inputs(tmpl.inputs, raw)

        handle = create_project(
            registry,
            tmpl,
            project_name,
            environment,
            inputs,
            bindings=bindings,
            overwrite=overwrite,
            projects_root=root,
            engine=engine,
        )

    _print_created(handle, "Created")

    if apply_after:
        _run_apply(handle, config, yes)


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
def render(path: Path) -> None:
    """Render an existing project environment again from its manifest."""
    config = load_config()
    registry = _load_registry(config)
    engine = _resolve_engine(config)
    with _handle_errors():
        handle = rerender(open_project(path), registry, engine=engine)
    _print_created(handle, "Rendered")


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
def plan(path: Path) -> None:
    """Run the engine's plan for a project environment."""
    config = load_config()
    driver = _make_driver(config)
    with _handle_errors():
        handle = open_project(path)
        result = driver.plan(handle)
    _print_engine_output(result)


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
def apply(path: Path, yes: bool) -> None:
    """Apply a project environment with the configured engine."""
    config = load_config()
    with _handle_errors():
        handle = open_project(path)
    _run_apply(handle, config, yes)


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Print outputs as JSON.")
def output(path: Path, as_json: bool) -> None:
    """Read engine outputs and record them for dependent projects."""
    config = load_config()
    driver = _make_driver(config)
    with _handle_errors():
        handle = open_project(path)
        outputs = driver.output(handle)

    if as_json:
        click.echo(json.dumps(outputs, indent=2, sort_keys=True))
        return

    if not outputs:
        console.print("[yellow]No outputs.[/yellow]")
        return
    for key in sorted(outputs):
        value = outputs[key]
        if any(word in key.lower() for word in _SENSITIVE_KEYS):
            value = "(sensitive)"
        console.print(f"  [cyan]{key}[/cyan] = {escape(str(value))}")


@main.group(invoke_without_command=True)
@click.pass_context
def project(ctx: click.Context) -> None:
    """Inspect materialized projects.

    Use subcommands: pmp project list, pmp project deps
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@project.command("list")
def project_list() -> None:
    """List project environments under the projects root."""
    config = load_config()
    with _handle_errors():
        handles = discover_projects(_projects_root(config))

    if not handles:
        console.print("[yellow]No projects found.[/yellow]")
        console.print("[dim]Run 'pmp create' to create one.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Project", style="cyan")
    table.add_column("Environment")
    table.add_column("Template", style="dim")
    table.add_column("Plugins", style="dim")
    for handle in handles:
        p = handle.project
        table.add_row(
            f"{p.category}/{p.name}",
            p.environment,
            p.template_name,
            ", ".join(str(b) for b in p.plugins) or "-",
        )
    console.print(table)


@project.command("deps")
def project_deps() -> None:
    """Show projects in dependency order (dependencies first)."""
    config = load_config()
    with _handle_errors():
        graph = DependencyGraph.from_projects(discover_projects(_projects_root(config)))
        order = graph.topological_order()

    if not order:
        console.print("[yellow]No projects found.[/yellow]")
        return

    for i, node in enumerate(order, 1):
        deps = graph.dependencies_of(node)
        suffix = f" [dim]<- {', '.join(deps)}[/dim]" if deps else ""
        console.print(f"  {i}. [cyan]{node}[/cyan]{suffix}")


if __name__ == "__main__":
    main()
