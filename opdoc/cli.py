"""CLI entry point for opdoc."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from opdoc.batch import BatchDriver, collect_sources
from opdoc.capabilities import CapabilityLoader, CapabilityRegistry, default_registry
from opdoc.config import OpdocConfig, load_config
from opdoc.config.loader import DEFAULT_CONFIG_TEMPLATE
from opdoc.errors import CapabilityNotFoundError
from opdoc.execution import DocumentOutcome, ExecutionReport, cleanup_stale_artifacts, find_stale_artifacts
from opdoc.logging_config import configure_logging
from opdoc.pipeline import DocumentPipeline

app = typer.Typer(
    name="opdoc",
    help="Apply operation documents to a project tree, all or nothing.",
)

config_app = typer.Typer(help="Manage opdoc configuration.")
app.add_typer(config_app, name="config")

# Global state
_config: OpdocConfig | None = None

_OUTCOME_STYLE = {
    DocumentOutcome.OK: "green",
    DocumentOutcome.FAILED: "red",
    DocumentOutcome.ROLLED_BACK: "yellow",
    DocumentOutcome.PARTIAL_COMMIT: "bold red",
    DocumentOutcome.SKIPPED: "dim",
}


def _get_config() -> OpdocConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to opdoc.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    configure_logging(_config.log_level, _config.log_format)


def _build_registry(cfg: OpdocConfig) -> CapabilityRegistry:
    registry = default_registry()
    CapabilityLoader(cfg.capabilities).load_into(registry)
    return registry.freeze()


def _display_reports(reports: list[ExecutionReport], verbose: bool) -> None:
    dry_run = any(r.dry_run for r in reports)
    title = f"Documents ({len(reports)})" + (" (dry run)" if dry_run else "")
    table = Table(title=title)
    table.add_column("Source", style="cyan")
    table.add_column("Outcome", justify="center")
    table.add_column("Applied", justify="right", style="green")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right", style="red")
    for r in reports:
        style = _OUTCOME_STYLE[r.outcome]
        outcome = r.outcome.value if r.committed or r.outcome is not DocumentOutcome.OK else "would commit"
        table.add_row(
            r.source,
            f"[{style}]{outcome}[/{style}]",
            str(r.applied),
            str(r.skipped),
            str(r.failed),
        )
    rprint(table)

    for r in reports:
        show_trail = r.outcome is not DocumentOutcome.OK or r.failed
        if r.outcome is DocumentOutcome.PARTIAL_COMMIT:
            rprint(Panel(
                f"[dim]Changed:[/dim]   {', '.join(r.changed_paths) or '-'}\n"
                f"[dim]Untouched:[/dim] {', '.join(r.untouched_paths) or '-'}",
                title=f"Manual remediation needed: {r.source}",
                border_style="red",
            ))
        if not verbose:
            continue
        if show_trail or any(t.diagnostics for t in r.transactions):
            rprint(f"\n[bold]{r.source}[/bold]")
        if show_trail:
            for err in r.errors:
                where = []
                if err.line is not None:
                    where.append(f"line {err.line}:{err.column or 1}")
                if err.transaction_index is not None:
                    where.append(f"txn {err.transaction_index}")
                if err.field:
                    where.append(f"field {err.field}")
                if err.capability:
                    where.append(f"capability {err.capability}")
                loc = f" ({', '.join(where)})" if where else ""
                rprint(f"  [red]{err.kind}[/red]{loc}: {escape(err.message)}")
        for txn in r.transactions:
            for diag in txn.diagnostics:
                color = "red" if diag.severity == "error" else "yellow"
                rprint(
                    f"  [{color}]{diag.severity}[/{color}] txn {txn.index} "
                    f"{escape(txn.target)}:{diag.line or '-'} ({diag.capability}) {escape(diag.message)}"
                )


def _run(
    paths: list[str],
    *,
    dry_run: bool,
    verbose: bool,
    recursive: bool | None,
    continue_on_error: bool | None,
    jobs: int | None,
    overwrite: bool,
    partial: bool,
    root: str | None,
    format: str,
) -> None:
    cfg = _get_config()
    updates: dict[str, object] = {"dry_run": dry_run or cfg.apply.dry_run, "verbose": verbose or cfg.apply.verbose}
    if recursive is not None:
        updates["recursive"] = recursive
    if continue_on_error is not None:
        updates["continue_on_error"] = continue_on_error
    if jobs is not None:
        if jobs < 1:
            rprint("[red]Error:[/red] --jobs must be at least 1")
            raise typer.Exit(1)
        updates["max_parallelism"] = jobs
    if overwrite:
        updates["overwrite"] = True
    if partial:
        updates["partial_apply"] = True
    apply_cfg = cfg.apply.model_copy(update=updates)
    if apply_cfg.verbose:
        configure_logging(cfg.log_level, cfg.log_format, verbose=True)

    project_root = Path(root or cfg.project_root)
    if not project_root.is_dir():
        rprint(f"[red]Error:[/red] project root is not a directory: {project_root}")
        raise typer.Exit(1)

    try:
        sources = collect_sources(paths, recursive=apply_cfg.recursive, staging_suffix=cfg.staging.suffix)
    except FileNotFoundError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    if not sources:
        rprint("[yellow]No operation documents found.[/yellow]")
        raise typer.Exit(0)

    try:
        registry = _build_registry(cfg)
    except CapabilityNotFoundError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if cfg.staging.cleanup_on_start and not apply_cfg.dry_run:
        removed = cleanup_stale_artifacts(project_root, cfg.staging.suffix)
        if removed:
            rprint(f"[dim]Removed {len(removed)} stale staging artifact(s).[/dim]")

    pipeline = DocumentPipeline(project_root, registry, apply_cfg, staging_suffix=cfg.staging.suffix)
    reports = BatchDriver(pipeline, apply_cfg).run_all(sources)

    if format == "json":
        typer.echo(json.dumps([r.model_dump(mode="json") for r in reports], indent=2))
    else:
        _display_reports(reports, apply_cfg.verbose)

    if any(r.outcome.is_failure or r.failed for r in reports):
        raise typer.Exit(1)


@app.command()
def apply(
    paths: Annotated[list[str], typer.Argument(help="Operation documents or directories")],
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Plan everything, write nothing")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Print the diagnostic trail")] = False,
    recursive: Annotated[
        bool | None, typer.Option("--recursive/--no-recursive", "-r", help="Descend into subdirectories")
    ] = None,
    continue_on_error: Annotated[
        bool | None,
        typer.Option("--continue-on-error/--stop-on-error", help="Keep going after a failed document"),
    ] = None,
    jobs: Annotated[int | None, typer.Option("--jobs", "-j", help="Documents to process in parallel")] = None,
    overwrite: Annotated[bool, typer.Option("--overwrite", help="Let create replace existing files")] = False,
    partial: Annotated[
        bool, typer.Option("--partial", help="Commit valid transactions when others fail processing")
    ] = False,
    root: Annotated[str | None, typer.Option("--root", help="Project root (default from config)")] = None,
    format: Annotated[str, typer.Option("--format", "-f", help="Output format: table or json")] = "table",
) -> None:
    """Apply operation documents."""
    _run(
        paths, dry_run=dry_run, verbose=verbose, recursive=recursive,
        continue_on_error=continue_on_error, jobs=jobs, overwrite=overwrite,
        partial=partial, root=root, format=format,
    )


@app.command()
def check(
    paths: Annotated[list[str], typer.Argument(help="Operation documents or directories")],
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Print the diagnostic trail")] = False,
    recursive: Annotated[
        bool | None, typer.Option("--recursive/--no-recursive", "-r", help="Descend into subdirectories")
    ] = None,
    root: Annotated[str | None, typer.Option("--root", help="Project root (default from config)")] = None,
    format: Annotated[str, typer.Option("--format", "-f", help="Output format: table or json")] = "table",
) -> None:
    """Parse, validate, process and plan documents without writing anything."""
    _run(
        paths, dry_run=True, verbose=verbose, recursive=recursive,
        continue_on_error=True, jobs=None, overwrite=False, partial=False,
        root=root, format=format,
    )


@app.command()
def capabilities() -> None:
    """List registered language capabilities."""
    cfg = _get_config()
    try:
        registry = _build_registry(cfg)
    except CapabilityNotFoundError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title="Capabilities")
    table.add_column("Key", style="cyan")
    table.add_column("Capability", style="green")
    for key, capability in registry.items():
        table.add_row(key, capability.name)
    rprint(table)
    rprint(f"[dim]Unregistered keys use:[/dim] {registry.fallback.name}")


@app.command()
def clean(
    root: Annotated[str | None, typer.Option("--root", help="Project root (default from config)")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="List artifacts without removing")] = False,
) -> None:
    """Remove staging artifacts left by interrupted runs."""
    cfg = _get_config()
    project_root = Path(root or cfg.project_root)
    if dry_run:
        found = find_stale_artifacts(project_root, cfg.staging.suffix)
        for path in found:
            rprint(f"  {path}")
        rprint(f"[yellow]{len(found)} staging artifact(s) found.[/yellow]")
        return
    removed = cleanup_stale_artifacts(project_root, cfg.staging.suffix)
    rprint(f"[green]Removed[/green] {len(removed)} staging artifact(s).")


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default opdoc.yaml in current directory."""
    target = Path("opdoc.yaml")
    if target.exists() and not force:
        rprint("[yellow]opdoc.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


if __name__ == "__main__":
    app()
