"""asmmap CLI - build and query the namespace -> assembly ownership index."""

from __future__ import annotations

import logging

import click

from asmmap.config import DEFAULT_INDEX_PATH, ScanConfig, ScanProgress, ScanResult
from asmmap.graph.namespace_index import NamespaceIndex
from asmmap.output import IndexLoadError, IndexStore
from asmmap.pipeline import ScanDriver
from asmmap.unity.folders import RootFolders


def _configure_logging(verbose: bool, quiet: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_index(store: IndexStore) -> NamespaceIndex:
    try:
        return store.load()
    except IndexLoadError as e:
        raise click.ClickException(f"Index unavailable: {e}") from e


@click.group()
@click.option("-p", "--project", "project_dir", default=".", show_default=True,
              type=click.Path(file_okay=False), help="Unity project directory")
@click.option("-i", "--index", "index_path", default=DEFAULT_INDEX_PATH, show_default=True,
              envvar="ASMMAP_INDEX", help="Index file path (relative to the project)")
@click.pass_context
def cli(ctx: click.Context, project_dir: str, index_path: str) -> None:
    """asmmap - Map every namespace to the assembly that owns it."""
    config = ScanConfig(project_dir=project_dir, index_path=index_path)
    ctx.obj = config


def _run_with_progress(driver: ScanDriver, roots: list[str]) -> ScanResult | None:
    """Run the scan with Rich progress display."""
    from rich.console import Console
    from rich.progress import (
        BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn, TimeElapsedColumn,
    )

    console = Console()

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TextColumn("{task.fields[files]} files"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Preparing scan...", total=1.0, files="0/0")

        def on_step(state: ScanProgress) -> None:
            label = state.current_source or state.current_manifest or "Preparing scan..."
            progress.update(
                task,
                description=label,
                completed=state.fraction,
                files=f"{state.processed_sources}/{state.total_sources}",
            )

        driver.progress_callback = on_step
        result = driver.run(roots)

    if result is None:
        return None

    from rich.table import Table

    table = Table(title="Assembly Namespace Index", show_edge=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Outcome", result.outcome.value)
    table.add_row("Asmdefs", f"{result.progress.processed_manifests}/{result.progress.total_manifests}")
    table.add_row("Files", f"{result.progress.processed_sources}/{result.progress.total_sources}")
    table.add_row("Namespaces", str(result.namespace_count))
    console.print(table)
    console.print(f"[green]Index written to:[/green] {result.index_path}")

    return result


@cli.command("scan")
@click.argument("roots", nargs=-1)
@click.option("--all-packages", is_flag=True, help="Also scan every embedded package except com.unity.*")
@click.option("--verbose", is_flag=True, help="Log skipped manifests and other details")
@click.option("--quiet", is_flag=True, help="Suppress all output except errors")
@click.pass_obj
def scan_cmd(
    config: ScanConfig,
    roots: tuple[str, ...],
    all_packages: bool,
    verbose: bool,
    quiet: bool,
) -> None:
    """Scan ROOTS for .asmdef files and rebuild the namespace index."""
    _configure_logging(verbose, quiet)

    folders = RootFolders(
        config.project_dir, config.vendored_root, config.skip_package_prefix,
    )
    for root in roots:
        folders.add(root)
    if all_packages:
        folders.add_all_packages()

    if not folders:
        raise click.UsageError("No folders to scan. Pass ROOTS or --all-packages.")

    config.roots = folders.to_list()
    store = IndexStore(config.resolved_index_path())
    driver = ScanDriver(config, _load_index(store), store)

    if quiet:
        result = driver.run(config.roots)
    else:
        result = _run_with_progress(driver, config.roots)

    if result is None:
        raise click.ClickException("Scan could not be started")


@cli.command("show")
@click.option("-f", "--filter", "filter_text", default=None,
              help="Only show namespaces or assemblies containing this text")
@click.pass_obj
def show_cmd(config: ScanConfig, filter_text: str | None) -> None:
    """List the namespace -> assembly mappings."""
    from rich.console import Console
    from rich.table import Table

    index = _load_index(IndexStore(config.resolved_index_path()))
    console = Console()

    table = Table(title=f"Namespace Index ({len(index)})", show_edge=False)
    table.add_column("Namespace", style="bold")
    table.add_column("Assembly")
    table.add_column("Source")
    for namespace, record in index.filter(filter_text):
        table.add_row(namespace, record.assembly_name, record.origin.value)
    console.print(table)


@cli.command("lookup")
@click.argument("namespace")
@click.pass_obj
def lookup_cmd(config: ScanConfig, namespace: str) -> None:
    """Print the assembly that owns NAMESPACE."""
    index = _load_index(IndexStore(config.resolved_index_path()))
    record = index.resolve(namespace)
    if record is None:
        raise click.ClickException(f"No assembly owns '{namespace}'")
    click.echo(f"{record.assembly_name}\t{record.manifest_path}\t{record.origin.value}")


@cli.command("export")
@click.argument("dest", type=click.Path(dir_okay=False))
@click.pass_obj
def export_cmd(config: ScanConfig, dest: str) -> None:
    """Write the index to DEST."""
    store = IndexStore(config.resolved_index_path())
    index = _load_index(store)
    store.export(dest, index)
    click.echo(f"Exported {len(index)} namespaces to {dest}")


@cli.command("clear")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def clear_cmd(config: ScanConfig, yes: bool) -> None:
    """Delete all learned namespace mappings."""
    store = IndexStore(config.resolved_index_path())
    index = _load_index(store)
    if not yes:
        click.confirm("Delete all learned namespace mappings?", abort=True)
    index.clear()
    store.save(index)
    click.echo("Index cleared")


if __name__ == "__main__":
    cli()
