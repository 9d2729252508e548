"""ETF holdings tracker CLI."""

import logging
from datetime import date, datetime
from pathlib import Path

import click

from .analysis.cleanup import CleanupService
from .analysis.diff import DiffEngine
from .analysis.query import HoldingQueryService
from .config import Config, get_config
from .errors import TrackerError, ValidationError
from .reports import generate_compare_report, generate_snapshot_report
from .storage import export_all_to_csv, export_to_csv, export_to_parquet, load_snapshot_csv, open_store
from .storage.base import SnapshotStore
from .tracking import track_snapshot

DATE = click.DateTime(formats=["%Y-%m-%d"])


# =============================================================================
# Helpers
# =============================================================================


def validate_output_path(output: str, config: Config) -> Path:
    """
    Resolve an output path, refusing anything outside the tracker home or cwd.

    Raises:
        click.ClickException: If the path escapes both directories
    """
    output_path = Path(output).resolve()
    for base in (config.base_dir.resolve(), Path.cwd().resolve()):
        if output_path.is_relative_to(base):
            return output_path

    raise click.ClickException(
        f"Output path must be under {config.base_dir} or the current directory. "
        f"Got: {output_path}"
    )


def _as_date(value: datetime | None) -> date | None:
    return value.date() if value is not None else None


def _print_markdown(content: str) -> None:
    """Print markdown content with rich formatting."""
    from rich.console import Console
    from rich.markdown import Markdown
    console = Console()
    console.print(Markdown(content))


def _write_or_print(content: str, output: str | None, config: Config) -> None:
    if output:
        output_path = validate_output_path(output, config)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding="utf-8")
        click.echo(f"Report saved to: {output_path}")
    else:
        _print_markdown(content)


def _get_store(ctx: click.Context) -> SnapshotStore:
    """Open the configured store once per invocation."""
    obj = ctx.find_root().obj
    if "store" not in obj:
        store = open_store(obj["config"])
        obj["store"] = store
        ctx.call_on_close(store.close)
    return obj["store"]


class TrackerGroup(click.Group):
    """Command group that turns tracker errors into CLI errors.

    Validation errors are the caller's fault (exit code 2); storage and
    fetch errors are ours (exit code 1).
    """

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except ValidationError as e:
            raise click.UsageError(str(e), ctx=ctx) from e
        except TrackerError as e:
            raise click.ClickException(str(e)) from e


# =============================================================================
# Commands
# =============================================================================


@click.group(cls=TrackerGroup)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.option(
    "--config",
    "settings_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Settings YAML file",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, settings_file: Path | None) -> None:
    """ETF Holdings Tracker - Daily fund composition snapshots and comparisons."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = get_config(settings_file)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Invalid settings: {e}") from e


@cli.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--date", "as_of", type=DATE, help="Snapshot date (default: the file's date column)")
@click.pass_context
def import_snapshot(ctx: click.Context, file: Path, as_of: datetime | None) -> None:
    """Import a holdings CSV as the snapshot for its date and show what changed."""
    store = _get_store(ctx)
    tracked = track_snapshot(
        lambda: load_snapshot_csv(file, _as_date(as_of)), store, source=str(file)
    )
    snapshot = tracked.snapshot
    click.echo(f"Saved {snapshot.total_count} holdings for {snapshot.date.isoformat()}")
    if tracked.is_first:
        click.echo("No earlier snapshot to compare against.")
        return

    changes = tracked.changes
    click.echo(
        f"Changes since {tracked.previous_date.isoformat()}: {changes.total_changes} "
        f"({changes.new_count} new, {changes.removed_count} removed, "
        f"{changes.increased_count} increased, {changes.decreased_count} decreased)"
    )


@cli.command("show")
@click.option("--date", "as_of", type=DATE, help="Snapshot date (default: latest)")
@click.option("--top", type=click.IntRange(min=1), help="Only show the N largest holdings")
@click.option("--output", "-o", type=click.Path(), help="Output file path")
@click.pass_context
def show(ctx: click.Context, as_of: datetime | None, top: int | None, output: str | None) -> None:
    """Show the holdings for a date."""
    config = ctx.obj["config"]
    query = HoldingQueryService(_get_store(ctx))

    if as_of is None:
        snapshot = query.get_latest()
        if snapshot is None:
            click.echo("No snapshots stored. Run 'import' first.")
            return
    else:
        snapshot = query.get_snapshot(_as_date(as_of))
        if snapshot is None:
            raise ValidationError(
                f"No holdings data for {as_of.date().isoformat()}",
                field="date",
                value=as_of.date(),
            )

    report_md = generate_snapshot_report(snapshot, fund_code=config.fund_code, top=top)
    _write_or_print(report_md, output, config)


@cli.command("dates")
@click.pass_context
def dates(ctx: click.Context) -> None:
    """List the dates with stored snapshots."""
    from rich.console import Console
    from rich.table import Table

    store = _get_store(ctx)
    available = HoldingQueryService(store).available_dates()
    if not available.has_data:
        click.echo("No snapshots stored. Run 'import' first.")
        return

    console = Console()
    table = Table(title=f"Stored Snapshots ({available.total_days})")
    table.add_column("Date", style="cyan")
    table.add_column("Holdings", justify="right")

    for as_of in available.dates:
        snapshot = store.get(as_of)
        table.add_row(as_of.isoformat(), str(snapshot.total_count if snapshot else 0))

    console.print(table)


@cli.command("compare")
@click.option("--from", "from_date", type=DATE, help="Start date (default: second latest)")
@click.option("--to", "to_date", type=DATE, help="End date (default: latest)")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of markdown")
@click.option("--output", "-o", type=click.Path(), help="Output file path")
@click.pass_context
def compare(
    ctx: click.Context,
    from_date: datetime | None,
    to_date: datetime | None,
    as_json: bool,
    output: str | None,
) -> None:
    """Compare holdings between two dates."""
    config = ctx.obj["config"]
    engine = DiffEngine(_get_store(ctx))

    if from_date is None and to_date is None:
        result = engine.compare_latest()
    elif from_date is None or to_date is None:
        raise click.UsageError("Pass both --from and --to, or neither", ctx=ctx)
    else:
        result = engine.compare(_as_date(from_date), _as_date(to_date))

    if as_json:
        if output:
            output_path = validate_output_path(output, config)
            result.save(output_path)
            click.echo(f"Comparison saved to: {output_path}")
        else:
            click.echo(result.to_json())
    else:
        _write_or_print(generate_compare_report(result, fund_code=config.fund_code), output, config)


@cli.command("search")
@click.argument("keyword", default="")
@click.pass_context
def search(ctx: click.Context, keyword: str) -> None:
    """Search the latest holdings by stock code or name."""
    from rich.console import Console
    from rich.table import Table

    query = HoldingQueryService(_get_store(ctx))
    holdings = query.search(keyword)
    if not holdings:
        click.echo(f"No holdings match '{keyword}'.")
        return

    console = Console()
    table = Table(title=f"Holdings matching '{keyword}'" if keyword else "Holdings")
    table.add_column("Code", style="cyan")
    table.add_column("Name")
    table.add_column("Shares", justify="right")
    table.add_column("Weight", justify="right")

    for h in holdings:
        table.add_row(h.stock_code, h.stock_name, f"{h.shares:,}", f"{h.weight:.2f}%")

    console.print(table)


@cli.command("history")
@click.argument("stock_code")
@click.pass_context
def history(ctx: click.Context, stock_code: str) -> None:
    """Show every change to one stock across the stored dates."""
    from rich.console import Console
    from rich.table import Table

    entries = HoldingQueryService(_get_store(ctx)).stock_history(stock_code)
    if not entries:
        click.echo(f"No changes recorded for {stock_code}.")
        return

    console = Console()
    table = Table(title=f"Change History: {stock_code}")
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Change")
    table.add_column("Shares", justify="right")
    table.add_column("Ratio", justify="right")
    table.add_column("Weight Diff", justify="right")

    for entry in entries:
        c = entry.change
        table.add_row(
            entry.start_date.isoformat(),
            entry.end_date.isoformat(),
            c.change_type.value,
            f"{c.shares_diff:+,}",
            f"{c.change_ratio:+.2f}%" if c.change_ratio is not None else "-",
            f"{c.weight_diff:+.4f}",
        )

    console.print(table)


@cli.command("stats")
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show statistics for the latest snapshot and the store."""
    config = ctx.obj["config"]
    store = _get_store(ctx)
    holding_stats = HoldingQueryService(store).statistics()
    cleanup_stats = CleanupService(store, config).statistics()

    click.echo(f"Data source: {store.data_source_info}")
    click.echo(f"Stored dates: {cleanup_stats.total_dates}")
    click.echo(f"Stored rows: {store.get_total_record_count()}")
    if cleanup_stats.total_dates:
        click.echo(
            f"Date range: {cleanup_stats.oldest_date.isoformat()} to "
            f"{cleanup_stats.newest_date.isoformat()} ({cleanup_stats.data_span_days} days)"
        )
        click.echo(
            f"Expired dates ({config.retention_days}-day retention): {cleanup_stats.expired_dates}"
        )
    if holding_stats.date is not None:
        click.echo(f"Latest snapshot: {holding_stats.date.isoformat()}")
        click.echo(f"  Holdings: {holding_stats.total_count}")
        click.echo(f"  Total weight: {holding_stats.total_weight:.2f}%")


@cli.command("cleanup")
@click.option("--days", type=int, help="Days to keep (default: configured retention)")
@click.option("--preview", is_flag=True, help="Show what would be deleted without deleting")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def cleanup(ctx: click.Context, days: int | None, preview: bool, yes: bool) -> None:
    """Delete snapshots older than the retention window."""
    config = ctx.obj["config"]
    service = CleanupService(_get_store(ctx), config)

    plan = service.preview(days)
    if preview or not plan.dates:
        click.echo(
            f"Cutoff {plan.cutoff_date.isoformat()}: {plan.date_count} date(s), "
            f"{plan.record_count} row(s) would be deleted."
        )
        for as_of in plan.dates:
            click.echo(f"  {as_of.isoformat()}")
        return

    click.echo(
        f"About to delete {plan.date_count} date(s) ({plan.record_count} rows) "
        f"dated on or before {plan.cutoff_date.isoformat()}."
    )
    confirmed = yes or click.confirm("Delete?", default=False)
    result = service.confirm_and_cleanup(days, confirmed)
    if not confirmed:
        click.echo("Aborted.")
        return
    if not result.success:
        raise click.ClickException(result.message)
    click.echo(f"{result.message}. {result.remaining_days} date(s) remain.")


@cli.command("export")
@click.option("--format", "fmt", type=click.Choice(["csv", "parquet"]), default="csv")
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@click.pass_context
def export(ctx: click.Context, fmt: str, output: str | None) -> None:
    """Export every stored snapshot to CSV or Parquet."""
    config = ctx.obj["config"]
    store = _get_store(ctx)

    if output:
        output_path = validate_output_path(output, config)
    else:
        output_path = config.artifacts_dir / "exports"
    output_path.mkdir(parents=True, exist_ok=True)

    available = store.get_available_dates()
    if not available:
        click.echo("No snapshots stored. Run 'import' first.")
        return

    for as_of in available:
        snapshot = store.get(as_of)
        if snapshot is None:
            continue
        if fmt == "csv":
            path = export_to_csv(snapshot, output_path)
        else:
            path = export_to_parquet(snapshot, output_path)
        click.echo(f"Exported: {path}")

    if fmt == "csv":
        click.echo(f"Exported: {export_all_to_csv(store, output_path)}")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
