# ruff: noqa: I001
"""CLI for the ``profinance`` package.

Command handlers (``cmd_load``, ``cmd_sync`` ...) hold the logic and return an
exit code; the Typer commands below only parse options and delegate. The root
callback loads a local ``.env`` with ``python-dotenv`` (so ``PROFINANCE_*``
settings can live there) and configures logging before any command runs.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Annotated
from collections.abc import Iterable

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .config import load_settings
from .export import export_filename, to_csv
from .formatting import format_currency, format_date
from .logging_setup import configure_logging
from .models import CanonicalRecord, DatasetKind
from .pipeline import DataIngestionPipeline
from .state import AppState, financial_summary


# ---- Small module-level helpers used by CLI commands -------------------------


def _build_pipeline() -> DataIngestionPipeline:
    return DataIngestionPipeline.from_settings(load_settings())


def _parse_kind(kind: str) -> DatasetKind | None:
    try:
        return DatasetKind(kind.strip().lower())
    except ValueError:
        choices = ", ".join(k.value for k in DatasetKind)
        print(f"Error: unknown dataset kind {kind!r} (choose from: {choices})", file=sys.stderr)
        return None


def _amount_of(record: CanonicalRecord) -> float:
    for name in ("price", "amount", "current_balance", "current_value"):
        if hasattr(record, name):
            return float(getattr(record, name))
    return 0.0


def _label_of(record: CanonicalRecord) -> str:
    for name in ("product", "entity", "description"):
        if hasattr(record, name):
            return str(getattr(record, name))
    return ""


def _print_records(records: Iterable[CanonicalRecord], *, as_json: bool) -> None:
    items = list(records)
    if as_json:
        payload = [r.model_dump(mode="json") for r in items]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return
    # "<date>\t<label>\t<amount>" per record
    for r in items:
        print(f"{format_date(r.date)}\t{_label_of(r)}\t{format_currency(_amount_of(r))}")


# ---- Command handlers --------------------------------------------------------


def cmd_load(kind: str, *, use_cache: bool = True, as_json: bool = False) -> int:
    """Load one dataset kind and print its records.

    The status line (``<kind>: <state> (<source>), N record(s)``) goes to
    stderr so ``--json`` output stays machine-readable.
    """

    k = _parse_kind(kind)
    if k is None:
        return 1
    try:
        pipeline = _build_pipeline()
        result = pipeline.load(k, use_cache=use_cache)
    except Exception as e:
        print(f"Error: load failed: {e}", file=sys.stderr)
        return 1

    print(
        f"{k.value}: {result.state.value} ({result.source.value}), "
        f"{len(result.records)} record(s)",
        file=sys.stderr,
    )
    if result.error is not None:
        print(f"  reason: {result.error}", file=sys.stderr)
    _print_records(result.records, as_json=as_json)
    return 0


def cmd_sync(*, use_cache: bool = True) -> int:
    """Load every kind; print its state and count, the overall state and the summary."""

    try:
        pipeline = _build_pipeline()
        state = AppState()
        pipeline.subscribe(state.on_state)
        aggregate = pipeline.load_all(use_cache=use_cache)
    except Exception as e:
        print(f"Error: sync failed: {e}", file=sys.stderr)
        return 1

    for k in DatasetKind:
        records = aggregate.records(k) or ()
        print(f"{k.value}\t{state.states[k].value}\t{len(records)}")
    print(f"overall\t{state.overall_state.value}")

    summary = financial_summary(aggregate)
    print(f"liquid_money\t{format_currency(summary.liquid_money)}")
    print(f"total_capital\t{format_currency(summary.total_capital)}")
    return 0


def cmd_export(
    kind: str,
    out: str | None = None,
    *,
    search: str | None = None,
    category: str | None = None,
    use_cache: bool = True,
) -> int:
    """Load ``kind``, apply the filters and write the visible view as CSV."""

    k = _parse_kind(kind)
    if k is None:
        return 1
    try:
        pipeline = _build_pipeline()
        state = AppState()
        state.apply(pipeline.load(k, use_cache=use_cache))
    except Exception as e:
        print(f"Error: load failed: {e}", file=sys.stderr)
        return 1

    view = state.view(k)
    if category:
        view.filter_category(category)
    if search:
        view.search(search)

    target = Path(out) if out else Path.cwd() / export_filename(k)
    try:
        target.write_text(to_csv(k, view.visible), encoding="utf-8")
    except PermissionError:
        print(f"Error: Permission denied: {target}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: failed to write '{target}': {e}", file=sys.stderr)
        return 1

    print(f"{target}\t{len(view.visible)}")
    return 0


def cmd_parse(kind: str, csv_path: str, *, as_json: bool = True) -> int:
    """Parse and normalize a local CSV export without touching cache or network."""

    k = _parse_kind(kind)
    if k is None:
        return 1
    try:
        text = Path(csv_path).read_text(encoding="utf-8-sig")
    except FileNotFoundError:
        print(f"Error: File not found: {csv_path}", file=sys.stderr)
        return 1
    except PermissionError:
        print(f"Error: Permission denied: {csv_path}", file=sys.stderr)
        return 1
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: Unexpected failure reading '{csv_path}': {e}", file=sys.stderr)
        return 1

    records = DataIngestionPipeline(sheet_ids={}).load_text(k, text)
    print(f"{k.value}: {len(records)} record(s)", file=sys.stderr)
    _print_records(records, as_json=as_json)
    return 0


def cmd_clear_cache() -> int:
    pipeline = _build_pipeline()
    path = pipeline.cache.path
    pipeline.cache.clear()
    print(f"cleared\t{path}")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "ProFinance data ingestion: load published Google Sheets, normalize the "
        "records and export them. Reads PROFINANCE_* settings from a local .env."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
NO_CACHE_OPTION: OptionInfo = typer.Option(
    "--no-cache", help="Skip the cached aggregate and fetch again."
)
JSON_OPTION: OptionInfo = typer.Option("--json", help="Print records as JSON.")


@app.command("load")
def load_cmd(
    kind: Annotated[str, typer.Argument(help="expenses, income, debts, capital or investments")],
    *,
    no_cache: Annotated[bool, NO_CACHE_OPTION] = False,
    as_json: Annotated[bool, JSON_OPTION] = False,
) -> None:
    """Load one dataset kind and print its records."""

    raise typer.Exit(cmd_load(kind, use_cache=not no_cache, as_json=as_json))


@app.command("sync")
def sync_cmd(
    *,
    no_cache: Annotated[bool, NO_CACHE_OPTION] = False,
) -> None:
    """Load every dataset kind and print per-kind state and counts."""

    raise typer.Exit(cmd_sync(use_cache=not no_cache))


@app.command("export")
def export_cmd(
    kind: Annotated[str, typer.Argument(help="Dataset kind to export")],
    *,
    out: str | None = typer.Option(
        None, "--out", help="Output path (defaults to e.g. gastos_YYYY-MM-DD.csv)."
    ),
    search: str | None = typer.Option(None, help="Only rows matching this text."),
    category: str | None = typer.Option(None, help="Only rows in this category."),
    no_cache: Annotated[bool, NO_CACHE_OPTION] = False,
) -> None:
    """Write the (filtered) records of one kind as CSV."""

    raise typer.Exit(
        cmd_export(kind, out, search=search, category=category, use_cache=not no_cache)
    )


@app.command("parse")
def parse_cmd(
    kind: Annotated[str, typer.Argument(help="Dataset kind of the CSV rows")],
    *,
    csv_path: Path = typer.Option(
        ...,
        "--csv-path",
        help="Path to a CSV export of a sheet",
        dir_okay=False,
        file_okay=True,
        exists=False,  # the handler reports missing files
    ),
    as_table: bool = typer.Option(False, "--table", help="Print a table instead of JSON."),
) -> None:
    """Parse and normalize a local CSV file."""

    raise typer.Exit(cmd_parse(kind, str(csv_path), as_json=not as_table))


@app.command("clear-cache")
def clear_cache_cmd() -> None:
    """Remove the cached aggregate."""

    raise typer.Exit(cmd_clear_cache())


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (falls back to PROFINANCE_LOG_LEVEL)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    try:
        configure_logging(log_level or load_settings().log_level)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level") from e

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
