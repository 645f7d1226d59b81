"""CLI entry point for the journal analytics engine."""

from __future__ import annotations

import functools
import json
from collections.abc import Callable
from typing import Any

import click

from .core.errors import CsvImportError, JournalError


def _service(config: str | None, db: str | None):
    """Build a SQL-backed service from the config file and ``--db``."""
    from .core.config import load_settings
    from .observability.logger import setup_logging
    from .service import AnalyticsService
    from .storage import create_store

    storage: dict[str, Any] = {"backend": "sql"}
    if db:
        storage["database_url"] = db
    settings = load_settings(config, overrides={"storage": storage})
    setup_logging(settings.observability.log_level, settings.observability.log_format)
    store = create_store(settings.storage)
    click.get_current_context().call_on_close(store.close)
    return AnalyticsService(store, settings)


def _echo_json(value: Any) -> None:
    from .service import render

    click.echo(json.dumps(render(value), indent=2, default=str))


def store_options(func: Callable) -> Callable:
    func = click.option("--db", default=None, help="Database URL (e.g. sqlite:///data/journal.db)")(func)
    func = click.option("--config", default=None, help="Config file path")(func)
    return func


def range_options(func: Callable) -> Callable:
    func = click.option("--end", "end_date", default=None, help="End date (YYYY-MM-DD), inclusive")(func)
    func = click.option("--start", "start_date", default=None, help="Start date (YYYY-MM-DD)")(func)
    func = click.option("--method", "pairing_method", default=None, help="Pairing method: FIFO or LIFO")(func)
    return store_options(func)


def handles_errors(func: Callable) -> Callable:
    """Turn engine errors into a clean CLI failure message."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except CsvImportError as exc:
            raise click.ClickException("\n".join(["CSV import rejected:", *exc.errors])) from exc
        except JournalError as exc:
            raise click.ClickException(str(exc)) from exc

    return wrapper


@click.group()
def main() -> None:
    """Trading journal analytics."""


@main.command()
@range_options
@handles_errors
def metrics(config, db, pairing_method, start_date, end_date) -> None:
    """Portfolio-level performance metrics."""
    _echo_json(_service(config, db).compute_metrics(pairing_method, start_date, end_date))


@main.command()
@range_options
@handles_errors
def symbols(config, db, pairing_method, start_date, end_date) -> None:
    """Per-symbol P&L with open quantity."""
    _echo_json(_service(config, db).compute_symbol_pnl(pairing_method, start_date, end_date))


@main.command()
@range_options
@handles_errors
def strategies(config, db, pairing_method, start_date, end_date) -> None:
    """Per-strategy trade count, volume and P&L."""
    _echo_json(_service(config, db).compute_strategy_performance(pairing_method, start_date, end_date))


@main.command()
@click.option("--limit", default=None, type=int, help="Number of trades (default 5)")
@range_options
@handles_errors
def recent(limit, config, db, pairing_method, start_date, end_date) -> None:
    """Most recently closed trades."""
    svc = _service(config, db)
    _echo_json(svc.compute_recent_trades(limit, pairing_method, start_date, end_date))


@main.command()
@range_options
@handles_errors
def evaluation(config, db, pairing_method, start_date, end_date) -> None:
    """Weekday / day / hour / symbol / strategy breakdown."""
    _echo_json(_service(config, db).compute_evaluation_metrics(pairing_method, start_date, end_date))


@main.command()
@click.option("--percent", "concentration_percent", default=None, type=float,
              help="Top-k percent for concentration (5-30)")
@range_options
@handles_errors
def distribution(concentration_percent, config, db, pairing_method, start_date, end_date) -> None:
    """P&L histogram and profit concentration."""
    svc = _service(config, db)
    _echo_json(svc.compute_distribution_concentration(
        pairing_method, start_date, end_date, concentration_percent,
    ))


@main.command()
@range_options
@handles_errors
def tilt(config, db, pairing_method, start_date, end_date) -> None:
    """Behaviour after losing streaks."""
    stats = _service(config, db).compute_tilt_metric(pairing_method, start_date, end_date)
    _echo_json(stats)


@main.command()
@range_options
@handles_errors
def daily(config, db, pairing_method, start_date, end_date) -> None:
    """Net P&L per trading day."""
    _echo_json(_service(config, db).compute_daily_pnl(pairing_method, start_date, end_date))


@main.command()
@range_options
@handles_errors
def equity(config, db, pairing_method, start_date, end_date) -> None:
    """Equity curve with drawdown periods."""
    _echo_json(_service(config, db).compute_equity_curve(pairing_method, start_date, end_date))


@main.command()
@click.option("--method", "pairing_method", default=None, help="Pairing method: FIFO or LIFO")
@store_options
@handles_errors
def positions(pairing_method, config, db) -> None:
    """Open (unmatched) lots."""
    _echo_json(_service(config, db).get_open_positions(pairing_method))


@main.command("strategy-trades")
@click.argument("strategy")
@range_options
@handles_errors
def strategy_trades(strategy, config, db, pairing_method, start_date, end_date) -> None:
    """Paired trades for STRATEGY (an id, or 'unassigned')."""
    from .api.app import parse_strategy_ref

    strategy_id = parse_strategy_ref(strategy)
    svc = _service(config, db)
    _echo_json(svc.get_paired_trades_by_strategy(strategy_id, pairing_method, start_date, end_date))


@main.command("import")
@click.argument("csv_file", type=click.File("r", encoding="utf-8-sig"))
@store_options
@handles_errors
def import_(csv_file, config, db) -> None:
    """Import executions from CSV_FILE (generic or Webull format)."""
    result = _service(config, db).import_trades_csv(csv_file.read())
    click.echo(
        f"Imported {result.imported} executions "
        f"({result.skipped_duplicates} duplicates, {result.skipped_unfilled} unfilled skipped)"
    )


@main.command()
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@store_options
@handles_errors
def clear(yes, config, db) -> None:
    """Delete every stored execution."""
    if not yes:
        click.confirm("Delete all executions?", abort=True)
    removed = _service(config, db).clear_all_trades()
    click.echo(f"Removed {removed} executions")


@main.command("add-strategy")
@click.argument("name")
@click.option("--description", default=None)
@click.option("--color", default=None)
@store_options
@handles_errors
def add_strategy(name, description, color, config, db) -> None:
    """Create a strategy called NAME."""
    _echo_json(_service(config, db).create_strategy(name, description, color))


@main.command()
@click.argument("execution_id", type=int)
@click.argument("strategy")
@store_options
@handles_errors
def assign(execution_id, strategy, config, db) -> None:
    """Tag EXECUTION_ID with STRATEGY (an id, or 'unassigned' to clear)."""
    from .api.app import parse_strategy_ref

    strategy_id = parse_strategy_ref(strategy)
    _echo_json(_service(config, db).assign_trade_strategy(execution_id, strategy_id))


@main.command()
@click.option("--format", "fmt", type=click.Choice(["csv", "json"]), default="csv")
@click.option("--output", type=click.Path(dir_okay=False, writable=True), default=None,
              help="Write to file instead of stdout")
@range_options
@handles_errors
def export(fmt, output, config, db, pairing_method, start_date, end_date) -> None:
    """Export paired trades as CSV or JSON."""
    body = _service(config, db).export_paired_trades(fmt, pairing_method, start_date, end_date)
    if output:
        with open(output, "w", encoding="utf-8", newline="") as f:
            f.write(body)
        click.echo(f"Wrote {output}")
    else:
        click.echo(body, nl=False)


@main.command()
@click.option("--set", "assignments", multiple=True, metavar="KEY=VALUE",
              help="Update a preference; VALUE is parsed as JSON when possible")
@click.option("--config", default=None, help="Config file path")
@handles_errors
def prefs(assignments, config) -> None:
    """Show or update display preferences."""
    from .core.config import load_settings
    from .core.preferences import PreferencesStore

    store = PreferencesStore(load_settings(config).preferences_path)
    if not assignments:
        _echo_json(store.current())
        return

    changes: dict[str, Any] = {}
    for item in assignments:
        key, sep, raw = item.partition("=")
        if not sep:
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="--set")
        try:
            changes[key.strip()] = json.loads(raw)
        except json.JSONDecodeError:
            changes[key.strip()] = raw
    _echo_json(store.update(**changes))


@main.command()
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", default=None, type=int, help="Port (default from settings)")
@store_options
def serve(host, port, config, db) -> None:
    """Serve the analytics HTTP API."""
    import uvicorn

    from .api.app import create_app
    from .core.preferences import PreferencesStore

    svc = _service(config, db)
    preferences = PreferencesStore(svc.settings.preferences_path)
    uvicorn.run(
        create_app(svc, preferences),
        host=host or svc.settings.host,
        port=port or svc.settings.port,
        log_config=None,
    )
