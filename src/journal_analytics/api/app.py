"""JSON HTTP adapter over :class:`AnalyticsService`.

Routes only translate query parameters and render results; all
validation and computation happens in the service.

Usage::

    from journal_analytics.api.app import create_app

    app = create_app(service)
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from journal_analytics.core.errors import ConfigError, CsvImportError, InputError, StorageError
from journal_analytics.core.preferences import PreferencesStore
from journal_analytics.observability.logger import get_logger, new_request_id, set_request_id
from journal_analytics.service import AnalyticsService, render

logger = logging.getLogger(__name__)
access_log = get_logger("journal_analytics.access")

UNASSIGNED = "unassigned"


class StrategyCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    color: str | None = None


class StrategyAssignment(BaseModel):
    strategy_id: int | None = None


def parse_strategy_ref(value: str) -> int | None:
    """``unassigned`` selects pairs without a strategy; otherwise an integer id."""
    if value.strip().lower() == UNASSIGNED:
        return None
    try:
        return int(value)
    except ValueError:
        raise InputError(f"Strategy id must be an integer or {UNASSIGNED!r}, got {value!r}") from None


def create_app(
    service: AnalyticsService,
    preferences: PreferencesStore | None = None,
) -> FastAPI:
    """Create the analytics FastAPI application bound to *service*.

    The ``/preferences`` routes are only mounted when a
    :class:`PreferencesStore` is supplied.
    """
    app = FastAPI(title="Trading Journal Analytics")
    app.state.service = service
    app.state.preferences = preferences

    # Shared query parameters
    method_q = Query(None, alias="pairingMethod")
    start_q = Query(None, alias="startDate")
    end_q = Query(None, alias="endDate")

    @app.middleware("http")
    async def bind_request_id(request: Request, call_next: Any) -> Response:
        rid = request.headers.get("X-Request-ID") or new_request_id()
        set_request_id(rid)
        try:
            response = await call_next(request)
            access_log.debug(
                "request",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
            )
        finally:
            set_request_id("")
        response.headers["X-Request-ID"] = rid
        return response

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    @app.get("/metrics")
    def metrics(
        pairing_method: str | None = method_q,
        start_date: str | None = start_q,
        end_date: str | None = end_q,
    ) -> dict[str, Any]:
        return render(service.compute_metrics(pairing_method, start_date, end_date))

    @app.get("/symbols/pnl")
    def symbols_pnl(
        pairing_method: str | None = method_q,
        start_date: str | None = start_q,
        end_date: str | None = end_q,
    ) -> list[dict[str, Any]]:
        return render(service.compute_symbol_pnl(pairing_method, start_date, end_date))

    @app.get("/strategies/performance")
    def strategies_performance(
        pairing_method: str | None = method_q,
        start_date: str | None = start_q,
        end_date: str | None = end_q,
    ) -> list[dict[str, Any]]:
        return render(service.compute_strategy_performance(pairing_method, start_date, end_date))

    @app.get("/trades/recent")
    def trades_recent(
        limit: int | None = Query(None),
        pairing_method: str | None = method_q,
        start_date: str | None = start_q,
        end_date: str | None = end_q,
    ) -> list[dict[str, Any]]:
        return render(service.compute_recent_trades(limit, pairing_method, start_date, end_date))

    @app.get("/evaluation")
    def evaluation(
        pairing_method: str | None = method_q,
        start_date: str | None = start_q,
        end_date: str | None = end_q,
    ) -> dict[str, Any]:
        return render(service.compute_evaluation_metrics(pairing_method, start_date, end_date))

    @app.get("/distribution")
    def distribution(
        pairing_method: str | None = method_q,
        start_date: str | None = start_q,
        end_date: str | None = end_q,
        concentration_percent: float | None = Query(None, alias="concentrationPercent"),
    ) -> dict[str, Any]:
        return render(service.compute_distribution_concentration(
            pairing_method, start_date, end_date, concentration_percent,
        ))

    @app.get("/tilt")
    def tilt(
        pairing_method: str | None = method_q,
        start_date: str | None = start_q,
        end_date: str | None = end_q,
    ) -> dict[str, Any]:
        return render(service.compute_tilt_metric(pairing_method, start_date, end_date))

    @app.get("/daily-pnl")
    def daily_pnl(
        pairing_method: str | None = method_q,
        start_date: str | None = start_q,
        end_date: str | None = end_q,
    ) -> list[dict[str, Any]]:
        return render(service.compute_daily_pnl(pairing_method, start_date, end_date))

    @app.get("/equity")
    def equity(
        pairing_method: str | None = method_q,
        start_date: str | None = start_q,
        end_date: str | None = end_q,
    ) -> dict[str, Any]:
        return render(service.compute_equity_curve(pairing_method, start_date, end_date))

    @app.get("/positions/open")
    def open_positions(pairing_method: str | None = method_q) -> list[dict[str, Any]]:
        return render(service.get_open_positions(pairing_method))

    @app.get("/strategies/{strategy_ref}/trades")
    def strategy_trades(
        strategy_ref: str,
        pairing_method: str | None = method_q,
        start_date: str | None = start_q,
        end_date: str | None = end_q,
    ) -> list[dict[str, Any]]:
        strategy_id = parse_strategy_ref(strategy_ref)
        return render(service.get_paired_trades_by_strategy(
            strategy_id, pairing_method, start_date, end_date,
        ))

    @app.get("/trades/export")
    def export_trades(
        format: str = Query("csv"),
        pairing_method: str | None = method_q,
        start_date: str | None = start_q,
        end_date: str | None = end_q,
    ) -> Response:
        fmt = format.lower()
        if fmt not in ("csv", "json"):
            raise InputError(f"Export format must be 'csv' or 'json', got {format!r}")
        body = service.export_paired_trades(fmt, pairing_method, start_date, end_date)
        media = "application/json" if fmt == "json" else "text/csv"
        return Response(content=body, media_type=media)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @app.post("/trades/import")
    async def import_trades(request: Request) -> dict[str, Any]:
        raw = await request.body()
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise InputError("CSV upload must be UTF-8 text") from None
        result = await run_in_threadpool(service.import_trades_csv, text)
        return result.to_dict()

    @app.delete("/trades")
    def clear_trades() -> dict[str, int]:
        return {"removed": service.clear_all_trades()}

    @app.post("/strategies", status_code=201)
    def create_strategy(body: StrategyCreate) -> dict[str, Any]:
        return render(service.create_strategy(body.name, body.description, body.color))

    @app.put("/trades/{execution_id}/strategy")
    def assign_strategy(execution_id: int, body: StrategyAssignment) -> dict[str, Any]:
        return render(service.assign_trade_strategy(execution_id, body.strategy_id))

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    if preferences is not None:

        @app.get("/preferences")
        def get_preferences() -> dict[str, Any]:
            return render(preferences.current())

        @app.put("/preferences")
        def update_preferences(changes: dict[str, Any]) -> dict[str, Any]:
            return render(preferences.update(**changes))

    # ------------------------------------------------------------------
    # Health endpoint
    # ------------------------------------------------------------------

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @app.exception_handler(InputError)
    async def input_error_handler(request: Request, exc: InputError) -> JSONResponse:
        content: dict[str, Any] = {"error": type(exc).__name__, "detail": str(exc)}
        if isinstance(exc, CsvImportError):
            content["errors"] = exc.errors
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=400, content=content)

    @app.exception_handler(ConfigError)
    async def config_error_handler(request: Request, exc: ConfigError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=500,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    return app
