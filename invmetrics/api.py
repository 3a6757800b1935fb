from __future__ import annotations
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from invmetrics.config import Settings, settings as default_settings
from invmetrics.dates import format_instant
from invmetrics.errors import MetricsError, QueryValidationError
from invmetrics.observability import clear_log_context, configure_logging, set_log_context
from invmetrics.runner import MetricsPipeline, build_query
from invmetrics.schemas import ErrorResponse
from invmetrics.stores.base import RecordStore
from invmetrics.stores.factory import open_store

logger = logging.getLogger(__name__)

def _error(status_code: int, error: str, details: Optional[str]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, details=details).model_dump())

def create_app(settings: Optional[Settings] = None, store: Optional[RecordStore] = None) -> FastAPI:
    """Builds the API; the store is opened once at startup unless one is passed in."""
    s = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(environment=s.environment, log_level=s.log_level)
        st = store if store is not None else await open_store(s)
        app.state.pipeline = MetricsPipeline(s, st)
        logger.info("%s started (store=%s)", s.service_name, type(st).__name__)
        try:
            yield
        finally:
            if store is None:
                await st.close()

    app = FastAPI(title="Invitation Metrics API", version="1.0.0", lifespan=lifespan)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error(404, "Not Found", f"Route {request.method} {request.url.path} not found")
        return _error(exc.status_code, str(exc.detail), f"Route {request.method} {request.url.path}: {exc.detail}")

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError):
        return _error(400, QueryValidationError.error, str(exc.errors()))

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": format_instant(datetime.now(timezone.utc)), "service": s.service_name}

    @app.get("/metrics/invitations/daily")
    async def daily_invitation_metrics(
        request: Request,
        tenant_id: Optional[str] = Query(None, alias="tenantId"),
        account_id: Optional[str] = Query(None, alias="accountId"),
        from_: Optional[str] = Query(None, alias="from"),
        to: Optional[str] = Query(None, alias="to"),
    ):
        set_log_context(request_id=uuid.uuid4().hex[:12])
        try:
            try:
                query = build_query(tenant_id, account_id, from_, to)
            except QueryValidationError as e:
                logger.warning("Rejected metrics request: %s", e.details)
                return _error(e.status_code, e.error, e.details)

            try:
                points = await request.app.state.pipeline.run(query)
            except MetricsError as e:
                logger.exception("Error processing metrics request")
                return _error(e.status_code, e.error, e.details)
            except Exception as e:
                logger.exception("Error processing metrics request")
                return _error(500, "Internal server error", str(e) or "Unknown error occurred")

            logger.info("Returning %d data points", len(points))
            return [p.to_wire() for p in points]
        finally:
            clear_log_context()

    return app

app = create_app()
