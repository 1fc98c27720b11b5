import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.alerts import AlertWebhook, alert_webhook
from api.metrics import render_latest
from api.rate_limit import FixedWindowRateLimiter, RateLimitExceeded, rate_limit_dependency
from api.streaming import SSE_HEADERS, StreamBroadcaster
from config import config
from config.settings import HubSettings
from ingest.sync_service import SyncService
from ingest.validator import RejectReason
from state.store import StateStore, utc_now_iso


logger = logging.getLogger(__name__)

REJECTION_RESPONSES = {
    RejectReason.UNAUTHORIZED: (403, 'Forbidden'),
    RejectReason.INVALID_PAYLOAD: (400, 'Invalid payload'),
    RejectReason.MISCONFIGURATION: (500, 'Server misconfiguration'),
}


def _reject_constant(name: str) -> Any:
    # strict JSON has no NaN or Infinity literals
    raise ValueError(f"Invalid JSON constant {name}")


def create_app(
    settings: Optional[HubSettings] = None,
    store: Optional[StateStore] = None,
    alerts: Optional[AlertWebhook] = None,
) -> FastAPI:
    """Build the hub application around an explicitly owned state store."""
    settings = settings or HubSettings.from_config(config)
    store = store or StateStore(retention=settings.retention)
    alerts = alerts or alert_webhook
    sync_service = SyncService(store, settings.sync_secret)
    broadcaster = StreamBroadcaster(store, interval_s=settings.stream_interval_s)
    limiter = None
    if settings.rate_limit_enabled:
        limiter = FixedWindowRateLimiter(settings.rate_limit_max_requests, settings.rate_limit_window_s)
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _log_banner(settings)
        if not settings.sync_secret:
            await alerts.misconfiguration_alert("SYNC_SECRET not set; syncs will be refused")
        try:
            yield
        finally:
            broadcaster.close()
            logger.info("Hub shutting down; in-memory snapshot discarded")

    app = FastAPI(title=f"{settings.service_name} Hub", version=settings.version, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.sync_service = sync_service
    app.state.broadcaster = broadcaster
    app.state.rate_limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    router = APIRouter(prefix="/api", dependencies=[Depends(rate_limit_dependency(limiter, settings.trust_proxy))])

    @router.post("/sync")
    async def sync(request: Request):
        content_length = request.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > settings.max_body_bytes:
            return JSONResponse({"error": "Payload too large"}, status_code=413)
        body = await request.body()
        if len(body) > settings.max_body_bytes:
            return JSONResponse({"error": "Payload too large"}, status_code=413)
        payload: Any = None
        if body:
            try:
                payload = json.loads(body, parse_constant=_reject_constant)
            except ValueError:
                payload = None

        outcome = sync_service.ingest(payload, request.headers.get(settings.sync_header))
        if not outcome.success:
            status_code, message = REJECTION_RESPONSES[outcome.reason]
            return JSONResponse({"error": message}, status_code=status_code)
        return {"success": True, "received_at": outcome.received_at}

    @router.get("/data")
    async def get_data():
        return store.read().to_dict()

    @router.get("/status")
    async def get_status():
        snapshot = store.read()
        out = snapshot.stats.to_dict()
        out['timestamp'] = snapshot.last_updated
        return out

    @router.get("/history")
    async def get_history(limit: Optional[str] = None):
        return store.read_slice('history', limit)

    @router.get("/transitions")
    async def get_transitions(limit: Optional[str] = None):
        return store.read_slice('transitions', limit)

    @router.get("/trades")
    async def get_trades(limit: Optional[str] = None):
        return store.read_slice('trades', limit)

    @router.get("/reports")
    async def get_reports(limit: Optional[str] = None):
        return store.read_slice('reports', limit)

    @router.get("/export")
    async def get_export():
        snapshot = store.read()
        return {
            "generated_at": utc_now_iso(),
            "system": settings.service_name,
            "version": snapshot.system.version,
            "mode": snapshot.system.mode.value,
            "reports": snapshot.sequence_dicts('reports'),
            "history": snapshot.sequence_dicts('history'),
            "transitions": snapshot.sequence_dicts('transitions'),
            "trades": snapshot.sequence_dicts('trades'),
        }

    @router.get("/stream")
    async def stream(request: Request):
        return StreamingResponse(
            broadcaster.subscribe(request.is_disconnected),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    app.include_router(router)

    @app.get("/")
    async def root():
        return {
            "service": settings.service_name,
            "version": settings.version,
            "mode": "public read-only",
            "sync_secret_configured": sync_service.configured,
        }

    @app.get("/favicon.ico")
    async def favicon():
        return Response(status_code=204)

    @app.get("/health")
    async def health():
        snapshot = store.read()
        return {
            "status": "healthy",
            "uptime": round(time.monotonic() - started_at, 3),
            "lastSync": snapshot.last_updated,
            "currentState": snapshot.stats.current_state,
            "cacheSize": store.cache_size(),
        }

    @app.get("/metrics")
    async def prometheus_metrics():
        body, content_type = render_latest()
        return Response(content=body, media_type=content_type)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limited(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            {"error": "Too many requests, please try again later."},
            status_code=429,
            headers={"Retry-After": str(int(exc.retry_after_s))},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return PlainTextResponse("Not Found", status_code=404)
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def server_error(request: Request, exc: Exception):
        logger.error("Server error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    return app


def _log_banner(settings: HubSettings) -> None:
    logger.info(
        "%s dashboard hub running on port %s (public read-only, sync secret %s)",
        settings.service_name,
        settings.port,
        "configured" if settings.sync_secret else "NOT SET",
    )
    if not settings.sync_secret:
        logger.warning("SYNC_SECRET not configured; every sync attempt will fail with 500")


app = create_app()

