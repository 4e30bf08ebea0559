"""FastAPI application entrypoint for workhub."""

from __future__ import annotations

from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from workhub.auth.dependencies import AUTH_CONTEXT_KEY, WORKSPACE_HEADER, resolve_request_auth_context
from workhub.auth.router import router as auth_router
from workhub.core.config import get_settings
from workhub.core.errors import INTERNAL_ERROR_MESSAGE
from workhub.core.logger import bind_request_context, clear_request_context, get_logger
from workhub.core.metrics import record_http_request, render_prometheus_metrics
from workhub.core.observability import capture_exception, init_sentry, sentry_scope
from workhub.schemas.members import ErrorEnvelope
from workhub.storage.db import load_models, ping_database
from workhub.workspaces.members_router import router as workspace_members_router
from workhub.workspaces.router import router as workspaces_router


settings = get_settings()
logger = get_logger("workhub.api")

UNMATCHED_ROUTE_LABEL = "unmatched"

app = FastAPI(title=settings.app_name, version=settings.app_version)


def _error_response(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorEnvelope(error=message).model_dump(),
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    del request
    return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return _error_response(400, "Invalid request payload")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", path=request.url.path, method=request.method)
    capture_exception(exc)
    return _error_response(500, INTERNAL_ERROR_MESSAGE)


def _route_label(request: Request) -> str:
    # Label by route template so path parameters do not create new series.
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE_LABEL


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    started_at = perf_counter()
    request_id = request.headers.get("x-request-id", str(uuid4()))
    auth_context = resolve_request_auth_context(request)
    setattr(request.state, AUTH_CONTEXT_KEY, auth_context)

    workspace_id = request.headers.get(WORKSPACE_HEADER)
    if workspace_id is None and auth_context is not None:
        workspace_id = auth_context.workspace_id
    bind_request_context(
        request_id=request_id,
        workspace_id=workspace_id,
        user_id=auth_context.user_id if auth_context is not None else None,
    )

    status_code = 500
    try:
        with sentry_scope(workspace_id=workspace_id, request_id=request_id):
            response = await call_next(request)
        status_code = int(response.status_code)
    finally:
        duration = perf_counter() - started_at
        if settings.metrics_enabled:
            record_http_request(
                method=request.method,
                path=_route_label(request),
                status_code=status_code,
                duration_seconds=duration,
            )
        clear_request_context()

    response.headers["x-request-id"] = request_id
    return response


@app.on_event("startup")
def on_startup() -> None:
    load_models()
    sentry_enabled = init_sentry()
    logger.info(
        "application_startup",
        env=settings.env,
        version=settings.app_version,
        sentry_enabled=sentry_enabled,
        metrics_enabled=settings.metrics_enabled,
        owner_grant_requires_owner=settings.owner_grant_requires_owner,
    )


@app.get("/health")
def health() -> JSONResponse:
    db_ok, db_error = ping_database()
    status = "ok" if db_ok else "degraded"

    payload = {
        "status": status,
        "env": settings.env,
        "services": {
            "database": {"ok": db_ok, "error": db_error},
        },
    }

    return JSONResponse(content=payload, status_code=200 if db_ok else 503)


@app.get("/version")
def version() -> dict[str, str]:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "env": settings.env,
    }


@app.get("/metrics")
def metrics() -> PlainTextResponse:
    if not settings.metrics_enabled:
        return PlainTextResponse("metrics disabled\n", status_code=404)

    payload = render_prometheus_metrics(
        app_name=settings.app_name,
        app_version=settings.app_version,
        env=settings.env,
    )
    return PlainTextResponse(
        payload,
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


app.include_router(auth_router)
app.include_router(workspaces_router)
app.include_router(workspace_members_router)
