from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from app.api.response import exception_envelope
from app.api.v1.router import build_api_router
from app.core.config import get_settings
from app.core.logging_config import configure_logging
from app.core.metrics import render_metrics
from app.core.middleware import MetricsMiddleware, RequestLoggingMiddleware
from app.services import infra_service

settings = get_settings()
configure_logging(log_level=settings.log_level, app_env=settings.app_env)
logger = logging.getLogger("payments.api")


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    # Structure is applied by the migration runner, never at startup.
    if not infra_service.payment_log_structure_ready():
        logger.warning("payment log structure missing; run the migrations before serving traffic")
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(MetricsMiddleware)
app.include_router(build_api_router(), prefix=settings.api_v1_prefix)

if settings.metrics_enabled:
    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        payload, content_type = render_metrics()
        return Response(content=payload, media_type=content_type)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    details: dict[str, object] = exc.detail if isinstance(exc.detail, dict) else {}
    if isinstance(exc.detail, dict) and isinstance(exc.detail.get("message"), str):
        message = exc.detail["message"]
    payload = exception_envelope(
        request=request,
        status_code=exc.status_code,
        message=message,
        code=f"http_{exc.status_code}",
        details=details,
    )
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    payload = exception_envelope(
        request=request,
        status_code=422,
        message="Validation failed",
        code="validation_error",
        details={"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(status_code=422, content=payload)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled error", exc_info=exc, extra={"path": request.url.path})
    payload = exception_envelope(
        request=request,
        status_code=500,
        message="Internal server error",
        code="internal_server_error",
    )
    return JSONResponse(status_code=500, content=payload)
