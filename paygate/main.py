"""
Main FastAPI application for the paygate service.
Serves health, public paywall, admin, and metrics.
"""
import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from paygate.core.config import settings
from paygate.core.logging import configure_logging, request_id_var
from paygate.api.routes import admin, health, paywall
from paygate.paywall.errors import (
    InsufficientBalance,
    LengthMismatch,
    PaywallError,
    TokenNotSupported,
    TransferFailed,
    Unauthorized,
    ZeroAddress,
)
from paygate.services.registry.runtime import runtime
from paygate.utils.metrics import router as metrics_router


logger = logging.getLogger(__name__)

ERROR_STATUS = {
    Unauthorized: 403,
    TokenNotSupported: 404,
    InsufficientBalance: 409,
    LengthMismatch: 400,
    ZeroAddress: 400,
}


def status_for(exc: PaywallError) -> int:
    if isinstance(exc, TransferFailed):
        return 503 if exc.reason == "unavailable" else 402
    return ERROR_STATUS.get(type(exc), 400)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    yield
    runtime.shutdown()


app = FastAPI(
    title="Paygate API",
    description="Token-priced subscription paywall: purchase, pricing and withdrawals",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if settings.app_env == "production" else "/docs",
    redoc_url=None,
)

# CORS
origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def access_log(request: Request, call_next):
    request_id = request.headers.get(settings.request_id_header) or uuid4().hex
    token = request_id_var.set(request_id)
    start = time.perf_counter()
    try:
        response = await call_next(request)
        response.headers[settings.request_id_header] = request_id
        logger.info(
            "http_request",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return response
    finally:
        request_id_var.reset(token)


@app.exception_handler(PaywallError)
async def paywall_error_handler(request: Request, exc: PaywallError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content=exc.to_dict())


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "invalid_argument", "detail": str(exc)})


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(paywall.router)
app.include_router(admin.router)
app.include_router(metrics_router)
