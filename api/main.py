"""
api/main.py -- FastAPI application entry point for the Storm backend.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware   -- adds CORS headers for allowed browser origins
  2. log_requests     -- method, path, status, latency, client host
  3. session_gate     -- verifies the session token on every /api/* path
                         except the public ones listed in api/paths.py
  4. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan builds the process-wide engine, stores, and services and puts them
on app.state (init_state). With USE_MOCK=true it then runs the one-time
bootstrap seeder in a worker thread before the first request is served.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.engine import Engine

from api import paths
from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.responses import error_response, failure_response
from api.routes.auth import router as auth_router
from api.routes.contact import router as contact_router
from auth.accounts import AccountService
from auth.dependencies import authenticate_request
from auth.passwords import PasswordHasher
from auth.reset import PasswordResetService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from bootstrap.lock import BootstrapLockStore
from bootstrap.seeder import IdempotentSeeder
from contact.seed import seed_sample_submissions
from contact.store import ContactStore
from core.config import Settings, get_settings
from core.database import create_db_engine
from core.errors import ErrorKind, Failure, TransactionError
from core.mailer import build_mailer

VERSION = "1.0.0"
CORS_ORIGINS = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("storm.api")


# ---------------------------------------------------------------------------
# Application state
# ---------------------------------------------------------------------------


def init_state(state, engine: Engine, settings: Settings, mailer=None) -> None:
    """Build stores and services on one engine and attach them to app.state.

    ContactStore is created before the seeder so the table the seed writes
    into exists. mailer defaults to the one EMAIL_HOST selects; tests pass a
    recording fake.
    """
    hasher = PasswordHasher()
    state.engine = engine
    state.user_store = UserStore(engine)
    state.contact_store = ContactStore(engine)
    state.token_issuer = TokenIssuer(settings.jwt_secret)
    state.accounts = AccountService(state.user_store, hasher, state.token_issuer)
    state.password_reset = PasswordResetService(
        state.user_store,
        hasher,
        mailer if mailer is not None else build_mailer(
            settings.email_host, settings.email_port, settings.email_from_address
        ),
    )
    state.seeder = IdempotentSeeder(engine, BootstrapLockStore(engine), seed_sample_submissions)


async def run_bootstrap(state) -> None:
    """Run the seeder off the event loop. A failed seeding is logged, not fatal."""
    try:
        outcome = await asyncio.to_thread(state.seeder.run)
    except TransactionError:
        logger.exception("Mock data initialization failed")
        return
    logger.info("Mock data initialization finished (%s)", outcome.value)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create resources on startup and dispose of them on shutdown."""
    settings = get_settings()
    logger.info("Storm API starting up")
    engine = create_db_engine(settings.database_url)
    init_state(app.state, engine, settings)
    logger.info("Auth initialized (secret_configured=%s)", app.state.token_issuer.configured)
    if settings.use_mock:
        await run_bootstrap(app.state)

    yield

    engine.dispose()
    logger.info("Storm API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Storm API",
    description="Account, session, and password-reset backend.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Session gate
#
# Every /api/* request that is not listed in api/paths.py must carry a valid
# session token (Bearer header or cookie). Rejections are answered here, so
# they never reach a route handler. A missing server secret is a 500 and is
# logged as an operational alarm, never reported as an auth failure.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def session_gate(request: Request, call_next):
    if paths.requires_session(request.method, request.url.path):
        result = authenticate_request(request)
        if isinstance(result, Failure):
            if result.kind is ErrorKind.CONFIG:
                logger.error("Rejecting %s %s: JWT_SECRET not configured", request.method, request.url.path)
                return failure_response(result)
            return failure_response(result, redirect=paths.LOGIN_PAGE)
        request.state.claims = result
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# CORS
#
# Must be added last: the last middleware added is the outermost, and the
# gate's 401/500 responses need the CORS headers too.
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=True,
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])
app.include_router(contact_router, tags=["Contact"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(exclude_none=True),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the body is not JSON or a field has the wrong type."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code=ErrorKind.VALIDATION.value,
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail={"code", "message"}. When
    detail is already a structured dict, use it directly as the error field.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The exception is logged with its traceback server-side only. The client
    receives a generic message -- no stack traces, no query fragments.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Outside /api/ so the session gate never applies. No rate limit applied --
# health checks from load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
