"""
main.py — AutoQuote application entry point

Builds the FastAPI app: session cookies, rate limiting, request-id and
security headers, structured error responses, router mounts and the
/media static mount for uploaded vehicle photos.

Business Rules:
- Every response carries X-Request-ID (8 chars), X-API-Version: v1 and
  the OWASP header set
- /api/v1/... is rewritten to /api/... so both prefixes reach the same route
- Every error body is an ErrorResponse {error, status_code, request_id, detail}
- Illegal lifecycle transitions (answering twice, resending a responded
  request) are 409; store errors are 500 with the raw backend message

Called by: uvicorn (autoquote.main:app)
Depends on: config, logging_config, startup, routers/*
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from . import __version__
from .config import settings
from .http_client import close_clients
from .logging_config import setup_logging
from .rate_limit import limiter
from .schemas.errors import ErrorResponse, ValidationIssue
from .services.abbreviations import AbbreviationCache
from .services.state import StateTransitionError
from .startup import run_startup_migrations


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    run_startup_migrations()
    app.state.abbreviations = AbbreviationCache()
    logger.info("AutoQuote started", version=__version__)
    yield
    await close_clients()
    logger.info("AutoQuote stopped")


app = FastAPI(title="AutoQuote", version=__version__, lifespan=lifespan)
app.state.limiter = limiter
app.state.abbreviations = AbbreviationCache()
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    https_only=settings.is_production,
    same_site="lax",
)


# ── Middleware ────────────────────────────────────────────────────────

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = uuid.uuid4().hex[:8]
    request.state.request_id = request_id

    path = request.scope["path"]
    if path.startswith("/api/v1/"):
        request.scope["path"] = "/api/" + path[len("/api/v1/"):]

    with logger.contextualize(request_id=request_id):
        response = await call_next(request)

    response.headers["X-Request-ID"] = request_id
    response.headers["X-API-Version"] = "v1"
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


# ── Error responses ───────────────────────────────────────────────────


def _error(
    request: Request, status_code: int, error: str, detail: list[ValidationIssue] | None = None
) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        status_code=status_code,
        request_id=getattr(request.state, "request_id", ""),
        detail=detail,
    )
    return JSONResponse(body.model_dump(), status_code=status_code)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(request, exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        ValidationIssue(loc=list(e.get("loc", [])), msg=e.get("msg", ""), type=e.get("type", ""))
        for e in exc.errors()
    ]
    return _error(request, 422, "Validation failed", errors)


@app.exception_handler(StateTransitionError)
async def state_transition_handler(request: Request, exc: StateTransitionError):
    logger.info(f"Rejected transition on {request.url.path}: {exc}")
    return _error(request, 409, str(exc))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return _error(request, 500, str(getattr(exc, "orig", None) or exc))


# ── Routers ───────────────────────────────────────────────────────────

from .routers.auth import router as auth_router  # noqa: E402
from .routers.companies import router as companies_router  # noqa: E402
from .routers.documents import router as documents_router  # noqa: E402
from .routers.orders import router as orders_router  # noqa: E402
from .routers.parts import router as parts_router  # noqa: E402
from .routers.public import router as public_router  # noqa: E402
from .routers.quotations import router as quotations_router  # noqa: E402
from .routers.settings import router as settings_router  # noqa: E402
from .routers.suppliers import router as suppliers_router  # noqa: E402
from .routers.uploads import router as uploads_router  # noqa: E402
from .routers.vehicles import router as vehicles_router  # noqa: E402

app.include_router(auth_router)
app.include_router(vehicles_router)
app.include_router(parts_router)
app.include_router(suppliers_router)
app.include_router(quotations_router)
app.include_router(public_router)
app.include_router(orders_router)
app.include_router(settings_router)
app.include_router(companies_router)
app.include_router(documents_router)
app.include_router(uploads_router)

app.mount(
    settings.media_url_prefix,
    StaticFiles(directory=settings.media_dir, check_dir=False),
    name="media",
)


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}
