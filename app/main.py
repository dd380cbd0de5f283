"""FastAPI application entry point.

Starts the Rental Tax Estimator API (port 80 by default).

Usage:
    uvicorn app.main:app --host 0.0.0.0 --port 80 --reload
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.database import Database
from app.exceptions import InvalidInput, StoreUnavailable
from app.routers import diagnostics, records, stats, tax
from app.routers.diagnostics import record_response_time, reset_start_time
from app.services.record_store import SqlRecordStore

# ── Logging ──────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

database = Database(settings.DATABASE_URL)


# ── Lifespan (startup + shutdown) ────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Rental Tax Estimator API on port %s …", settings.APP_PORT)
    reset_start_time()
    await database.connect()
    yield
    await database.dispose()
    logger.info("Application shutdown complete.")


# ── Application factory ──────────────────────────────────────────────────

app = FastAPI(
    title="Rental Tax Estimator API",
    description=(
        "Simplified monthly rental tax estimates (property tax + income tax) "
        "by house category, with per-requester history and aggregate "
        "statistics over recorded calculations."
    ),
    version="1.0.0",
    lifespan=lifespan,
)
app.state.record_store = SqlRecordStore(database)

# ── CORS ────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Anonymous client identity (cookie) ───────────────────────────────────

@app.middleware("http")
async def client_identity_middleware(request: Request, call_next):
    client_id = request.cookies.get(settings.CLIENT_COOKIE)
    issued = None
    if not client_id:
        issued = client_id = str(uuid.uuid4())
    request.state.client_id = client_id

    response = await call_next(request)
    if issued is not None:
        response.set_cookie(
            settings.CLIENT_COOKIE,
            issued,
            max_age=settings.CLIENT_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
        )
    return response


# ── Request-level timing middleware ──────────────────────────────────────

@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"

    # Record for the /api/diagnostics endpoint
    record_response_time(elapsed_ms)
    return response


# ── Exception handlers ───────────────────────────────────────────────────

def _failure(status_code: int, msg: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": 1, "msg": msg}, headers=headers)


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    return _failure(400, str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        msg = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        msg = "Invalid request."
    return _failure(400, msg)


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error("Store unavailable on %s: %s", request.url.path, exc)
    return _failure(503, "Record store unavailable. Please retry later.")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _failure(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
    return _failure(500, "Internal server error.")


# ── Register routers ─────────────────────────────────────────────────────
app.include_router(tax.router)
app.include_router(records.router)
app.include_router(stats.router)
app.include_router(diagnostics.router)


# ── Health check ──────────────────────────────────────────────────────────

@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "healthy", "port": settings.APP_PORT, "database": database.available}


# ── Dev entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=True,
    )
