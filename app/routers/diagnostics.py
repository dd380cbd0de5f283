"""Liveness and diagnostics endpoints:
    GET  /api/ping
    GET  /api/diagnostics
"""

from __future__ import annotations

import logging
import os
import threading
import time

import psutil

from fastapi import APIRouter

from app.models.schemas import DiagnosticsResponse
from app.services.quote_service import persist_failure_count

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Diagnostics"],
)

# ── Module-level state ────────────────────────────────────────────────────
_start_time: float = time.monotonic()
_last_response_time_ms: float = 0.0  # updated by the timing middleware


def reset_start_time() -> None:
    """Called at application startup to anchor the uptime clock."""
    global _start_time
    _start_time = time.monotonic()


def record_response_time(elapsed_ms: float) -> None:
    """Called by the timing middleware after every request."""
    global _last_response_time_ms
    _last_response_time_ms = elapsed_ms


def format_duration(total_ms: float) -> str:
    """Format milliseconds as HH:mm:ss.SSS."""
    total_seconds = int(total_ms // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    millis = int(total_ms % 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"


def _get_memory_mb() -> str:
    """Return current process RSS memory in 'XXX.XX MB' format."""
    process = psutil.Process(os.getpid())
    mem_mb = process.memory_info().rss / (1024 * 1024)
    return f"{mem_mb:.2f} MB"


# ── Endpoints ─────────────────────────────────────────────────────────────

@router.get("/ping", summary="Liveness probe")
async def ping() -> dict:
    return {"ok": True}


@router.get(
    "/diagnostics",
    response_model=DiagnosticsResponse,
    summary="Process metrics and persistence-fault counter",
)
async def diagnostics() -> DiagnosticsResponse:
    """Uptime, last response time, memory, threads, and unrecorded quotes."""
    return DiagnosticsResponse(
        uptime=format_duration((time.monotonic() - _start_time) * 1000),
        lastResponseTime=format_duration(_last_response_time_ms),
        memory=_get_memory_mb(),
        threads=threading.active_count(),
        persistFailures=persist_failure_count(),
    )
