"""Liveness endpoint used by load balancers and the container runtime."""

import time
from typing import Any, Callable, Dict

import structlog
from django.core.cache import cache
from django.db import DEFAULT_DB_ALIAS, connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

logger = structlog.get_logger(__name__)

HEALTH_CACHE_KEY = "_health_check"


def _probe_database() -> None:
    connection = connections[DEFAULT_DB_ALIAS]
    connection.ensure_connection()
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()


def _probe_cache() -> None:
    cache.set(HEALTH_CACHE_KEY, "ok", 10)
    if cache.get(HEALTH_CACHE_KEY) != "ok":
        raise ConnectionError("Cache read-back mismatch.")


PROBES: Dict[str, Callable[[], None]] = {
    "database": _probe_database,
    "cache": _probe_cache,
}


def _run_probe(name: str, probe: Callable[[], None]) -> Dict[str, Any]:
    started = time.monotonic()
    try:
        probe()
    except Exception as exc:
        logger.error("health.probe_failed", service=name, error=type(exc).__name__)
        return {"status": "down"}
    return {
        "status": "up",
        "response_time_ms": round((time.monotonic() - started) * 1000, 2),
    }


def health_check(request: HttpRequest) -> JsonResponse:
    """Report database and cache reachability (503 when either is down)."""
    services = {name: _run_probe(name, probe) for name, probe in PROBES.items()}
    healthy = all(s["status"] == "up" for s in services.values())
    verdict = "healthy" if healthy else "unhealthy"

    logger.info("health.checked", status=verdict)
    return JsonResponse(
        {
            "status": verdict,
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=200 if healthy else 503,
    )
