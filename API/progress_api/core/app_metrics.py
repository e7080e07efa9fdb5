"""In-process dashboard metrics: per-route latency and errors, cards built and degraded fetches."""
from __future__ import annotations

import time
from collections import Counter, defaultdict, deque
from threading import Lock

from starlette.requests import Request
from starlette.responses import Response

_LATENCY_WINDOW = 500
_ERROR_RATE_ALERT_THRESHOLD = 0.10
_LATENCY_P95_ALERT_MS = 2000
_DEGRADED_ALERT_COUNT = 3

_lock = Lock()
_route_requests: Counter[str] = Counter()
_route_errors: Counter[str] = Counter()
_route_latencies: defaultdict[str, deque[float]] = defaultdict(lambda: deque(maxlen=_LATENCY_WINDOW))
_degraded_fetches: Counter[str] = Counter()
_cards_built = 0


def record_request(route: str, duration_sec: float, is_error: bool) -> None:
    with _lock:
        _route_requests[route] += 1
        if is_error:
            _route_errors[route] += 1
        _route_latencies[route].append(duration_sec)


def record_degraded_fetch(category: str) -> None:
    """Count one record category (or identity lookup) that was replaced by defaults."""
    with _lock:
        _degraded_fetches[category] += 1


def record_cards_built(count: int) -> None:
    global _cards_built
    with _lock:
        _cards_built += count


def _percentiles(latencies: list[float]) -> tuple[float | None, float | None]:
    if not latencies:
        return None, None
    sorted_ms = sorted(lat * 1000 for lat in latencies)
    n = len(sorted_ms)
    return round(sorted_ms[int((n - 1) * 0.50)], 2), round(sorted_ms[int((n - 1) * 0.95)], 2)


def get_metrics() -> dict:
    with _lock:
        requests = dict(_route_requests)
        errors = dict(_route_errors)
        latencies = {route: list(values) for route, values in _route_latencies.items()}
        degraded = dict(_degraded_fetches)
        cards_built = _cards_built

    total = sum(requests.values())
    error_total = sum(errors.values())
    error_rate = (error_total / total) if total else 0.0
    p50, p95 = _percentiles([lat for values in latencies.values() for lat in values])

    routes = {}
    for route, count in sorted(requests.items()):
        route_p50, route_p95 = _percentiles(latencies.get(route, []))
        routes[route] = {
            "request_count": count,
            "error_count": errors.get(route, 0),
            "latency_ms_p50": route_p50,
            "latency_ms_p95": route_p95,
        }

    alerts: list[str] = []
    if total and error_rate >= _ERROR_RATE_ALERT_THRESHOLD:
        alerts.append("high_error_rate")
    if p95 is not None and p95 >= _LATENCY_P95_ALERT_MS:
        alerts.append("high_latency_p95")
    if sum(degraded.values()) >= _DEGRADED_ALERT_COUNT:
        alerts.append("degraded_fetches")

    return {
        "request_count": total,
        "error_count": error_total,
        "error_rate": round(error_rate, 4),
        "latency_ms_p50": p50,
        "latency_ms_p95": p95,
        "routes": routes,
        "cards_built": cards_built,
        "degraded_fetches": degraded,
        "alerts": alerts,
    }


def reset_metrics() -> None:
    """Reset counters (e.g. for tests)."""
    global _cards_built
    with _lock:
        _route_requests.clear()
        _route_errors.clear()
        _route_latencies.clear()
        _degraded_fetches.clear()
        _cards_built = 0


async def metrics_middleware(request: Request, call_next) -> Response:
    """Record duration and status per route template (skips /health and /metrics)."""
    path = request.url.path
    if path == "/health" or path.startswith("/metrics"):
        return await call_next(request)
    start = time.perf_counter()
    response = await call_next(request)
    duration = time.perf_counter() - start
    route = request.scope.get("route")
    record_request(getattr(route, "path", path), duration, response.status_code >= 400)
    return response
