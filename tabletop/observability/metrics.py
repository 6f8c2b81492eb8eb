import time
from typing import Callable

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.requests import Request
from starlette.responses import Response


REQUEST_COUNTER = Counter(
    "api_requests_total",
    "HTTP requests total",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "api_request_duration_seconds",
    "HTTP request latency",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

DICE_ROLL_COUNTER = Counter(
    "dice_rolls_total",
    "Dice rolls persisted",
)

AUTHZ_DENIAL_COUNTER = Counter(
    "authz_denials_total",
    "Authorization decisions that denied access",
    ["action"],
)

USER_LOGIN_COUNTER = Counter(
    "user_logins_total",
    "Successful password logins",
)


def increment_user_login() -> None:
    USER_LOGIN_COUNTER.inc()


def increment_dice_roll() -> None:
    DICE_ROLL_COUNTER.inc()


def increment_authz_denial(action: str) -> None:
    AUTHZ_DENIAL_COUNTER.labels(action).inc()


async def metrics_endpoint(_: Request) -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def _path_label(request: Request) -> str:
    """Return the route template, or the raw path with numeric ids trimmed."""

    route = request.scope.get("route")
    template = getattr(route, "path", None)
    if template:
        return template
    path = request.url.path
    if path.count("/") > 2:
        path = "/".join(p if not p.isdigit() else ":id" for p in path.split("/"))
    return path


async def request_metrics_middleware(request: Request, call_next: Callable):
    start = time.time()
    response = await call_next(request)
    elapsed = time.time() - start
    REQUEST_COUNTER.labels(request.method, _path_label(request), str(response.status_code)).inc()
    REQUEST_LATENCY.observe(elapsed)
    return response
