from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

PROVIDER_REQUESTS = Counter(
    "portal_gitlab_requests_total",
    "Количество запросов к API GitLab",
    labelnames=("operation", "result"),
)

PROVIDER_LATENCY = Histogram(
    "portal_gitlab_request_seconds",
    "Продолжительность запросов к API GitLab",
    labelnames=("operation",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)

OAUTH_EXCHANGES = Counter(
    "portal_oauth_exchanges_total",
    "Количество обменов authorization code на токены",
    labelnames=("result",),
)

ACTIVE_SESSIONS = Gauge(
    "portal_sessions",
    "Количество серверных сессий в памяти",
)
