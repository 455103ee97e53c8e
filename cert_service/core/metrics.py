"""Application metrics using the Prometheus client library.

All metrics are defined here so there is a single inventory of what the
service measures.  Other modules import specific metrics and increment
or observe them at the point of action.

Prometheus scrapes GET /metrics; see cert_service.api.metrics_endpoint.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Certificate lifecycle metrics
# ---------------------------------------------------------------------------

CERTIFICATES_ISSUED = Counter(
    "certificates_issued_total",
    "Certificates successfully issued",
)

CERTIFICATES_REVOKED = Counter(
    "certificates_revoked_total",
    "Certificates moved from active to revoked (idempotent repeats excluded)",
)

VERIFICATIONS = Counter(
    "certificate_verifications_total",
    "Public verification lookups by outcome",
    ["result"],  # "valid", "not_valid", "invalid_input", "unavailable"
)

QR_ATTACH_FAILURES = Counter(
    "qr_attach_failures_total",
    "QR payloads that could not be derived or stored after issuance",
)

RATE_LIMIT_HITS = Counter(
    "rate_limit_hits_total",
    "Requests rejected by rate limiting (429s)",
    ["policy"],
)
