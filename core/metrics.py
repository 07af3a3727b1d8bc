"""
Prometheus metrics for the license service.

Custom metrics for business logic and performance monitoring.
"""

from prometheus_client import Counter, Histogram

# HTTP metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# License metrics
license_operations_total = Counter(
    "license_operations_total",
    "License operations by outcome",
    ["operation", "outcome"],
)

license_transitions_total = Counter(
    "license_transitions_total",
    "License lifecycle transitions",
    ["transition"],
)

rate_limit_decisions_total = Counter(
    "rate_limit_decisions_total",
    "Rate limiter decisions",
    ["endpoint", "subject_type", "decision"],
)

# Webhook metrics
webhook_events_total = Counter(
    "webhook_events_total",
    "Payment provider webhook events",
    ["provider", "event_type", "outcome"],
)

webhook_processing_seconds = Histogram(
    "webhook_processing_seconds",
    "Webhook processing duration in seconds",
    ["provider"],
    buckets=[0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0],
)

# Security metrics
security_events_total = Counter(
    "security_events_total",
    "Security events by severity",
    ["severity"],
)

outbound_deliveries_total = Counter(
    "outbound_deliveries_total",
    "Outbound alert/notification deliveries",
    ["kind", "outcome"],
)

# Error metrics
errors_total = Counter(
    "errors_total",
    "Total errors",
    ["error_type", "endpoint"],
)
