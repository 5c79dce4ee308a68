import prometheus_client
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Guard against duplicated metric registration when the module is imported
# multiple times (for example, when running uvicorn with the reloader).
REQUEST_COUNT = getattr(prometheus_client, "tokenflow_REQUEST_COUNT", None)
REQUEST_LATENCY = getattr(prometheus_client, "tokenflow_REQUEST_LATENCY", None)
CACHE_OPERATIONS = getattr(prometheus_client, "tokenflow_CACHE_OPERATIONS", None)
CACHE_OPERATION_DURATION = getattr(prometheus_client, "tokenflow_CACHE_OPERATION_DURATION", None)
TOKEN_OPERATIONS = getattr(prometheus_client, "tokenflow_TOKEN_OPERATIONS", None)
WORKFLOW_OUTCOMES = getattr(prometheus_client, "tokenflow_WORKFLOW_OUTCOMES", None)
NOTIFICATION_FAILURES = getattr(prometheus_client, "tokenflow_NOTIFICATION_FAILURES", None)

if REQUEST_COUNT is None:
    # HTTP Metrics
    REQUEST_COUNT = Counter(
        "http_requests_total", "Total HTTP requests", ["method", "endpoint", "http_status"]
    )
    REQUEST_LATENCY = Histogram(
        "http_request_latency_seconds", "HTTP request latency in seconds", ["method", "endpoint"]
    )

    # Cache Metrics
    CACHE_OPERATIONS = Counter(
        "cache_operations_total", "Total cache operations", ["operation", "cache_type"]
    )
    CACHE_OPERATION_DURATION = Histogram(
        "cache_operation_duration_seconds",
        "Cache operation duration in seconds",
        ["operation", "cache_type"],
    )

    # Token lifecycle
    TOKEN_OPERATIONS = Counter(
        "token_operations_total",
        "Total token operations",
        ["operation", "action"],  # operation: issue/consume/expired/replay/not_found/peek
    )
    WORKFLOW_OUTCOMES = Counter(
        "workflow_outcomes_total",
        "Outcome of approval and recovery workflow calls",
        ["workflow", "outcome"],
    )
    NOTIFICATION_FAILURES = Counter(
        "notification_failures_total",
        "Best-effort notifications that failed to send",
        ["action"],
    )

    prometheus_client.tokenflow_REQUEST_COUNT = REQUEST_COUNT  # type: ignore[attr-defined]
    prometheus_client.tokenflow_REQUEST_LATENCY = REQUEST_LATENCY  # type: ignore[attr-defined]
    prometheus_client.tokenflow_CACHE_OPERATIONS = CACHE_OPERATIONS  # type: ignore[attr-defined]
    prometheus_client.tokenflow_CACHE_OPERATION_DURATION = CACHE_OPERATION_DURATION  # type: ignore[attr-defined]
    prometheus_client.tokenflow_TOKEN_OPERATIONS = TOKEN_OPERATIONS  # type: ignore[attr-defined]
    prometheus_client.tokenflow_WORKFLOW_OUTCOMES = WORKFLOW_OUTCOMES  # type: ignore[attr-defined]
    prometheus_client.tokenflow_NOTIFICATION_FAILURES = NOTIFICATION_FAILURES  # type: ignore[attr-defined]


def record_token_operation(operation: str, action: str) -> None:
    if TOKEN_OPERATIONS is not None:
        TOKEN_OPERATIONS.labels(operation=operation, action=action).inc()


def record_outcome(workflow: str, outcome: str) -> None:
    if WORKFLOW_OUTCOMES is not None:
        WORKFLOW_OUTCOMES.labels(workflow=workflow, outcome=outcome).inc()


def metrics_response():
    data = generate_latest()
    return data, CONTENT_TYPE_LATEST
