"""Prometheus metrics for calculation volume, batch performance and lifecycle activity"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Calculation metrics
calculation_counter = Counter(
    "charge_calculations_total",
    "Total charge calculations attempted",
    ["source", "outcome"],  # source: single | bulk | test; outcome: success | failure
)

charges_amount_counter = Counter(
    "charge_amount_total",
    "Sum of charges calculated, in currency units",
    ["source"],
)

# Batch metrics
batch_duration_histogram = Histogram(
    "charge_batch_duration_seconds",
    "Bulk calculation and test run wall-clock time",
    ["kind"],  # bulk | test | simulate
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

batch_incomplete_counter = Counter(
    "charge_batch_incomplete_total",
    "Batches returned short (stop-on-error, cancellation or timeout)",
    ["reason"],
)

# Lifecycle metrics
rule_transition_counter = Counter(
    "rule_transitions_total",
    "Rule lifecycle transitions applied",
    ["action"],
)

settlement_transition_counter = Counter(
    "settlement_transitions_total",
    "Settlement workflow transitions applied",
    ["action"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_calculations(source: str, successful: int, failed: int, total_charges: Decimal) -> None:
    """Record calculation outcomes for volume and revenue monitoring"""
    if successful:
        calculation_counter.labels(source=source, outcome="success").inc(successful)
    if failed:
        calculation_counter.labels(source=source, outcome="failure").inc(failed)
    if total_charges:
        charges_amount_counter.labels(source=source).inc(float(total_charges))


def record_batch(kind: str, duration_ms: int, incomplete: bool, timed_out: bool, stopped_on_error: bool) -> None:
    batch_duration_histogram.labels(kind=kind).observe(duration_ms / 1000)
    if not incomplete:
        return
    if timed_out:
        reason = "timeout"
    elif stopped_on_error:
        reason = "stop_on_error"
    else:
        reason = "cancelled"
    batch_incomplete_counter.labels(reason=reason).inc()


# API client metrics
api_client_latency_histogram = Histogram(
    "charge_api_client_request_seconds",
    "Outbound charge API request latency",
    ["method"],
)

api_client_retry_counter = Counter(
    "charge_api_client_retries_total",
    "Charge API client retries after network errors or 502/503",
    ["method"],
)
