"""Prometheus metrics for interest runs, per-item outcomes and FD maturities"""

from prometheus_client import Counter, Histogram

from btrust_interest.domain.models import RunSummary

# Per-item outcomes
interest_items_counter = Counter(
    "btrust_interest_items_total",
    "Due items handled by interest runs",
    ["kind", "status"],  # credited | failed | skipped_zero | anomaly
)

interest_credited_amount_counter = Counter(
    "btrust_interest_credited_amount_total",
    "Interest credited, in account currency",
    ["kind"],
)

# Run metrics
interest_run_counter = Counter(
    "btrust_interest_runs_total",
    "Interest batch runs",
    ["kind", "outcome"],  # success | failure | skipped_overlap
)

interest_run_duration_histogram = Histogram(
    "btrust_interest_run_duration_seconds",
    "Wall time of one interest batch run",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0, 900.0],
)

# Maturity sweep
fd_maturities_counter = Counter(
    "btrust_fd_maturities_total",
    "Fixed deposits renewed or closed by the maturity sweep",
)

fd_principal_returned_counter = Counter(
    "btrust_fd_principal_returned_total",
    "Principal returned to savings accounts by the maturity sweep",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_run(summary: RunSummary, duration_seconds: float) -> None:
    """Record run metrics; item outcomes only count once the run has committed"""
    kind = summary.kind.value
    interest_run_counter.labels(kind=kind, outcome="success" if summary.success else "failure").inc()
    interest_run_duration_histogram.labels(kind=kind).observe(duration_seconds)

    if not summary.success:
        return

    interest_items_counter.labels(kind=kind, status="credited").inc(summary.items_credited)
    interest_items_counter.labels(kind=kind, status="failed").inc(summary.items_failed)
    interest_items_counter.labels(kind=kind, status="skipped_zero").inc(summary.items_skipped)
    interest_items_counter.labels(kind=kind, status="anomaly").inc(summary.anomalies)

    if summary.total_interest_credited > 0:
        interest_credited_amount_counter.labels(kind=kind).inc(float(summary.total_interest_credited))
    if summary.matured_processed_count:
        fd_maturities_counter.inc(summary.matured_processed_count)
    if summary.principal_returned:
        fd_principal_returned_counter.inc(float(summary.principal_returned))


def record_overlap_skip(kind: str) -> None:
    interest_run_counter.labels(kind=kind, outcome="skipped_overlap").inc()
