# changetrack/metrics.py
from prometheus_client import Counter, Histogram

from changetrack.models.change import Status

# === Core metrics (definitions ONLY here) ===
transitions_total = Counter(
    "change_transitions_total", "Committed status transitions", ["from_status", "to_status"]
)

policy_violations_total = Counter(
    "change_policy_violations_total", "Transitions refused by policy", ["from_status", "to_status"]
)

transition_conflicts_total = Counter(
    "change_transition_conflicts_total", "Concurrent-write conflicts re-evaluated by the lifecycle store"
)

storage_failures_total = Counter(
    "storage_failures_total", "Persistence failures surfaced to callers", ["operation"]
)

status_query_failures_total = Counter(
    "status_query_failures_total", "Dashboard/report reads that degraded to placeholder data"
)

transition_latency_seconds = Histogram(
    "transition_latency_seconds", "Latency of the atomic transition operation"
)


def init_metrics_zero():
    # create label combos at 0 so dashboards never see "no data"
    statuses = [s.value for s in Status]
    for src in statuses:
        for dst in statuses:
            if src != dst:
                transitions_total.labels(from_status=src, to_status=dst).inc(0)
    storage_failures_total.labels(operation="transition").inc(0)

    # unlabeled counters – make them visible
    transition_conflicts_total.inc(0)
    status_query_failures_total.inc(0)
