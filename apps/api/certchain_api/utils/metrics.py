"""Prometheus metrics."""

from prometheus_client import Counter, Histogram

# Ledger metrics
ledger_writes = Counter(
    "certchain_ledger_writes_total",
    "Ledger transactions submitted by the coordinator",
    ["action", "outcome"],
)

ledger_write_duration = Histogram(
    "certchain_ledger_write_duration_seconds",
    "Time from submission to confirmation or failure",
    ["action"],
    buckets=(0.1, 0.5, 1, 5, 15, 30, 60, 120, 300, 600),
)

# Lifecycle metrics
transitions_completed = Counter(
    "certchain_transitions_completed_total",
    "Ledger-confirmed transitions recorded in the store",
    ["action"],
)

compensating_deletes = Counter(
    "certchain_compensating_deletes_total",
    "Pending requests deleted after a failed creation ledger write",
)

lock_conflicts = Counter(
    "certchain_request_lock_conflicts_total",
    "Actions rejected because the request was busy",
)

reconciliation_incidents = Counter(
    "certchain_reconciliation_incidents_total",
    "Ledger actions the store failed to record",
    ["action"],
)
