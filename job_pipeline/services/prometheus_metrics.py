"""
Prometheus metrics for the job pipeline
"""

import os

from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST

# Build info
BUILD_INFO = Gauge(
    'job_pipeline_build_info',
    'Build information',
    ['version']
)

# Single mutator invocations (single-item calls and bulk items alike)
MUTATIONS_TOTAL = Counter(
    'job_pipeline_mutations_total',
    'Total number of job mutator invocations',
    ['action', 'outcome']
)

# Bulk runs by final audit status
BULK_ACTIONS_TOTAL = Counter(
    'job_pipeline_bulk_actions_total',
    'Total number of bulk actions by final status',
    ['action_type', 'status']
)

BULK_ITEMS_TOTAL = Counter(
    'job_pipeline_bulk_items_total',
    'Total number of bulk items by outcome',
    ['action_type', 'outcome']
)

BULK_DURATION = Histogram(
    'job_pipeline_bulk_duration_seconds',
    'Wall time of a bulk action',
    ['action_type'],
    buckets=[0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30]
)

AUDIT_FINALIZE_FAILURES_TOTAL = Counter(
    'job_pipeline_audit_finalize_failures_total',
    'Bulk audit log entries that could not be finalized'
)

# Side-effect fan-out
SIDE_EFFECTS_TOTAL = Counter(
    'job_pipeline_side_effects_total',
    'Side-effect deliveries by channel and outcome',
    ['channel', 'outcome']
)

SIDE_EFFECT_QUEUE_DEPTH = Gauge(
    'job_pipeline_side_effect_queue_depth',
    'Events waiting in the side-effect dispatcher queue'
)


class PrometheusMetrics:
    """Service for managing Prometheus metrics."""

    def __init__(self):
        BUILD_INFO.labels(version=os.getenv("APP_VERSION", "dev")).set(1)

    def increment_mutation(self, action: str, outcome: str):
        MUTATIONS_TOTAL.labels(action=action, outcome=outcome).inc()

    def record_bulk_action(self, action_type: str, status: str, succeeded: int, failed: int,
                           seconds: float):
        BULK_ACTIONS_TOTAL.labels(action_type=action_type, status=status).inc()
        BULK_ITEMS_TOTAL.labels(action_type=action_type, outcome="succeeded").inc(succeeded)
        BULK_ITEMS_TOTAL.labels(action_type=action_type, outcome="failed").inc(failed)
        BULK_DURATION.labels(action_type=action_type).observe(seconds)

    def increment_audit_finalize_failures(self):
        AUDIT_FINALIZE_FAILURES_TOTAL.inc()

    def increment_side_effect(self, channel: str, outcome: str, count: int = 1):
        SIDE_EFFECTS_TOTAL.labels(channel=channel, outcome=outcome).inc(count)

    def set_side_effect_queue_depth(self, depth: int):
        SIDE_EFFECT_QUEUE_DEPTH.set(depth)

    def get_metrics(self) -> bytes:
        return generate_latest()

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST


# Global instance
prometheus_metrics = PrometheusMetrics()
