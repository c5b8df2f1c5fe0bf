"""Prometheus metrics for monitoring"""
from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry

registry = CollectorRegistry()

request_count = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status'],
    registry=registry
)

request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=registry
)

authz_decisions = Counter(
    'authz_decisions_total',
    'Row write authorization decisions',
    ['table', 'command', 'outcome'],
    registry=registry
)

po_submissions = Counter(
    'po_confirmation_submissions_total',
    'PO confirmation submission attempts',
    ['outcome'],
    registry=registry
)

migrations_applied = Counter(
    'migrations_applied_total',
    'Migrations applied by this process',
    registry=registry
)

redis_connected = Gauge(
    'redis_connected',
    'Redis connection status (1=connected, 0=disconnected)',
    registry=registry
)

db_connected = Gauge(
    'db_connected',
    'Database connection status (1=connected, 0=disconnected)',
    registry=registry
)


def get_metrics_text() -> str:
    """Generate Prometheus metrics in text format"""
    from prometheus_client import generate_latest
    return generate_latest(registry).decode('utf-8')
