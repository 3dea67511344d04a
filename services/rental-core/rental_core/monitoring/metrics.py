from prometheus_client import Counter, Gauge, Histogram, Info
from prometheus_fastapi_instrumentator import Instrumentator

# Business metrics - Rental Core specific
rentals_created_total = Counter(
    "closet_rentals_created_total",
    "Total number of rentals requested",
    ["service"],  # service=rental-core
)

status_transitions_total = Counter(
    "closet_rental_status_transitions_total",
    "Total number of rental status transitions",
    ["service", "from_status", "to_status"],
)

qc_submissions_total = Counter(
    "closet_qc_submissions_total",
    "Total number of QC submissions",
    ["service", "kind", "outcome"],  # kind=delivery/return, outcome=approved/issue_reported
)

disputes_total = Counter(
    "closet_disputes_total",
    "Total number of disputes opened and resolved",
    ["service", "action"],  # action=reported/resolved
)

stale_writes_total = Counter(
    "closet_stale_writes_total",
    "Total number of rejected concurrent rental writes",
    ["service"],
)

# Technical metrics - shared across services
circuit_breaker_state = Gauge(
    "closet_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["service", "circuit_name"],
)

circuit_breaker_failures = Counter(
    "closet_circuit_breaker_failures_total",
    "Total circuit breaker failures",
    ["service", "circuit_name"],
)

external_api_requests = Counter(
    "closet_external_api_requests_total",
    "Total external API requests",
    ["service", "endpoint", "status"],
)

external_api_duration = Histogram(
    "closet_external_api_duration_seconds",
    "External API request duration",
    ["service", "endpoint"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Application info
app_info = Info("closet_rental_core_app_info", "Application information")


class MetricsCollector:
    SERVICE = "rental-core"

    @staticmethod
    def record_rental_created():
        rentals_created_total.labels(service=MetricsCollector.SERVICE).inc()

    @staticmethod
    def record_transition(from_status: str, to_status: str):
        status_transitions_total.labels(
            service=MetricsCollector.SERVICE,
            from_status=from_status,
            to_status=to_status,
        ).inc()

    @staticmethod
    def record_qc_submission(kind: str, outcome: str):
        qc_submissions_total.labels(
            service=MetricsCollector.SERVICE, kind=kind, outcome=outcome
        ).inc()

    @staticmethod
    def record_dispute(action: str):
        disputes_total.labels(service=MetricsCollector.SERVICE, action=action).inc()

    @staticmethod
    def record_stale_write():
        stale_writes_total.labels(service=MetricsCollector.SERVICE).inc()

    @staticmethod
    def record_external_call(endpoint: str, status: str, duration: float):
        external_api_requests.labels(
            service=MetricsCollector.SERVICE, endpoint=endpoint, status=status
        ).inc()
        external_api_duration.labels(
            service=MetricsCollector.SERVICE, endpoint=endpoint
        ).observe(duration)


def setup_instrumentator() -> Instrumentator:
    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/api/v1/health"],
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )
    return instrumentator


def init_app_info(version: str = "1.0.0"):
    app_info.info({"version": version, "service": "rental-core", "component": "api"})
