from prometheus_client import Counter, Gauge, Histogram, Info, start_http_server

# Business metrics - QC Worker specific
sweep_cycles_total = Counter(
    "closet_qc_sweep_cycles_total",
    "Total number of QC sweep cycles processed",
    ["service"],  # service=qc-worker
)

auto_approvals_total = Counter(
    "closet_qc_auto_approvals_total",
    "Total QC records auto-approved after their window expired",
    ["service", "kind"],  # kind=delivery/return
)

expired_qc_last_cycle = Gauge(
    "closet_qc_expired_last_cycle",
    "Number of expired QC records found in the last sweep",
    ["service"],
)

sweep_cycle_duration = Histogram(
    "closet_qc_sweep_duration_seconds",
    "Duration of QC sweep processing",
    ["service"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

worker_errors_total = Counter(
    "closet_worker_errors_total",
    "Total worker errors",
    ["service", "error_type"],  # service=qc-worker
)

# Application info
app_info = Info("closet_qc_worker_app_info", "Application information")


def init_app_info(version: str = "1.0.0"):
    app_info.info({"version": version, "service": "qc-worker", "component": "worker"})


def start_metrics_server(port: int = 8001):
    start_http_server(port)


class MetricsCollector:
    SERVICE_NAME = "qc-worker"

    @staticmethod
    def record_sweep_cycle(duration: float, expired: int):
        sweep_cycles_total.labels(service=MetricsCollector.SERVICE_NAME).inc()
        sweep_cycle_duration.labels(service=MetricsCollector.SERVICE_NAME).observe(duration)
        expired_qc_last_cycle.labels(service=MetricsCollector.SERVICE_NAME).set(expired)

    @staticmethod
    def record_auto_approval(kind: str):
        auto_approvals_total.labels(
            service=MetricsCollector.SERVICE_NAME, kind=kind
        ).inc()

    @staticmethod
    def record_worker_error(error_type: str):
        worker_errors_total.labels(
            service=MetricsCollector.SERVICE_NAME,
            error_type=error_type,
        ).inc()
