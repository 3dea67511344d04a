import time
from contextlib import contextmanager
from datetime import timedelta

from loguru import logger

from qc_worker.config.logging import setup_logging
from qc_worker.config.settings import Settings
from qc_worker.db.database import get_sessionmaker
from qc_worker.monitoring.metrics import (
    MetricsCollector,
    init_app_info,
    start_metrics_server,
)
from qc_worker.services.sweep import QCSweepService
from shared.db.effects import SideEffectExecutor
from shared.db.repositories import ClosetRepository, OutfitRepository, RentalRepository
from shared.lifecycle import LifecycleEngine, SystemClock


@contextmanager
def get_services(settings: Settings, sessionmaker=None, clock=None):
    sessionmaker = sessionmaker or get_sessionmaker(settings)
    session = sessionmaker()
    try:
        executor = SideEffectExecutor(OutfitRepository(session), ClosetRepository(session))
        engine = LifecycleEngine(
            clock=clock or SystemClock(),
            qc_window=timedelta(minutes=settings.qc_window_min),
        )
        sweep_service = QCSweepService(session, RentalRepository(session), executor, engine)

        yield sweep_service, session
    finally:
        session.close()


def tick_once(settings: Settings, sessionmaker=None, clock=None):
    start_time = time.time()

    with get_services(settings, sessionmaker, clock) as (sweep_service, session):
        try:
            result = sweep_service.sweep()
        except Exception as e:
            session.rollback()
            MetricsCollector.record_worker_error("sweep_cycle_failed")
            logger.error(f"QC sweep failed: {e}")
            raise

    duration = time.time() - start_time
    MetricsCollector.record_sweep_cycle(duration, result.expired)

    logger.info(
        f"QC sweep: expired={result.expired}, "
        f"delivery_approved={result.delivery_approved}, "
        f"return_approved={result.return_approved}, "
        f"skipped={result.skipped}, failed={result.failed}, "
        f"duration={duration:.2f}s"
    )
    return result


def main():
    settings = Settings()
    setup_logging(settings.log_level)

    start_metrics_server(settings.metrics_port)
    init_app_info("1.0.0")

    logger.info(
        f"Starting QC worker: tick_sec={settings.qc_sweep_tick_sec}, "
        f"qc_window_min={settings.qc_window_min}"
    )
    logger.info(f"Metrics server started on port {settings.metrics_port}")

    while True:
        try:
            tick_once(settings)
        except Exception as e:
            MetricsCollector.record_worker_error("tick_error")
            logger.error(f"Tick error: {e}")

        time.sleep(settings.qc_sweep_tick_sec)


if __name__ == "__main__":
    main()
