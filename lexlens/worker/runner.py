"""
Worker entry point.
Run with: python -m lexlens.worker.runner
"""

import os
import socket

import structlog
from prometheus_client import start_http_server
from redis import Redis
from rq import Worker

from lexlens.config import settings
from lexlens.observability.logging import setup_logging
from lexlens.pipeline.registry import PipelineRegistry
from lexlens.worker.jobs import configure_worker, ensure_cleanup_scheduled

logger = structlog.get_logger(__name__)


def main():
    """Start the RQ worker."""
    setup_logging()

    if settings.SENTRY_DSN:
        import sentry_sdk
        from sentry_sdk.integrations.rq import RqIntegration
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[RqIntegration()],
            traces_sample_rate=0.1,
        )

    if settings.PROMETHEUS_ENABLED:
        start_http_server(settings.METRICS_PORT)

    # Load models before forking so job processes share them
    registry = PipelineRegistry(settings)
    registry.warm_up()
    configure_worker(registry)

    conn = Redis.from_url(settings.REDIS_URL)
    worker = Worker(
        queues=[settings.QUEUE_NAME],
        connection=conn,
        name=f"clause-worker-{socket.gethostname()}-{os.getpid()}",
    )
    ensure_cleanup_scheduled()

    logger.info("worker_starting", queue=settings.QUEUE_NAME, version=settings.APP_VERSION)
    # Scheduler is needed for retry backoff and the retention sweep
    worker.work(with_scheduler=True)


if __name__ == "__main__":
    main()
