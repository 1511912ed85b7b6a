from celery import Celery
from prometheus_client import CollectorRegistry, Counter, push_to_gateway
from sqlmodel import Session, SQLModel, create_engine

import support_portal.models  # noqa: F401  registers tables
from support_portal.core.logging import configure_logging, log_info, log_warning
from support_portal.services.email_transport import BrevoTransport
from support_portal.services.resend import resend_pending
from support_portal.services.routing import DatabaseRoutingSettingsProvider
from worker_config import settings

celery_app = Celery(
    "support_portal_worker",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

engine = create_engine(settings.database_url, pool_pre_ping=True)

configure_logging()

worker_registry = CollectorRegistry()
pending_notifications_processed_total = Counter(
    "pending_notifications_processed_total",
    "Pending notifications handled by the worker",
    ["outcome"],
    registry=worker_registry,
)


def _push_metrics():
    try:
        push_to_gateway(settings.pushgateway_url, job="support-portal-worker", registry=worker_registry)
    except OSError as e:
        log_warning("metrics push failed", error=str(e))


def _ensure_tables():
    SQLModel.metadata.create_all(engine)


@celery_app.task(name="resend_pending_notifications")
def resend_pending_notifications(limit: int | None = None):
    _ensure_tables()

    with Session(engine) as session:
        summary = resend_pending(
            session,
            BrevoTransport(),
            DatabaseRoutingSettingsProvider(session),
            limit=limit or settings.pending_batch_size,
        )

    for outcome in ("sent", "failed", "still_pending"):
        if summary[outcome]:
            pending_notifications_processed_total.labels(outcome=outcome).inc(summary[outcome])
    _push_metrics()

    log_info("resend_pending_notifications finished", **summary)
    return {"ok": True, **summary}
