import time

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session, SQLModel

import support_portal.models  # noqa: F401  registers tables
from support_portal.api.routes.metrics import router as metrics_router
from support_portal.api.routes.notifications import router as notifications_router
from support_portal.api.routes.settings import router as settings_router
from support_portal.api.routes.stats import router as stats_router
from support_portal.api.routes.tickets import router as tickets_router
from support_portal.core.config import settings
from support_portal.core.logging import configure_logging, log_info
from support_portal.db import session as session_mod
from support_portal.metrics.prometheus import api_request_latency_seconds
from support_portal.services.allocator import ensure_counter

app = FastAPI(
    title="Support Portal API",
    version="1.0.0",
    description="Customer support ticket intake and notification pipeline",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    configure_logging()
    engine = session_mod.engine
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        counter = ensure_counter(session)
    log_info("support portal started", counter=counter.count, period=counter.period)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
        return response
    finally:
        dt = time.perf_counter() - start
        route = getattr(request.scope.get("route"), "path", request.url.path)
        method = request.method
        status = "unknown"
        try:
            status = str(getattr(response, "status_code", "unknown"))
        except Exception:
            status = "unknown"
        api_request_latency_seconds.labels(route=route, method=method, status=status).observe(dt)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(tickets_router)
app.include_router(notifications_router)
app.include_router(settings_router)
app.include_router(stats_router)
app.include_router(metrics_router)
