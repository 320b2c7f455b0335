from __future__ import annotations

import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import APIRouter, Depends, FastAPI

from investment_portal.core.config import settings
from investment_portal.core.db.session import get_session_local
from investment_portal.core.http.errors import register_error_handlers
from investment_portal.core.logging import configure_logging
from investment_portal.core.middleware.request_id import RequestIdMiddleware
from investment_portal.modules.ai.routes import router as ai_router
from investment_portal.modules.auth.routes import router as auth_router
from investment_portal.modules.dashboard.routes import router as dashboard_router
from investment_portal.modules.documents.routes import router as documents_router
from investment_portal.modules.jobs.routes import router as jobs_router
from investment_portal.modules.jobs.worker import JobWorker
from investment_portal.modules.notifications.routes import router as notifications_router
from investment_portal.modules.requests.routes import router as requests_router
from investment_portal.modules.tasks.routes import router as tasks_router
from investment_portal.modules.templates.routes import router as templates_router
from investment_portal.modules.workflow.routes import router as approvals_router
from investment_portal.modules.workflow.stages import seed_default_stages
from investment_portal.services.llm_service import LLMServiceClient, get_llm_service_client
from investment_portal.services.vector_store import VectorStoreGateway, get_vector_store_gateway

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    session_factory = get_session_local()
    with session_factory() as db:
        seeded = seed_default_stages(db)
    if seeded:
        logger.info("startup.stages_seeded", count=seeded)

    stop = threading.Event()
    thread: threading.Thread | None = None
    if settings.job_worker_enabled:
        worker = JobWorker(session_factory=session_factory)
        thread = threading.Thread(target=worker.run_forever, args=(stop,), name="job-worker", daemon=True)
        thread.start()
    try:
        yield
    finally:
        stop.set()
        if thread is not None:
            thread.join(timeout=settings.job_poll_interval_seconds + 5)


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Investment Portal - Backend", version="0.1.0", lifespan=lifespan)
    app.add_middleware(RequestIdMiddleware)
    register_error_handlers(app)

    @app.get("/health", tags=["admin"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/health/services", tags=["admin"])
    def health_services(
        llm: LLMServiceClient = Depends(get_llm_service_client),
        vector_store: VectorStoreGateway = Depends(get_vector_store_gateway),
    ) -> dict[str, str]:
        llm_health = llm.health()
        out: dict[str, str] = {
            "llm_service": "ok" if llm_health.success else "fail",
            "vector_store": "configured" if vector_store.is_configured else "not_configured",
        }
        # Diagnostics only; never echo keys.
        if not llm_health.success and llm_health.error:
            out["llm_service_detail"] = llm_health.error
        return out

    api = APIRouter(prefix="/api")
    api.include_router(auth_router)
    api.include_router(requests_router)
    api.include_router(approvals_router)
    api.include_router(tasks_router)
    api.include_router(notifications_router)
    api.include_router(jobs_router)
    api.include_router(ai_router)
    api.include_router(documents_router)
    api.include_router(templates_router)
    api.include_router(dashboard_router)
    app.include_router(api)

    return app


app = create_app()
