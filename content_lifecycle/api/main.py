import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from content_lifecycle.adapters.sqlite.migrator import SQLiteMigrator
from content_lifecycle.adapters.sweep_runner import SweepScheduler
from content_lifecycle.api.deps import get_rules, sqlite_services
from content_lifecycle.api.errors import install_error_handling
from content_lifecycle.app_shell.config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load rules (fail fast), migrate, and start the sweep loop if enabled."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = get_settings()

    try:
        rules = get_rules()
        logger.info("Rules loaded from %s", settings.rules_path)
    except Exception:
        logger.critical("Rules load failed from %s", settings.rules_path, exc_info=True)
        raise

    Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)
    migrator = SQLiteMigrator(settings.db_path, settings.migrations_dir)
    migrator.run_migrations()
    migrator.verify_schema()

    scheduler: SweepScheduler | None = None
    if rules.scheduler.run_in_process:
        services = sqlite_services(settings.db_path)
        scheduler = SweepScheduler(services.sweeper, rules.scheduler.interval_seconds)
        scheduler.start()

    yield

    if scheduler is not None:
        scheduler.stop()


app = FastAPI(
    title="Content Lifecycle API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

install_error_handling(app)

# --- Routers ---
from content_lifecycle.api.routes import (  # noqa: E402
    admin_audit,
    content,
    scheduler,
    versions,
    workflow,
)

app.include_router(content.router, prefix="/api/content", tags=["Content"])
app.include_router(versions.router, prefix="/api/content", tags=["Versions"])
app.include_router(scheduler.router, prefix="/api/scheduler", tags=["Scheduler"])
app.include_router(admin_audit.router, prefix="/api/audit-logs", tags=["Audit"])
app.include_router(workflow.router, prefix="/api/workflow", tags=["Workflow"])


# CORS (Allow Frontend)
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "api"}
