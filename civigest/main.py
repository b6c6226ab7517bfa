from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI

from civigest.db import filters as _filters  # noqa: F401  (register SQLAlchemy tenant filter)
from civigest.db.init_db import init_db, sync_permissions
from civigest.logging_config import configure_app_logging
from civigest.routers import admin, agent_auth, agents, auth, departments, health, patrols
from civigest.security.config import load_security_config
from civigest.security.dependencies import enforce_security
from civigest.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        resolved = settings or get_settings()
        configure_app_logging(resolved.log_level)
        logger.info("App startup beginning")

        app.state.settings = resolved
        app.state.security_config = load_security_config(resolved.resolved_security_config_path())
        logger.info("Loaded security config: %s", resolved.resolved_security_config_path())
        init_db(resolved)
        logger.info("Database initialized (tables ensured + seed if enabled)")
        sync_permissions(resolved, app.state.security_config, app.routes)

        yield

    # Global dependency: every route passes the security check before its handler.
    app = FastAPI(title="CiviGest", dependencies=[Depends(enforce_security)], lifespan=lifespan)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(departments.router)
    app.include_router(patrols.router)
    app.include_router(agent_auth.router)
    app.include_router(agents.router)
    app.include_router(admin.router)

    return app


app = create_app()


def run() -> None:
    """Serve the app with uvicorn (`civigest` console script)."""
    settings = get_settings()
    uvicorn.run("civigest.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
