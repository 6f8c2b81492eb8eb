import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import dispose_engine, init_db
from .errors import register_error_handlers
from .observability.logging import bind_request_id, setup_logging
from .observability.metrics import metrics_endpoint, request_metrics_middleware
from .observability.sentry import init_sentry
from .routers import characters, dice_rolls, session_participants, sessions, status, users


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database ready")
    yield
    dispose_engine()


def create_app() -> FastAPI:
    tags_metadata = [
        {"name": "status", "description": "Service and database health"},
        {"name": "users", "description": "Accounts, login and logout"},
        {"name": "characters", "description": "Player characters"},
        {"name": "sessions", "description": "Game sessions"},
        {"name": "participants", "description": "Session membership and roles"},
        {"name": "dice-rolls", "description": "Dice rolls logged against sessions"},
    ]
    app = FastAPI(
        title="Tabletop Sessions API",
        version="0.1.0",
        openapi_tags=tags_metadata,
        lifespan=lifespan,
    )

    register_error_handlers(app)
    setup_logging()
    init_sentry(app)

    # CORS from environment configuration
    origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
    allow_origins = [o.strip() for o in origins.split(",") if o.strip()]
    allow_credentials = os.getenv("CORS_ALLOW_CREDENTIALS", "1") in ("1", "true", "TRUE")
    allow_methods = os.getenv("CORS_ALLOW_METHODS", "*")
    allow_headers = os.getenv("CORS_ALLOW_HEADERS", "*")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=allow_credentials,
        allow_methods=allow_methods.split(",") if "," in allow_methods else [allow_methods],
        allow_headers=allow_headers.split(",") if "," in allow_headers else [allow_headers],
    )
    # Metrics middleware
    app.middleware("http")(request_metrics_middleware)

    # Request ID binder
    @app.middleware("http")
    async def add_request_id(request, call_next):
        rid = bind_request_id(request.headers.get("X-Request-Id"))
        response = await call_next(request)
        response.headers["X-Request-Id"] = rid
        return response

    # Routers
    app.include_router(status.router)
    app.include_router(users.router)
    app.include_router(characters.router)
    app.include_router(sessions.router)
    app.include_router(session_participants.router)
    app.include_router(dice_rolls.router)
    # Prometheus metrics
    app.add_api_route("/metrics", metrics_endpoint, include_in_schema=False)

    return app


app = create_app()
