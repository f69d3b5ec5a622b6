"""
api/main.py -- FastAPI application entry point for the Cogito API.

Run with:      uvicorn asgi:app --reload
               python asgi.py

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan handles startup (stores, agent client) and shutdown (dispose
connection pools, close the agent session) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from api.errors import register_error_handlers
from api.limiter import limiter
from api.models import HealthResponse
from api.routes.accounts import router as accounts_router
from api.routes.conversations import router as conversations_router
from auth.store import UserStore
from conversations.store import ConversationStore
from core.agent import CogitoAgent
from core.config import get_settings

API_VERSION = "0.1.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cogito.api")


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the shared stores and agent client; tear them down on shutdown.

    Both stores point at the same database. Each owns its own connection pool,
    which is the only shared mutable resource between requests.
    """
    logger.info("Cogito API starting up")
    app.state.user_store = UserStore(_settings.database_url)
    app.state.conversations = ConversationStore(_settings.database_url)
    logger.info("Database initialized")
    app.state.agent = CogitoAgent(_settings.agent_url, timeout=_settings.agent_timeout_seconds)
    logger.info("Agent client configured for %s", _settings.agent_url)

    yield

    app.state.agent.close()
    app.state.conversations.close()
    app.state.user_store.close()
    logger.info("Cogito API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Cogito API",
    description="Accounts, cookie sessions, and conversations with the Cogito agent.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them: CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Accept", "Content-Type"],
    # The session travels as a cookie, so credentialed requests must be allowed.
    allow_credentials=True,
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Cookies are never logged.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Routers and exception handlers
# ---------------------------------------------------------------------------

app.include_router(accounts_router, tags=["Accounts"])
app.include_router(conversations_router, tags=["Conversations"])

register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    try:
        database = "ok" if request.app.state.user_store.ping() else "error"
    except SQLAlchemyError:
        logger.warning("Health check could not reach the database", exc_info=True)
        database = "error"
    return HealthResponse(version=API_VERSION, components={"app": "ok", "database": database})
