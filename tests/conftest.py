"""
tests/conftest.py -- Shared test fixtures for Cogito API tests.

This module provides:
  - FakeAgent: stand-in for the external agent, records questions, can fail
  - _make_test_stores(): isolated in-memory DBs for users + conversations
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: module-scoped TestClient against the real app
  - client: per-test view of api_client with an empty cookie jar
  - register_user() / login_user(): request helpers

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

DEBUG and RATE_LIMIT_ENABLED must be set before any api/ import: settings and
the limiter are read once at module load.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import Any

# CRITICAL: set before importing the app so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import UserStore
from conversations.store import ConversationStore
from core.agent import AgentError

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeAgent:
    """Deterministic agent: echoes the question into a two-turn transcript."""

    def __init__(self) -> None:
        self.questions: list[str] = []
        self.fail = False

    def ask(self, content: str) -> Any:
        self.questions.append(content)
        if self.fail:
            raise AgentError("agent down")
        return {
            "messages": [
                {"role": "user", "content": content},
                {"role": "assistant", "content": "Let us think about that."},
            ]
        }

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, ConversationStore]:
    """Create named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    url = f"sqlite:///file:test_cogito_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(url), ConversationStore(url)


def _patch_lifespan(user_store: UserStore, conversations: ConversationStore, agent: FakeAgent):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.conversations = conversations
        app.state.agent = agent
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, UserStore, FakeAgent], None, None]:
    """Yield (client, user_store, agent) backed by stores unique to the test module."""
    user_store, conversations = _make_test_stores(request.module.__name__.replace(".", "_"))
    agent = FakeAgent()

    app.router.lifespan_context = _patch_lifespan(user_store, conversations, agent)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store, agent

    conversations.close()
    user_store.close()


@pytest.fixture
def client(api_client) -> TestClient:
    """The module's TestClient with cookies cleared and the agent healthy."""
    test_client, _store, agent = api_client
    test_client.cookies.clear()
    agent.fail = False
    return test_client


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------


def unique_name(prefix: str = "user") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def register_user(client: TestClient, username: str, password: str = "correct-horse", **extra):
    return client.post("/register", json={"username": username, "password": password, **extra})


def login_user(client: TestClient, username: str, password: str = "correct-horse"):
    return client.post("/login", json={"username": username, "password": password})


def session_header(token: str) -> dict[str, str]:
    """Explicit Cookie header, for acting as a user other than the one in the jar."""
    return {"Cookie": f"login_id={token}"}
