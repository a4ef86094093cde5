"""
TaskDeps — Test Fixtures
==========================
Shared pytest fixtures: settings reset, a task lookup with effort
estimates, the five-task example graph, an orchestrator over it and an
ASGI client around the FastAPI app.

Example graph (``a -> b`` reads "a depends on b"):

    task_1 -> task_2 -> task_4 -> task_5
    task_1 -> task_3 -> task_4
"""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from taskdeps.core.config import Settings
from taskdeps.core.task_types import InMemoryTaskLookup, TaskAttributes
from taskdeps.graph import DependencyStore, EdgeSpec
from taskdeps.orchestrator import DependencyOrchestrator, OrchestratorRegistry

EXAMPLE_EDGES: dict[str, list[str]] = {
    "task_1": ["task_2", "task_3"],
    "task_2": ["task_4"],
    "task_3": ["task_4"],
    "task_4": ["task_5"],
}

EXAMPLE_HOURS: dict[str, float] = {
    "task_1": 8,
    "task_2": 4,
    "task_3": 6,
    "task_4": 12,
    "task_5": 2,
}


# ── Settings ─────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Ensure a fresh Settings instance for each test."""
    from taskdeps.core.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(monkeypatch):
    """Return a settings instance with test defaults."""
    monkeypatch.setenv("TASKDEPS_ENVIRONMENT", "development")
    monkeypatch.setenv("TASKDEPS_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("TASKDEPS_LOG_FORMAT", "json")
    from taskdeps.core.config import get_settings
    return get_settings()


# ── Graph ────────────────────────────────────────────────────────────────
@pytest.fixture
def lookup() -> InMemoryTaskLookup:
    """The five example tasks with effort estimates."""
    return InMemoryTaskLookup(
        TaskAttributes(task_id=t, estimated_hours=h) for t, h in EXAMPLE_HOURS.items()
    )


@pytest.fixture
def store() -> DependencyStore:
    return DependencyStore()


@pytest.fixture
def example_store(store) -> DependencyStore:
    """Store holding the example graph."""
    for task_id, targets in EXAMPLE_EDGES.items():
        store.add_edges(task_id, [EdgeSpec(t) for t in targets])
    return store


@pytest.fixture
def engine(lookup) -> DependencyOrchestrator:
    """Orchestrator over an empty graph, project ``proj-1``."""
    return DependencyOrchestrator(lookup=lookup, settings=Settings(), project_id="proj-1")


@pytest.fixture
def example_engine(engine) -> DependencyOrchestrator:
    """Orchestrator holding the example graph."""
    for task_id, targets in EXAMPLE_EDGES.items():
        engine.add_dependencies(task_id, targets)
    return engine


# ── HTTP client ──────────────────────────────────────────────────────────
@pytest.fixture
def registry(lookup) -> OrchestratorRegistry:
    return OrchestratorRegistry(lookup=lookup, settings=Settings())


@pytest.fixture
async def client(registry):
    """AsyncClient wired to a fresh FastAPI app around ``registry``."""
    from taskdeps.main import create_app

    app = create_app(registry)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
