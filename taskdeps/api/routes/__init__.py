"""
TaskDeps — API Routes Package
===============================
Aggregates the route modules mounted under ``/api/v1``.
"""

from taskdeps.api.routes.dependencies import router as dependencies_router

__all__ = [
    "dependencies_router",
]
