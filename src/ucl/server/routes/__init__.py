"""Router factories for the UCL server."""

from .health import build_health_router
from .run import build_run_router

__all__ = ["build_health_router", "build_run_router"]
