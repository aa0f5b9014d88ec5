"""Health and status routes."""

from __future__ import annotations

from typing import Any, Callable, Dict, List

from fastapi import APIRouter


def build_health_router(version: str, substrates: Callable[[], List[str]]) -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok", "version": version, "substrates": substrates()}

    return router


__all__ = ["build_health_router"]
