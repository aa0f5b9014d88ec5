"""FastAPI surface for validating, compiling and running UCL programs."""

from __future__ import annotations

from .factory import create_app

__all__ = ["create_app"]
