"""Application factory that builds the FastAPI app with all wiring."""

from __future__ import annotations

from typing import Callable, Optional

from fastapi import FastAPI

from ..runtime.config import RuntimeConfig, load_config
from ..substrates import available_substrates
from ..version import __version__
from .routes import build_health_router, build_run_router


def create_app(config_factory: Optional[Callable[[], RuntimeConfig]] = None) -> FastAPI:
    """
    Build the HTTP app.

    ``config_factory`` is called per request so environment changes apply
    without a restart; tests pass a fixed config instead.
    """
    app = FastAPI(title="UCL Runtime", version=__version__)
    factory = config_factory or load_config
    app.include_router(build_health_router(__version__, available_substrates))
    app.include_router(build_run_router(factory))
    return app


__all__ = ["create_app"]
