"""Validation, compilation and execution routes."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException

from ...coordinator import Coordinator
from ...errors import UCLError
from ...ir import Program
from ...runtime.config import RuntimeConfig
from ...runtime.engine import run_program
from ...schema import program_from_json
from ...substrates import create_substrate
from ...substrates.ruby import compile_to_ruby
from ...validator import collect_diagnostics
from ..schemas import CompileResponse, CoordinateRequest, LimitsOverride, ProgramRequest, RunRequest

log = logging.getLogger(__name__)


def _bad_request(exc: UCLError) -> HTTPException:
    return HTTPException(status_code=400, detail=exc.to_dict())


def _apply_limits(config: RuntimeConfig, limits: Optional[LimitsOverride]) -> RuntimeConfig:
    if limits is None:
        return config
    overrides = {key: value for key, value in limits.model_dump().items() if value is not None}
    return dataclasses.replace(config, **overrides)


def build_run_router(config_factory) -> APIRouter:
    router = APIRouter()

    def _program(payload: Any) -> Program:
        try:
            return program_from_json(payload)
        except UCLError as exc:
            raise _bad_request(exc) from exc

    @router.post("/api/validate")
    def api_validate(payload: ProgramRequest) -> Dict[str, Any]:
        program = _program(payload.program)
        diagnostics = collect_diagnostics(program, coordinated=payload.coordinated)
        return {
            "ok": not any(d.severity == "error" for d in diagnostics),
            "actors": program.actors(),
            "diagnostics": [d.to_dict() for d in diagnostics],
        }

    @router.post("/api/compile", response_model=CompileResponse)
    def api_compile(payload: ProgramRequest) -> CompileResponse:
        program = _program(payload.program)
        try:
            source = compile_to_ruby(program.actions, config_factory())
        except UCLError as exc:
            raise _bad_request(exc) from exc
        return CompileResponse(source=source, statements=len(program.actions))

    @router.post("/api/run")
    def api_run(payload: RunRequest) -> Dict[str, Any]:
        program = _program(payload.program)
        config = _apply_limits(config_factory(), payload.limits)
        try:
            substrate = create_substrate(payload.substrate, config)
            result = run_program(program, substrate, config)
        except UCLError as exc:
            raise _bad_request(exc) from exc
        log.info("API run on %s finished with status %s", substrate.kind, result.status)
        return {"result": result.to_dict(), "snapshot": substrate.snapshot()}

    @router.post("/api/coordinate")
    def api_coordinate(payload: CoordinateRequest) -> Dict[str, Any]:
        program = _program(payload.program)
        config = _apply_limits(config_factory(), payload.limits)
        try:
            report = Coordinator(payload.assignments, config).run(program)
        except UCLError as exc:
            raise _bad_request(exc) from exc
        return report.to_dict()

    return router


__all__ = ["build_run_router"]
