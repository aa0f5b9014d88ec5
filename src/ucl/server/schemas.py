"""Pydantic schemas used by the FastAPI server."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from ..runtime.config import (
    MAX_CALL_DEPTH,
    MAX_LOOP_ITERATIONS,
    MAX_RECEIVE_TIMEOUT,
    MAX_WORKING_MEMORY_CAPACITY,
)

ProgramPayload = Union[Dict[str, Any], List[Dict[str, Any]]]


class ProgramRequest(BaseModel):
    program: ProgramPayload
    coordinated: bool = False


class LimitsOverride(BaseModel):
    max_call_depth: Optional[int] = Field(default=None, gt=0, le=MAX_CALL_DEPTH)
    max_loop_iterations: Optional[int] = Field(default=None, gt=0, le=MAX_LOOP_ITERATIONS)
    working_memory_capacity: Optional[int] = Field(default=None, gt=0, le=MAX_WORKING_MEMORY_CAPACITY)
    receive_timeout: Optional[float] = Field(default=None, gt=0, le=MAX_RECEIVE_TIMEOUT)


class RunRequest(BaseModel):
    program: ProgramPayload
    substrate: str = "brain"
    limits: Optional[LimitsOverride] = None


class CoordinateRequest(BaseModel):
    program: ProgramPayload
    assignments: Dict[str, str] = Field(default_factory=dict)
    limits: Optional[LimitsOverride] = None


class CompileResponse(BaseModel):
    source: str
    statements: int


__all__ = ["CompileResponse", "CoordinateRequest", "LimitsOverride", "ProgramRequest", "RunRequest"]
