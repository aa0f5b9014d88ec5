"""
Runs a multi-actor program with one executor thread per actor.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..errors import UCLError
from ..ir import Action, Program
from ..runtime.config import RuntimeConfig, load_config
from ..runtime.engine import ExecutionResult, FailureReport, Interpreter
from ..runtime.expressions import NO_VALUE
from ..runtime.stack import ensure_recursion_headroom, start_thread
from ..substrates import create_substrate, resolve_kind
from ..validator import ensure_valid
from .channels import ChannelEvent, ChannelHub

log = logging.getLogger(__name__)

DEFAULT_SUBSTRATE = "brain"

_NAME_HINTS = (
    ("ruby", "ruby"),
    ("robot", "robot"),
)


@dataclass
class SubstrateReport:
    actor: str
    kind: str
    status: str
    value: Any = None
    trace: List[str] = field(default_factory=list)
    snapshot: Dict[str, Any] = field(default_factory=dict)
    failure: Optional[FailureReport] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actor": self.actor,
            "kind": self.kind,
            "status": self.status,
            "value": None if self.value is NO_VALUE else self.value,
            "trace": list(self.trace),
            "snapshot": self.snapshot,
            "failure": None if self.failure is None else asdict(self.failure),
        }


@dataclass
class RunReport:
    actors: Dict[str, SubstrateReport] = field(default_factory=dict)
    events: List[ChannelEvent] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(report.status == "completed" for report in self.actors.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "actors": {name: report.to_dict() for name, report in self.actors.items()},
            "events": [event.to_dict() for event in self.events],
        }


def partition(program: Program) -> Dict[str, List[Tuple[int, Action]]]:
    """Split top-level actions by actor, keeping program order and positions."""
    parts: Dict[str, List[Tuple[int, Action]]] = {}
    for index, action in enumerate(program.actions):
        parts.setdefault(action.actor, []).append((index, action))
    return parts


class Coordinator:
    """
    Assigns each actor a substrate and runs the partitions concurrently.

    Actors missing from ``assignments`` are matched by name ("ruby", "robot")
    and otherwise run on the brain substrate. Values move between actors only
    through the channel hub.
    """

    def __init__(
        self,
        assignments: Optional[Mapping[str, str]] = None,
        config: Optional[RuntimeConfig] = None,
    ) -> None:
        self.assignments = {actor: resolve_kind(kind) for actor, kind in (assignments or {}).items()}
        self.config = config or load_config()

    def kind_for(self, actor: str) -> str:
        if actor in self.assignments:
            return self.assignments[actor]
        lowered = actor.lower()
        for hint, kind in _NAME_HINTS:
            if hint in lowered:
                return kind
        return DEFAULT_SUBSTRATE

    def run(self, program: Program) -> RunReport:
        ensure_valid(program, coordinated=True)
        ensure_recursion_headroom(self.config.max_call_depth)
        hub = ChannelHub()
        parts = partition(program)
        reports: Dict[str, SubstrateReport] = {}
        lock = threading.Lock()
        threads: List[threading.Thread] = []

        log.info("Coordinating %d actor(s): %s", len(parts), ", ".join(parts))
        for actor, items in parts.items():
            kind = self.kind_for(actor)
            runner = _PartitionRunner(actor, kind, items, self.config, hub)

            def _target(runner: "_PartitionRunner" = runner) -> None:
                report = runner.run()
                with lock:
                    reports[runner.actor] = report

            threads.append(start_thread(_target, name=f"ucl-{actor}"))

        for thread in threads:
            thread.join()

        ordered = {
            actor: reports[actor] if actor in reports else _missing_report(actor, self.kind_for(actor))
            for actor in parts
        }
        return RunReport(actors=ordered, events=hub.events())


class _PartitionRunner:
    def __init__(
        self,
        actor: str,
        kind: str,
        items: List[Tuple[int, Action]],
        config: RuntimeConfig,
        hub: ChannelHub,
    ) -> None:
        self.actor = actor
        self.kind = kind
        self.items = items
        self.substrate = create_substrate(kind, config)
        self.interpreter = Interpreter(self.substrate, config=config, hub=hub, actor=actor)

    def run(self) -> SubstrateReport:
        actions = [action for _, action in self.items]
        positions = [index for index, _ in self.items]
        try:
            result = self.interpreter.execute(actions, positions)
        except UCLError as exc:
            # Errors outside the partition-fatal set still stay in this partition.
            log.error("Actor %s failed: %s", self.actor, exc)
            failure = FailureReport.from_error(exc, self.interpreter.action_index)
            trace = list(self.interpreter.trace) + [failure.headline()]
            result = ExecutionResult(status="aborted", trace=trace, failure=failure)
        except Exception as exc:
            # A crash inside a substrate must not take the executor thread down silently.
            log.exception("Actor %s crashed", self.actor)
            failure = FailureReport(
                code=UCLError.code,
                kind=type(exc).__name__,
                message=str(exc) or type(exc).__name__,
                action_index=self.interpreter.action_index,
            )
            trace = list(self.interpreter.trace) + [failure.headline()]
            result = ExecutionResult(status="aborted", trace=trace, failure=failure)
        return SubstrateReport(
            actor=self.actor,
            kind=self.kind,
            status=result.status,
            value=result.value,
            trace=result.trace,
            snapshot=self._snapshot(),
            failure=result.failure,
        )

    def _snapshot(self) -> Dict[str, Any]:
        try:
            return self.substrate.snapshot()
        except Exception:
            log.exception("Snapshot of actor %s failed", self.actor)
            return {}


def _missing_report(actor: str, kind: str) -> SubstrateReport:
    log.error("Actor %s produced no report", actor)
    failure = FailureReport(
        code=UCLError.code,
        kind="ExecutorCrash",
        message=f"Executor thread for actor '{actor}' exited without a report",
    )
    return SubstrateReport(actor=actor, kind=kind, status="aborted", trace=[failure.headline()], failure=failure)


def coordinate(
    program: Program,
    assignments: Optional[Mapping[str, str]] = None,
    config: Optional[RuntimeConfig] = None,
) -> RunReport:
    return Coordinator(assignments, config).run(program)


__all__ = ["Coordinator", "RunReport", "SubstrateReport", "coordinate", "partition"]
