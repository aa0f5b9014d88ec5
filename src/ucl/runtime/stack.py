"""
Helpers for running deeply recursive programs on their own threads.

A UCL call nests a bounded number of Python frames, so the interpreter's
recursion limit and the executor thread's stack are sized from the
configured call depth.
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import Any, Callable, Optional

log = logging.getLogger(__name__)

FRAMES_PER_CALL = 40
DEFAULT_STACK_MB = 256

_stack_lock = threading.Lock()


def ensure_recursion_headroom(max_call_depth: int) -> None:
    needed = max_call_depth * FRAMES_PER_CALL + 1000
    if sys.getrecursionlimit() < needed:
        log.debug("Raising recursion limit to %d", needed)
        sys.setrecursionlimit(needed)


def start_thread(
    target: Callable[[], Any],
    name: str,
    stack_mb: int = DEFAULT_STACK_MB,
) -> threading.Thread:
    """Start a daemon thread with an enlarged stack."""
    thread = threading.Thread(target=target, name=name, daemon=True)
    with _stack_lock:
        previous = threading.stack_size()
        try:
            threading.stack_size(stack_mb * 1024 * 1024)
        except (ValueError, RuntimeError):
            log.warning("Could not enlarge thread stack for %s", name)
        try:
            thread.start()
        finally:
            threading.stack_size(previous)
    return thread


def run_on_deep_stack(fn: Callable[..., Any], *args: Any, name: str = "ucl-run", **kwargs: Any) -> Any:
    """Run ``fn`` on a fresh large-stack thread and return its result or re-raise its error."""
    outcome: dict[str, Any] = {}

    def _target() -> None:
        try:
            outcome["value"] = fn(*args, **kwargs)
        except BaseException as exc:  # re-raised in the calling thread
            outcome["error"] = exc

    thread = start_thread(_target, name=name)
    thread.join()
    error: Optional[BaseException] = outcome.get("error")
    if error is not None:
        raise error
    return outcome.get("value")
