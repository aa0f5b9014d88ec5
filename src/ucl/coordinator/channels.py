"""
Named channels for passing values between concurrently running substrates.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict, deque
from dataclasses import asdict, dataclass
from typing import Any, Deque, Dict, List, Optional, Tuple

from ..errors import ChannelTimeout

log = logging.getLogger(__name__)

ChannelKey = Tuple[str, str, str]


@dataclass
class ChannelEvent:
    id: int
    timestamp: str
    event: str
    channel: str
    source: str
    destination: str
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ChannelHub:
    """
    Unbounded FIFO queues keyed by (channel, source, destination).

    Sends never block. A receive waits until a value from the named source is
    queued for the receiving actor, then takes the oldest one. Every send and
    every completed receive is appended to a sequenced event log.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._queues: Dict[ChannelKey, Deque[Any]] = defaultdict(deque)
        self._events: List[ChannelEvent] = []
        self._seq = 0

    def _record(self, event: str, channel: str, source: str, destination: str, value: Any) -> ChannelEvent:
        self._seq += 1
        entry = ChannelEvent(
            id=self._seq,
            timestamp=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            event=event,
            channel=channel,
            source=source,
            destination=destination,
            value=value,
        )
        self._events.append(entry)
        return entry

    def send(self, channel: str, source: str, destination: str, value: Any) -> ChannelEvent:
        with self._cond:
            self._queues[(channel, source, destination)].append(value)
            entry = self._record("send", channel, source, destination, value)
            self._cond.notify_all()
        log.debug("%s -> %s on %s: %r", source, destination, channel, value)
        return entry

    def receive(self, channel: str, source: str, destination: str, timeout: Optional[float] = None) -> Any:
        key = (channel, source, destination)
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            queue = self._queues[key]
            while not queue:
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise ChannelTimeout(
                        f"{destination} waited {timeout}s for a value from {source} on '{channel}'",
                        channel=channel,
                        source=source,
                    )
                self._cond.wait(remaining)
            value = queue.popleft()
            self._record("receive", channel, source, destination, value)
        log.debug("%s <- %s on %s: %r", destination, source, channel, value)
        return value

    def events(self) -> List[ChannelEvent]:
        with self._cond:
            return list(self._events)

    def pending(self) -> Dict[str, int]:
        """Count of undelivered values per ``channel:source->destination``."""
        with self._cond:
            return {f"{c}:{s}->{d}": len(q) for (c, s, d), q in self._queues.items() if q}


__all__ = ["ChannelEvent", "ChannelHub"]
