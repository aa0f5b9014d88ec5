from __future__ import annotations

from typing import Any


class ReturnSignal(Exception):
    """Unwinds a function body when a Return action runs."""

    def __init__(self, value: Any = None) -> None:
        super().__init__("return")
        self.value = value
