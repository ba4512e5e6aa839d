"""Structured trace for electrical passes.

The engine never logs through a module-level logger of its own. Callers
hand in an ``AnalysisTrace``; every stage records an ordered
``TraceEvent`` on it, which is also forwarded to the trace's logger.
"""

from __future__ import annotations

import logging
from typing import Any

from circuitwiz.schemas.circuit import TraceEvent


class AnalysisTrace:
    __slots__ = ("events", "_logger", "_level")

    def __init__(
        self, logger: logging.Logger | None = None, level: int = logging.DEBUG
    ):
        self.events: list[TraceEvent] = []
        self._logger = logger
        self._level = level

    def record(self, stage: str, message: str, **data: Any) -> None:
        self.events.append(TraceEvent(stage=stage, message=message, data=data))
        if self._logger is not None:
            self._logger.log(self._level, "[%s] %s", stage, message)

    def stage(self, stage: str) -> list[TraceEvent]:
        return [e for e in self.events if e.stage == stage]

    def __len__(self) -> int:
        return len(self.events)


def ensure_trace(trace: AnalysisTrace | None) -> AnalysisTrace:
    """Return ``trace`` or a silent throwaway one."""
    return trace if trace is not None else AnalysisTrace()
