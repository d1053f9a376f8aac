from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from tqdm import tqdm


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """Emitted before a step starts. ``step_index`` is 0-based."""

    step_name: str
    step_index: int
    total_steps: int

    @property
    def percent(self) -> int:
        if self.total_steps <= 0:
            return 0
        return int(100 * self.step_index / self.total_steps)


ProgressSink = Callable[[ProgressEvent], None]


class RecordingProgressSink:
    """Keeps every event, e.g. to return them in an API response."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)


class LoggingProgressSink:
    def __init__(self, *, workflow: str, level: int = logging.INFO) -> None:
        self._workflow = workflow
        self._level = level

    def __call__(self, event: ProgressEvent) -> None:
        logger.log(
            self._level,
            "%s: step %d/%d %s",
            self._workflow,
            event.step_index + 1,
            event.total_steps,
            event.step_name,
        )


class TqdmProgressSink:
    """Drives a tqdm bar: one tick per step, description set to the running step."""

    def __init__(self, *, desc: str, bar: Optional[tqdm] = None) -> None:
        self._desc = desc
        self._bar = bar

    def __call__(self, event: ProgressEvent) -> None:
        if self._bar is None:
            self._bar = tqdm(total=event.total_steps, desc=self._desc, unit="step")
        self._bar.n = event.step_index
        self._bar.set_postfix_str(event.step_name)
        self._bar.refresh()

    def finish(self, *, completed: Optional[int] = None) -> None:
        """Close the bar. Without ``completed`` it stays at the last step reported."""

        if self._bar is None:
            return
        if completed is not None:
            self._bar.n = completed
        self._bar.refresh()
        self._bar.close()


def fan_out(*sinks: Optional[ProgressSink]) -> Optional[ProgressSink]:
    """Combine sinks into one; ``None`` entries are skipped."""

    active = [s for s in sinks if s is not None]
    if not active:
        return None
    if len(active) == 1:
        return active[0]

    def _emit(event: ProgressEvent) -> None:
        for sink in active:
            sink(event)

    return _emit
