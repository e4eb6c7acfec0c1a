"""
Progress Reporting

Wraps an optional ``callback(fraction)`` so long-running builds report a
monotonic value between 0 and 1 at bounded intervals.
"""

from __future__ import annotations

from typing import Callable, Optional

ProgressCallback = Callable[[float], None]


class ProgressReporter:
    """
    Monotonic, throttled progress forwarder.

    Values are clamped to [0, 1], mapped into ``[start, end]`` of the parent
    range, never decrease, and are only forwarded when they advance by at
    least ``min_step`` (the final value is always forwarded).

    Example:
        >>> seen = []
        >>> progress = ProgressReporter(seen.append)
        >>> triangulation = progress.child(0.0, 0.7)
        >>> triangulation(0.5)
        >>> seen
        [0.35]
    """

    def __init__(
        self,
        callback: Optional[ProgressCallback] = None,
        start: float = 0.0,
        end: float = 1.0,
        min_step: float = 0.01,
        parent: Optional[ProgressReporter] = None,
    ):
        self.callback = callback
        self.start = start
        self.end = end
        self.min_step = min_step
        self.parent = parent
        self._last = -1.0

    @property
    def enabled(self) -> bool:
        if self.parent is not None:
            return self.parent.enabled
        return self.callback is not None

    def __call__(self, fraction: float) -> None:
        fraction = min(1.0, max(0.0, float(fraction)))
        value = self.start + (self.end - self.start) * fraction

        if self.parent is not None:
            self.parent(value)
            return

        if self.callback is None or value <= self._last:
            return
        if value - self._last < self.min_step and value < 1.0:
            return

        self._last = value
        self.callback(value)

    def child(self, start: float, end: float) -> ProgressReporter:
        """Reporter for a sub-stage covering ``[start, end]`` of this range."""
        return ProgressReporter(start=start, end=end, parent=self)

    def finish(self) -> None:
        self(1.0)


def as_reporter(on_progress) -> ProgressReporter:
    """Accept a callback, an existing reporter, or None."""
    if isinstance(on_progress, ProgressReporter):
        return on_progress
    return ProgressReporter(on_progress)
