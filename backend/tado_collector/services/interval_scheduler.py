"""
Interval Scheduler
==================

Decides, per category, whether its refresh interval has elapsed.

The poll timer ticks every minute, but tado data doesn't change that fast
and the API is rate limited, so each category has its own interval:

    weather   -> every hour
    rooms     -> every 10 minutes
    heatPump  -> every 10 minutes

A category is due if it has never run, or if now - last_run >= interval.
When it is due, last_run is set to now right away (before the fetch), so a
slow or failing fetch doesn't make it due again on the next tick.
"""

from typing import Mapping, Optional

from tado_collector.models import PollCategory


class IntervalScheduler:
    """Wall-clock interval bookkeeping for the poll categories."""

    def __init__(self, intervals: Mapping[PollCategory, int]):
        """
        Args:
            intervals: Interval per category, in milliseconds
        """
        self._intervals = {PollCategory(k): int(v) for k, v in intervals.items()}
        self._last_run: dict[PollCategory, int] = {}

    @property
    def intervals(self) -> dict[PollCategory, int]:
        return dict(self._intervals)

    @property
    def last_run(self) -> dict[PollCategory, int]:
        return dict(self._last_run)

    def is_due(self, category: PollCategory, now_millis: int) -> bool:
        """
        Check whether a category should be polled now.

        Side effect: returning True records now_millis as the category's
        last run.
        """
        category = PollCategory(category)
        interval = self._intervals[category]
        last: Optional[int] = self._last_run.get(category)
        if last is None or now_millis - last >= interval:
            self._last_run[category] = now_millis
            return True
        return False
