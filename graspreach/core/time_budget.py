"""
Time budgets for grasp selection calls.

Budgets are enforced cooperatively: the planner calls `check()` between
candidates, so an exhausted budget abandons the call at a candidate
boundary and never mid-way through an IK query.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class TimeoutException(Exception):
    """Exception raised when a time budget is exceeded."""

    def __init__(self, phase: str, budget: float, elapsed: float, message: str = None):
        self.phase = phase
        self.budget = budget
        self.elapsed = elapsed
        self.message = message or f"Phase '{phase}' exceeded time budget"
        super().__init__(self.format_message())

    def format_message(self) -> str:
        return (
            f"{self.message}: budget {self.budget:.2f}s, "
            f"elapsed {self.elapsed:.2f}s "
            f"(exceeded by {self.elapsed - self.budget:.2f}s)"
        )


class PlanningTimeout(TimeoutException):
    """A grasp selection call ran out of its time budget."""


class PlanningCancelled(Exception):
    """A grasp selection call was abandoned by its caller."""


@dataclass
class PhaseStatistics:
    """Statistics for a single phase execution."""
    phase: str
    start_time: datetime
    end_time: Optional[datetime] = None
    budget: Optional[float] = None
    elapsed: float = 0.0
    completed: bool = False
    aborted: bool = False
    abort_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "budget": self.budget,
            "elapsed": self.elapsed,
            "completed": self.completed,
            "aborted": self.aborted,
            "abort_reason": self.abort_reason,
        }


class TimeBudget:
    """
    Wall-clock budget for one phase, with an optional cancellation event.

    Example:
        budget = TimeBudget("SELECTION", 2.0)
        with budget.phase():
            for candidate in candidates:
                budget.check()
                ...
    """

    def __init__(
        self,
        name: str,
        budget: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Args:
            name: Phase name used in messages
            budget: Time budget in seconds, None for unlimited
            cancel_event: Event set by the caller to abandon the phase
        """
        self.name = name
        self.budget = budget
        self.cancel_event = cancel_event
        self._start = time.monotonic()
        self.stats = PhaseStatistics(phase=name, start_time=datetime.now(), budget=budget)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._start

    @property
    def remaining(self) -> Optional[float]:
        if self.budget is None:
            return None
        return max(0.0, self.budget - self.elapsed)

    def check(self):
        """
        Raise if the phase was cancelled or ran out of time.

        Raises:
            PlanningCancelled: If the cancel event is set
            PlanningTimeout: If the budget is exhausted
        """
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise PlanningCancelled(f"Phase '{self.name}' cancelled after {self.elapsed:.2f}s")
        if self.budget is not None:
            elapsed = self.elapsed
            if elapsed > self.budget:
                raise PlanningTimeout(self.name, self.budget, elapsed)

    @contextmanager
    def phase(self):
        """Time the enclosed block and record how it ended."""
        self._start = time.monotonic()
        self.stats = PhaseStatistics(phase=self.name, start_time=datetime.now(), budget=self.budget)
        try:
            yield self.stats
            self.stats.completed = True
        except (TimeoutException, PlanningCancelled) as e:
            self.stats.aborted = True
            self.stats.abort_reason = type(e).__name__
            raise
        except Exception as e:
            self.stats.aborted = True
            self.stats.abort_reason = f"Exception: {e}"
            raise
        finally:
            self.stats.end_time = datetime.now()
            self.stats.elapsed = self.elapsed
            if self.stats.completed:
                if self.budget:
                    logger.debug(
                        f"Phase '{self.name}' completed in {self.stats.elapsed:.3f}s "
                        f"({(self.stats.elapsed / self.budget) * 100:.0f}% of budget)"
                    )
            else:
                logger.warning(
                    f"Phase '{self.name}' aborted after {self.stats.elapsed:.3f}s - "
                    f"Reason: {self.stats.abort_reason}"
                )
