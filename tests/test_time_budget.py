#!/usr/bin/env python3
"""
Unit tests for time budgets
"""

import threading
import time
import unittest
import sys
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from graspreach.core.time_budget import (
    PlanningCancelled, PlanningTimeout, TimeBudget, TimeoutException
)


class TestTimeBudget(unittest.TestCase):
    """Test cases for TimeBudget."""

    def test_phase_within_budget(self):
        """Test phase completing within budget."""
        budget = TimeBudget("TEST_PHASE", 1.0)
        with budget.phase() as stats:
            budget.check()

        self.assertTrue(stats.completed)
        self.assertFalse(stats.aborted)
        self.assertLess(stats.elapsed, 1.0)
        self.assertIsNotNone(stats.end_time)

    def test_unlimited_budget(self):
        """Test a budget of None never expires."""
        budget = TimeBudget("TEST_PHASE")
        budget.check()
        self.assertIsNone(budget.remaining)

    def test_budget_exceeded(self):
        """Test check raises once the budget is spent."""
        budget = TimeBudget("TEST_PHASE", 0.05)
        with self.assertRaises(PlanningTimeout) as context:
            with budget.phase():
                time.sleep(0.1)
                budget.check()

        exception = context.exception
        self.assertIsInstance(exception, TimeoutException)
        self.assertEqual(exception.phase, "TEST_PHASE")
        self.assertEqual(exception.budget, 0.05)
        self.assertGreater(exception.elapsed, 0.05)
        self.assertTrue(budget.stats.aborted)
        self.assertEqual(budget.stats.abort_reason, "PlanningTimeout")
        self.assertEqual(budget.remaining, 0.0)

    def test_cancel_event(self):
        """Test a set event cancels the phase."""
        cancel = threading.Event()
        budget = TimeBudget("TEST_PHASE", 10.0, cancel_event=cancel)
        budget.check()
        cancel.set()
        with self.assertRaises(PlanningCancelled):
            budget.check()

    def test_other_exception_recorded(self):
        """Test unrelated exceptions abort the phase."""
        budget = TimeBudget("TEST_PHASE")
        with self.assertRaises(KeyError):
            with budget.phase():
                raise KeyError("boom")
        self.assertTrue(budget.stats.aborted)
        self.assertIn("boom", budget.stats.abort_reason)

    def test_statistics_dict(self):
        """Test phase statistics serialize."""
        budget = TimeBudget("TEST_PHASE", 2.0)
        with budget.phase():
            pass
        data = budget.stats.to_dict()
        self.assertEqual(data["phase"], "TEST_PHASE")
        self.assertEqual(data["budget"], 2.0)
        self.assertTrue(data["completed"])


if __name__ == '__main__':
    unittest.main()
