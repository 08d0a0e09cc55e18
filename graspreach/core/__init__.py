"""Core module for graspreach: planner, configuration, logging and I/O."""

from .config import Settings, get_settings
from .planner import PlanningResult, ReachabilityPlanner, ScoredGrasp, SelectionStats
from .planner_config import ConfigurationError, PlannerConfig, Workspace
from .time_budget import PlanningCancelled, PlanningTimeout, TimeBudget

__all__ = [
    "Settings",
    "get_settings",
    "ReachabilityPlanner",
    "PlanningResult",
    "ScoredGrasp",
    "SelectionStats",
    "PlannerConfig",
    "Workspace",
    "ConfigurationError",
    "TimeBudget",
    "PlanningTimeout",
    "PlanningCancelled",
]
