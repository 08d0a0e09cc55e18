"""graspreach - reachability filtering of grasp candidates for robot arms."""

__version__ = "0.1.0"

from .core.planner import PlanningResult, ReachabilityPlanner, ScoredGrasp, SelectionStats
from .core.planner_config import ConfigurationError, PlannerConfig, Workspace
from .control.ik_gateway import AnalyticIKGateway, IKGateway, IKGatewayError, IKResult
from .geometry.grasp_frames import GraspCandidate, HandPose
from .vision.collision_filter import CollisionFilter

__all__ = [
    "__version__",
    "ReachabilityPlanner",
    "PlanningResult",
    "ScoredGrasp",
    "SelectionStats",
    "PlannerConfig",
    "Workspace",
    "ConfigurationError",
    "IKGateway",
    "IKGatewayError",
    "IKResult",
    "AnalyticIKGateway",
    "GraspCandidate",
    "HandPose",
    "CollisionFilter",
]
