"""
Reachability planner that selects executable grasps.

For each grasp candidate the planner checks the workspace and aperture
limits, expands the candidate into perturbed approach variants and two
hand orientations per variant, and keeps the poses for which the IK
solver finds a joint configuration and the hand does not collide with the
point cloud.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from ..control.ik_gateway import IKGateway, IKGatewayError
from ..geometry.grasp_frames import (
    GraspCandidate,
    GraspVariant,
    HandPose,
    build_pose,
    rotate_variant,
    synthesize_orientations,
    theta_samples,
)
from ..vision.collision_filter import CollisionFilter
from ..vision.point_cloud import as_point_array
from .logging_utils import EventPhase, log_error, log_event, log_success
from .planner_config import PlannerConfig
from .time_budget import PlanningCancelled, TimeBudget, TimeoutException

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.0


@dataclass(frozen=True, eq=False)
class ScoredGrasp:
    """
    Grasp accepted by the planner.

    `score` is left at a neutral value for downstream ranking.
    """
    candidate_index: int
    pose: HandPose
    approach: np.ndarray
    width: float
    joint_positions: Tuple[float, ...]
    score: float = NEUTRAL_SCORE
    variant_index: int = 0
    orientation_index: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate_index": self.candidate_index,
            "pose": self.pose.to_dict(),
            "approach": [float(v) for v in self.approach],
            "width": float(self.width),
            "joint_positions": list(self.joint_positions),
            "score": float(self.score),
            "variant_index": self.variant_index,
            "orientation_index": self.orientation_index,
        }


@dataclass
class SelectionStats:
    """Counters of one selection call."""
    candidates: int = 0
    outside_workspace: int = 0
    aperture_rejected: int = 0
    degenerate_frames: int = 0
    variants: int = 0
    ik_queries: int = 0
    ik_failures: int = 0
    collision_checks: int = 0
    collisions: int = 0
    accepted: int = 0

    def merge(self, other: "SelectionStats") -> "SelectionStats":
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))
        return self

    def to_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class PlanningResult:
    """Selected grasps in candidate -> variant -> orientation order."""
    grasps: List[ScoredGrasp] = field(default_factory=list)
    stats: SelectionStats = field(default_factory=SelectionStats)
    elapsed: float = 0.0

    def __len__(self) -> int:
        return len(self.grasps)

    def __iter__(self) -> Iterator[ScoredGrasp]:
        return iter(self.grasps)


class ReachabilityPlanner:
    """
    Filters grasp candidates down to reachable, collision-free hand poses.

    The planner holds no per-call state: the point cloud is passed to each
    call, and collision results are memoized per variant only.
    """

    def __init__(
        self,
        config: PlannerConfig,
        ik_gateway: IKGateway,
        collision_filter: Optional[CollisionFilter] = None,
    ):
        """
        Initialize the planner.

        Args:
            config: Planning parameters (validated here)
            ik_gateway: Inverse kinematics solver interface
            collision_filter: Hand collision test (built from config if None)

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = config.validate()
        self.ik_gateway = ik_gateway
        self.collision_filter = collision_filter or CollisionFilter(
            max_colliding_points=config.max_colliding_points,
            geometry=config.cylinder_geometry(),
        )
        self.thetas = theta_samples(config.num_additional_variants, config.theta_half_range_deg)

        log_event(
            EventPhase.SETUP, "Reachability planner initialized",
            variants_per_candidate=len(self.thetas),
            min_aperture=config.min_aperture, max_aperture=config.max_aperture,
            standoff=config.standoff, workers=config.n_workers,
        )

    def _diag(self, message: str):
        if self.config.verbose:
            logger.info(message)
        else:
            logger.debug(message)

    def passes_gates(self, index: int, candidate: GraspCandidate, stats: SelectionStats) -> bool:
        """Workspace and aperture checks that need no geometry or IK work."""
        if not self.config.workspace.contains(candidate.surface_center):
            self._diag(
                f"Grasp {index}: contact point {np.round(candidate.surface_center, 3)} outside workspace"
            )
            stats.outside_workspace += 1
            return False

        if not self.config.min_aperture <= candidate.width <= self.config.max_aperture:
            self._diag(
                f"Grasp {index}: aperture {candidate.width:.4f} outside "
                f"[{self.config.min_aperture:.4f}, {self.config.max_aperture:.4f}]"
            )
            stats.aperture_rejected += 1
            return False

        return True

    def evaluate_candidate(
        self,
        index: int,
        candidate: GraspCandidate,
        cloud: np.ndarray,
    ) -> Tuple[List[ScoredGrasp], SelectionStats]:
        """
        Expand one candidate and keep its feasible hand poses.

        Returns:
            (grasps, stats) for this candidate only
        """
        stats = SelectionStats(candidates=1)
        selected: List[ScoredGrasp] = []

        if not self.passes_gates(index, candidate, stats):
            return selected, stats

        try:
            nominal = GraspVariant.from_candidate(candidate)
        except ValueError as e:
            self._diag(f"Grasp {index}: degenerate hand frame ({e})")
            stats.degenerate_frames += 1
            return selected, stats

        for j, theta in enumerate(self.thetas):
            variant = rotate_variant(nominal, theta)
            stats.variants += 1

            # collision status of this variant: None until first computed
            collision_free = None
            for k, quat in enumerate(synthesize_orientations(variant, self.config.axis_order)):
                pose = build_pose(variant, quat, self.config.standoff, self.config.frame_id)

                stats.ik_queries += 1
                t0 = time.perf_counter()
                ik_result = self.ik_gateway.solve(
                    pose,
                    attempts=self.config.ik_attempts,
                    timeout=self.config.ik_timeout,
                )
                self._diag(f"Grasp {index}, approach {j}, orientation {k}: IK runtime {time.perf_counter() - t0:.3f}s")
                if not ik_result.success:
                    self._diag(f"IK failed for grasp {index}, approach {j}, orientation {k}")
                    stats.ik_failures += 1
                    continue

                if collision_free is None:
                    stats.collision_checks += 1
                    t0 = time.perf_counter()
                    collision_free = self.collision_filter.is_free(pose, variant.approach, cloud)
                    self._diag(f"Collision check runtime {time.perf_counter() - t0:.3f}s")
                    if not collision_free:
                        stats.collisions += 1
                if not collision_free:
                    self._diag(f"Grasp {index}, approach {j}, orientation {k} collides with point cloud")
                    continue

                selected.append(ScoredGrasp(
                    candidate_index=index,
                    pose=pose,
                    approach=variant.approach.copy(),
                    width=candidate.width,
                    joint_positions=ik_result.joint_positions,
                    variant_index=j,
                    orientation_index=k,
                ))
                stats.accepted += 1

        return selected, stats

    def plan(
        self,
        candidates: Sequence[GraspCandidate],
        cloud,
        cancel_event: Optional[threading.Event] = None,
    ) -> PlanningResult:
        """
        Select the feasible grasps among a set of candidates.

        Args:
            candidates: Grasp candidates in detector order
            cloud: (N, 3) point cloud used for collision checks
            cancel_event: Set by the caller to abandon the call between candidates

        Returns:
            PlanningResult with grasps in candidate -> variant -> orientation order

        Raises:
            IKGatewayError: If the IK solver is unusable; no partial result
            PlanningTimeout: If the configured time budget runs out
            PlanningCancelled: If cancel_event is set
        """
        cloud = as_point_array(cloud)
        budget = TimeBudget("grasp_selection", self.config.time_budget_s, cancel_event)

        log_event(
            EventPhase.SELECTION, "Selecting feasible grasps",
            candidates=len(candidates), cloud_points=len(cloud),
        )

        try:
            with budget.phase():
                if self.config.n_workers > 1 and len(candidates) > 1:
                    per_candidate = self._evaluate_concurrently(candidates, cloud, budget)
                else:
                    per_candidate = []
                    for i, candidate in enumerate(candidates):
                        budget.check()
                        per_candidate.append(self.evaluate_candidate(i, candidate, cloud))
        except IKGatewayError as e:
            log_error(EventPhase.FAILED, f"IK gateway failure, selection aborted: {e}")
            raise
        except (TimeoutException, PlanningCancelled) as e:
            log_error(EventPhase.FAILED, f"Grasp selection abandoned: {e}")
            raise

        result = PlanningResult(elapsed=budget.stats.elapsed)
        for grasps, stats in per_candidate:
            result.grasps.extend(grasps)
            result.stats.merge(stats)

        self._log_phase_totals(result.stats)
        log_success(
            EventPhase.COMPLETED, "Grasp selection complete",
            elapsed=round(result.elapsed, 3), **result.stats.to_dict(),
        )
        return result

    def _log_phase_totals(self, stats: SelectionStats):
        log_event(
            EventPhase.GATING, "Candidate gates applied", logging.DEBUG,
            outside_workspace=stats.outside_workspace,
            aperture_rejected=stats.aperture_rejected,
            degenerate_frames=stats.degenerate_frames,
        )
        log_event(
            EventPhase.IK, "IK queries answered", logging.DEBUG,
            ik_queries=stats.ik_queries, ik_failures=stats.ik_failures,
        )
        log_event(
            EventPhase.COLLISION, "Collision checks done", logging.DEBUG,
            collision_checks=stats.collision_checks, collisions=stats.collisions,
        )

    def _evaluate_concurrently(self, candidates, cloud, budget: TimeBudget):
        """Evaluate candidates on a thread pool, reassembling results by index."""

        def task(index, candidate):
            budget.check()
            return self.evaluate_candidate(index, candidate, cloud)

        with ThreadPoolExecutor(max_workers=self.config.n_workers) as executor:
            futures = [executor.submit(task, i, c) for i, c in enumerate(candidates)]
            try:
                return [future.result() for future in futures]
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

    def select_feasible_grasps(self, candidates: Sequence[GraspCandidate], cloud) -> List[ScoredGrasp]:
        """Convenience wrapper returning only the selected grasps."""
        return self.plan(candidates, cloud).grasps
