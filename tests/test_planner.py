#!/usr/bin/env python3
"""
Unit tests for the reachability planner
"""

import threading
import time
import unittest
import sys
from pathlib import Path
from unittest.mock import Mock

import numpy as np

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from graspreach.control.ik_gateway import AnalyticIKGateway, IKGatewayError
from graspreach.core.logging_utils import get_execution_summary, set_request_context
from graspreach.core.planner import ReachabilityPlanner, SelectionStats
from graspreach.core.planner_config import ConfigurationError, PlannerConfig, Workspace
from graspreach.core.time_budget import PlanningCancelled, PlanningTimeout
from graspreach.geometry.grasp_frames import GraspCandidate
from graspreach.vision.collision_filter import CollisionFilter

JOINTS = [0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7]
EMPTY_CLOUD = np.zeros((0, 3))


def make_candidate(center=(0.5, 0.0, 0.3), width=0.05, approach=(-1.0, 0.0, 0.0), axis=(0.0, 1.0, 0.0)):
    return GraspCandidate(center=center, surface_center=center,
                          approach=approach, axis=axis, width=width)


def make_config(**overrides):
    params = dict(
        workspace=Workspace(0.0, 1.0, -1.0, 1.0, 0.0, 1.0),
        min_aperture=0.02,
        max_aperture=0.08,
    )
    params.update(overrides)
    return PlannerConfig(**params)


def always_reachable():
    return Mock(side_effect=lambda position, quat: list(JOINTS))


class TestSelectionScenarios(unittest.TestCase):
    """End-to-end selection scenarios on a single candidate."""

    def setUp(self):
        """Set up test fixtures."""
        self.solver = always_reachable()
        self.collision = Mock(wraps=CollisionFilter())

    def make_planner(self, **overrides):
        return ReachabilityPlanner(make_config(**overrides), AnalyticIKGateway(self.solver), self.collision)

    def test_reachable_grasp_yields_both_orientations(self):
        """Test a reachable, collision-free candidate yields two hand poses."""
        grasps = self.make_planner().select_feasible_grasps([make_candidate()], EMPTY_CLOUD)

        self.assertEqual(len(grasps), 2)
        np.testing.assert_allclose(grasps[0].pose.position, grasps[1].pose.position)
        np.testing.assert_allclose(grasps[0].pose.position, [0.42, 0.0, 0.3])
        self.assertFalse(np.allclose(grasps[0].pose.orientation, grasps[1].pose.orientation))
        self.assertEqual([g.orientation_index for g in grasps], [0, 1])
        for grasp in grasps:
            self.assertEqual(grasp.candidate_index, 0)
            self.assertEqual(grasp.joint_positions, tuple(JOINTS))
            self.assertAlmostEqual(grasp.width, 0.05)
            self.assertEqual(grasp.score, 0.0)
            self.assertEqual(grasp.pose.frame_id, "base")

    def test_aperture_too_wide(self):
        """Test a candidate wider than the hand opens is dropped before IK."""
        result = self.make_planner().plan([make_candidate(width=0.09)], EMPTY_CLOUD)
        self.assertEqual(len(result), 0)
        self.assertEqual(result.stats.aperture_rejected, 1)
        self.solver.assert_not_called()

    def test_unreachable_candidate_skips_collision(self):
        """Test IK failures never trigger collision checks."""
        solver = Mock(return_value=None)
        planner = ReachabilityPlanner(make_config(), AnalyticIKGateway(solver), self.collision)
        result = planner.plan([make_candidate()], np.array([[0.4, 0.0, 0.3]]))
        self.assertEqual(len(result), 0)
        self.assertEqual(solver.call_count, 2)
        self.collision.is_free.assert_not_called()
        self.assertEqual(result.stats.ik_failures, 2)

    def test_collision_checked_once_per_variant(self):
        """Test a colliding variant is checked once while IK runs for both orientations."""
        cloud = np.array([[0.40, 0.0, 0.3], [0.39, 0.01, 0.3]])
        result = self.make_planner(max_colliding_points=1).plan([make_candidate()], cloud)
        self.assertEqual(len(result), 0)
        self.assertEqual(self.solver.call_count, 2)
        self.assertEqual(self.collision.is_free.call_count, 1)
        self.assertEqual(result.stats.collision_checks, 1)
        self.assertEqual(result.stats.collisions, 1)

    def test_free_variant_checked_once(self):
        """Test a collision-free result is reused for the second orientation."""
        cloud = np.array([[0.9, 0.9, 0.9]])
        grasps = self.make_planner().select_feasible_grasps([make_candidate()], cloud)
        self.assertEqual(len(grasps), 2)
        self.assertEqual(self.collision.is_free.call_count, 1)

    def test_collision_checked_after_first_reachable_orientation(self):
        """Test the check happens on the first orientation IK accepts."""
        calls = []

        def second_only(position, quat):
            calls.append(quat)
            return list(JOINTS) if len(calls) % 2 == 0 else None

        planner = ReachabilityPlanner(make_config(), AnalyticIKGateway(second_only), self.collision)
        grasps = planner.select_feasible_grasps([make_candidate()], EMPTY_CLOUD)
        self.assertEqual(len(grasps), 1)
        self.assertEqual(grasps[0].orientation_index, 1)
        self.assertEqual(self.collision.is_free.call_count, 1)


class TestPlannerGates(unittest.TestCase):
    """Test cases for workspace and aperture gating."""

    def test_workspace_uses_contact_point(self):
        """Test the workspace gate tests the surface center."""
        solver = always_reachable()
        planner = ReachabilityPlanner(make_config(), AnalyticIKGateway(solver))
        outside = GraspCandidate(center=(0.5, 0.0, 0.3), surface_center=(1.5, 0.0, 0.3),
                                 approach=(-1.0, 0.0, 0.0), axis=(0.0, 1.0, 0.0), width=0.05)
        result = planner.plan([outside], EMPTY_CLOUD)
        self.assertEqual(len(result), 0)
        self.assertEqual(result.stats.outside_workspace, 1)
        solver.assert_not_called()

    def test_boundaries_inclusive(self):
        """Test candidates on the workspace faces and aperture limits pass."""
        planner = ReachabilityPlanner(make_config(), AnalyticIKGateway(always_reachable()))
        candidates = [
            make_candidate(center=(1.0, -1.0, 0.0)),
            make_candidate(width=0.02),
            make_candidate(width=0.08),
        ]
        grasps = planner.select_feasible_grasps(candidates, EMPTY_CLOUD)
        self.assertEqual(len(grasps), 6)

    def test_selected_grasps_respect_gates(self):
        """Test every selected grasp satisfies the workspace and aperture limits."""
        rng = np.random.default_rng(11)
        config = make_config(num_additional_variants=2)
        candidates = [
            make_candidate(center=tuple(rng.uniform(-0.5, 1.5, 3)), width=float(rng.uniform(0.0, 0.1)))
            for _ in range(30)
        ]
        planner = ReachabilityPlanner(config, AnalyticIKGateway(always_reachable()))
        for grasp in planner.select_feasible_grasps(candidates, EMPTY_CLOUD):
            candidate = candidates[grasp.candidate_index]
            self.assertTrue(config.workspace.contains(candidate.surface_center))
            self.assertTrue(config.min_aperture <= grasp.width <= config.max_aperture)

    def test_degenerate_frame_skipped(self):
        """Test a candidate without a usable hand frame is dropped, not fatal."""
        solver = always_reachable()
        planner = ReachabilityPlanner(make_config(), AnalyticIKGateway(solver))
        good = make_candidate()
        parallel = make_candidate(approach=(-1.0, 0.0, 0.0), axis=(1.0, 0.0, 0.0))
        no_approach = make_candidate(approach=(0.0, 0.0, 0.0))

        result = planner.plan([good, parallel, no_approach], EMPTY_CLOUD)

        self.assertEqual(len(result), 2)
        self.assertEqual([g.candidate_index for g in result], [0, 0])
        self.assertEqual(result.stats.degenerate_frames, 2)
        self.assertEqual(result.stats.candidates, 3)
        self.assertEqual(solver.call_count, 2)


class TestPlannerOutput(unittest.TestCase):
    """Test cases for ordering, variants and statistics."""

    def test_variant_expansion(self):
        """Test each variant contributes two poses in variant order."""
        planner = ReachabilityPlanner(make_config(num_additional_variants=2),
                                      AnalyticIKGateway(always_reachable()))
        result = planner.plan([make_candidate()], EMPTY_CLOUD)
        self.assertEqual(len(result), 6)
        self.assertEqual([(g.variant_index, g.orientation_index) for g in result],
                         [(0, 0), (0, 1), (1, 0), (1, 1), (2, 0), (2, 1)])
        self.assertEqual(result.stats.variants, 3)
        self.assertEqual(result.stats.ik_queries, 6)
        self.assertEqual(result.stats.accepted, 6)

    def test_candidate_order_preserved(self):
        """Test output follows input candidate order."""
        planner = ReachabilityPlanner(make_config(), AnalyticIKGateway(always_reachable()))
        candidates = [make_candidate(center=(0.2 + 0.1 * i, 0.0, 0.3)) for i in range(4)]
        grasps = planner.select_feasible_grasps(candidates, EMPTY_CLOUD)
        self.assertEqual([g.candidate_index for g in grasps], [0, 0, 1, 1, 2, 2, 3, 3])

    def test_ik_parameters_passed_through(self):
        """Test attempts and timeout reach the IK gateway unchanged."""
        gateway = AnalyticIKGateway(always_reachable())
        gateway.solve = Mock(wraps=gateway.solve)
        planner = ReachabilityPlanner(make_config(ik_attempts=4, ik_timeout=0.25), gateway)
        planner.plan([make_candidate()], EMPTY_CLOUD)
        for call in gateway.solve.call_args_list:
            self.assertEqual(call[1]["attempts"], 4)
            self.assertEqual(call[1]["timeout"], 0.25)

    def test_concurrent_matches_sequential(self):
        """Test parallel evaluation returns the same grasps in the same order."""
        def half_plane(position, quat):
            return list(JOINTS) if position[1] >= 0.0 else None

        rng = np.random.default_rng(5)
        candidates = [make_candidate(center=tuple(rng.uniform(0.1, 0.9, 3))) for _ in range(12)]
        candidates += [make_candidate(center=(0.5, -0.3, 0.3))]
        cloud = rng.uniform(0.0, 1.0, size=(200, 3))

        sequential = ReachabilityPlanner(make_config(num_additional_variants=2),
                                         AnalyticIKGateway(half_plane)).plan(candidates, cloud)
        concurrent = ReachabilityPlanner(make_config(num_additional_variants=2, n_workers=4),
                                         AnalyticIKGateway(half_plane)).plan(candidates, cloud)

        key = lambda g: (g.candidate_index, g.variant_index, g.orientation_index)
        self.assertEqual([key(g) for g in sequential], [key(g) for g in concurrent])
        for a, b in zip(sequential, concurrent):
            np.testing.assert_allclose(a.pose.position, b.pose.position)
            np.testing.assert_allclose(a.pose.orientation, b.pose.orientation)
        self.assertEqual(sequential.stats.to_dict(), concurrent.stats.to_dict())

    def test_stats_merge(self):
        """Test statistics add up field by field."""
        a = SelectionStats(candidates=1, accepted=2)
        b = SelectionStats(candidates=2, collisions=1)
        self.assertEqual(a.merge(b).to_dict()["candidates"], 3)
        self.assertEqual(a.accepted, 2)
        self.assertEqual(a.collisions, 1)

    def test_invalid_cloud_rejected(self):
        """Test malformed clouds are rejected."""
        planner = ReachabilityPlanner(make_config(), AnalyticIKGateway(always_reachable()))
        with self.assertRaises(ValueError):
            planner.plan([make_candidate()], np.zeros((5, 2)))

    def test_phase_events_recorded(self):
        """Test setup, gating, IK, collision and completion events are emitted."""
        set_request_context("planner-events")
        planner = ReachabilityPlanner(make_config(), AnalyticIKGateway(always_reachable()))
        planner.plan([make_candidate(), make_candidate(width=0.5)], EMPTY_CLOUD)

        phases = get_execution_summary()["phases"]
        for phase in ("setup", "selection", "gating", "ik", "collision", "completed"):
            self.assertIn(phase, phases)
        metrics = get_execution_summary()["metrics"]
        self.assertEqual(metrics["aperture_rejected"]["last"], 1)
        self.assertEqual(metrics["ik_queries"]["last"], 2)


class TestPlannerFailures(unittest.TestCase):
    """Test cases for configuration errors, solver failures and cancellation."""

    def test_invalid_configuration(self):
        """Test bad parameters fail before any candidate is processed."""
        solver = always_reachable()
        with self.assertRaises(ConfigurationError):
            ReachabilityPlanner(make_config(min_aperture=0.1, max_aperture=0.05), AnalyticIKGateway(solver))
        with self.assertRaises(ConfigurationError):
            ReachabilityPlanner(make_config(axis_order=(0, 0, 2)), AnalyticIKGateway(solver))
        solver.assert_not_called()

    def test_gateway_error_aborts(self):
        """Test transport-level solver failures abort the whole call."""
        def broken(position, quat):
            raise ConnectionError("solver offline")

        for workers in (1, 3):
            planner = ReachabilityPlanner(make_config(n_workers=workers), AnalyticIKGateway(broken))
            with self.assertRaises(IKGatewayError):
                planner.plan([make_candidate(), make_candidate()], EMPTY_CLOUD)

    def test_cancel_event(self):
        """Test a set cancel event abandons the call."""
        planner = ReachabilityPlanner(make_config(), AnalyticIKGateway(always_reachable()))
        cancel = threading.Event()
        cancel.set()
        with self.assertRaises(PlanningCancelled):
            planner.plan([make_candidate()], EMPTY_CLOUD, cancel_event=cancel)

    def test_time_budget(self):
        """Test an exhausted budget abandons the call between candidates."""
        def slow(position, quat):
            time.sleep(0.05)
            return list(JOINTS)

        planner = ReachabilityPlanner(make_config(time_budget_s=0.02), AnalyticIKGateway(slow))
        with self.assertRaises(PlanningTimeout):
            planner.plan([make_candidate() for _ in range(3)], EMPTY_CLOUD)


if __name__ == '__main__':
    unittest.main()
