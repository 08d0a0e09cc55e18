"""
Numeric IK gateway backed by PyBullet.

Runs damped least-squares IK on a URDF model loaded into a headless PyBullet
client and accepts a solution only after checking it with forward
kinematics, since calculateInverseKinematics always returns a configuration
even for unreachable targets.
"""

import logging
import math
import threading
import time
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pybullet as p
import pybullet_data

from .ik_gateway import IKGateway, IKGatewayError

logger = logging.getLogger(__name__)

# IK configuration constants
IK_MAX_ITERS = 150  # Maximum iterations per solver call
IK_REFINE_STEPS = 8  # Solver calls chained from the previous solution
IK_CONVERGENCE_THRESHOLD = 1e-4  # Solver residual threshold
IK_DAMPING_DEFAULT = 0.01  # Joint damping for stability
POSITION_TOLERANCE = 0.005  # meters
ORIENTATION_TOLERANCE = 0.05  # radians
JOINT_LIMIT_SLACK = 1e-3  # radians


def quaternion_angle(q1: Sequence[float], q2: Sequence[float]) -> float:
    """Rotation angle between two unit quaternions (radians)."""
    dot = abs(float(np.dot(q1, q2)))
    return 2.0 * math.acos(min(1.0, dot))


class PyBulletIKGateway(IKGateway):
    """
    Numeric IK on a PyBullet robot model.

    `attempts` maps to restarts: the first attempt seeds the solver at the
    rest pose, later ones at random configurations within the joint limits.
    `timeout` bounds the wall time spent on restarts.
    """

    def __init__(
        self,
        urdf_path: str = "kuka_iiwa/model.urdf",
        ee_link: Union[int, str, None] = None,
        base_position: Tuple[float, float, float] = (0.0, 0.0, 0.0),
        base_orientation: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0),
        rest_pose: Optional[Sequence[float]] = None,
        max_iterations: int = IK_MAX_ITERS,
        refine_steps: int = IK_REFINE_STEPS,
        residual_threshold: float = IK_CONVERGENCE_THRESHOLD,
        position_tolerance: float = POSITION_TOLERANCE,
        orientation_tolerance: float = ORIENTATION_TOLERANCE,
        default_attempts: int = 1,
        seed: int = 0,
        first_joint_index: int = 0,
        last_joint_index: Optional[int] = None,
    ):
        """
        Initialize the gateway and load the robot model.

        Args:
            urdf_path: URDF file, absolute or relative to pybullet_data
            ee_link: End-effector link index or name (default: last link)
            base_position: Robot base position in the planning frame
            base_orientation: Robot base quaternion (x, y, z, w)
            rest_pose: Seed configuration for the first attempt
            max_iterations: Iterations per solver call
            refine_steps: Solver calls chained from the previous solution
            residual_threshold: Solver residual threshold
            position_tolerance: Accepted FK position error (meters)
            orientation_tolerance: Accepted FK orientation error (radians)
            default_attempts: Restarts used when a query passes no attempts
            seed: Random seed for restart configurations
            first_joint_index: First reported joint
            last_joint_index: Last reported joint (inclusive)

        Raises:
            IKGatewayError: If PyBullet cannot connect or load the model
        """
        super().__init__(first_joint_index, last_joint_index)
        self.max_iterations = max_iterations
        self.refine_steps = max(1, int(refine_steps))
        self.residual_threshold = residual_threshold
        self.position_tolerance = position_tolerance
        self.orientation_tolerance = orientation_tolerance
        self.default_attempts = max(1, int(default_attempts))
        self._rng = np.random.default_rng(seed)
        self._lock = threading.Lock()

        try:
            self.client_id = p.connect(p.DIRECT)
            if self.client_id < 0:
                raise IKGatewayError("PyBullet connection failed")
            p.setAdditionalSearchPath(pybullet_data.getDataPath(), physicsClientId=self.client_id)
            self.robot_id = p.loadURDF(
                urdf_path,
                basePosition=base_position,
                baseOrientation=base_orientation,
                useFixedBase=True,
                physicsClientId=self.client_id,
            )
        except p.error as e:
            self.close()
            raise IKGatewayError(f"Failed to load robot model '{urdf_path}': {e}") from e

        try:
            self._inspect_model(urdf_path, ee_link, rest_pose)
        except (IKGatewayError, ValueError):
            self.close()
            raise

        logger.info(
            f"PyBullet IK gateway ready: {urdf_path} with {self.dof} joints, "
            f"ee_link={self.ee_link}, max_iters={max_iterations}"
        )

    def _inspect_model(self, urdf_path, ee_link, rest_pose):
        """Collect movable joints and limits, resolve the end-effector link."""
        self.joint_indices: List[int] = []
        self.lower_limits: List[float] = []
        self.upper_limits: List[float] = []
        link_names = {}
        for j in range(p.getNumJoints(self.robot_id, physicsClientId=self.client_id)):
            info = p.getJointInfo(self.robot_id, j, physicsClientId=self.client_id)
            link_names[info[12].decode("utf-8")] = j
            if info[2] == p.JOINT_FIXED:
                continue
            lower, upper = float(info[8]), float(info[9])
            if lower >= upper:
                # unlimited joint
                lower, upper = -math.pi, math.pi
            self.joint_indices.append(j)
            self.lower_limits.append(lower)
            self.upper_limits.append(upper)

        if not self.joint_indices:
            raise IKGatewayError(f"Robot model '{urdf_path}' has no movable joints")

        if ee_link is None:
            self.ee_link = max(link_names.values())
        elif isinstance(ee_link, str):
            if ee_link not in link_names:
                raise IKGatewayError(f"Link '{ee_link}' not found in '{urdf_path}'")
            self.ee_link = link_names[ee_link]
        else:
            self.ee_link = int(ee_link)

        self.joint_ranges = [u - l for l, u in zip(self.lower_limits, self.upper_limits)]
        if rest_pose is None:
            rest_pose = [(l + u) / 2.0 for l, u in zip(self.lower_limits, self.upper_limits)]
        if len(rest_pose) != self.dof:
            raise ValueError(f"rest_pose has {len(rest_pose)} values but robot has {self.dof} joints")
        self.rest_pose = [float(q) for q in rest_pose]

    @property
    def dof(self) -> int:
        return len(self.joint_indices)

    def _set_joints(self, positions: Sequence[float]):
        for joint_idx, q in zip(self.joint_indices, positions):
            p.resetJointState(self.robot_id, joint_idx, q, physicsClientId=self.client_id)

    def forward_kinematics(self, positions: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
        """End-effector position and quaternion for a joint configuration."""
        with self._lock:
            return self._forward_kinematics(positions)

    def _forward_kinematics(self, positions):
        self._set_joints(positions)
        state = p.getLinkState(
            self.robot_id, self.ee_link,
            computeForwardKinematics=True,
            physicsClientId=self.client_id,
        )
        return np.array(state[4]), np.array(state[5])

    def _within_limits(self, positions: Sequence[float]) -> bool:
        return all(
            l - JOINT_LIMIT_SLACK <= q <= u + JOINT_LIMIT_SLACK
            for q, l, u in zip(positions, self.lower_limits, self.upper_limits)
        )

    def _verify(self, positions, target_pos, target_orn) -> bool:
        achieved_pos, achieved_orn = self._forward_kinematics(positions)
        pos_error = float(np.linalg.norm(achieved_pos - target_pos))
        orn_error = quaternion_angle(achieved_orn, target_orn)
        if pos_error <= self.position_tolerance and orn_error <= self.orientation_tolerance:
            logger.debug(f"IK solution verified: pos_error={pos_error:.4f}m, orn_error={orn_error:.4f}rad")
            return True
        logger.debug(f"IK solution rejected: pos_error={pos_error:.4f}m, orn_error={orn_error:.4f}rad")
        return False

    def _random_configuration(self) -> List[float]:
        return list(self._rng.uniform(self.lower_limits, self.upper_limits))

    def _run_solver(self, seed_q, target_pos, target_orn) -> List[float]:
        q = list(seed_q)
        for _ in range(self.refine_steps):
            self._set_joints(q)
            solution = p.calculateInverseKinematics(
                self.robot_id,
                self.ee_link,
                target_pos,
                target_orn,
                lowerLimits=self.lower_limits,
                upperLimits=self.upper_limits,
                jointRanges=self.joint_ranges,
                restPoses=self.rest_pose,
                jointDamping=[IK_DAMPING_DEFAULT] * self.dof,
                maxNumIterations=self.max_iterations,
                residualThreshold=self.residual_threshold,
                physicsClientId=self.client_id,
            )
            q = list(solution[:self.dof])
        return q

    def _solve(self, pose, attempts=None, timeout=None):
        attempts = self.default_attempts if attempts is None else max(1, int(attempts))
        deadline = None if timeout is None else time.monotonic() + float(timeout)
        target_pos = np.asarray(pose.position, dtype=float)
        target_orn = np.asarray(pose.orientation, dtype=float)

        with self._lock:
            for attempt in range(attempts):
                if attempt > 0 and deadline is not None and time.monotonic() > deadline:
                    logger.debug(f"IK timeout after {attempt} attempts")
                    break
                seed_q = self.rest_pose if attempt == 0 else self._random_configuration()
                try:
                    q = self._run_solver(seed_q, target_pos, target_orn)
                except p.error as e:
                    raise IKGatewayError(f"PyBullet IK call failed: {e}") from e

                if self._within_limits(q) and self._verify(q, target_pos, target_orn):
                    return q
        return None

    def close(self):
        """Disconnect the PyBullet client."""
        if getattr(self, "client_id", None) is not None:
            try:
                p.disconnect(physicsClientId=self.client_id)
            except p.error as e:
                logger.warning(f"PyBullet disconnect failed: {e}")
            self.client_id = None
