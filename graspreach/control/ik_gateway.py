"""
Inverse kinematics gateway.

The planner only needs to know whether a hand pose is reachable and, if so,
which joint configuration reaches it. Concrete solvers (closed-form,
numeric, remote services) plug in behind the `IKGateway` interface.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from ..geometry.grasp_frames import HandPose

logger = logging.getLogger(__name__)


class IKGatewayError(RuntimeError):
    """The IK solver is unreachable or failed at the transport level."""


@dataclass(frozen=True)
class IKResult:
    """Outcome of one IK query; joint_positions is empty when infeasible."""
    success: bool
    joint_positions: Tuple[float, ...] = field(default_factory=tuple)

    def __post_init__(self):
        positions = tuple(float(q) for q in self.joint_positions) if self.success else ()
        object.__setattr__(self, "joint_positions", positions)

    @classmethod
    def infeasible(cls) -> "IKResult":
        return cls(success=False)


class IKGateway(ABC):
    """
    Request/response interface to an inverse kinematics solver.

    Subclasses implement `_solve`, returning the solver's full joint vector
    or None when the pose has no solution. The gateway cuts the configured
    contiguous joint range out of the full vector.
    """

    def __init__(self, first_joint_index: int = 0, last_joint_index: Optional[int] = None):
        """
        Args:
            first_joint_index: First joint of the solver's vector to report
            last_joint_index: Last joint to report (inclusive), None for all
        """
        if first_joint_index < 0:
            raise ValueError(f"first_joint_index must be non-negative, got {first_joint_index}")
        if last_joint_index is not None and last_joint_index < first_joint_index:
            raise ValueError(
                f"last_joint_index ({last_joint_index}) must not precede "
                f"first_joint_index ({first_joint_index})"
            )
        self.first_joint_index = first_joint_index
        self.last_joint_index = last_joint_index

    def solve(
        self,
        pose: HandPose,
        attempts: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> IKResult:
        """
        Query the solver for a hand pose.

        Args:
            pose: Target hand pose
            attempts: Solver attempt count, passed through unmodified
            timeout: Solver timeout in seconds, passed through unmodified

        Returns:
            IKResult; success=False is a normal "unreachable" outcome

        Raises:
            IKGatewayError: If the solver cannot be used at all
        """
        joints = self._solve(pose, attempts=attempts, timeout=timeout)
        if joints is None:
            return IKResult.infeasible()
        return IKResult(success=True, joint_positions=self.extract_joint_positions(joints))

    def extract_joint_positions(self, joints: Sequence[float]) -> Tuple[float, ...]:
        """Cut the configured joint range out of a full solver joint vector."""
        joints = list(joints)
        last = len(joints) - 1 if self.last_joint_index is None else self.last_joint_index
        if last >= len(joints):
            raise IKGatewayError(
                f"Solver returned {len(joints)} joints, joint range "
                f"[{self.first_joint_index}, {last}] is out of bounds"
            )
        return tuple(float(q) for q in joints[self.first_joint_index:last + 1])

    @abstractmethod
    def _solve(
        self,
        pose: HandPose,
        attempts: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Optional[Sequence[float]]:
        """Return the full joint vector reaching `pose`, or None."""

    def close(self):
        """Release solver resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class AnalyticIKGateway(IKGateway):
    """
    Adapter for closed-form solvers.

    The wrapped function receives the target position (3,) and quaternion
    (x, y, z, w) and returns a joint vector, or None when the pose is out of
    reach. Exceptions raised by the function are treated as solver failures.
    """

    def __init__(
        self,
        solver_fn: Callable[[np.ndarray, np.ndarray], Optional[Sequence[float]]],
        first_joint_index: int = 0,
        last_joint_index: Optional[int] = None,
    ):
        super().__init__(first_joint_index, last_joint_index)
        self.solver_fn = solver_fn

    def _solve(self, pose, attempts=None, timeout=None):
        try:
            joints = self.solver_fn(np.asarray(pose.position), np.asarray(pose.orientation))
        except Exception as e:
            raise IKGatewayError(f"Analytic IK solver failed: {e}") from e
        if joints is None or len(joints) == 0:
            return None
        return joints
