"""
Grasp frame geometry for reachability planning.

This module turns a grasp candidate into hand poses that can be sent to an
inverse kinematics solver:
- Perturbation of the approach direction about the grasp binormal
- Synthesis of the two antipodal hand orientations of a two-finger hand
- Reordering of frame columns to the hand's axis convention
- Pose construction with a standoff along the approach direction
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation

logger = logging.getLogger(__name__)

# Default bracket for approach perturbations (degrees)
THETA_HALF_RANGE_DEG = 15.0

# Column layout of a grasp frame before reordering
APPROACH_COLUMN = 0
AXIS_COLUMN = 1
BINORMAL_COLUMN = 2


def _as_vector(values: Sequence[float], name: str) -> np.ndarray:
    vec = np.asarray(values, dtype=float).reshape(-1)
    if vec.shape != (3,):
        raise ValueError(f"{name} must have 3 components, got {vec.shape[0]}")
    return vec


def _unit(vec: np.ndarray, name: str) -> np.ndarray:
    norm = np.linalg.norm(vec)
    if norm < 1e-12:
        raise ValueError(f"{name} must be a non-zero vector")
    return vec / norm


@dataclass(frozen=True)
class GraspCandidate:
    """
    Grasp proposed by an upstream grasp detector.

    Vectors are expressed in the planning frame; `width` is the hand aperture
    required to close on the object (meters).
    """
    center: Tuple[float, float, float]
    surface_center: Tuple[float, float, float]
    approach: Tuple[float, float, float]
    axis: Tuple[float, float, float]
    width: float

    def __post_init__(self):
        # Freeze vectors as plain float tuples
        for name in ("center", "surface_center", "approach", "axis"):
            vec = _as_vector(getattr(self, name), name)
            object.__setattr__(self, name, tuple(float(v) for v in vec))
        object.__setattr__(self, "width", float(self.width))

    @property
    def binormal(self) -> np.ndarray:
        """Hand binormal, axis x approach."""
        return np.cross(np.asarray(self.axis), np.asarray(self.approach))

    @classmethod
    def from_dict(cls, data: dict) -> "GraspCandidate":
        """Build a candidate from a grasp message dictionary."""
        width = data.get("width")
        if isinstance(width, dict):
            # std_msgs/Float32 style {"data": value}
            width = width.get("data")
        return cls(
            center=data["center"],
            surface_center=data.get("surface_center", data["center"]),
            approach=data["approach"],
            axis=data["axis"],
            width=width,
        )

    def to_dict(self) -> dict:
        return {
            "center": list(self.center),
            "surface_center": list(self.surface_center),
            "approach": list(self.approach),
            "axis": list(self.axis),
            "width": self.width,
        }


@dataclass(frozen=True, eq=False)
class GraspVariant:
    """
    Orthonormal grasp frame derived from a candidate.

    Invariant: axis, approach and binormal are mutually orthogonal unit
    vectors with binormal = axis x approach.
    """
    center: np.ndarray
    axis: np.ndarray
    approach: np.ndarray
    binormal: np.ndarray
    theta_deg: float = 0.0

    @classmethod
    def from_candidate(cls, candidate: GraspCandidate) -> "GraspVariant":
        """
        Build the nominal frame of a candidate.

        The approach is normalized and the hand axis is projected onto the
        plane orthogonal to it, so slightly skewed detector output still
        yields an orthonormal frame.
        """
        approach = _unit(np.asarray(candidate.approach, dtype=float), "approach")
        axis = np.asarray(candidate.axis, dtype=float)
        axis = _unit(axis - axis.dot(approach) * approach, "axis")
        return cls(
            center=np.asarray(candidate.center, dtype=float),
            axis=axis,
            approach=approach,
            binormal=np.cross(axis, approach),
        )


@dataclass(frozen=True, eq=False)
class HandPose:
    """6-DOF hand pose: position, quaternion (x, y, z, w) and frame label."""
    position: np.ndarray
    orientation: np.ndarray
    frame_id: str = "base"

    def as_tuple(self) -> Tuple[Tuple[float, float, float], Tuple[float, float, float, float]]:
        return (
            tuple(float(v) for v in self.position),
            tuple(float(v) for v in self.orientation),
        )

    def to_dict(self) -> dict:
        return {
            "frame_id": self.frame_id,
            "position": [float(v) for v in self.position],
            "orientation": [float(v) for v in self.orientation],
        }


def theta_samples(num_additional_variants: int,
                  half_range_deg: float = THETA_HALF_RANGE_DEG) -> np.ndarray:
    """
    Perturbation angles (degrees) bracketing the nominal approach.

    Args:
        num_additional_variants: Extra variants on top of the nominal one
        half_range_deg: Samples span [-half_range_deg, +half_range_deg]

    Returns:
        Array of 1 + num_additional_variants angles, or [0.0] when no
        additional variants are requested
    """
    if num_additional_variants > 0:
        return np.linspace(-half_range_deg, half_range_deg, 1 + num_additional_variants)
    return np.array([0.0])


def rotate_variant(variant: GraspVariant, theta_deg: float) -> GraspVariant:
    """
    Rotate the hand axis and the negated approach about the binormal.

    Args:
        variant: Source frame (its binormal is the rotation axis)
        theta_deg: Rotation angle in degrees

    Returns:
        New variant with re-orthonormalized binormal and the same center
    """
    rotation = Rotation.from_rotvec(np.deg2rad(theta_deg) * variant.binormal)
    axis = rotation.apply(variant.axis)
    approach = rotation.apply(-1.0 * variant.approach)
    return GraspVariant(
        center=variant.center.copy(),
        axis=axis,
        approach=approach,
        binormal=np.cross(axis, approach),
        theta_deg=float(theta_deg),
    )


def validate_axis_order(axis_order: Sequence[int]) -> Tuple[int, int, int]:
    """Return axis_order as a tuple, raising ValueError unless it permutes {0, 1, 2}."""
    order = tuple(int(i) for i in axis_order)
    if len(order) != 3 or sorted(order) != [0, 1, 2]:
        raise ValueError(
            f"axis_order must be a permutation of (0, 1, 2), got {tuple(axis_order)}"
        )
    return order


def reorder_hand_axes(frame: np.ndarray, axis_order: Sequence[int]) -> np.ndarray:
    """
    Reorder grasp frame columns to the robot hand's axis convention.

    Column APPROACH_COLUMN of `frame` lands at axis_order[0], AXIS_COLUMN at
    axis_order[1] and BINORMAL_COLUMN at axis_order[2].
    """
    reordered = np.zeros((3, 3))
    reordered[:, axis_order[0]] = frame[:, APPROACH_COLUMN]
    reordered[:, axis_order[1]] = frame[:, AXIS_COLUMN]
    reordered[:, axis_order[2]] = frame[:, BINORMAL_COLUMN]
    return reordered


def frame_to_quaternion(frame: np.ndarray, axis_order: Sequence[int]) -> np.ndarray:
    """
    Convert a reordered hand frame to a unit quaternion (x, y, z, w).

    An odd axis permutation yields a left-handed matrix; the binormal column
    is flipped in that case so the result is a proper rotation.
    """
    matrix = frame.copy()
    if np.linalg.det(matrix) < 0.0:
        matrix[:, axis_order[2]] *= -1.0
    quat = Rotation.from_matrix(matrix).as_quat()
    return quat / np.linalg.norm(quat)


def synthesize_orientations(variant: GraspVariant,
                            axis_order: Sequence[int] = (0, 1, 2)) -> List[np.ndarray]:
    """
    Compute the two antipodal hand orientations of a variant.

    The first orientation points the hand along -approach with the fingers
    closing along the hand axis. The second is the first rotated by 180
    degrees about the approach direction (the hand flipped "upside down"),
    which keeps the contact geometry of a symmetric two-finger hand.

    Returns:
        [quat_a, quat_b]; order matters for collision memoization
    """
    approach = -1.0 * variant.approach

    frame_a = np.zeros((3, 3))
    frame_a[:, APPROACH_COLUMN] = approach
    frame_a[:, AXIS_COLUMN] = variant.axis
    frame_a[:, BINORMAL_COLUMN] = np.cross(approach, variant.axis)

    flip = Rotation.from_rotvec(np.pi * approach / np.linalg.norm(approach))
    frame_b = np.zeros((3, 3))
    frame_b[:, APPROACH_COLUMN] = flip.apply(frame_a[:, APPROACH_COLUMN])
    frame_b[:, AXIS_COLUMN] = flip.apply(frame_a[:, AXIS_COLUMN])
    frame_b[:, BINORMAL_COLUMN] = np.cross(frame_b[:, APPROACH_COLUMN], frame_b[:, AXIS_COLUMN])

    return [
        frame_to_quaternion(reorder_hand_axes(frame_a, axis_order), axis_order),
        frame_to_quaternion(reorder_hand_axes(frame_b, axis_order), axis_order),
    ]


def build_pose(variant: GraspVariant,
               quaternion: np.ndarray,
               standoff: float,
               frame_id: str = "base") -> HandPose:
    """
    Place the hand at the grasp center pushed back by `standoff` along -approach.
    """
    position = variant.center + standoff * (-1.0 * variant.approach)
    return HandPose(
        position=position,
        orientation=np.asarray(quaternion, dtype=float),
        frame_id=frame_id,
    )
