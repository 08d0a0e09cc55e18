"""
Point cloud collision filter for candidate hand poses.

The hand and fingers are approximated by a capped cylinder aligned with the
grasp approach. A pose is rejected when more than a tolerated number of
cloud points fall inside that cylinder.
"""

import logging
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

from ..geometry.grasp_frames import HandPose

logger = logging.getLogger(__name__)

# Hand envelope defaults (meters)
CYLINDER_RADIUS = 0.06
CYLINDER_LENGTH = 0.10
SURFACE_OFFSET = 0.005  # compensates invalid sensor measurements on object sides

# Points tested per vectorized step between early-exit checks
CHUNK_SIZE = 4096


@dataclass
class CylinderGeometry:
    """Capped cylinder proxy for the hand envelope."""
    radius: float = CYLINDER_RADIUS
    length: float = CYLINDER_LENGTH
    offset: float = SURFACE_OFFSET

    def validate(self):
        if self.radius <= 0.0:
            raise ValueError(f"Cylinder radius must be positive, got {self.radius}")
        if self.length <= 0.0:
            raise ValueError(f"Cylinder length must be positive, got {self.length}")
        if self.offset < 0.0:
            raise ValueError(f"Cylinder offset must be non-negative, got {self.offset}")


class CollisionFilter:
    """
    Counts cloud points inside the hand cylinder of a pose.

    The cylinder's near cap sits at the pose position and its far cap
    `length` behind it along -approach. Points are only counted on the
    swept side of the plane through the cylinder midpoint (shifted by
    `offset`), so points just behind the grasped surface do not count.
    """

    def __init__(
        self,
        max_colliding_points: int = 0,
        geometry: CylinderGeometry = None,
        chunk_size: int = CHUNK_SIZE,
    ):
        self.geometry = geometry or CylinderGeometry()
        self.geometry.validate()
        if max_colliding_points < 0:
            raise ValueError(
                f"max_colliding_points must be non-negative, got {max_colliding_points}"
            )
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.max_colliding_points = int(max_colliding_points)
        self.chunk_size = int(chunk_size)

    def colliding_mask(
        self,
        position: Union[Sequence[float], np.ndarray],
        approach: Union[Sequence[float], np.ndarray],
        points: np.ndarray,
    ) -> np.ndarray:
        """
        Boolean mask of the points lying inside the hand cylinder.

        Args:
            position: Hand position (near cylinder cap)
            approach: Unit approach vector of the grasp variant
            points: (N, 3) array

        Returns:
            (N,) boolean array
        """
        approach = np.asarray(approach, dtype=float)
        c0 = np.asarray(position, dtype=float)
        c1 = c0 - self.geometry.length * approach
        c = c0 + 0.5 * (c1 - c0)

        # plane through the cylinder centroid, normal opposed to the approach
        n = -1.0 * approach
        s = c - self.geometry.offset * approach

        inside_plane = (points - s) @ n < 0.0
        between_caps = ((points - c0) @ approach < 0.0) & ((points - c1) @ approach > 0.0)

        rel = points - c
        radial = rel - np.outer(rel @ approach, approach)
        within_radius = np.einsum("ij,ij->i", radial, radial) <= self.geometry.radius ** 2

        return inside_plane & between_caps & within_radius

    def count_colliding(self, pose: HandPose, approach: np.ndarray, cloud: np.ndarray) -> int:
        """Number of cloud points inside the cylinder (full scan, no early exit)."""
        if len(cloud) == 0:
            return 0
        return int(np.count_nonzero(self.colliding_mask(pose.position, approach, cloud)))

    def is_free(self, pose: HandPose, approach: np.ndarray, cloud: np.ndarray) -> bool:
        """
        Check whether a hand pose is collision-free with respect to a cloud.

        Args:
            pose: Candidate hand pose
            approach: Approach vector of the grasp variant
            cloud: (N, 3) point array

        Returns:
            False as soon as more than max_colliding_points points collide
        """
        colliding = 0
        for start in range(0, len(cloud), self.chunk_size):
            chunk = cloud[start:start + self.chunk_size]
            colliding += int(np.count_nonzero(
                self.colliding_mask(pose.position, approach, chunk)
            ))
            if colliding > self.max_colliding_points:
                logger.debug(
                    f"Pose at {np.round(pose.position, 3)} collides: {colliding} points "
                    f"after scanning {start + len(chunk)}/{len(cloud)}"
                )
                return False
        return True
