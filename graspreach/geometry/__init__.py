"""Grasp frame geometry: variants, hand orientations and poses."""

from .grasp_frames import (
    GraspCandidate,
    GraspVariant,
    HandPose,
    build_pose,
    rotate_variant,
    synthesize_orientations,
    theta_samples,
)

__all__ = [
    'GraspCandidate',
    'GraspVariant',
    'HandPose',
    'theta_samples',
    'rotate_variant',
    'synthesize_orientations',
    'build_pose',
]
