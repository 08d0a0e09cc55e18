"""Point cloud handling and hand collision checks."""

from .collision_filter import CollisionFilter, CylinderGeometry
from .point_cloud import as_point_array, load_point_cloud

__all__ = [
    'CollisionFilter',
    'CylinderGeometry',
    'as_point_array',
    'load_point_cloud',
]
