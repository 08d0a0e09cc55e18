"""
Point cloud loading and validation.

Clouds are plain (N, 3) float arrays in the planning frame. Loaders accept
numpy archives, delimited text (x y z per line) and PCD/PLY files through
Open3D.
"""

import logging
from pathlib import Path
from typing import Union

import numpy as np
import open3d as o3d

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = (".xyz", ".txt", ".csv")
OPEN3D_SUFFIXES = (".pcd", ".ply")


def as_point_array(points) -> np.ndarray:
    """
    Validate and convert points to a read-only (N, 3) float array.

    Raises:
        ValueError: If the input cannot be viewed as finite (N, 3) points
    """
    cloud = np.asarray(points, dtype=float)
    if cloud.size == 0:
        cloud = cloud.reshape(0, 3)
    if cloud.ndim != 2 or cloud.shape[1] < 3:
        raise ValueError(f"Point cloud must have shape (N, 3), got {cloud.shape}")
    cloud = np.ascontiguousarray(cloud[:, :3])
    if not np.all(np.isfinite(cloud)):
        raise ValueError("Point cloud contains NaN or infinite coordinates")
    cloud.setflags(write=False)
    return cloud


def drop_invalid_points(points) -> np.ndarray:
    """Remove rows containing NaN/inf, as organized depth clouds do for missing pixels."""
    cloud = np.asarray(points, dtype=float)
    if cloud.ndim != 2 or cloud.shape[1] < 3:
        raise ValueError(f"Point cloud must have shape (N, 3), got {cloud.shape}")
    valid = np.all(np.isfinite(cloud[:, :3]), axis=1)
    dropped = int(len(cloud) - np.count_nonzero(valid))
    if dropped:
        logger.info(f"Dropped {dropped} invalid points from cloud")
    return cloud[valid, :3]


def load_point_cloud(path: Union[str, Path]) -> np.ndarray:
    """
    Load a point cloud file.

    Supported formats:
    - .npy: (N, 3+) array
    - .npz: first array, or the one stored under "points"
    - .xyz/.txt/.csv: whitespace or comma separated columns
    - .pcd/.ply: read with Open3D (ASCII or binary)

    Returns:
        Read-only (N, 3) array with invalid points removed
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".npy":
        data = np.load(path)
    elif suffix == ".npz":
        with np.load(path) as archive:
            key = "points" if "points" in archive.files else archive.files[0]
            data = archive[key]
    elif suffix in TEXT_SUFFIXES:
        delimiter = "," if suffix == ".csv" else None
        data = np.loadtxt(path, delimiter=delimiter, ndmin=2)
    elif suffix in OPEN3D_SUFFIXES:
        # Open3D returns an empty cloud for missing files
        if not path.is_file():
            raise FileNotFoundError(f"Point cloud file not found: {path}")
        pcd = o3d.io.read_point_cloud(str(path))
        data = np.asarray(pcd.points)
    else:
        raise ValueError(f"Unsupported point cloud format: {path.suffix}")

    if np.asarray(data).size == 0:
        data = np.zeros((0, 3))
    cloud = as_point_array(drop_invalid_points(data))
    logger.info(f"Loaded {len(cloud)} points from {path}")
    return cloud
