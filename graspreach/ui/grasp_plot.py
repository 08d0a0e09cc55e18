"""
3D plots of grasp selection results.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
from matplotlib.figure import Figure
from mpl_toolkits.mplot3d import Axes3D  # noqa: F401
from scipy.spatial.transform import Rotation

logger = logging.getLogger(__name__)

# Points drawn at most, to keep dense clouds responsive
MAX_PLOT_POINTS = 20000


def _box_edges(workspace):
    xs = (workspace.x_min, workspace.x_max)
    ys = (workspace.y_min, workspace.y_max)
    zs = (workspace.z_min, workspace.z_max)
    corners = np.array([[x, y, z] for x in xs for y in ys for z in zs])
    edges = []
    for a in range(8):
        for b in range(a + 1, 8):
            # corners differing in exactly one coordinate share an edge
            if np.count_nonzero(corners[a] != corners[b]) == 1:
                edges.append(corners[[a, b]])
    return edges


def plot_selection(
    cloud: np.ndarray,
    grasps: Sequence,
    workspace=None,
    axis_length: float = 0.05,
    output_path: Optional[Union[str, Path]] = None,
    show: bool = False,
):
    """
    Plot the point cloud, the workspace box and the selected hand frames.

    Each hand frame is drawn as three axes (red/green/blue for the pose's
    x/y/z) at the hand position.

    Args:
        cloud: (N, 3) point cloud
        grasps: Selected ScoredGrasp records
        workspace: Optional Workspace box
        axis_length: Length of the drawn frame axes (meters)
        output_path: Save the figure here if given
        show: Open an interactive window through pyplot

    Returns:
        The matplotlib figure
    """
    if show:
        import matplotlib.pyplot as plt
        fig = plt.figure(figsize=(10, 8))
    else:
        # not registered with pyplot
        fig = Figure(figsize=(10, 8))
    ax = fig.add_subplot(111, projection='3d')

    cloud = np.asarray(cloud)
    if len(cloud) > MAX_PLOT_POINTS:
        step = int(np.ceil(len(cloud) / MAX_PLOT_POINTS))
        cloud = cloud[::step]
    if len(cloud):
        ax.scatter(cloud[:, 0], cloud[:, 1], cloud[:, 2], s=1, c='gray', alpha=0.5)

    if workspace is not None:
        for edge in _box_edges(workspace):
            ax.plot3D(*edge.T, 'k:', linewidth=1)

    colors = ('r', 'g', 'b')
    for grasp in grasps:
        position = np.asarray(grasp.pose.position)
        frame = Rotation.from_quat(grasp.pose.orientation).as_matrix()
        for col, color in enumerate(colors):
            tip = position + axis_length * frame[:, col]
            ax.plot3D(*np.stack([position, tip]).T, color=color, linewidth=2)

    ax.set_xlabel('X (m)')
    ax.set_ylabel('Y (m)')
    ax.set_zlabel('Z (m)')
    ax.set_title(f'Selected grasps ({len(grasps)})')

    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=120)
        logger.info(f"Grasp plot saved to {output_path}")
    if show:
        plt.show()
    return fig
