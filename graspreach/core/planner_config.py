"""
Planning parameters for grasp reachability selection.

Parameters are validated once, when the planner is built, so that a bad
configuration fails before any candidate is processed.
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from ..geometry.grasp_frames import THETA_HALF_RANGE_DEG, validate_axis_order
from ..vision.collision_filter import CYLINDER_LENGTH, CYLINDER_RADIUS, SURFACE_OFFSET, CylinderGeometry

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised for invalid planner parameters."""


@dataclass(frozen=True)
class Workspace:
    """Axis-aligned box the grasp contact point must lie in (meters)."""
    x_min: float = -1.0
    x_max: float = 1.0
    y_min: float = -1.0
    y_max: float = 1.0
    z_min: float = -1.0
    z_max: float = 1.0

    @classmethod
    def from_sequence(cls, bounds) -> "Workspace":
        """Build from [x_min, x_max, y_min, y_max, z_min, z_max]."""
        bounds = list(bounds)
        if len(bounds) != 6:
            raise ConfigurationError(f"Workspace needs 6 bounds, got {len(bounds)}")
        return cls(*(float(b) for b in bounds))

    def as_list(self):
        return [self.x_min, self.x_max, self.y_min, self.y_max, self.z_min, self.z_max]

    def contains(self, point) -> bool:
        """Check if a point lies within the box, faces included."""
        x, y, z = point
        return (
            self.x_min <= x <= self.x_max
            and self.y_min <= y <= self.y_max
            and self.z_min <= z <= self.z_max
        )

    def validate(self):
        for axis in ("x", "y", "z"):
            lo = getattr(self, f"{axis}_min")
            hi = getattr(self, f"{axis}_max")
            if lo > hi:
                raise ConfigurationError(f"Workspace {axis}_min ({lo}) exceeds {axis}_max ({hi})")


@dataclass
class PlannerConfig:
    """
    Reachability planner parameters.

    Defaults follow a Baxter-style two-finger hand: 1-10 cm aperture, an
    8 cm standoff between the grasp center and the hand's IK link, and no
    approach perturbations.
    """
    workspace: Workspace = field(default_factory=Workspace)
    min_aperture: float = 0.0
    max_aperture: float = 0.1
    standoff: float = 0.08
    axis_order: Tuple[int, int, int] = (0, 1, 2)
    num_additional_variants: int = 0
    theta_half_range_deg: float = THETA_HALF_RANGE_DEG
    max_colliding_points: int = 0
    frame_id: str = "base"

    # Hand collision cylinder (meters)
    cylinder_radius: float = CYLINDER_RADIUS
    cylinder_length: float = CYLINDER_LENGTH
    cylinder_offset: float = SURFACE_OFFSET

    # Passed through to the IK solver unmodified
    ik_attempts: Optional[int] = None
    ik_timeout: Optional[float] = None

    # Execution
    n_workers: int = 1
    time_budget_s: Optional[float] = None
    verbose: bool = False

    def __post_init__(self):
        if not isinstance(self.workspace, Workspace):
            if isinstance(self.workspace, dict):
                self.workspace = Workspace(**self.workspace)
            else:
                self.workspace = Workspace.from_sequence(self.workspace)
        self.axis_order = tuple(self.axis_order)

    def validate(self) -> "PlannerConfig":
        """
        Check parameter consistency.

        Returns:
            self, for chaining

        Raises:
            ConfigurationError: Describing the first invalid parameter
        """
        self.workspace.validate()

        try:
            self.axis_order = validate_axis_order(self.axis_order)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"axis_order must be a permutation of (0, 1, 2), got {self.axis_order}"
            ) from e
        if self.min_aperture < 0.0:
            raise ConfigurationError(f"min_aperture must be non-negative, got {self.min_aperture}")
        if self.min_aperture > self.max_aperture:
            raise ConfigurationError(
                f"min_aperture ({self.min_aperture}) exceeds max_aperture ({self.max_aperture})"
            )
        if self.standoff < 0.0:
            raise ConfigurationError(f"standoff must be non-negative, got {self.standoff}")
        if self.num_additional_variants < 0:
            raise ConfigurationError(
                f"num_additional_variants must be non-negative, got {self.num_additional_variants}"
            )
        if not 0.0 <= self.theta_half_range_deg < 180.0:
            raise ConfigurationError(
                f"theta_half_range_deg must lie in [0, 180), got {self.theta_half_range_deg}"
            )
        if self.max_colliding_points < 0:
            raise ConfigurationError(
                f"max_colliding_points must be non-negative, got {self.max_colliding_points}"
            )
        try:
            self.cylinder_geometry().validate()
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        if self.ik_attempts is not None and self.ik_attempts < 1:
            raise ConfigurationError(f"ik_attempts must be positive, got {self.ik_attempts}")
        if self.ik_timeout is not None and self.ik_timeout <= 0.0:
            raise ConfigurationError(f"ik_timeout must be positive, got {self.ik_timeout}")
        if self.n_workers < 1:
            raise ConfigurationError(f"n_workers must be at least 1, got {self.n_workers}")
        if self.time_budget_s is not None and self.time_budget_s <= 0.0:
            raise ConfigurationError(f"time_budget_s must be positive, got {self.time_budget_s}")
        if not isinstance(self.frame_id, str) or not self.frame_id:
            raise ConfigurationError("frame_id must be a non-empty string")
        return self

    def cylinder_geometry(self) -> CylinderGeometry:
        return CylinderGeometry(
            radius=self.cylinder_radius,
            length=self.cylinder_length,
            offset=self.cylinder_offset,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlannerConfig":
        """
        Build a config from a parameter dictionary.

        The workspace may be given as a mapping or as a six-element list.

        Raises:
            ConfigurationError: On unknown keys or malformed values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown planner parameters: {', '.join(unknown)}")
        try:
            return cls(**data)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid planner parameters: {e}") from e

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "PlannerConfig":
        """Load parameters from a YAML or JSON file."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Planner config {path} must contain a mapping")
        # parameters may be nested under a node namespace
        if "planner" in data and isinstance(data["planner"], dict):
            data = data["planner"]
        logger.info(f"Planner configuration loaded from: {path}")
        return cls.from_dict(data)

    from_yaml = from_file

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["axis_order"] = list(self.axis_order)
        return result
