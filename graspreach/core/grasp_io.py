"""
Reading grasp candidates and writing selected grasps.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

import yaml

from ..geometry.grasp_frames import GraspCandidate

logger = logging.getLogger(__name__)


def candidates_from_data(data: Union[List[Dict[str, Any]], Dict[str, Any]]) -> List[GraspCandidate]:
    """
    Build candidates from parsed JSON/YAML data.

    Accepts a list of grasp dictionaries, or a grasp array message
    `{"grasps": [...]}`. Vectors may be lists or `{"x", "y", "z"}` mappings.

    Raises:
        ValueError: If a grasp is missing fields or has malformed vectors
    """
    if isinstance(data, dict):
        data = data.get("grasps", [])
    if not isinstance(data, list):
        raise ValueError("Grasp candidates must be a list or a mapping with a 'grasps' list")

    candidates = []
    for i, grasp in enumerate(data):
        try:
            grasp = {key: _vector(value) for key, value in grasp.items()}
            candidates.append(GraspCandidate.from_dict(grasp))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ValueError(f"Invalid grasp candidate {i}: {e}") from e
    return candidates


def _vector(value):
    if isinstance(value, dict) and {"x", "y", "z"} <= set(value):
        return [value["x"], value["y"], value["z"]]
    return value


def load_candidates(path: Union[str, Path]) -> List[GraspCandidate]:
    """Load grasp candidates from a JSON or YAML file."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    candidates = candidates_from_data(data)
    logger.info(f"Loaded {len(candidates)} grasp candidates from {path}")
    return candidates


def scored_grasps_to_dicts(grasps: Sequence) -> List[Dict[str, Any]]:
    return [g.to_dict() for g in grasps]


def save_scored_grasps(grasps: Sequence, path: Union[str, Path], stats: Dict[str, Any] = None):
    """Write selected grasps (and optional selection stats) as JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"grasps": scored_grasps_to_dicts(grasps)}
    if stats is not None:
        payload["stats"] = stats
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    logger.info(f"Saved {len(grasps)} selected grasps to {path}")
