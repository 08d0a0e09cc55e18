"""
IK gateway for solvers running behind an HTTP endpoint.

Requests follow the layout of MoveIt's GetPositionIK service
(`ik_request.pose_stamped`, `attempts`, `timeout`), serialized as JSON. The
simpler SolveIK reply used by analytic IKFast servers
(`{"success": bool, "solution": [...]}`) is accepted as well.
"""

import logging
from typing import Any, Dict, Optional

import requests

from .ik_gateway import IKGateway, IKGatewayError

logger = logging.getLogger(__name__)

# MoveIt error codes
MOVEIT_SUCCESS = 1
MOVEIT_TIMED_OUT = -6
MOVEIT_NO_IK_SOLUTION = -31
INFEASIBLE_CODES = (MOVEIT_NO_IK_SOLUTION, MOVEIT_TIMED_OUT)

REQUEST_TIMEOUT = 5.0  # seconds of transport slack on top of the solver timeout


class ServiceIKGateway(IKGateway):
    """Remote IK solver reached through a JSON-over-HTTP endpoint."""

    def __init__(
        self,
        url: str,
        group_name: str = "manipulator",
        ik_link_name: str = "",
        avoid_collisions: bool = False,
        request_timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
        first_joint_index: int = 0,
        last_joint_index: Optional[int] = None,
    ):
        super().__init__(first_joint_index, last_joint_index)
        self.url = url
        self.group_name = group_name
        self.ik_link_name = ik_link_name
        self.avoid_collisions = avoid_collisions
        self.request_timeout = request_timeout
        self.session = session or requests.Session()

    def build_request(self, pose, attempts=None, timeout=None) -> Dict[str, Any]:
        """Serialize a hand pose into a GetPositionIK style request body."""
        x, y, z = (float(v) for v in pose.position)
        qx, qy, qz, qw = (float(v) for v in pose.orientation)
        ik_request = {
            "group_name": self.group_name,
            "ik_link_name": self.ik_link_name,
            "avoid_collisions": self.avoid_collisions,
            "pose_stamped": {
                "header": {"frame_id": pose.frame_id},
                "pose": {
                    "position": {"x": x, "y": y, "z": z},
                    "orientation": {"x": qx, "y": qy, "z": qz, "w": qw},
                },
            },
        }
        if attempts is not None:
            ik_request["attempts"] = attempts
        if timeout is not None:
            ik_request["timeout"] = timeout
        return {"ik_request": ik_request}

    def parse_response(self, body: Dict[str, Any]):
        """
        Extract the joint vector from a reply body.

        Returns:
            Full joint vector, or None when the solver reports no solution

        Raises:
            IKGatewayError: On solver errors or malformed replies
        """
        if not isinstance(body, dict):
            raise IKGatewayError(f"Malformed IK reply: {body!r}")

        if "error_code" in body:
            code = body["error_code"]
            if isinstance(code, dict):
                code = code.get("val")
            if code == MOVEIT_SUCCESS:
                try:
                    return list(body["solution"]["joint_state"]["position"])
                except (KeyError, TypeError) as e:
                    raise IKGatewayError(f"IK reply has no joint solution: {e}") from e
            if code in INFEASIBLE_CODES:
                return None
            raise IKGatewayError(f"IK service returned error code {code}")

        if "success" in body:
            if not body["success"]:
                return None
            solution = body.get("solution")
            if not solution:
                raise IKGatewayError("IK reply reports success without a solution")
            return list(solution)

        raise IKGatewayError(f"Unrecognized IK reply: {sorted(body)}")

    def _solve(self, pose, attempts=None, timeout=None):
        payload = self.build_request(pose, attempts=attempts, timeout=timeout)
        http_timeout = self.request_timeout + (timeout or 0.0)
        try:
            response = self.session.post(self.url, json=payload, timeout=http_timeout)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise IKGatewayError(f"IK service at {self.url} unavailable: {e}") from e
        except ValueError as e:
            raise IKGatewayError(f"IK service at {self.url} returned invalid JSON: {e}") from e
        return self.parse_response(body)

    def close(self):
        self.session.close()
