"""graspreach Control Module - inverse kinematics gateways."""

from .ik_gateway import AnalyticIKGateway, IKGateway, IKGatewayError, IKResult
from .pybullet_ik import PyBulletIKGateway
from .service_ik import ServiceIKGateway

__all__ = [
    'IKGateway',
    'IKGatewayError',
    'IKResult',
    'AnalyticIKGateway',
    'PyBulletIKGateway',
    'ServiceIKGateway',
]
