"""
Deployment state: inspection records, sources and the deployment probe.
"""

from .records import ContainerRecord, DeploymentSnapshot, InterfaceRecord, LabRecord
from .sources import DeploymentSource, InspectCommandSource, StaticDeploymentSource
from .probe import DeploymentState, DeploymentStateProbe

__all__ = [
    'ContainerRecord',
    'DeploymentSnapshot',
    'InterfaceRecord',
    'LabRecord',
    'DeploymentSource',
    'InspectCommandSource',
    'StaticDeploymentSource',
    'DeploymentState',
    'DeploymentStateProbe',
]
