"""
toposync - topology document synchronization engine

Keeps a containerlab topology file, its graph model, the live deployment
state and an interactive panel session consistent under concurrent change.
"""

__version__ = "0.1.0"

from .exceptions import (
    TopoSyncError,
    TopologyReadError,
    TopologyValidationError,
    TopologyConvertError,
    ArtifactWriteError,
    AnnotationWriteError,
    DeploymentProbeError,
    ModeSwitchInProgressError,
    SyncConfigurationError,
)
from .config import SyncConfig, TopologyDefaults

# Topology documents
from .topology import (
    AnnotationSet,
    AnnotationStore,
    GraphModel,
    TopologyAdapter,
    TopologySourceReader,
)

# Deployment
from .deployment import (
    DeploymentState,
    DeploymentStateProbe,
    InspectCommandSource,
    StaticDeploymentSource,
)
from .deployment.link_state import LinkStateRefresher

# Synchronization
from .sync import EventBus, SyncGuard, SyncPhase, ViewModeCache
from .sync.watcher import ChangeDetector
from .sync.engine import TopologySyncEngine

# Panel
from .panel import MessageRouter, PanelMode, PanelSession, RecordingChannel

__all__ = [
    "__version__",
    # Errors
    "TopoSyncError",
    "TopologyReadError",
    "TopologyValidationError",
    "TopologyConvertError",
    "ArtifactWriteError",
    "AnnotationWriteError",
    "DeploymentProbeError",
    "ModeSwitchInProgressError",
    "SyncConfigurationError",
    # Config
    "SyncConfig",
    "TopologyDefaults",
    # Topology
    "AnnotationSet",
    "AnnotationStore",
    "GraphModel",
    "TopologyAdapter",
    "TopologySourceReader",
    # Deployment
    "DeploymentState",
    "DeploymentStateProbe",
    "InspectCommandSource",
    "StaticDeploymentSource",
    "LinkStateRefresher",
    # Sync
    "EventBus",
    "SyncGuard",
    "SyncPhase",
    "ViewModeCache",
    "ChangeDetector",
    "TopologySyncEngine",
    # Panel
    "MessageRouter",
    "PanelMode",
    "PanelSession",
    "RecordingChannel",
]
