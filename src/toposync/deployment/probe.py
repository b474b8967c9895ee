"""
Deployment state probe.

Answers "is this lab running right now?" by querying a deployment source.
A failing query is reported as UNKNOWN and never raised to the caller.
"""

import logging
from enum import Enum
from typing import Callable, Optional, Union
from pathlib import Path

from ..exceptions import DeploymentProbeError
from ..utils import normalize_path
from .records import DeploymentSnapshot
from .sources import DeploymentSource

logger = logging.getLogger(__name__)


class DeploymentState(str, Enum):
    """Deployment state of a lab."""
    DEPLOYED = "deployed"
    UNDEPLOYED = "undeployed"
    UNKNOWN = "unknown"


class DeploymentStateProbe:
    """Determines the deployment state of a lab from a deployment source."""

    def __init__(self, source: DeploymentSource):
        self.source = source

    async def snapshot(self, lab_name: Optional[str] = None) -> Optional[DeploymentSnapshot]:
        """Fresh inspection data, or None when the query fails."""
        try:
            return await self.source.discover(lab_name)
        except DeploymentProbeError as e:
            logger.warning(f"Deployment inspection failed: {e}")
            return None
        except Exception as e:
            logger.warning(f"Unexpected error during deployment inspection: {e}", exc_info=True)
            return None

    async def check(
        self,
        lab_name: str,
        topo_path: Optional[Union[str, Path]] = None,
        on_rename: Optional[Callable[[str], None]] = None,
    ) -> DeploymentState:
        """
        Determine whether `lab_name` is deployed.

        When no lab carries the name but a deployed lab was started from
        `topo_path`, that lab is reported as deployed and `on_rename` is
        called with its canonical name.
        """
        labs = await self.snapshot(lab_name)
        if labs is None:
            return DeploymentState.UNKNOWN

        if lab_name in labs:
            return DeploymentState.DEPLOYED

        if topo_path is not None:
            wanted = normalize_path(topo_path)
            for name, lab in labs.items():
                if lab.topo_file and normalize_path(lab.topo_file) == wanted:
                    if name != lab_name:
                        logger.info(f"Lab '{lab_name}' is deployed as '{name}'")
                        if on_rename is not None:
                            on_rename(name)
                    return DeploymentState.DEPLOYED

        return DeploymentState.UNDEPLOYED
