"""
Panel session: the engine's view of one interactive panel.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from ..topology.graph import GraphModel
from .channels import PanelChannel
from .messages import PushType, push_message, response_message

logger = logging.getLogger(__name__)


class PanelMode(str, Enum):
    """Interaction mode of a panel."""
    EDIT = "edit"
    VIEW = "view"

    @property
    def panel_name(self) -> str:
        """Name used in mode-change notifications."""
        return "viewer" if self is PanelMode.VIEW else "editor"

    @classmethod
    def from_view_flag(cls, view_mode: bool) -> 'PanelMode':
        return cls.VIEW if view_mode else cls.EDIT


class PanelSession:
    """
    One open panel bound to a topology document.

    Every outbound message goes through `channel`; the session remembers the
    last pushed graph so hosts can re-render after reconnecting.
    """

    def __init__(self, channel: PanelChannel, lab_name: str = "", mode: PanelMode = PanelMode.EDIT):
        self.channel = channel
        self.lab_name = lab_name
        self.mode = mode
        self.deployment_state: Optional[str] = None
        self.last_graph: Optional[GraphModel] = None
        self.closed = False

    async def _send(self, message: Dict[str, Any]) -> None:
        if self.closed or not self.channel.is_enabled():
            logger.debug(f"Dropping {message.get('type')} message for closed panel")
            return
        await self.channel.send(message)

    async def push_snapshot(self, graph: GraphModel) -> None:
        self.last_graph = graph
        await self._send(push_message(PushType.TOPOLOGY_DATA, graph.to_dict()))

    async def notify_mode_changed(
        self, mode: PanelMode, deployment_state: str, params: Optional[Dict[str, Any]] = None
    ) -> None:
        self.mode = mode
        self.deployment_state = deployment_state
        data = {"mode": mode.panel_name, "deploymentState": deployment_state}
        data.update(params or {})
        await self._send(push_message(PushType.MODE_CHANGED, data))

    async def notify_saved(self) -> None:
        await self._send(push_message(PushType.YAML_SAVED))

    async def notify_lifecycle_status(
        self, kind: str, status: str, error: Optional[str] = None
    ) -> None:
        data = {"commandType": kind, "status": status}
        if error:
            data["errorMessage"] = error
        await self._send(push_message(PushType.LIFECYCLE_STATUS, data))

    async def push_edge_updates(self, edges: List[Dict[str, Any]]) -> None:
        await self._send(push_message(PushType.UPDATE_TOPOLOGY, edges))

    async def notify_docker_images(self, images: List[str]) -> None:
        await self._send(push_message(PushType.DOCKER_IMAGES, {"images": images}))

    async def show_error(self, message: str) -> None:
        await self._send(push_message(PushType.ERROR, {"message": message}))

    async def respond(self, request_id: str, result: Any = None, error: Optional[str] = None) -> None:
        await self._send(response_message(request_id, result, error))

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.channel.close()
