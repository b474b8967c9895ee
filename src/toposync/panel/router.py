"""
Inbound panel message routing.

Requests addressed to the synchronization core (mode switch, annotations,
viewer settings) are handled here; any other endpoint is dispatched to a
handler registered by an external collaborator.
"""

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from ..exceptions import TopoSyncError
from ..topology.annotations import AnnotationSet
from .messages import LOG_COMMAND, POST, InboundRequest, LogMessage, response_message

if TYPE_CHECKING:
    from ..sync.engine import TopologySyncEngine

logger = logging.getLogger(__name__)
panel_logger = logging.getLogger("toposync.panel")

EndpointHandler = Callable[[Any], Awaitable[Any]]

SWITCH_MODE = "topo-switch-mode"
LOAD_ANNOTATIONS = "load-annotations"
SAVE_ANNOTATIONS = "save-annotations"
LOAD_VIEWER_SETTINGS = "load-viewer-settings"
SAVE_VIEWER_SETTINGS = "save-viewer-settings"

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class MessageRouter:
    """Dispatches panel messages for one engine."""

    def __init__(self, engine: 'TopologySyncEngine'):
        self.engine = engine
        self._handlers: Dict[str, EndpointHandler] = {
            SWITCH_MODE: self._switch_mode,
            LOAD_ANNOTATIONS: self._load_annotations,
            SAVE_ANNOTATIONS: self._save_annotations,
            LOAD_VIEWER_SETTINGS: self._load_viewer_settings,
            SAVE_VIEWER_SETTINGS: self._save_viewer_settings,
        }

    def register(self, endpoint_name: str, handler: EndpointHandler) -> None:
        """Register a handler for an endpoint served outside the core."""
        if endpoint_name in self._handlers:
            logger.warning(f"Replacing handler for endpoint '{endpoint_name}'")
        self._handlers[endpoint_name] = handler

    @property
    def endpoints(self) -> list:
        return sorted(self._handlers)

    async def handle(self, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Handle one inbound message.

        Returns:
            The response that was sent to the panel, or None for messages
            that take no response (logs, unknown message types)
        """
        if message.get("command") == LOG_COMMAND:
            self._log(message)
            return None
        if message.get("type") != POST:
            logger.debug(f"Ignoring panel message of type {message.get('type')!r}")
            return None

        try:
            request = InboundRequest.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Malformed panel request: {e}")
            return None

        result, error = None, None
        handler = self._handlers.get(request.endpoint_name)
        if handler is None:
            error = f"Unknown endpoint: {request.endpoint_name}"
            logger.warning(error)
        else:
            try:
                result = await handler(request.payload)
            except TopoSyncError as e:
                error = e.user_message
                logger.warning(f"Endpoint '{request.endpoint_name}' failed: {e}")
            except (ValueError, TypeError) as e:
                error = str(e)
                logger.warning(f"Endpoint '{request.endpoint_name}' rejected payload: {e}")

        response = response_message(request.request_id, result, error)
        if self.engine.panel is not None:
            await self.engine.panel.respond(request.request_id, result, error)
        return response

    def _log(self, message: Dict[str, Any]) -> None:
        try:
            entry = LogMessage.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Malformed panel log message: {e}")
            return
        location = f" ({entry.file_line})" if entry.file_line else ""
        panel_logger.log(
            _LOG_LEVELS.get(entry.level.lower(), logging.INFO),
            f"{entry.message}{location}",
            extra={"lab_name": self.engine.lab_name},
        )

    # -- core endpoints ---------------------------------------------------------

    async def _switch_mode(self, payload: Any) -> Dict[str, str]:
        mode = "toggle"
        if isinstance(payload, dict):
            mode = str(payload.get("mode", "toggle"))
        elif isinstance(payload, str) and payload:
            mode = payload
        return await self.engine.switch_mode(mode)

    def _store(self):
        store = self.engine.annotations
        if store is None:
            raise TopoSyncError("No topology file is open", error_code="NO_TOPOLOGY_OPEN")
        return store

    async def _load_annotations(self, payload: Any) -> Dict[str, Any]:
        return (await self._store().load()).to_file_dict()

    async def _save_annotations(self, payload: Any) -> Dict[str, bool]:
        if not isinstance(payload, dict):
            raise ValueError("Annotations payload must be an object")
        try:
            annotations = AnnotationSet.model_validate(payload)
        except ValidationError as e:
            raise ValueError(f"Invalid annotations: {e}") from e
        await self._store().save(annotations)
        return {"success": True}

    async def _load_viewer_settings(self, payload: Any) -> Dict[str, Any]:
        return await self._store().load_viewer_settings()

    async def _save_viewer_settings(self, payload: Any) -> Dict[str, bool]:
        if not isinstance(payload, dict):
            raise ValueError("Viewer settings payload must be an object")
        await self._store().save_viewer_settings(payload)
        return {"success": True}
