"""
Panel message protocol.

Inbound requests use `{type: "POST", requestId, endpointName, payload}`
and are answered with `{type: "POST_RESPONSE", requestId, result, error}`.
Unsolicited pushes use `{type, data}`.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

POST = "POST"
POST_RESPONSE = "POST_RESPONSE"
LOG_COMMAND = "topoViewerLog"


class PushType(str, Enum):
    """Unsolicited messages pushed to the panel."""
    YAML_SAVED = "yaml-saved"
    MODE_CHANGED = "topo-mode-changed"
    UPDATE_TOPOLOGY = "updateTopology"
    DOCKER_IMAGES = "docker-images-updated"
    LIFECYCLE_STATUS = "lab-lifecycle-status"
    TOPOLOGY_DATA = "topology-data"
    ERROR = "error"


class InboundRequest(BaseModel):
    """A request sent by the panel."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = POST
    request_id: str = Field(..., alias="requestId")
    endpoint_name: str = Field(..., alias="endpointName")
    payload: Any = None


class LogMessage(BaseModel):
    """A log line forwarded by the panel."""

    model_config = ConfigDict(populate_by_name=True)

    command: str = LOG_COMMAND
    level: str = "info"
    message: str = ""
    file_line: Optional[str] = Field(None, alias="fileLine")


def push_message(push_type: PushType, data: Any = None) -> Dict[str, Any]:
    return {"type": push_type.value, "data": data}


def response_message(
    request_id: str, result: Any = None, error: Optional[str] = None
) -> Dict[str, Any]:
    return {
        "type": POST_RESPONSE,
        "requestId": request_id,
        "result": result,
        "error": error,
    }
