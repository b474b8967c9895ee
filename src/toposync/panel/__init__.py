"""
Panel session, transport channels and inbound message routing.
"""

from .messages import InboundRequest, PushType
from .channels import ConsoleChannel, PanelChannel, RecordingChannel
from .session import PanelMode, PanelSession
from .router import MessageRouter

__all__ = [
    'InboundRequest',
    'PushType',
    'ConsoleChannel',
    'PanelChannel',
    'RecordingChannel',
    'PanelMode',
    'PanelSession',
    'MessageRouter',
]
