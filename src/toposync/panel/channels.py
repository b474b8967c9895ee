"""
Transport channels carrying messages to the panel.
"""

import json
import logging
import sys
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

logger = logging.getLogger(__name__)


class PanelChannel(ABC):
    """Base class for panel transports."""

    def __init__(self, name: str, enabled: bool = True):
        self.name = name
        self.enabled = enabled

    def is_enabled(self) -> bool:
        return self.enabled

    @abstractmethod
    async def send(self, message: Dict[str, Any]) -> None:
        """Deliver one message to the panel."""
        pass

    async def close(self) -> None:
        """Close channel resources."""
        pass


class RecordingChannel(PanelChannel):
    """Keeps every message in memory. Used for headless sessions and tests."""

    def __init__(self, name: str = "recording"):
        super().__init__(name)
        self.messages: List[Dict[str, Any]] = []
        self.closed = False

    async def send(self, message: Dict[str, Any]) -> None:
        self.messages.append(message)

    async def close(self) -> None:
        self.closed = True

    def of_type(self, message_type: str) -> List[Dict[str, Any]]:
        return [m for m in self.messages if m.get("type") == message_type]

    def clear(self) -> None:
        self.messages.clear()


class ConsoleChannel(PanelChannel):
    """
    Prints panel messages to the terminal with Rich formatting.

    Snapshot pushes are summarized; other messages are shown as JSON.
    """

    STYLES = {
        "yaml-saved": "bright_green",
        "topo-mode-changed": "bright_magenta",
        "updateTopology": "bright_cyan",
        "lab-lifecycle-status": "bright_yellow",
        "topology-data": "bright_blue",
        "error": "bright_red bold",
        "POST_RESPONSE": "white",
    }

    def __init__(self, console: Optional[Console] = None, use_colors: bool = True):
        super().__init__("console")
        self.console = console or Console(
            no_color=not (use_colors and sys.stdout.isatty())
        )

    def _summarize(self, message: Dict[str, Any]) -> str:
        data = message.get("data")
        if message.get("type") == "topology-data" and isinstance(data, dict):
            elements = data.get("elements", [])
            nodes = sum(1 for e in elements if e.get("group") == "nodes")
            return f"lab={data.get('labName')} nodes={nodes} edges={len(elements) - nodes}"
        return json.dumps(data if "data" in message else message, indent=2, default=str)

    async def send(self, message: Dict[str, Any]) -> None:
        if not self.enabled:
            return
        message_type = str(message.get("type", "message"))
        style = self.STYLES.get(message_type, "white")
        self.console.print(
            Panel(
                Text(self._summarize(message)),
                title=Text(message_type, style=style),
                border_style=style,
                expand=False,
            )
        )
