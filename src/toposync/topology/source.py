"""
Topology source reader.

Reads, writes and validates the topology file. Writes issued by the engine
go through the guard's internal-write window so the change detection layer
never mistakes them for external edits.
"""

import logging
import os
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..config import SyncConfig, TopologyDefaults
from ..exceptions import TopologyReadError
from ..sync.state import SyncGuard
from ..utils import lab_name_from_path
from .schema import ValidationResult, validate_topology_text

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def build_default_topology(name: str, defaults: Optional[TopologyDefaults] = None) -> str:
    """Default content written into an empty topology file."""
    defaults = defaults or TopologyDefaults()
    node_body = (
        f"      kind: {defaults.node_kind}\n"
        f"      type: {defaults.node_type}\n"
        f"      image: {defaults.node_image}\n"
    )
    return (
        f"name: {name}\n"
        "\n"
        "topology:\n"
        "  nodes:\n"
        "    srl1:\n"
        f"{node_body}"
        "\n"
        "    srl2:\n"
        f"{node_body}"
        "\n"
        "  links:\n"
        "    - endpoints: [ srl1:e1-1, srl2:e1-1 ]\n"
    )


def minimal_topology(name: str) -> str:
    """Fallback content used in view mode when the file cannot be read."""
    return f"name: {name}\ntopology:\n  nodes: {{}}\n  links: []"


def template_path(path: PathLike) -> Path:
    """Force a `.clab.yml` suffix on a new topology file path."""
    path = Path(path)
    name = path.name
    if name.endswith((".clab.yml", ".clab.yaml")):
        return path
    for suffix in (".yaml", ".yml"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    return path.with_name(f"{name}.clab.yml")


class TopologySourceReader:
    """Reads and writes topology files on behalf of one session."""

    def __init__(self, guard: SyncGuard, config: Optional[SyncConfig] = None):
        self.guard = guard
        self.config = config or SyncConfig()
        self._write_listeners: List[Callable[[Path], None]] = []

    def add_write_listener(self, listener: Callable[[Path], None]) -> None:
        """Register a callback invoked after every internal write."""
        if listener not in self._write_listeners:
            self._write_listeners.append(listener)

    async def read(self, path: PathLike) -> str:
        """Read topology text, raising TopologyReadError if it cannot be read."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise TopologyReadError(str(e), path=str(path)) from e

    async def read_or_none(self, path: PathLike) -> Optional[str]:
        try:
            return await self.read(path)
        except TopologyReadError as e:
            logger.warning(f"Could not read {path}: {e.developer_message}")
            return None

    async def write(self, path: PathLike, text: str, internal: bool = True) -> None:
        """Write topology text; internal writes are suppressed from change detection."""
        path = Path(path)
        if not internal:
            self._write_file(path, text)
            return

        async with self.guard.internal_write_window(self.config.internal_write_settle_s):
            self._write_file(path, text)
            for listener in self._write_listeners:
                listener(path)
        logger.debug(f"Internal write to {path} complete")

    def _write_file(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)

    def mtime(self, path: PathLike) -> Optional[int]:
        """Modification time in nanoseconds, or None when the file is missing."""
        try:
            return os.stat(path).st_mtime_ns
        except OSError:
            return None

    def validate(self, text: str) -> ValidationResult:
        return validate_topology_text(text, check_schema=self.config.validate_schema)

    def default_content(self, lab_name: str) -> str:
        return build_default_topology(lab_name, self.config.topology_defaults)

    async def ensure_content(self, path: PathLike, text: str, lab_name: Optional[str] = None) -> str:
        """
        Populate an empty topology file with default content.

        Returns the text to use: the original text when it has content,
        otherwise the default topology that was just written.
        """
        if text.strip():
            return text
        name = lab_name or lab_name_from_path(path)
        content = self.default_content(name)
        logger.info(f"Topology file {path} is empty, writing default topology for lab '{name}'")
        await self.write(path, content, internal=True)
        return content

    async def create_template(self, path: PathLike) -> Path:
        """
        Write the default topology to a new file and return its path.

        The next validation is skipped once, since the content is known-good
        and may be customized by the user before saving.
        """
        target = template_path(path)
        content = self.default_content(lab_name_from_path(target))
        await self.write(target, content, internal=True)
        self.guard.request_skip_validation()
        logger.info(f"Created topology template {target}")
        return target
