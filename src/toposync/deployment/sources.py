"""
Deployment sources: where inspection data comes from.
"""

import asyncio
import json
import logging
import shlex
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from ..config import SyncConfig
from ..exceptions import DeploymentProbeError
from .records import (
    ContainerRecord,
    DeploymentSnapshot,
    InterfaceRecord,
    labs_from_containers,
)

logger = logging.getLogger(__name__)


class DeploymentSource(ABC):
    """Abstract base class for deployment inspection."""

    @abstractmethod
    async def discover(self, lab_name: Optional[str] = None) -> DeploymentSnapshot:
        """
        Return inspection data keyed by lab name.

        Args:
            lab_name: Optional lab of interest; sources may return more labs

        Raises:
            DeploymentProbeError: If the inspection fails
        """
        pass


class StaticDeploymentSource(DeploymentSource):
    """
    Deployment source backed by in-memory data.

    Accepts either a snapshot or a callable returning one, which lets hosts
    that already track lab state feed it to the engine without a subprocess.
    """

    def __init__(self, labs: Union[DeploymentSnapshot, Callable[[], DeploymentSnapshot], None] = None):
        self._labs = labs if labs is not None else {}

    async def discover(self, lab_name: Optional[str] = None) -> DeploymentSnapshot:
        labs = self._labs() if callable(self._labs) else self._labs
        return dict(labs)

    def set_labs(self, labs: DeploymentSnapshot) -> None:
        self._labs = labs


def parse_inspect_output(raw: Any) -> DeploymentSnapshot:
    """
    Parse `containerlab inspect --all --format json` output.

    Newer releases group containers by lab name (`{lab: [containers]}`),
    older ones emit a flat `{"containers": [...]}` list.
    """
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise DeploymentProbeError(f"Unexpected inspect output type: {type(raw).__name__}")

    try:
        if isinstance(raw.get("containers"), list):
            containers = [ContainerRecord.model_validate(c) for c in raw["containers"]]
            return labs_from_containers(containers)

        containers: List[ContainerRecord] = []
        for lab_name, entries in raw.items():
            if not isinstance(entries, list):
                continue
            for entry in entries:
                record = ContainerRecord.model_validate(entry)
                if not record.lab_name:
                    record.lab_name = lab_name
                containers.append(record)
        return labs_from_containers(containers)
    except ValidationError as e:
        raise DeploymentProbeError(f"Malformed inspect output: {e}") from e


def attach_interfaces(snapshot: DeploymentSnapshot, raw: Any) -> None:
    """Attach `containerlab inspect interfaces` output to container records."""
    if not isinstance(raw, list):
        return
    by_name: Dict[str, ContainerRecord] = {
        c.name: c for lab in snapshot.values() for c in lab.containers
    }
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        container = by_name.get(str(entry.get("name", "")))
        if container is None:
            continue
        try:
            container.interfaces = [
                InterfaceRecord.model_validate(i) for i in entry.get("interfaces") or []
            ]
        except ValidationError as e:
            logger.warning(f"Skipping malformed interface data for {container.name}: {e}")


class InspectCommandSource(DeploymentSource):
    """Runs the containerlab inspect command and parses its JSON output."""

    def __init__(self, config: Optional[SyncConfig] = None, include_interfaces: bool = True):
        self.config = config or SyncConfig()
        self.include_interfaces = include_interfaces

    def _command(self, *args: str) -> str:
        parts = list(self.config.inspect_command) + list(args)
        if self.config.inspect_use_sudo:
            parts = ["sudo"] + parts
        return shlex.join(parts)

    async def _run_json(self, command: str) -> Any:
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise DeploymentProbeError(f"Failed to start inspect command: {e}", command=command) from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(),
                timeout=self.config.inspect_timeout_s,
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise DeploymentProbeError(
                f"Inspect command timed out after {self.config.inspect_timeout_s}s",
                command=command,
            ) from e

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        if process.returncode != 0:
            stderr = stderr_bytes.decode("utf-8", errors="replace").strip()
            raise DeploymentProbeError(
                f"Inspect command exited with {process.returncode}: {stderr}",
                command=command,
            )
        if not stdout.strip():
            return None
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise DeploymentProbeError(f"Inspect output is not JSON: {e}", command=command) from e

    async def discover(self, lab_name: Optional[str] = None) -> DeploymentSnapshot:
        raw = await self._run_json(self._command("--all", "--format", "json"))
        snapshot = parse_inspect_output(raw)
        if snapshot and self.include_interfaces:
            args = ["interfaces", "--format", "json"]
            if lab_name and lab_name in snapshot:
                args += ["--name", lab_name]
            try:
                attach_interfaces(snapshot, await self._run_json(self._command(*args)))
            except DeploymentProbeError as e:
                # Container data is still useful without interface details
                logger.warning(f"Interface inspection failed: {e}")
        logger.debug(f"Inspect found {len(snapshot)} lab(s)")
        return snapshot
