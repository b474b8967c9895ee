"""
Configuration classes for the topology synchronization engine.
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .exceptions import SyncConfigurationError


@dataclass
class TopologyDefaults:
    """Defaults used when synthesizing topology content and container names."""
    node_kind: str = "nokia_srlinux"
    node_type: str = "ixr-d2l"
    node_image: str = "ghcr.io/nokia/srlinux:latest"
    container_prefix: str = "clab"  # Used when the topology has no `prefix` key


@dataclass
class SyncConfig:
    """Configuration for a topology synchronization engine."""

    # Internal write suppression
    internal_write_settle_s: float = 0.05  # Window after a self-issued write
    mode_switch_settle_s: float = 0.1      # Delay before leaving MODE_SWITCHING

    # Change detection
    watch_poll_interval_s: float = 1.0  # 0 disables mtime polling

    # Derived artifacts (graph.json / environment.json); None disables them
    artifacts_dir: Optional[Path] = None

    # Validation
    validate_schema: bool = True

    # Workspace cache
    workspace_key_prefix: str = "cached_topology_"

    # Deployment inspection
    inspect_command: Tuple[str, ...] = ("containerlab", "inspect")
    inspect_use_sudo: bool = False
    inspect_timeout_s: float = 15.0

    topology_defaults: TopologyDefaults = field(default_factory=TopologyDefaults)

    def __post_init__(self):
        if self.artifacts_dir is not None:
            self.artifacts_dir = Path(self.artifacts_dir)
        self.inspect_command = tuple(self.inspect_command)

        for name in ("internal_write_settle_s", "mode_switch_settle_s",
                     "watch_poll_interval_s", "inspect_timeout_s"):
            if getattr(self, name) < 0:
                raise SyncConfigurationError(
                    f"{name} must be non-negative, got {getattr(self, name)}",
                    config_field=name,
                )

    def cache_key(self, lab_name: str) -> str:
        """Workspace key under which the last processed topology text is stored."""
        return f"{self.workspace_key_prefix}{lab_name}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SyncConfig':
        """Create SyncConfig from a plain mapping (e.g. loaded from YAML)."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise SyncConfigurationError(
                f"Unknown configuration keys: {', '.join(unknown)}",
                config_field=unknown[0],
            )

        values = dict(data)
        defaults = values.get("topology_defaults")
        if isinstance(defaults, dict):
            default_fields = {f.name for f in fields(TopologyDefaults)}
            bad = sorted(set(defaults) - default_fields)
            if bad:
                raise SyncConfigurationError(
                    f"Unknown topology default keys: {', '.join(bad)}",
                    config_field="topology_defaults",
                )
            values["topology_defaults"] = TopologyDefaults(**defaults)
        return cls(**values)
