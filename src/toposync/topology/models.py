"""
Parsed topology structures.

`ParsedTopology` is always derived from the topology text and is never
persisted on its own; unknown keys are preserved so that round-tripping
through the model does not drop user content.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


def _mapping_or_empty(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


class TopologyBody(BaseModel):
    """The `topology:` section of a lab file."""

    model_config = ConfigDict(extra="allow")

    nodes: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict, description="Node definitions keyed by node name"
    )
    links: List[Dict[str, Any]] = Field(
        default_factory=list, description="Link definitions (short or extended form)"
    )
    defaults: Dict[str, Any] = Field(
        default_factory=dict, description="Settings applied to every node"
    )
    kinds: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict, description="Per-kind settings"
    )
    groups: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict, description="Per-group settings"
    )

    @field_validator("nodes", "kinds", "groups", mode="before")
    @classmethod
    def _normalize_named_sections(cls, value: Any) -> Dict[str, Dict[str, Any]]:
        # `srl1:` with no body parses as None
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("expected a mapping")
        return {str(name): _mapping_or_empty(body) for name, body in value.items()}

    @field_validator("links", mode="before")
    @classmethod
    def _normalize_links(cls, value: Any) -> List[Dict[str, Any]]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError("expected a list")
        return [link for link in value if isinstance(link, dict)]

    @field_validator("defaults", mode="before")
    @classmethod
    def _normalize_defaults(cls, value: Any) -> Dict[str, Any]:
        return _mapping_or_empty(value)


class ParsedTopology(BaseModel):
    """Structured view of a topology document."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = Field(None, description="Lab name")
    prefix: Optional[str] = Field(
        None, description="Container name prefix; None means the default prefix"
    )
    mgmt: Dict[str, Any] = Field(default_factory=dict, description="Management network")
    topology: TopologyBody = Field(default_factory=TopologyBody)

    @field_validator("name", "prefix", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("mgmt", mode="before")
    @classmethod
    def _normalize_mgmt(cls, value: Any) -> Dict[str, Any]:
        return _mapping_or_empty(value)

    @field_validator("topology", mode="before")
    @classmethod
    def _normalize_topology(cls, value: Any) -> Any:
        return {} if value is None else value

    @classmethod
    def from_text(cls, text: str) -> 'ParsedTopology':
        """
        Parse topology YAML text.

        Raises:
            yaml.YAMLError: If the text is not valid YAML
            ValueError: If the document is not a mapping or has an invalid shape
        """
        data = yaml.safe_load(text)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"topology document must be a mapping, got {type(data).__name__}")
        return cls.model_validate(data)

    def full_prefix(self, default_prefix: str = "clab") -> str:
        """
        Compute the container name prefix.

        No `prefix` key gives `<default>-<lab>`, an empty prefix gives no
        prefix at all, anything else gives `<prefix>-<lab>`.
        """
        lab = self.name or ""
        if self.prefix is None:
            return f"{default_prefix}-{lab}"
        if self.prefix.strip() == "":
            return ""
        return f"{self.prefix.strip()}-{lab}"

    def container_name(self, node_name: str, default_prefix: str = "clab") -> str:
        prefix = self.full_prefix(default_prefix)
        return f"{prefix}-{node_name}" if prefix else node_name

    def resolve_node(self, node_name: str) -> Tuple[Dict[str, Any], List[str]]:
        """Resolve a node's effective configuration. See `resolve_node_config`."""
        return resolve_node_config(self, self.topology.nodes.get(node_name, {}))


def resolve_node_config(
    parsed: ParsedTopology, node: Dict[str, Any]
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Merge defaults, kind, group and node settings, in that order of precedence.

    The kind is taken from the node, then its group, then the defaults.
    Labels are merged across the same layers rather than replaced.

    Returns:
        Tuple of (resolved config, sorted list of keys inherited from
        defaults/kinds/groups rather than set on the node itself)
    """
    body = parsed.topology
    defaults = body.defaults
    group_name = node.get("group")
    group = body.groups.get(str(group_name), {}) if group_name is not None else {}
    kind_name = node.get("kind") or group.get("kind") or defaults.get("kind")
    kind = body.kinds.get(str(kind_name), {}) if kind_name else {}

    resolved: Dict[str, Any] = {}
    labels: Dict[str, Any] = {}
    for layer in (defaults, kind, group, node):
        for key, value in layer.items():
            if key == "labels":
                labels.update(_mapping_or_empty(value))
            else:
                resolved[key] = value

    if kind_name:
        resolved["kind"] = kind_name
    if labels:
        resolved["labels"] = labels

    inherited = [key for key in resolved if key not in node and key != "labels"]
    return resolved, sorted(inherited)
