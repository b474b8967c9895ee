"""
Topology-to-graph adapter.

`TopologyAdapter.convert` turns topology text, an optional deployment
snapshot and annotation overlays into a `GraphModel`. It has no side
effects; persisting derived artifacts is the job of `ArtifactWriter`.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple, Union

import yaml
from pydantic import ValidationError

from ..config import TopologyDefaults
from ..deployment.records import ContainerRecord, DeploymentSnapshot, find_container
from ..exceptions import ArtifactWriteError, TopologyConvertError
from .annotations import AnnotationSet
from .graph import GraphElement, GraphModel
from .links import (
    BRIDGE_KINDS,
    LinkNormalizer,
    edge_class,
    extended_link_props,
    is_special_node,
    special_node_for,
    split_endpoint,
)
from .models import ParsedTopology

logger = logging.getLogger(__name__)

DEFAULT_ICON = "pe"
GROUP_ROLE = "group"
CLOUD_ROLE = "cloud"


def parse_topology(text: str, path: Optional[Union[str, Path]] = None) -> ParsedTopology:
    """Parse topology text, wrapping failures in TopologyConvertError."""
    try:
        return ParsedTopology.from_text(text)
    except (yaml.YAMLError, ValueError, ValidationError) as e:
        raise TopologyConvertError(
            f"Cannot parse topology: {e}",
            path=str(path) if path else None,
        ) from e


def _position_from_labels(labels: Dict[str, Any]) -> Optional[Dict[str, float]]:
    try:
        x = labels.get("graph-posX")
        y = labels.get("graph-posY")
        if x is None or y is None:
            return None
        return {"x": float(x), "y": float(y)}
    except (TypeError, ValueError):
        return None


class TopologyAdapter:
    """Converts topology documents into graph models."""

    def __init__(self, defaults: Optional[TopologyDefaults] = None):
        self.defaults = defaults or TopologyDefaults()

    def convert(
        self,
        text: str,
        snapshot: Optional[DeploymentSnapshot] = None,
        source_path: Optional[Union[str, Path]] = None,
        annotations: Optional[AnnotationSet] = None,
    ) -> GraphModel:
        """
        Build the graph model for a topology.

        Args:
            text: Topology YAML text
            snapshot: Deployment data used for container state and live link state
            source_path: Topology file path, used for diagnostics
            annotations: Overlays for positions, icons and groups

        Raises:
            TopologyConvertError: If the text cannot be parsed
        """
        parsed = parse_topology(text, source_path)
        return self.convert_parsed(parsed, snapshot, annotations)

    def convert_parsed(
        self,
        parsed: ParsedTopology,
        snapshot: Optional[DeploymentSnapshot] = None,
        annotations: Optional[AnnotationSet] = None,
    ) -> GraphModel:
        annotations = annotations or AnnotationSet()
        elements: List[GraphElement] = []
        parents: Dict[str, GraphElement] = {}

        for node_name in parsed.topology.nodes:
            element = self._node_element(parsed, node_name, snapshot, annotations)
            parent_id = element.data.get("parent")
            if parent_id and parent_id not in parents:
                parents[parent_id] = self._group_element(parent_id)
            elements.append(element)

        special, edges = self._link_elements(parsed, snapshot)
        elements.extend(self._special_element(node, annotations) for node in special)
        elements.extend(edges)

        logger.debug(
            f"Converted lab '{parsed.name}': {len(parsed.topology.nodes)} node(s), "
            f"{len(edges)} edge(s), {len(parents)} group(s)"
        )
        return GraphModel(
            elements=list(parents.values()) + elements,
            annotations=annotations,
            lab_name=parsed.name,
        )

    # -- nodes -----------------------------------------------------------------

    def _node_element(
        self,
        parsed: ParsedTopology,
        node_name: str,
        snapshot: Optional[DeploymentSnapshot],
        annotations: AnnotationSet,
    ) -> GraphElement:
        resolved, inherited = parsed.resolve_node(node_name)
        labels = resolved.get("labels") or {}
        longname = parsed.container_name(node_name, self.defaults.container_prefix)
        container = find_container(snapshot, longname, parsed.name)
        overlay = annotations.node(node_name)

        group = overlay.group if overlay and overlay.group else labels.get("graph-group")
        level = overlay.level if overlay and overlay.level else labels.get("graph-level")
        parent = f"{group}:{level or 1}" if group else ""
        icon = (overlay.icon if overlay and overlay.icon else None) or labels.get("graph-icon")
        if resolved.get("kind") in BRIDGE_KINDS:
            icon = icon or "bridge"

        position = None
        if overlay and overlay.position:
            position = dict(overlay.position)
        if position is None:
            position = _position_from_labels(labels)

        extra = {
            "kind": resolved.get("kind", ""),
            "type": resolved.get("type", ""),
            "image": resolved.get("image", ""),
            "group": resolved.get("group", ""),
            "labels": labels,
            "longname": longname,
            "inherited": inherited,
            "mgmtIpv4Address": resolved.get("mgmt-ipv4", ""),
            "mgmtIpv6Address": resolved.get("mgmt-ipv6", ""),
            "state": "",
        }
        if container is not None:
            extra.update(self._container_data(container))

        data = {
            "id": node_name,
            "name": node_name,
            "weight": "30",
            "parent": parent,
            "topoViewerRole": icon or DEFAULT_ICON,
            "extraData": extra,
        }
        return GraphElement(
            "nodes",
            data,
            position=position or {"x": 0.0, "y": 0.0},
        )

    @staticmethod
    def _container_data(container: ContainerRecord) -> Dict[str, Any]:
        data = {"state": container.state or ""}
        if container.image:
            data["image"] = container.image
        if container.mgmt_ipv4:
            data["mgmtIpv4Address"] = container.mgmt_ipv4
        if container.mgmt_ipv6:
            data["mgmtIpv6Address"] = container.mgmt_ipv6
        return data

    @staticmethod
    def _group_element(parent_id: str) -> GraphElement:
        name, _, level = parent_id.partition(":")
        return GraphElement(
            "nodes",
            {
                "id": parent_id,
                "name": name,
                "weight": "1000",
                "topoViewerRole": GROUP_ROLE,
                "extraData": {"level": level},
            },
        )

    @staticmethod
    def _special_element(node, annotations: AnnotationSet) -> GraphElement:
        overlay = annotations.node(node.id)
        position = dict(overlay.position) if overlay and overlay.position else None
        return GraphElement(
            "nodes",
            {
                "id": node.id,
                "name": node.label,
                "weight": "30",
                "parent": "",
                "topoViewerRole": CLOUD_ROLE,
                "extraData": {"kind": node.type},
            },
            position=position or {"x": 0.0, "y": 0.0},
        )

    # -- links -----------------------------------------------------------------

    def _link_elements(
        self, parsed: ParsedTopology, snapshot: Optional[DeploymentSnapshot]
    ) -> Tuple[list, List[GraphElement]]:
        normalizer = LinkNormalizer()
        nodes = parsed.topology.nodes
        special: Dict[str, Any] = {}
        edges: List[GraphElement] = []
        seen_ids: Set[str] = set()

        for index, link in enumerate(parsed.topology.links):
            normalized = normalizer.normalize(link)
            if normalized is None:
                logger.warning(f"Skipping invalid link #{index} in lab '{parsed.name}': {link}")
                continue

            source, source_iface = split_endpoint(normalized.end_a)
            target, target_iface = split_endpoint(normalized.end_b)
            if not source or not target:
                logger.warning(f"Skipping link #{index} with empty endpoint in lab '{parsed.name}'")
                continue

            ends = []
            for node, iface in ((source, source_iface), (target, target_iface)):
                info = special_node_for(node, iface)
                if info is not None:
                    special.setdefault(info.id, info)
                    ends.append(info.id)
                else:
                    ends.append(node)
            source_id, target_id = ends

            edge_id = f"Clab-Link{index}"
            if edge_id in seen_ids:
                continue
            seen_ids.add(edge_id)

            edges.append(self._edge_element(
                parsed, snapshot, edge_id,
                (source, source_id, source_iface),
                (target, target_id, target_iface),
                normalized.raw,
                nodes,
            ))
        return list(special.values()), edges

    def _edge_element(
        self,
        parsed: ParsedTopology,
        snapshot: Optional[DeploymentSnapshot],
        edge_id: str,
        source: Tuple[str, str, str],
        target: Tuple[str, str, str],
        link: Dict[str, Any],
        nodes: Dict[str, Dict[str, Any]],
    ) -> GraphElement:
        source_node, source_id, source_iface = source
        target_node, target_id, target_iface = target
        source_long = parsed.container_name(source_node, self.defaults.container_prefix)
        target_long = parsed.container_name(target_node, self.defaults.container_prefix)

        extra: Dict[str, Any] = {
            "yamlSourceNodeId": source_node,
            "yamlTargetNodeId": target_node,
            "clabSourceLongName": source_long,
            "clabTargetLongName": target_long,
            "clabSourcePort": source_iface,
            "clabTargetPort": target_iface,
        }
        extra.update(extended_link_props(link))

        states = {}
        for prefix, node, long_name, iface in (
            ("clabSource", source_node, source_long, source_iface),
            ("clabTarget", target_node, target_long, target_iface),
        ):
            states[prefix] = None
            container = find_container(snapshot, long_name, parsed.name)
            record = container.interface(iface) if container and iface else None
            if record is None:
                continue
            states[prefix] = record.state
            extra.update({
                f"{prefix}MacAddress": record.mac or "",
                f"{prefix}Mtu": record.mtu if record.mtu is not None else "",
                f"{prefix}Type": record.type or "",
                f"{prefix}InterfaceState": record.state or "",
            })
            stats = record.stats()
            if stats:
                extra[f"{prefix}Stats"] = stats

        classes = edge_class(
            is_special_node(nodes.get(source_node), source_node),
            is_special_node(nodes.get(target_node), target_node),
            states["clabSource"],
            states["clabTarget"],
        ) if snapshot else ""

        return GraphElement(
            "edges",
            {
                "id": edge_id,
                "source": source_id,
                "target": target_id,
                "sourceEndpoint": source_iface,
                "targetEndpoint": target_iface,
                "extraData": extra,
            },
            classes=classes,
        )


class ArtifactWriter:
    """
    Persists derived artifacts of a conversion.

    Writes `graph.json` (the graph model) and `environment.json` (lab
    metadata) under `<base_dir>/<lab name>/`.
    """

    GRAPH_FILE = "graph.json"
    ENVIRONMENT_FILE = "environment.json"

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)

    def lab_dir(self, lab_name: str) -> Path:
        return self.base_dir / (lab_name or "_unnamed")

    async def write(
        self,
        lab_name: str,
        graph: GraphModel,
        text: str,
        topology_path: Optional[Union[str, Path]] = None,
        deployment_state: Optional[str] = None,
    ) -> Path:
        """
        Write both artifacts and return the lab artifact directory.

        Raises:
            ArtifactWriteError: If the directory or a file cannot be written
        """
        target = self.lab_dir(lab_name)
        environment = {
            "labName": lab_name,
            "topologyPath": str(topology_path) if topology_path else None,
            "deploymentState": deployment_state,
            "nodeCount": len(graph.nodes),
            "edgeCount": len(graph.edges),
            "topologyBytes": len(text.encode("utf-8")),
        }
        for filename, payload in (
            (self.GRAPH_FILE, graph.to_dict()),
            (self.ENVIRONMENT_FILE, environment),
        ):
            path = target / filename
            try:
                target.mkdir(parents=True, exist_ok=True)
                with open(path, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2, default=str)
            except OSError as e:
                raise ArtifactWriteError(str(e), artifact=str(path), lab_name=lab_name) from e
        logger.debug(f"Wrote artifacts for lab '{lab_name}' to {target}")
        return target
