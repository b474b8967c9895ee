"""
Topology documents: parsing, validation, conversion to graph models and
annotation overlays.
"""

from .models import ParsedTopology, TopologyBody, resolve_node_config
from .schema import TOPOLOGY_SCHEMA, ValidationResult, validate_topology_data, validate_topology_text
from .annotations import AnnotationSet, AnnotationStore, NodeAnnotation
from .graph import GraphElement, GraphModel
from .links import LinkNormalizer, split_endpoint
from .source import TopologySourceReader, build_default_topology, minimal_topology
from .adapter import ArtifactWriter, TopologyAdapter, parse_topology

__all__ = [
    'ParsedTopology',
    'TopologyBody',
    'resolve_node_config',
    'TOPOLOGY_SCHEMA',
    'ValidationResult',
    'validate_topology_data',
    'validate_topology_text',
    'AnnotationSet',
    'AnnotationStore',
    'NodeAnnotation',
    'GraphElement',
    'GraphModel',
    'LinkNormalizer',
    'split_endpoint',
    'TopologySourceReader',
    'build_default_topology',
    'minimal_topology',
    'ArtifactWriter',
    'TopologyAdapter',
    'parse_topology',
]
