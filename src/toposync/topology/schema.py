"""
JSON schema for topology documents and the validation helper built on it.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import jsonschema
import yaml

logger = logging.getLogger(__name__)

_ENDPOINT = {
    "oneOf": [
        {"type": "string", "minLength": 1},
        {
            "type": "object",
            "properties": {
                "node": {"type": "string"},
                "interface": {"type": "string"},
                "mac": {"type": "string"},
            },
            "required": ["node"],
        },
    ]
}

_NODE = {
    "type": ["object", "null"],
    "properties": {
        "kind": {"type": "string"},
        "type": {"type": "string"},
        "image": {"type": "string"},
        "group": {"type": ["string", "integer"]},
        "labels": {"type": ["object", "null"]},
        "mgmt-ipv4": {"type": "string"},
        "mgmt-ipv6": {"type": "string"},
        "startup-config": {"type": "string"},
    },
}

TOPOLOGY_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "containerlab topology",
    "type": "object",
    "properties": {
        "name": {"type": ["string", "number"]},
        "prefix": {"type": ["string", "null"]},
        "mgmt": {"type": ["object", "null"]},
        "topology": {
            "type": "object",
            "properties": {
                "defaults": {"type": ["object", "null"]},
                "kinds": {
                    "type": ["object", "null"],
                    "additionalProperties": {"type": ["object", "null"]},
                },
                "groups": {
                    "type": ["object", "null"],
                    "additionalProperties": {"type": ["object", "null"]},
                },
                "nodes": {
                    "type": ["object", "null"],
                    "additionalProperties": _NODE,
                },
                "links": {
                    "type": ["array", "null"],
                    "items": {
                        "type": "object",
                        "properties": {
                            "type": {"type": "string"},
                            "endpoints": {
                                "type": "array",
                                "items": _ENDPOINT,
                                "minItems": 1,
                                "maxItems": 2,
                            },
                            "endpoint": _ENDPOINT,
                            "mtu": {"type": ["integer", "string"]},
                        },
                        "anyOf": [
                            {"required": ["endpoints"]},
                            {"required": ["endpoint"]},
                        ],
                    },
                },
            },
        },
    },
    "required": ["topology"],
}


@dataclass
class ValidationResult:
    """Outcome of validating topology text."""
    valid: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


def validate_topology_data(
    data: Any, schema: Optional[Dict[str, Any]] = None
) -> Tuple[bool, Optional[str]]:
    """
    Validates parsed topology data against the topology JSON schema.
    """
    schema = schema if schema is not None else TOPOLOGY_SCHEMA
    try:
        jsonschema.validate(instance=data, schema=schema)
        return True, None
    except jsonschema.exceptions.ValidationError as e:
        error_path = " -> ".join(map(str, e.path))
        if error_path:
            error_msg = f"Validation Error at '{error_path}': {e.message}"
        else:
            error_msg = f"Validation Error: {e.message}"
        logger.debug(f"Topology schema validation failed: {error_msg}")
        return False, error_msg


def validate_topology_text(text: str, check_schema: bool = True) -> ValidationResult:
    """
    Validate topology YAML text.

    Syntax errors and documents that are not a mapping with a `topology`
    mapping are invalid even when `check_schema` is False.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        return ValidationResult(False, f"YAML syntax error: {e}")

    if not isinstance(data, dict):
        return ValidationResult(False, "Topology document must be a mapping")
    if not isinstance(data.get("topology"), dict):
        return ValidationResult(False, "Missing or invalid 'topology' section")

    if check_schema:
        valid, error_msg = validate_topology_data(data)
        if not valid:
            return ValidationResult(False, error_msg)
    return ValidationResult(True)
