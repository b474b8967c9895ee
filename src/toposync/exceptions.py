"""
Topology Synchronization Exception Hierarchy

This module defines the exception hierarchy used by the synchronization engine,
the topology reader/adapter and the deployment probe. Every exception carries
rich context so failures can be logged, surfaced to the panel and handled
programmatically.

The hierarchy is designed to:
1. Map each failure category of a synchronization pass to one exception type
2. Include rich context information (lab name, file path, timestamps)
3. Provide user-facing messages suitable for the panel's error display
"""

import time
from typing import Any, Dict, Optional


class TopoSyncError(Exception):
    """
    Base exception class for all topology synchronization errors.

    Attributes:
        error_code: Unique error code for programmatic handling
        lab_name: Name of the lab the error relates to (if applicable)
        path: Topology file path the error relates to (if applicable)
        timestamp: When the error occurred
        context: Additional context information
        user_message: User-friendly error message
        developer_message: Detailed technical error message
        suggestion: Suggested fix or next steps (if applicable)
    """

    def __init__(
        self,
        message: str,
        error_code: str = "TOPOSYNC_ERROR",
        lab_name: Optional[str] = None,
        path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        """
        Initialize synchronization error with rich context.

        Args:
            message: Technical error message for developers
            error_code: Unique error code for programmatic handling
            lab_name: Lab where the error occurred
            path: Topology file involved
            context: Additional context information
            user_message: User-friendly error message
            suggestion: Suggested fix or next steps
        """
        super().__init__(message)
        self.error_code = error_code
        self.lab_name = lab_name
        self.path = str(path) if path is not None else None
        self.timestamp = time.time()
        self.context = context or {}
        self.user_message = user_message or message
        self.developer_message = message
        self.suggestion = suggestion

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.developer_message,
            "user_message": self.user_message,
            "lab_name": self.lab_name,
            "path": self.path,
            "timestamp": self.timestamp,
            "context": self.context,
            "suggestion": self.suggestion,
        }

    def __str__(self) -> str:
        """String representation with context."""
        parts = [f"[{self.error_code}]"]
        if self.lab_name:
            parts.append(f"Lab:{self.lab_name}")
        parts.append(self.developer_message)
        return " ".join(parts)


# =============================================================================
# TOPOLOGY SOURCE ERRORS
# =============================================================================

class TopologySourceError(TopoSyncError):
    """Base class for errors reading, validating or converting the topology file."""

    def __init__(self, message: str, **kwargs):
        error_code = kwargs.pop("error_code", "TOPOLOGY_SOURCE_ERROR")
        super().__init__(message, error_code=error_code, **kwargs)


class TopologyReadError(TopologySourceError):
    """
    Raised when the topology file cannot be read.

    Examples:
    - File missing or deleted between the change event and the read
    - Permission denied
    """

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("user_message", f"Failed to read topology file: {message}")
        kwargs.setdefault("suggestion", "Check that the file exists and is readable.")
        super().__init__(message, error_code="TOPOLOGY_READ_ERROR", **kwargs)


class TopologyValidationError(TopologySourceError):
    """
    Raised when the topology text is not a valid topology document.

    Examples:
    - YAML syntax error
    - Well-formed YAML whose shape does not match the topology schema
    """

    def __init__(self, message: str, reason: Optional[str] = None, **kwargs):
        self.reason = reason or message
        context = kwargs.pop("context", {})
        context["reason"] = self.reason
        kwargs.setdefault("user_message", f"Invalid topology: {self.reason}")
        kwargs.setdefault("suggestion", "Fix the topology file and save it again.")
        super().__init__(
            message,
            error_code="TOPOLOGY_INVALID",
            context=context,
            **kwargs
        )


class TopologyConvertError(TopologySourceError):
    """Raised when topology text cannot be turned into a graph model."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("user_message", f"Failed to build topology graph: {message}")
        super().__init__(message, error_code="TOPOLOGY_CONVERT_ERROR", **kwargs)


class ArtifactWriteError(TopoSyncError):
    """Raised when derived artifacts (graph/environment JSON) cannot be persisted."""

    def __init__(self, message: str, artifact: Optional[str] = None, **kwargs):
        self.artifact = artifact
        context = kwargs.pop("context", {})
        if artifact:
            context["artifact"] = artifact
        kwargs.setdefault("user_message", f"Failed to write topology artifacts: {message}")
        super().__init__(
            message,
            error_code="ARTIFACT_WRITE_ERROR",
            context=context,
            **kwargs
        )


class AnnotationWriteError(TopoSyncError):
    """Raised when the annotations file beside a topology cannot be written."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("user_message", f"Failed to save annotations: {message}")
        super().__init__(message, error_code="ANNOTATION_WRITE_ERROR", **kwargs)


# =============================================================================
# DEPLOYMENT ERRORS
# =============================================================================

class DeploymentProbeError(TopoSyncError):
    """
    Raised by deployment sources when inspection fails.

    The probe downgrades this to an Unknown deployment state; it never
    escapes a synchronization pass.
    """

    def __init__(self, message: str, command: Optional[str] = None, **kwargs):
        self.command = command
        context = kwargs.pop("context", {})
        if command:
            context["command"] = command
        super().__init__(
            message,
            error_code="DEPLOYMENT_PROBE_ERROR",
            context=context,
            **kwargs
        )


# =============================================================================
# CONCURRENCY ERRORS
# =============================================================================

class ModeSwitchInProgressError(TopoSyncError):
    """Raised when a mode switch is requested while another one is running."""

    def __init__(self, message: str = "Mode switch already in progress", **kwargs):
        kwargs.setdefault("user_message", message)
        kwargs.setdefault("suggestion", "Wait for the current mode switch to finish.")
        super().__init__(message, error_code="MODE_SWITCH_IN_PROGRESS", **kwargs)


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class SyncConfigurationError(TopoSyncError):
    """Raised when a synchronization configuration is invalid."""

    def __init__(self, message: str, config_field: Optional[str] = None, **kwargs):
        self.config_field = config_field
        context = kwargs.pop("context", {})
        if config_field:
            context["config_field"] = config_field
        super().__init__(
            message,
            error_code="SYNC_CONFIG_ERROR",
            context=context,
            **kwargs
        )
