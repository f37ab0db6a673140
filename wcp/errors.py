"""Error types raised by the WCP record store.

Every error carries a stable machine-readable ``code`` so the MCP layer can
report failures as ``{"error": code, "message": ...}`` payloads.
"""

from __future__ import annotations

from typing import Dict, Optional


class WcpError(Exception):
    """Base class for all domain errors."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        """Convert to the error payload returned by tools."""
        return {"error": self.code, "message": self.message}


class NotFoundError(WcpError):
    """A work item does not exist."""

    def __init__(self, item_id: str, message: Optional[str] = None):
        super().__init__("NOT_FOUND", message or f"Item {item_id} not found")
        self.item_id = item_id


class ArtifactNotFoundError(NotFoundError):
    def __init__(self, item_id: str, filename: str):
        super().__init__(item_id, f"Artifact '{filename}' not found for {item_id}")
        self.filename = filename


class NamespaceNotFoundError(WcpError):
    def __init__(self, namespace: str):
        super().__init__(
            "NAMESPACE_NOT_FOUND",
            f"Namespace {namespace} not found. Use wcp_namespaces to see available namespaces.",
        )
        self.namespace = namespace


class ValidationError(WcpError):
    def __init__(self, field: str, message: str):
        super().__init__("VALIDATION_ERROR", f"Invalid {field}: {message}")
        self.field = field


class ConfigError(WcpError):
    """The data directory or its config file is missing or unreadable."""

    def __init__(self, message: str):
        super().__init__("CONFIG_ERROR", message)
