"""Data directory configuration and per-namespace schema resolution.

The config lives at ``<data>/.wcp/config.yaml``. It lists the namespaces,
their sequence counters, and optional schema extensions. A namespace may add
statuses and artifact types on top of the global defaults. Priorities and
item types are fixed.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError, NamespaceNotFoundError, ValidationError

DATA_PATH_ENV = "WCP_DATA_PATH"
CONFIG_DIR = ".wcp"
CONFIG_FILE = "config.yaml"

DEFAULT_SCHEMA: Dict[str, List[str]] = {
    "status": ["backlog", "todo", "in_progress", "in_review", "done", "cancelled"],
    "priority": ["urgent", "high", "medium", "low"],
    "type": ["feature", "bug", "chore", "spike"],
    "artifact_type": [
        "prd",
        "discovery",
        "architecture",
        "gameplan",
        "test-matrix",
        "progress",
        "review",
        "qa-plan",
        "adr",
    ],
}


def default_data_path() -> Path:
    """Resolve the data directory from ``WCP_DATA_PATH`` or the home default."""
    env_path = os.getenv(DATA_PATH_ENV)
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path.home() / "projects" / "wcp-data"


def config_path(data_path: Path | str) -> Path:
    return Path(data_path) / CONFIG_DIR / CONFIG_FILE


def read_config(data_path: Path | str) -> Dict[str, Any]:
    """Load the raw config mapping, guaranteeing a ``namespaces`` key."""
    path = config_path(data_path)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"WCP config not found: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"WCP config at {path} is not valid YAML: {e}") from e

    config = raw if isinstance(raw, dict) else {}
    if not isinstance(config.get("namespaces"), dict):
        config["namespaces"] = {}
    return config


def write_config(data_path: Path | str, config: Dict[str, Any]) -> None:
    path = config_path(data_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(config, sort_keys=False, allow_unicode=True), encoding="utf-8")


@dataclass(slots=True)
class ExtensibleField:
    """A schema field with global defaults plus namespace extensions."""

    defaults: List[str]
    extensions: List[str] = field(default_factory=list)

    @property
    def all(self) -> List[str]:
        return [*self.defaults, *self.extensions]

    def to_dict(self) -> Dict[str, List[str]]:
        return {"defaults": list(self.defaults), "extensions": list(self.extensions), "all": self.all}


@dataclass(slots=True)
class ResolvedSchema:
    status: ExtensibleField
    priority: List[str]
    type: List[str]
    artifact_type: ExtensibleField

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.to_dict(),
            "priority": {"values": list(self.priority)},
            "type": {"values": list(self.type)},
            "artifact_type": self.artifact_type.to_dict(),
        }


def _global_schema(config: Dict[str, Any]) -> Dict[str, List[str]]:
    override = config.get("schema") or {}
    return {key: list(override.get(key) or values) for key, values in DEFAULT_SCHEMA.items()}


def _namespace_entry(config: Dict[str, Any], namespace: str) -> Dict[str, Any]:
    entry = config["namespaces"].get(namespace)
    if entry is None:
        raise NamespaceNotFoundError(namespace)
    return entry


def resolve_schema(config: Dict[str, Any], namespace: Optional[str] = None) -> ResolvedSchema:
    """Merge the global schema with a namespace's extensions."""
    global_schema = _global_schema(config)
    ns_schema: Dict[str, Any] = {}
    if namespace:
        ns_schema = (config["namespaces"].get(namespace) or {}).get("schema") or {}

    return ResolvedSchema(
        status=ExtensibleField(global_schema["status"], list(ns_schema.get("statuses") or [])),
        priority=global_schema["priority"],
        type=global_schema["type"],
        artifact_type=ExtensibleField(
            global_schema["artifact_type"], list(ns_schema.get("artifact_types") or [])
        ),
    )


def _add_extensions(config: Dict[str, Any], namespace: str, key: str, schema_key: str, values: List[str]) -> List[str]:
    entry = _namespace_entry(config, namespace)
    defaults = _global_schema(config)[schema_key]
    schema = entry.setdefault("schema", {}) or {}
    entry["schema"] = schema
    current = schema.setdefault(key, []) or []
    schema[key] = current

    added: List[str] = []
    for value in values:
        if value in defaults or value in current:
            continue
        current.append(value)
        added.append(value)

    _cleanup_namespace_schema(entry)
    return added


def _remove_extensions(config: Dict[str, Any], namespace: str, key: str, schema_key: str, values: List[str]) -> List[str]:
    entry = _namespace_entry(config, namespace)
    defaults = _global_schema(config)[schema_key]
    for value in values:
        if value in defaults:
            raise ValidationError(
                schema_key,
                f"Cannot remove default {schema_key.replace('_', ' ')} '{value}'. Only namespace extensions can be removed.",
            )

    schema = entry.get("schema") or {}
    current = schema.get(key) or []
    removed = [value for value in current if value in values]
    if removed:
        schema[key] = [value for value in current if value not in values]
    _cleanup_namespace_schema(entry)
    return removed


def _cleanup_namespace_schema(entry: Dict[str, Any]) -> None:
    schema = entry.get("schema")
    if schema is None:
        return
    for key in ("statuses", "artifact_types"):
        if key in schema and not schema[key]:
            del schema[key]
    if not schema:
        del entry["schema"]


def add_namespace_statuses(config: Dict[str, Any], namespace: str, statuses: List[str]) -> List[str]:
    return _add_extensions(config, namespace, "statuses", "status", statuses)


def remove_namespace_statuses(config: Dict[str, Any], namespace: str, statuses: List[str]) -> List[str]:
    return _remove_extensions(config, namespace, "statuses", "status", statuses)


def add_namespace_artifact_types(config: Dict[str, Any], namespace: str, types: List[str]) -> List[str]:
    return _add_extensions(config, namespace, "artifact_types", "artifact_type", types)


def remove_namespace_artifact_types(config: Dict[str, Any], namespace: str, types: List[str]) -> List[str]:
    return _remove_extensions(config, namespace, "artifact_types", "artifact_type", types)
