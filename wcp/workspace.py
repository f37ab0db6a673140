"""Filesystem storage for WCP namespaces, work items and artifacts.

Layout under the data directory::

    .wcp/config.yaml          namespaces, counters, schema extensions
    <NS>/<NS>-<N>.md          work item (YAML frontmatter + body + activity)
    <NS>/<NS>-<N>/<filename>  artifacts attached to that item
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .config import (
    add_namespace_artifact_types,
    add_namespace_statuses,
    config_path,
    read_config,
    remove_namespace_artifact_types,
    remove_namespace_statuses,
    resolve_schema,
    write_config,
)
from .errors import (
    ArtifactNotFoundError,
    ConfigError,
    NamespaceNotFoundError,
    NotFoundError,
    ValidationError,
)
from .models import (
    Artifact,
    ArtifactContent,
    CreateItemInput,
    ItemFilters,
    ItemSummary,
    Namespace,
    UpdateItemInput,
    WorkItem,
)
from .parser import (
    ParsedWorkItem,
    parse_work_item,
    serialize_work_item,
    update_artifact_frontmatter,
)
from .pipeline import ArtifactState, PipelineStage, detect_pipeline_stage
from .snapshot import APPROVAL_KEY, APPROVED_AT_KEY, build_artifact_states
from .validation import (
    NAMESPACE_PATTERN,
    now,
    parse_callsign,
    today,
    validate_artifact_type,
    validate_filename,
    validate_priority,
    validate_status,
    validate_type,
    validate_verdict,
)
from .wcp_logging import (
    log_artifact_approved,
    log_artifact_attached,
    log_item_created,
    log_item_updated,
    log_operation,
    log_performance,
    log_stage_detected,
    observability_hooks,
)

SCHEMA_ACTIONS = {
    "add_statuses": add_namespace_statuses,
    "remove_statuses": remove_namespace_statuses,
    "add_artifact_types": add_namespace_artifact_types,
    "remove_artifact_types": remove_namespace_artifact_types,
}

logger = logging.getLogger("wcp.workspace")


class Workspace:
    """Read and write WCP records inside one data directory."""

    def __init__(self, data_path: Path | str):
        """Open an existing data directory; it must already contain ``.wcp/config.yaml``."""
        self.root = Path(data_path).expanduser().resolve()
        if not self.root.exists():
            raise ConfigError(
                f"WCP data directory not found: {self.root}\n"
                "Create it and add .wcp/config.yaml to get started."
            )
        if not self.config_path.exists():
            raise ConfigError(
                f"WCP config not found: {self.config_path}\n"
                "Create .wcp/config.yaml with namespace definitions."
            )
        logger.debug(f"Workspace opened at {self.root}")

    @property
    def config_path(self) -> Path:
        return config_path(self.root)

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def _namespace_for(self, item_id: str, config: Optional[Dict[str, Any]] = None) -> Tuple[str, Dict[str, Any]]:
        namespace, _ = parse_callsign(item_id)
        config = config if config is not None else read_config(self.root)
        if namespace not in config["namespaces"]:
            raise NamespaceNotFoundError(namespace)
        return namespace, config

    def _item_path(self, namespace: str, item_id: str) -> Path:
        return self.root / namespace / f"{item_id}.md"

    def _artifact_dir(self, namespace: str, item_id: str) -> Path:
        return self.root / namespace / item_id

    def _existing_item_path(self, item_id: str) -> Tuple[str, Dict[str, Any], Path]:
        namespace, config = self._namespace_for(item_id)
        path = self._item_path(namespace, item_id)
        if not path.exists():
            raise NotFoundError(item_id)
        return namespace, config, path

    def _read_parsed(self, path: Path) -> ParsedWorkItem:
        return parse_work_item(path.read_text(encoding="utf-8"))

    def _write_parsed(self, path: Path, parsed: ParsedWorkItem) -> None:
        parsed.frontmatter["updated"] = today()
        path.write_text(serialize_work_item(parsed), encoding="utf-8")

    # ------------------------------------------------------------------
    # Namespaces and listings
    # ------------------------------------------------------------------

    def list_namespaces(self) -> List[Namespace]:
        config = read_config(self.root)
        namespaces: List[Namespace] = []
        for key, entry in config["namespaces"].items():
            entry = entry or {}
            ns_dir = self.root / key
            item_count = len(list(ns_dir.glob("*.md"))) if ns_dir.is_dir() else 0
            namespaces.append(
                Namespace(
                    key=key,
                    name=str(entry.get("name", key)),
                    description=str(entry.get("description", "")),
                    item_count=item_count,
                )
            )
        return namespaces

    def list_items(self, namespace: str, filters: Optional[ItemFilters] = None) -> List[ItemSummary]:
        """List item summaries in a namespace, most recently updated first."""
        config = read_config(self.root)
        if namespace not in config["namespaces"]:
            raise NamespaceNotFoundError(namespace)

        ns_dir = self.root / namespace
        if not ns_dir.is_dir():
            return []

        items: List[ItemSummary] = []
        for path in sorted(ns_dir.glob("*.md")):
            try:
                parsed = self._read_parsed(path)
            except (yaml.YAMLError, ValueError) as e:
                logger.warning(f"Skipping {path.name}: malformed frontmatter ({e})")
                continue

            summary = ItemSummary.from_frontmatter(parsed.frontmatter, fallback_id=path.stem)
            if filters and not filters.matches(summary):
                continue
            items.append(summary)

        items.sort(key=lambda summary: _sort_key(summary.updated), reverse=True)
        return items

    # ------------------------------------------------------------------
    # Work items
    # ------------------------------------------------------------------

    def get_item(self, item_id: str) -> WorkItem:
        namespace, _, path = self._existing_item_path(item_id)
        content = path.read_text(encoding="utf-8")

        try:
            parsed = parse_work_item(content)
        except (yaml.YAMLError, ValueError) as e:
            logger.warning(f"Failed to parse frontmatter for {item_id}: {e}")
            return WorkItem(
                id=item_id,
                title="(parse error)",
                status="unknown",
                created="",
                updated="",
                body=content,
                warning=f"Failed to parse frontmatter for {item_id}. Returning raw file content.",
            )

        fm = parsed.frontmatter
        summary = ItemSummary.from_frontmatter(fm, fallback_id=item_id)
        raw_artifacts = fm.get("artifacts") or []
        return WorkItem(
            id=summary.id,
            title=summary.title,
            status=summary.status,
            created=summary.created,
            updated=summary.updated,
            priority=summary.priority,
            type=summary.type,
            project=summary.project,
            assignee=summary.assignee,
            parent=summary.parent,
            body=parsed.body,
            activity=parsed.activity,
            artifacts=[Artifact.from_dict(a) for a in raw_artifacts if isinstance(a, dict)],
        )

    @log_performance("create_item")
    def create_item(self, namespace: str, data: CreateItemInput) -> str:
        """Create a work item and return its callsign."""
        config = read_config(self.root)
        if namespace not in config["namespaces"]:
            raise NamespaceNotFoundError(namespace)
        if not NAMESPACE_PATTERN.match(namespace):
            raise ValidationError("namespace", f"'{namespace}' must be upper-case letters only")
        if not data.title or not data.title.strip():
            raise ValidationError("title", "Title cannot be empty")

        schema = resolve_schema(config, namespace)
        status = data.status or "backlog"
        validate_status(status, schema.status.all)
        if data.priority:
            validate_priority(data.priority, schema.priority)
        if data.type:
            validate_type(data.type, schema.type)

        entry = config["namespaces"][namespace]
        number = int(entry.get("next", 1))
        entry["next"] = number + 1
        callsign = f"{namespace}-{number}"
        created = today()

        fm: Dict[str, Any] = {
            "id": callsign,
            "title": data.title,
            "status": status,
            "created": created,
            "updated": created,
        }
        for name in ("priority", "type", "project", "assignee", "parent"):
            value = getattr(data, name)
            if value:
                fm[name] = value
        if data.artifacts:
            fm["artifacts"] = [artifact.to_dict() for artifact in data.artifacts]

        with log_operation("create_item", namespace=namespace, item_id=callsign):
            ns_dir = self.root / namespace
            ns_dir.mkdir(parents=True, exist_ok=True)
            # counter first, so a failed item write never reuses a callsign
            write_config(self.root, config)
            path = self._item_path(namespace, callsign)
            path.write_text(
                serialize_work_item(ParsedWorkItem(frontmatter=fm, body=data.body or "")),
                encoding="utf-8",
            )

        log_item_created(callsign, namespace, status=status)
        return callsign

    @log_performance("update_item")
    def update_item(self, item_id: str, changes: UpdateItemInput) -> None:
        namespace, config, path = self._existing_item_path(item_id)

        schema = resolve_schema(config, namespace)
        if changes.status:
            validate_status(changes.status, schema.status.all)
        if changes.priority:
            validate_priority(changes.priority, schema.priority)
        if changes.type:
            validate_type(changes.type, schema.type)

        parsed = self._read_parsed(path)
        fm = parsed.frontmatter

        old_status = fm.get("status")
        if changes.status is not None and changes.status != old_status:
            parsed.append_activity(f"**system** — {now()}\nStatus changed: {old_status} → {changes.status}")

        for name in ("title", "status", "priority", "type", "project", "assignee", "parent"):
            value = getattr(changes, name)
            if value is not None:
                fm[name] = value

        if changes.add_artifacts:
            existing = fm.get("artifacts") or []
            fm["artifacts"] = [*existing, *(artifact.to_dict() for artifact in changes.add_artifacts)]

        if changes.body is not None:
            parsed.body = changes.body

        self._write_parsed(path, parsed)
        log_item_updated(item_id, changes.changed_fields())

    def add_comment(self, item_id: str, author: str, body: str) -> None:
        if not body or not body.strip():
            raise ValidationError("body", "Comment body cannot be empty")
        if not author or not author.strip():
            raise ValidationError("author", "Comment author cannot be empty")

        _, _, path = self._existing_item_path(item_id)
        parsed = self._read_parsed(path)
        parsed.append_activity(f"**{author.strip()}** — {now()}\n{body.strip()}")
        self._write_parsed(path, parsed)
        observability_hooks.log_workflow_event("comment_added", item_id=item_id, author=author.strip())

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    @log_performance("attach_artifact")
    def attach_artifact(self, item_id: str, artifact_type: str, title: str, filename: str, content: str) -> Artifact:
        """Store an artifact file and register it on the item, replacing any same-named one."""
        validate_filename(filename)
        if not content:
            raise ValidationError("content", "Artifact content cannot be empty")

        namespace, config, path = self._existing_item_path(item_id)
        validate_artifact_type(artifact_type, resolve_schema(config, namespace).artifact_type.all)

        with log_operation("attach_artifact", item_id=item_id, filename=filename):
            artifact_dir = self._artifact_dir(namespace, item_id)
            artifact_dir.mkdir(parents=True, exist_ok=True)
            (artifact_dir / filename).write_text(content, encoding="utf-8")

            artifact = Artifact(type=artifact_type, title=title, url=f"{namespace}/{item_id}/{filename}")
            parsed = self._read_parsed(path)
            references = list(parsed.frontmatter.get("artifacts") or [])
            for index, reference in enumerate(references):
                if isinstance(reference, dict) and reference.get("url") == artifact.url:
                    references[index] = artifact.to_dict()
                    break
            else:
                references.append(artifact.to_dict())
            parsed.frontmatter["artifacts"] = references
            self._write_parsed(path, parsed)

        log_artifact_attached(item_id, filename, artifact_type, size=len(content))
        return artifact

    def _artifact_path(self, item_id: str, filename: str) -> Tuple[str, Path, Path]:
        validate_filename(filename)
        namespace, _, item_path = self._existing_item_path(item_id)
        artifact_path = self._artifact_dir(namespace, item_id) / filename
        if not artifact_path.is_file():
            raise ArtifactNotFoundError(item_id, filename)
        return namespace, item_path, artifact_path

    def get_artifact(self, item_id: str, filename: str) -> ArtifactContent:
        namespace, item_path, artifact_path = self._artifact_path(item_id, filename)
        content = artifact_path.read_text(encoding="utf-8")

        url = f"{namespace}/{item_id}/{filename}"
        artifact = Artifact(type="unknown", title=filename, url=url)
        try:
            references = self._read_parsed(item_path).frontmatter.get("artifacts") or []
        except (yaml.YAMLError, ValueError):
            references = []
        for reference in references:
            if isinstance(reference, dict) and reference.get("url") == url:
                artifact = Artifact.from_dict(reference)
                break

        return ArtifactContent(artifact=artifact, content=content)

    def read_artifact_text(self, item_id: str, filename: str) -> str:
        return self.get_artifact(item_id, filename).content

    @log_performance("approve_artifact")
    def approve_artifact(self, item_id: str, filename: str, verdict: str) -> None:
        """Record a human verdict in the artifact's frontmatter and the item's activity log."""
        validate_verdict(verdict)
        _, item_path, artifact_path = self._artifact_path(item_id, filename)

        with log_operation("approve_artifact", item_id=item_id, filename=filename, verdict=verdict):
            original = artifact_path.read_text(encoding="utf-8")
            try:
                updated = update_artifact_frontmatter(
                    original,
                    **{
                        APPROVAL_KEY: verdict,
                        APPROVED_AT_KEY: now() if verdict == "approved" else None,
                    },
                )
            except (yaml.YAMLError, ValueError) as e:
                raise ValidationError(
                    "artifact", f"'{filename}' has malformed frontmatter and cannot be approved: {e}"
                ) from e
            artifact_path.write_text(updated, encoding="utf-8")

            parsed = self._read_parsed(item_path)
            parsed.append_activity(f"**system** — {now()}\nArtifact {filename}: {verdict}")
            self._write_parsed(item_path, parsed)

        log_artifact_approved(item_id, filename, verdict)

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def get_schema(self, namespace: Optional[str] = None) -> Dict[str, Any]:
        config = read_config(self.root)
        if namespace and namespace not in config["namespaces"]:
            raise NamespaceNotFoundError(namespace)
        return resolve_schema(config, namespace).to_dict()

    def update_schema(self, action: str, namespace: str, values: List[str]) -> List[str]:
        """Apply a schema extension change and persist the config; returns what changed."""
        handler = SCHEMA_ACTIONS.get(action)
        if handler is None:
            raise ValidationError(
                "action", f"'{action}'. Valid values: view, {', '.join(SCHEMA_ACTIONS)}"
            )
        if not values:
            raise ValidationError("values", "Provide at least one value")

        config = read_config(self.root)
        changed = handler(config, namespace, values)
        if changed:
            write_config(self.root, config)
            observability_hooks.log_workflow_event(
                "schema_updated", namespace=namespace, action=action, values=changed
            )
        return changed

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def artifact_states(self, item: WorkItem) -> Dict[str, ArtifactState]:
        return build_artifact_states(item, lambda filename: self.read_artifact_text(item.id, filename))

    def pipeline_stage(self, item_id: str) -> Tuple[WorkItem, PipelineStage, Dict[str, ArtifactState]]:
        """Load an item, snapshot its artifacts and classify its stage."""
        item = self.get_item(item_id)
        states = self.artifact_states(item)
        stage = detect_pipeline_stage(item, states)
        log_stage_detected(item.id, stage.type)
        return item, stage, states


def _sort_key(updated: str) -> datetime:
    try:
        return datetime.fromisoformat(updated).replace(tzinfo=None)
    except ValueError:
        return datetime.min
