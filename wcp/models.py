"""Data models for WCP work items.

This module contains the record types exchanged between the store, the
pipeline and the MCP tools: namespaces, work items, their artifact
references, and the inputs accepted by create/update calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

SUMMARY_FIELDS = ("priority", "type", "project", "assignee", "parent")


@dataclass(slots=True)
class Namespace:
    """A configured namespace and how many items it holds."""

    key: str
    name: str
    description: str
    item_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "item_count": self.item_count,
        }


@dataclass(slots=True)
class Artifact:
    """Reference to a document attached to a work item."""

    type: str
    title: str
    url: str

    @property
    def filename(self) -> str:
        """The artifact kind is the last segment of its location."""
        return self.url.rstrip("/").split("/")[-1]

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "title": self.title, "url": self.url}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Artifact":
        return cls(
            type=str(data.get("type", "unknown")),
            title=str(data.get("title", "")),
            url=str(data.get("url", "")),
        )


@dataclass(slots=True)
class ItemSummary:
    """The frontmatter view of a work item, as returned by listings."""

    id: str
    title: str
    status: str
    created: str
    updated: str
    priority: Optional[str] = None
    type: Optional[str] = None
    project: Optional[str] = None
    assignee: Optional[str] = None
    parent: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "status": self.status,
        }
        for name in SUMMARY_FIELDS:
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        data["created"] = self.created
        data["updated"] = self.updated
        return data

    @classmethod
    def from_frontmatter(cls, fm: Dict[str, Any], fallback_id: str = "") -> "ItemSummary":
        return cls(
            id=str(fm.get("id") or fallback_id),
            title=str(fm.get("title") or "(untitled)"),
            status=str(fm.get("status") or "unknown"),
            created=_as_text(fm.get("created")),
            updated=_as_text(fm.get("updated")),
            **{name: _optional_text(fm.get(name)) for name in SUMMARY_FIELDS},
        )


@dataclass(slots=True)
class WorkItem:
    """A work item with its description, activity log and artifacts."""

    id: str
    title: str
    status: str
    created: str
    updated: str
    body: str = ""
    activity: str = ""
    artifacts: List[Artifact] = field(default_factory=list)
    priority: Optional[str] = None
    type: Optional[str] = None
    project: Optional[str] = None
    assignee: Optional[str] = None
    parent: Optional[str] = None
    warning: Optional[str] = None

    @property
    def has_description(self) -> bool:
        return bool(self.body and self.body.strip())

    def artifact_filenames(self) -> List[str]:
        return [artifact.filename for artifact in self.artifacts]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "status": self.status,
        }
        for name in SUMMARY_FIELDS:
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        data.update({
            "created": self.created,
            "updated": self.updated,
            "body": self.body,
            "activity": self.activity,
            "artifacts": [artifact.to_dict() for artifact in self.artifacts],
        })
        if self.warning:
            data["warning"] = self.warning
        return data


@dataclass(slots=True)
class ArtifactContent:
    artifact: Artifact
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"artifact": self.artifact.to_dict(), "content": self.content}


@dataclass(slots=True)
class ItemFilters:
    """Exact-match filters for item listings; ``None`` fields are ignored."""

    status: Optional[str] = None
    priority: Optional[str] = None
    type: Optional[str] = None
    project: Optional[str] = None
    assignee: Optional[str] = None
    parent: Optional[str] = None

    def matches(self, summary: ItemSummary) -> bool:
        for name in ("status", *SUMMARY_FIELDS):
            wanted = getattr(self, name)
            if wanted and getattr(summary, name) != wanted:
                return False
        return True


@dataclass(slots=True)
class CreateItemInput:
    title: str
    status: Optional[str] = None
    priority: Optional[str] = None
    type: Optional[str] = None
    project: Optional[str] = None
    assignee: Optional[str] = None
    parent: Optional[str] = None
    body: Optional[str] = None
    artifacts: List[Artifact] = field(default_factory=list)


@dataclass(slots=True)
class UpdateItemInput:
    """Fields to change on an item; only non-``None`` fields are applied."""

    title: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    type: Optional[str] = None
    project: Optional[str] = None
    assignee: Optional[str] = None
    parent: Optional[str] = None
    body: Optional[str] = None
    add_artifacts: List[Artifact] = field(default_factory=list)

    def changed_fields(self) -> List[str]:
        names = [
            name
            for name in ("title", "status", *SUMMARY_FIELDS, "body")
            if getattr(self, name) is not None
        ]
        if self.add_artifacts:
            names.append("artifacts")
        return names


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def _optional_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)
