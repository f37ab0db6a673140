"""Markdown + YAML frontmatter parsing for work items and artifacts.

A work item file looks like::

    ---
    id: PIPE-12
    title: ...
    ---

    <body>

    ---

    ## Activity

    **dave** — 2026-02-19T09:30:00+00:00
    Kicked off project.

Uses python-frontmatter for the header and splits the remaining text on the
activity separator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict

import frontmatter
import yaml

ACTIVITY_SEPARATOR = "---\n\n## Activity"

logger = logging.getLogger("wcp.parser")


@dataclass(slots=True)
class ParsedWorkItem:
    frontmatter: Dict[str, Any] = field(default_factory=dict)
    body: str = ""
    activity: str = ""

    def append_activity(self, entry: str) -> None:
        """Append an entry to the activity log, blank-line separated."""
        self.activity = f"{self.activity}\n\n{entry}" if self.activity else entry


def parse_work_item(file_content: str) -> ParsedWorkItem:
    """Parse a work item file.

    Raises ``yaml.YAMLError`` or ``ValueError`` when the header is malformed;
    callers decide whether that is fatal.
    """
    post = frontmatter.loads(file_content)
    metadata = post.metadata
    if not isinstance(metadata, dict):
        raise ValueError("work item frontmatter must be a mapping")

    content = post.content
    sep_index = content.find(ACTIVITY_SEPARATOR)
    if sep_index == -1:
        return ParsedWorkItem(frontmatter=dict(metadata), body=content.strip(), activity="")

    return ParsedWorkItem(
        frontmatter=dict(metadata),
        body=content[:sep_index].strip(),
        activity=content[sep_index + len(ACTIVITY_SEPARATOR):].strip(),
    )


def serialize_work_item(item: ParsedWorkItem) -> str:
    body_section = f"\n{item.body}\n" if item.body else ""
    if item.activity:
        activity_section = f"\n---\n\n## Activity\n\n{item.activity}\n"
    else:
        activity_section = "\n---\n\n## Activity\n"

    post = frontmatter.Post(body_section + activity_section)
    post.metadata = dict(item.frontmatter)
    return frontmatter.dumps(post, sort_keys=False) + "\n"


def parse_artifact_frontmatter(content: str) -> Dict[str, Any]:
    """Return the artifact's YAML header, or ``{}`` when missing or unparsable."""
    try:
        post = frontmatter.loads(content)
    except (yaml.YAMLError, ValueError, TypeError) as e:
        logger.debug(f"Unparsable artifact frontmatter: {e}")
        return {}
    metadata = post.metadata
    return dict(metadata) if isinstance(metadata, dict) else {}


def update_artifact_frontmatter(content: str, **changes: Any) -> str:
    """Rewrite an artifact's header; keys set to ``None`` are removed.

    A malformed header raises, so an approval is never written over a
    document whose metadata could not be read.
    """
    post = frontmatter.loads(content)
    for key, value in changes.items():
        if value is None:
            post.metadata.pop(key, None)
        else:
            post.metadata[key] = value
    return frontmatter.dumps(post, sort_keys=False) + "\n"
