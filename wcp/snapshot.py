"""Build the per-call artifact state snapshot used by stage detection.

Every invocation re-reads the item's chain artifacts; nothing is cached.
A read that fails makes the artifact non-existent, and a header that
cannot be parsed leaves it existing with no metadata. Neither condition
is raised to the caller.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timezone
from itertools import count
from typing import Any, Callable, Dict, Mapping, Optional

from .errors import WcpError
from .models import WorkItem
from .parser import parse_artifact_frontmatter
from .pipeline import (
    GAMEPLAN,
    GATE_ARTIFACTS,
    PIPELINE_CHAIN,
    PROGRESS,
    Approval,
    ArtifactState,
)

COMPLETED_AT_KEY = "pipeline_completed_at"
APPROVAL_KEY = "approval"
APPROVED_AT_KEY = "pipeline_approved_at"
MILESTONE_COMPLETED_KEY = "pipeline_m{n}_completed_at"

MILESTONE_HEADING = re.compile(r"^## M\d+:", re.MULTILINE)

ArtifactReader = Callable[[str], str]

logger = logging.getLogger("wcp.snapshot")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Normalise a frontmatter timestamp to an aware ``datetime``.

    Accepts YAML datetimes and dates as well as ISO-8601 strings. Naive
    values are taken as UTC. Returns ``None`` for anything else.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def count_milestones(content: str) -> int:
    """Count ``## M<n>:`` milestone headings in a gameplan."""
    return len(MILESTONE_HEADING.findall(content))


def count_completed_milestones(fm: Mapping[str, Any]) -> int:
    """Length of the unbroken run of ``pipeline_m1_completed_at``, ``m2``, ... keys."""
    completed = 0
    for n in count(1):
        if not fm.get(MILESTONE_COMPLETED_KEY.format(n=n)):
            break
        completed = n
    return completed


def extract_milestone(gameplan_content: str, milestone: int) -> Optional[str]:
    """Return the section of milestone ``milestone``, up to the next milestone heading."""
    heading = re.search(rf"^## M{milestone}:.*$", gameplan_content, re.MULTILINE)
    if not heading:
        return None
    following = MILESTONE_HEADING.search(gameplan_content, heading.end())
    end = following.start() if following else len(gameplan_content)
    return gameplan_content[heading.start():end].strip()


def artifact_state_from_content(filename: str, content: str) -> ArtifactState:
    """Derive the state of an existing artifact from its raw content."""
    fm = parse_artifact_frontmatter(content)
    state = ArtifactState(
        filename=filename,
        exists=True,
        completed_at=parse_timestamp(fm.get(COMPLETED_AT_KEY)),
    )

    if filename in GATE_ARTIFACTS:
        state.approval = Approval.parse(fm.get(APPROVAL_KEY))

    if filename == GAMEPLAN:
        state.milestone_count = count_milestones(content)

    # Without a readable header the progress count is unknown, not zero.
    if filename == PROGRESS and fm:
        state.completed_milestones = count_completed_milestones(fm)

    return state


def build_artifact_states(item: WorkItem, read_artifact: ArtifactReader) -> Dict[str, ArtifactState]:
    """Snapshot every chain artifact of ``item``.

    ``read_artifact`` receives a chain filename and returns its content. It
    is only called for filenames the item references.
    """
    referenced = set(item.artifact_filenames())
    states: Dict[str, ArtifactState] = {}

    for filename in PIPELINE_CHAIN:
        if filename not in referenced:
            states[filename] = ArtifactState(filename)
            continue

        try:
            content = read_artifact(filename)
        except (WcpError, OSError, ValueError) as e:
            logger.warning(f"Artifact {filename} listed on {item.id} could not be read: {e}")
            states[filename] = ArtifactState(filename)
            continue

        states[filename] = artifact_state_from_content(filename, content)

    return states
