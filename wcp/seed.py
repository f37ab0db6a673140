"""Create a sample WCP data directory.

Usage::

    python -m wcp.seed [--data-path PATH]

Writes ``.wcp/config.yaml`` and a few sample work items. Files that already
exist are left untouched.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import config_path, default_data_path, write_config
from .parser import ParsedWorkItem, serialize_work_item
from .wcp_logging import setup_logging

logger = logging.getLogger("wcp.seed")

SAMPLE_CONFIG: Dict[str, Any] = {
    "namespaces": {
        "PIPE": {
            "name": "Pipeline Skills",
            "description": "Agent pipeline framework development",
            "next": 3,
        },
        "SN": {
            "name": "Show Notes",
            "description": "AI podcast summarizer",
            "next": 2,
        },
        "OS": {
            "name": "Operating System",
            "description": "Personal OS tooling and improvements",
            "next": 1,
        },
    },
}

SAMPLE_PRD = """---
pipeline_completed_at: 2026-02-19T09:00:00-05:00
---

# WCP PRD

Expose work items to agents over MCP.
"""

SAMPLE_ITEMS: List[ParsedWorkItem] = [
    ParsedWorkItem(
        frontmatter={
            "id": "PIPE-1",
            "title": "Design pipeline skill discovery",
            "status": "done",
            "priority": "high",
            "type": "feature",
            "project": "pipeline-mvp",
            "assignee": "dave",
            "created": "2026-02-18",
            "updated": "2026-02-18",
        },
        body=(
            "Research and design how pipeline skills are discovered and registered.\n\n"
            "## Acceptance Criteria\n\n"
            "- [x] Skills are auto-discovered from ~/.claude/skills/\n"
            "- [x] Each skill has a manifest with name, description, triggers"
        ),
        activity=(
            "**dave** — 2026-02-18T09:00:00-05:00\nStarted design work.\n\n"
            "**dave** — 2026-02-18T16:00:00-05:00\nDesign complete. Moving to implementation."
        ),
    ),
    ParsedWorkItem(
        frontmatter={
            "id": "PIPE-2",
            "title": "Implement WCP MCP server",
            "status": "in_progress",
            "priority": "high",
            "type": "feature",
            "project": "wcp-mvp",
            "assignee": "dave",
            "created": "2026-02-19",
            "updated": "2026-02-19",
            "artifacts": [
                {"type": "prd", "title": "WCP PRD", "url": "PIPE/PIPE-2/prd.md"},
            ],
        },
        body=(
            "Build the MCP server that exposes WCP tools for reading and writing work items.\n\n"
            "## Acceptance Criteria\n\n"
            "- [ ] All MCP tools functional\n"
            "- [ ] Filesystem storage with markdown files"
        ),
        activity="**dave** — 2026-02-19T09:30:00-05:00\nKicked off project. PRD complete.",
    ),
    ParsedWorkItem(
        frontmatter={
            "id": "SN-1",
            "title": "Add transcript chunking for long episodes",
            "status": "backlog",
            "priority": "medium",
            "type": "feature",
            "project": "show-notes",
            "created": "2026-02-19",
            "updated": "2026-02-19",
        },
        body=(
            "Long podcast episodes (>2hrs) exceed context windows. "
            "Need to chunk transcripts and summarize in passes."
        ),
    ),
]

SAMPLE_ARTIFACTS: Dict[str, str] = {
    "PIPE/PIPE-2/prd.md": SAMPLE_PRD,
}


def _write_if_missing(path: Path, content: str, created: List[Path]) -> None:
    if path.exists():
        logger.info(f"{path.name} already exists, skipping")
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    created.append(path)
    logger.info(f"Created {path.name}")


def seed(data_path: Optional[Path] = None) -> List[Path]:
    """Populate ``data_path`` with sample data and return the files created."""
    root = Path(data_path).expanduser() if data_path else default_data_path()
    logger.info(f"Seeding WCP data at: {root}")
    created: List[Path] = []

    path = config_path(root)
    if path.exists():
        logger.info("config.yaml already exists, skipping config")
    else:
        write_config(root, SAMPLE_CONFIG)
        created.append(path)
        logger.info("Created .wcp/config.yaml")

    for namespace in SAMPLE_CONFIG["namespaces"]:
        (root / namespace).mkdir(parents=True, exist_ok=True)

    for item in SAMPLE_ITEMS:
        item_id = item.frontmatter["id"]
        namespace = item_id.split("-")[0]
        _write_if_missing(root / namespace / f"{item_id}.md", serialize_work_item(item), created)

    for relative, content in SAMPLE_ARTIFACTS.items():
        _write_if_missing(root / relative, content, created)

    logger.info("Seed complete")
    return created


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Create a sample WCP data directory")
    parser.add_argument(
        "--data-path",
        type=Path,
        default=None,
        help="Data directory to seed (defaults to $WCP_DATA_PATH or ~/projects/wcp-data)",
    )
    args = parser.parse_args(argv)

    setup_logging()
    seed(args.data_path)


if __name__ == "__main__":
    main()
