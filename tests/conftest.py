"""Shared fixtures for WCP tests."""

from pathlib import Path
from typing import Callable, Dict, Optional

import pytest
import yaml

from wcp.models import Artifact, WorkItem
from wcp.workspace import Workspace


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """A data directory with a PIPE namespace and an empty SN namespace."""
    config = {
        "namespaces": {
            "PIPE": {"name": "Pipeline", "description": "Pipeline work", "next": 1},
            "SN": {"name": "Show Notes", "description": "", "next": 1},
        }
    }
    (tmp_path / ".wcp").mkdir()
    (tmp_path / ".wcp" / "config.yaml").write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    return tmp_path


@pytest.fixture
def workspace(data_dir: Path) -> Workspace:
    return Workspace(data_dir)


@pytest.fixture(autouse=True)
def isolated_data_path(tmp_path: Path, monkeypatch):
    """Never let a test fall back to the user's real data directory."""
    monkeypatch.setenv("WCP_DATA_PATH", str(tmp_path))


def make_item(body: str = "Build the thing.", filenames: Optional[list] = None, item_id: str = "PIPE-1") -> WorkItem:
    namespace = item_id.split("-")[0]
    return WorkItem(
        id=item_id,
        title="Sample",
        status="todo",
        created="2026-02-19",
        updated="2026-02-19",
        body=body,
        artifacts=[
            Artifact(type="doc", title=name, url=f"{namespace}/{item_id}/{name}")
            for name in filenames or []
        ],
    )


def artifact_doc(body: str = "# Doc\n", **frontmatter) -> str:
    """Render an artifact with a YAML header built from keyword arguments."""
    if not frontmatter:
        return body
    header = yaml.safe_dump(frontmatter, sort_keys=False)
    return f"---\n{header}---\n\n{body}"


def reader(contents: Dict[str, str]) -> Callable[[str], str]:
    def read(filename: str) -> str:
        if filename not in contents:
            raise FileNotFoundError(filename)
        return contents[filename]
    return read
