"""Unit tests for the WCP filesystem workspace.

This module tests namespace listing, work item CRUD, comments,
artifact storage and approval, and schema changes against a
temporary data directory.
"""

import pytest
import yaml

from wcp.config import read_config
from wcp.errors import (
    ArtifactNotFoundError,
    ConfigError,
    NamespaceNotFoundError,
    NotFoundError,
    ValidationError,
)
from wcp.models import Artifact, CreateItemInput, ItemFilters, UpdateItemInput
from wcp.parser import parse_artifact_frontmatter, parse_work_item
from wcp.pipeline import PRD, Approval
from wcp.workspace import Workspace


class TestWorkspaceInitialization:
    """Test cases for opening a data directory."""

    def test_open(self, data_dir):
        workspace = Workspace(data_dir)
        assert workspace.root == data_dir.resolve()
        assert workspace.config_path == data_dir.resolve() / ".wcp" / "config.yaml"

    def test_string_path(self, data_dir):
        assert Workspace(str(data_dir)).root == data_dir.resolve()

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigError, match="data directory not found"):
            Workspace(tmp_path / "nope")

    def test_missing_config(self, tmp_path):
        with pytest.raises(ConfigError, match="config not found"):
            Workspace(tmp_path)


class TestNamespaces:
    """Test cases for namespace listing."""

    def test_list_namespaces(self, workspace):
        workspace.create_item("PIPE", CreateItemInput(title="One"))
        namespaces = {ns.key: ns for ns in workspace.list_namespaces()}

        assert set(namespaces) == {"PIPE", "SN"}
        assert namespaces["PIPE"].item_count == 1
        assert namespaces["PIPE"].name == "Pipeline"
        assert namespaces["SN"].item_count == 0


class TestCreateItem:
    """Test cases for creating work items."""

    def test_create_assigns_sequential_callsigns(self, workspace):
        first = workspace.create_item("PIPE", CreateItemInput(title="One"))
        second = workspace.create_item("PIPE", CreateItemInput(title="Two"))

        assert (first, second) == ("PIPE-1", "PIPE-2")
        assert read_config(workspace.root)["namespaces"]["PIPE"]["next"] == 3

    def test_create_writes_file(self, workspace):
        callsign = workspace.create_item(
            "PIPE",
            CreateItemInput(title="Thing", priority="high", type="feature", body="Do it."),
        )
        parsed = parse_work_item((workspace.root / "PIPE" / f"{callsign}.md").read_text(encoding="utf-8"))

        assert parsed.frontmatter["id"] == callsign
        assert parsed.frontmatter["status"] == "backlog"
        assert parsed.frontmatter["priority"] == "high"
        assert "assignee" not in parsed.frontmatter
        assert parsed.body == "Do it."

    def test_unknown_namespace(self, workspace):
        with pytest.raises(NamespaceNotFoundError):
            workspace.create_item("XX", CreateItemInput(title="One"))

    def test_empty_title(self, workspace):
        with pytest.raises(ValidationError, match="Title cannot be empty"):
            workspace.create_item("PIPE", CreateItemInput(title="  "))

    def test_invalid_status_does_not_consume_callsign(self, workspace):
        with pytest.raises(ValidationError):
            workspace.create_item("PIPE", CreateItemInput(title="One", status="deployed"))
        assert read_config(workspace.root)["namespaces"]["PIPE"]["next"] == 1

    def test_custom_status_after_schema_extension(self, workspace):
        workspace.update_schema("add_statuses", "PIPE", ["deployed"])
        callsign = workspace.create_item("PIPE", CreateItemInput(title="One", status="deployed"))
        assert workspace.get_item(callsign).status == "deployed"


class TestGetAndListItems:
    """Test cases for reading work items."""

    def test_get_item(self, workspace):
        callsign = workspace.create_item("PIPE", CreateItemInput(title="Thing", body="Body"))
        item = workspace.get_item(callsign)

        assert item.title == "Thing"
        assert item.body == "Body"
        assert item.activity == ""
        assert item.artifacts == []

    def test_get_missing_item(self, workspace):
        with pytest.raises(NotFoundError):
            workspace.get_item("PIPE-99")

    def test_get_item_bad_callsign(self, workspace):
        with pytest.raises(ValidationError):
            workspace.get_item("pipe-1")

    def test_get_item_unknown_namespace(self, workspace):
        with pytest.raises(NamespaceNotFoundError):
            workspace.get_item("XX-1")

    def test_get_item_with_malformed_frontmatter(self, workspace):
        path = workspace.root / "PIPE" / "PIPE-5.md"
        path.parent.mkdir(exist_ok=True)
        path.write_text("---\ntitle: [broken\n---\n\nbody\n", encoding="utf-8")

        item = workspace.get_item("PIPE-5")
        assert item.title == "(parse error)"
        assert item.warning
        assert "title: [broken" in item.body

    def test_list_items_filters(self, workspace):
        workspace.create_item("PIPE", CreateItemInput(title="A", status="todo", assignee="dave"))
        workspace.create_item("PIPE", CreateItemInput(title="B", status="done"))

        assert len(workspace.list_items("PIPE")) == 2
        todo = workspace.list_items("PIPE", ItemFilters(status="todo"))
        assert [item.title for item in todo] == ["A"]
        assert workspace.list_items("PIPE", ItemFilters(assignee="sam")) == []

    def test_list_items_skips_malformed_files(self, workspace, caplog):
        workspace.create_item("PIPE", CreateItemInput(title="A"))
        (workspace.root / "PIPE" / "PIPE-9.md").write_text("---\ntitle: [x\n---\n", encoding="utf-8")

        items = workspace.list_items("PIPE")
        assert [item.id for item in items] == ["PIPE-1"]
        assert "Skipping PIPE-9.md" in caplog.text

    def test_list_items_most_recent_first(self, workspace):
        pipe_dir = workspace.root / "PIPE"
        pipe_dir.mkdir()
        for number, updated in ((1, "2026-01-01"), (2, "2026-03-01"), (3, "2026-02-01")):
            (pipe_dir / f"PIPE-{number}.md").write_text(
                f"---\nid: PIPE-{number}\ntitle: T{number}\nstatus: todo\nupdated: '{updated}'\n---\n",
                encoding="utf-8",
            )
        assert [item.id for item in workspace.list_items("PIPE")] == ["PIPE-2", "PIPE-3", "PIPE-1"]

    def test_list_empty_namespace(self, workspace):
        assert workspace.list_items("SN") == []

    def test_list_unknown_namespace(self, workspace):
        with pytest.raises(NamespaceNotFoundError):
            workspace.list_items("XX")


class TestUpdateAndComment:
    """Test cases for updating items and adding comments."""

    def test_update_fields_and_body(self, workspace):
        callsign = workspace.create_item("PIPE", CreateItemInput(title="Old"))
        workspace.update_item(callsign, UpdateItemInput(title="New", body="Described"))

        item = workspace.get_item(callsign)
        assert item.title == "New"
        assert item.body == "Described"
        assert item.activity == ""

    def test_status_change_is_logged(self, workspace):
        callsign = workspace.create_item("PIPE", CreateItemInput(title="T"))
        workspace.update_item(callsign, UpdateItemInput(status="in_progress"))

        item = workspace.get_item(callsign)
        assert item.status == "in_progress"
        assert "Status changed: backlog → in_progress" in item.activity

    def test_same_status_is_not_logged(self, workspace):
        callsign = workspace.create_item("PIPE", CreateItemInput(title="T", status="todo"))
        workspace.update_item(callsign, UpdateItemInput(status="todo"))
        assert workspace.get_item(callsign).activity == ""

    def test_add_artifacts(self, workspace):
        callsign = workspace.create_item("PIPE", CreateItemInput(title="T"))
        link = Artifact(type="adr", title="ADR", url="https://example.com/adr-1.md")
        workspace.update_item(callsign, UpdateItemInput(add_artifacts=[link]))
        assert workspace.get_item(callsign).artifacts == [link]

    def test_invalid_priority(self, workspace):
        callsign = workspace.create_item("PIPE", CreateItemInput(title="T"))
        with pytest.raises(ValidationError, match="Invalid priority"):
            workspace.update_item(callsign, UpdateItemInput(priority="p0"))

    def test_update_missing_item(self, workspace):
        with pytest.raises(NotFoundError):
            workspace.update_item("PIPE-42", UpdateItemInput(title="x"))

    def test_comments_append_in_order(self, workspace):
        callsign = workspace.create_item("PIPE", CreateItemInput(title="T", body="Body"))
        workspace.add_comment(callsign, "dave", "First")
        workspace.add_comment(callsign, "sam", "Second")

        item = workspace.get_item(callsign)
        assert item.body == "Body"
        assert item.activity.index("**dave**") < item.activity.index("**sam**")
        assert item.activity.rstrip().endswith("Second")

    def test_empty_comment(self, workspace):
        callsign = workspace.create_item("PIPE", CreateItemInput(title="T"))
        with pytest.raises(ValidationError):
            workspace.add_comment(callsign, "dave", "   ")


class TestArtifacts:
    """Test cases for attaching, reading and approving artifacts."""

    @pytest.fixture
    def callsign(self, workspace):
        return workspace.create_item("PIPE", CreateItemInput(title="T", body="Body"))

    def test_attach_stores_file_and_reference(self, workspace, callsign):
        artifact = workspace.attach_artifact(callsign, "prd", "PRD", PRD, "# PRD\n")

        assert artifact.url == f"PIPE/{callsign}/prd.md"
        assert (workspace.root / "PIPE" / callsign / PRD).read_text(encoding="utf-8") == "# PRD\n"
        assert workspace.get_item(callsign).artifacts == [artifact]

    def test_reattach_replaces_reference(self, workspace, callsign):
        workspace.attach_artifact(callsign, "prd", "PRD v1", PRD, "one")
        workspace.attach_artifact(callsign, "prd", "PRD v2", PRD, "two")

        artifacts = workspace.get_item(callsign).artifacts
        assert [a.title for a in artifacts] == ["PRD v2"]
        assert workspace.read_artifact_text(callsign, PRD) == "two"

    def test_attach_rejects_unknown_type(self, workspace, callsign):
        with pytest.raises(ValidationError, match="artifact_type"):
            workspace.attach_artifact(callsign, "memo", "Memo", "memo.md", "x")

    def test_attach_rejects_path_traversal(self, workspace, callsign):
        with pytest.raises(ValidationError):
            workspace.attach_artifact(callsign, "prd", "PRD", "../escape.md", "x")
        assert not (workspace.root / "PIPE" / "escape.md").exists()

    def test_attach_rejects_empty_content(self, workspace, callsign):
        with pytest.raises(ValidationError):
            workspace.attach_artifact(callsign, "prd", "PRD", PRD, "")

    def test_get_artifact(self, workspace, callsign):
        workspace.attach_artifact(callsign, "prd", "PRD", PRD, "# PRD\n")
        result = workspace.get_artifact(callsign, PRD)
        assert result.artifact.type == "prd"
        assert result.content == "# PRD\n"

    def test_get_unregistered_artifact_file(self, workspace, callsign):
        artifact_dir = workspace.root / "PIPE" / callsign
        artifact_dir.mkdir()
        (artifact_dir / "scratch.md").write_text("notes", encoding="utf-8")
        assert workspace.get_artifact(callsign, "scratch.md").artifact.type == "unknown"

    def test_get_missing_artifact(self, workspace, callsign):
        with pytest.raises(ArtifactNotFoundError):
            workspace.get_artifact(callsign, PRD)

    def test_approve_records_verdict(self, workspace, callsign):
        content = "---\npipeline_completed_at: '2026-02-19T15:00:00Z'\n---\n\n# Architecture\n"
        workspace.attach_artifact(callsign, "architecture", "Arch", "architecture-proposal.md", content)

        workspace.approve_artifact(callsign, "architecture-proposal.md", "approved")

        fm = parse_artifact_frontmatter(workspace.read_artifact_text(callsign, "architecture-proposal.md"))
        assert fm["approval"] == "approved"
        assert fm["pipeline_completed_at"] == "2026-02-19T15:00:00Z"
        assert "pipeline_approved_at" in fm
        assert "Artifact architecture-proposal.md: approved" in workspace.get_item(callsign).activity

    def test_reject_clears_approval_time(self, workspace, callsign):
        workspace.attach_artifact(callsign, "gameplan", "Plan", "gameplan.md", "# Plan\n")
        workspace.approve_artifact(callsign, "gameplan.md", "approved")
        workspace.approve_artifact(callsign, "gameplan.md", "rejected")

        fm = parse_artifact_frontmatter(workspace.read_artifact_text(callsign, "gameplan.md"))
        assert fm["approval"] == "rejected"
        assert "pipeline_approved_at" not in fm

    def test_approve_invalid_verdict(self, workspace, callsign):
        workspace.attach_artifact(callsign, "gameplan", "Plan", "gameplan.md", "# Plan\n")
        with pytest.raises(ValidationError):
            workspace.approve_artifact(callsign, "gameplan.md", "maybe")

    def test_approve_malformed_header(self, workspace, callsign):
        workspace.attach_artifact(callsign, "gameplan", "Plan", "gameplan.md", "---\napproval: [x\n---\n")
        with pytest.raises(ValidationError, match="malformed frontmatter"):
            workspace.approve_artifact(callsign, "gameplan.md", "approved")


class TestSchema:
    """Test cases for viewing and changing the schema."""

    def test_get_schema(self, workspace):
        schema = workspace.get_schema("PIPE")
        assert "backlog" in schema["status"]["all"]

    def test_get_schema_unknown_namespace(self, workspace):
        with pytest.raises(NamespaceNotFoundError):
            workspace.get_schema("XX")

    def test_update_schema_persists(self, workspace):
        assert workspace.update_schema("add_artifact_types", "PIPE", ["release-notes"]) == ["release-notes"]
        raw = yaml.safe_load(workspace.config_path.read_text(encoding="utf-8"))
        assert raw["namespaces"]["PIPE"]["schema"] == {"artifact_types": ["release-notes"]}

    def test_update_schema_unknown_action(self, workspace):
        with pytest.raises(ValidationError, match="Invalid action"):
            workspace.update_schema("rename", "PIPE", ["x"])

    def test_update_schema_requires_values(self, workspace):
        with pytest.raises(ValidationError, match="at least one value"):
            workspace.update_schema("add_statuses", "PIPE", [])


class TestPipelineStage:
    """Test cases for stage detection through the workspace."""

    def test_stage_from_stored_artifacts(self, workspace):
        callsign = workspace.create_item("PIPE", CreateItemInput(title="T", body="Body"))
        workspace.attach_artifact(callsign, "prd", "PRD", PRD, "---\npipeline_completed_at: '2026-02-19T10:00:00Z'\n---\n")

        item, stage, states = workspace.pipeline_stage(callsign)
        assert item.id == callsign
        assert stage.type == "generate_discovery"
        assert states[PRD].exists

    def test_deleted_artifact_file_is_missing(self, workspace):
        callsign = workspace.create_item("PIPE", CreateItemInput(title="T", body="Body"))
        workspace.attach_artifact(callsign, "prd", "PRD", PRD, "# PRD\n")
        (workspace.root / "PIPE" / callsign / PRD).unlink()

        _, stage, states = workspace.pipeline_stage(callsign)
        assert not states[PRD].exists
        assert stage.type == "generate_requirements"

    def test_approved_gate_state(self, workspace):
        callsign = workspace.create_item("PIPE", CreateItemInput(title="T", body="Body"))
        workspace.attach_artifact(callsign, "architecture", "Arch", "architecture-proposal.md", "# Arch\n")
        workspace.approve_artifact(callsign, "architecture-proposal.md", "approved")

        _, _, states = workspace.pipeline_stage(callsign)
        assert states["architecture-proposal.md"].approval is Approval.APPROVED
