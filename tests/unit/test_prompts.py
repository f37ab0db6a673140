"""Unit tests for the stage dispatcher that builds ``work`` prompts."""

from wcp.errors import ArtifactNotFoundError
from wcp.pipeline import (
    ARCHITECTURE,
    DISCOVERY,
    GAMEPLAN,
    PRD,
    PROGRESS,
    TEST_MATRIX,
    Complete,
    DesignReview,
    GenerateDesign,
    GenerateRequirements,
    Implementation,
    NeedsDescription,
    NeedsQaPlan,
    Stale,
)
from wcp.prompts import STAGE_BRIEFS, build_work_prompt, chain_overview

from conftest import make_item

PLAN = "# Plan\n\n## M1: Store\nFiles.\n\n## M2: Tools\nMCP.\n"


def loader(contents):
    def load(filename):
        if filename not in contents:
            raise ArtifactNotFoundError("PIPE-1", filename)
        return contents[filename]
    return load


def resource_uris(prompt):
    return [
        m["content"]["resource"]["uri"]
        for m in prompt["messages"]
        if m["content"]["type"] == "resource"
    ]


def final_text(prompt):
    last = prompt["messages"][-1]
    assert last["content"]["type"] == "text"
    return last["content"]["text"]


class TestDispatch:
    """Test cases for per-stage prompts."""

    def test_needs_description(self):
        prompt = build_work_prompt(make_item(body=""), NeedsDescription(), loader({}))
        assert len(prompt["messages"]) == 1
        assert "wcp_update" in final_text(prompt)

    def test_generate_requirements_embeds_item_only(self):
        prompt = build_work_prompt(make_item(), GenerateRequirements(), loader({}))

        assert resource_uris(prompt) == ["wcp://PIPE-1"]
        assert 'filename="prd.md"' in final_text(prompt)
        assert "pipeline_completed_at" in final_text(prompt)

    def test_generation_embeds_available_inputs(self):
        prompt = build_work_prompt(make_item(), GenerateDesign(), loader({PRD: "# PRD", DISCOVERY: "# Disc"}))

        assert resource_uris(prompt) == ["wcp://PIPE-1", "wcp://PIPE-1/prd.md", "wcp://PIPE-1/discovery-report.md"]
        assert "approval: pending" in final_text(prompt)
        assert 'type="architecture"' in final_text(prompt)

    def test_missing_inputs_are_skipped(self):
        prompt = build_work_prompt(make_item(), GenerateDesign(), loader({PRD: "# PRD"}))
        assert resource_uris(prompt) == ["wcp://PIPE-1", "wcp://PIPE-1/prd.md"]

    def test_design_review(self):
        prompt = build_work_prompt(make_item(), DesignReview(), loader({ARCHITECTURE: "# Arch"}))

        assert resource_uris(prompt)[-1] == "wcp://PIPE-1/architecture-proposal.md"
        text = final_text(prompt)
        assert 'wcp_approve("PIPE-1", "architecture-proposal.md", "approved")' in text
        assert '"rejected"' in text

    def test_stale(self):
        prompt = build_work_prompt(make_item(), Stale(artifact=DISCOVERY, upstream=PRD), loader({}))

        assert prompt["description"] == "Stale artifact detected for PIPE-1"
        assert "**discovery-report.md** was generated before the latest **prd.md**" in final_text(prompt)

    def test_implementation_embeds_milestone_section(self):
        contents = {GAMEPLAN: PLAN, TEST_MATRIX: "# Tests", PROGRESS: "# Progress"}
        prompt = build_work_prompt(make_item(), Implementation(milestone=2, total_milestones=2), loader(contents))

        plan = next(
            m["content"]["resource"]["text"]
            for m in prompt["messages"]
            if m["content"]["type"] == "resource" and m["content"]["resource"]["uri"].endswith(GAMEPLAN)
        )
        assert plan == "## M2: Tools\nMCP."
        assert "pipeline_m2_completed_at" in final_text(prompt)
        assert prompt["description"] == "Stage 5: Implementation M2/2 for PIPE-1"

    def test_implementation_without_milestone_heading_embeds_whole_plan(self):
        prompt = build_work_prompt(
            make_item(), Implementation(milestone=1, total_milestones=1), loader({GAMEPLAN: "# Plan only"})
        )
        texts = [m["content"]["resource"]["text"] for m in prompt["messages"] if m["content"]["type"] == "resource"]
        assert "# Plan only" in texts

    def test_qa_plan(self):
        prompt = build_work_prompt(make_item(), NeedsQaPlan(), loader({}))
        assert 'filename="qa-plan.md"' in final_text(prompt)

    def test_complete(self):
        prompt = build_work_prompt(make_item(), Complete(), loader({}))
        assert "Pipeline Complete" in final_text(prompt)

    def test_messages_are_user_role(self):
        prompt = build_work_prompt(make_item(), GenerateDesign(), loader({PRD: "# PRD"}))
        assert {m["role"] for m in prompt["messages"]} == {"user"}


class TestBriefs:
    def test_every_generation_stage_has_brief(self):
        assert set(STAGE_BRIEFS) == {
            "generate_requirements",
            "generate_discovery",
            "generate_design",
            "generate_plan",
            "generate_tests",
            "needs_review",
            "needs_qa_plan",
        }

    def test_chain_overview_marks_gates(self):
        overview = chain_overview()
        assert overview.splitlines()[0] == "0. `prd.md` (type `prd`)"
        assert "`gameplan.md` (type `gameplan`) (requires approval)" in overview
