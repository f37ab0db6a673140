"""Stage dispatcher: turn a detected pipeline stage into a ``work`` prompt.

Each prompt is a description plus a list of MCP prompt messages. Context
documents are embedded as ``text/markdown`` resources addressed as
``wcp://<ID>`` and ``wcp://<ID>/<filename>``, followed by one text message
telling the agent what to produce next. The dispatcher only describes the
next step; it never writes anything.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import WcpError
from .models import WorkItem
from .pipeline import (
    ARCHITECTURE,
    ARTIFACT_TYPES,
    DISCOVERY,
    GAMEPLAN,
    GATE_ARTIFACTS,
    PIPELINE_CHAIN,
    PRD,
    PROGRESS,
    QA_PLAN,
    REVIEW,
    TEST_MATRIX,
    Implementation,
    PipelineStage,
    Stale,
)
from .snapshot import COMPLETED_AT_KEY, MILESTONE_COMPLETED_KEY, extract_milestone

PromptMessage = Dict[str, Any]
ArtifactLoader = Callable[[str], str]

CONVENTIONS_HINT = "Read the repo's conventions file (CLAUDE.md, AGENTS.md, or CONVENTIONS.md) and follow its patterns."


@dataclass(frozen=True, slots=True)
class StageBrief:
    """What a generation stage reads, who does it, and what it attaches."""

    number: int
    title: str
    role: str
    output: str
    inputs: Tuple[str, ...] = field(default_factory=tuple)


STAGE_BRIEFS: Dict[str, StageBrief] = {
    "generate_requirements": StageBrief(0, "PRD", "product requirements writer", PRD),
    "generate_discovery": StageBrief(1, "Discovery", "codebase explorer", DISCOVERY, (PRD,)),
    "generate_design": StageBrief(2, "Architecture", "technical designer", ARCHITECTURE, (PRD, DISCOVERY)),
    "generate_plan": StageBrief(3, "Gameplan", "project planner", GAMEPLAN, (PRD, DISCOVERY, ARCHITECTURE)),
    "generate_tests": StageBrief(4, "Test Generation", "test architect", TEST_MATRIX, (GAMEPLAN,)),
    "needs_review": StageBrief(
        6, "Code Review", "code reviewer", REVIEW,
        (PRD, DISCOVERY, ARCHITECTURE, GAMEPLAN, TEST_MATRIX, PROGRESS),
    ),
    "needs_qa_plan": StageBrief(
        7, "QA Plan", "QA planner", QA_PLAN,
        (PRD, ARCHITECTURE, GAMEPLAN, TEST_MATRIX, PROGRESS, REVIEW),
    ),
}

REVIEW_BRIEFS: Dict[str, Tuple[int, str, str]] = {
    "design_review": (2, "Architecture Review", ARCHITECTURE),
    "plan_review": (3, "Gameplan Review", GAMEPLAN),
}


# ----------------------------------------------------------------------
# Message builders
# ----------------------------------------------------------------------


def text_message(text: str) -> PromptMessage:
    return {"role": "user", "content": {"type": "text", "text": text}}


def embed_work_item(item: WorkItem) -> PromptMessage:
    return {
        "role": "user",
        "content": {
            "type": "resource",
            "resource": {
                "uri": f"wcp://{item.id}",
                "mimeType": "text/markdown",
                "text": f"# {item.title}\n\n{item.body}",
            },
        },
    }


def embed_artifact(item_id: str, filename: str, content: str) -> PromptMessage:
    return {
        "role": "user",
        "content": {
            "type": "resource",
            "resource": {
                "uri": f"wcp://{item_id}/{filename}",
                "mimeType": "text/markdown",
                "text": content,
            },
        },
    }


def _try_load(load: ArtifactLoader, filename: str) -> Optional[str]:
    try:
        return load(filename)
    except (WcpError, OSError, ValueError):
        return None


def _embed_available(item: WorkItem, load: ArtifactLoader, filenames: Tuple[str, ...]) -> List[PromptMessage]:
    messages: List[PromptMessage] = []
    for filename in filenames:
        content = _try_load(load, filename)
        if content is not None:
            messages.append(embed_artifact(item.id, filename, content))
    return messages


def _frontmatter_hint(filename: str) -> str:
    lines = [f"{COMPLETED_AT_KEY}: <ISO-8601 timestamp when you finish>"]
    if filename in GATE_ARTIFACTS:
        lines.append("approval: pending")
    return "\n".join(lines)


# ----------------------------------------------------------------------
# Per-stage prompts
# ----------------------------------------------------------------------


def _needs_description_prompt(item: WorkItem) -> Dict[str, Any]:
    return {
        "description": f"Add a description to {item.id}",
        "messages": [
            text_message(
                f"Add a description to {item.id} first. "
                f"Use `wcp_update(\"{item.id}\", body=\"...\")` to set the work item body before running /work."
            )
        ],
    }


def _stale_prompt(item: WorkItem, stage: Stale) -> Dict[str, Any]:
    return {
        "description": f"Stale artifact detected for {item.id}",
        "messages": [
            embed_work_item(item),
            text_message(
                "# Stale Artifact Detected\n\n"
                f"Your **{stage.artifact}** was generated before the latest **{stage.upstream}** changes.\n\n"
                "**Options:**\n"
                f"1. **Regenerate**: re-attach `{stage.artifact}` built from the updated `{stage.upstream}`, "
                f"then run `/work {item.id}` again.\n"
                f"2. **Proceed**: keep the current version by re-attaching it with a fresh `{COMPLETED_AT_KEY}`."
            ),
        ],
    }


def _generation_prompt(item: WorkItem, brief: StageBrief, load: ArtifactLoader) -> Dict[str, Any]:
    messages = [embed_work_item(item), *_embed_available(item, load, brief.inputs)]
    messages.append(
        text_message(
            f"# Stage {brief.number}: {brief.title}\n\n"
            f"You are a **{brief.role}**. Produce the {brief.title.lower()} for {item.id}.\n\n"
            f"{CONVENTIONS_HINT}\n\n"
            "## Output\n\n"
            f"Attach via `wcp_attach(\"{item.id}\", type=\"{ARTIFACT_TYPES[brief.output]}\", "
            f"filename=\"{brief.output}\", ...)` with this YAML frontmatter:\n\n"
            f"```yaml\n{_frontmatter_hint(brief.output)}\n```"
        )
    )
    return {"description": f"Stage {brief.number}: {brief.title} for {item.id}", "messages": messages}


def _review_prompt(item: WorkItem, number: int, title: str, filename: str, load: ArtifactLoader) -> Dict[str, Any]:
    messages = [embed_work_item(item), *_embed_available(item, load, (filename,))]
    messages.append(
        text_message(
            f"# {title}\n\n"
            f"The {filename} for {item.id} is ready for review.\n\n"
            "Please review it above. When you have a decision, call:\n"
            f"`wcp_approve(\"{item.id}\", \"{filename}\", \"approved\")` or\n"
            f"`wcp_approve(\"{item.id}\", \"{filename}\", \"rejected\")`\n\n"
            "A rejected document stays in review until it is revised and approved."
        )
    )
    return {"description": f"Stage {number}: {title} for {item.id}", "messages": messages}


def _implementation_prompt(item: WorkItem, stage: Implementation, load: ArtifactLoader) -> Dict[str, Any]:
    messages = [embed_work_item(item)]

    gameplan = _try_load(load, GAMEPLAN)
    if gameplan is not None:
        section = extract_milestone(gameplan, stage.milestone)
        messages.append(embed_artifact(item.id, GAMEPLAN, section or gameplan))
    messages.extend(_embed_available(item, load, (TEST_MATRIX, ARCHITECTURE, PROGRESS)))

    key = MILESTONE_COMPLETED_KEY.format(n=stage.milestone)
    messages.append(
        text_message(
            f"# Stage 5: Implementation, Milestone M{stage.milestone} of {stage.total_milestones}\n\n"
            f"You are a **code builder**. Make the failing tests for milestone M{stage.milestone} "
            f"of {item.id} pass. Implement exactly one milestone in this run.\n\n"
            f"{CONVENTIONS_HINT}\n\n"
            "## Output\n\n"
            f"1. Implementation code committed to the project branch.\n"
            f"2. `wcp_attach(\"{item.id}\", type=\"progress\", filename=\"{PROGRESS}\", ...)` keeping the "
            f"existing frontmatter and adding `{key}` plus an updated `{COMPLETED_AT_KEY}`."
        )
    )
    return {
        "description": f"Stage 5: Implementation M{stage.milestone}/{stage.total_milestones} for {item.id}",
        "messages": messages,
    }


def _complete_prompt(item: WorkItem) -> Dict[str, Any]:
    return {
        "description": f"Pipeline complete for {item.id}",
        "messages": [
            text_message(
                "# Pipeline Complete\n\n"
                f"All pipeline stages are done for {item.id}. "
                f"Run `/create-pr {item.id}` to push the branch and open a pull request."
            )
        ],
    }


def build_work_prompt(item: WorkItem, stage: PipelineStage, load: ArtifactLoader) -> Dict[str, Any]:
    """Build the ``work`` prompt for ``item`` at ``stage``.

    ``load`` returns the content of one of the item's artifacts by filename;
    artifacts that cannot be loaded are left out of the prompt.
    """
    if stage.type == "needs_description":
        return _needs_description_prompt(item)
    if isinstance(stage, Stale):
        return _stale_prompt(item, stage)
    if isinstance(stage, Implementation):
        return _implementation_prompt(item, stage, load)
    if stage.type in REVIEW_BRIEFS:
        number, title, filename = REVIEW_BRIEFS[stage.type]
        return _review_prompt(item, number, title, filename, load)
    if stage.type in STAGE_BRIEFS:
        return _generation_prompt(item, STAGE_BRIEFS[stage.type], load)
    return _complete_prompt(item)


def chain_overview() -> str:
    """Human-readable list of the pipeline chain, used in server instructions."""
    lines = []
    for index, filename in enumerate(PIPELINE_CHAIN):
        gate = " (requires approval)" if filename in GATE_ARTIFACTS else ""
        lines.append(f"{index}. `{filename}` (type `{ARTIFACT_TYPES[filename]}`){gate}")
    return "\n".join(lines)
