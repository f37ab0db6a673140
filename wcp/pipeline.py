"""Pipeline chain model and stage detection.

A work item moves through a fixed chain of artifacts. Nothing records
which stage an item is in: ``detect_pipeline_stage`` reconstructs it from
the observed state of the item's artifacts every time it is called, so the
answer always reflects whatever a human or agent last wrote.

The function is pure. It performs no I/O, never mutates its inputs and
always returns exactly one stage variant.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Dict, Mapping, Optional, Union

from .models import WorkItem

PRD = "prd.md"
DISCOVERY = "discovery-report.md"
ARCHITECTURE = "architecture-proposal.md"
GAMEPLAN = "gameplan.md"
TEST_MATRIX = "test-coverage-matrix.md"
PROGRESS = "progress.md"
REVIEW = "review-report.md"
QA_PLAN = "qa-plan.md"

# Order is load-bearing: staleness and the chain walk both go front to back.
PIPELINE_CHAIN: tuple[str, ...] = (
    PRD,
    DISCOVERY,
    ARCHITECTURE,
    GAMEPLAN,
    TEST_MATRIX,
    PROGRESS,
    REVIEW,
    QA_PLAN,
)

GATE_ARTIFACTS: frozenset[str] = frozenset({ARCHITECTURE, GAMEPLAN})

ARTIFACT_TYPES: Mapping[str, str] = MappingProxyType({
    PRD: "prd",
    DISCOVERY: "discovery",
    ARCHITECTURE: "architecture",
    GAMEPLAN: "gameplan",
    TEST_MATRIX: "test-matrix",
    PROGRESS: "progress",
    REVIEW: "review",
    QA_PLAN: "qa-plan",
})


class Approval(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    PENDING = "pending"

    @classmethod
    def parse(cls, value: Any) -> "Approval":
        """Map a frontmatter verdict to an ``Approval``.

        Matching is exact: anything other than the literal strings
        ``approved`` or ``rejected`` is pending.
        """
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
        return cls.PENDING


@dataclass(slots=True)
class ArtifactState:
    """Observed state of one chain artifact.

    ``approval`` is only set for gate artifacts, ``milestone_count`` only for
    the gameplan and ``completed_milestones`` only for the progress log.
    ``None`` always means "not known", which is different from zero.
    """

    filename: str
    exists: bool = False
    completed_at: Optional[datetime] = None
    approval: Optional[Approval] = None
    milestone_count: Optional[int] = None
    completed_milestones: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"filename": self.filename, "exists": self.exists}
        if self.completed_at is not None:
            data["completed_at"] = self.completed_at.isoformat()
        if self.approval is not None:
            data["approval"] = self.approval.value
        if self.milestone_count is not None:
            data["milestone_count"] = self.milestone_count
        if self.completed_milestones is not None:
            data["completed_milestones"] = self.completed_milestones
        return data


# ----------------------------------------------------------------------
# Stage variants
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _Stage:
    type: ClassVar[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type}


@dataclass(frozen=True, slots=True)
class NeedsDescription(_Stage):
    type: ClassVar[str] = "needs_description"


@dataclass(frozen=True, slots=True)
class Stale(_Stage):
    """``artifact`` was completed before the latest change to ``upstream``."""

    type: ClassVar[str] = "stale"
    artifact: str
    upstream: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "artifact": self.artifact, "upstream": self.upstream}


@dataclass(frozen=True, slots=True)
class GenerateRequirements(_Stage):
    type: ClassVar[str] = "generate_requirements"


@dataclass(frozen=True, slots=True)
class GenerateDiscovery(_Stage):
    type: ClassVar[str] = "generate_discovery"


@dataclass(frozen=True, slots=True)
class GenerateDesign(_Stage):
    type: ClassVar[str] = "generate_design"


@dataclass(frozen=True, slots=True)
class DesignReview(_Stage):
    type: ClassVar[str] = "design_review"


@dataclass(frozen=True, slots=True)
class GeneratePlan(_Stage):
    type: ClassVar[str] = "generate_plan"


@dataclass(frozen=True, slots=True)
class PlanReview(_Stage):
    type: ClassVar[str] = "plan_review"


@dataclass(frozen=True, slots=True)
class GenerateTests(_Stage):
    type: ClassVar[str] = "generate_tests"


@dataclass(frozen=True, slots=True)
class Implementation(_Stage):
    """Work on milestone ``milestone`` (1-based) of ``total_milestones``."""

    type: ClassVar[str] = "implementation"
    milestone: int
    total_milestones: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "milestone": self.milestone,
            "total_milestones": self.total_milestones,
        }


@dataclass(frozen=True, slots=True)
class NeedsReview(_Stage):
    type: ClassVar[str] = "needs_review"


@dataclass(frozen=True, slots=True)
class NeedsQaPlan(_Stage):
    type: ClassVar[str] = "needs_qa_plan"


@dataclass(frozen=True, slots=True)
class Complete(_Stage):
    type: ClassVar[str] = "complete"


PipelineStage = Union[
    NeedsDescription,
    Stale,
    GenerateRequirements,
    GenerateDiscovery,
    GenerateDesign,
    DesignReview,
    GeneratePlan,
    PlanReview,
    GenerateTests,
    Implementation,
    NeedsReview,
    NeedsQaPlan,
    Complete,
]

# Stage returned when the walk reaches a chain artifact that does not exist.
GENERATE_STAGES: Mapping[str, PipelineStage] = MappingProxyType({
    PRD: GenerateRequirements(),
    DISCOVERY: GenerateDiscovery(),
    ARCHITECTURE: GenerateDesign(),
    GAMEPLAN: GeneratePlan(),
    TEST_MATRIX: GenerateTests(),
})

REVIEW_STAGES: Mapping[str, PipelineStage] = MappingProxyType({
    ARCHITECTURE: DesignReview(),
    GAMEPLAN: PlanReview(),
})


# ----------------------------------------------------------------------
# Classification
# ----------------------------------------------------------------------


def _state(artifacts: Mapping[str, ArtifactState], filename: str) -> ArtifactState:
    return artifacts.get(filename) or ArtifactState(filename)


def _instant(value: datetime) -> datetime:
    # naive values are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def find_stale_pair(artifacts: Mapping[str, ArtifactState]) -> Optional[Stale]:
    """Return the first adjacent pair whose upstream finished after its downstream.

    Pairs where either side is missing or has no completion time are skipped.
    """
    for upstream_name, downstream_name in zip(PIPELINE_CHAIN, PIPELINE_CHAIN[1:]):
        upstream = _state(artifacts, upstream_name)
        downstream = _state(artifacts, downstream_name)
        if not (upstream.exists and downstream.exists):
            continue
        if upstream.completed_at is None or downstream.completed_at is None:
            continue
        if _instant(upstream.completed_at) > _instant(downstream.completed_at):
            return Stale(artifact=downstream_name, upstream=upstream_name)
    return None


def detect_pipeline_stage(
    item: WorkItem,
    artifacts: Mapping[str, ArtifactState],
) -> PipelineStage:
    """Determine the current pipeline stage of ``item`` from its artifact states."""
    if not item.has_description:
        return NeedsDescription()

    stale = find_stale_pair(artifacts)
    if stale is not None:
        return stale

    # The walk stops at the test matrix; everything after it is implementation
    # progress and post-implementation, handled below.
    for filename in PIPELINE_CHAIN[: PIPELINE_CHAIN.index(TEST_MATRIX) + 1]:
        state = _state(artifacts, filename)
        if not state.exists:
            return GENERATE_STAGES[filename]
        if filename in GATE_ARTIFACTS and state.approval is not Approval.APPROVED:
            return REVIEW_STAGES[filename]

    total = _state(artifacts, GAMEPLAN).milestone_count
    completed = _state(artifacts, PROGRESS).completed_milestones
    review_exists = _state(artifacts, REVIEW).exists

    if total is not None and completed is not None:
        if completed < total:
            return Implementation(milestone=completed + 1, total_milestones=total)
    elif not review_exists:
        return Implementation(milestone=1, total_milestones=total if total is not None else 1)

    if not review_exists:
        return NeedsReview()
    if not _state(artifacts, QA_PLAN).exists:
        return NeedsQaPlan()
    return Complete()
