"""WCP (Work Context Protocol) server - core package.

Work items live as markdown files with YAML frontmatter. The pipeline
stage of an item is recomputed from its artifacts on every request.
"""

from .errors import (
    ArtifactNotFoundError,
    ConfigError,
    NamespaceNotFoundError,
    NotFoundError,
    ValidationError,
    WcpError,
)
from .models import Artifact, ItemSummary, Namespace, WorkItem
from .pipeline import (
    GATE_ARTIFACTS,
    PIPELINE_CHAIN,
    Approval,
    ArtifactState,
    PipelineStage,
    detect_pipeline_stage,
)
from .prompts import build_work_prompt, chain_overview
from .snapshot import build_artifact_states
from .wcp_logging import setup_logging
from .workflow import WorkflowManager
from .workspace import Workspace

__all__ = [
    "Approval",
    "Artifact",
    "ArtifactNotFoundError",
    "ArtifactState",
    "ConfigError",
    "GATE_ARTIFACTS",
    "ItemSummary",
    "Namespace",
    "NamespaceNotFoundError",
    "NotFoundError",
    "PIPELINE_CHAIN",
    "PipelineStage",
    "ValidationError",
    "WcpError",
    "WorkItem",
    "WorkflowManager",
    "Workspace",
    "build_artifact_states",
    "build_work_prompt",
    "chain_overview",
    "detect_pipeline_stage",
    "setup_logging",
]
