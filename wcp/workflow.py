"""Tool-facing workflow layer for WCP.

``WorkflowManager`` wraps a ``Workspace`` and exposes one method per MCP
tool. Each method returns a JSON-ready dict. Domain failures (``WcpError``)
come back as ``{"error": code, "message": ...}`` payloads instead of
raising, so agents can read and correct them; anything else propagates.
"""

from __future__ import annotations

import logging
from functools import wraps
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import default_data_path
from .errors import ValidationError, WcpError
from .models import Artifact, CreateItemInput, ItemFilters, UpdateItemInput
from .prompts import build_work_prompt
from .wcp_logging import log_error_with_context
from .workspace import Workspace

logger = logging.getLogger("wcp.workflow")


def _returns_error_payload(operation: str):
    """Convert ``WcpError`` raised by a tool method into an error payload."""
    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except WcpError as e:
                log_error_with_context(e, {"operation": operation, "code": e.code, **kwargs})
                return e.to_dict()
        return wrapper
    return decorator


class WorkflowManager:
    """Manages WCP tool calls against one data directory."""

    def __init__(self, data_path: Optional[Path | str] = None):
        self.data_path = Path(data_path) if data_path else default_data_path()
        self._workspace: Optional[Workspace] = None

    @property
    def workspace(self) -> Workspace:
        # opened lazily so a missing data directory surfaces as a tool error
        if self._workspace is None:
            self._workspace = Workspace(self.data_path)
        return self._workspace

    # ------------------------------------------------------------------
    # Namespaces and items
    # ------------------------------------------------------------------

    @_returns_error_payload("namespaces")
    def namespaces(self) -> Dict[str, Any]:
        namespaces = self.workspace.list_namespaces()
        return {"namespaces": [ns.to_dict() for ns in namespaces], "count": len(namespaces)}

    @_returns_error_payload("list_items")
    def list_items(self, namespace: str, **filters: Optional[str]) -> Dict[str, Any]:
        items = self.workspace.list_items(namespace, ItemFilters(**filters))
        return {"items": [item.to_dict() for item in items], "count": len(items)}

    @_returns_error_payload("get_item")
    def get_item(self, id: str) -> Dict[str, Any]:
        return {"item": self.workspace.get_item(id).to_dict()}

    @_returns_error_payload("create_item")
    def create_item(self, namespace: str, title: str, **fields: Optional[str]) -> Dict[str, Any]:
        item_id = self.workspace.create_item(namespace, CreateItemInput(title=title, **fields))
        result: Dict[str, Any] = {"id": item_id}
        if not (fields.get("body") or "").strip():
            result["workflow_tip"] = f"Add a description with wcp_update before running /work {item_id}"
        return result

    @_returns_error_payload("update_item")
    def update_item(
        self,
        id: str,
        add_artifacts: Optional[List[Dict[str, str]]] = None,
        **fields: Optional[str],
    ) -> Dict[str, Any]:
        changes = UpdateItemInput(
            add_artifacts=[Artifact.from_dict(a) for a in add_artifacts or []],
            **fields,
        )
        self.workspace.update_item(id, changes)
        return {"updated": True}

    @_returns_error_payload("add_comment")
    def add_comment(self, id: str, author: str, body: str) -> Dict[str, Any]:
        self.workspace.add_comment(id, author, body)
        return {"commented": True}

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    @_returns_error_payload("attach_artifact")
    def attach_artifact(self, id: str, type: str, title: str, filename: str, content: str) -> Dict[str, Any]:
        artifact = self.workspace.attach_artifact(id, type, title, filename, content)
        return {"attached": True, "artifact": artifact.to_dict()}

    @_returns_error_payload("get_artifact")
    def get_artifact(self, id: str, filename: str) -> Dict[str, Any]:
        return self.workspace.get_artifact(id, filename).to_dict()

    @_returns_error_payload("approve_artifact")
    def approve_artifact(self, id: str, filename: str, verdict: str) -> Dict[str, Any]:
        self.workspace.approve_artifact(id, filename, verdict)
        return {
            "approved": verdict == "approved",
            "verdict": verdict,
            "next_suggested_step": f"/work {id}",
        }

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    @_returns_error_payload("schema")
    def schema(self, action: str = "view", namespace: Optional[str] = None, values: Optional[List[str]] = None) -> Dict[str, Any]:
        if action == "view":
            return {"namespace": namespace, "schema": self.workspace.get_schema(namespace)}
        if not namespace:
            raise ValidationError("namespace", "required for schema changes")
        changed = self.workspace.update_schema(action, namespace, list(values or []))
        return {
            "namespace": namespace,
            "action": action,
            "changed": changed,
            "schema": self.workspace.get_schema(namespace),
        }

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    @_returns_error_payload("pipeline_stage")
    def pipeline_stage(self, id: str) -> Dict[str, Any]:
        item, stage, states = self.workspace.pipeline_stage(id)
        return {
            "id": item.id,
            "stage": stage.to_dict(),
            "artifacts": [state.to_dict() for state in states.values()],
        }

    def work_prompt(self, id: str) -> Dict[str, Any]:
        """Build the ``work`` prompt for an item's current stage.

        Prompts have no error payload, so failures become a single message.
        """
        try:
            item, stage, _ = self.workspace.pipeline_stage(id)
        except WcpError as e:
            log_error_with_context(e, {"operation": "work_prompt", "id": id, "code": e.code})
            return {
                "description": f"Unable to load {id}",
                "messages": [{"role": "user", "content": {"type": "text", "text": f"{e.code}: {e.message}"}}],
            }

        logger.info(f"Dispatching {stage.type} prompt for {item.id}")
        return build_work_prompt(item, stage, lambda filename: self.workspace.read_artifact_text(item.id, filename))
