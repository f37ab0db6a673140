"""MCP server exposing the Work Context Protocol (WCP) tools."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from wcp import WorkflowManager, chain_overview, setup_logging

INSTRUCTIONS = f"""# Work Context Protocol (WCP)

WCP is a work item tracker for AI agents and humans. It stores structured work items as markdown files with YAML frontmatter, organized by namespace.

## Core Concepts

- **Namespaces** organize work by domain (e.g., PIPE for pipeline work). Each namespace has a directory of work items.
- **Work items** are identified by callsigns like PIPE-12. Each has frontmatter fields, a markdown body (the description) and an append-only activity log.
- **Artifacts** are documents attached to work items, stored in a companion directory alongside the work item.

## Workflow

1. Call wcp_namespaces to see available namespaces.
2. Call wcp_list to find items, wcp_get to read one.
3. Call wcp_create / wcp_update / wcp_comment to record work.
4. Call wcp_attach and wcp_get_artifact to store and read documents.
5. Call wcp_stage (or the `work` prompt) to find out what the pipeline needs next.

## Pipeline Chain

{chain_overview()}

Each artifact records `pipeline_completed_at` in its frontmatter. Gate artifacts are approved with wcp_approve.
"""

mcp = FastMCP("wcp", instructions=INSTRUCTIONS)


def _manager() -> WorkflowManager:
    return WorkflowManager()


@mcp.tool()
def wcp_namespaces() -> Dict[str, Any]:
    """List all configured namespaces with name, description, and item count."""

    return _manager().namespaces()


@mcp.tool()
def wcp_list(
    namespace: str,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    type: Optional[str] = None,
    project: Optional[str] = None,
    assignee: Optional[str] = None,
    parent: Optional[str] = None,
) -> Dict[str, Any]:
    """List work items in a namespace, optionally filtered by status, priority, type, project, assignee, or parent."""

    return _manager().list_items(
        namespace,
        status=status,
        priority=priority,
        type=type,
        project=project,
        assignee=assignee,
        parent=parent,
    )


@mcp.tool()
def wcp_get(id: str) -> Dict[str, Any]:
    """Get a work item by callsign (e.g. 'PIPE-12'). Returns frontmatter, body, artifacts and activity log."""

    return _manager().get_item(id)


@mcp.tool()
def wcp_create(
    namespace: str,
    title: str,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    type: Optional[str] = None,
    project: Optional[str] = None,
    assignee: Optional[str] = None,
    parent: Optional[str] = None,
    body: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a new work item in a namespace. Returns the new callsign. Status defaults to backlog."""

    return _manager().create_item(
        namespace,
        title,
        status=status,
        priority=priority,
        type=type,
        project=project,
        assignee=assignee,
        parent=parent,
        body=body,
    )


@mcp.tool()
def wcp_update(
    id: str,
    title: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    type: Optional[str] = None,
    project: Optional[str] = None,
    assignee: Optional[str] = None,
    parent: Optional[str] = None,
    body: Optional[str] = None,
    add_artifacts: Optional[List[Dict[str, str]]] = None,
) -> Dict[str, Any]:
    """Update a work item's fields. Only provided fields are changed.
    `body` replaces the description; `add_artifacts` ({type, title, url}) appends references."""

    return _manager().update_item(
        id,
        add_artifacts=add_artifacts,
        title=title,
        status=status,
        priority=priority,
        type=type,
        project=project,
        assignee=assignee,
        parent=parent,
        body=body,
    )


@mcp.tool()
def wcp_comment(id: str, author: str, body: str) -> Dict[str, Any]:
    """Add a comment to a work item's activity log."""

    return _manager().add_comment(id, author, body)


@mcp.tool()
def wcp_attach(id: str, type: str, title: str, filename: str, content: str) -> Dict[str, Any]:
    """Attach an artifact file to a work item.
    Stores the content in a companion directory ({NS}/{ID}/) and registers it in the item's artifact list.
    An artifact with the same filename is overwritten."""

    return _manager().attach_artifact(id, type, title, filename, content)


@mcp.tool()
def wcp_get_artifact(id: str, filename: str) -> Dict[str, Any]:
    """Retrieve the content of an artifact attached to a work item."""

    return _manager().get_artifact(id, filename)


@mcp.tool()
def wcp_approve(id: str, filename: str, verdict: str) -> Dict[str, Any]:
    """Record a human verdict ('approved' or 'rejected') on a gate artifact such as architecture-proposal.md or gameplan.md."""

    return _manager().approve_artifact(id, filename, verdict)


@mcp.tool()
def wcp_schema(action: str = "view", namespace: Optional[str] = None, values: Optional[List[str]] = None) -> Dict[str, Any]:
    """View or extend the field schema.

    Actions:
    - 'view': show statuses, priorities, types and artifact types (for a namespace when given)
    - 'add_statuses' / 'remove_statuses': manage a namespace's custom statuses
    - 'add_artifact_types' / 'remove_artifact_types': manage a namespace's custom artifact types
    Default values cannot be removed."""

    return _manager().schema(action, namespace=namespace, values=values)


@mcp.tool()
def wcp_stage(id: str) -> Dict[str, Any]:
    """Detect the pipeline stage of a work item from its current artifacts, with the per-artifact state used."""

    return _manager().pipeline_stage(id)


@mcp.prompt()
def work(id: str) -> List[Dict[str, Any]]:
    """Advance a work item: detects its pipeline stage and returns the instructions for the next step."""

    return _manager().work_prompt(id)["messages"]


@mcp.resource("wcp://namespaces")
def resource_namespaces() -> str:
    """Resource view listing configured namespaces."""

    result = _manager().namespaces()
    if "error" in result:
        return f"{result['error']}: {result['message']}"
    if not result["namespaces"]:
        return "No namespaces configured."

    lines = ["WCP Namespaces"]
    for ns in result["namespaces"]:
        lines.append(f"- {ns['key']}: {ns['name']} ({ns['item_count']} items)")
        if ns["description"]:
            lines.append(f"  {ns['description']}")
    return "\n".join(lines)


if __name__ == "__main__":
    setup_logging()
    mcp.run(transport="stdio")
