"""falgraph MCP Server - Main entry point."""

import json
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from . import model_registry
from . import schemas
from .errors import NodeExecutionError
from .execution import StatusSink, execute_node
from .mcp_utils import (
    clear_correlation_id,
    mcp_tool_wrapper,
    not_found_error,
    paginate,
    validate_range,
    validate_required,
    validate_type,
)
from .params import normalize_params

# Initialize MCP server
mcp = FastMCP(
    "falgraph",
    instructions="Run fal.ai generative media models as graph nodes with live progress",
)


def _check_dict(value: Any, name: str) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    return validate_type(value, dict, name)


# =============================================================================
# Discovery Tools
# =============================================================================


@mcp.tool()
@mcp_tool_wrapper
def list_nodes(category: Optional[str] = None, cursor: Optional[str] = None, limit: int = 20) -> dict:
    """List available nodes (paginated). Optional category filter."""
    error = validate_range(limit, "limit", 1, 100)
    if error:
        return error
    return paginate(model_registry.list_nodes(category), cursor, limit)


@mcp.tool()
@mcp_tool_wrapper
def list_categories() -> dict:
    """List node categories."""
    return {"categories": model_registry.list_categories()}


@mcp.tool()
@mcp_tool_wrapper
def get_node_schema(uid: str) -> dict:
    """Get inputs, parameters, outputs and endpoints of a node."""
    error = validate_required({"uid": uid}, ["uid"])
    if error:
        return error
    return model_registry.get_node_schema(uid)


@mcp.tool()
@mcp_tool_wrapper
def estimate_duration(uid: str, parameters: Optional[dict] = None, input_counts: Optional[dict] = None) -> dict:
    """Expected job duration in ms for the given parameters."""
    error = _check_dict(parameters, "parameters") or _check_dict(input_counts, "input_counts")
    if error:
        return error
    spec = model_registry.get_node_spec(uid)
    if isinstance(spec, dict):
        return spec
    params = normalize_params(spec, parameters)
    return {
        "uid": uid,
        "endpoint": spec.resolve_endpoint(params),
        "expected_ms": model_registry.estimate_expected_ms(spec, params, input_counts),
    }


# =============================================================================
# Execution Tools
# =============================================================================


@mcp.tool()
@mcp_tool_wrapper
def run_node(
    uid: str,
    inputs: Optional[dict] = None,
    parameters: Optional[dict] = None,
    include_progress: bool = True,
) -> dict:
    """
    Run a node and wait for its outputs.

    Media inputs accept asset:// URIs, http(s) URLs or local file paths.
    Media outputs are returned as asset:// URIs.
    """
    error = _check_dict(inputs, "inputs") or _check_dict(parameters, "parameters")
    if error:
        return error

    clear_correlation_id()
    sink = StatusSink()
    try:
        outputs = execute_node(uid, inputs, parameters, context=sink)
    except NodeExecutionError as e:
        result = e.to_dict()
        if include_progress:
            result["progress"] = sink.history
        return result

    result = {"uid": uid, "outputs": outputs}
    if include_progress:
        result["progress"] = sink.history
    return result


# =============================================================================
# Resources
# =============================================================================


@mcp.resource(
    "falgraph://schemas/tools",
    name="Tool Schemas",
    description="JSON schemas for falgraph tool inputs",
    mime_type="application/json",
)
def resource_tool_schemas() -> str:
    return json.dumps(schemas.TOOL_SCHEMAS, indent=2)


@mcp.resource(
    "falgraph://schemas/tools/{tool_name}",
    name="Tool Schema",
    description="Input and output JSON schemas of one tool",
    mime_type="application/json",
)
def resource_tool_schema(tool_name: str) -> str:
    if tool_name not in schemas.list_schemas():
        return json.dumps(not_found_error("Tool", tool_name), indent=2)
    return json.dumps(
        {
            "input": schemas.get_schema(tool_name),
            "output": schemas.get_output_schema(tool_name),
            "status": schemas.get_output_schema("_status"),
            "error": schemas.get_output_schema("_error"),
        },
        indent=2,
    )


@mcp.resource(
    "falgraph://nodes/catalog",
    name="Node Catalog",
    description="Every registered node grouped by category",
    mime_type="application/json",
)
def resource_node_catalog() -> str:
    catalog: Dict[str, list] = {}
    for node in model_registry.list_nodes():
        catalog.setdefault(node["category"], []).append(node["uid"])
    return json.dumps(catalog, indent=2)


def main():
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
