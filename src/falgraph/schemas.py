"""
JSON Schemas for MCP Tool Inputs and Outputs

Explicit JSON Schema definitions for the falgraph tools, plus TypedDicts for
the status payloads a node sends to its host.
"""

from typing import Any, Dict, List, Optional, TypedDict

from typing_extensions import NotRequired, Required

# =============================================================================
# Status Payloads
# =============================================================================


class ProgressPayload(TypedDict):
    """Progress of a running node; total is always 100."""

    step: int
    total: int


class StatusPayload(TypedDict, total=False):
    """A status message sent over the host channel."""

    type: Required[str]  # "running" | "error"
    message: Required[str]
    progress: NotRequired[ProgressPayload]


class NodeSummary(TypedDict):
    uid: str
    name: str
    category: str
    description: str


class NodeResult(TypedDict, total=False):
    """run_node tool response."""

    uid: Required[str]
    outputs: Required[Dict[str, List[Any]]]
    progress: NotRequired[List[StatusPayload]]


# =============================================================================
# Input Schemas
# =============================================================================

LIST_NODES_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "category": {"type": "string", "description": "Only nodes in this category"},
        "cursor": {"type": "string", "description": "Pagination cursor from a previous call"},
        "limit": {"type": "integer", "minimum": 1, "maximum": 100, "default": 20},
    },
}

GET_NODE_SCHEMA_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["uid"],
    "properties": {
        "uid": {"type": "string", "description": "Node uid, e.g. 'fal-veo3-text-to-video'"},
    },
}

ESTIMATE_DURATION_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["uid"],
    "properties": {
        "uid": {"type": "string"},
        "parameters": {"type": "object", "additionalProperties": True},
        "input_counts": {
            "type": "object",
            "description": "Connected media inputs per group, e.g. {'images': 3}",
            "additionalProperties": {"type": "integer", "minimum": 0},
        },
    },
}

RUN_NODE_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["uid"],
    "properties": {
        "uid": {"type": "string"},
        "inputs": {
            "type": "object",
            "description": "Input slot values; media slots take asset:// URIs, URLs or local paths",
            "additionalProperties": True,
        },
        "parameters": {"type": "object", "additionalProperties": True},
        "include_progress": {"type": "boolean", "default": True},
    },
}


# =============================================================================
# Output Schemas
# =============================================================================

STATUS_OUTPUT = {
    "type": "object",
    "required": ["type", "message"],
    "properties": {
        "type": {"type": "string", "enum": ["running", "error"]},
        "message": {"type": "string"},
        "progress": {
            "type": "object",
            "required": ["step", "total"],
            "properties": {
                "step": {"type": "integer", "minimum": 0, "maximum": 100},
                "total": {"type": "integer", "const": 100},
            },
        },
    },
}

RUN_NODE_OUTPUT = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["uid", "outputs"],
    "properties": {
        "uid": {"type": "string"},
        "outputs": {"type": "object", "additionalProperties": {"type": "array"}},
        "progress": {"type": "array", "items": STATUS_OUTPUT},
    },
}

ESTIMATE_DURATION_OUTPUT = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["uid", "endpoint", "expected_ms"],
    "properties": {
        "uid": {"type": "string"},
        "endpoint": {"type": "string"},
        "expected_ms": {"type": "integer", "minimum": 0},
    },
}

MCP_ERROR_OUTPUT = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "error": {"type": "string"},
        "code": {"type": "string"},
        "isError": {"type": "boolean", "const": True},
        "suggestion": {"type": "string"},
        "details": {"type": "object", "additionalProperties": True},
    },
    "required": ["error", "isError"],
}


# =============================================================================
# Schema Registry
# =============================================================================

TOOL_SCHEMAS = {
    "list_nodes": LIST_NODES_SCHEMA,
    "get_node_schema": GET_NODE_SCHEMA_SCHEMA,
    "estimate_duration": ESTIMATE_DURATION_SCHEMA,
    "run_node": RUN_NODE_SCHEMA,
}

OUTPUT_SCHEMAS = {
    "run_node": RUN_NODE_OUTPUT,
    "estimate_duration": ESTIMATE_DURATION_OUTPUT,
    "_status": STATUS_OUTPUT,
    "_error": MCP_ERROR_OUTPUT,
}


def get_schema(tool_name: str) -> Optional[Dict[str, Any]]:
    """Get JSON schema for a tool's inputs."""
    return TOOL_SCHEMAS.get(tool_name)


def get_output_schema(tool_name: str) -> Optional[Dict[str, Any]]:
    """Get JSON schema for a tool's outputs."""
    return OUTPUT_SCHEMAS.get(tool_name)


def list_schemas() -> List[str]:
    return list(TOOL_SCHEMAS.keys())
