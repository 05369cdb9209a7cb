"""
falgraph

Graph nodes for hosted generative-media models on fal.ai. Each node is a
declarative spec run by one generic executor that reports live progress
to its host. Ships with an MCP server and a CLI.
"""

__version__ = "0.1.0"

from .server import mcp, main
from .execution import StatusSink, execute_node
from .errors import NodeExecutionError
from .model_registry import (
    NodeSpec,
    get_node_schema,
    get_node_spec,
    list_categories,
    list_nodes,
)
from .progress import Lifecycle, ProgressStrategy, QueueEvent, create_progress_strategy

__all__ = [
    "mcp",
    "main",
    "__version__",
    "StatusSink",
    "execute_node",
    "NodeExecutionError",
    "NodeSpec",
    "get_node_schema",
    "get_node_spec",
    "list_categories",
    "list_nodes",
    "Lifecycle",
    "ProgressStrategy",
    "QueueEvent",
    "create_progress_strategy",
]
