"""
Model Registry - Single Source of Truth for Node Definitions

Every hosted endpoint is described by a declarative ``NodeSpec``: its input
slots, parameters, outputs, endpoint (possibly chosen by a variant parameter)
and expected-duration heuristic. The generic executor in ``execution.py`` runs
any registered spec; no model has its own execution routine.

Usage:
    from .model_registry import (
        get_node_spec,
        require_node_spec,
        get_node_schema,
        list_nodes,
        list_categories,
    )
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from .errors import NodeExecutionError, NodeNotFoundError
from .mcp_utils import not_found_error
from .progress import default_progress_message

# =============================================================================
# Schema Types
# =============================================================================

MEDIA_KINDS = ("image", "video", "file")


@dataclass
class InputSpec:
    """A typed input slot on the graph node."""

    name: str
    kind: str = "text"  # text | number | image | video | file
    required: bool = False
    payload_key: Optional[str] = None  # None: not sent automatically
    group: Optional[str] = None
    default: Any = None
    content_type: Optional[str] = None  # upload MIME for non-image media
    upload_name: Optional[str] = None
    url_passthrough: bool = False
    description: str = ""

    @property
    def is_media(self) -> bool:
        return self.kind in MEDIA_KINDS


@dataclass
class GroupSpec:
    """Several media slots collected into one payload list (image1..image4)."""

    name: str
    payload_key: str
    min_count: int = 1
    message: str = "At least one input image is required"


@dataclass
class ParamSpec:
    """A node parameter with its default, range and options."""

    name: str
    type: str = "str"  # str | int | float | bool | seed
    default: Any = None
    min: Optional[float] = None
    max: Optional[float] = None
    options: Optional[List[Any]] = None
    label: str = ""
    description: str = ""
    payload_key: Optional[str] = None
    send: bool = True
    optional: bool = False  # omit from payload when empty
    include: Optional[Callable[[Dict[str, Any]], bool]] = None
    default_for: Optional[Callable[[Dict[str, Any]], Any]] = None
    options_for: Optional[Callable[[Dict[str, Any]], List[Any]]] = None

    @property
    def key(self) -> str:
        return self.payload_key or self.name

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "name": self.name,
            "type": "int" if self.type == "seed" else self.type,
            "default": self.default,
            "label": self.label or self.name.replace("_", " ").title(),
        }
        if self.description:
            result["description"] = self.description
        if self.min is not None:
            result["min"] = self.min
        if self.max is not None:
            result["max"] = self.max
        if self.options:
            result["options"] = list(self.options)
        return result


@dataclass
class OutputSpec:
    """
    An output slot and where to find it in the provider response.

    ``source`` names one or more response keys; the first present one wins.
    Media kinds are downloaded and re-uploaded to the host asset store.
    """

    name: str
    kind: str = "image"  # image | video | mesh | file | value | json | url
    source: Union[str, Tuple[str, ...]] = ""
    many: bool = False
    required: bool = False
    description: str = ""
    deferred: bool = False  # filled by the node's postprocess hook
    filename: Union[None, str, Callable[[Dict[str, Any]], str]] = None

    @property
    def sources(self) -> Tuple[str, ...]:
        if isinstance(self.source, tuple):
            return self.source or (self.name,)
        return (self.source or self.name,)

    @property
    def is_media(self) -> bool:
        return self.kind in ("image", "video", "mesh", "file")


class VariantEndpoint:
    """Endpoint chosen by the value of a variant parameter."""

    def __init__(self, param: str, mapping: Mapping[str, str], default: Optional[str] = None):
        self.param = param
        self.mapping = dict(mapping)
        self.default = default if default is not None else next(iter(self.mapping))

    def __call__(self, params: Dict[str, Any]) -> str:
        key = params.get(self.param, self.default)
        return self.mapping.get(key, self.mapping[self.default])

    def all(self) -> List[str]:
        return list(self.mapping.values())


ExpectedFn = Callable[[Dict[str, Any], Dict[str, int]], float]


def fixed(ms: float) -> ExpectedFn:
    """Constant expected duration."""
    return lambda params, counts: ms


@dataclass
class NodeSpec:
    """Complete declarative definition of one hosted-endpoint node."""

    uid: str
    name: str
    category: str
    endpoint: Union[str, VariantEndpoint, Callable[[Dict[str, Any]], str]]
    description: str = ""
    version: str = "1.0.0"
    inputs: List[InputSpec] = field(default_factory=list)
    groups: List[GroupSpec] = field(default_factory=list)
    params: List[ParamSpec] = field(default_factory=list)
    outputs: List[OutputSpec] = field(default_factory=list)
    expected_ms: ExpectedFn = fixed(30000)
    queue_message: Union[str, Callable[[Dict[str, Any]], str]] = "Waiting in queue..."
    finalizing_message: str = "Finalizing..."
    progress_message: Callable[[int], str] = default_progress_message
    preparing_message: str = "Preparing inputs..."
    upload_progress: Optional[Callable[[int, int], int]] = None
    queue_floor: int = 0
    validate: Optional[Callable[[Dict[str, Any], Dict[str, Any]], Any]] = None
    build_payload: Optional[Callable[..., Dict[str, Any]]] = None
    postprocess: Optional[Callable[..., Dict[str, List[Any]]]] = None
    error_message: str = "Node execution failed"

    def resolve_endpoint(self, params: Dict[str, Any]) -> str:
        if isinstance(self.endpoint, str):
            return self.endpoint
        return self.endpoint(params)

    def endpoints(self) -> List[str]:
        if isinstance(self.endpoint, str):
            return [self.endpoint]
        if isinstance(self.endpoint, VariantEndpoint):
            return self.endpoint.all()
        return []

    def resolve_queue_message(self, params: Dict[str, Any]) -> str:
        if callable(self.queue_message):
            return self.queue_message(params)
        return self.queue_message

    def get_group(self, name: str) -> Optional[GroupSpec]:
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def defaults(self) -> Dict[str, Any]:
        return {p.name: p.default for p in self.params}

    def summary(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "name": self.name,
            "category": self.category,
            "description": self.description,
        }

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable schema for tooling and the MCP server."""
        return {
            **self.summary(),
            "version": self.version,
            "endpoints": self.endpoints(),
            "inputs": [
                {
                    "name": i.name,
                    "kind": i.kind,
                    "required": i.required,
                    **({"group": i.group} if i.group else {}),
                    **({"description": i.description} if i.description else {}),
                }
                for i in self.inputs
            ],
            "parameters": [p.to_dict() for p in self.params],
            "outputs": [
                {"name": o.name, "kind": o.kind, **({"description": o.description} if o.description else {})}
                for o in self.outputs
            ],
        }


# =============================================================================
# Registry
# =============================================================================

NODE_SPECS: Dict[str, NodeSpec] = {}


def register(*specs: NodeSpec) -> None:
    for spec in specs:
        if spec.uid in NODE_SPECS:
            raise ValueError(f"Duplicate node uid: {spec.uid}")
        NODE_SPECS[spec.uid] = spec


def _ensure_loaded() -> None:
    # The catalog registers itself on import.
    from . import node_specs  # noqa: F401


# =============================================================================
# Public API
# =============================================================================


def get_node_spec(uid: str) -> Union[NodeSpec, Dict[str, Any]]:
    """Get a node spec, or an MCP not-found error dict."""
    _ensure_loaded()
    spec = NODE_SPECS.get(uid)
    if spec is None:
        return not_found_error("Node", uid)
    return spec


def require_node_spec(uid: str) -> NodeSpec:
    """Get a node spec or raise NodeExecutionError."""
    _ensure_loaded()
    spec = NODE_SPECS.get(uid)
    if spec is None:
        raise NodeExecutionError(NodeNotFoundError(node_uid=uid, available=sorted(NODE_SPECS)))
    return spec


def get_node_schema(uid: str) -> Dict[str, Any]:
    spec = get_node_spec(uid)
    if isinstance(spec, dict):
        return spec
    return spec.to_dict()


def list_nodes(category: Optional[str] = None) -> List[Dict[str, Any]]:
    """Node summaries sorted by category then name."""
    _ensure_loaded()
    specs = NODE_SPECS.values()
    if category:
        specs = [s for s in specs if s.category.lower() == category.lower()]
    return [s.summary() for s in sorted(specs, key=lambda s: (s.category, s.name))]


def list_categories() -> List[str]:
    _ensure_loaded()
    return sorted({s.category for s in NODE_SPECS.values()})


def estimate_expected_ms(spec: NodeSpec, params: Dict[str, Any], counts: Optional[Dict[str, int]] = None) -> int:
    """Expected job duration for already-normalized params."""
    return int(spec.expected_ms(params, counts or {}))
