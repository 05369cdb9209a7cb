"""
Node Error Handling

Rich error records with actionable guidance for node execution failures.

All errors serialize to the MCP error shape:
- "isError": true
- "code" for categorization
- "error" human-readable message
- "suggestion" actionable guidance
- "details" additional context
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class RichNodeError:
    """MCP-compliant error record with suggestion and troubleshooting fields."""

    code: str = ""
    error: str = ""
    suggestion: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    troubleshooting: Optional[str | List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to MCP-compliant error dict."""
        result: Dict[str, Any] = {
            "isError": True,
            "code": self.code,
            "error": self.error,
            "suggestion": self.suggestion,
        }
        if self.details:
            result["details"] = self.details
        if self.troubleshooting:
            result["troubleshooting"] = self.troubleshooting
        return result


@dataclass
class MissingInputError(RichNodeError):
    """
    A required node input slot was empty.

    Example:
        MissingInputError(node_uid="fal-veo3-text-to-video", input_name="prompt").to_dict()
    """

    node_uid: str = ""
    input_name: str = ""
    message: str = ""

    def __post_init__(self):
        self.code = "MISSING_INPUT"
        label = self.input_name.replace("_", " ").capitalize() or "Input"
        self.error = self.message or f"{label} is required"
        self.suggestion = f"Connect a value to the '{self.input_name}' input of {self.node_uid}."
        self.details = {"node_uid": self.node_uid, "input": self.input_name}


@dataclass
class InvalidParameterError(RichNodeError):
    """
    A parameter combination the endpoint rejects.

    Example:
        InvalidParameterError(
            node_uid="fal-sora-2-text-to-video",
            param_name="resolution",
            message="1080p resolution is only available in Pro variant",
        ).to_dict()
    """

    node_uid: str = ""
    param_name: str = ""
    message: str = ""
    allowed: List[Any] = field(default_factory=list)

    def __post_init__(self):
        self.code = "INVALID_PARAMETER"
        self.error = self.message or f"Invalid value for '{self.param_name}'"
        self.suggestion = f"Adjust '{self.param_name}' on {self.node_uid}."
        if self.allowed:
            self.suggestion += f" Allowed: {', '.join(str(a) for a in self.allowed)}"
        self.details = {"node_uid": self.node_uid, "parameter": self.param_name}


@dataclass
class NodeNotFoundError(RichNodeError):
    """Unknown node uid."""

    node_uid: str = ""
    available: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.code = "NOT_FOUND"
        self.error = f"Node not found: {self.node_uid}"
        self.suggestion = "Run list_nodes() to see the registered node uids."
        self.details = {"node_uid": self.node_uid, "available": self.available[:10]}


@dataclass
class ProviderJobError(RichNodeError):
    """The remote inference job failed or was rejected."""

    endpoint: str = ""
    message: str = ""

    def __post_init__(self):
        self.code = "PROVIDER_ERROR"
        self.error = self.message or f"Job failed on {self.endpoint}"
        self.suggestion = "Check the parameters against the endpoint's limits, or retry if the error is transient."
        self.details = {"endpoint": self.endpoint}
        self.troubleshooting = [
            "1. Verify FAL_KEY is set and valid",
            "2. Check the endpoint status page for outages",
            "3. Re-run with fewer images or a lower resolution",
        ]


@dataclass
class EmptyResultError(RichNodeError):
    """The job completed but returned none of the expected outputs."""

    endpoint: str = ""
    output_name: str = ""
    message: str = ""

    def __post_init__(self):
        self.code = "EMPTY_RESULT"
        self.error = self.message or f"No {self.output_name} returned by {self.endpoint}"
        self.suggestion = "The safety checker may have filtered the result. Try a different prompt or seed."
        self.details = {"endpoint": self.endpoint, "output": self.output_name}


@dataclass
class AssetTransferError(RichNodeError):
    """Resolving, downloading or uploading an asset failed."""

    uri: str = ""
    operation: str = ""
    message: str = ""

    def __post_init__(self):
        self.code = "ASSET_TRANSFER"
        self.error = self.message or f"Failed to {self.operation} asset {self.uri}"
        self.suggestion = "Check that the asset exists and the network is reachable."
        self.details = {"uri": self.uri, "operation": self.operation}


class NodeExecutionError(Exception):
    """Raised by the executor; carries the rich error record."""

    def __init__(self, record: RichNodeError):
        super().__init__(record.error)
        self.record = record

    @property
    def code(self) -> str:
        return self.record.code

    def to_dict(self) -> Dict[str, Any]:
        return self.record.to_dict()


def _validation_messages(detail: Any) -> Optional[str]:
    if isinstance(detail, list):
        messages = [d.get("msg") for d in detail if isinstance(d, dict) and d.get("msg")]
        if messages:
            return "; ".join(messages)
    if isinstance(detail, str) and detail:
        return detail
    return None


def _response_detail(error: Exception) -> Any:
    response = getattr(error, "response", None)
    if response is None:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("detail") if isinstance(body, dict) else None


def provider_error_message(error: Exception, fallback: str) -> str:
    """Best human-readable message for a provider exception.

    ``fal_client.FalClientHTTPError`` puts the response's ``detail`` (a list
    of ``{"msg": ...}`` entries on validation failures) into ``message`` and
    keeps the raw ``response``. Exceptions carrying ``detail`` or a JSON
    ``body`` directly are read too.
    """
    body = getattr(error, "body", None)
    candidates = (
        getattr(error, "detail", None),
        body.get("detail") if isinstance(body, dict) else None,
        getattr(error, "message", None),
    )
    for detail in candidates:
        message = _validation_messages(detail)
        if message:
            return message
    message = _validation_messages(_response_detail(error))
    if message:
        return message
    return str(error) or fallback
