"""
MCP Utilities

Structured logging, MCP-compliant error responses, per-tool rate limiting,
pagination and argument validation shared by the node executor, the MCP
server and the CLI.
"""

import base64
import functools
import json
import logging
import os
import threading
import time
import uuid
from collections import defaultdict, deque
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Mapping, Optional, Union

# =============================================================================
# Structured Logging
# =============================================================================

logger = logging.getLogger("falgraph")
logger.setLevel(os.environ.get("FALGRAPH_LOG_LEVEL", "INFO").upper())


class JSONFormatter(logging.Formatter):
    """One JSON object per line: UTC timestamp, level, event and fields."""

    def format(self, record):
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "correlation_id"):
            entry["correlation_id"] = record.correlation_id
        entry.update(getattr(record, "custom_fields", {}))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, separators=(",", ":"), default=str)


if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(JSONFormatter())
    logger.addHandler(_handler)


correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def set_correlation_id(cid: str):
    correlation_id_var.set(cid)


def get_correlation_id() -> str:
    """Current correlation ID; one is generated on first use in a context."""
    cid = correlation_id_var.get()
    if cid is None:
        cid = uuid.uuid4().hex[:8]
        correlation_id_var.set(cid)
    return cid


def clear_correlation_id():
    correlation_id_var.set(None)


def log_structured(level: str, message: str, **fields):
    """Emit a JSON log event tagged with the current correlation ID."""
    extra: Dict[str, Any] = {"correlation_id": get_correlation_id()}
    if fields:
        extra["custom_fields"] = fields
    getattr(logger, level)(message, extra=extra)


# status -> (log level, event suffix)
_COMPLETION_EVENTS = {
    "success": ("info", "completed"),
    "rate_limited": ("warning", "rate_limited"),
}


@dataclass
class NodeInvocation:
    """
    Latency and outcome of one node run or one MCP tool call.

    ``kind`` prefixes the logged event: a node run ends with
    ``node_completed`` / ``node_failed``, a tool call with ``tool_completed``
    / ``tool_failed`` / ``tool_rate_limited``. The fal endpoint is attached
    once the node's variant has been resolved.
    """

    name: str
    kind: str = "node"
    endpoint: Optional[str] = None
    invocation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    correlation_id: str = field(default_factory=get_correlation_id)
    start_time: float = field(default_factory=time.time)

    @property
    def latency_ms(self) -> float:
        return round((time.time() - self.start_time) * 1000, 2)

    def complete(self, status: str = "success", error: Optional[str] = None, **fields) -> Dict[str, Any]:
        """Log the outcome and return the logged fields."""
        entry: Dict[str, Any] = {
            self.kind: self.name,
            "invocation_id": self.invocation_id,
            "latency_ms": self.latency_ms,
            "status": status,
        }
        if self.endpoint:
            entry["endpoint"] = self.endpoint
        entry.update(fields)
        if error:
            entry["error"] = error

        level, suffix = _COMPLETION_EVENTS.get(status, ("error", "failed"))
        log_structured(level, f"{self.kind}_{suffix}", **entry)
        return entry


# =============================================================================
# MCP-Compliant Error Responses
# =============================================================================


def mcp_error(message: str, code: str = "TOOL_ERROR", details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    MCP-compliant error payload.

    Example:
        return mcp_error("Node not found: fal-x", "NOT_FOUND", {"node": "fal-x"})
    """
    result = {"error": message, "code": code, "isError": True}
    if details:
        result["details"] = details
    return result


def not_found_error(resource_type: str, identifier: str) -> Dict[str, Any]:
    return mcp_error(
        f"{resource_type} not found: {identifier}",
        "NOT_FOUND",
        {resource_type.lower(): identifier},
    )


def validation_error(message: str, field: Optional[str] = None) -> Dict[str, Any]:
    return mcp_error(message, "VALIDATION_ERROR", {"field": field} if field else None)


# =============================================================================
# Rate Limiting
# =============================================================================


class RateLimiter:
    """
    Sliding-window limiter keyed by tool name.

    Each tool gets ``limits[tool]`` calls per window, or ``default_limit``
    when it has no entry. Safe to share between FastMCP worker threads.
    """

    def __init__(
        self,
        default_limit: int = 60,
        window_seconds: float = 60,
        limits: Optional[Mapping[str, int]] = None,
    ):
        self.default_limit = default_limit
        self.window_seconds = window_seconds
        self.limits = dict(limits or {})
        self._calls: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def limit_for(self, tool_name: str) -> int:
        return self.limits.get(tool_name, self.default_limit)

    def _prune(self, calls: Deque[float], now: float):
        while calls and now - calls[0] >= self.window_seconds:
            calls.popleft()

    def check(self, tool_name: str) -> bool:
        """Record a call; False when the tool's window is already full."""
        now = time.time()
        with self._lock:
            calls = self._calls[tool_name]
            self._prune(calls, now)
            if len(calls) >= self.limit_for(tool_name):
                return False
            calls.append(now)
            return True

    def retry_after(self, tool_name: str) -> float:
        """Seconds until the oldest call in the window expires."""
        now = time.time()
        with self._lock:
            calls = self._calls[tool_name]
            self._prune(calls, now)
            if not calls:
                return 0.0
            return max(0.0, self.window_seconds - (now - calls[0]))


def build_rate_limiter() -> RateLimiter:
    """Limiter configured from the environment.

    ``run_node`` starts a billed fal.ai job and has its own, lower limit
    (``FALGRAPH_RUN_RATE_LIMIT``); discovery tools share
    ``FALGRAPH_RATE_LIMIT``. Both are calls per minute.
    """
    return RateLimiter(
        default_limit=int(os.environ.get("FALGRAPH_RATE_LIMIT", "60")),
        window_seconds=60,
        limits={"run_node": int(os.environ.get("FALGRAPH_RUN_RATE_LIMIT", "10"))},
    )


_rate_limiter = build_rate_limiter()


def rate_limit_error(tool_name: str) -> Dict[str, Any]:
    return mcp_error(
        f"Rate limit exceeded for {tool_name}",
        "RATE_LIMITED",
        {
            "retry_after_seconds": round(_rate_limiter.retry_after(tool_name), 1),
            "limit": _rate_limiter.limit_for(tool_name),
            "window_seconds": _rate_limiter.window_seconds,
        },
    )


# =============================================================================
# Tool Decorator with Logging and Rate Limiting
# =============================================================================


def mcp_tool_wrapper(func):
    """
    Rate-limit an MCP tool, log its outcome and turn exceptions into errors.

    Example:
        @mcp.tool()
        @mcp_tool_wrapper
        def run_node(uid: str) -> dict:
            ...
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        tool_name = func.__name__
        invocation = NodeInvocation(tool_name, kind="tool")

        if not _rate_limiter.check(tool_name):
            invocation.complete("rate_limited")
            return rate_limit_error(tool_name)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            invocation.complete("error", str(e))
            return mcp_error(str(e), "INTERNAL_ERROR")

        if isinstance(result, dict) and result.get("isError"):
            invocation.complete("error", result.get("error"), code=result.get("code"))
        else:
            invocation.complete("success")
        return result

    return wrapper


# =============================================================================
# Pagination
# =============================================================================


def _encode_cursor(offset: int) -> str:
    return base64.urlsafe_b64encode(str(offset).encode()).decode()


def _decode_cursor(cursor: Optional[str], total: int) -> int:
    if not cursor:
        return 0
    try:
        offset = int(base64.urlsafe_b64decode(cursor.encode()).decode())
    except (ValueError, UnicodeDecodeError):
        return 0
    return offset if 0 <= offset <= total else 0


def paginate(items: List[Any], cursor: Optional[str] = None, limit: int = 20) -> Dict[str, Any]:
    """
    Cursor pagination over catalog listings.

    Returns ``{"items", "nextCursor", "total"}``; an unreadable cursor
    restarts from the first page.
    """
    total = len(items)
    start = _decode_cursor(cursor, total)
    end = min(start + limit, total)
    return {
        "items": items[start:end],
        "nextCursor": _encode_cursor(end) if end < total else None,
        "total": total,
    }


# =============================================================================
# Argument Validation
# =============================================================================
# Each helper returns None when the argument is acceptable, else an error dict.


def validate_required(args: Dict[str, Any], required: List[str]) -> Optional[Dict[str, Any]]:
    missing = [name for name in required if args.get(name) in (None, "")]
    if missing:
        return validation_error(f"Missing required parameters: {', '.join(missing)}", field=missing[0])
    return None


def validate_type(value: Any, expected_type: type, name: str) -> Optional[Dict[str, Any]]:
    if isinstance(value, expected_type):
        return None
    return validation_error(
        f"Parameter '{name}' must be {expected_type.__name__}, got {type(value).__name__}",
        field=name,
    )


def validate_range(
    value: Union[int, float],
    name: str,
    min_val: Optional[Union[int, float]] = None,
    max_val: Optional[Union[int, float]] = None,
) -> Optional[Dict[str, Any]]:
    if min_val is not None and value < min_val:
        return validation_error(f"Parameter '{name}' must be >= {min_val}, got {value}", field=name)
    if max_val is not None and value > max_val:
        return validation_error(f"Parameter '{name}' must be <= {max_val}, got {value}", field=name)
    return None
