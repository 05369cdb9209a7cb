"""
fal.ai Client

Thin wrapper over ``fal_client`` that adds retry with backoff for storage
transfers, translates queue updates into ``QueueEvent``s and downloads
result files.
"""

import functools
import os
import time
import urllib.error
import urllib.request
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

import fal_client

from .mcp_utils import log_structured
from .progress import QueueEvent

# Retry configuration from environment
RETRY_MAX_ATTEMPTS = int(os.environ.get("FAL_RETRY_ATTEMPTS", "3"))
RETRY_BACKOFF = float(os.environ.get("FAL_RETRY_BACKOFF", "1.0"))
RETRY_MULTIPLIER = float(os.environ.get("FAL_RETRY_MULTIPLIER", "2.0"))
DOWNLOAD_TIMEOUT = float(os.environ.get("FALGRAPH_DOWNLOAD_TIMEOUT", "300"))

# Retryable error patterns
RETRYABLE_ERRORS = [
    "timed out",
    "timeout",
    "connection refused",
    "connection reset",
    "temporary failure",
    "service unavailable",
    "too many requests",
    "429",
    "502",
    "503",
    "504",
]

T = TypeVar("T")


def is_retryable(error: Exception) -> bool:
    error_str = str(error).lower()
    return any(pattern in error_str for pattern in RETRYABLE_ERRORS)


def retry(
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    backoff: float = RETRY_BACKOFF,
    multiplier: float = RETRY_MULTIPLIER,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for retrying transient failures with exponential backoff.

    Non-retryable errors and the last retryable error are re-raised.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            delay = backoff

            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not is_retryable(e) or attempt >= max_attempts - 1:
                        raise
                    log_structured(
                        "warning",
                        "retrying_request",
                        operation=func.__name__,
                        attempt=attempt + 1,
                        delay_seconds=delay,
                        error=str(e),
                    )
                    time.sleep(delay)
                    delay *= multiplier

            raise RuntimeError("Max retries exceeded")

        return wrapper

    return decorator


def get_fal_key() -> Optional[str]:
    """FAL_KEY, or FAL_KEY_ID:FAL_KEY_SECRET."""
    key = os.environ.get("FAL_KEY")
    if key:
        return key
    key_id = os.environ.get("FAL_KEY_ID")
    key_secret = os.environ.get("FAL_KEY_SECRET")
    if key_id and key_secret:
        return f"{key_id}:{key_secret}"
    return None


def to_queue_event(status: Any) -> Optional[QueueEvent]:
    """Translate a ``fal_client`` status object; None for unknown types."""
    if isinstance(status, fal_client.Queued):
        return QueueEvent.queued(getattr(status, "position", None))
    if isinstance(status, fal_client.InProgress):
        return QueueEvent.in_progress(_log_lines(getattr(status, "logs", None)))
    if isinstance(status, fal_client.Completed):
        return QueueEvent.completed(_log_lines(getattr(status, "logs", None)))
    return None


def _log_lines(logs) -> list:
    lines = []
    for entry in logs or []:
        if isinstance(entry, dict):
            message = entry.get("message")
            if message:
                lines.append(str(message))
        elif entry:
            lines.append(str(entry))
    return lines


class FalClient:
    """Client for fal.ai queue jobs and storage."""

    def __init__(self, key: Optional[str] = None, timeout: float = DOWNLOAD_TIMEOUT):
        self.key = key or get_fal_key()
        self.timeout = timeout
        self._sync = fal_client.SyncClient(key=self.key)

    @property
    def configured(self) -> bool:
        return bool(self.key)

    @retry()
    def upload(self, data: bytes, content_type: str, file_name: Optional[str] = None) -> str:
        """Upload bytes to fal storage and return the public URL."""
        url = self._sync.upload(data, content_type, file_name=file_name)
        log_structured(
            "debug",
            "storage_upload",
            content_type=content_type,
            size=len(data),
            file_name=file_name,
        )
        return url

    def subscribe(
        self,
        endpoint: str,
        arguments: Dict[str, Any],
        on_event: Optional[Callable[[QueueEvent], None]] = None,
    ) -> Dict[str, Any]:
        """Submit a job and block until it completes, forwarding queue updates."""

        def _on_queue_update(status):
            event = to_queue_event(status)
            if event is not None and on_event is not None:
                on_event(event)

        def _on_enqueue(request_id):
            log_structured("info", "job_enqueued", endpoint=endpoint, request_id=request_id)

        return self._sync.subscribe(
            endpoint,
            arguments=arguments,
            with_logs=True,
            on_enqueue=_on_enqueue,
            on_queue_update=_on_queue_update,
        )

    @retry()
    def download(self, url: str, timeout: Optional[float] = None) -> Tuple[bytes, Optional[str]]:
        """Fetch a result file; returns (bytes, content_type)."""
        req = urllib.request.Request(url, headers={"User-Agent": "falgraph"})
        try:
            with urllib.request.urlopen(req, timeout=timeout or self.timeout) as resp:
                return resp.read(), resp.headers.get("Content-Type")
        except urllib.error.HTTPError as e:
            raise ConnectionError(f"Download failed ({e.code}) for {url}") from e


# Global client instance
_client: Optional[FalClient] = None


def get_client() -> FalClient:
    """Get or create global client instance."""
    global _client
    if _client is None:
        _client = FalClient()
    return _client
