"""
Node Execution

One generic routine runs every registered node: validate inputs, normalize
parameters, upload input media to fal storage, submit the job while feeding
queue updates through a per-job ProgressStrategy, then move result media into
the host asset store.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .assets import (
    AssetStore,
    detect_image_format,
    generate_asset_filename,
    get_store,
    image_mime,
)
from .client import FalClient, get_client
from .errors import (
    AssetTransferError,
    EmptyResultError,
    MissingInputError,
    NodeExecutionError,
    ProviderJobError,
    provider_error_message,
)
from .mcp_utils import NodeInvocation, get_correlation_id, log_structured
from .model_registry import InputSpec, NodeSpec, OutputSpec, estimate_expected_ms, require_node_spec
from .params import normalize_params, seed_or_none, to_number
from .progress import Lifecycle, QueueEvent, create_progress_strategy

_VIDEO_EXTENSIONS = {"video/mp4": "mp4", "video/quicktime": "mov", "video/webm": "webm"}


# =============================================================================
# Host Status Sink
# =============================================================================


class StatusSink:
    """
    Adapts the host's status channel.

    ``target`` is an object with ``send_status(dict)``, a plain callable, or
    None (statuses are only logged). Running steps never go backwards.
    """

    def __init__(self, target: Any = None):
        if target is None:
            self._send = None
        elif hasattr(target, "send_status"):
            self._send = target.send_status
        else:
            self._send = target
        self.high_water = 0
        self.history: List[Dict[str, Any]] = []

    def running(self, message: str, step: Optional[int] = None, floor: int = 0) -> Dict[str, Any]:
        status: Dict[str, Any] = {"type": "running", "message": message}
        if step is not None:
            if step < 100:
                step = max(step, floor, self.high_water)
            self.high_water = step
            status["progress"] = {"step": step, "total": 100}
        return self._emit(status)

    def error(self, message: str) -> Dict[str, Any]:
        return self._emit({"type": "error", "message": message})

    def _emit(self, status: Dict[str, Any]) -> Dict[str, Any]:
        self.history.append(status)
        if self._send is not None:
            self._send(status)
        return status


# =============================================================================
# Run Context
# =============================================================================


@dataclass
class RunContext:
    """Per-invocation state handed to a node's hooks."""

    spec: NodeSpec
    endpoint: str
    params: Dict[str, Any]
    values: Dict[str, Any]
    client: FalClient
    store: AssetStore
    sink: StatusSink
    inputs: Dict[str, Any] = field(default_factory=dict)
    counts: Dict[str, int] = field(default_factory=dict)
    uploads: Dict[str, Any] = field(default_factory=dict)
    result: Dict[str, Any] = field(default_factory=dict)
    _downloads: Dict[str, Any] = field(default_factory=dict)

    def upload_bytes(self, data: bytes, content_type: str, file_name: str) -> str:
        try:
            return self.client.upload(data, content_type, file_name)
        except Exception as e:
            raise NodeExecutionError(
                AssetTransferError(uri=file_name, operation="upload", message=f"Failed to upload {file_name}: {e}")
            ) from e

    def resolve_asset(self, uri: str) -> bytes:
        try:
            data = self.store.resolve(uri)
        except Exception as e:
            raise NodeExecutionError(
                AssetTransferError(uri=uri, operation="resolve", message=f"Failed to resolve asset: {e}")
            ) from e
        if not data:
            raise NodeExecutionError(AssetTransferError(uri=uri, operation="resolve", message="Failed to resolve asset"))
        return data

    def fetch(self, url: str):
        """Download a result file once; returns (bytes, content_type)."""
        if url not in self._downloads:
            try:
                self._downloads[url] = self.client.download(url)
            except Exception as e:
                raise NodeExecutionError(
                    AssetTransferError(uri=url, operation="download", message=f"Failed to download result: {e}")
                ) from e
        return self._downloads[url]

    def store_bytes(self, data: bytes, asset_type: str, filename: str) -> str:
        uri = self.store.upload(data, asset_type, filename)
        if not uri:
            raise NodeExecutionError(
                AssetTransferError(uri=filename, operation="upload", message=f"Failed to upload generated {asset_type}")
            )
        return uri

    def lookup(self, *sources: str) -> Any:
        return lookup_result(self.result, sources)

    def store_items(self, items: Any, asset_type: str, filename: Any = None) -> List[str]:
        """Download provider file objects and re-upload them to the host store."""
        uris = []
        for item in as_list(items):
            url = item.get("url") if isinstance(item, dict) else item
            if not url:
                raise NodeExecutionError(
                    EmptyResultError(
                        endpoint=self.endpoint,
                        output_name=asset_type,
                        message=f"Fal response did not contain {_article(asset_type)} {asset_type} URL",
                    )
                )
            data, content_type = self.fetch(url)
            if isinstance(item, dict):
                content_type = content_type or item.get("content_type")
            name = _output_filename(item, url, content_type, asset_type, filename, self.params)
            uris.append(self.store_bytes(data, asset_type, name))
        return uris


# =============================================================================
# Response Helpers
# =============================================================================


def _article(word: str) -> str:
    return "an" if word[:1].lower() in ("a", "e", "i", "o", "u") else "a"


def as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _dig(container: Any, path: str) -> Any:
    current = container
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def lookup_result(result: Dict[str, Any], sources) -> Any:
    """First value found at ``data.<source>`` or top-level ``<source>``."""
    if not isinstance(result, dict):
        return None
    data = result.get("data") if isinstance(result.get("data"), dict) else {}
    for source in sources:
        for container in (data, result):
            value = _dig(container, source)
            if value is not None and value != []:
                return value
    return None


def _output_filename(item, url, content_type, asset_type, filename, params) -> str:
    if asset_type == "mesh":
        name = item.get("file_name") if isinstance(item, dict) else None
        if not name:
            name = filename(params) if callable(filename) else filename or "model.glb"
        return name if name.lower().endswith(".glb") else f"{name}.glb"
    return generate_asset_filename(url, content_type, asset_type)


# =============================================================================
# Execution Steps
# =============================================================================


def _first_values(inputs: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Graph slots arrive as lists; take the first non-empty value of each."""
    values = {}
    for name, value in (inputs or {}).items():
        for item in as_list(value):
            if item is not None and item != "":
                values[name] = item
                break
    return values


def _check_inputs(spec: NodeSpec, values: Dict[str, Any]) -> Dict[str, int]:
    for slot in spec.inputs:
        if slot.required and slot.name not in values:
            raise NodeExecutionError(MissingInputError(node_uid=spec.uid, input_name=slot.name))

    counts = {}
    for group in spec.groups:
        members = [i for i in spec.inputs if i.group == group.name and i.name in values]
        if len(members) < group.min_count:
            raise NodeExecutionError(MissingInputError(node_uid=spec.uid, input_name=group.name, message=group.message))
        counts[group.name] = len(members)
    return counts


def _upload_content_type(slot: InputSpec, data: bytes):
    if slot.kind == "image":
        fmt = detect_image_format(data)
        return image_mime(fmt), "jpg" if fmt == "jpeg" else fmt
    content_type = slot.content_type or ("video/mp4" if slot.kind == "video" else "application/octet-stream")
    return content_type, _VIDEO_EXTENSIONS.get(content_type, "bin")


def _upload_inputs(spec: NodeSpec, run: RunContext) -> None:
    media = [slot for slot in spec.inputs if slot.is_media and slot.name in run.values]
    total = len(media)
    prefix = spec.uid.replace("/", "-")
    for index, slot in enumerate(media):
        value = run.values[slot.name]
        if slot.url_passthrough and str(value).startswith(("http://", "https://")):
            url = value
        else:
            data = run.resolve_asset(value)
            content_type, ext = _upload_content_type(slot, data)
            url = run.upload_bytes(data, content_type, slot.upload_name or f"{prefix}-{slot.name}.{ext}")
        if slot.group:
            run.uploads.setdefault(slot.group, []).append(url)
        else:
            run.uploads[slot.name] = url

        if spec.upload_progress is not None:
            label = "image" if slot.kind == "image" else slot.kind
            run.sink.running(f"Uploaded {label} {index + 1}/{total}", spec.upload_progress(index, total))

    log_structured("info", "inputs_uploaded", node=spec.uid, count=total)


def _build_payload(spec: NodeSpec, run: RunContext) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}

    for slot in spec.inputs:
        if slot.payload_key is None:
            continue
        if slot.is_media:
            if slot.name in run.uploads:
                payload[slot.payload_key] = run.uploads[slot.name]
            continue
        value = run.values.get(slot.name, slot.default)
        if slot.kind == "number":
            value = to_number(value, slot.default)
        if value is not None and value != "":
            payload[slot.payload_key] = value

    for group in spec.groups:
        if run.uploads.get(group.name):
            payload[group.payload_key] = list(run.uploads[group.name])

    for param in spec.params:
        if not param.send:
            continue
        if param.include is not None and not param.include(run.params):
            continue
        value = run.params.get(param.name)
        if param.type == "seed":
            value = seed_or_none(value)
            if value is None:
                continue
        if param.optional and (value is None or value == "" or value == []):
            continue
        payload[param.key] = value

    if spec.build_payload is not None:
        payload = spec.build_payload(payload, run.params, run)
    return payload


def _collect_outputs(spec: NodeSpec, run: RunContext) -> Dict[str, List[Any]]:
    outputs: Dict[str, List[Any]] = {}
    for out in spec.outputs:
        if out.deferred:
            continue
        value = run.lookup(*out.sources)
        outputs[out.name] = _convert_output(out, value, run)
        if out.required and not outputs[out.name]:
            raise NodeExecutionError(
                EmptyResultError(
                    endpoint=run.endpoint,
                    output_name=out.name,
                    message=f"No {out.name} returned by {spec.name}",
                )
            )
    return outputs


def _convert_output(out: OutputSpec, value: Any, run: RunContext) -> List[Any]:
    if out.is_media:
        return run.store_items(value, out.kind, out.filename)
    if out.kind == "url":
        return [item.get("url") if isinstance(item, dict) else item for item in as_list(value) if item]
    if out.kind == "json":
        return [] if value is None else [value if isinstance(value, str) else json.dumps(value)]
    if out.many:
        return as_list(value)
    return [] if value is None else [value]


# =============================================================================
# Public API
# =============================================================================


def execute_node(
    uid: str,
    inputs: Optional[Dict[str, Any]] = None,
    parameters: Optional[Dict[str, Any]] = None,
    context: Any = None,
    client: Optional[FalClient] = None,
    store: Optional[AssetStore] = None,
) -> Dict[str, List[Any]]:
    """
    Run one node end to end.

    Args:
        uid: Registered node uid (see list_nodes()).
        inputs: Input slot values; each slot may be a value or a list.
        parameters: Raw parameter values; missing ones take defaults.
        context: Host status channel (object with send_status, or callable).
        client: fal client (defaults to the global client).
        store: Host asset store (defaults to the local store).

    Returns:
        Mapping of output slot name to a list of values or asset URIs.

    Raises:
        NodeExecutionError: after an error status has been sent.
    """
    sink = context if isinstance(context, StatusSink) else StatusSink(context)
    invocation = NodeInvocation(uid)
    spec: Optional[NodeSpec] = None
    endpoint = ""

    try:
        spec = require_node_spec(uid)
        values = _first_values(inputs)
        counts = _check_inputs(spec, values)
        params = normalize_params(spec, parameters)

        if spec.validate is not None:
            problem = spec.validate(params, values)
            if problem is not None:
                raise NodeExecutionError(problem)

        endpoint = spec.resolve_endpoint(params)
        invocation.endpoint = endpoint
        run = RunContext(
            spec=spec,
            endpoint=endpoint,
            params=params,
            values=values,
            client=client or get_client(),
            store=store or get_store(),
            sink=sink,
            counts=counts,
            inputs=dict(inputs or {}),
        )

        log_structured("info", "node_started", node=uid, endpoint=endpoint, correlation_id=get_correlation_id())
        sink.running(spec.preparing_message)

        _upload_inputs(spec, run)
        payload = _build_payload(spec, run)

        estimate_inputs = {k: v for k, v in values.items() if isinstance(v, (int, float))}
        expected_ms = estimate_expected_ms(spec, {**params, **estimate_inputs}, counts)
        strategy = create_progress_strategy(
            expected_ms,
            in_queue_message=spec.resolve_queue_message(params),
            finalizing_message=spec.finalizing_message,
            default_in_progress_message=spec.progress_message,
        )

        def on_event(event: QueueEvent):
            update = strategy.handle(event)
            floor = spec.queue_floor if event.phase is Lifecycle.QUEUED else 0
            sink.running(update.message, update.step, floor=floor)

        log_structured(
            "info",
            "node_queued",
            node=uid,
            endpoint=endpoint,
            expected_ms=expected_ms,
            payload_keys=sorted(payload),
        )
        run.result = run.client.subscribe(endpoint, payload, on_event)
        if not strategy.completed:
            on_event(QueueEvent.completed())

        outputs = _collect_outputs(spec, run)
        if spec.postprocess is not None:
            outputs = spec.postprocess(outputs, run.result, params, run)

        invocation.complete("success", outputs={k: len(v) for k, v in outputs.items()})
        return outputs

    except NodeExecutionError as e:
        sink.error(e.record.error)
        invocation.complete("error", e.record.error, code=e.code)
        raise
    except Exception as e:
        fallback = spec.error_message if spec is not None else "Node execution failed"
        message = provider_error_message(e, fallback)
        sink.error(message)
        invocation.complete("error", message, code="PROVIDER_ERROR")
        raise NodeExecutionError(ProviderJobError(endpoint=endpoint, message=message)) from e
