"""
Asset Handling

Format detection and filename generation for media moving between the host
and the provider, plus the host asset-store interface and a file-backed
store used by the CLI and MCP server.
"""

import json
import os
import re
import threading
import time
import urllib.request
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Protocol

DEFAULT_ASSET_DIR = Path(os.environ.get("FALGRAPH_ASSET_DIR", str(Path.home() / ".falgraph" / "assets")))

ASSET_SCHEME = "asset://"

_DEFAULT_EXTENSIONS = {"image": "png", "video": "mp4", "mesh": "glb"}
_MIME_ALIASES = {"jpeg": "jpg", "quicktime": "mov", "gltf-binary": "glb"}

CONTENT_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "gif": "image/gif",
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "webm": "video/webm",
    "glb": "model/gltf-binary",
    "ply": "application/octet-stream",
    "zip": "application/zip",
    "safetensors": "application/octet-stream",
}


# =============================================================================
# Format Detection
# =============================================================================


def detect_image_format(data: bytes) -> str:
    """jpeg, png or webp from magic bytes; jpeg when unrecognized."""
    if len(data) > 3 and data[:3] == b"\xff\xd8\xff":
        return "jpeg"
    if len(data) > 8 and data[:8] == b"\x89PNG\r\n\x1a\n":
        return "png"
    if len(data) > 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return "jpeg"


def image_mime(fmt: str) -> str:
    return f"image/{fmt}"


def content_type_for(extension: str) -> str:
    return CONTENT_TYPES.get(extension.lower().lstrip("."), "application/octet-stream")


def get_asset_extension(url: str, content_type: Optional[str], asset_type: str) -> str:
    """
    Extension for a provider file.

    Order: the URL's own suffix, then the Content-Type subtype, then a
    per-type default (png, mp4, glb; bin otherwise).
    """
    match = re.search(r"\.([a-z0-9]+)(?:\?|$)", url or "", re.IGNORECASE)
    if match:
        return match.group(1)

    if content_type:
        prefix = "video" if asset_type == "video" else "image" if asset_type == "image" else r"[a-z]+"
        mime = re.search(rf"{prefix}/(?:x-)?([^;]+)", content_type, re.IGNORECASE)
        if mime:
            subtype = mime.group(1).strip().lower()
            return _MIME_ALIASES.get(subtype, subtype)

    return _DEFAULT_EXTENSIONS.get(asset_type, "bin")


def generate_asset_filename(url: str, content_type: Optional[str], asset_type: str, now: datetime = None) -> str:
    """upload-YYYY-MM-DDTHH-MM-SS.<ext>"""
    extension = get_asset_extension(url, content_type, asset_type)
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S")
    return f"upload-{stamp}.{extension}"


# =============================================================================
# Host Asset Store
# =============================================================================


class AssetStore(Protocol):
    """What the executor needs from the host's asset system."""

    def resolve(self, uri: str) -> bytes: ...

    def upload(self, data: bytes, asset_type: str, filename: str) -> str: ...


@dataclass
class AssetRecord:
    """A stored asset and where it came from."""

    asset_id: str
    filename: str
    asset_type: str
    mime_type: str
    size: int
    created_at: float

    @property
    def uri(self) -> str:
        return f"{ASSET_SCHEME}{self.asset_id}"

    def to_dict(self) -> dict:
        result = asdict(self)
        result["uri"] = self.uri
        return result


class LocalAssetStore:
    """
    File-backed asset store.

    Assets live under ``root/<asset_id>/<filename>`` with an ``index.json``
    sidecar. ``resolve`` also accepts local paths and http(s) URLs so the CLI
    can feed files straight into nodes.
    """

    def __init__(self, root: Path = None):
        self.root = Path(root or os.environ.get("FALGRAPH_ASSET_DIR") or DEFAULT_ASSET_DIR)
        self.root.mkdir(parents=True, exist_ok=True)
        self._index_path = self.root / "index.json"
        self._lock = threading.Lock()
        self._records: Dict[str, AssetRecord] = self._load()

    def _load(self) -> Dict[str, AssetRecord]:
        if not self._index_path.exists():
            return {}
        with open(self._index_path) as f:
            raw = json.load(f)
        fields = AssetRecord.__dataclass_fields__
        return {k: AssetRecord(**{name: v[name] for name in fields}) for k, v in raw.items()}

    def _save(self):
        tmp = self._index_path.with_suffix(".tmp")
        with open(tmp, "w") as f:
            json.dump({k: r.to_dict() for k, r in self._records.items()}, f, indent=2)
        tmp.replace(self._index_path)

    def upload(self, data: bytes, asset_type: str, filename: str) -> str:
        asset_id = uuid.uuid4().hex[:12]
        safe_name = Path(filename).name or f"asset-{asset_id}"
        target = self.root / asset_id / safe_name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

        record = AssetRecord(
            asset_id=asset_id,
            filename=safe_name,
            asset_type=asset_type,
            mime_type=content_type_for(Path(safe_name).suffix),
            size=len(data),
            created_at=time.time(),
        )
        with self._lock:
            self._records[asset_id] = record
            self._save()
        return record.uri

    def get(self, uri: str) -> Optional[AssetRecord]:
        return self._records.get(uri[len(ASSET_SCHEME):] if uri.startswith(ASSET_SCHEME) else uri)

    def path_for(self, uri: str) -> Optional[Path]:
        record = self.get(uri)
        if record is None:
            return None
        return self.root / record.asset_id / record.filename

    def resolve(self, uri: str) -> bytes:
        if uri.startswith(ASSET_SCHEME):
            path = self.path_for(uri)
            if path is None or not path.exists():
                raise FileNotFoundError(f"Unknown asset: {uri}")
            return path.read_bytes()
        if uri.startswith(("http://", "https://")):
            with urllib.request.urlopen(uri, timeout=120) as resp:
                return resp.read()
        path = Path(uri).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Asset not found: {uri}")
        return path.read_bytes()

    def list(self, asset_type: str = None) -> list:
        records = sorted(self._records.values(), key=lambda r: r.created_at, reverse=True)
        if asset_type:
            records = [r for r in records if r.asset_type == asset_type]
        return [r.to_dict() for r in records]


_store: Optional[LocalAssetStore] = None


def get_store() -> LocalAssetStore:
    """Get or create the global local asset store."""
    global _store
    if _store is None:
        _store = LocalAssetStore()
    return _store
