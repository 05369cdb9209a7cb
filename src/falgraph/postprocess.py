"""
Result Post-Processing

Hooks that shape provider results beyond the generic output mapping:
mask aggregation for SAM 3 segmentation and "at least one of" checks.
"""

import io
import time
from typing import Any, Dict, List, Sequence

from PIL import Image, ImageChops

from .errors import EmptyResultError, NodeExecutionError
from .execution import as_list


def aggregate_masks(buffers: Sequence[bytes]) -> bytes:
    """
    Merge segmentation masks into one PNG by keeping the lighter pixel.

    Every mask is converted to the first mask's mode and size before merging.
    """
    if not buffers:
        raise ValueError("No masks to aggregate")

    with Image.open(io.BytesIO(buffers[0])) as first:
        merged = first.convert("RGBA" if first.mode in ("RGBA", "LA", "P") else "L")
    for data in buffers[1:]:
        with Image.open(io.BytesIO(data)) as mask:
            layer = mask.convert(merged.mode)
            if layer.size != merged.size:
                layer = layer.resize(merged.size)
            merged = ImageChops.lighter(merged, layer)

    out = io.BytesIO()
    merged.save(out, format="PNG")
    return out.getvalue()


def sam3_image_outputs(outputs: Dict[str, List[Any]], result, params, run) -> Dict[str, List[Any]]:
    """Main image, or the merged mask when aggregation is enabled."""
    image = run.lookup("image")
    if not image:
        raise NodeExecutionError(
            EmptyResultError(endpoint=run.endpoint, output_name="image", message="No image returned from Fal AI")
        )

    mask_urls = [m.get("url") for m in as_list(run.lookup("masks")) if isinstance(m, dict) and m.get("url")]
    if params.get("aggregate_masks") and mask_urls:
        run.sink.running("Aggregating masks...")
        merged = aggregate_masks([run.fetch(url)[0] for url in mask_urls])
        filename = f"aggregated-mask-{int(time.time() * 1000)}.png"
        outputs["image"] = [run.store_bytes(merged, "image", filename)]
    else:
        outputs["image"] = run.store_items(image, "image")
    return outputs


def require_any_output(*names: str):
    """Fail unless at least one of the named outputs is non-empty."""

    def check(outputs: Dict[str, List[Any]], result, params, run) -> Dict[str, List[Any]]:
        if not any(outputs.get(name) for name in names):
            raise NodeExecutionError(
                EmptyResultError(
                    endpoint=run.endpoint,
                    output_name=names[0],
                    message=f"No {' or '.join(names)} returned by {run.spec.name}",
                )
            )
        return outputs

    return check
