"""
Expected-Duration Heuristics

Each factory returns ``fn(params, counts) -> ms`` for a NodeSpec. ``params``
are normalized parameter values; ``counts`` maps input groups to the number
of connected media inputs. The numbers are rough per-endpoint timings used
only to pace the progress bar.
"""

from typing import Dict, Mapping

from .model_registry import ExpectedFn

ACCELERATION_FACTORS = {"high": 0.65, "regular": 0.85, "none": 1.0}

# Seedance render cost per output second, by resolution.
SEEDANCE_MS_PER_SECOND = {"480p": 6000, "720p": 9000, "1080p": 15000}
SEEDANCE_PRO_FACTOR = 1.5


def clamp_ms(value: float, lo: float, hi: float) -> int:
    return int(min(hi, max(lo, value)))


def acceleration_factor(params: Dict) -> float:
    return ACCELERATION_FACTORS.get(params.get("acceleration"), 1.0)


def sync_factor(params: Dict, factor: float) -> float:
    return factor if params.get("sync_mode") else 1.0


def per_variant_images(
    base_ms: Mapping[str, float],
    lo: float,
    hi: float,
    sync: float = 1.25,
    variant_param: str = "model_variant",
) -> ExpectedFn:
    """base[variant] x num_images x sync factor (Flux Pro family)."""

    def estimate(params, counts):
        base = base_ms.get(params.get(variant_param), next(iter(base_ms.values())))
        images = params.get("num_images", 1) or 1
        return clamp_ms(base * images * sync_factor(params, sync), lo, hi)

    return estimate


def per_image(per_ms: float, lo: float, hi: float) -> ExpectedFn:
    """num_images x per-image time."""
    return lambda params, counts: clamp_ms((params.get("num_images", 1) or 1) * per_ms, lo, hi)


def per_input(per_ms: float, minimum: float, group: str = "images") -> ExpectedFn:
    """Connected input count x per-input time, with a floor."""
    return lambda params, counts: int(max(minimum, counts.get(group, 0) * per_ms))


def step_scaled(
    base_ms: float,
    reference_steps: int,
    lo: float,
    hi: float,
    sync: float = 1.2,
) -> ExpectedFn:
    """Flux-1 Krea: images x base x steps/reference x acceleration x sync."""

    def estimate(params, counts):
        images = params.get("num_images", 1) or 1
        steps = params.get("num_inference_steps", reference_steps) or reference_steps
        value = images * base_ms * (steps / reference_steps) * acceleration_factor(params) * sync_factor(params, sync)
        return clamp_ms(value, lo, hi)

    return estimate


def per_step(ms_per_step: float, lo: float, hi: float, sync: float = 1.15) -> ExpectedFn:
    """SRPO: images x steps x per-step x acceleration x sync."""

    def estimate(params, counts):
        images = params.get("num_images", 1) or 1
        steps = params.get("num_inference_steps", 28) or 28
        value = images * steps * ms_per_step * acceleration_factor(params) * sync_factor(params, sync)
        return clamp_ms(value, lo, hi)

    return estimate


def kontext_multi(base_ms: Mapping[str, float], lo: float, hi: float, group: str = "images") -> ExpectedFn:
    """Scales with half the reference count."""

    def estimate(params, counts):
        base = base_ms.get(params.get("model_version"), next(iter(base_ms.values())))
        factor = max(1.0, counts.get(group, 1) / 2)
        return clamp_ms(base * factor * sync_factor(params, 1.2), lo, hi)

    return estimate


def veo(fast_ms: float = 60000, standard_ms: float = 120000, variant_param: str = "model_variant") -> ExpectedFn:
    """Base by variant, +30s at 1080p, +5s with audio."""

    def estimate(params, counts):
        value = fast_ms if params.get(variant_param) == "fast" else standard_ms
        if params.get("resolution") == "1080p":
            value += 30000
        if params.get("generate_audio"):
            value += 5000
        return int(value)

    return estimate


def veo_reference(base_ms: float = 130000) -> ExpectedFn:
    return veo(fast_ms=base_ms, standard_ms=base_ms)


def by_duration(mapping: Mapping[str, float], default: float, param: str = "duration") -> ExpectedFn:
    return lambda params, counts: int(mapping.get(str(params.get(param)), default))


def seedance(lo: float = 30000, hi: float = 300000) -> ExpectedFn:
    """Output seconds x per-second cost at the resolution, slower on pro."""

    def estimate(params, counts):
        seconds = float(params.get("duration", 5) or 5)
        per_second = SEEDANCE_MS_PER_SECOND.get(params.get("resolution"), SEEDANCE_MS_PER_SECOND["720p"])
        factor = SEEDANCE_PRO_FACTOR if params.get("model_variant") == "pro" else 1.0
        return clamp_ms(seconds * per_second * factor, lo, hi)

    return estimate


def seedream(
    per_image_ms: float = 6000,
    lo: float = 20000,
    hi: float = 180000,
    width_key: str = "image_width",
    height_key: str = "image_height",
) -> ExpectedFn:
    """Images x per-image x megapixels (at least 1MP)."""

    def estimate(params, counts):
        width = params.get(width_key, 1280) or 1280
        height = params.get(height_key, 1280) or 1280
        size_factor = max(width * height, 1024 * 1024) / (1024 * 1024)
        images = params.get("num_images", 1) or 1
        return clamp_ms(int(images * per_image_ms * size_factor), lo, hi)

    return estimate


def z_image(lo: float = 5000, hi: float = 150000) -> ExpectedFn:
    """Images x 5s x steps/8 x acceleration x sync."""

    def estimate(params, counts):
        images = params.get("num_images", 1) or 1
        steps = params.get("num_inference_steps", 8) or 8
        value = images * 5000 * (steps / 8) * acceleration_factor(params) * sync_factor(params, 1.2)
        return clamp_ms(int(value), lo, hi)

    return estimate
