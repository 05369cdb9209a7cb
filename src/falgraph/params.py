"""
Parameter Normalization

Coerces raw host parameter values to the types a node declares, clamps
numbers into range and falls back to defaults for unknown options.
"""

import math
from typing import Any, Dict, Iterable, Optional, Union

Number = Union[int, float]

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}


def clamp(value: Number, lo: Optional[Number] = None, hi: Optional[Number] = None) -> Number:
    if lo is not None and value < lo:
        return lo
    if hi is not None and value > hi:
        return hi
    return value


def ensure_option(value: Any, options: Iterable[Any], fallback: Any) -> Any:
    """Return value if it is one of options, else fallback."""
    options = list(options)
    if value in options:
        return value
    # Hosts often send numeric-looking options as numbers ("5" vs 5).
    as_text = str(value) if value is not None else None
    for option in options:
        if str(option) == as_text:
            return option
    return fallback


def to_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        return default
    return bool(value)


def to_number(value: Any, default: Optional[Number], integer: bool = False) -> Optional[Number]:
    """Parse value as a finite number; default when missing or unparseable."""
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    if integer:
        return int(round(number))
    return int(number) if number.is_integer() and isinstance(default, int) else number


def seed_or_none(value: Any) -> Optional[int]:
    """Seeds are sent only when they are integers >= 0; -1 means random."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or not number.is_integer() or number < 0:
        return None
    return int(number)


def resolve_image_size(
    preset: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
    custom_token: str = "custom",
) -> Union[str, Dict[str, int]]:
    """Preset name, or an explicit ``{"width", "height"}`` for the custom token."""
    if preset == custom_token:
        return {"width": int(width), "height": int(height)}
    return preset


def normalize_value(spec, raw: Any) -> Any:
    """Normalize one raw value against a ParamSpec."""
    if spec.type == "bool":
        return to_bool(raw, bool(spec.default))

    if spec.type == "seed":
        return to_number(raw, spec.default)

    if spec.type in ("int", "float"):
        number = to_number(raw, spec.default, integer=spec.type == "int")
        if number is None:
            return None
        if spec.options:
            return ensure_option(number, spec.options, spec.default)
        return clamp(number, spec.min, spec.max)

    if raw is None:
        value = spec.default
    else:
        value = str(raw)
    if spec.options:
        return ensure_option(value, spec.options, spec.default)
    return value


def normalize_params(node_spec, raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Normalize every declared parameter of a node.

    Variant-dependent defaults (``ParamSpec.default_for``) are applied after
    the params they depend on are known. Undeclared keys are dropped.
    """
    raw = raw or {}
    values: Dict[str, Any] = {}
    for spec in node_spec.params:
        values[spec.name] = normalize_value(spec, raw.get(spec.name))
    for spec in node_spec.params:
        if spec.default_for is not None and raw.get(spec.name) in (None, ""):
            values[spec.name] = spec.default_for(values)
        if spec.options_for is not None:
            options = spec.options_for(values)
            fallback = spec.default_for(values) if spec.default_for else spec.default
            values[spec.name] = ensure_option(values[spec.name], options, fallback)
    return values
