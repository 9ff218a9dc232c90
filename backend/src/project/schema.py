"""Settings file schema — serialize/deserialize sort settings as JSON.

Layout of a settings document:

    {
      "version": "1.0.0",
      "threshold": {"type": "Luminance", "limit": 150.0},
      "threshold_reverse": false,
      "ordering": {"type": "ColorSimilarity", "color": [0, 255, 0]},
      "ordering_reverse": false,
      "extend_left": 0,
      "extend_right": 0,
      "merge_limit": 0
    }
"""

import json

from sorting.rules import (
    ColorOrder,
    ColorThreshold,
    LuminanceOrder,
    LuminanceThreshold,
    ORDERING_PRESETS,
    THRESHOLD_PRESETS,
    rule_name,
)
from sorting.settings import PARAMS, Settings

CURRENT_VERSION = "1.0.0"

REQUIRED_KEYS = {"threshold", "ordering"}
RULE_TYPES = {"Luminance", "ColorSimilarity"}
INT_KEYS = ("extend_left", "extend_right", "merge_limit")
BOOL_KEYS = ("threshold_reverse", "ordering_reverse")


def _threshold_to_dict(rule) -> dict:
    if isinstance(rule, LuminanceThreshold):
        return {"type": rule_name(rule), "limit": float(rule.limit)}
    if isinstance(rule, ColorThreshold):
        return {"type": rule_name(rule), "limit": int(rule.limit), "color": list(rule.color)}
    raise TypeError(f"unknown threshold rule: {rule!r}")


def _ordering_to_dict(rule) -> dict:
    if isinstance(rule, LuminanceOrder):
        return {"type": rule_name(rule)}
    if isinstance(rule, ColorOrder):
        return {"type": rule_name(rule), "color": list(rule.color)}
    raise TypeError(f"unknown ordering rule: {rule!r}")


def to_dict(settings: Settings) -> dict:
    """Convert a Settings snapshot to its JSON-ready form."""
    return {
        "version": CURRENT_VERSION,
        "threshold": _threshold_to_dict(settings.threshold),
        "threshold_reverse": settings.threshold_reverse,
        "ordering": _ordering_to_dict(settings.ordering),
        "ordering_reverse": settings.ordering_reverse,
        "extend_left": settings.extend_left,
        "extend_right": settings.extend_right,
        "merge_limit": settings.merge_limit,
    }


def new_settings() -> dict:
    """Default settings document."""
    return to_dict(Settings())


def _in_range(value, param: dict) -> bool:
    return param["min"] <= value <= param["max"]


def _validate_color(color, where: str) -> list[str]:
    if (
        not isinstance(color, (list, tuple))
        or len(color) != 3
        or not all(isinstance(c, int) and not isinstance(c, bool) for c in color)
        or not all(0 <= c <= 255 for c in color)
    ):
        return [f"'{where}.color' must be three integers in 0-255"]
    return []


def _validate_threshold(rule) -> list[str]:
    if not isinstance(rule, dict):
        return ["'threshold' must be a dict"]
    kind = rule.get("type")
    if kind not in RULE_TYPES:
        return [f"Unknown threshold type: {kind!r}"]

    errors = []
    limit = rule.get("limit")
    if kind == "Luminance":
        param = PARAMS["luminance_limit"]
        if not isinstance(limit, (int, float)) or isinstance(limit, bool):
            errors.append("'threshold.limit' must be a number")
        elif not _in_range(limit, param):
            errors.append(f"'threshold.limit' must be in {param['min']}-{param['max']}")
    else:
        param = PARAMS["color_limit"]
        if not isinstance(limit, int) or isinstance(limit, bool):
            errors.append("'threshold.limit' must be an integer")
        elif not _in_range(limit, param):
            errors.append(f"'threshold.limit' must be in {param['min']}-{param['max']}")
        errors.extend(_validate_color(rule.get("color"), "threshold"))
    return errors


def _validate_ordering(rule) -> list[str]:
    if not isinstance(rule, dict):
        return ["'ordering' must be a dict"]
    kind = rule.get("type")
    if kind not in RULE_TYPES:
        return [f"Unknown ordering type: {kind!r}"]
    if kind == "ColorSimilarity":
        return _validate_color(rule.get("color"), "ordering")
    return []


def validate(doc: dict) -> list[str]:
    """Validate a settings dict. Returns list of error strings (empty = valid)."""
    if not isinstance(doc, dict):
        return ["Settings must be a JSON object"]

    missing = REQUIRED_KEYS - set(doc.keys())
    if missing:
        return [f"Missing settings keys: {sorted(missing)}"]

    errors = []
    errors.extend(_validate_threshold(doc["threshold"]))
    errors.extend(_validate_ordering(doc["ordering"]))

    for key in BOOL_KEYS:
        if key in doc and not isinstance(doc[key], bool):
            errors.append(f"'{key}' must be a boolean")

    for key in INT_KEYS:
        if key not in doc:
            continue
        value = doc[key]
        param = PARAMS[key]
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(f"'{key}' must be an integer")
        elif not _in_range(value, param):
            errors.append(f"'{key}' must be in {param['min']}-{param['max']}")

    return errors


def from_dict(doc: dict) -> Settings:
    """Build a Settings snapshot. Raises ValueError when the dict is invalid.

    Optional keys fall back to their PARAMS defaults.
    """
    errors = validate(doc)
    if errors:
        raise ValueError(f"Invalid settings: {'; '.join(errors)}")

    th = doc["threshold"]
    if th["type"] == "Luminance":
        threshold = LuminanceThreshold(float(th["limit"]))
    else:
        threshold = ColorThreshold(th["limit"], tuple(th["color"]))

    od = doc["ordering"]
    if od["type"] == "Luminance":
        ordering = LuminanceOrder()
    else:
        ordering = ColorOrder(tuple(od["color"]))

    return Settings(
        threshold=threshold,
        threshold_reverse=doc.get("threshold_reverse", PARAMS["threshold_reverse"]["default"]),
        ordering=ordering,
        ordering_reverse=doc.get("ordering_reverse", PARAMS["ordering_reverse"]["default"]),
        extend_left=doc.get("extend_left", PARAMS["extend_left"]["default"]),
        extend_right=doc.get("extend_right", PARAMS["extend_right"]["default"]),
        merge_limit=doc.get("merge_limit", PARAMS["merge_limit"]["default"]),
    )


def serialize(settings: Settings) -> str:
    """Serialize a snapshot to a JSON string."""
    return json.dumps(to_dict(settings), indent=2)


def deserialize(data: str) -> Settings:
    """Parse a JSON string. Raises ValueError on invalid JSON or schema."""
    try:
        doc = json.loads(data)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}") from e
    return from_dict(doc)


def presets() -> dict:
    """Defaults, rule presets and parameter ranges for a settings panel."""
    return {
        "defaults": new_settings(),
        "thresholds": [_threshold_to_dict(r) for r in THRESHOLD_PRESETS],
        "orderings": [_ordering_to_dict(r) for r in ORDERING_PRESETS],
        "params": PARAMS,
    }
