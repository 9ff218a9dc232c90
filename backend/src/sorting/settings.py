"""Sort settings — the immutable snapshot that drives one pass over an image."""

from dataclasses import dataclass, field

from sorting.rules import (
    LuminanceOrder,
    LuminanceThreshold,
    OrderingRule,
    ThresholdRule,
)

PARAMS: dict = {
    "luminance_limit": {
        "type": "float",
        "min": 0.0,
        "max": 255.0,
        "default": 150.0,
        "label": "Threshold",
    },
    "color_limit": {
        "type": "int",
        "min": 0,
        "max": 2500,
        "default": 1000,
        "label": "Threshold",
    },
    "threshold_reverse": {
        "type": "bool",
        "default": False,
        "label": "Invert",
    },
    "ordering_reverse": {
        "type": "bool",
        "default": False,
        "label": "Reverse",
    },
    "extend_left": {
        "type": "int",
        "min": 0,
        "max": 500,
        "default": 0,
        "label": "Extend Left",
    },
    "extend_right": {
        "type": "int",
        "min": 0,
        "max": 500,
        "default": 0,
        "label": "Extend Right",
    },
    "merge_limit": {
        "type": "int",
        "min": 0,
        "max": 500,
        "default": 0,
        "label": "Merge Gap",
    },
}


@dataclass(frozen=True)
class Settings:
    """Everything the row pipeline reads. Compared by value to detect changes."""

    threshold: ThresholdRule = field(default_factory=LuminanceThreshold)
    threshold_reverse: bool = False
    ordering: OrderingRule = field(default_factory=LuminanceOrder)
    ordering_reverse: bool = False
    extend_left: int = 0
    extend_right: int = 0
    merge_limit: int = 0
