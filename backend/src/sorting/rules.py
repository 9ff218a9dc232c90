"""Threshold and ordering rules.

Each rule family is a closed set of frozen dataclasses. Consumers dispatch
with isinstance() and raise TypeError for anything outside the set, so adding
a variant means one new class here plus one new branch in classify() and
sort_keys().
"""

from dataclasses import dataclass

Color = tuple[int, int, int]

DEFAULT_COLOR: Color = (0, 255, 0)


def _as_color(value) -> Color:
    r, g, b = (int(c) for c in value)
    return (r, g, b)


@dataclass(frozen=True)
class LuminanceThreshold:
    """Select pixels whose luminance is below ``limit`` (0-255)."""

    limit: float = 150.0


@dataclass(frozen=True)
class ColorThreshold:
    """Select pixels whose distance to ``color`` is below ``limit`` (0-2500)."""

    limit: int = 1000
    color: Color = DEFAULT_COLOR

    def __post_init__(self):
        # JSON hands colours over as lists; equality needs tuples.
        object.__setattr__(self, "color", _as_color(self.color))


@dataclass(frozen=True)
class LuminanceOrder:
    """Sort pixels by luminance."""


@dataclass(frozen=True)
class ColorOrder:
    """Sort pixels by distance to ``color``."""

    color: Color = DEFAULT_COLOR

    def __post_init__(self):
        object.__setattr__(self, "color", _as_color(self.color))


ThresholdRule = LuminanceThreshold | ColorThreshold
OrderingRule = LuminanceOrder | ColorOrder

THRESHOLD_PRESETS: tuple[ThresholdRule, ...] = (
    LuminanceThreshold(150.0),
    ColorThreshold(1000, DEFAULT_COLOR),
)

ORDERING_PRESETS: tuple[OrderingRule, ...] = (
    LuminanceOrder(),
    ColorOrder(DEFAULT_COLOR),
)


def rule_name(rule: ThresholdRule | OrderingRule) -> str:
    """Display name shared by both rule families ("Luminance", "ColorSimilarity")."""
    if isinstance(rule, (LuminanceThreshold, LuminanceOrder)):
        return "Luminance"
    if isinstance(rule, (ColorThreshold, ColorOrder)):
        return "ColorSimilarity"
    raise TypeError(f"unknown rule: {rule!r}")
