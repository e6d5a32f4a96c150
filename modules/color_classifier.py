"""
Finish color classification.

Maps free-text finish descriptions from the shop ("Smokefired black with
Terra and Copper Bubbles", "Blue, with Terra and Gold Bubbles", ...) to
one of five workshop color codes:

    B   Blue (not smoke-fired)
    SB  Smoke-fired Blue
    T   Smoke-fired Terra and Black (tiger stripe)
    TB  Smoke-fired Terra with Bronze bubbles
    C   Smoke-fired Black with Copper bubbles

plus the sentinel CARDS for card/exploration products.

The cascade is an ordered rule table; the first rule that matches wins.
Anything no rule recognises comes back unchanged so the gap is visible.

ORDER MATTERS:
    The plain-blue rule requires the ABSENCE of a smoke-fired marker and
    runs before every smoke-fired rule. Otherwise "Smokefired Blue ..."
    would be classified as plain blue.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple

from models.attributes import (
    CARDS,
    COLOR_BLACK_COPPER,
    COLOR_BLUE,
    COLOR_CODES,
    COLOR_SMOKEFIRED_BLUE,
    COLOR_TERRA_BLACK,
    COLOR_TERRA_BRONZE,
    SMOKE_FIRED_COLORS,
)


SMOKE_MARKERS = ("smokefired", "smoke fired", "smoke-fired")

# Descriptions seen in real orders, lower-cased and trimmed
EXACT_MATCHES: Dict[str, str] = {
    # Blue
    "blue, with terra and gold bubbles": COLOR_BLUE,
    "blue/ red and gold bubbles": COLOR_BLUE,
    "blue, red and gold bubbles": COLOR_BLUE,
    "blue/red and gold bubbles": COLOR_BLUE,
    # Smoke-fired blue
    "smokefired blue, red and gold bubbles": COLOR_SMOKEFIRED_BLUE,
    "smokefired blue with red and bronze bubbles": COLOR_SMOKEFIRED_BLUE,
    "smoke fired blue/ red and gold bubbles": COLOR_SMOKEFIRED_BLUE,
    "smokefired blue/ red and gold bubbles": COLOR_SMOKEFIRED_BLUE,
    "smokefired blue/red and gold bubbles": COLOR_SMOKEFIRED_BLUE,
    # Terra and black
    "smokefired terra and black": COLOR_TERRA_BLACK,
    "smokefired terra and black (tiger stripe)": COLOR_TERRA_BLACK,
    "smoke fired terra and black (tiger stripe)": COLOR_TERRA_BLACK,
    "smoke fired tiger red": COLOR_TERRA_BLACK,
    "smokefired tiger red": COLOR_TERRA_BLACK,
    # Terra with bronze
    "smokefired terra with terra and bronze bubbles": COLOR_TERRA_BRONZE,
    "smoke fired terra with terra and bronze bubbles": COLOR_TERRA_BRONZE,
    # Black with copper
    "smoke fired black with terra and copper bubbles": COLOR_BLACK_COPPER,
    "smokefired black/ red and copper bubbles": COLOR_BLACK_COPPER,
    "smokefired black/red and copper bubbles": COLOR_BLACK_COPPER,
    "smokefired black with terra and copper bubbles": COLOR_BLACK_COPPER,
}


def is_smoke_fired(text: str) -> bool:
    """Whether lower-cased text carries any smoke-fired marker."""
    return any(marker in text for marker in SMOKE_MARKERS)


def is_smoke_fired_code(code: Any) -> bool:
    """Whether a color code is one of the smoke-fired finishes."""
    return code in SMOKE_FIRED_COLORS


@dataclass(frozen=True)
class ColorRule:
    """One step of the keyword cascade: if predicate(text) then code."""

    name: str
    predicate: Callable[[str], bool]
    code: str


def _has(*words: str) -> Callable[[str], bool]:
    return lambda text: all(word in text for word in words)


KEYWORD_RULES: Tuple[ColorRule, ...] = (
    ColorRule(
        "plain-blue",
        lambda t: "blue" in t and not is_smoke_fired(t),
        COLOR_BLUE,
    ),
    ColorRule(
        "smokefired-blue",
        lambda t: (is_smoke_fired(t) and "blue" in t)
        or ("black" in t and "copper" not in t and "terra" not in t),
        COLOR_SMOKEFIRED_BLUE,
    ),
    ColorRule(
        "black-copper",
        lambda t: is_smoke_fired(t) and _has("black", "copper")(t),
        COLOR_BLACK_COPPER,
    ),
    ColorRule(
        "terra-bronze",
        lambda t: is_smoke_fired(t) and _has("terra", "bronze")(t),
        COLOR_TERRA_BRONZE,
    ),
    ColorRule(
        "terra-black",
        lambda t: is_smoke_fired(t) and ("terra and black" in t or "tiger" in t),
        COLOR_TERRA_BLACK,
    ),
    ColorRule(
        "smokefired-black",
        lambda t: is_smoke_fired(t) and "black" in t,
        COLOR_BLACK_COPPER,
    ),
    ColorRule(
        "cards",
        lambda t: "cards" in t or "exploration" in t,
        CARDS,
    ),
)


def classify_with_rule(text: Any) -> Tuple[str, str]:
    """
    Classify and report which step decided.

    Returns:
        (result, rule_name) where rule_name is "empty", "code", "exact",
        a KEYWORD_RULES name, or "unclassified"
    """
    if text is None:
        return "", "empty"
    if not isinstance(text, str):
        text = str(text)

    stripped = text.strip()
    if not stripped:
        return "", "empty"

    if stripped in COLOR_CODES or stripped == CARDS:
        return stripped, "code"

    lowered = stripped.lower()
    exact = EXACT_MATCHES.get(lowered)
    if exact is not None:
        return exact, "exact"

    for rule in KEYWORD_RULES:
        if rule.predicate(lowered):
            return rule.code, rule.name

    return text, "unclassified"


def classify(text: Any) -> str:
    """
    Map a free-text finish description to a color code.

    Never raises. Empty or missing input gives "", unrecognised text is
    returned unchanged.

    Examples:
        >>> classify("Smokefired black with Terra and Copper Bubbles")
        'C'
        >>> classify("Blue, with Terra and Gold Bubbles")
        'B'
        >>> classify("Smokefired Blue with Red and Bronze Bubbles")
        'SB'
    """
    return classify_with_rule(text)[0]
