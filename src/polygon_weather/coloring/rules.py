"""Threshold rules that map a weather value to a display color."""

import logging
import operator
from typing import Callable, Dict, Sequence

from polygon_weather.config import FALLBACK_COLOR
from polygon_weather.weather.models import ColorRule

logger = logging.getLogger(__name__)

OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "=": operator.eq,
    "==": operator.eq,
    "!=": operator.ne,
}


def evaluate_rule(value: float, rule: ColorRule) -> bool:
    """Check whether a value satisfies a rule.

    Unknown operators are logged and never match.
    """
    compare = OPERATORS.get(rule.operator)
    if compare is None:
        logger.warning(f"Unknown operator: {rule.operator!r} in rule {rule.id}")
        return False
    return compare(value, rule.value)


def resolve_color(value: float, rules: Sequence[ColorRule]) -> str:
    """Pick the color for a value.

    Rules are tried from the highest threshold down and the first match
    wins, so ">=25 red, >=10 green, <10 blue" behaves as bands without the
    rules having to be mutually exclusive.

    Args:
        value: Value to classify
        rules: Rules in any order; the sequence is not modified

    Returns:
        Color of the first matching rule, or FALLBACK_COLOR
    """
    for rule in sorted(rules, key=lambda r: r.value, reverse=True):
        if evaluate_rule(value, rule):
            return rule.color

    return FALLBACK_COLOR


def format_temperature(temperature: float) -> str:
    return f"{temperature:.1f}°C"


def temperature_label(temperature: float) -> str:
    """Descriptive label for a temperature in Celsius."""
    if temperature < 0:
        return "Freezing"
    if temperature < 10:
        return "Cold"
    if temperature < 20:
        return "Cool"
    if temperature < 25:
        return "Moderate"
    if temperature < 30:
        return "Warm"
    return "Hot"
