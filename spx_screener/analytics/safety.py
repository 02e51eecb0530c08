"""Distance-based safety assessment for short puts.

Rates how far a strike sits below spot relative to the time left until
expiration. 0 DTE and 1 DTE use fixed thresholds; longer expirations scale
the "very safe" distance with a diminishing-returns curve:

    very_safe = floor(550 + (DTE - 1) ** 0.75 * 150)

and derive the lower levels as fixed fractions of it.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict

BASE_THRESHOLDS: Dict[int, Dict[str, int]] = {
    0: {'very_safe': 300, 'safe': 250, 'moderate': 150},
    1: {'very_safe': 550, 'safe': 450, 'moderate': 300},
}

CURVE_BASE = 550
CURVE_SCALE = 150
CURVE_EXPONENT = 0.75

# Fractions of very_safe for DTE > 1
CURVE_FRACTIONS = {
    'safe': 0.82,
    'moderate': 0.55,
    'risky': 0.42,
    'very_risky': 0.25,
}


class SafetyLevel(Enum):
    """Safety rating, safest first."""

    VERY_SAFE = ("Very Safe", "🟢🟢")
    SAFE = ("Safe", "🟢")
    MODERATE = ("Moderate", "🟡")
    RISKY = ("Risky", "🔴")
    VERY_RISKY = ("Very Risky", "🔴🔴")
    ULTRA_RISKY = ("Ultra Risky", "🔴🔴🔴")

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def emoji(self) -> str:
        return self.value[1]


@dataclass(frozen=True)
class SafetyThresholds:
    """Minimum distance (points) for each level; anything below very_risky is ultra risky."""

    very_safe: int
    safe: int
    moderate: int
    risky: int
    very_risky: int

    def for_level(self, level: SafetyLevel) -> int:
        return {
            SafetyLevel.VERY_SAFE: self.very_safe,
            SafetyLevel.SAFE: self.safe,
            SafetyLevel.MODERATE: self.moderate,
            SafetyLevel.RISKY: self.risky,
            SafetyLevel.VERY_RISKY: self.very_risky,
            SafetyLevel.ULTRA_RISKY: 0,
        }[level]


def thresholds_for_dte(dte: int) -> SafetyThresholds:
    """Distance thresholds for a given days-to-expiration.

    Args:
        dte: Trading days to expiration (0 = expires today)

    Returns:
        SafetyThresholds

    Raises:
        ValueError: If dte is negative
    """
    if dte < 0:
        raise ValueError(f"dte must be >= 0, got {dte}")

    if dte in BASE_THRESHOLDS:
        base = BASE_THRESHOLDS[dte]
        return SafetyThresholds(
            very_safe=base['very_safe'],
            safe=base['safe'],
            moderate=base['moderate'],
            risky=math.floor(base['moderate'] * 2 / 3),
            very_risky=math.floor(base['moderate'] / 3),
        )

    very_safe = math.floor(CURVE_BASE + (dte - 1) ** CURVE_EXPONENT * CURVE_SCALE)
    return SafetyThresholds(
        very_safe=very_safe,
        safe=math.floor(very_safe * CURVE_FRACTIONS['safe']),
        moderate=math.floor(very_safe * CURVE_FRACTIONS['moderate']),
        risky=math.floor(very_safe * CURVE_FRACTIONS['risky']),
        very_risky=math.floor(very_safe * CURVE_FRACTIONS['very_risky']),
    )


def assess_safety(distance: float, dte: int) -> SafetyLevel:
    """Rate a strike ``distance`` points below spot expiring in ``dte`` days."""
    t = thresholds_for_dte(dte)
    if distance >= t.very_safe:
        return SafetyLevel.VERY_SAFE
    if distance >= t.safe:
        return SafetyLevel.SAFE
    if distance >= t.moderate:
        return SafetyLevel.MODERATE
    if distance >= t.risky:
        return SafetyLevel.RISKY
    if distance >= t.very_risky:
        return SafetyLevel.VERY_RISKY
    return SafetyLevel.ULTRA_RISKY


def required_distance(level: SafetyLevel | str, dte: int) -> int:
    """Minimum distance needed to reach ``level`` at ``dte``.

    Args:
        level: SafetyLevel or its name/label ("safe", "Very Safe", "VERY_SAFE")
        dte: Trading days to expiration

    Raises:
        ValueError: If the level name is unknown
    """
    return thresholds_for_dte(dte).for_level(parse_level(level))


def parse_level(level: SafetyLevel | str) -> SafetyLevel:
    if isinstance(level, SafetyLevel):
        return level
    key = level.strip().upper().replace(' ', '_').replace('-', '_')
    try:
        return SafetyLevel[key]
    except KeyError:
        known = ", ".join(l.label for l in SafetyLevel)
        raise ValueError(f"Unknown safety level {level!r} (known: {known})")
