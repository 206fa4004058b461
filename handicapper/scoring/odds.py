"""Odds parsing, display, and the market-odds scoring category.

Odds throughout the engine are odds-to-one: the profit on a one-unit stake
("5-2" -> 2.5). Decimal (total return) odds are ``odds + 1``.

Scoring tiers (max 12):
  - <= 2-1: 12    heavy favourite
  - <= 3-1: 10
  - <= 4-1: 9
  - <= 6-1: 7
  - <= 10-1: 6
  - <= 20-1: 4
  - longer: 2
  - no usable odds: 6 (neutral)
"""

import logging
import re
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Optional, Union

from handicapper.models import HorseEntry
from handicapper.scoring.bands import banded_upper, finite_or_none

logger = logging.getLogger(__name__)

MAX_ODDS_SCORE = 12
NEUTRAL_ODDS_SCORE = 6

# (max odds, points, label)
ODDS_TIERS = [
    (2.0, 12, "Heavy Favorite"),
    (3.0, 10, "Solid Favorite"),
    (4.0, 9, "Favorite"),
    (6.0, 7, "Contender"),
    (10.0, 6, "Mid-Pack"),
    (20.0, 4, "Longshot"),
]
_LONGEST_TIER = (2, "Extreme Longshot")
_TIER_BANDS = [(hi, (pts, lbl)) for hi, pts, lbl in ODDS_TIERS]

# Fractional displays used for fair-odds output
COMMON_ODDS = [
    (0.1, "1-10"), (0.2, "1-5"), (0.25, "1-4"), (0.33, "1-3"), (0.4, "2-5"),
    (0.5, "1-2"), (0.6, "3-5"), (0.667, "2-3"), (0.75, "3-4"), (0.8, "4-5"),
    (0.9, "9-10"), (1.0, "EVEN"), (1.1, "11-10"), (1.2, "6-5"), (1.4, "7-5"),
    (1.5, "3-2"), (1.8, "9-5"), (2.0, "2-1"), (2.5, "5-2"), (3.0, "3-1"),
    (3.5, "7-2"), (4.0, "4-1"), (5.0, "5-1"), (6.0, "6-1"), (7.0, "7-1"),
    (8.0, "8-1"), (9.0, "9-1"), (10.0, "10-1"), (12.0, "12-1"), (15.0, "15-1"),
    (20.0, "20-1"), (30.0, "30-1"), (50.0, "50-1"), (99.0, "99-1"),
]

_FRACTION_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*[-/]\s*(\d+(?:\.\d+)?)$")


# ──────────────────────────────────────────────
# Parsing / display
# ──────────────────────────────────────────────

def parse_odds(value: Any) -> Optional[float]:
    """Parse odds into an odds-to-one float.

    Handles "5-1", "5/2", "7-2", "EVEN"/"EVN", a bare "2.5", or a number.
    Anything unparseable, non-finite, or <= 0 returns None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        f = finite_or_none(value)
        return f if f is not None and f > 0 else None
    if not isinstance(value, str):
        return None

    cleaned = re.sub(r"\s+", "", value).upper()
    if not cleaned:
        return None
    if cleaned in ("EVEN", "EVN", "EVENS"):
        return 1.0

    m = _FRACTION_RE.match(cleaned)
    if m:
        num, den = float(m.group(1)), float(m.group(2))
        if den == 0:
            return None
        result = num / den
        return result if result > 0 else None

    try:
        result = float(cleaned)
    except ValueError:
        return None
    f = finite_or_none(result)
    return f if f is not None and f > 0 else None


def format_odds(odds: Optional[float]) -> str:
    """Format odds-to-one as a fractional string: 5.0 -> "5-1", 2.5 -> "5-2"."""
    f = finite_or_none(odds)
    if f is None or f <= 0:
        return "N/A"
    frac = Fraction(f).limit_denominator(10)
    if frac == 1:
        return "EVEN"
    return f"{frac.numerator}-{frac.denominator}"


def nearest_common_odds(odds: Optional[float]) -> str:
    """Closest conventional tote display for arbitrary odds-to-one."""
    f = finite_or_none(odds)
    if f is None or f <= 0:
        return "N/A"
    best_display = "10-1"
    best_diff = float("inf")
    for value, display in COMMON_ODDS:
        diff = abs(f - value)
        if diff < best_diff:
            best_diff = diff
            best_display = display
    return best_display


# ──────────────────────────────────────────────
# Scoring
# ──────────────────────────────────────────────

@dataclass
class OddsScoreResult:
    """Odds category result."""

    total: int = NEUTRAL_ODDS_SCORE
    odds_value: Optional[float] = None
    source: str = "none"          # live, morning_line, none
    tier: str = "Unknown"
    reasoning: str = ""


def calculate_odds_points(odds: Optional[float]) -> int:
    """Points for odds-to-one. Missing or invalid odds score neutral 6."""
    f = finite_or_none(odds)
    if f is None or f <= 0:
        return NEUTRAL_ODDS_SCORE
    points, _label = banded_upper(f, _TIER_BANDS, _LONGEST_TIER)
    return points


def get_odds_tier(odds: Optional[float]) -> str:
    f = finite_or_none(odds)
    if f is None or f <= 0:
        return "Unknown"
    _points, label = banded_upper(f, _TIER_BANDS, _LONGEST_TIER)
    return label


def get_odds_for_scoring(
    horse: HorseEntry,
    live_odds: Union[str, float, None] = None,
) -> tuple[Optional[float], str]:
    """Resolve the odds to score: live odds when parseable, else morning line."""
    live = parse_odds(live_odds)
    if live is not None:
        return live, "live"
    ml = parse_odds(horse.morning_line_odds)
    if ml is not None:
        return ml, "morning_line"
    return None, "none"


def calculate_odds_score(
    horse: HorseEntry,
    live_odds: Union[str, float, None] = None,
) -> OddsScoreResult:
    """Score the market's view of a horse."""
    odds, source = get_odds_for_scoring(horse, live_odds)
    points = calculate_odds_points(odds)
    tier = get_odds_tier(odds)

    if odds is None:
        reasoning = "No odds available (neutral)"
    else:
        label = "Live" if source == "live" else "ML"
        reasoning = f"{label} {format_odds(odds)}: {tier}"

    return OddsScoreResult(
        total=points,
        odds_value=odds,
        source=source,
        tier=tier,
        reasoning=reasoning,
    )
