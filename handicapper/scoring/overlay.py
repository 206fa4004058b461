"""Overlay / value analysis.

Turns a horse's score into an implied win probability and fair odds, then
compares those against the market price:

    overlay % = (actual decimal odds / fair decimal odds - 1) x 100

Positive overlay means the market is paying more than the horse's chance
warrants. Odds throughout the engine are odds-to-one, so a 5-1 shot has
decimal odds of 6.0.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Optional

from handicapper.scoring.bands import banded, clamp, finite_or_none, round1, round_half_up
from handicapper.scoring.odds import format_odds, nearest_common_odds, parse_odds

logger = logging.getLogger(__name__)

MIN_WIN_PROBABILITY = 0.02
MAX_WIN_PROBABILITY = 0.80
CURVE_MIDPOINT = 230.0
CURVE_SCALE = 37.0

UNDERLAY_PENALTY_THRESHOLD = 160
MAX_ADJUSTED_SCORE = 250
DIAMOND_SCORE_RANGE = (140, 170)
DIAMOND_MIN_OVERLAY = 150.0

# (min overlay %, value class)
VALUE_CLASS_BANDS = [
    (150.0, "massive_overlay"),
    (50.0, "strong_overlay"),
    (15.0, "overlay"),
]
FAIR_FLOOR = -15.0  # strictly above is fair, at or below is underlay

# (min overlay %, points, label)
OVERLAY_BONUSES = [
    (150.0, (30, "Massive")),
    (80.0, (20, "Strong")),
    (40.0, (10, "Good")),
    (15.0, (5, "Slight")),
]
# (max overlay %, points)
UNDERLAY_PENALTIES = [(-30.0, -25), (-15.0, -15)]

VALUE_LABELS = {
    "massive_overlay": "Massive Overlay",
    "strong_overlay": "Strong Overlay",
    "overlay": "Overlay",
    "fair": "Fair Price",
    "underlay": "Underlay",
}

RECOMMENDATIONS = {
    # value class -> (action, urgency)
    "massive_overlay": ("bet_heavily", "immediate"),
    "strong_overlay": ("bet_standard", "standard"),
    "overlay": ("bet_small", "low"),
    "fair": ("pass", "none"),
    "underlay": ("avoid", "none"),
}


@dataclass
class TierAdjustment:
    adjusted_score: int
    points: int = 0                   # bonus/penalty before clamping
    tier_shift: int = 0
    is_special_case: bool = False
    special_case_type: Optional[str] = None  # diamond_in_rough
    penalty_waived: bool = False
    reasoning: str = ""


@dataclass
class BettingRecommendation:
    action: str                       # bet_heavily, bet_standard, bet_small, pass, avoid
    urgency: str
    suggested_multiplier: float
    reasoning: str


@dataclass
class OverlayAnalysis:
    """Full value picture for one horse at one price."""

    score: float
    win_probability: float            # 0.0 - 1.0
    fair_odds_decimal: float
    fair_odds_display: str
    actual_odds: Optional[float]      # odds-to-one
    actual_odds_decimal: Optional[float]
    overlay_percent: float
    value_class: str
    ev_per_dollar: float
    is_positive_ev: bool
    description: str
    recommendation: BettingRecommendation


@dataclass
class ValuePlay:
    index: int
    program_number: int
    horse_name: str
    score: float
    overlay_percent: float
    value_class: str
    ev_per_dollar: float
    fair_odds_display: str
    actual_odds_display: str
    recommendation: BettingRecommendation


# ──────────────────────────────────────────────
# Probability and odds conversion
# ──────────────────────────────────────────────

def score_to_win_probability(score: Any) -> float:
    """Logistic curve from score to win probability, clamped to 2%-80%.

    Centred on 230 so a strong base score sits near 40%; scores in the
    low hundreds fall to single digits.
    """
    s = finite_or_none(score)
    if s is None:
        return MIN_WIN_PROBABILITY
    raw = MIN_WIN_PROBABILITY + (MAX_WIN_PROBABILITY - MIN_WIN_PROBABILITY) / (
        1 + math.exp(-(s - CURVE_MIDPOINT) / CURVE_SCALE)
    )
    return clamp(raw, MIN_WIN_PROBABILITY, MAX_WIN_PROBABILITY)


def probability_to_decimal_odds(probability: Any) -> float:
    p = finite_or_none(probability)
    if p is None:
        p = MIN_WIN_PROBABILITY
    return 1 / clamp(p, MIN_WIN_PROBABILITY, MAX_WIN_PROBABILITY)


def to_decimal_odds(odds_to_one: float) -> float:
    return odds_to_one + 1


def calculate_overlay_percent(fair_decimal: float, actual_decimal: float) -> float:
    if fair_decimal <= 0:
        return 0.0
    return round1((actual_decimal / fair_decimal - 1) * 100)


def classify_value(overlay_percent: float) -> str:
    value_class = banded(overlay_percent, VALUE_CLASS_BANDS, None)
    if value_class is not None:
        return value_class
    return "fair" if overlay_percent > FAIR_FLOOR else "underlay"


def calculate_ev(win_probability: float, decimal_odds: float) -> float:
    """Expected profit per unit staked."""
    ev = win_probability * (decimal_odds - 1) - (1 - win_probability)
    return round(ev, 3)


# ──────────────────────────────────────────────
# Tier adjustment
# ──────────────────────────────────────────────

def calculate_tier_adjustment(
    score: float,
    overlay_percent: float,
    penalty_threshold: int = UNDERLAY_PENALTY_THRESHOLD,
) -> TierAdjustment:
    """Bump a score up for overlays, down for underlays.

    Overlay bonuses always apply. Underlay penalties only apply below
    ``penalty_threshold``: a strong horse at a short price is the market
    agreeing, not a reason to mark it down.
    """
    points = 0
    tier_shift = 0
    waived = False
    reasoning = ""

    bonus = banded(overlay_percent, OVERLAY_BONUSES, None)
    if bonus is not None:
        points, label = bonus
        tier_shift = 2 if points >= 30 else (1 if points >= 10 else 0)
        reasoning = f"{label} {overlay_percent:.0f}% overlay adds +{points} effective points"
    else:
        for bound, penalty in UNDERLAY_PENALTIES:
            if overlay_percent <= bound:
                if score >= penalty_threshold:
                    waived = True
                    reasoning = (
                        f"Underlay of {abs(overlay_percent):.0f}% - penalty waived "
                        f"(score {score:.0f} at or above {penalty_threshold})"
                    )
                else:
                    points = penalty
                    tier_shift = -2 if penalty <= -25 else -1
                    reasoning = f"Underlay of {abs(overlay_percent):.0f}% subtracts {points} effective points"
                break

    special = None
    low, high = DIAMOND_SCORE_RANGE
    if low <= score < high and overlay_percent >= DIAMOND_MIN_OVERLAY:
        special = "diamond_in_rough"
        reasoning = f"DIAMOND IN ROUGH: score {score:.0f} with {overlay_percent:.0f}% overlay"

    adjusted = int(clamp(round_half_up(score) + points, 0, MAX_ADJUSTED_SCORE))
    return TierAdjustment(
        adjusted_score=adjusted,
        points=points,
        tier_shift=tier_shift,
        is_special_case=special is not None,
        special_case_type=special,
        penalty_waived=waived,
        reasoning=reasoning,
    )


# ──────────────────────────────────────────────
# Analysis
# ──────────────────────────────────────────────

def generate_recommendation(value_class: str, overlay_percent: float) -> BettingRecommendation:
    action, urgency = RECOMMENDATIONS[value_class]
    if value_class == "massive_overlay":
        multiplier = min(3.0, 1 + overlay_percent / 100)
        reasoning = f"{overlay_percent:.0f}% overlay - exceptional value"
    elif value_class == "strong_overlay":
        multiplier = 1 + overlay_percent / 150
        reasoning = f"Excellent value at {overlay_percent:.0f}% overlay"
    elif value_class == "overlay":
        multiplier = 0.75
        reasoning = f"Playable edge at {overlay_percent:.0f}% overlay"
    elif value_class == "fair":
        multiplier = 0.5
        reasoning = f"No significant edge ({overlay_percent:.0f}%)"
    else:
        multiplier = 0.0
        reasoning = f"Underlay of {abs(overlay_percent):.0f}% - price offers no value"
    return BettingRecommendation(action, urgency, round(multiplier, 2), reasoning)


def describe_overlay(overlay_percent: float, value_class: str, fair_display: str, actual_display: str) -> str:
    if value_class == "underlay":
        return f"Underlay: fair {fair_display}, actual {actual_display} ({abs(overlay_percent):.0f}% short)"
    if value_class == "fair":
        return f"Fair price: {actual_display} close to fair {fair_display}"
    return f"{overlay_percent:.0f}% {VALUE_LABELS[value_class].lower()}: fair {fair_display}, actual {actual_display}"


def analyze_overlay(score: float, odds: Any) -> OverlayAnalysis:
    """Value analysis of ``score`` at market ``odds`` (string or odds-to-one)."""
    probability = score_to_win_probability(score)
    fair_decimal = probability_to_decimal_odds(probability)
    fair_display = nearest_common_odds(fair_decimal - 1)

    actual = parse_odds(odds)
    if actual is None:
        return OverlayAnalysis(
            score=score,
            win_probability=probability,
            fair_odds_decimal=fair_decimal,
            fair_odds_display=fair_display,
            actual_odds=None,
            actual_odds_decimal=None,
            overlay_percent=0.0,
            value_class="fair",
            ev_per_dollar=0.0,
            is_positive_ev=False,
            description=f"No odds: fair {fair_display}",
            recommendation=BettingRecommendation("pass", "none", 0.0, "No market price"),
        )

    actual_decimal = to_decimal_odds(actual)
    overlay = calculate_overlay_percent(fair_decimal, actual_decimal)
    value_class = classify_value(overlay)
    ev = calculate_ev(probability, actual_decimal)
    return OverlayAnalysis(
        score=score,
        win_probability=probability,
        fair_odds_decimal=fair_decimal,
        fair_odds_display=fair_display,
        actual_odds=actual,
        actual_odds_decimal=actual_decimal,
        overlay_percent=overlay,
        value_class=value_class,
        ev_per_dollar=ev,
        is_positive_ev=ev > 0,
        description=describe_overlay(overlay, value_class, fair_display, format_odds(actual)),
        recommendation=generate_recommendation(value_class, overlay),
    )


def detect_value_plays(
    scored: list,
    get_odds: Optional[Callable[[int, Any], Any]] = None,
    min_overlay: float = 15.0,
) -> list[ValuePlay]:
    """Active horses whose price beats their score by ``min_overlay`` or more.

    ``get_odds(index, morning_line)`` supplies the price; the morning line
    is used when it is omitted. Best value first.
    """
    plays: list[ValuePlay] = []
    for sh in scored:
        if sh.score.is_scratched:
            continue
        ml = sh.horse.morning_line_odds
        odds = get_odds(sh.index, ml) if get_odds else ml
        analysis = analyze_overlay(sh.score.total, odds)
        if analysis.actual_odds is None or analysis.overlay_percent < min_overlay:
            continue
        plays.append(ValuePlay(
            index=sh.index,
            program_number=sh.horse.program_number,
            horse_name=sh.horse.horse_name,
            score=sh.score.total,
            overlay_percent=analysis.overlay_percent,
            value_class=analysis.value_class,
            ev_per_dollar=analysis.ev_per_dollar,
            fair_odds_display=analysis.fair_odds_display,
            actual_odds_display=format_odds(analysis.actual_odds),
            recommendation=analysis.recommendation,
        ))
    plays.sort(key=lambda p: p.overlay_percent, reverse=True)
    return plays
