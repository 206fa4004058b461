"""Form scoring (max 50).

Components:
  - Recent form (0-15): last 3 finishes weighted 50/30/20, with a boost for
    beaten efforts at a higher class than today's
  - Consistency (0-4): ITM streak or recent ITM rate
  - Winner bonus: won-last-out decay (1-18) plus "won 2 of 3" (8) and
    "won 3 of 5" (4) pattern bonuses scaled by how long ago the last win was
  - Win recency (0-4): last win within 30 / 60 days
  - Layoff penalty (0 to -10): 7-35 days is optimal

A horse that won last out never scores below 5.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from handicapper.models import HorseEntry, PastPerformance, RaceHeader
from handicapper.scoring.bands import banded, banded_upper, clamp, round_half_up
from handicapper.scoring.speed_class import get_class_level

logger = logging.getLogger(__name__)

FORM_CATEGORY_MAX = 50
RECENT_FORM_MAX = 15
CONSISTENCY_MAX = 4
NO_FORM_SCORE = 8
WINNER_FLOOR = 5
LEGACY_LAYOFF_BASE = 13

RECENT_WEIGHTS = [0.5, 0.3, 0.2]

# (max days since last win, WLO points, pattern multiplier)
DECAY_TIERS = [
    (21, 18, 1.0),
    (35, 14, 0.85),
    (50, 10, 0.65),
    (75, 6, 0.40),
    (90, 3, 0.25),
]
DECAY_FLOOR = (1, 0.10)

WON_2_OF_3_BASE = 8
WON_3_OF_5_BASE = 4

# (max days, bonus)
WIN_RECENCY_BANDS = [(30, 4), (60, 3)]

# (max days, penalty, label)
LAYOFF_BANDS = [
    (6, -2, "Quick turnback"),
    (35, 0, "Optimal layoff"),
    (60, -3, "Short freshening"),
    (90, -6, "Moderate layoff"),
    (179, -8, "Extended layoff"),
]
LONG_LAYOFF = (-10, "Long layoff")
FIRST_TIME_STARTER_PENALTY = -2
FRESH_WIN_MIN_DAYS = 60

# claiming price -> fraction added to the claiming hierarchy level
CLAIMING_TIER_BANDS = [(50000, 0.8), (25000, 0.5), (15000, 0.3)]
CLASS_DROP_THRESHOLD = 0.5


@dataclass
class ClassContext:
    """Today's class, used to re-read beaten efforts at a higher level."""

    classification: str = "unknown"
    claiming_price: Optional[int] = None
    purse: Optional[int] = None

    @classmethod
    def from_race(cls, race: RaceHeader) -> "ClassContext":
        price = race.claiming_price_max if race.claiming_price_max is not None else race.claiming_price_min
        return cls(classification=race.classification, claiming_price=price, purse=race.purse)


@dataclass
class FormScoreResult:
    """Form category result."""

    total: int = 0
    recent_form_score: int = NO_FORM_SCORE
    layoff_score: int = LEGACY_LAYOFF_BASE
    layoff_penalty: int = 0
    consistency_bonus: int = 0
    recent_winner_bonus: int = 0
    win_recency_bonus: int = 0
    won_last_out: bool = False
    won_2_of_last_3: bool = False
    won_3_of_last_5: bool = False
    days_since_last_win: Optional[int] = None
    itm_streak: int = 0
    form_trend: str = "unknown"       # improving, declining, steady, unknown
    class_adjustment_applied: bool = False
    class_adjustments: list[str] = field(default_factory=list)
    reasoning: str = ""


# ──────────────────────────────────────────────
# Finish quality
# ──────────────────────────────────────────────

def score_finish(pp: PastPerformance) -> int:
    """Points (2-15) for one finish by position and margin."""
    pos = pp.finish_position
    beaten = pp.lengths_behind or 0.0
    if pos == 1:
        return 15
    if pos == 2:
        return 12 if beaten <= 2 else 9
    if pos == 3:
        return 11 if beaten <= 2 else 8
    if pos in (4, 5):
        return 7 if beaten < 5 else 5
    if 6 <= pos <= 8:
        return 4
    return 2


def get_class_value(classification: str, claiming_price: Optional[int]) -> float:
    """Hierarchy level, refined by claiming price within claiming classes."""
    level = float(get_class_level(classification))
    if claiming_price and "claiming" in (classification or "").lower():
        level += banded(claiming_price, CLAIMING_TIER_BANDS, 0.0)
    return level


def _adjust_for_class(pp: PastPerformance, base: int, context: ClassContext) -> tuple[int, Optional[str]]:
    past_value = get_class_value(pp.classification, pp.claiming_price)
    today_value = get_class_value(context.classification, context.claiming_price)
    if past_value - today_value <= CLASS_DROP_THRESHOLD or pp.finish_position == 1:
        return base, None

    pos = pp.finish_position
    if pos in (2, 3):
        adjusted = min(14, base + 3)
    elif 4 <= pos <= 6:
        adjusted = max(base, 10)
    else:
        adjusted = max(base, 8)
    if adjusted == base:
        return base, None
    note = f"Class drop: {_ordinal(pos)} at {pp.classification} ({base}->{adjusted})"
    return adjusted, note


def calculate_recent_form_score(
    pps: list[PastPerformance],
    class_context: Optional[ClassContext] = None,
) -> tuple[int, list[str]]:
    """Weighted score of the last 3 finishes, plus any class-drop notes."""
    recent = pps[:3]
    if not recent:
        return NO_FORM_SCORE, []

    notes: list[str] = []
    weighted = 0.0
    weight_used = 0.0
    for pp, weight in zip(recent, RECENT_WEIGHTS):
        points = score_finish(pp)
        if class_context is not None:
            points, note = _adjust_for_class(pp, points, class_context)
            if note:
                notes.append(note)
        weighted += points * weight
        weight_used += weight

    return min(RECENT_FORM_MAX, round_half_up(weighted / weight_used)), notes


def analyze_form_trend(pps: list[PastPerformance]) -> str:
    """Compare the latest finish with the oldest of the last 3."""
    if len(pps) < 2:
        return "unknown"
    scores = [score_finish(pp) for pp in pps[:3]]
    diff = scores[0] - scores[-1]
    if diff >= 3:
        return "improving"
    if diff <= -3:
        return "declining"
    return "steady"


# ──────────────────────────────────────────────
# Consistency
# ──────────────────────────────────────────────

def _is_itm(pp: PastPerformance) -> bool:
    return 1 <= pp.finish_position <= 3


def count_itm_streak(pps: list[PastPerformance]) -> int:
    streak = 0
    for pp in pps:
        if not _is_itm(pp):
            break
        streak += 1
    return streak


def calculate_consistency_bonus(pps: list[PastPerformance]) -> tuple[int, int, str]:
    """(bonus, ITM streak, reasoning)."""
    if not pps:
        return 0, 0, ""
    streak = count_itm_streak(pps)
    if streak >= 3:
        return CONSISTENCY_MAX, streak, f"Hot streak: {streak} ITM in a row"

    last_five = pps[:5]
    itm = sum(1 for pp in last_five if _is_itm(pp))
    rate = itm / len(last_five) * 100
    bonus = banded(rate, [(50, 4), (40, 2), (20, 1)], 0)
    if bonus:
        return bonus, streak, f"Consistent: {itm}/{len(last_five)} ITM"
    return 0, streak, ""


# ──────────────────────────────────────────────
# Layoff
# ──────────────────────────────────────────────

def won_fresh_before(pps: list[PastPerformance]) -> bool:
    """True when the horse has won off a 60+ day break."""
    for pp in pps[:-1]:
        if pp.finish_position == 1 and pp.days_since_last is not None and pp.days_since_last >= FRESH_WIN_MIN_DAYS:
            return True
    return False


def calculate_layoff_penalty(horse: HorseEntry) -> tuple[int, str]:
    """(penalty, reasoning). Penalty is 0 to -10."""
    pps = horse.past_performances
    if not pps:
        return FIRST_TIME_STARTER_PENALTY, "First-time starter"

    days = horse.days_since_last_race
    if days is None:
        return 0, "Layoff unknown"

    penalty, label = banded_upper(
        days, [(hi, (pen, lbl)) for hi, pen, lbl in LAYOFF_BANDS], LONG_LAYOFF,
    )
    reasoning = f"{label} ({days} days)"
    if days > FRESH_WIN_MIN_DAYS and penalty < 0 and won_fresh_before(pps):
        penalty = int(penalty / 2)
        reasoning += ", won fresh before"
    return penalty, reasoning


# ──────────────────────────────────────────────
# Winner bonuses
# ──────────────────────────────────────────────

def calculate_days_since_last_win(pps: list[PastPerformance]) -> Optional[int]:
    """Days back to the most recent win, summed from the race gaps.

    0 when the last start was a win; None with no win on record or when a
    gap on the way back is unknown.
    """
    for i, pp in enumerate(pps):
        if pp.finish_position != 1:
            continue
        if i == 0:
            return 0
        total = 0
        for gap_pp in pps[: i + 1]:
            if gap_pp.days_since_last is None:
                return None
            total += gap_pp.days_since_last
        return total
    return None


def _decay_tier(days: int) -> tuple[int, float]:
    days = max(0, days)
    return banded_upper(days, [(hi, (pts, mult)) for hi, pts, mult in DECAY_TIERS], DECAY_FLOOR)


def calculate_wlo_decay(days_since_last_win: Optional[int]) -> int:
    """Won-last-out bonus: 18 (0-21 days) down to 1 (91+)."""
    if days_since_last_win is None:
        return 0
    return _decay_tier(days_since_last_win)[0]


def get_recency_multiplier(days_since_last_win: Optional[int]) -> float:
    """Scale applied to win-pattern bonuses: 1.0 (0-21 days) down to 0.10."""
    if days_since_last_win is None:
        return 0.0
    return _decay_tier(days_since_last_win)[1]


def calculate_win_recency_bonus(days_since_last_win: Optional[int]) -> int:
    if days_since_last_win is None:
        return 0
    return banded_upper(max(0, days_since_last_win), WIN_RECENCY_BANDS, 0)


# ──────────────────────────────────────────────
# Main entry point
# ──────────────────────────────────────────────

def calculate_form_score(
    horse: HorseEntry,
    class_context: Optional[ClassContext] = None,
) -> FormScoreResult:
    """Form score for one horse, optionally class-aware."""
    pps = horse.past_performances
    reasons: list[str] = []

    recent, class_notes = calculate_recent_form_score(pps, class_context)
    consistency, streak, consistency_reason = calculate_consistency_bonus(pps)
    layoff_penalty, layoff_reason = calculate_layoff_penalty(horse)

    days_since_win = calculate_days_since_last_win(pps)
    won_last_out = bool(pps) and pps[0].finish_position == 1
    won_2_of_3 = sum(1 for pp in pps[:3] if pp.finish_position == 1) >= 2
    won_3_of_5 = sum(1 for pp in pps[:5] if pp.finish_position == 1) >= 3

    multiplier = get_recency_multiplier(days_since_win)
    winner_bonus = 0
    if won_last_out:
        winner_bonus += calculate_wlo_decay(days_since_win)
    if won_2_of_3:
        winner_bonus += round_half_up(WON_2_OF_3_BASE * multiplier)
    if won_3_of_5:
        winner_bonus += round_half_up(WON_3_OF_5_BASE * multiplier)
    win_recency = calculate_win_recency_bonus(days_since_win)

    total = recent + consistency + winner_bonus + win_recency + layoff_penalty
    if won_last_out:
        total = max(WINNER_FLOOR, total)
    total = int(clamp(total, 0, FORM_CATEGORY_MAX))

    if pps:
        reasons.append(f"Last: {_ordinal(pps[0].finish_position)}")
    else:
        reasons.append("No race history")
    if class_notes:
        reasons.append("Class drop boost")
        reasons.extend(class_notes)
    if consistency_reason:
        reasons.append(consistency_reason)
    if won_last_out:
        reasons.append("Won last out")
    if won_2_of_3:
        reasons.append("Won 2 of last 3")
    if won_3_of_5:
        reasons.append("Won 3 of last 5")
    if win_recency:
        reasons.append(f"Won {days_since_win} days ago")
    reasons.append(layoff_reason)

    return FormScoreResult(
        total=total,
        recent_form_score=recent,
        layoff_score=LEGACY_LAYOFF_BASE + layoff_penalty,
        layoff_penalty=layoff_penalty,
        consistency_bonus=consistency,
        recent_winner_bonus=winner_bonus,
        win_recency_bonus=win_recency,
        won_last_out=won_last_out,
        won_2_of_last_3=won_2_of_3,
        won_3_of_last_5=won_3_of_5,
        days_since_last_win=days_since_win,
        itm_streak=streak,
        form_trend=analyze_form_trend(pps),
        class_adjustment_applied=bool(class_notes),
        class_adjustments=class_notes,
        reasoning=" | ".join(reasons),
    )


def is_on_hot_streak(horse: HorseEntry) -> bool:
    return count_itm_streak(horse.past_performances) >= 3


def get_form_summary(horse: HorseEntry) -> str:
    """One-word form label for display: Hot, Improving, Declining, Layoff, Steady."""
    if is_on_hot_streak(horse):
        return "Hot"
    trend = analyze_form_trend(horse.past_performances)
    if trend == "improving":
        return "Improving"
    if trend == "declining":
        return "Declining"
    if horse.days_since_last_race is not None and horse.days_since_last_race > 90:
        return "Layoff"
    return "Steady"


def _ordinal(n: int) -> str:
    if n <= 0:
        return "-"
    if 10 <= n % 100 <= 20:
        return f"{n}th"
    return f"{n}{ {1: 'st', 2: 'nd', 3: 'rd'}.get(n % 10, 'th') }"
