"""Trainer situational patterns (max 8).

Each rule pairs a condition on today's entry (first-time Lasix, sprint to
route, second off a layoff, ...) with the trainer's record in that category.
A matched rule pays its full points at the elite win rate, half at the good
rate, nothing below. Small samples are discounted:

    starts   credit
    15+      100%
    10-14     70%
    5-9       40%
    <5        rule ignored

All matched points stack, then the total is capped at 8.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from handicapper import tracks
from handicapper.models import HorseEntry, RaceHeader, TrainerCategoryStat
from handicapper.scoring.bands import banded, round_half_up
from handicapper.scoring.equipment import is_blinkers_off, is_first_time_blinkers, is_first_time_lasix
from handicapper.scoring.speed_class import normalize_class

logger = logging.getLogger(__name__)

MAX_TRAINER_PATTERN_POINTS = 8
MIN_SAMPLE_STARTS = 5
SAMPLE_CREDIT_BANDS = [(15, 1.0), (10, 0.7), (5, 0.4)]
SPRINT_THRESHOLD = 7.5
SECOND_OFF_LAYOFF_DAYS = 45

# days since last race -> layoff category key
LAYOFF_BANDS = [(181, "days_181_plus"), (91, "days_91_to_180"), (61, "days_61_to_90"), (31, "days_31_to_60")]


@dataclass(frozen=True)
class PatternRule:
    key: str                          # attribute on TrainerCategoryStats
    label: str
    group: str                        # equipment, layoff, distance, surface, class, acquisition
    max_points: int
    elite: float                      # win % for full points
    good: Optional[float] = 18.0      # win % for half points; None = elite only
    min_starts: int = MIN_SAMPLE_STARTS


PATTERN_RULES = {
    "first_time_lasix": PatternRule("first_time_lasix", "first-time Lasix", "equipment", 2, 25),
    "first_time_blinkers": PatternRule("first_time_blinkers", "first-time blinkers", "equipment", 2, 25),
    "blinkers_off": PatternRule("blinkers_off", "blinkers off", "equipment", 1, 25),
    "second_off_layoff": PatternRule("second_off_layoff", "second off layoff", "layoff", 2, 25),
    "days_31_to_60": PatternRule("days_31_to_60", "31-60 day layoff", "layoff", 2, 25),
    "days_61_to_90": PatternRule("days_61_to_90", "61-90 day layoff", "layoff", 2, 25),
    "days_91_to_180": PatternRule("days_91_to_180", "91-180 day layoff", "layoff", 2, 25),
    "days_181_plus": PatternRule("days_181_plus", "181+ day layoff", "layoff", 2, 25),
    "sprint_to_route": PatternRule("sprint_to_route", "sprint to route", "distance", 2, 22),
    "route_to_sprint": PatternRule("route_to_sprint", "route to sprint", "distance", 2, 22),
    "turf_sprint": PatternRule("turf_sprint", "turf sprints", "surface", 1, 25, None),
    "turf_route": PatternRule("turf_route", "turf routes", "surface", 1, 25, None),
    "dirt_sprint": PatternRule("dirt_sprint", "dirt sprints", "surface", 1, 25, None),
    "dirt_route": PatternRule("dirt_route", "dirt routes", "surface", 1, 25, None),
    "wet_track": PatternRule("wet_track", "wet tracks", "surface", 1, 25, None),
    "maiden_claiming": PatternRule("maiden_claiming", "maiden claiming", "class", 1, 25, None),
    "stakes": PatternRule("stakes", "stakes", "class", 1, 25, None),
    "first_start_trainer": PatternRule("first_start_trainer", "first start for trainer", "acquisition", 2, 25),
    "after_claim": PatternRule("after_claim", "first start after claim", "acquisition", 2, 25),
}


@dataclass
class MatchedPattern:
    key: str
    win_percent: float
    starts: int
    roi: float
    points: int
    reasoning: str


@dataclass
class TrainerPatternResult:
    """Trainer pattern category result."""

    total: int = 0
    matched_patterns: list[MatchedPattern] = field(default_factory=list)
    reasoning: str = "No trainer patterns matched"


# ──────────────────────────────────────────────
# Conditions
# ──────────────────────────────────────────────

def is_sprint(furlongs: float) -> bool:
    return furlongs < SPRINT_THRESHOLD


def get_layoff_category(days: Optional[int]) -> Optional[str]:
    if days is None:
        return None
    return banded(days, LAYOFF_BANDS, None)


def is_second_off_layoff(horse: HorseEntry) -> bool:
    pps = horse.past_performances
    if len(pps) < 2:
        return False
    gap = pps[0].days_since_last
    return gap is not None and gap >= SECOND_OFF_LAYOFF_DAYS


def is_sprint_to_route(horse: HorseEntry, race: RaceHeader) -> bool:
    pps = horse.past_performances
    return bool(pps) and not is_sprint(race.distance_furlongs) and is_sprint(pps[0].distance_furlongs)


def is_route_to_sprint(horse: HorseEntry, race: RaceHeader) -> bool:
    pps = horse.past_performances
    return bool(pps) and is_sprint(race.distance_furlongs) and not is_sprint(pps[0].distance_furlongs)


def is_stakes_race(race: RaceHeader) -> bool:
    return normalize_class(race.classification).startswith("stakes")


def matching_patterns(horse: HorseEntry, race: RaceHeader, track_condition: Optional[str] = None) -> list[str]:
    """Keys of every rule whose condition holds for this entry today."""
    condition = track_condition or race.track_condition
    checks: list[tuple[str, Callable[[], bool]]] = [
        ("first_time_lasix", lambda: is_first_time_lasix(horse)),
        ("first_time_blinkers", lambda: is_first_time_blinkers(horse)),
        ("blinkers_off", lambda: is_blinkers_off(horse)),
        ("second_off_layoff", lambda: is_second_off_layoff(horse)),
        ("sprint_to_route", lambda: is_sprint_to_route(horse, race)),
        ("route_to_sprint", lambda: is_route_to_sprint(horse, race)),
        ("wet_track", lambda: tracks.is_wet_condition(condition)),
        ("maiden_claiming", lambda: normalize_class(race.classification) == "maiden-claiming"),
        ("stakes", lambda: is_stakes_race(race)),
        ("first_start_trainer", lambda: not horse.past_performances),
        ("after_claim", lambda: bool(horse.past_performances) and horse.past_performances[0].was_claimed),
    ]
    keys = [key for key, check in checks if check()]

    layoff = get_layoff_category(horse.days_since_last_race)
    if layoff:
        keys.append(layoff)
    surface = (race.surface or "").lower()
    if surface in ("turf", "dirt"):
        keys.append(f"{surface}_sprint" if is_sprint(race.distance_furlongs) else f"{surface}_route")
    return keys


# ──────────────────────────────────────────────
# Scoring
# ──────────────────────────────────────────────

def get_sample_credit(starts: int) -> float:
    return banded(starts, SAMPLE_CREDIT_BANDS, 0.0)


def score_pattern(rule: PatternRule, stat: TrainerCategoryStat) -> Optional[MatchedPattern]:
    """Points for one matched rule, or None when the record does not qualify."""
    if stat.starts < rule.min_starts:
        return None
    if stat.win_percent >= rule.elite:
        base, tier = rule.max_points, "elite"
    elif rule.good is not None and stat.win_percent >= rule.good:
        base, tier = round_half_up(rule.max_points * 0.5), "good"
    else:
        return None

    credit = get_sample_credit(stat.starts)
    points = round_half_up(base * credit)
    if points == 0:
        return None
    return MatchedPattern(
        key=rule.key,
        win_percent=stat.win_percent,
        starts=stat.starts,
        roi=stat.roi,
        points=points,
        reasoning=(
            f"Trainer {stat.win_percent:.0f}% ({tier}) {rule.label} "
            f"({stat.starts} starts, {round_half_up(credit * 100)}% credit) +{points}"
        ),
    )


def calculate_trainer_pattern_score(
    horse: HorseEntry,
    race: RaceHeader,
    track_condition: Optional[str] = None,
) -> TrainerPatternResult:
    stats = horse.trainer_category_stats
    if stats is None:
        return TrainerPatternResult(reasoning="No trainer category stats")

    matched: list[MatchedPattern] = []
    for key in matching_patterns(horse, race, track_condition):
        pattern = score_pattern(PATTERN_RULES[key], getattr(stats, key))
        if pattern is not None:
            matched.append(pattern)

    if not matched:
        return TrainerPatternResult()

    raw_total = sum(p.points for p in matched)
    total = min(raw_total, MAX_TRAINER_PATTERN_POINTS)
    reasons = [p.reasoning for p in matched]
    if raw_total > MAX_TRAINER_PATTERN_POINTS:
        reasons.append(f"Capped at {MAX_TRAINER_PATTERN_POINTS} (raw {raw_total})")
    return TrainerPatternResult(total=total, matched_patterns=matched, reasoning=" | ".join(reasons))


def get_trainer_pattern_summary(result: TrainerPatternResult) -> str:
    if not result.matched_patterns:
        return "No trainer patterns matched"
    listed = ", ".join(f"{p.key}: +{p.points}" for p in result.matched_patterns)
    return f"{result.total} pts from {len(result.matched_patterns)} pattern(s): {listed}"
