"""Workout scoring (max 8).

Morning works are the only form a first-time starter has and the main
fitness signal for a horse returning from a layoff.

    recency   most recent work <=7d +3, <=14d +2, <=21d +1
    quality   any bullet +3, else best rank <=10% +2, <=25% +1
    pattern   4+ works in 30 days +2, 3 works +1
    penalty   layoff 60d+ with no work inside 21d -4
              first-time starter with no bullet -2
              most recent work ranked in the bottom quarter -1

The positive part is doubled for a first-time starter and multiplied by
1.5 for a layoff returnee; penalties are never multiplied. The signed net
runs -4..8 and the category total is the net floored at zero.

Days since a work come from ``Workout.days_ago`` when supplied, otherwise
from the race date minus the work date, so the same card always scores
the same.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from handicapper.models import HorseEntry, RaceHeader, Workout
from handicapper.scoring.bands import banded, banded_upper, clamp, round_half_up

logger = logging.getLogger(__name__)

MAX_WORKOUT_POINTS = 8
MIN_WORKOUT_POINTS = -4

RECENCY_BANDS = [(7, 3), (14, 2), (21, 1)]
BULLET_POINTS = 3
RANK_BANDS = [(0.10, 2), (0.25, 1)]
PATTERN_LOOKBACK_DAYS = 30
PATTERN_BANDS = [(4, 2), (3, 1)]

LAYOFF_DAYS = 60
RECENT_WORK_DAYS = 21
LAYOFF_NO_WORK_PENALTY = -4
FTS_NO_BULLET_PENALTY = -2
SLOW_WORK_RANK = 0.75
SLOW_WORK_PENALTY = -1

FTS_MULTIPLIER = 2.0
LAYOFF_MULTIPLIER = 1.5

DATE_FORMATS = ("%Y-%m-%d", "%Y%m%d", "%m/%d/%Y")

# (minimum net, label)
SUMMARY_BANDS = [(6, "Sharp"), (4, "Good"), (2, "Fair"), (0, "Light")]
ADVANTAGE_POINTS = 4


@dataclass
class WorkoutScoreResult:
    """Workout category result."""

    total: int = 0
    net_score: int = 0
    recency_bonus: int = 0
    quality_bonus: int = 0
    pattern_bonus: int = 0
    penalty: int = 0
    multiplier: float = 1.0
    works_in_last_30_days: int = 0
    days_since_most_recent: Optional[int] = None
    best_rank_percent: Optional[float] = None
    reasoning: str = "No workouts published"


# ──────────────────────────────────────────────
# Dates
# ──────────────────────────────────────────────

def parse_card_date(text: str) -> Optional[date]:
    """A card date as ISO, compact (YYYYMMDD) or US; None when unreadable."""
    text = (text or "").strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def days_since_work(workout: Workout, race_date: Optional[str]) -> Optional[int]:
    """Days between the work and the race, or None when either date is missing."""
    if workout.days_ago is not None:
        return workout.days_ago if workout.days_ago >= 0 else None
    worked = parse_card_date(workout.date)
    raced = parse_card_date(race_date or "")
    if worked is None or raced is None:
        return None
    days = (raced - worked).days
    return days if days >= 0 else None


def get_most_recent_workout(workouts: list[Workout], race_date: Optional[str]) -> Optional[Workout]:
    """The work with the fewest days before the race; the first listed when no dates resolve."""
    best: Optional[Workout] = None
    best_days: Optional[int] = None
    for workout in workouts:
        days = days_since_work(workout, race_date)
        if days is not None and (best_days is None or days < best_days):
            best, best_days = workout, days
    if best is None and workouts:
        return workouts[0]
    return best


def count_works_within(workouts: list[Workout], race_date: Optional[str], days: int) -> int:
    count = 0
    for workout in workouts:
        since = days_since_work(workout, race_date)
        if since is not None and since <= days:
            count += 1
    return count


def has_bullet_within(workouts: list[Workout], race_date: Optional[str], days: int) -> bool:
    for workout in workouts:
        since = days_since_work(workout, race_date)
        if workout.is_bullet and since is not None and since <= days:
            return True
    return False


def get_rank_percent(workout: Workout) -> Optional[float]:
    """Rank as a fraction of the works that day (1 of 20 = 0.05)."""
    if workout.ranking is None or not workout.rank_out_of:
        return None
    return workout.ranking / workout.rank_out_of


def is_first_time_starter(horse: HorseEntry) -> bool:
    return not horse.past_performances or horse.lifetime_starts == 0


def is_layoff_returnee(horse: HorseEntry) -> bool:
    days = horse.days_since_last_race
    return days is not None and days >= LAYOFF_DAYS


# ──────────────────────────────────────────────
# Components
# ──────────────────────────────────────────────

def calculate_recency_bonus(workouts: list[Workout], race_date: Optional[str]) -> tuple[int, str]:
    latest = get_most_recent_workout(workouts, race_date)
    if latest is None:
        return 0, "No workouts"
    days = days_since_work(latest, race_date)
    if days is None:
        return 0, "Work date unknown"
    bonus = banded_upper(days, RECENCY_BANDS, 0)
    if bonus == 0:
        return 0, f"Work {days}d ago (stale)"
    return bonus, f"Work {days}d ago (+{bonus})"


def calculate_quality_bonus(workouts: list[Workout]) -> tuple[int, str]:
    if not workouts:
        return 0, "No workouts"
    if any(w.is_bullet for w in workouts):
        return BULLET_POINTS, f"Bullet work (+{BULLET_POINTS})"

    ranks = [r for r in (get_rank_percent(w) for w in workouts) if r is not None]
    if not ranks:
        return 0, "No ranking data available"
    best = min(ranks)
    bonus = banded_upper(best, RANK_BANDS, 0)
    if bonus == 0:
        return 0, f"Best work at {round_half_up(best * 100)}%"
    return bonus, f"Top {round_half_up(best * 100)}% work (+{bonus})"


def calculate_pattern_bonus(workouts: list[Workout], race_date: Optional[str]) -> tuple[int, str]:
    recent = count_works_within(workouts, race_date, PATTERN_LOOKBACK_DAYS)
    bonus = banded(recent, PATTERN_BANDS, 0)
    if bonus == 2:
        return bonus, f"{recent} works in 30d (cranking, +{bonus})"
    if bonus:
        return bonus, f"{recent} works in 30d (+{bonus})"
    return 0, f"{recent} works in 30d"


def calculate_workout_penalties(horse: HorseEntry, race_date: Optional[str]) -> tuple[int, list[str]]:
    workouts = horse.workouts
    penalty = 0
    reasons: list[str] = []

    latest = get_most_recent_workout(workouts, race_date)
    if is_layoff_returnee(horse):
        days = days_since_work(latest, race_date) if latest is not None else None
        if days is None or days > RECENT_WORK_DAYS:
            penalty += LAYOFF_NO_WORK_PENALTY
            reasons.append(
                f"Layoff ({horse.days_since_last_race}d) with no recent work ({LAYOFF_NO_WORK_PENALTY})"
            )

    if is_first_time_starter(horse) and not any(w.is_bullet for w in workouts):
        penalty += FTS_NO_BULLET_PENALTY
        reasons.append(f"FTS without bullet work ({FTS_NO_BULLET_PENALTY})")

    if latest is not None:
        rank = get_rank_percent(latest)
        if rank is not None and rank > SLOW_WORK_RANK:
            penalty += SLOW_WORK_PENALTY
            reasons.append(f"Slow last work ({round_half_up(rank * 100)}%, {SLOW_WORK_PENALTY})")

    return penalty, reasons


# ──────────────────────────────────────────────
# Scoring
# ──────────────────────────────────────────────

def calculate_workout_score(horse: HorseEntry, race: Optional[RaceHeader] = None) -> WorkoutScoreResult:
    race_date = race.race_date if race is not None else None
    workouts = horse.workouts

    recency, recency_reason = calculate_recency_bonus(workouts, race_date)
    quality, quality_reason = calculate_quality_bonus(workouts)
    pattern, pattern_reason = calculate_pattern_bonus(workouts, race_date)
    penalty, penalty_reasons = calculate_workout_penalties(horse, race_date)

    multiplier, multiplier_reason = 1.0, ""
    if is_first_time_starter(horse):
        multiplier, multiplier_reason = FTS_MULTIPLIER, "First-time starter"
    elif is_layoff_returnee(horse):
        multiplier, multiplier_reason = LAYOFF_MULTIPLIER, "Layoff returnee"

    positive = round_half_up((recency + quality + pattern) * multiplier)
    net = int(clamp(positive + penalty, MIN_WORKOUT_POINTS, MAX_WORKOUT_POINTS))

    if workouts:
        parts = [f"{len(workouts)} work{'' if len(workouts) == 1 else 's'}"]
        for bonus, reason in ((recency, recency_reason), (quality, quality_reason), (pattern, pattern_reason)):
            if bonus > 0:
                parts.append(reason)
    else:
        parts = ["No workouts published"]
    parts.extend(penalty_reasons)
    if multiplier_reason:
        parts.append(f"{multiplier}x ({multiplier_reason})")

    latest = get_most_recent_workout(workouts, race_date)
    ranks = [r for r in (get_rank_percent(w) for w in workouts) if r is not None]
    return WorkoutScoreResult(
        total=max(0, net),
        net_score=net,
        recency_bonus=recency,
        quality_bonus=quality,
        pattern_bonus=pattern,
        penalty=penalty,
        multiplier=multiplier,
        works_in_last_30_days=count_works_within(workouts, race_date, PATTERN_LOOKBACK_DAYS),
        days_since_most_recent=days_since_work(latest, race_date) if latest is not None else None,
        best_rank_percent=min(ranks) if ranks else None,
        reasoning=" | ".join(parts),
    )


def get_workout_summary(result: WorkoutScoreResult) -> str:
    label = banded(result.net_score, SUMMARY_BANDS, "Concern")
    return f"{label} ({result.net_score:+d})"


def has_workout_advantage(result: WorkoutScoreResult) -> bool:
    return result.net_score >= ADVANTAGE_POINTS
