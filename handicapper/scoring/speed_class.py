"""Speed & class scoring (max 80 = speed 48 + class 32).

Speed: best adjusted figure from the last 3 starts compared with today's
class par. A figure is adjusted for the track variant of the day it was
earned and for the quality tier of the track it was earned at.

Class: proven/competitive at today's level, class movement since last
start, and trip excuses for a horse dropping after a troubled run.

Shipper: a horse moving between track tiers gets half the tier-change
adjustment applied to its speed score.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from handicapper import tracks
from handicapper.models import HorseEntry, PastPerformance, RaceHeader
from handicapper.scoring.bands import banded, clamp, round_half_up

logger = logging.getLogger(__name__)

MAX_SPEED_SCORE = 48
MAX_CLASS_SCORE = 32
MAX_SPEED_CLASS_SCORE = 80
NEUTRAL_SPEED_SCORE = 24
RECENT_FIGURE_RACES = 3

# classification -> (hierarchy level, par figure)
CLASS_TABLE = {
    "maiden-claiming": (1, 65),
    "maiden": (2, 72),
    "claiming": (3, 75),
    "starter-allowance": (4, 78),
    "allowance": (5, 82),
    "allowance-optional-claiming": (6, 85),
    "handicap": (7, 88),
    "stakes": (8, 90),
    "stakes-listed": (9, 93),
    "stakes-graded-3": (10, 96),
    "stakes-graded-2": (11, 100),
    "stakes-graded-1": (12, 105),
}
UNKNOWN_CLASS = (3, 75)
MAIDEN_CLASSES = ("maiden", "maiden-claiming")

# (min differential vs par, points)
SPEED_BANDS = [(10, 48), (5, 40), (0, 32), (-5, 24), (-10, 16)]
SPEED_FLOOR = 8

EXCUSE_KEYWORDS = [
    "wide", "blocked", "steadied", "bumped", "traffic", "impeded", "checked",
    "shuffled", "boxed", "crowded", "slow start", "stumbled", "poor break", "eased",
]

SHIPPER_MAX_BONUS = 5
SHIPPER_MAX_PENALTY = -6


@dataclass
class SpeedClassScoreResult:
    """Speed & class category result."""

    total: int = 0
    speed_score: int = NEUTRAL_SPEED_SCORE
    class_score: int = 16
    best_figure: Optional[int] = None
    par_figure: int = 75
    figure_track: str = ""
    class_movement: str = "same"      # drop, rise, same
    class_levels_moved: int = 0
    shipper_adjustment: int = 0
    speed_reasoning: str = ""
    class_reasoning: str = ""
    reasoning: str = ""
    adjustments: list[str] = field(default_factory=list)


# ──────────────────────────────────────────────
# Class tables
# ──────────────────────────────────────────────

def normalize_class(classification: str) -> str:
    return (classification or "").strip().lower().replace("_", "-").replace(" ", "-")


def get_class_level(classification: str) -> int:
    return CLASS_TABLE.get(normalize_class(classification), UNKNOWN_CLASS)[0]


def get_par_figure(classification: str) -> int:
    """Par figure for a class. Unknown classes use the claiming par (75)."""
    return CLASS_TABLE.get(normalize_class(classification), UNKNOWN_CLASS)[1]


def is_maiden_class(classification: str) -> bool:
    return normalize_class(classification) in MAIDEN_CLASSES


# ──────────────────────────────────────────────
# Speed figures
# ──────────────────────────────────────────────

def get_primary_figure(pp: PastPerformance) -> Optional[int]:
    """Beyer, else TimeformUS, else Equibase. A figure of 0 is still a figure."""
    figs = pp.speed_figures
    for value in (figs.beyer, figs.timeform_us, figs.equibase):
        if value is not None:
            return value
    return None


def get_variant_adjustment(variant: Optional[int]) -> int:
    """Fast-track days (high variant) discount figures; slow days credit them."""
    if variant is None:
        return 0
    if variant > 5:
        return -2
    if variant > 3:
        return -1
    if variant < -5:
        return 2
    if variant < -3:
        return 1
    return 0


def get_best_recent_figure(horse: HorseEntry) -> tuple[Optional[int], str]:
    """Best adjusted figure over the last 3 starts, and the track it was earned at."""
    best: Optional[int] = None
    best_track = ""
    for pp in horse.past_performances[:RECENT_FIGURE_RACES]:
        raw = get_primary_figure(pp)
        if raw is None:
            continue
        adjusted = (
            raw
            + get_variant_adjustment(pp.speed_figures.track_variant)
            + tracks.get_tier_adjustment(pp.track)
        )
        if best is None or adjusted > best:
            best = adjusted
            best_track = pp.track
    return best, best_track


def calculate_speed_score(best_figure: Optional[int], classification: str) -> tuple[int, str]:
    """Points for the best figure against today's par."""
    par = get_par_figure(classification)
    if best_figure is None:
        return NEUTRAL_SPEED_SCORE, "No speed figures"
    diff = best_figure - par
    points = banded(diff, SPEED_BANDS, SPEED_FLOOR)
    sign = "+" if diff >= 0 else ""
    return points, f"Best {best_figure} vs par {par} ({sign}{diff})"


# ──────────────────────────────────────────────
# Shipper
# ──────────────────────────────────────────────

def calculate_shipper_adjustment(from_track: str, to_track: str) -> int:
    """Tier-change adjustment for a horse shipping between circuits.

    Moving to an easier circuit (higher tier number) is positive, moving up
    in quality is negative.
    """
    if not from_track or not to_track:
        return 0
    change = tracks.get_track_tier(to_track) - tracks.get_track_tier(from_track)
    if change > 0:
        return min(SHIPPER_MAX_BONUS, 2 * change)
    if change < 0:
        return max(SHIPPER_MAX_PENALTY, 2 * change)
    return 0


# ──────────────────────────────────────────────
# Class
# ──────────────────────────────────────────────

def has_trip_excuse(comment: str) -> bool:
    text = (comment or "").lower()
    return any(keyword in text for keyword in EXCUSE_KEYWORDS)


def analyze_class_movement(horse: HorseEntry, race: RaceHeader) -> tuple[str, int]:
    """Direction and size of today's class change versus the last start."""
    if not horse.past_performances:
        return "same", 0
    last_level = get_class_level(horse.past_performances[0].classification)
    today_level = get_class_level(race.classification)
    if today_level < last_level:
        return "drop", last_level - today_level
    if today_level > last_level:
        return "rise", today_level - last_level
    return "same", 0


def _record_at_level(horse: HorseEntry, today_level: int) -> tuple[int, int]:
    wins = itm = 0
    for pp in horse.past_performances:
        if get_class_level(pp.classification) >= today_level:
            if pp.finish_position == 1:
                wins += 1
            if 1 <= pp.finish_position <= 3:
                itm += 1
    return wins, itm


def calculate_class_score(horse: HorseEntry, race: RaceHeader) -> tuple[int, str, str, int]:
    """Class points, reasoning, movement and levels moved."""
    movement, levels = analyze_class_movement(horse, race)
    pps = horse.past_performances
    if not pps:
        return 16, "First-time starter", "same", 0

    wins, itm = _record_at_level(horse, get_class_level(race.classification))
    last = pps[0]

    if wins > 0:
        if is_maiden_class(race.classification):
            return 24, f"Competitive ({wins}W at similar class, maiden race)", movement, levels
        return 32, f"Proven winner at level ({wins}W, {itm} ITM)", movement, levels

    if itm >= 2:
        return 24, f"Competitive at level ({itm} ITM)", movement, levels

    if movement == "drop":
        if has_trip_excuse(last.trip_comment):
            return 29, f"Class drop with excuse: {last.trip_comment.strip()[:30]}", movement, levels
        points = min(28, 24 + 2 * levels)
        return points, f"Class drop ({levels} level{'s' if levels != 1 else ''})", movement, levels

    if movement == "rise":
        competitive = last.finish_position <= 3 or (last.finish_position <= 5 and (last.lengths_behind or 0.0) < 5)
        if competitive:
            return 19, "Rising in class, competitive last out", movement, levels
        return 16, "Rising in class - testing", movement, levels

    if itm >= 1:
        return 19, "Placed at level, seeking first win", movement, levels

    top_five = sum(1 for pp in pps[:3] if 1 <= pp.finish_position <= 5)
    if top_five == 0:
        return 8, "Struggling at current level", movement, levels
    return 16, "Competitive but unproven at level", movement, levels


# ──────────────────────────────────────────────
# Main entry point
# ──────────────────────────────────────────────

def calculate_speed_class_score(horse: HorseEntry, race: RaceHeader) -> SpeedClassScoreResult:
    """Combined speed and class score, capped at 80."""
    best, best_track = get_best_recent_figure(horse)
    speed, speed_reason = calculate_speed_score(best, race.classification)

    adjustments: list[str] = []
    shipper = 0
    if horse.past_performances:
        from_track = horse.past_performances[0].track
        shipper = calculate_shipper_adjustment(from_track, race.track_code)
        if shipper:
            applied = round_half_up(shipper * 0.5)
            speed = int(clamp(speed + applied, 0, MAX_SPEED_SCORE))
            direction = "down" if shipper > 0 else "up"
            adjustments.append(
                f"Shipping {direction}: {tracks.normalize_track_code(from_track)} -> "
                f"{tracks.normalize_track_code(race.track_code)} ({applied:+d})"
            )

    class_points, class_reason, movement, levels = calculate_class_score(horse, race)

    total = min(MAX_SPEED_CLASS_SCORE, speed + class_points)
    parts = [speed_reason, class_reason] + adjustments

    return SpeedClassScoreResult(
        total=total,
        speed_score=speed,
        class_score=class_points,
        best_figure=best,
        par_figure=get_par_figure(race.classification),
        figure_track=best_track,
        class_movement=movement,
        class_levels_moved=levels,
        shipper_adjustment=shipper,
        speed_reasoning=speed_reason,
        class_reasoning=class_reason,
        reasoning=" | ".join(parts),
        adjustments=adjustments,
    )
