"""Post position draw scoring (max 12).

Generic preference tiers by race type, then a penalty for posts wide of 5
in big fields and a turf adjustment favouring the rail.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from handicapper.models import HorseEntry, RaceHeader
from handicapper.scoring.bands import clamp, round_half_up

logger = logging.getLogger(__name__)

MAX_POST_POSITION_SCORE = 12
MIN_POST_POSITION_SCORE = 2
UNKNOWN_POST_SCORE = 7
SPRINT_MAX_FURLONGS = 7.5

TIER_POINTS = {"golden": 11, "good": 9, "neutral": 7, "poor": 4, "terrible": 2}
TIER_LABELS = {
    "golden": "Golden post",
    "good": "Good post",
    "neutral": "Neutral post",
    "poor": "Poor post",
    "terrible": "Tough post",
}

# race type -> tier -> posts; anything unlisted is terrible
POST_PREFERENCES = {
    "sprint": {"golden": {4, 5}, "good": {3, 6}, "neutral": {2, 7}, "poor": {1, 8}},
    "route": {"golden": {4, 5}, "good": {2, 3, 6}, "neutral": {1, 7}, "poor": {8, 9}},
}

# (min field size, per-post penalty beyond 5 (sprint, route), floor)
FIELD_SIZE_PENALTIES = [
    (10, (0.56, 0.4), -3.0),
    (8, (0.28, 0.12), -1.0),
]
OUTSIDE_FROM = 5

TURF_INSIDE_MAX_POST = 3
TURF_INSIDE_BONUS = 1
TURF_OUTSIDE_MIN_POST = 7
TURF_OUTSIDE_PENALTY = {"sprint": 0, "route": -1}


@dataclass
class PostPositionScoreResult:
    total: int = UNKNOWN_POST_SCORE
    base_score: int = UNKNOWN_POST_SCORE
    tier: str = "neutral"
    field_size_adjustment: float = 0.0
    turf_adjustment: int = 0
    is_golden_post: bool = False
    reasoning: str = ""


def get_race_type(race: RaceHeader) -> str:
    return "sprint" if race.distance_furlongs < SPRINT_MAX_FURLONGS else "route"


def get_post_tier(post: int, race_type: str) -> str:
    for tier, posts in POST_PREFERENCES[race_type].items():
        if post in posts:
            return tier
    return "terrible"


def calculate_field_size_adjustment(post: int, field_size: int, race_type: str) -> float:
    """Penalty for a post wide of 5; zero for inside draws and small fields."""
    if post <= OUTSIDE_FROM:
        return 0.0
    for min_field, (sprint_rate, route_rate), floor in FIELD_SIZE_PENALTIES:
        if field_size >= min_field:
            rate = sprint_rate if race_type == "sprint" else route_rate
            return max(floor, -rate * (post - OUTSIDE_FROM))
    return 0.0


def calculate_turf_adjustment(post: int, race: RaceHeader, race_type: str) -> int:
    if (race.surface or "").lower() != "turf":
        return 0
    if post <= TURF_INSIDE_MAX_POST:
        return TURF_INSIDE_BONUS
    if post >= TURF_OUTSIDE_MIN_POST:
        return TURF_OUTSIDE_PENALTY[race_type]
    return 0


def calculate_post_position_score(
    horse: HorseEntry,
    race: RaceHeader,
    field_size: Optional[int] = None,
) -> PostPositionScoreResult:
    """Score today's draw. ``field_size`` overrides the header's when given."""
    post = horse.post_position
    if post <= 0:
        return PostPositionScoreResult(reasoning="Post unknown")

    race_type = get_race_type(race)
    size = field_size if field_size is not None else race.field_size
    tier = get_post_tier(post, race_type)
    base = TIER_POINTS[tier]
    field_adj = calculate_field_size_adjustment(post, size, race_type)
    turf_adj = calculate_turf_adjustment(post, race, race_type)

    total = int(clamp(
        round_half_up(base + field_adj + turf_adj),
        MIN_POST_POSITION_SCORE,
        MAX_POST_POSITION_SCORE,
    ))

    parts = [f"PP{post} {TIER_LABELS[tier]} {race_type}"]
    if field_adj:
        parts.append(f"wide in field of {size} ({field_adj:+.1f})")
    if turf_adj:
        parts.append(f"turf {'rail' if turf_adj > 0 else 'outside'} ({turf_adj:+d})")

    return PostPositionScoreResult(
        total=total,
        base_score=base,
        tier=tier,
        field_size_adjustment=field_adj,
        turf_adjustment=turf_adj,
        is_golden_post=tier == "golden",
        reasoning=" | ".join(parts),
    )


def get_optimal_post_positions(race: RaceHeader) -> tuple[list[int], str]:
    race_type = get_race_type(race)
    posts = sorted(POST_PREFERENCES[race_type]["golden"])
    description = f"Posts {posts[0]}-{posts[-1]} in {race_type}s"
    if (race.surface or "").lower() == "turf":
        posts = sorted(set(posts) | set(range(1, TURF_INSIDE_MAX_POST + 1)))
        description += ", inside draws on turf"
    return posts, description
