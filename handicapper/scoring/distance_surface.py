"""Distance / surface affinity (max 20) and track specialist (max 10).

Distance/surface components, each from the entry's record aggregates:
  - Turf (0-8): turf races only
  - Wet (0-6): wet or off track conditions only
  - Distance (0-6): always

One or two starts earn half credit; no starts earn nothing.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from handicapper import tracks
from handicapper.models import HorseEntry, RaceHeader
from handicapper.scoring.bands import banded, round_half_up

logger = logging.getLogger(__name__)

DISTANCE_SURFACE_LIMITS = {"turf": 8, "wet": 6, "distance": 6, "total": 20}
MIN_STARTS_FULL_CREDIT = 3

# (min win rate, points, label)
TURF_TIERS = [
    (0.30, 8, "elite turf specialist"),
    (0.20, 6, "strong turf affinity"),
    (0.15, 4, "good turf affinity"),
    (0.10, 2, "moderate turf ability"),
]
WET_TIERS = [
    (0.25, 6, "proven mudder"),
    (0.15, 4, "handles wet tracks"),
    (0.10, 2, "moderate wet ability"),
]
DISTANCE_TIERS = [
    (0.25, 6, "distance specialist"),
    (0.15, 4, "good at distance"),
    (0.10, 2, "moderate at distance"),
]

MAX_TRACK_SPECIALIST = 10
TRACK_SPECIALIST_MIN_STARTS = 4
TRACK_WIN_BANDS = [(0.30, 10), (0.20, 7), (0.15, 5)]
TRACK_ITM_POINTS = 3


@dataclass
class DistanceSurfaceResult:
    """Distance/surface category result."""

    total: int = 0
    turf_score: int = 0
    wet_score: int = 0
    distance_score: int = 0
    reasons: list[str] = field(default_factory=list)
    reasoning: str = ""


@dataclass
class TrackSpecialistResult:
    total: int = 0
    starts: int = 0
    win_rate: float = 0.0
    reasoning: str = ""


def _record_points(
    label: str,
    starts: Optional[int],
    wins: Optional[int],
    tiers: list[tuple[float, int, str]],
    weak_label: str,
) -> tuple[int, str]:
    starts = starts or 0
    wins = wins or 0
    if starts <= 0:
        return 0, f"No {label.lower()} starts (unproven)"

    rate = wins / starts
    points, tier = banded(rate, [(lo, (pts, name)) for lo, pts, name in tiers], (0, weak_label))
    note = ""
    if starts < MIN_STARTS_FULL_CREDIT:
        points = round_half_up(points / 2)
        note = " (small sample)"
    return points, f"{label}: {wins}/{starts} ({rate * 100:.0f}%) - {tier}{note}"


def calculate_distance_surface_score(
    horse: HorseEntry,
    race: RaceHeader,
    track_condition: Optional[str] = None,
) -> DistanceSurfaceResult:
    condition = track_condition or race.track_condition
    is_turf = (race.surface or "").lower() == "turf"
    is_wet = tracks.is_wet_condition(condition)
    reasons: list[str] = []

    turf = wet = 0
    if is_turf:
        turf, reason = _record_points("Turf", horse.turf_starts, horse.turf_wins, TURF_TIERS, "weak turf record")
        reasons.append(reason)
    if is_wet:
        wet, reason = _record_points("Wet", horse.wet_starts, horse.wet_wins, WET_TIERS, "weak wet track record")
        reasons.append(reason)
    distance, reason = _record_points(
        "Distance", horse.distance_starts, horse.distance_wins, DISTANCE_TIERS, "weak at distance",
    )
    reasons.append(reason)

    total = min(DISTANCE_SURFACE_LIMITS["total"], turf + wet + distance)
    return DistanceSurfaceResult(
        total=total,
        turf_score=turf,
        wet_score=wet,
        distance_score=distance,
        reasons=reasons,
        reasoning=" | ".join(reasons),
    )


def calculate_track_specialist_score(horse: HorseEntry, race: Optional[RaceHeader] = None) -> TrackSpecialistResult:
    """Record at today's track; needs 4+ starts there."""
    starts = horse.track_starts or 0
    if starts < TRACK_SPECIALIST_MIN_STARTS:
        return TrackSpecialistResult(starts=starts, reasoning="Limited starts at track")

    wins = horse.track_wins or 0
    itm = wins + (horse.track_places or 0) + (horse.track_shows or 0)
    rate = wins / starts
    points = banded(rate, TRACK_WIN_BANDS, 0)
    if points == 0 and itm / starts >= 0.5:
        points = TRACK_ITM_POINTS

    where = tracks.normalize_track_code(race.track_code) if race is not None else "track"
    label = "track specialist" if points >= 7 else ("consistent here" if points else "no edge here")
    return TrackSpecialistResult(
        total=points,
        starts=starts,
        win_rate=rate,
        reasoning=f"{where}: {wins}/{starts} ({rate * 100:.0f}%) - {label}",
    )
