"""Data completeness assessment for a single entry.

Ten presence checks in four weighted tiers:
  - Critical (50%): speed figures in the last 3 starts, 3+ past performances
  - High (30%): trainer stats, jockey stats, running style
  - Medium (15%): pace figures, track/distance/surface/wet records, equipment data
  - Low (5%): breeding, lifetime earnings

A value of 0 is present data wherever zero is meaningful (earnings, record
starts, a Beyer of 0). Only ``None`` or an empty string counts as missing.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from handicapper.models import HorseEntry, RaceHeader
from handicapper.scoring.bands import banded, round_half_up

logger = logging.getLogger(__name__)

TIER_WEIGHTS = {
    "critical": 50,
    "high": 30,
    "medium": 15,
    "low": 5,
}

GRADE_BANDS = [(90, "A"), (75, "B"), (60, "C"), (40, "D")]

LOW_CONFIDENCE_CRITICAL_THRESHOLD = 50
MIN_PAST_PERFORMANCES = 3


@dataclass
class DataCompletenessResult:
    """Presence of each input the scorers rely on, rolled up by tier."""

    overall_score: int = 0
    overall_grade: str = "F"
    critical_complete: int = 0
    high_complete: int = 0
    medium_complete: int = 0
    low_complete: int = 0
    is_low_confidence: bool = True
    missing_critical: list[str] = field(default_factory=list)
    missing_high: list[str] = field(default_factory=list)
    checks: dict[str, bool] = field(default_factory=dict)
    confidence_reason: str = ""


# ──────────────────────────────────────────────
# Individual checks
# ──────────────────────────────────────────────

def has_speed_figures(horse: HorseEntry) -> bool:
    for pp in horse.past_performances[:3]:
        figs = pp.speed_figures
        if figs.beyer is not None or figs.timeform_us is not None or figs.equibase is not None:
            return True
    return False


def has_trainer_stats(horse: HorseEntry) -> bool:
    return horse.trainer_meet_starts is not None or bool(horse.trainer_stats.strip())


def has_jockey_stats(horse: HorseEntry) -> bool:
    return horse.jockey_meet_starts is not None or bool(horse.jockey_stats.strip())


def has_running_style(horse: HorseEntry) -> bool:
    if horse.running_style.strip() and horse.running_style.strip().upper() != "U":
        return True
    for pp in horse.past_performances:
        line = pp.running_line
        if line.quarter_mile is not None or line.half_mile is not None or line.start is not None:
            return True
    return False


def has_pace_figures(horse: HorseEntry) -> bool:
    return any(
        pp.early_pace1 is not None or pp.late_pace is not None
        for pp in horse.past_performances[:5]
    )


def has_records(horse: HorseEntry, race: Optional[RaceHeader] = None) -> bool:
    """Any record for today's conditions, or any record at all without a race.

    On turf only the turf record counts as the surface record; elsewhere
    only the main surface record does.
    """
    if race is None:
        values = (horse.track_starts, horse.distance_starts, horse.surface_starts, horse.wet_starts,
                  horse.turf_starts)
    else:
        on_turf = (race.surface or "").lower() == "turf"
        surface_record = horse.turf_starts if on_turf else horse.surface_starts
        values = (horse.track_starts, horse.distance_starts, horse.wet_starts, surface_record)
    return any(v is not None for v in values)


def has_equipment_data(horse: HorseEntry) -> bool:
    equip = horse.equipment
    if equip.raw.strip() or equip.first_time_equipment or equip.equipment_changes:
        return True
    if horse.medication.raw.strip():
        return True
    return any(pp.equipment.strip() or pp.medication.strip() for pp in horse.past_performances)


def has_breeding(horse: HorseEntry) -> bool:
    return bool(horse.breeding.sire.strip() or horse.breeding.dam.strip())


def has_lifetime_earnings(horse: HorseEntry) -> bool:
    return horse.lifetime_earnings is not None


# (key, label, tier, check)
_CHECKS = [
    ("speed_figures", "Speed Figures", "critical", has_speed_figures),
    ("past_performances", "Past Performances",
     "critical", lambda h: len(h.past_performances) >= MIN_PAST_PERFORMANCES),
    ("trainer_stats", "Trainer Stats", "high", has_trainer_stats),
    ("jockey_stats", "Jockey Stats", "high", has_jockey_stats),
    ("running_style", "Running Style", "high", has_running_style),
    ("pace_figures", "Pace Figures", "medium", has_pace_figures),
    ("records", "Track/Distance/Surface Records", "medium", has_records),
    ("equipment", "Equipment Data", "medium", has_equipment_data),
    ("breeding", "Breeding", "low", has_breeding),
    ("earnings", "Lifetime Earnings", "low", has_lifetime_earnings),
]

# checks that also look at today's race
RACE_CHECKS = ("records",)


def get_grade(score: float) -> str:
    return banded(score, GRADE_BANDS, "F")


def _confidence_reason(missing_critical: list[str], critical_pct: int) -> str:
    if not missing_critical:
        return "All critical data present"
    if len(missing_critical) == 1:
        missing = missing_critical[0]
    else:
        missing = " and ".join([", ".join(missing_critical[:-1]), missing_critical[-1]])
    return f"Missing {missing} ({critical_pct}% critical data)"


def calculate_data_completeness(
    horse: HorseEntry,
    race: Optional[RaceHeader] = None,
) -> DataCompletenessResult:
    """Assess how much of the scoring input is actually present for ``horse``.

    With a ``race`` the records check asks for a record that fits today's
    surface; without one any record counts.
    """
    checks: dict[str, bool] = {}
    per_tier: dict[str, list[bool]] = {tier: [] for tier in TIER_WEIGHTS}
    missing: dict[str, list[str]] = {tier: [] for tier in TIER_WEIGHTS}

    for key, label, tier, check in _CHECKS:
        present = bool(check(horse, race) if key in RACE_CHECKS else check(horse))
        checks[key] = present
        per_tier[tier].append(present)
        if not present:
            missing[tier].append(label)

    tier_pct = {
        tier: round_half_up(sum(values) / len(values) * 100) if values else 0
        for tier, values in per_tier.items()
    }
    overall = round_half_up(
        sum(tier_pct[tier] * weight for tier, weight in TIER_WEIGHTS.items()) / 100
    )

    result = DataCompletenessResult(
        overall_score=overall,
        overall_grade=get_grade(overall),
        critical_complete=tier_pct["critical"],
        high_complete=tier_pct["high"],
        medium_complete=tier_pct["medium"],
        low_complete=tier_pct["low"],
        is_low_confidence=tier_pct["critical"] < LOW_CONFIDENCE_CRITICAL_THRESHOLD,
        missing_critical=missing["critical"],
        missing_high=missing["high"],
        checks=checks,
        confidence_reason=_confidence_reason(missing["critical"], tier_pct["critical"]),
    )
    logger.debug(
        "Completeness #%s: %d (%s)", horse.program_number, result.overall_score, result.overall_grade,
    )
    return result
