"""Race scoring orchestrator.

For one field: build the shared field aggregates once (connections database,
pace scenario), run every category scorer per horse, sum and cap the
categories into a base score, add the market overlay adjustment, then rank
the active horses.

    base    = min(323, sum of category totals)
    overlay = tier adjustment points, clamped to +/-40
    total   = clamp(base + overlay, 0, 363)

Scratched horses get an all-zero breakdown and rank 0; no scorer runs for
them. Output always preserves input order.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from handicapper.config import settings
from handicapper.models import HorseEntry, RaceHeader
from handicapper.scoring.bands import clamp, round_half_up
from handicapper.scoring.combo_patterns import ComboPatternResult, calculate_combo_pattern_score
from handicapper.scoring.connections import (
    ConnectionsDatabase,
    ConnectionsScoreResult,
    build_connections_database,
    calculate_connections_score,
)
from handicapper.scoring.data_completeness import DataCompletenessResult, calculate_data_completeness
from handicapper.scoring.distance_surface import (
    DistanceSurfaceResult,
    TrackSpecialistResult,
    calculate_distance_surface_score,
    calculate_track_specialist_score,
)
from handicapper.scoring.equipment import EquipmentScoreResult, calculate_equipment_score
from handicapper.scoring.form import ClassContext, FormScoreResult, calculate_form_score
from handicapper.scoring.odds import OddsScoreResult, calculate_odds_score, format_odds, parse_odds
from handicapper.scoring.overlay import (
    calculate_overlay_percent,
    calculate_tier_adjustment,
    classify_value,
    probability_to_decimal_odds,
    score_to_win_probability,
    to_decimal_odds,
)
from handicapper.scoring.pace import FieldPaceAnalysis, PaceScoreResult, analyze_pace_scenario, calculate_pace_score
from handicapper.scoring.post_position import PostPositionScoreResult, calculate_post_position_score
from handicapper.scoring.speed_class import SpeedClassScoreResult, calculate_speed_class_score
from handicapper.scoring.trainer_patterns import TrainerPatternResult, calculate_trainer_pattern_score
from handicapper.scoring.workouts import WorkoutScoreResult, calculate_workout_score

logger = logging.getLogger(__name__)

__all__ = [
    "MAX_BASE_SCORE",
    "MAX_OVERLAY",
    "MAX_SCORE",
    "SCORE_LIMITS",
    "SCORE_THRESHOLDS",
    "SCORE_COLORS",
    "CATEGORY_KEYS",
    "RaceContext",
    "OverlayScore",
    "ScoreBreakdown",
    "HorseScore",
    "ScoredHorse",
    "build_race_context",
    "calculate_horse_score",
    "calculate_race_scores",
    "get_top_horses",
    "get_ranked_horses",
    "calculate_race_confidence",
    "get_score_color",
    "get_score_tier",
    "parse_odds",
    "format_odds",
]

MAX_BASE_SCORE = 323
MAX_OVERLAY = 40
MAX_SCORE = MAX_BASE_SCORE + MAX_OVERLAY

SCORE_LIMITS = {
    "speed_class": 80,
    "pace": 45,
    "form": 50,
    "connections": 24,
    "equipment": 20,
    "trainer_patterns": 8,
    "odds": 12,
    "post_position": 12,
    "distance_surface": 20,
    "track_specialist": 10,
    "workouts": 8,
    "combo_patterns": 10,
    "base": MAX_BASE_SCORE,
    "overlay": MAX_OVERLAY,
    "total": MAX_SCORE,
}
CATEGORY_KEYS = (
    "speed_class", "pace", "form", "connections", "equipment",
    "trainer_patterns", "odds", "post_position", "distance_surface", "track_specialist",
    "workouts", "combo_patterns",
)

# Base score tiers: 80 / 65 / 50 / 35% of MAX_BASE_SCORE
SCORE_THRESHOLDS = {
    "elite": 258,
    "strong": 210,
    "contender": 162,
    "fair": 113,
    "weak": 0,
}
SCORE_COLORS = {
    "elite": "#22c55e",
    "strong": "#4ade80",
    "contender": "#eab308",
    "fair": "#f97316",
    "weak": "#ef4444",
}

# Race confidence
CONFIDENCE_BASE = 40
CONFIDENCE_DATA_WEIGHT = 0.3
CONFIDENCE_SEPARATION_WEIGHT = 30
CONFIDENCE_QUALITY_WEIGHT = 25
CONFIDENCE_QUALITY_MAX = 20

OddsLookup = Callable[[int, Any], Any]
ScratchLookup = Callable[[int], bool]


# ──────────────────────────────────────────────
# Result types
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class RaceContext:
    """Field-scoped aggregates shared by every horse in one race."""

    connections: ConnectionsDatabase
    pace: FieldPaceAnalysis
    field_size: int
    active_indexes: tuple[int, ...] = ()


@dataclass
class OverlayScore:
    points: int = 0
    overlay_percent: Optional[float] = None
    value_class: str = "fair"
    win_probability: float = 0.0
    fair_odds_decimal: Optional[float] = None
    penalty_waived: bool = False
    reasoning: str = "No odds - no overlay adjustment"


@dataclass
class ScoreBreakdown:
    speed_class: SpeedClassScoreResult
    pace: PaceScoreResult
    form: FormScoreResult
    connections: ConnectionsScoreResult
    equipment: EquipmentScoreResult
    trainer_patterns: TrainerPatternResult
    odds: OddsScoreResult
    post_position: PostPositionScoreResult
    distance_surface: DistanceSurfaceResult
    track_specialist: TrackSpecialistResult
    workouts: WorkoutScoreResult
    combo_patterns: ComboPatternResult
    overlay: OverlayScore = field(default_factory=OverlayScore)

    def category_totals(self) -> dict[str, int]:
        """Each category total, held inside its cap."""
        return {
            key: int(clamp(getattr(self, key).total, 0, SCORE_LIMITS[key]))
            for key in CATEGORY_KEYS
        }


@dataclass
class HorseScore:
    total: int
    base_score: int
    overlay_score: int
    breakdown: ScoreBreakdown
    data_completeness: DataCompletenessResult
    is_scratched: bool = False
    rank: int = 0

    @property
    def data_quality(self) -> int:
        return self.data_completeness.overall_score

    @property
    def tier(self) -> str:
        return get_score_tier(self.base_score)


@dataclass
class ScoredHorse:
    index: int
    horse: HorseEntry
    score: HorseScore

    @property
    def rank(self) -> int:
        return self.score.rank


# ──────────────────────────────────────────────
# Field context
# ──────────────────────────────────────────────

def _is_out(index: int, horse: HorseEntry, is_scratched: Optional[ScratchLookup]) -> bool:
    return horse.is_scratched or bool(is_scratched and is_scratched(index))


def build_race_context(
    horses: list[HorseEntry],
    race: RaceHeader,
    is_scratched: Optional[ScratchLookup] = None,
) -> RaceContext:
    """Build the connections database and pace scenario once for the field.

    Every past performance in the field feeds the connections database;
    only active horses shape the pace scenario.
    """
    active = [i for i, h in enumerate(horses) if not _is_out(i, h, is_scratched)]
    return RaceContext(
        connections=build_connections_database(horses),
        pace=analyze_pace_scenario([horses[i] for i in active]),
        field_size=len(active),
        active_indexes=tuple(active),
    )


# ──────────────────────────────────────────────
# Per-horse scoring
# ──────────────────────────────────────────────

def _scratched_score() -> HorseScore:
    scratched = "Scratched"
    breakdown = ScoreBreakdown(
        speed_class=SpeedClassScoreResult(speed_score=0, class_score=0, reasoning=scratched),
        pace=PaceScoreResult(total=0, reasoning=scratched),
        form=FormScoreResult(recent_form_score=0, layoff_score=0, reasoning=scratched),
        connections=ConnectionsScoreResult(reasoning=scratched),
        equipment=EquipmentScoreResult(total=0, base_score=0, reasoning=scratched),
        trainer_patterns=TrainerPatternResult(reasoning=scratched),
        odds=OddsScoreResult(total=0, reasoning=scratched),
        post_position=PostPositionScoreResult(total=0, base_score=0, reasoning=scratched),
        distance_surface=DistanceSurfaceResult(reasoning=scratched),
        track_specialist=TrackSpecialistResult(reasoning=scratched),
        workouts=WorkoutScoreResult(reasoning=scratched),
        combo_patterns=ComboPatternResult(reasoning=scratched),
        overlay=OverlayScore(reasoning=scratched),
    )
    return HorseScore(
        total=0,
        base_score=0,
        overlay_score=0,
        breakdown=breakdown,
        data_completeness=DataCompletenessResult(confidence_reason=scratched),
        is_scratched=True,
    )


def calculate_overlay_score(base_score: int, odds: Optional[float]) -> OverlayScore:
    """Market overlay adjustment for a base score at odds-to-one ``odds``."""
    if odds is None:
        return OverlayScore()

    probability = score_to_win_probability(base_score)
    fair = probability_to_decimal_odds(probability)
    overlay_pct = calculate_overlay_percent(fair, to_decimal_odds(odds))
    adjustment = calculate_tier_adjustment(
        base_score, overlay_pct, penalty_threshold=settings.underlay_penalty_threshold,
    )
    points = int(clamp(adjustment.points, -MAX_OVERLAY, MAX_OVERLAY))
    return OverlayScore(
        points=points,
        overlay_percent=overlay_pct,
        value_class=classify_value(overlay_pct),
        win_probability=probability,
        fair_odds_decimal=fair,
        penalty_waived=adjustment.penalty_waived,
        reasoning=adjustment.reasoning or f"Fair price ({overlay_pct:+.0f}%)",
    )


def calculate_horse_score(
    horse: HorseEntry,
    race: RaceHeader,
    odds: Any = None,
    track_condition: Optional[str] = None,
    is_scratched: bool = False,
    context: Optional[RaceContext] = None,
) -> HorseScore:
    """Score one horse. ``odds`` are today's odds and override the morning line.

    Without a ``context`` the field aggregates are built from this horse
    alone. The returned score has rank 0; ranks are assigned per race.
    """
    if is_scratched or horse.is_scratched:
        return _scratched_score()

    if context is None:
        context = build_race_context([horse], race)
    condition = track_condition or race.track_condition or settings.default_track_condition

    breakdown = ScoreBreakdown(
        speed_class=calculate_speed_class_score(horse, race),
        pace=calculate_pace_score(horse, race, context.pace),
        form=calculate_form_score(horse, ClassContext.from_race(race)),
        connections=calculate_connections_score(horse, context.connections),
        equipment=calculate_equipment_score(horse, condition),
        trainer_patterns=calculate_trainer_pattern_score(horse, race, condition),
        odds=calculate_odds_score(horse, odds),
        post_position=calculate_post_position_score(horse, race, context.field_size or None),
        distance_surface=calculate_distance_surface_score(horse, race, condition),
        track_specialist=calculate_track_specialist_score(horse, race),
        workouts=calculate_workout_score(horse, race),
        combo_patterns=calculate_combo_pattern_score(horse, race),
    )

    base = min(MAX_BASE_SCORE, sum(breakdown.category_totals().values()))
    breakdown.overlay = calculate_overlay_score(base, breakdown.odds.odds_value)
    total = int(clamp(base + breakdown.overlay.points, 0, MAX_SCORE))

    if settings.debug:
        logger.debug("%s: %s", horse.horse_name, breakdown.category_totals())

    return HorseScore(
        total=total,
        base_score=base,
        overlay_score=breakdown.overlay.points,
        breakdown=breakdown,
        data_completeness=calculate_data_completeness(horse, race),
    )


# ──────────────────────────────────────────────
# Race scoring
# ──────────────────────────────────────────────

def calculate_race_scores(
    horses: list[HorseEntry],
    race: RaceHeader,
    get_odds: Optional[OddsLookup] = None,
    is_scratched: Optional[ScratchLookup] = None,
    track_condition: Optional[str] = None,
    live_odds: Optional[Mapping[int, Any]] = None,
) -> list[ScoredHorse]:
    """Score and rank a whole field.

    ``get_odds(index, morning_line)`` supplies each horse's current odds;
    ``live_odds`` (program number -> odds) takes precedence when it parses.
    Horses with no usable current price are scored on their morning line.
    """
    context = build_race_context(horses, race, is_scratched)

    scored: list[ScoredHorse] = []
    for index, horse in enumerate(horses):
        odds: Any = None
        if get_odds is not None:
            odds = get_odds(index, horse.morning_line_odds)
        live = live_odds.get(horse.program_number) if live_odds else None
        if parse_odds(live) is not None:
            odds = live
        score = calculate_horse_score(
            horse,
            race,
            odds=odds,
            track_condition=track_condition,
            is_scratched=_is_out(index, horse, is_scratched),
            context=context,
        )
        scored.append(ScoredHorse(index=index, horse=horse, score=score))

    active = sorted(
        (sh for sh in scored if not sh.score.is_scratched),
        key=lambda sh: (-sh.score.total, sh.index),
    )
    for rank, sh in enumerate(active, start=1):
        sh.score.rank = rank

    logger.info(
        "Scored %s R%d: %d active of %d, pace %s, confidence %d",
        race.track_code or "?", race.race_number, len(active), len(horses),
        context.pace.scenario, calculate_race_confidence(scored),
    )
    return scored


def get_ranked_horses(scored: list[ScoredHorse]) -> list[ScoredHorse]:
    """Active horses, best first."""
    return sorted((sh for sh in scored if not sh.score.is_scratched), key=lambda sh: sh.rank)


def get_top_horses(scored: list[ScoredHorse], n: int = 3) -> list[ScoredHorse]:
    return get_ranked_horses(scored)[:n]


def calculate_race_confidence(scored: list[ScoredHorse]) -> int:
    """0-100 confidence in the field's ranking.

    Built from average data completeness, the gap between the top two
    totals and the strength of the top score.
    """
    active = [sh for sh in scored if not sh.score.is_scratched]
    if not active:
        return 0

    avg_quality = sum(sh.score.data_quality for sh in active) / len(active)
    totals = sorted((sh.score.total for sh in active), reverse=True)
    top = totals[0]
    separation = 0.0
    if len(totals) > 1 and top > 0:
        separation = (top - totals[1]) / top * CONFIDENCE_SEPARATION_WEIGHT
    quality_bonus = min(CONFIDENCE_QUALITY_MAX, top / MAX_SCORE * CONFIDENCE_QUALITY_WEIGHT)

    confidence = CONFIDENCE_BASE + avg_quality * CONFIDENCE_DATA_WEIGHT + separation + quality_bonus
    return int(clamp(round_half_up(confidence), 0, 100))


# ──────────────────────────────────────────────
# Display helpers
# ──────────────────────────────────────────────

def get_score_tier(base_score: float) -> str:
    for tier, threshold in SCORE_THRESHOLDS.items():
        if base_score >= threshold:
            return tier.capitalize()
    return "Weak"


def get_score_color(base_score: float, is_scratched: bool = False) -> str:
    if is_scratched:
        return SCORE_COLORS["weak"]
    return SCORE_COLORS[get_score_tier(base_score).lower()]
