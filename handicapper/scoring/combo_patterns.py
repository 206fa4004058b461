"""Combination patterns (max 10).

Single angles (a class drop, a jockey switch, a bullet work) are scored in
their own categories. This category pays only when several line up at once,
which is how a trainer signals intent.

    gross positive   sum of matched positive combos, capped at +10
    gross negative   sum of matched negative combos, floored at -6
    net              positive + negative, held to -6..10

A triple bonus (+3) fires when three or more of class drop, equipment
change, jockey upgrade, trainer upgrade and bullet work are present; the
matching triple penalty (-3) needs three of class rise, jockey downgrade,
trainer downgrade and no recent work. The category total is the net
floored at zero.
"""

import logging
from dataclasses import dataclass, field, fields

from handicapper.models import HorseEntry, RaceHeader, TrainerCategoryStat
from handicapper.scoring.bands import banded, clamp, pct
from handicapper.scoring.equipment import is_first_time_blinkers, is_first_time_lasix
from handicapper.scoring.speed_class import analyze_class_movement
from handicapper.scoring.trainer_patterns import is_route_to_sprint, is_second_off_layoff, is_sprint_to_route
from handicapper.scoring.workouts import days_since_work, has_bullet_within

logger = logging.getLogger(__name__)

MAX_COMBO_POINTS = 10
MAX_NEGATIVE_POINTS = -6

LAYOFF_DAYS = 45
FRESHENING_MAX_DAYS = 60
BULLET_WORK_DAYS = 30
NO_WORKOUT_DAYS = 14

JOCKEY_RATE_MARGIN = 3.0
JOCKEY_HISTORY_STARTS = 3
JOCKEY_MEET_STARTS = 10
JOCKEY_GOOD_RATE = 15.0
JOCKEY_POOR_RATE = 10.0
TRAINER_MEET_STARTS = 5
TRAINER_GOOD_RATE = 20.0
TRAINER_POOR_RATE = 10.0
HOT_TRAINER_RATE = 25.0
DISTANCE_PATTERN_STARTS = 5
DISTANCE_PATTERN_RATE = 20.0
TRIPLE_SIGNALS = 3
TRIPLE_POINTS = 3

TURF_SIRES = (
    "kitten's joy", "english channel", "medaglia d'oro", "war front", "more than ready",
    "hard spun", "giant's causeway", "scat daddy", "blame", "city zip", "arch",
    "lemon drop kid", "dynaformer", "street cry", "street sense", "the factor",
    "uncle mo", "tapit", "ghostzapper", "awesome again", "distorted humor", "curlin",
    "speightstown", "american pharoah", "quality road", "nyquist", "constitution",
    "into mischief", "munnings",
)

POSITIVE_SIGNALS = ("class_drop", "first_time_equipment", "jockey_upgrade", "trainer_upgrade", "bullet_work")
NEGATIVE_SIGNALS = ("class_rise", "jockey_downgrade", "trainer_downgrade", "no_recent_workout")

# (minimum intent, label)
INTENT_BANDS = [(8, "Maximum Intent"), (6, "High Intent"), (4, "Moderate Intent"), (2, "Some Intent")]


@dataclass(frozen=True)
class ComboRule:
    key: str
    signals: tuple[str, ...]          # ComboSignals attributes that must all hold
    points: int
    reasoning: str


COMBO_RULES = (
    ComboRule("class_drop_lasix", ("class_drop", "first_lasix"), 3,
              "Dropping in class AND adding Lasix = going for the win"),
    ComboRule("class_drop_jockey_upgrade", ("class_drop", "jockey_upgrade"), 3,
              "Dropping in class AND upgrading jockey = serious intent"),
    ComboRule("layoff_equipment", ("returning_layoff", "first_time_equipment"), 2,
              "Returning from layoff with equipment change = trainer adjustments"),
    ComboRule("freshening_bullet", ("freshening", "bullet_work"), 2,
              "Freshened 45-60 days AND sharp workout = well-prepared return"),
    ComboRule("first_turf_breeding", ("first_turf", "turf_breeding"), 2,
              "First turf start with turf pedigree = bred for it"),
    ComboRule("sprint_to_route_pattern", ("sprint_to_route", "trainer_sprint_to_route"), 2,
              "Stretching out with trainer who excels at sprint-to-route"),
    ComboRule("class_drop_trainer_upgrade", ("class_drop", "trainer_upgrade"), 2,
              "Dropping in class AND new trainer with higher win% = serious upgrade"),
    ComboRule("first_blinkers_class_drop", ("first_blinkers", "class_drop"), 2,
              "First-time blinkers at easier level = focused improvement attempt"),
    ComboRule("jockey_upgrade_equipment", ("jockey_upgrade", "first_time_equipment"), 2,
              "Better jockey AND equipment change = double improvement"),
    ComboRule("second_layoff_bullet", ("second_off_layoff", "bullet_work"), 2,
              "Second start after layoff AND sharp workout = fit and ready"),
    ComboRule("layoff_class_drop", ("returning_layoff", "class_drop"), 2,
              "Returning from layoff at easier level = confidence builder"),
    ComboRule("class_drop_hot_trainer", ("class_drop", "trainer_hot"), 2,
              "Dropping in class with hot trainer = confidence play"),
    ComboRule("route_to_sprint_pattern", ("route_to_sprint", "trainer_route_to_sprint"), 2,
              "Cutting back with trainer who excels at route-to-sprint"),
)

NEGATIVE_RULES = (
    ComboRule("class_rise_jockey_downgrade", ("class_rise", "jockey_downgrade"), -3,
              "Rising in class AND downgrading jockey = trainer not trying hard"),
    ComboRule("class_rise_no_workout", ("class_rise", "no_recent_workout"), -2,
              "Rising in class without recent workout = underprepared"),
    ComboRule("trainer_downgrade", ("trainer_downgrade",), -2,
              "Switched to trainer with lower win% = downward move"),
    ComboRule("jockey_downgrade_no_workout", ("jockey_downgrade", "no_recent_workout"), -2,
              "Worse jockey AND no recent workout = lack of preparation"),
)


@dataclass
class ComboSignals:
    """Single-angle signals the combos are built from."""

    class_drop: bool = False
    class_rise: bool = False
    first_lasix: bool = False
    first_blinkers: bool = False
    first_time_equipment: bool = False
    jockey_upgrade: bool = False
    jockey_downgrade: bool = False
    trainer_upgrade: bool = False
    trainer_downgrade: bool = False
    trainer_hot: bool = False
    second_off_layoff: bool = False
    returning_layoff: bool = False
    freshening: bool = False
    bullet_work: bool = False
    no_recent_workout: bool = False
    first_turf: bool = False
    turf_breeding: bool = False
    sprint_to_route: bool = False
    route_to_sprint: bool = False
    trainer_sprint_to_route: bool = False
    trainer_route_to_sprint: bool = False

    def active(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]


@dataclass
class MatchedCombo:
    key: str
    signals: tuple[str, ...]
    points: int
    reasoning: str


@dataclass
class ComboPatternResult:
    """Combo pattern category result."""

    total: int = 0
    net_score: int = 0
    gross_positive: int = 0
    gross_negative: int = 0
    detected_combos: list[MatchedCombo] = field(default_factory=list)
    negative_combos: list[MatchedCombo] = field(default_factory=list)
    intent_score: int = 0
    signals: ComboSignals = field(default_factory=ComboSignals)
    reasoning: str = "No combo patterns detected"


# ──────────────────────────────────────────────
# Signals
# ──────────────────────────────────────────────

def _same_name(a: str, b: str) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower()


def _meet_rate(starts, wins) -> tuple[int, float]:
    starts = starts or 0
    return starts, pct(wins or 0, starts)


def _last_jockey_record(horse: HorseEntry) -> tuple[int, int]:
    last = horse.past_performances[0].jockey
    starts = wins = 0
    for pp in horse.past_performances:
        if _same_name(pp.jockey, last):
            starts += 1
            if pp.finish_position == 1:
                wins += 1
    return starts, wins


def _jockey_switched(horse: HorseEntry) -> bool:
    if not horse.past_performances:
        return False
    last = horse.past_performances[0].jockey
    return bool(last.strip()) and not _same_name(horse.jockey_name, last)


def is_jockey_upgrade(horse: HorseEntry) -> bool:
    """New rider whose meet win rate beats the last rider's record on this horse."""
    if not _jockey_switched(horse):
        return False
    starts, rate = _meet_rate(horse.jockey_meet_starts, horse.jockey_meet_wins)
    last_starts, last_wins = _last_jockey_record(horse)
    if last_starts >= JOCKEY_HISTORY_STARTS:
        return rate > pct(last_wins, last_starts) + JOCKEY_RATE_MARGIN
    return starts >= JOCKEY_MEET_STARTS and rate >= JOCKEY_GOOD_RATE


def is_jockey_downgrade(horse: HorseEntry) -> bool:
    if not _jockey_switched(horse):
        return False
    starts, rate = _meet_rate(horse.jockey_meet_starts, horse.jockey_meet_wins)
    last_starts, last_wins = _last_jockey_record(horse)
    if last_starts >= JOCKEY_HISTORY_STARTS:
        return rate < pct(last_wins, last_starts) - JOCKEY_RATE_MARGIN
    return starts >= JOCKEY_MEET_STARTS and rate < JOCKEY_POOR_RATE


def _trainer_switched(horse: HorseEntry) -> bool:
    if not horse.past_performances:
        return False
    last = horse.past_performances[0].trainer
    return bool(last.strip()) and not _same_name(horse.trainer_name, last)


def is_trainer_upgrade(horse: HorseEntry) -> bool:
    starts, rate = _meet_rate(horse.trainer_meet_starts, horse.trainer_meet_wins)
    return _trainer_switched(horse) and starts >= TRAINER_MEET_STARTS and rate >= TRAINER_GOOD_RATE


def is_trainer_downgrade(horse: HorseEntry) -> bool:
    starts, rate = _meet_rate(horse.trainer_meet_starts, horse.trainer_meet_wins)
    return _trainer_switched(horse) and starts >= TRAINER_MEET_STARTS and rate < TRAINER_POOR_RATE


def is_trainer_hot(horse: HorseEntry) -> bool:
    starts, rate = _meet_rate(horse.trainer_meet_starts, horse.trainer_meet_wins)
    return starts >= TRAINER_MEET_STARTS and rate >= HOT_TRAINER_RATE


def has_no_recent_workout(horse: HorseEntry, race: RaceHeader) -> bool:
    """No work within 14 days of the race; a work with no usable date does not count."""
    for workout in horse.workouts:
        days = days_since_work(workout, race.race_date)
        if days is not None and days <= NO_WORKOUT_DAYS:
            return False
    return True


def is_first_time_turf(horse: HorseEntry, race: RaceHeader) -> bool:
    if (race.surface or "").lower() != "turf":
        return False
    if horse.turf_starts:
        return False
    return not any((pp.surface or "").lower() == "turf" for pp in horse.past_performances)


def has_turf_breeding(horse: HorseEntry) -> bool:
    sire = horse.breeding.sire.lower()
    dam_sire = horse.breeding.dam_sire.lower()
    return any(name in sire or name in dam_sire for name in TURF_SIRES)


def _strong_distance_record(stat: TrainerCategoryStat) -> bool:
    return stat.starts >= DISTANCE_PATTERN_STARTS and stat.win_percent >= DISTANCE_PATTERN_RATE


def detect_signals(horse: HorseEntry, race: RaceHeader) -> ComboSignals:
    movement, _ = analyze_class_movement(horse, race)
    first_lasix = is_first_time_lasix(horse)
    first_blinkers = is_first_time_blinkers(horse)
    days = horse.days_since_last_race
    stats = horse.trainer_category_stats
    return ComboSignals(
        class_drop=movement == "drop",
        class_rise=movement == "rise",
        first_lasix=first_lasix,
        first_blinkers=first_blinkers,
        first_time_equipment=first_lasix or first_blinkers or bool(horse.equipment.first_time_equipment),
        jockey_upgrade=is_jockey_upgrade(horse),
        jockey_downgrade=is_jockey_downgrade(horse),
        trainer_upgrade=is_trainer_upgrade(horse),
        trainer_downgrade=is_trainer_downgrade(horse),
        trainer_hot=is_trainer_hot(horse),
        second_off_layoff=is_second_off_layoff(horse),
        returning_layoff=days is not None and days >= LAYOFF_DAYS,
        freshening=days is not None and LAYOFF_DAYS <= days <= FRESHENING_MAX_DAYS,
        bullet_work=has_bullet_within(horse.workouts, race.race_date, BULLET_WORK_DAYS),
        no_recent_workout=has_no_recent_workout(horse, race),
        first_turf=is_first_time_turf(horse, race),
        turf_breeding=has_turf_breeding(horse),
        sprint_to_route=is_sprint_to_route(horse, race),
        route_to_sprint=is_route_to_sprint(horse, race),
        trainer_sprint_to_route=stats is not None and _strong_distance_record(stats.sprint_to_route),
        trainer_route_to_sprint=stats is not None and _strong_distance_record(stats.route_to_sprint),
    )


# ──────────────────────────────────────────────
# Scoring
# ──────────────────────────────────────────────

def _matched(rules: tuple[ComboRule, ...], signals: ComboSignals) -> list[MatchedCombo]:
    return [
        MatchedCombo(rule.key, rule.signals, rule.points, rule.reasoning)
        for rule in rules
        if all(getattr(signals, name) for name in rule.signals)
    ]


def calculate_intent_score(signals: ComboSignals, combo_count: int) -> int:
    """0-10 read of how hard the connections are trying today."""
    score = 0
    score += 2 * (signals.class_drop + signals.first_time_equipment + signals.jockey_upgrade)
    score += signals.trainer_upgrade + signals.trainer_hot + signals.bullet_work
    if combo_count >= 2:
        score += 1
    score -= 2 * signals.class_rise
    score -= signals.jockey_downgrade + signals.trainer_downgrade
    return int(clamp(score, 0, 10))


def calculate_combo_pattern_score(horse: HorseEntry, race: RaceHeader) -> ComboPatternResult:
    signals = detect_signals(horse, race)
    positive = _matched(COMBO_RULES, signals)
    negative = _matched(NEGATIVE_RULES, signals)

    positive_count = sum(getattr(signals, name) for name in POSITIVE_SIGNALS)
    if positive_count >= TRIPLE_SIGNALS:
        positive.append(MatchedCombo(
            "triple_positive", POSITIVE_SIGNALS, TRIPLE_POINTS,
            f"Triple positive combo: {positive_count} positive signals aligned = all-in move",
        ))
    negative_count = sum(getattr(signals, name) for name in NEGATIVE_SIGNALS)
    if negative_count >= TRIPLE_SIGNALS:
        negative.append(MatchedCombo(
            "triple_negative", NEGATIVE_SIGNALS, -TRIPLE_POINTS,
            f"Triple negative combo: {negative_count} negative signals = pretender alert",
        ))

    raw_positive = sum(c.points for c in positive)
    raw_negative = sum(c.points for c in negative)
    gross_positive = min(raw_positive, MAX_COMBO_POINTS)
    gross_negative = max(raw_negative, MAX_NEGATIVE_POINTS)
    net = int(clamp(gross_positive + gross_negative, MAX_NEGATIVE_POINTS, MAX_COMBO_POINTS))

    reasons = [f"{c.reasoning} (+{c.points} pts)" for c in positive]
    reasons.extend(f"{c.reasoning} ({c.points} pts)" for c in negative)
    if raw_positive > MAX_COMBO_POINTS:
        reasons.append(f"Positive combos capped at {MAX_COMBO_POINTS} pts (raw: {raw_positive})")
    if raw_negative < MAX_NEGATIVE_POINTS:
        reasons.append(f"Negative combos floored at {MAX_NEGATIVE_POINTS} pts (raw: {raw_negative})")

    if positive or negative:
        logger.debug("%s combos: %s", horse.horse_name, [c.key for c in positive + negative])

    return ComboPatternResult(
        total=max(0, net),
        net_score=net,
        gross_positive=gross_positive,
        gross_negative=gross_negative,
        detected_combos=positive,
        negative_combos=negative,
        intent_score=calculate_intent_score(signals, len(positive)),
        signals=signals,
        reasoning=" | ".join(reasons) if reasons else "No combo patterns detected",
    )


def get_combo_pattern_summary(result: ComboPatternResult) -> str:
    if not result.detected_combos and not result.negative_combos:
        return "No combo patterns detected"
    parts = []
    if result.detected_combos:
        listed = ", ".join(f"{c.key}: +{c.points}" for c in result.detected_combos)
        parts.append(f"+{result.gross_positive} from {len(result.detected_combos)} positive: {listed}")
    if result.negative_combos:
        listed = ", ".join(f"{c.key}: {c.points}" for c in result.negative_combos)
        parts.append(f"{result.gross_negative} from {len(result.negative_combos)} negative: {listed}")
    return f"Net {result.net_score} pts ({' | '.join(parts)})"


def get_intent_level(intent_score: int) -> str:
    return banded(intent_score, INTENT_BANDS, "Low Intent")
