"""Pace analysis: running styles, field pace scenario and per-horse pace fit.

Running style codes:
  E  Early speed (on or near the lead at the first call)
  P  Presser (stalks the leaders)
  S  Sustained (holds position throughout)
  C  Closer (back early, runs late)
  U  Unknown (no race history)

The field pass (``analyze_pace_scenario``) runs once per race and returns a
frozen ``FieldPaceAnalysis`` shared by every horse's ``calculate_pace_score``.

Pace score (5-45) = 10 base + tactical fit (0-25) + track bias (-2..+5)
+ EP1/LP figure adjustment (-5..+5).
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from handicapper import tracks
from handicapper.models import HorseEntry, PastPerformance, RaceHeader
from handicapper.scoring.bands import banded, clamp, round1, round_half_up

logger = logging.getLogger(__name__)

PACE_BASE_SCORE = 10
MIN_PACE_SCORE = 5
MAX_PACE_SCORE = 45
FIGURE_ADJUSTMENT_LIMIT = 5

STYLE_NAMES = {
    "E": "Early Speed",
    "P": "Presser",
    "C": "Closer",
    "S": "Sustained Speed",
    "U": "Unknown",
}

SCENARIO_LABELS = {
    "soft": "Soft (Lone Speed)",
    "moderate": "Moderate",
    "contested": "Contested",
    "speed_duel": "Speed Duel",
    "unknown": "Unknown",
}

TACTICAL_MATRIX = {
    "soft": {"E": 25, "P": 15, "C": 5, "S": 18, "U": 10},
    "moderate": {"E": 12, "P": 20, "C": 15, "S": 15, "U": 12},
    "contested": {"E": 5, "P": 25, "C": 20, "S": 12, "U": 12},
    "speed_duel": {"E": 0, "P": 15, "C": 25, "S": 8, "U": 10},
    "unknown": {"E": 12, "P": 12, "C": 12, "S": 12, "U": 10},
}

TACTICAL_LEVELS = [(20, "excellent"), (15, "good"), (10, "neutral"), (5, "poor")]

# EP1 / LP thresholds
EP1_CONFIRMED_SPEED = 85
EP1_MODERATE = 75
LP_STRONG = 90
LP_GOOD = 80
LP_MODERATE = 75
CLOSING_KICK_MIN = 5
PACE_TREND_THRESHOLD = 3
PACE_FIGURE_RACES = 5
MIN_PACE_FIGURE_RACES = 2

# Field EP1 pressure: average thresholds / high-EP1 horse counts
PRESSURE_DUEL_AVG = 90
PRESSURE_CONTESTED_AVG = 85
PRESSURE_MODERATE_AVG = 80
MIN_PRESSURE_CONFIDENCE = 50
PRESSURE_OVERRIDE_CONFIDENCE = 70

PRESSURE_TO_SCENARIO = {
    "soft": "soft",
    "moderate": "moderate",
    "contested": "contested",
    "duel": "speed_duel",
}

STYLE_RACES = 3
DEFAULT_FIELD_SIZE = 10


# ──────────────────────────────────────────────
# Result types
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class PaceFigureAnalysis:
    """Averages and trends of EP1 / LP over the last 5 starts."""

    avg_early_pace: Optional[float] = None
    avg_late_pace: Optional[float] = None
    ep1_race_count: int = 0
    lp_race_count: int = 0
    ep1_trend: str = "unknown"        # improving, declining, stable, unknown
    lp_trend: str = "unknown"
    is_confirmed_speed: bool = False
    is_confirmed_closer: bool = False
    has_closing_kick: bool = False
    closing_kick_differential: Optional[float] = None


@dataclass(frozen=True)
class RaceStyleEvidence:
    date: str
    track: str
    first_call_position: Optional[int]   # None when the race has no call positions
    field_size: int
    finish_position: int
    style: str
    was_on_lead: bool


@dataclass(frozen=True)
class RunningStyleProfile:
    style: str = "U"
    style_name: str = STYLE_NAMES["U"]
    confidence: int = 0
    evidence: tuple[RaceStyleEvidence, ...] = ()
    times_on_lead: int = 0
    total_races: int = 0
    pace_figures: PaceFigureAnalysis = field(default_factory=PaceFigureAnalysis)
    description: str = ""


@dataclass(frozen=True)
class FieldPacePressure:
    pressure: str = "moderate"        # soft, moderate, contested, duel
    avg_field_ep1: Optional[float] = None
    high_ep1_count: int = 0
    valid_horses_count: int = 0
    confirmed_speed_horses: tuple[int, ...] = ()
    data_confidence: int = 0
    description: str = ""


@dataclass(frozen=True)
class FieldPaceAnalysis:
    """Field-level pace picture, built once per race and never mutated."""

    scenario: str = "unknown"
    label: str = SCENARIO_LABELS["unknown"]
    ppi: int = 0
    field_size: int = 0
    early_speed: tuple[int, ...] = ()
    pressers: tuple[int, ...] = ()
    closers: tuple[int, ...] = ()
    sustained: tuple[int, ...] = ()
    unknown: tuple[int, ...] = ()
    pressure: FieldPacePressure = field(default_factory=FieldPacePressure)
    description: str = ""


@dataclass
class TacticalAdvantage:
    points: int
    level: str                        # excellent, good, neutral, poor, terrible


@dataclass
class PaceScoreResult:
    """Pace category result."""

    total: int = PACE_BASE_SCORE
    running_style: str = "U"
    pace_fit: str = "neutral"
    tactical_points: int = 0
    track_bias: int = 0
    figure_adjustment: int = 0
    scenario: str = "unknown"
    reasoning: str = ""


# ──────────────────────────────────────────────
# Pace figures
# ──────────────────────────────────────────────

def _valid_figures(values: Iterable[Optional[int]]) -> list[int]:
    return [v for v in values if v is not None and v > 0]


def _average(values: list[int]) -> Optional[float]:
    if len(values) < MIN_PACE_FIGURE_RACES:
        return None
    return round1(sum(values) / len(values))


def calculate_pace_trend(figures: list[int]) -> str:
    """Most recent figure against the average of the earlier ones."""
    if len(figures) < 2:
        return "unknown"
    earlier = figures[1:]
    diff = figures[0] - sum(earlier) / len(earlier)
    if diff >= PACE_TREND_THRESHOLD:
        return "improving"
    if diff <= -PACE_TREND_THRESHOLD:
        return "declining"
    return "stable"


def get_average_early_pace(horse: HorseEntry) -> Optional[float]:
    recent = horse.past_performances[:PACE_FIGURE_RACES]
    return _average(_valid_figures(pp.early_pace1 for pp in recent))


def analyze_pace_figures(horse: HorseEntry) -> PaceFigureAnalysis:
    recent = horse.past_performances[:PACE_FIGURE_RACES]
    ep1 = _valid_figures(pp.early_pace1 for pp in recent)
    lp = _valid_figures(pp.late_pace for pp in recent)
    avg_ep1 = _average(ep1)
    avg_lp = _average(lp)

    kick: Optional[float] = None
    if avg_ep1 is not None and avg_lp is not None:
        kick = round1(avg_lp - avg_ep1)

    return PaceFigureAnalysis(
        avg_early_pace=avg_ep1,
        avg_late_pace=avg_lp,
        ep1_race_count=len(ep1),
        lp_race_count=len(lp),
        ep1_trend=calculate_pace_trend(ep1),
        lp_trend=calculate_pace_trend(lp),
        is_confirmed_speed=avg_ep1 is not None and avg_ep1 >= EP1_CONFIRMED_SPEED,
        is_confirmed_closer=(
            (avg_ep1 is not None and avg_ep1 < EP1_MODERATE)
            or (avg_lp is not None and avg_lp >= LP_STRONG)
        ),
        has_closing_kick=kick is not None and kick >= CLOSING_KICK_MIN,
        closing_kick_differential=kick,
    )


# ──────────────────────────────────────────────
# Running style
# ──────────────────────────────────────────────

def classify_race_style(pp: PastPerformance) -> RaceStyleEvidence:
    """Running style shown in one race, from the first-call position.

    A race with no call positions at all is "U".
    """
    line = pp.running_line
    first_call = line.quarter_mile
    if first_call is None:
        first_call = line.half_mile
    if first_call is None:
        first_call = line.start
    field_size = pp.field_size or DEFAULT_FIELD_SIZE
    if first_call is None:
        return RaceStyleEvidence(
            date=pp.date,
            track=pp.track,
            first_call_position=None,
            field_size=field_size,
            finish_position=pp.finish_position,
            style="U",
            was_on_lead=False,
        )
    relative = first_call / field_size

    if first_call <= 2 or relative <= 0.2:
        style = "E"
    elif first_call <= 4 or relative <= 0.4:
        stretch = line.stretch if line.stretch is not None else pp.finish_position
        style = "S" if abs(first_call - stretch) <= 1 else "P"
    elif relative >= 0.6:
        style = "C"
    elif pp.finish_position < first_call - 2:
        style = "C"
    elif pp.finish_position <= first_call + 1:
        style = "S"
    else:
        style = "P"

    return RaceStyleEvidence(
        date=pp.date,
        track=pp.track,
        first_call_position=first_call,
        field_size=field_size,
        finish_position=pp.finish_position,
        style=style,
        was_on_lead=first_call == 1,
    )


def parse_running_style(horse: HorseEntry) -> RunningStyleProfile:
    """Dominant style over the last 3 starts, refined by EP1/LP figures."""
    pps = horse.past_performances[:10]
    if not pps:
        return RunningStyleProfile(description="First-time starter or no past performances available")

    figures = analyze_pace_figures(horse)
    evidence = tuple(classify_race_style(pp) for pp in pps)
    recent = evidence[:STYLE_RACES]

    counts = {code: 0 for code in "EPCSU"}
    for ev in recent:
        counts[ev.style] += 1

    dominant = "U"
    max_count = 0
    for code in "EPCS":
        if counts[code] > max_count:
            max_count = counts[code]
            dominant = code
    if max_count == 0:
        dominant = evidence[0].style

    if figures.avg_early_pace is not None:
        if figures.is_confirmed_speed and dominant != "E":
            if dominant in ("P", "U"):
                dominant = "E"
        elif figures.is_confirmed_closer and dominant != "C":
            if figures.has_closing_kick and dominant != "E":
                dominant = "C"

    confidence = min(100, round_half_up(len(recent) / 3 * 50 + max_count / len(recent) * 50))
    confirmed = (dominant == "E" and figures.is_confirmed_speed) or (
        dominant == "C" and (figures.is_confirmed_closer or figures.has_closing_kick)
    )
    if confirmed:
        confidence = min(100, confidence + 15)

    times_on_lead = sum(1 for ev in evidence if ev.was_on_lead)
    description = f"{STYLE_NAMES[dominant]} - led early in {times_on_lead} of {len(evidence)} starts"
    if figures.avg_early_pace is not None:
        description += f" | Avg EP1: {figures.avg_early_pace}"
    if figures.avg_late_pace is not None:
        description += f" | Avg LP: {figures.avg_late_pace}"

    return RunningStyleProfile(
        style=dominant,
        style_name=STYLE_NAMES[dominant],
        confidence=confidence,
        evidence=evidence,
        times_on_lead=times_on_lead,
        total_races=len(evidence),
        pace_figures=figures,
        description=description,
    )


# ──────────────────────────────────────────────
# Field pace
# ──────────────────────────────────────────────

def get_field_pace_pressure(horses: list[HorseEntry]) -> FieldPacePressure:
    """EP1-based pace pressure among non-scratched horses."""
    active = [h for h in horses if not h.is_scratched]
    with_ep1: list[tuple[int, float]] = []
    for horse in active:
        avg = get_average_early_pace(horse)
        if avg is not None:
            with_ep1.append((horse.program_number, avg))

    confidence = round_half_up(len(with_ep1) / len(active) * 100) if active else 0
    if confidence < MIN_PRESSURE_CONFIDENCE:
        return FieldPacePressure(
            pressure="moderate",
            valid_horses_count=len(with_ep1),
            data_confidence=confidence,
            description="Insufficient EP1 data for reliable pace projection",
        )

    avg_field = round1(sum(avg for _, avg in with_ep1) / len(with_ep1))
    speed = tuple(num for num, avg in with_ep1 if avg >= EP1_CONFIRMED_SPEED)
    high = len(speed)

    if avg_field >= PRESSURE_DUEL_AVG or high >= 4:
        pressure = "duel"
        description = f"Speed duel likely: {high} horses with high EP1 (85+). Field avg EP1: {avg_field}"
    elif avg_field >= PRESSURE_CONTESTED_AVG or high >= 3:
        pressure = "contested"
        description = f"Contested pace expected: {high} speed horses. Field avg EP1: {avg_field}"
    elif avg_field >= PRESSURE_MODERATE_AVG or high >= 2:
        pressure = "moderate"
        description = f"Moderate pace projected. Field avg EP1: {avg_field}"
    elif high == 1:
        pressure = "soft"
        description = f"Soft pace - lone speed. Field avg EP1: {avg_field}"
    else:
        pressure = "soft"
        description = f"Very soft pace - no confirmed speed. Field avg EP1: {avg_field}"

    return FieldPacePressure(
        pressure=pressure,
        avg_field_ep1=avg_field,
        high_ep1_count=high,
        valid_horses_count=len(with_ep1),
        confirmed_speed_horses=speed,
        data_confidence=confidence,
        description=description,
    )


def calculate_ppi(early_count: int, field_size: int) -> int:
    """Pace pressure index: share of the field that is early speed."""
    if field_size <= 0:
        return 0
    return round_half_up(early_count / field_size * 100)


def get_pace_scenario_from_ppi(ppi: int) -> str:
    if ppi < 20:
        return "soft"
    if ppi <= 35:
        return "moderate"
    if ppi <= 50:
        return "contested"
    return "speed_duel"


def _describe_scenario(scenario: str, early: int, pressers: int, field_size: int) -> str:
    if scenario == "soft":
        if early == 0:
            return "No confirmed early speed - expect a slow pace"
        return f"Only {early} speed horse(s) in {field_size}-horse field. Lone speed could steal it"
    if scenario == "moderate":
        return f"{early} speed, {pressers} pressers - balanced pace expected"
    if scenario == "contested":
        return f"{early} speed horses likely to pressure each other. Good setup for closers"
    return f"{early} speed horses will battle early. Strong closer advantage"


def analyze_pace_scenario(horses: list[HorseEntry]) -> FieldPaceAnalysis:
    """Style breakdown, PPI and scenario for the non-scratched field."""
    active = [h for h in horses if not h.is_scratched]
    if not active:
        return FieldPaceAnalysis(description="No active horses in field")

    by_style: dict[str, list[int]] = {code: [] for code in "EPCSU"}
    for horse in active:
        by_style[parse_running_style(horse).style].append(horse.program_number)

    field_size = len(active)
    ppi = calculate_ppi(len(by_style["E"]), field_size)
    scenario = get_pace_scenario_from_ppi(ppi)
    description = _describe_scenario(scenario, len(by_style["E"]), len(by_style["P"]), field_size)

    pressure = get_field_pace_pressure(active)
    if pressure.data_confidence >= PRESSURE_OVERRIDE_CONFIDENCE:
        scenario = PRESSURE_TO_SCENARIO[pressure.pressure]
        description = f"{description} | EP1 Analysis: {pressure.description}"

    logger.debug("Pace scenario %s (PPI %d, %d runners)", scenario, ppi, field_size)

    return FieldPaceAnalysis(
        scenario=scenario,
        label=SCENARIO_LABELS[scenario],
        ppi=ppi,
        field_size=field_size,
        early_speed=tuple(by_style["E"]),
        pressers=tuple(by_style["P"]),
        closers=tuple(by_style["C"]),
        sustained=tuple(by_style["S"]),
        unknown=tuple(by_style["U"]),
        pressure=pressure,
        description=description,
    )


# ──────────────────────────────────────────────
# Per-horse components
# ──────────────────────────────────────────────

def calculate_tactical_advantage(style: str, scenario: str) -> TacticalAdvantage:
    row = TACTICAL_MATRIX.get(scenario, TACTICAL_MATRIX["unknown"])
    points = max(0, row.get(style, row["U"]))
    return TacticalAdvantage(points=points, level=banded(points, TACTICAL_LEVELS, "terrible"))


def calculate_pace_figure_adjustment(
    figures: PaceFigureAnalysis,
    pressure: FieldPacePressure,
    style: str,
) -> tuple[int, str]:
    """EP1/LP bonus or penalty (-5..+5) for how the figures fit the pace."""
    ep1 = figures.avg_early_pace
    lp = figures.avg_late_pace
    if ep1 is None and lp is None:
        return 0, "No pace figures available"

    points = 0
    reasons: list[str] = []

    if style == "E" or figures.is_confirmed_speed:
        if pressure.pressure == "soft" and ep1 is not None:
            if ep1 >= EP1_CONFIRMED_SPEED:
                points += 5
                reasons.append(f"Strong EP1 ({ep1}) in soft pace")
            elif ep1 >= EP1_MODERATE:
                points += 3
                reasons.append(f"Good EP1 ({ep1}) in soft pace")
        elif pressure.pressure == "duel" and ep1 is not None and pressure.avg_field_ep1 is not None:
            if ep1 < pressure.avg_field_ep1 - 3:
                points -= 3
                reasons.append(f"EP1 ({ep1}) below field avg in speed duel")

    if style == "C" or figures.is_confirmed_closer:
        if pressure.pressure in ("duel", "contested"):
            if lp is not None and lp >= LP_STRONG:
                points += 5
                reasons.append(f"Strong LP ({lp}) in {pressure.pressure} pace")
            elif lp is not None and lp >= LP_GOOD:
                points += 3
                reasons.append(f"Good LP ({lp}) in {pressure.pressure} pace")
            if figures.has_closing_kick:
                points += 1
                reasons.append(f"Closing kick (+{figures.closing_kick_differential} LP over EP1)")
        elif pressure.pressure == "soft" and lp is not None and lp < LP_GOOD:
            points -= 2
            reasons.append(f"Moderate LP ({lp}) in soft pace")

    if style == "C" and figures.lp_trend == "improving":
        points += 1
        reasons.append("LP trending up")

    if style == "C" and pressure.pressure == "soft" and lp is not None and lp < LP_MODERATE:
        points -= 2
        reasons.append("Pace mismatch: slow closer in speed-favoring setup")

    points = int(clamp(points, -FIGURE_ADJUSTMENT_LIMIT, FIGURE_ADJUSTMENT_LIMIT))
    return points, " | ".join(reasons) if reasons else "No pace figure adjustments"


def calculate_track_bias_adjustment(style: str, track_code: str, surface: str) -> tuple[int, str]:
    """Bonus or penalty from the track's pace-advantage rating (1-10)."""
    bias = tracks.get_speed_bias(track_code, surface)
    if bias is None:
        return 0, ""
    rating = bias.pace_advantage_rating

    points = 0
    if rating >= 8 and style == "E":
        points = 5
    elif rating >= 7 and style == "E":
        points = 2
    elif rating >= 8 and style == "C":
        points = -2
    elif rating <= 3 and style == "C":
        points = 4
    elif rating <= 3 and style == "E":
        points = -2
    if rating >= 7 and style == "P":
        points += 2
    elif rating <= 4 and style == "S":
        points += 2

    if rating >= 9:
        label = "Extreme speed bias"
    elif rating >= 7:
        label = "Strong speed bias"
    elif rating <= 3:
        label = "Closer-friendly track"
    elif rating <= 4:
        label = "Fair-to-closing track"
    else:
        label = ""
    return points, label


# ──────────────────────────────────────────────
# Main entry point
# ──────────────────────────────────────────────

def calculate_pace_score(
    horse: HorseEntry,
    race: RaceHeader,
    field_analysis: FieldPaceAnalysis,
) -> PaceScoreResult:
    """Pace fit of one horse against the shared field analysis."""
    profile = parse_running_style(horse)
    tactical = calculate_tactical_advantage(profile.style, field_analysis.scenario)
    bias, bias_label = calculate_track_bias_adjustment(profile.style, race.track_code, race.surface)
    fig_points, fig_reason = calculate_pace_figure_adjustment(
        profile.pace_figures, field_analysis.pressure, profile.style,
    )

    total = int(clamp(PACE_BASE_SCORE + tactical.points + bias + fig_points, MIN_PACE_SCORE, MAX_PACE_SCORE))

    parts = [f"{profile.style_name} ({profile.times_on_lead}/{profile.total_races} led early)"]
    figs = profile.pace_figures
    fig_bits = []
    if figs.avg_early_pace is not None:
        fig_bits.append(f"EP1: {figs.avg_early_pace}")
    if figs.avg_late_pace is not None:
        fig_bits.append(f"LP: {figs.avg_late_pace}")
    if figs.has_closing_kick:
        fig_bits.append(f"kick: +{figs.closing_kick_differential}")
    if fig_bits:
        parts.append(", ".join(fig_bits))
    parts.append(field_analysis.label)
    parts.append(f"{tactical.level.capitalize()} fit: +{tactical.points}pts")
    if bias_label:
        parts.append(bias_label)
    if fig_points:
        parts.append(fig_reason)

    return PaceScoreResult(
        total=total,
        running_style=profile.style,
        pace_fit=tactical.level,
        tactical_points=tactical.points,
        track_bias=bias,
        figure_adjustment=fig_points,
        scenario=field_analysis.scenario,
        reasoning=" | ".join(parts),
    )
