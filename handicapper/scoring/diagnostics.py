"""Post-hoc scoring diagnostics.

Explains where a horse's score came from (weak and strong categories),
how far the model disagrees with the market, and whether the category
weights look sensible against common handicapping practice. Nothing here
feeds back into scoring.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from handicapper.scoring import CATEGORY_KEYS, MAX_BASE_SCORE, SCORE_LIMITS, ScoredHorse
from handicapper.scoring.bands import pct, round1
from handicapper.scoring.odds import parse_odds
from handicapper.scoring.overlay import score_to_win_probability

logger = logging.getLogger(__name__)

WEAK_CATEGORY_PERCENT = 50
STRONG_CATEGORY_PERCENT = 75
VERY_LOW_PERCENT = 30
FAVORITE_MARKET_PROBABILITY = 25.0
MISSED_BONUS_CRITICAL = 30

# (min absolute disagreement in probability points, level); strictly greater than
DISAGREEMENT_BANDS = [(25, "extreme"), (15, "high"), (8, "medium")]

# Typical share of a handicapping rating, % of base score
INDUSTRY_STANDARD_WEIGHTS = {
    "speed_class": (25, 35),
    "pace": (10, 15),
    "form": (20, 25),
    "post_position": (3, 8),
    "connections": (5, 10),
    "equipment": (2, 5),
    "distance_surface": (3, 8),
    "trainer_patterns": (0, 5),
    "track_specialist": (0, 3),
    "odds": (0, 5),
    "workouts": (0, 5),
    "combo_patterns": (0, 5),
}

BONUS_CATEGORIES = ("distance_surface", "trainer_patterns", "track_specialist", "combo_patterns")
# category -> minimum % of max expected from a favourite
FAVORITE_CORE_EXPECTATIONS = {"connections": 60, "speed_class": 50, "form": 50}


@dataclass
class CategoryScoreAnalysis:
    name: str
    score: int
    max: int
    percent: float
    issues: list[str] = field(default_factory=list)


@dataclass
class HorseDiagnostic:
    """Diagnostic view of one scored horse."""

    index: int
    horse_name: str
    program_number: int
    odds: Optional[float]
    market_probability: Optional[float]   # percent, None without odds
    model_probability: float              # percent
    disagreement_percent: float           # model minus market
    disagreement_level: str               # low, medium, high, extreme
    base_score: int
    total_score: int
    rank: int
    category_scores: dict[str, CategoryScoreAnalysis] = field(default_factory=dict)
    weakest_categories: list[str] = field(default_factory=list)
    strongest_categories: list[str] = field(default_factory=list)
    potential_issues: list[str] = field(default_factory=list)
    favorite_flags: list[str] = field(default_factory=list)


@dataclass
class WeightDistributionAnalysis:
    category: str
    current_points: int
    current_percent: float
    industry_low: float
    industry_high: float
    alignment: str                    # under, aligned, over
    recommendation: Optional[str] = None


@dataclass
class FieldDiagnostic:
    horses: list[HorseDiagnostic]
    systematic_issues: list[str]
    weight_analysis: list[WeightDistributionAnalysis]
    total_horses: int
    high_disagreement_count: int
    avg_favorite_rank: Optional[float]
    favorites_in_top3: int


# ──────────────────────────────────────────────
# Probabilities
# ──────────────────────────────────────────────

def odds_to_win_probability(odds: float) -> float:
    """Market-implied win probability (0-1) from odds-to-one."""
    return 1 / (odds + 1)


def get_disagreement_level(diff_percent: float) -> str:
    magnitude = abs(diff_percent)
    for bound, level in DISAGREEMENT_BANDS:
        if magnitude > bound:
            return level
    return "low"


# ──────────────────────────────────────────────
# Per-horse
# ──────────────────────────────────────────────

def identify_category_issues(category: str, score: int, max_points: int, scored: ScoredHorse) -> list[str]:
    horse = scored.horse
    breakdown = scored.score.breakdown
    issues: list[str] = []
    percent = pct(score, max_points)
    if percent < VERY_LOW_PERCENT:
        issues.append(f"Very low score ({percent:.0f}% of max)")

    if category == "connections":
        if horse.trainer_meet_starts is not None and horse.trainer_meet_starts < 3:
            issues.append("Trainer has <3 meet starts")
        if horse.jockey_meet_starts is not None and horse.jockey_meet_starts < 3:
            issues.append("Jockey has <3 meet starts")
    elif category == "speed_class":
        if breakdown.speed_class.best_figure is None:
            issues.append("No speed figures - neutral speed score")
    elif category == "form":
        if not horse.past_performances:
            issues.append("No past performances - first-time starter")
        elif len(horse.past_performances) < 3:
            issues.append("Limited race history (<3 races)")
    elif category == "distance_surface":
        if not horse.turf_starts and not horse.wet_starts:
            issues.append("No turf or wet experience")
    elif category == "track_specialist":
        if (horse.track_starts or 0) < 4:
            issues.append("Fewer than 4 starts at track - no specialist bonus possible")
    elif category == "trainer_patterns":
        if horse.trainer_category_stats is None:
            issues.append("No trainer pattern data")
    elif category == "workouts":
        if not horse.workouts:
            issues.append("No published workouts")
    elif category == "combo_patterns":
        signals = breakdown.combo_patterns.signals
        if not signals.class_drop and not signals.first_time_equipment:
            issues.append("Stable horse (no class drop, no equipment change) - fewer combo opportunities")
    return issues


def identify_favorite_issues(scored: ScoredHorse, market_probability: Optional[float]) -> list[str]:
    """Why a market favourite might be scoring low. Empty for non-favourites."""
    if market_probability is None or market_probability < FAVORITE_MARKET_PROBABILITY:
        return []

    totals = scored.score.breakdown.category_totals()
    flags: list[str] = []

    missed = 0
    for name in BONUS_CATEGORIES:
        if totals[name] == 0:
            missed += SCORE_LIMITS[name]
            flags.append(f"{name}: 0/{SCORE_LIMITS[name]} pts (bonus not triggered)")
    if missed >= MISSED_BONUS_CRITICAL:
        flags.append(f"CRITICAL: missing {missed} bonus points from situational categories")

    for name, expected in FAVORITE_CORE_EXPECTATIONS.items():
        percent = pct(totals[name], SCORE_LIMITS[name])
        if percent < expected:
            flags.append(f"{name}: {percent:.0f}% (expected >{expected}% for favorite)")

    pps = scored.horse.past_performances
    if pps and pps[0].finish_position == 1:
        form_pct = pct(totals["form"], SCORE_LIMITS["form"])
        if form_pct < 70:
            flags.append(f"Won last race but form score only {form_pct:.0f}%")
    return flags


def diagnose_horse(scored: ScoredHorse, odds: Any = None) -> HorseDiagnostic:
    """Diagnose one scored horse. ``odds`` default to the morning line."""
    horse = scored.horse
    score = scored.score
    parsed = parse_odds(odds if odds is not None else horse.morning_line_odds)

    market = odds_to_win_probability(parsed) * 100 if parsed is not None else None
    model = score_to_win_probability(score.total) * 100
    diff = model - market if market is not None else 0.0

    categories: dict[str, CategoryScoreAnalysis] = {}
    weak: list[str] = []
    strong: list[str] = []
    issues: list[str] = []
    for name, total in score.breakdown.category_totals().items():
        max_points = SCORE_LIMITS[name]
        percent = round1(pct(total, max_points))
        cat_issues = identify_category_issues(name, total, max_points, scored)
        categories[name] = CategoryScoreAnalysis(name, total, max_points, percent, cat_issues)
        if percent < WEAK_CATEGORY_PERCENT:
            weak.append(name)
        if percent > STRONG_CATEGORY_PERCENT:
            strong.append(name)
        issues.extend(cat_issues)

    return HorseDiagnostic(
        index=scored.index,
        horse_name=horse.horse_name,
        program_number=horse.program_number,
        odds=parsed,
        market_probability=round1(market) if market is not None else None,
        model_probability=round1(model),
        disagreement_percent=round1(diff),
        disagreement_level=get_disagreement_level(diff),
        base_score=score.base_score,
        total_score=score.total,
        rank=score.rank,
        category_scores=categories,
        weakest_categories=weak,
        strongest_categories=strong,
        potential_issues=issues,
        favorite_flags=identify_favorite_issues(scored, market),
    )


# ──────────────────────────────────────────────
# Weights
# ──────────────────────────────────────────────

def analyze_weight_distribution() -> list[WeightDistributionAnalysis]:
    """Each category's share of the base score against the usual range."""
    analysis: list[WeightDistributionAnalysis] = []
    for name in CATEGORY_KEYS:
        low, high = INDUSTRY_STANDARD_WEIGHTS[name]
        points = SCORE_LIMITS[name]
        share = round1(points / MAX_BASE_SCORE * 100)
        alignment = "aligned"
        recommendation = None
        if share < low:
            alignment = "under"
            recommendation = f"Consider increasing weight (industry: {low}-{high}%)"
        elif share > high:
            alignment = "over"
            recommendation = f"Consider reducing weight (industry: {low}-{high}%)"
        analysis.append(WeightDistributionAnalysis(name, points, share, low, high, alignment, recommendation))
    return analysis


# ──────────────────────────────────────────────
# Field
# ──────────────────────────────────────────────

def diagnose_field(
    scored: list[ScoredHorse],
    get_odds: Optional[Callable[[int, Any], Any]] = None,
) -> FieldDiagnostic:
    """Diagnose every active horse and look for field-wide patterns."""
    diagnostics: list[HorseDiagnostic] = []
    for sh in scored:
        if sh.score.is_scratched:
            continue
        odds = get_odds(sh.index, sh.horse.morning_line_odds) if get_odds else None
        diagnostics.append(diagnose_horse(sh, odds))

    field_size = len(diagnostics)
    issues: list[str] = []

    priced = sorted((d for d in diagnostics if d.odds is not None), key=lambda d: (d.odds, d.index))
    favorites = priced[:3]
    avg_favorite_rank: Optional[float] = None
    favorites_in_top3 = 0
    if favorites:
        avg_favorite_rank = round1(sum(d.rank for d in favorites) / len(favorites))
        favorites_in_top3 = sum(1 for d in favorites if d.rank <= 3)
        if avg_favorite_rank > field_size * 0.6:
            issues.append(
                f"CRITICAL: top {len(favorites)} betting choices averaging rank {avg_favorite_rank:.1f}"
            )

        counts: dict[str, int] = {}
        for d in favorites:
            for flag in d.favorite_flags:
                counts[flag] = counts.get(flag, 0) + 1
        for flag, count in counts.items():
            if count >= 2:
                issues.append(f"Recurring issue ({count}/{len(favorites)} favorites): {flag}")

        longshots = priced[-3:]
        fav_bonus = _avg_bonus(favorites)
        long_bonus = _avg_bonus(longshots)
        if long_bonus > fav_bonus * 1.5:
            issues.append(
                f"Bonus categories favor longshots: avg {long_bonus:.1f} pts vs favorites {fav_bonus:.1f} pts"
            )

    high_disagreement = sum(1 for d in diagnostics if d.disagreement_level in ("high", "extreme"))
    if field_size and high_disagreement > field_size * 0.5:
        issues.append(f"High disagreement with market for {high_disagreement}/{field_size} horses")

    weights = analyze_weight_distribution()
    for w in weights:
        if w.recommendation:
            issues.append(f"Weight issue: {w.category} - {w.recommendation}")

    logger.debug("Diagnosed %d horses, %d systematic issues", field_size, len(issues))

    return FieldDiagnostic(
        horses=diagnostics,
        systematic_issues=issues,
        weight_analysis=weights,
        total_horses=field_size,
        high_disagreement_count=high_disagreement,
        avg_favorite_rank=avg_favorite_rank,
        favorites_in_top3=favorites_in_top3,
    )


def _avg_bonus(group: list[HorseDiagnostic]) -> float:
    if not group:
        return 0.0
    return sum(d.category_scores[name].score for d in group for name in BONUS_CATEGORIES) / len(group)
