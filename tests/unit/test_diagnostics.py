"""Tests for post-hoc scoring diagnostics."""

import pytest

from handicapper.scoring import CATEGORY_KEYS, calculate_race_scores
from handicapper.scoring.diagnostics import (
    analyze_weight_distribution,
    diagnose_field,
    diagnose_horse,
    get_disagreement_level,
    identify_favorite_issues,
    odds_to_win_probability,
)

from factories import make_field, make_horse, make_race


def _scored_field(size=8, **kwargs):
    return calculate_race_scores(make_field(size), make_race(), **kwargs)


class TestProbabilities:
    def test_market_probability(self):
        assert odds_to_win_probability(3.0) == 0.25
        assert odds_to_win_probability(1.0) == 0.5

    @pytest.mark.parametrize("diff,level", [
        (30, "extreme"), (-20, "high"), (10, "medium"), (8, "low"), (0, "low"),
    ])
    def test_disagreement_level(self, diff, level):
        assert get_disagreement_level(diff) == level


class TestWeights:
    def test_every_category_analyzed(self):
        analysis = analyze_weight_distribution()
        assert [w.category for w in analysis] == list(CATEGORY_KEYS)

    def test_alignment(self):
        by_name = {w.category: w for w in analyze_weight_distribution()}
        assert by_name["speed_class"].alignment == "under"
        assert by_name["speed_class"].current_percent == 24.8
        assert by_name["pace"].alignment == "aligned"
        assert by_name["equipment"].alignment == "over"
        assert by_name["equipment"].recommendation == "Consider reducing weight (industry: 2-5%)"


class TestDiagnoseHorse:
    def test_with_odds(self):
        scored = _scored_field()
        diag = diagnose_horse(scored[0], "3-1")
        assert diag.odds == 3.0
        assert diag.market_probability == 25.0
        assert diag.disagreement_percent == pytest.approx(diag.model_probability - 25.0, abs=0.11)
        assert set(diag.category_scores) == set(CATEGORY_KEYS)
        assert diag.rank == scored[0].rank

    def test_morning_line_default(self):
        scored = _scored_field()
        # program 1 morning line is 2-1
        assert diagnose_horse(scored[0]).odds == 2.0

    def test_without_any_price(self):
        scored = calculate_race_scores([make_horse(morning_line_odds="")], make_race())
        diag = diagnose_horse(scored[0])
        assert diag.market_probability is None
        assert diag.disagreement_level == "low"
        assert diag.favorite_flags == []

    def test_first_time_starter_issue(self):
        scored = calculate_race_scores([make_horse()], make_race())
        diag = diagnose_horse(scored[0])
        assert "No past performances - first-time starter" in diag.potential_issues
        assert "No speed figures - neutral speed score" in diag.potential_issues
        assert "No published workouts" in diag.potential_issues
        assert (
            "Stable horse (no class drop, no equipment change) - fewer combo opportunities"
            in diag.potential_issues
        )

    def test_non_favorite_has_no_flags(self):
        scored = _scored_field()
        assert identify_favorite_issues(scored[0], 10.0) == []
        assert identify_favorite_issues(scored[0], None) == []

    def test_favorite_missing_bonuses(self):
        scored = calculate_race_scores([make_horse(morning_line_odds="1-1")], make_race())
        flags = identify_favorite_issues(scored[0], 50.0)
        assert "distance_surface: 0/20 pts (bonus not triggered)" in flags
        assert "combo_patterns: 0/10 pts (bonus not triggered)" in flags
        assert "CRITICAL: missing 48 bonus points from situational categories" in flags


class TestDiagnoseField:
    def test_scratched_excluded(self):
        scored = _scored_field(is_scratched=lambda i: i == 2)
        diag = diagnose_field(scored)
        assert diag.total_horses == 7
        assert 2 not in [d.index for d in diag.horses]

    def test_favorites(self):
        diag = diagnose_field(_scored_field())
        assert diag.avg_favorite_rank is not None
        assert 0 <= diag.favorites_in_top3 <= 3

    def test_weight_issues_reported(self):
        diag = diagnose_field(_scored_field())
        assert (
            "Weight issue: speed_class - Consider increasing weight (industry: 25-35%)"
            in diag.systematic_issues
        )

    def test_odds_lookup(self):
        seen = []

        def get_odds(index, morning_line):
            seen.append((index, morning_line))
            return "9-2"

        diag = diagnose_field(_scored_field(3), get_odds)
        assert seen == [(0, "2-1"), (1, "3-1"), (2, "4-1")]
        assert all(d.odds == 4.5 for d in diag.horses)
