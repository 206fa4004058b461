"""Tests for the race scoring orchestrator."""

import pytest

from handicapper.scoring import (
    CATEGORY_KEYS,
    MAX_BASE_SCORE,
    MAX_OVERLAY,
    MAX_SCORE,
    SCORE_LIMITS,
    build_race_context,
    calculate_horse_score,
    calculate_overlay_score,
    calculate_race_confidence,
    calculate_race_scores,
    get_ranked_horses,
    get_score_color,
    get_score_tier,
    get_top_horses,
)

from factories import make_field, make_horse, make_race


class TestLimits:
    def test_category_caps_fit_base(self):
        assert sum(SCORE_LIMITS[k] for k in CATEGORY_KEYS) <= MAX_BASE_SCORE
        assert MAX_SCORE == MAX_BASE_SCORE + MAX_OVERLAY


class TestRaceScores:
    def test_bounds_and_composition(self, field_of_eight, race):
        scored = calculate_race_scores(field_of_eight, race)
        assert [sh.index for sh in scored] == list(range(8))
        for sh in scored:
            s = sh.score
            totals = s.breakdown.category_totals()
            for key in CATEGORY_KEYS:
                assert 0 <= totals[key] <= SCORE_LIMITS[key]
            assert s.base_score == min(MAX_BASE_SCORE, sum(totals.values()))
            assert -MAX_OVERLAY <= s.overlay_score <= MAX_OVERLAY
            assert s.total == max(0, min(MAX_SCORE, s.base_score + s.overlay_score))

    def test_deterministic(self, field_of_eight, race):
        first = calculate_race_scores(field_of_eight, race)
        second = calculate_race_scores(field_of_eight, race)
        assert [sh.score for sh in first] == [sh.score for sh in second]

    def test_dense_ranks_best_first(self, field_of_eight, race):
        scored = calculate_race_scores(field_of_eight, race)
        ranked = get_ranked_horses(scored)
        assert [sh.rank for sh in ranked] == list(range(1, 9))
        totals = [sh.score.total for sh in ranked]
        assert totals == sorted(totals, reverse=True)

    def test_ties_break_on_input_order(self, race):
        horses = [
            make_horse(program_number=1, post_position=4),
            make_horse(program_number=2, post_position=5),
        ]
        scored = calculate_race_scores(horses, race)
        assert scored[0].score.total == scored[1].score.total
        assert [sh.rank for sh in scored] == [1, 2]

    def test_scratched_horse(self, field_of_eight, race):
        scored = calculate_race_scores(field_of_eight, race, is_scratched=lambda i: i == 2)
        out = scored[2].score
        assert out.is_scratched
        assert out.total == 0
        assert out.rank == 0
        assert out.breakdown.connections.total == 0
        assert out.breakdown.category_totals() == {key: 0 for key in CATEGORY_KEYS}

        ranked = get_ranked_horses(scored)
        assert len(ranked) == 7
        assert [sh.rank for sh in ranked] == list(range(1, 8))
        assert 0 <= calculate_race_confidence(scored) <= 100

    def test_entry_scratch_flag(self, field_of_eight, race):
        horses = list(field_of_eight)
        horses[3] = horses[3].model_copy(update={"is_scratched": True})
        scored = calculate_race_scores(horses, race)
        assert scored[3].score.is_scratched
        assert scored[3].rank == 0

    def test_scratch_does_not_change_connections_input(self, field_of_eight, race):
        context = build_race_context(field_of_eight, race, is_scratched=lambda i: i == 0)
        assert context.field_size == 7
        assert 0 not in context.active_indexes
        assert context.pace.field_size == 7
        assert context.connections.trainers["TRAINER 0"].starts == 9

    def test_empty_field(self, race):
        assert calculate_race_scores([], race) == []
        assert calculate_race_confidence([]) == 0


class TestOdds:
    def test_live_odds_override(self, field_of_eight, race):
        scored = calculate_race_scores(field_of_eight, race, live_odds={1: "1-5"})
        odds = scored[0].score.breakdown.odds
        assert odds.source == "live"
        assert odds.odds_value == pytest.approx(0.2)
        assert scored[1].score.breakdown.odds.source == "morning_line"

    def test_morning_line_without_lookup(self, field_of_eight, race):
        scored = calculate_race_scores(field_of_eight, race)
        odds = scored[0].score.breakdown.odds
        assert odds.source == "morning_line"
        assert odds.odds_value == 2.0

    def test_lookup_receives_index_and_morning_line(self, field_of_eight, race):
        seen = []

        def get_odds(index, morning_line):
            seen.append((index, morning_line))
            return None

        scored = calculate_race_scores(field_of_eight[:2], race, get_odds=get_odds)
        assert seen == [(0, "2-1"), (1, "3-1")]
        # unusable live odds fall back to the morning line
        assert scored[0].score.breakdown.odds.source == "morning_line"

    def test_unparseable_live_odds_keep_lookup_price(self, field_of_eight, race):
        scored = calculate_race_scores(
            field_of_eight[:2], race, get_odds=lambda i, ml: "9-1", live_odds={1: "SCR", 2: "5-2"},
        )
        first = scored[0].score.breakdown.odds
        assert first.source == "live"
        assert first.odds_value == 9.0
        assert scored[1].score.breakdown.odds.odds_value == 2.5


class TestOverlayScore:
    def test_no_odds(self):
        overlay = calculate_overlay_score(200, None)
        assert overlay.points == 0
        assert overlay.reasoning == "No odds - no overlay adjustment"

    def test_strong_horse_underlay_waived(self):
        overlay = calculate_overlay_score(180, 0.2)
        assert overlay.points == 0
        assert overlay.penalty_waived
        assert overlay.value_class == "underlay"

    def test_weak_horse_underlay_penalized(self):
        assert calculate_overlay_score(120, 0.2).points == -25

    def test_longshot_overlay_bonus(self):
        overlay = calculate_overlay_score(100, 99.0)
        assert overlay.points == 30
        assert overlay.value_class == "massive_overlay"


class TestHorseScore:
    def test_without_context(self, race):
        score = calculate_horse_score(make_horse(), race, odds="5-1")
        assert score.rank == 0
        assert 0 <= score.total <= MAX_SCORE
        assert score.breakdown.post_position.total == 4

    def test_scratched(self, race):
        score = calculate_horse_score(make_horse(), race, is_scratched=True)
        assert score.total == 0
        assert score.breakdown.overlay.reasoning == "Scratched"

    def test_condition_override_reaches_scorers(self, race):
        horse = make_horse(wet_starts=4, wet_wins=1, equipment={"mud_caulks": True})
        dry = calculate_horse_score(horse, race)
        wet = calculate_horse_score(horse, race, track_condition="sloppy")
        assert dry.breakdown.distance_surface.wet_score == 0
        assert wet.breakdown.distance_surface.wet_score == 6
        assert wet.breakdown.equipment.total == dry.breakdown.equipment.total + 2


class TestTopAndTiers:
    def test_top_horses(self, field_of_eight, race):
        scored = calculate_race_scores(field_of_eight, race)
        assert [sh.rank for sh in get_top_horses(scored)] == [1, 2, 3]
        assert len(get_top_horses(scored, 5)) == 5

    @pytest.mark.parametrize("base,tier", [
        (300, "Elite"), (258, "Elite"), (257, "Strong"), (210, "Strong"),
        (162, "Contender"), (113, "Fair"), (112, "Weak"), (0, "Weak"),
    ])
    def test_tier(self, base, tier):
        assert get_score_tier(base) == tier

    def test_colors(self):
        assert get_score_color(260) == "#22c55e"
        assert get_score_color(50) == "#ef4444"
        assert get_score_color(300, is_scratched=True) == "#ef4444"

    def test_confidence_single_horse(self, race):
        scored = calculate_race_scores([make_horse()], race)
        assert 0 <= calculate_race_confidence(scored) <= 100
