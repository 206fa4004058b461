"""Tests for speed figures, class levels and shipper adjustments."""

import pytest

from handicapper.scoring.speed_class import (
    analyze_class_movement,
    calculate_class_score,
    calculate_shipper_adjustment,
    calculate_speed_class_score,
    calculate_speed_score,
    get_best_recent_figure,
    get_par_figure,
    get_primary_figure,
    get_variant_adjustment,
    has_trip_excuse,
)

from factories import make_horse, make_pp, make_race


class TestClassTables:
    def test_known_pars(self):
        assert get_par_figure("allowance") == 82
        assert get_par_figure("Stakes Graded 1") == 105
        assert get_par_figure("maiden_claiming") == 65

    def test_unknown_class_uses_claiming_par(self):
        assert get_par_figure("mystery") == 75
        assert get_par_figure("") == 75


class TestFigures:
    def test_primary_figure_fallback_order(self):
        assert get_primary_figure(make_pp(speed_figures={"beyer": 80, "equibase": 90})) == 80
        assert get_primary_figure(make_pp(speed_figures={"timeform_us": 88})) == 88
        assert get_primary_figure(make_pp(speed_figures={"equibase": 70})) == 70
        assert get_primary_figure(make_pp(speed_figures={})) is None

    def test_zero_figure_counts(self):
        assert get_primary_figure(make_pp(speed_figures={"beyer": 0})) == 0

    @pytest.mark.parametrize("variant,adjustment", [
        (None, 0), (6, -2), (4, -1), (0, 0), (-4, 1), (-6, 2),
    ])
    def test_variant_adjustment(self, variant, adjustment):
        assert get_variant_adjustment(variant) == adjustment

    def test_best_of_last_three_only(self):
        horse = make_horse(past_performances=[
            make_pp(track="ZZZ", speed_figures={"beyer": 80}),
            make_pp(track="ZZZ", speed_figures={"beyer": 85}),
            make_pp(track="ZZZ", speed_figures={"beyer": 90}),
            make_pp(track="ZZZ", speed_figures={"beyer": 99}),
        ])
        assert get_best_recent_figure(horse) == (90, "ZZZ")

    def test_track_tier_adjusts_figure(self):
        horse = make_horse(past_performances=[
            make_pp(track="SAR", speed_figures={"beyer": 80}),
            make_pp(track="FL", speed_figures={"beyer": 84}),
        ])
        # SAR +5 -> 85, FL -3 -> 81
        assert get_best_recent_figure(horse) == (85, "SAR")

    def test_no_figures(self):
        assert get_best_recent_figure(make_horse()) == (None, "")


class TestSpeedScore:
    @pytest.mark.parametrize("figure,points", [
        (85, 48), (80, 40), (75, 32), (70, 24), (65, 16), (64, 8),
    ])
    def test_claiming_bands(self, figure, points):
        assert calculate_speed_score(figure, "claiming")[0] == points

    def test_allowance_par(self):
        assert calculate_speed_score(95, "allowance")[0] == 48
        assert calculate_speed_score(65, "allowance")[0] == 8

    def test_no_figures_neutral(self):
        assert calculate_speed_score(None, "claiming") == (24, "No speed figures")

    def test_reasoning(self):
        assert calculate_speed_score(85, "claiming")[1] == "Best 85 vs par 75 (+10)"
        assert calculate_speed_score(70, "claiming")[1] == "Best 70 vs par 75 (-5)"


class TestShipper:
    def test_shipping_to_weaker_circuit(self):
        assert calculate_shipper_adjustment("SAR", "FL") == 5

    def test_shipping_to_stronger_circuit(self):
        assert calculate_shipper_adjustment("FL", "SAR") == -6

    def test_same_tier(self):
        assert calculate_shipper_adjustment("CD", "GP") == 0

    def test_missing_track(self):
        assert calculate_shipper_adjustment("", "CD") == 0


class TestClassScore:
    def test_first_time_starter(self):
        points, reason, movement, levels = calculate_class_score(make_horse(), make_race())
        assert (points, reason, movement, levels) == (16, "First-time starter", "same", 0)

    def test_proven_winner_at_level(self):
        horse = make_horse(past_performances=[make_pp(finish_position=1)])
        assert calculate_class_score(horse, make_race())[0] == 32

    def test_maiden_winner_capped(self):
        horse = make_horse(past_performances=[make_pp(classification="maiden", finish_position=1)])
        assert calculate_class_score(horse, make_race(classification="maiden"))[0] == 24

    def test_competitive_at_level(self):
        horse = make_horse(past_performances=[
            make_pp(finish_position=2), make_pp(finish_position=3),
        ])
        assert calculate_class_score(horse, make_race())[0] == 24

    def test_class_drop(self):
        horse = make_horse(past_performances=[make_pp(classification="allowance", finish_position=6)])
        points, reason, movement, levels = calculate_class_score(horse, make_race())
        assert (points, movement, levels) == (28, "drop", 2)
        assert reason == "Class drop (2 levels)"

    def test_class_drop_with_excuse(self):
        horse = make_horse(past_performances=[
            make_pp(classification="allowance", finish_position=6, trip_comment="Wide throughout"),
        ])
        assert calculate_class_score(horse, make_race())[0] == 29

    def test_rise_competitive(self):
        horse = make_horse(past_performances=[make_pp(finish_position=2)])
        assert calculate_class_score(horse, make_race(classification="allowance"))[0] == 19

    def test_rise_testing(self):
        horse = make_horse(past_performances=[make_pp(finish_position=8, lengths_behind=10.0)])
        assert calculate_class_score(horse, make_race(classification="allowance"))[0] == 16

    def test_placed_seeking_win(self):
        horse = make_horse(past_performances=[make_pp(finish_position=3)])
        assert calculate_class_score(horse, make_race())[0] == 19

    def test_struggling(self):
        horse = make_horse(past_performances=[
            make_pp(finish_position=7), make_pp(finish_position=8), make_pp(finish_position=9),
        ])
        assert calculate_class_score(horse, make_race())[0] == 8

    def test_movement(self):
        horse = make_horse(past_performances=[make_pp(classification="stakes")])
        assert analyze_class_movement(horse, make_race()) == ("drop", 5)

    def test_trip_excuse(self):
        assert has_trip_excuse("Steadied 3/8s")
        assert not has_trip_excuse("Rallied mildly")


class TestSpeedClassScore:
    def test_typical_claimer(self):
        horse = make_horse(past_performances=[make_pp(), make_pp(), make_pp()])
        result = calculate_speed_class_score(horse, make_race())
        # 78 + CD tier 2 (+2) = 80 vs par 75
        assert result.best_figure == 80
        assert result.par_figure == 75
        assert result.speed_score == 40
        assert result.class_score == 16
        assert result.total == 56
        assert result.shipper_adjustment == 0

    def test_shipping_down_helps(self):
        horse = make_horse(past_performances=[make_pp(track="SAR", speed_figures={"beyer": 70})])
        result = calculate_speed_class_score(horse, make_race(track_code="FL"))
        assert result.shipper_adjustment == 5
        assert result.speed_score == 35
        assert result.total == 51
        assert "Shipping down: SAR -> FL (+3)" in result.adjustments

    def test_shipping_up_hurts(self):
        horse = make_horse(past_performances=[make_pp(track="FL", speed_figures={"beyer": 80})])
        result = calculate_speed_class_score(horse, make_race(track_code="SAR"))
        assert result.speed_score == 29
        assert "Shipping up: FL -> SAR (-3)" in result.adjustments

    def test_capped_at_80(self):
        horse = make_horse(past_performances=[make_pp(finish_position=1, speed_figures={"beyer": 100})])
        result = calculate_speed_class_score(horse, make_race())
        assert result.total == 80

    def test_first_time_starter(self):
        result = calculate_speed_class_score(make_horse(), make_race())
        assert result.total == 40
        assert result.reasoning == "No speed figures | First-time starter"
