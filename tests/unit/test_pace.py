"""Tests for running styles, field pace scenario and pace fit."""

import pytest

from handicapper.scoring.pace import (
    FieldPacePressure,
    PaceFigureAnalysis,
    analyze_pace_figures,
    analyze_pace_scenario,
    calculate_pace_figure_adjustment,
    calculate_pace_score,
    calculate_pace_trend,
    calculate_ppi,
    calculate_tactical_advantage,
    calculate_track_bias_adjustment,
    classify_race_style,
    get_field_pace_pressure,
    get_pace_scenario_from_ppi,
    parse_running_style,
)

from factories import make_horse, make_pp, make_race

LEAD_LINE = {"quarter_mile": 1, "half_mile": 1, "stretch": 1, "finish": 1}


def _speed_horse(program_number=1, **pp_overrides):
    pps = [make_pp(running_line=LEAD_LINE, finish_position=1, **pp_overrides) for _ in range(3)]
    return make_horse(program_number=program_number, post_position=program_number, past_performances=pps)


def _closer(program_number, **pp_overrides):
    # default running line is 5th of 8 at the first call
    pps = [make_pp(**pp_overrides) for _ in range(3)]
    return make_horse(program_number=program_number, post_position=program_number, past_performances=pps)


class TestRaceStyle:
    def test_on_the_lead(self):
        evidence = classify_race_style(make_pp(running_line=LEAD_LINE))
        assert evidence.style == "E"
        assert evidence.was_on_lead

    def test_back_early(self):
        pp = make_pp(running_line={"quarter_mile": 7, "finish": 2}, finish_position=2)
        assert classify_race_style(pp).style == "C"

    def test_sustained(self):
        pp = make_pp(running_line={"quarter_mile": 3, "stretch": 3, "finish": 3}, finish_position=3)
        assert classify_race_style(pp).style == "S"

    def test_presser(self):
        pp = make_pp(running_line={"quarter_mile": 3, "stretch": 6, "finish": 6}, finish_position=6)
        assert classify_race_style(pp).style == "P"

    @pytest.mark.parametrize("field_size", [0, 8])
    def test_no_call_positions(self, field_size):
        evidence = classify_race_style(make_pp(running_line={}, field_size=field_size))
        assert evidence.style == "U"
        assert evidence.first_call_position is None
        assert not evidence.was_on_lead


class TestRunningStyle:
    def test_no_history(self):
        profile = parse_running_style(make_horse())
        assert profile.style == "U"
        assert profile.confidence == 0

    def test_front_runner(self):
        profile = parse_running_style(_speed_horse())
        assert profile.style == "E"
        assert profile.confidence == 100
        assert profile.times_on_lead == 3

    def test_closer(self):
        assert parse_running_style(_closer(2)).style == "C"

    def test_no_call_data_stays_unknown(self):
        pps = [make_pp(running_line={}, field_size=size) for size in (0, 8, 10)]
        profile = parse_running_style(make_horse(past_performances=pps))
        assert profile.style == "U"
        assert profile.times_on_lead == 0

    def test_high_ep1_promotes_presser_to_speed(self):
        line = {"quarter_mile": 3, "stretch": 6, "finish": 6}
        pps = [make_pp(running_line=line, finish_position=6, early_pace1=90) for _ in range(3)]
        profile = parse_running_style(make_horse(past_performances=pps))
        assert profile.style == "E"
        assert profile.pace_figures.is_confirmed_speed


class TestPaceFigures:
    def test_averages_need_two_races(self):
        horse = make_horse(past_performances=[make_pp(early_pace1=90, late_pace=80)])
        figures = analyze_pace_figures(horse)
        assert figures.avg_early_pace is None
        assert figures.ep1_race_count == 1

    def test_closing_kick(self):
        horse = make_horse(past_performances=[make_pp(early_pace1=70, late_pace=92) for _ in range(2)])
        figures = analyze_pace_figures(horse)
        assert figures.avg_early_pace == 70.0
        assert figures.avg_late_pace == 92.0
        assert figures.closing_kick_differential == 22.0
        assert figures.has_closing_kick
        assert figures.is_confirmed_closer

    def test_zero_figures_ignored(self):
        horse = make_horse(past_performances=[make_pp(early_pace1=0), make_pp(early_pace1=0)])
        assert analyze_pace_figures(horse).ep1_race_count == 0

    def test_trend(self):
        assert calculate_pace_trend([90, 80, 80]) == "improving"
        assert calculate_pace_trend([70, 80, 80]) == "declining"
        assert calculate_pace_trend([80, 81]) == "stable"
        assert calculate_pace_trend([80]) == "unknown"


class TestScenario:
    def test_ppi(self):
        assert calculate_ppi(3, 8) == 38
        assert calculate_ppi(0, 0) == 0

    @pytest.mark.parametrize("ppi,scenario", [
        (19, "soft"), (20, "moderate"), (35, "moderate"), (36, "contested"), (50, "contested"), (51, "speed_duel"),
    ])
    def test_scenario_bands(self, ppi, scenario):
        assert get_pace_scenario_from_ppi(ppi) == scenario

    def test_lone_speed(self):
        horses = [_speed_horse(1)] + [_closer(n) for n in range(2, 9)]
        analysis = analyze_pace_scenario(horses)
        assert analysis.scenario == "soft"
        assert analysis.ppi == 13
        assert analysis.early_speed == (1,)
        assert analysis.field_size == 8

    def test_scratched_excluded(self):
        horses = [_speed_horse(1), _speed_horse(2).model_copy(update={"is_scratched": True}), _closer(3)]
        analysis = analyze_pace_scenario(horses)
        assert analysis.field_size == 2
        assert analysis.early_speed == (1,)

    def test_empty_field(self):
        analysis = analyze_pace_scenario([])
        assert analysis.scenario == "unknown"
        assert analysis.field_size == 0

    def test_ep1_pressure_overrides_ppi(self):
        horses = [_closer(n, early_pace1=92) for n in range(1, 5)]
        analysis = analyze_pace_scenario(horses)
        assert analysis.pressure.pressure == "duel"
        assert analysis.scenario == "speed_duel"


class TestPressure:
    def test_insufficient_data(self):
        pressure = get_field_pace_pressure([_closer(1), _closer(2)])
        assert pressure.pressure == "moderate"
        assert pressure.data_confidence == 0

    def test_duel(self):
        pressure = get_field_pace_pressure([_closer(n, early_pace1=90) for n in range(1, 5)])
        assert pressure.pressure == "duel"
        assert pressure.high_ep1_count == 4
        assert pressure.confirmed_speed_horses == (1, 2, 3, 4)
        assert pressure.data_confidence == 100

    def test_very_soft(self):
        pressure = get_field_pace_pressure([_closer(n, early_pace1=70) for n in range(1, 3)])
        assert pressure.pressure == "soft"
        assert pressure.avg_field_ep1 == 70.0


class TestComponents:
    def test_tactical_matrix(self):
        assert calculate_tactical_advantage("E", "soft").points == 25
        assert calculate_tactical_advantage("E", "soft").level == "excellent"
        assert calculate_tactical_advantage("E", "speed_duel").level == "terrible"
        assert calculate_tactical_advantage("P", "contested").points == 25

    def test_track_bias(self):
        assert calculate_track_bias_adjustment("E", "PEN", "dirt") == (5, "Extreme speed bias")
        assert calculate_track_bias_adjustment("P", "GP", "dirt") == (2, "Strong speed bias")
        assert calculate_track_bias_adjustment("C", "HST", "dirt")[0] == -2
        assert calculate_track_bias_adjustment("E", "CD", "dirt") == (0, "")
        assert calculate_track_bias_adjustment("E", "ZZZ", "dirt") == (0, "")

    def test_no_figures(self):
        assert calculate_pace_figure_adjustment(PaceFigureAnalysis(), FieldPacePressure(), "E") == (
            0, "No pace figures available",
        )

    def test_speed_in_soft_pace(self):
        figures = PaceFigureAnalysis(avg_early_pace=88.0, is_confirmed_speed=True)
        points, reason = calculate_pace_figure_adjustment(figures, FieldPacePressure(pressure="soft"), "E")
        assert points == 5
        assert reason == "Strong EP1 (88.0) in soft pace"

    def test_closer_adjustment_capped(self):
        figures = PaceFigureAnalysis(
            avg_early_pace=70.0,
            avg_late_pace=92.0,
            is_confirmed_closer=True,
            has_closing_kick=True,
            closing_kick_differential=22.0,
        )
        points, _ = calculate_pace_figure_adjustment(figures, FieldPacePressure(pressure="duel"), "C")
        assert points == 5


class TestPaceScore:
    def test_lone_speed_fit(self):
        horses = [_speed_horse(1)] + [_closer(n) for n in range(2, 9)]
        analysis = analyze_pace_scenario(horses)
        result = calculate_pace_score(horses[0], make_race(), analysis)
        assert result.total == 35
        assert result.running_style == "E"
        assert result.pace_fit == "excellent"
        assert "Soft (Lone Speed)" in result.reasoning
        assert "Excellent fit: +25pts" in result.reasoning

    def test_bounds(self):
        horses = [_speed_horse(n) for n in range(1, 9)]
        analysis = analyze_pace_scenario(horses)
        for horse in horses:
            assert 5 <= calculate_pace_score(horse, make_race(), analysis).total <= 45
