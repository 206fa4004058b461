"""Tests for the data completeness assessor."""

from handicapper.scoring.data_completeness import calculate_data_completeness, get_grade

from factories import make_horse, make_pp, make_race


def _make_complete_horse(**overrides):
    data = {
        "past_performances": [
            make_pp(early_pace1=82, equipment="B", medication="L"),
            make_pp(),
            make_pp(),
        ],
        "trainer_meet_starts": 10,
        "trainer_meet_wins": 2,
        "jockey_stats": "15% Win",
        "track_starts": 0,
        "equipment": {"raw": "B"},
        "breeding": {"sire": "Tapit"},
        "lifetime_earnings": 0,
    }
    data.update(overrides)
    return make_horse(**data)


class TestGrades:
    def test_grade_bands(self):
        assert get_grade(90) == "A"
        assert get_grade(89.9) == "B"
        assert get_grade(60) == "C"
        assert get_grade(40) == "D"
        assert get_grade(39) == "F"


class TestCompleteness:
    def test_complete_entry(self):
        result = calculate_data_completeness(_make_complete_horse())
        assert result.overall_score == 100
        assert result.overall_grade == "A"
        assert result.is_low_confidence is False
        assert result.missing_critical == []
        assert result.confidence_reason == "All critical data present"

    def test_empty_entry(self):
        result = calculate_data_completeness(make_horse())
        assert result.overall_score == 0
        assert result.overall_grade == "F"
        assert result.is_low_confidence is True
        assert result.missing_critical == ["Speed Figures", "Past Performances"]
        assert "Speed Figures and Past Performances" in result.confidence_reason

    def test_zero_values_count_as_present(self):
        horse = _make_complete_horse(lifetime_earnings=0, track_starts=0)
        result = calculate_data_completeness(horse)
        assert result.checks["earnings"] is True
        assert result.checks["records"] is True

    def test_zero_beyer_is_a_figure(self):
        horse = make_horse(past_performances=[make_pp(speed_figures={"beyer": 0})])
        result = calculate_data_completeness(horse)
        assert result.checks["speed_figures"] is True
        assert result.critical_complete == 50
        assert result.is_low_confidence is False

    def test_records_follow_todays_surface(self):
        turf_only = make_horse(turf_starts=3)
        assert calculate_data_completeness(turf_only).checks["records"] is True
        assert calculate_data_completeness(turf_only, make_race(surface="turf")).checks["records"] is True
        assert calculate_data_completeness(turf_only, make_race()).checks["records"] is False

        dirt_only = make_horse(surface_starts=0)
        assert calculate_data_completeness(dirt_only, make_race()).checks["records"] is True
        assert calculate_data_completeness(dirt_only, make_race(surface="turf")).checks["records"] is False

        # track, distance and wet records count on any surface
        assert calculate_data_completeness(make_horse(wet_starts=1), make_race(surface="turf")).checks["records"]

    def test_career_string_counts_as_stats(self):
        horse = make_horse(trainer_stats="220 33-28-30")
        assert calculate_data_completeness(horse).checks["trainer_stats"] is True

    def test_missing_high_labels(self):
        result = calculate_data_completeness(_make_complete_horse(jockey_stats=""))
        assert result.missing_high == ["Jockey Stats"]
        assert result.high_complete == 67

    def test_weighted_overall(self):
        # critical 100, high 67, medium 100, low 100
        result = calculate_data_completeness(_make_complete_horse(jockey_stats=""))
        assert result.overall_score == 90
