"""Tests for workout recency, quality, pattern and penalty scoring."""

import pytest

from handicapper.models import Workout
from handicapper.scoring.workouts import (
    calculate_pattern_bonus,
    calculate_quality_bonus,
    calculate_recency_bonus,
    calculate_workout_score,
    days_since_work,
    get_most_recent_workout,
    get_workout_summary,
    has_workout_advantage,
    parse_card_date,
)

from factories import make_horse, make_pp, make_race

RACE_DATE = "2026-10-18"


def _work(days_back=None, **fields):
    """A work ``days_back`` days before the race (via the date), or as given."""
    data = {"track": "CD", "distance_furlongs": 4.0}
    if days_back is not None:
        data["date"] = f"2026-10-{18 - days_back:02d}" if days_back < 18 else f"2026-09-{48 - days_back:02d}"
    data.update(fields)
    return Workout.model_validate(data)


class TestDates:
    @pytest.mark.parametrize("text,expected", [
        ("2026-10-11", (2026, 10, 11)),
        ("20261004", (2026, 10, 4)),
        ("09/30/2026", (2026, 9, 30)),
    ])
    def test_formats(self, text, expected):
        parsed = parse_card_date(text)
        assert (parsed.year, parsed.month, parsed.day) == expected

    @pytest.mark.parametrize("text", ["", "soon", "2026-13-01"])
    def test_unreadable(self, text):
        assert parse_card_date(text) is None

    def test_days_from_race_date(self):
        assert days_since_work(Workout(date="2026-10-11"), RACE_DATE) == 7
        assert days_since_work(Workout(date="20261004"), RACE_DATE) == 14
        assert days_since_work(Workout(date="2026-09-28"), RACE_DATE) == 20

    def test_explicit_days_win(self):
        assert days_since_work(Workout(date="2026-09-01", days_ago=3), RACE_DATE) == 3
        assert days_since_work(Workout(days_ago=5), None) == 5

    def test_unusable_dates(self):
        assert days_since_work(Workout(date="2026-10-20"), RACE_DATE) is None
        assert days_since_work(Workout(date="2026-10-11"), None) is None
        assert days_since_work(Workout(date="2026-10-11"), "") is None

    def test_most_recent(self):
        works = [_work(12), _work(4), Workout(date="")]
        assert get_most_recent_workout(works, RACE_DATE) is works[1]
        assert get_most_recent_workout([Workout(), Workout()], RACE_DATE) is not None
        assert get_most_recent_workout([], RACE_DATE) is None


class TestComponents:
    @pytest.mark.parametrize("days_back,bonus", [(3, 3), (7, 3), (8, 2), (14, 2), (21, 1), (22, 0)])
    def test_recency(self, days_back, bonus):
        assert calculate_recency_bonus([_work(days_back)], RACE_DATE)[0] == bonus

    def test_recency_without_date(self):
        assert calculate_recency_bonus([Workout()], RACE_DATE) == (0, "Work date unknown")
        assert calculate_recency_bonus([], RACE_DATE) == (0, "No workouts")

    def test_bullet_quality(self):
        assert calculate_quality_bonus([_work(10, is_bullet=True)]) == (3, "Bullet work (+3)")

    @pytest.mark.parametrize("rank,bonus", [(1, 2), (2, 2), (3, 1), (5, 1), (10, 0)])
    def test_rank_quality(self, rank, bonus):
        assert calculate_quality_bonus([_work(10, ranking=rank, rank_out_of=20)])[0] == bonus

    def test_no_ranking(self):
        assert calculate_quality_bonus([_work(10)]) == (0, "No ranking data available")

    def test_pattern(self):
        works = [_work(d) for d in (5, 12, 19, 26)]
        assert calculate_pattern_bonus(works, RACE_DATE) == (2, "4 works in 30d (cranking, +2)")
        assert calculate_pattern_bonus(works[:3], RACE_DATE)[0] == 1
        assert calculate_pattern_bonus(works[:2] + [_work(40)], RACE_DATE)[0] == 0


class TestWorkoutScore:
    def test_sharp_regular(self, race):
        horse = make_horse(
            past_performances=[make_pp()],
            workouts=[_work(5, is_bullet=True), _work(12), _work(19), _work(26)],
        )
        result = calculate_workout_score(horse, race)
        assert (result.recency_bonus, result.quality_bonus, result.pattern_bonus) == (3, 3, 2)
        assert result.total == 8
        assert result.multiplier == 1.0
        assert result.works_in_last_30_days == 4
        assert result.days_since_most_recent == 5
        assert get_workout_summary(result) == "Sharp (+8)"
        assert has_workout_advantage(result)

    def test_first_time_starter_without_works(self, race):
        result = calculate_workout_score(make_horse(), race)
        assert result.net_score == -2
        assert result.total == 0
        assert result.reasoning == (
            "No workouts published | FTS without bullet work (-2) | 2.0x (First-time starter)"
        )
        assert get_workout_summary(result) == "Concern (-2)"

    def test_first_time_starter_doubled_and_capped(self, race):
        result = calculate_workout_score(make_horse(workouts=[_work(6, is_bullet=True)]), race)
        assert result.penalty == 0
        assert result.multiplier == 2.0
        assert result.total == 8

    def test_layoff_returnee_multiplier(self, race):
        horse = make_horse(
            past_performances=[make_pp()],
            days_since_last_race=75,
            workouts=[_work(10, ranking=2, rank_out_of=20)],
        )
        result = calculate_workout_score(horse, race)
        assert result.net_score == 6
        assert result.multiplier == 1.5
        assert "1.5x (Layoff returnee)" in result.reasoning

    def test_layoff_without_recent_work(self, race):
        horse = make_horse(
            past_performances=[make_pp()],
            days_since_last_race=90,
            workouts=[_work(30, ranking=18, rank_out_of=20)],
        )
        result = calculate_workout_score(horse, race)
        assert result.penalty == -5
        assert result.net_score == -4
        assert result.total == 0
        assert "Layoff (90d) with no recent work (-4)" in result.reasoning
        assert "Slow last work (90%, -1)" in result.reasoning

    def test_no_race_date_uses_stated_days(self):
        horse = make_horse(past_performances=[make_pp()], workouts=[Workout(days_ago=4)])
        assert calculate_workout_score(horse, make_race(race_date="")).recency_bonus == 3
        assert calculate_workout_score(horse).recency_bonus == 3
