"""Tests for post position draw scoring."""

import pytest

from handicapper.scoring.post_position import (
    calculate_field_size_adjustment,
    calculate_post_position_score,
    get_optimal_post_positions,
    get_post_tier,
    get_race_type,
)

from factories import make_horse, make_race


def _score(post, field_size=8, **race_overrides):
    race = make_race(field_size=field_size, **race_overrides)
    return calculate_post_position_score(make_horse(post_position=post), race)


class TestTiers:
    def test_race_type(self):
        assert get_race_type(make_race(distance_furlongs=7.0)) == "sprint"
        assert get_race_type(make_race(distance_furlongs=7.5)) == "route"

    @pytest.mark.parametrize("post,race_type,tier", [
        (4, "sprint", "golden"),
        (3, "sprint", "good"),
        (1, "sprint", "poor"),
        (9, "sprint", "terrible"),
        (2, "route", "good"),
        (1, "route", "neutral"),
        (9, "route", "poor"),
        (10, "route", "terrible"),
    ])
    def test_post_tier(self, post, race_type, tier):
        assert get_post_tier(post, race_type) == tier

    def test_field_size_adjustment(self):
        assert calculate_field_size_adjustment(5, 12, "sprint") == 0.0
        assert calculate_field_size_adjustment(10, 12, "sprint") == pytest.approx(-2.8)
        assert calculate_field_size_adjustment(12, 12, "sprint") == -3.0
        assert calculate_field_size_adjustment(7, 6, "sprint") == 0.0


class TestPostScore:
    def test_golden_post(self):
        result = _score(4)
        assert result.total == 11
        assert result.is_golden_post
        assert result.reasoning == "PP4 Golden post sprint"

    def test_wide_in_big_field_hits_floor(self):
        assert _score(10, field_size=12).total == 2

    def test_route_wide_post(self):
        assert _score(8, field_size=10, distance_furlongs=8.5).total == 3

    def test_slightly_wide(self):
        assert _score(6).total == 9

    def test_small_field_no_penalty(self):
        assert _score(7, field_size=6).total == 7

    def test_turf_rail(self):
        result = _score(1, distance_furlongs=8.5, surface="turf")
        assert result.total == 8
        assert result.turf_adjustment == 1
        assert "turf rail (+1)" in result.reasoning

    def test_turf_outside_route(self):
        assert _score(7, field_size=7, distance_furlongs=8.5, surface="turf").total == 6

    def test_unknown_post(self):
        result = _score(0)
        assert result.total == 7
        assert result.reasoning == "Post unknown"

    def test_field_size_override(self):
        race = make_race(field_size=12, distance_furlongs=8.5)
        result = calculate_post_position_score(make_horse(post_position=8), race, field_size=6)
        assert result.total == 4

    def test_bounds(self):
        for post in range(1, 15):
            assert 2 <= _score(post, field_size=14).total <= 12


class TestOptimalPosts:
    def test_dirt_sprint(self):
        assert get_optimal_post_positions(make_race()) == ([4, 5], "Posts 4-5 in sprints")

    def test_turf(self):
        posts, description = get_optimal_post_positions(make_race(surface="turf"))
        assert posts == [1, 2, 3, 4, 5]
        assert description.endswith("inside draws on turf")
