"""Tests for odds parsing, display and the odds category."""

import pytest

from handicapper.scoring.odds import (
    calculate_odds_points,
    calculate_odds_score,
    format_odds,
    get_odds_tier,
    nearest_common_odds,
    parse_odds,
)

from factories import make_horse


class TestParseOdds:
    @pytest.mark.parametrize("text,expected", [
        ("5-1", 5.0),
        ("5/2", 2.5),
        ("7-2", 3.5),
        (" 9 - 5 ", 1.8),
        ("EVEN", 1.0),
        ("evn", 1.0),
        ("2.5", 2.5),
    ])
    def test_formats(self, text, expected):
        assert parse_odds(text) == pytest.approx(expected)

    def test_number_passthrough(self):
        assert parse_odds(4) == 4.0

    @pytest.mark.parametrize("value", [None, "", "abc", "0-1", "5-0", -3, float("nan"), True])
    def test_unusable(self, value):
        assert parse_odds(value) is None


class TestFormatOdds:
    def test_whole_odds(self):
        assert format_odds(5.0) == "5-1"

    def test_fractional(self):
        assert format_odds(2.5) == "5-2"

    def test_even(self):
        assert format_odds(1.0) == "EVEN"

    def test_missing(self):
        assert format_odds(None) == "N/A"

    def test_parse_format_roundtrip(self):
        assert parse_odds(format_odds(5.0)) == 5.0

    def test_nearest_common(self):
        assert nearest_common_odds(9.4) == "9-1"
        assert nearest_common_odds(2.6) == "5-2"


class TestOddsPoints:
    @pytest.mark.parametrize("odds,points", [
        (1.0, 12),
        (2.0, 12),
        (2.5, 10),
        (4.0, 9),
        (5.0, 7),
        (8.0, 6),
        (15.0, 4),
        (30.0, 2),
    ])
    def test_tiers(self, odds, points):
        assert calculate_odds_points(odds) == points

    def test_missing_is_neutral(self):
        assert calculate_odds_points(None) == 6

    def test_invalid_is_neutral(self):
        assert calculate_odds_points(float("nan")) == 6
        assert calculate_odds_points(-1) == 6

    def test_tier_labels(self):
        assert get_odds_tier(1.5) == "Heavy Favorite"
        assert get_odds_tier(50) == "Extreme Longshot"
        assert get_odds_tier(None) == "Unknown"


class TestOddsScore:
    def test_morning_line(self):
        result = calculate_odds_score(make_horse(morning_line_odds="5-1"))
        assert result.total == 7
        assert result.source == "morning_line"
        assert result.reasoning == "ML 5-1: Contender"

    def test_live_odds_override(self):
        result = calculate_odds_score(make_horse(morning_line_odds="5-1"), live_odds="2-1")
        assert result.total == 12
        assert result.source == "live"
        assert result.odds_value == 2.0

    def test_unparseable_live_falls_back(self):
        result = calculate_odds_score(make_horse(morning_line_odds="5-1"), live_odds="SCR")
        assert result.source == "morning_line"

    def test_no_odds(self):
        result = calculate_odds_score(make_horse(morning_line_odds=""))
        assert result.total == 6
        assert result.source == "none"
        assert "neutral" in result.reasoning
