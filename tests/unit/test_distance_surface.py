"""Tests for distance/surface affinity and the track specialist bonus."""

from handicapper.scoring.distance_surface import (
    calculate_distance_surface_score,
    calculate_track_specialist_score,
)

from factories import make_horse, make_race


class TestDistanceSurface:
    def test_dirt_scores_distance_only(self):
        horse = make_horse(distance_starts=4, distance_wins=1, turf_starts=10, turf_wins=5)
        result = calculate_distance_surface_score(horse, make_race())
        assert result.turf_score == 0
        assert result.wet_score == 0
        assert result.total == 6
        assert result.reasoning == "Distance: 1/4 (25%) - distance specialist"

    def test_turf_and_wet(self):
        horse = make_horse(
            turf_starts=10, turf_wins=3,
            wet_starts=4, wet_wins=1,
            distance_starts=4, distance_wins=1,
        )
        result = calculate_distance_surface_score(horse, make_race(surface="turf", track_condition="yielding"))
        assert (result.turf_score, result.wet_score, result.distance_score) == (8, 6, 6)
        assert result.total == 20

    def test_small_sample_half_credit(self):
        horse = make_horse(turf_starts=2, turf_wins=1)
        result = calculate_distance_surface_score(horse, make_race(surface="turf"))
        assert result.turf_score == 4
        assert result.reasons[0].endswith("(small sample)")

    def test_unproven(self):
        result = calculate_distance_surface_score(make_horse(), make_race(surface="turf"))
        assert result.total == 0
        assert result.reasons == ["No turf starts (unproven)", "No distance starts (unproven)"]

    def test_weak_record(self):
        horse = make_horse(distance_starts=10, distance_wins=0)
        result = calculate_distance_surface_score(horse, make_race())
        assert result.distance_score == 0
        assert result.reasoning.endswith("weak at distance")

    def test_condition_override(self):
        horse = make_horse(wet_starts=4, wet_wins=1)
        assert calculate_distance_surface_score(horse, make_race()).wet_score == 0
        assert calculate_distance_surface_score(horse, make_race(), "sloppy").wet_score == 6


class TestTrackSpecialist:
    def test_limited_starts(self):
        result = calculate_track_specialist_score(make_horse(track_starts=3, track_wins=3), make_race())
        assert result.total == 0
        assert result.reasoning == "Limited starts at track"

    def test_specialist(self):
        result = calculate_track_specialist_score(make_horse(track_starts=10, track_wins=3), make_race())
        assert result.total == 10
        assert result.reasoning == "CD: 3/10 (30%) - track specialist"

    def test_consistent_itm(self):
        horse = make_horse(track_starts=10, track_wins=1, track_places=3, track_shows=1)
        result = calculate_track_specialist_score(horse, make_race())
        assert result.total == 3
        assert result.reasoning.endswith("consistent here")

    def test_no_edge(self):
        horse = make_horse(track_starts=10, track_wins=0, track_places=1)
        result = calculate_track_specialist_score(horse)
        assert result.total == 0
        assert result.reasoning == "track: 0/10 (0%) - no edge here"
