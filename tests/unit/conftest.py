"""Shared test fixtures for the scoring engine."""

import pytest

from factories import make_field, make_race


@pytest.fixture
def race():
    """A 6f dirt claiming sprint at Churchill Downs."""
    return make_race()


@pytest.fixture
def field_of_eight():
    """Eight varied runners, three starts each."""
    return make_field(8)
