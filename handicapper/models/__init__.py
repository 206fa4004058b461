"""Entry records for the scoring engine."""

from handicapper.models.entry import (
    Breeding,
    Equipment,
    HorseEntry,
    Medication,
    PastPerformance,
    RaceHeader,
    RunningLine,
    SpeedFigures,
    TrainerCategoryStat,
    TrainerCategoryStats,
    Workout,
)

__all__ = [
    "Breeding",
    "Equipment",
    "HorseEntry",
    "Medication",
    "PastPerformance",
    "RaceHeader",
    "RunningLine",
    "SpeedFigures",
    "TrainerCategoryStat",
    "TrainerCategoryStats",
    "Workout",
]
