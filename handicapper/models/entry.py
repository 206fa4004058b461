"""Race entry records consumed by the scoring engine.

Entries arrive already parsed from a race card. Every model is frozen once
built and ignores keys it does not know about, so a card with extra columns
still loads. Values that may legitimately be zero (earnings, record starts,
speed figures) are ``Optional``: ``None`` means absent, ``0`` means present.
"""

import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class _Record(BaseModel):
    """Base for all entry records: frozen, tolerant of unknown keys.

    NaN and infinite numbers validate to the field default, as do blank or
    non-finite numeric strings on fields that are not text.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _missing_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        field = cls.model_fields[info.field_name]
        if isinstance(value, float) and not math.isfinite(value):
            return field.get_default(call_default_factory=True)
        if isinstance(value, str) and field.annotation is not str:
            text = value.strip()
            if not text:
                return field.get_default(call_default_factory=True)
            try:
                number = float(text)
            except ValueError:
                return value
            if not math.isfinite(number):
                return field.get_default(call_default_factory=True)
        return value


# ──────────────────────────────────────────────
# Past performance detail
# ──────────────────────────────────────────────

class SpeedFigures(_Record):
    """Speed figures earned in one race. Zero is a valid figure."""

    beyer: Optional[int] = None
    timeform_us: Optional[int] = None
    equibase: Optional[int] = None
    track_variant: Optional[int] = None


class RunningLine(_Record):
    """Position (and lengths behind) at each call of a race."""

    start: Optional[int] = None
    quarter_mile: Optional[int] = None
    quarter_mile_lengths: Optional[float] = None
    half_mile: Optional[int] = None
    half_mile_lengths: Optional[float] = None
    three_quarters: Optional[int] = None
    stretch: Optional[int] = None
    stretch_lengths: Optional[float] = None
    finish: Optional[int] = None
    finish_lengths: Optional[float] = None


class PastPerformance(_Record):
    """One prior start. A horse's list of these is always newest first."""

    date: str = ""
    track: str = ""
    race_number: int = 0
    distance_furlongs: float = 0.0
    surface: str = "dirt"             # dirt, turf, synthetic
    track_condition: str = "fast"
    classification: str = "unknown"
    claiming_price: Optional[int] = None
    purse: Optional[int] = None
    field_size: int = 0
    finish_position: int = 0
    lengths_behind: Optional[float] = None
    odds: Optional[float] = None
    favorite_rank: Optional[int] = None
    was_claimed: bool = False
    days_since_last: Optional[int] = None  # gap between this start and the one before it
    jockey: str = ""
    trainer: str = ""
    weight: Optional[float] = None
    equipment: str = ""               # raw snapshot, e.g. "B L" or "blinkers tongue tie"
    medication: str = ""              # raw snapshot, e.g. "L"
    trip_comment: str = ""
    comment: str = ""
    speed_figures: SpeedFigures = Field(default_factory=SpeedFigures)
    running_line: RunningLine = Field(default_factory=RunningLine)
    early_pace1: Optional[int] = None
    late_pace: Optional[int] = None


class Workout(_Record):
    """A timed morning workout."""

    date: str = ""
    track: str = ""
    distance_furlongs: float = 0.0
    time_seconds: Optional[float] = None
    ranking: Optional[int] = None
    rank_out_of: Optional[int] = None
    is_bullet: bool = False
    surface: str = "dirt"
    days_ago: Optional[int] = None    # days before the race, when the card states it


# ──────────────────────────────────────────────
# Today's equipment, medication, breeding
# ──────────────────────────────────────────────

class Equipment(_Record):
    """Equipment carried today, plus declared changes from last start."""

    blinkers: bool = False
    blinkers_off: bool = False
    front_bandages: bool = False
    tongue_tie: bool = False
    nasal_strip: bool = False
    shadow_roll: bool = False
    cheek_pieces: bool = False
    bar_shoes: bool = False
    mud_caulks: bool = False
    first_time_equipment: list[str] = Field(default_factory=list)
    equipment_changes: list[str] = Field(default_factory=list)
    raw: str = ""


class Medication(_Record):
    lasix: bool = False
    lasix_first_time: bool = False
    lasix_off: bool = False
    bute: bool = False
    other: list[str] = Field(default_factory=list)
    raw: str = ""


class Breeding(_Record):
    sire: str = ""
    sire_of_sire: str = ""
    dam: str = ""
    dam_sire: str = ""
    breeder: str = ""
    where_bred: str = ""


# ──────────────────────────────────────────────
# Trainer situational statistics
# ──────────────────────────────────────────────

class TrainerCategoryStat(_Record):
    """Trainer record in one situational category."""

    starts: int = 0
    wins: int = 0
    win_percent: float = 0.0
    roi: float = 0.0


class TrainerCategoryStats(_Record):
    """Trainer records keyed by situation. Missing categories default to empty."""

    first_time_lasix: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    first_time_blinkers: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    blinkers_off: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    second_off_layoff: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    days_31_to_60: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    days_61_to_90: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    days_91_to_180: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    days_181_plus: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    sprint_to_route: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    route_to_sprint: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    turf_sprint: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    turf_route: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    wet_track: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    dirt_sprint: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    dirt_route: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    maiden_claiming: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    stakes: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    first_start_trainer: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)
    after_claim: TrainerCategoryStat = Field(default_factory=TrainerCategoryStat)


# ──────────────────────────────────────────────
# Entry and race header
# ──────────────────────────────────────────────

class HorseEntry(_Record):
    """A single horse entered in today's race."""

    # Identity
    program_number: int = 0
    post_position: int = 0
    horse_name: str = ""
    age: Optional[int] = None
    sex: str = ""

    # Connections
    trainer_name: str = ""
    jockey_name: str = ""
    trainer_meet_starts: Optional[int] = None
    trainer_meet_wins: Optional[int] = None
    trainer_meet_places: Optional[int] = None
    trainer_meet_shows: Optional[int] = None
    jockey_meet_starts: Optional[int] = None
    jockey_meet_wins: Optional[int] = None
    jockey_meet_places: Optional[int] = None
    jockey_meet_shows: Optional[int] = None
    trainer_stats: str = ""           # career string, e.g. "15% Win" or "220 33-28-30"
    jockey_stats: str = ""

    # Physical
    weight: Optional[float] = None
    equipment: Equipment = Field(default_factory=Equipment)
    medication: Medication = Field(default_factory=Medication)
    breeding: Breeding = Field(default_factory=Breeding)

    # Market
    morning_line_odds: str = ""

    # Historical aggregates (None = not supplied, 0 = supplied and zero)
    lifetime_starts: Optional[int] = None
    lifetime_wins: Optional[int] = None
    lifetime_places: Optional[int] = None
    lifetime_shows: Optional[int] = None
    lifetime_earnings: Optional[int] = None
    current_year_starts: Optional[int] = None
    current_year_wins: Optional[int] = None
    track_starts: Optional[int] = None
    track_wins: Optional[int] = None
    track_places: Optional[int] = None
    track_shows: Optional[int] = None
    surface_starts: Optional[int] = None
    surface_wins: Optional[int] = None
    distance_starts: Optional[int] = None
    distance_wins: Optional[int] = None
    distance_places: Optional[int] = None
    distance_shows: Optional[int] = None
    turf_starts: Optional[int] = None
    turf_wins: Optional[int] = None
    turf_places: Optional[int] = None
    turf_shows: Optional[int] = None
    wet_starts: Optional[int] = None
    wet_wins: Optional[int] = None
    wet_places: Optional[int] = None
    wet_shows: Optional[int] = None

    # Form
    running_style: str = ""           # declared style from the card (E, E/P, P, S, C), may be blank
    days_since_last_race: Optional[int] = None
    past_performances: list[PastPerformance] = Field(default_factory=list)
    workouts: list[Workout] = Field(default_factory=list)
    trainer_category_stats: Optional[TrainerCategoryStats] = None

    is_scratched: bool = False


class RaceHeader(_Record):
    """Today's race conditions."""

    track_code: str = ""
    track_name: str = ""
    race_number: int = 0
    race_date: str = ""
    distance_furlongs: float = 6.0
    surface: str = "dirt"
    track_condition: str = "fast"
    classification: str = "unknown"
    claiming_price_min: Optional[int] = None
    claiming_price_max: Optional[int] = None
    purse: Optional[int] = None
    field_size: int = 0
