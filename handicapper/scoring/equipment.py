"""Equipment and medication change scoring.

Base 8 with no changes, clamped to 0-20. Changes come from the entry's
explicit first-time lists and flags, or from diffing today's gear against
the raw equipment/medication strings of the last start.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from handicapper import tracks
from handicapper.models import HorseEntry, PastPerformance
from handicapper.scoring.bands import clamp

logger = logging.getLogger(__name__)

BASE_EQUIPMENT_SCORE = 8
MAX_EQUIPMENT_SCORE = 20

CHANGE_POINTS = {
    "lasix_first": 6,
    "blinkers_on": 5,
    "tongue_tie_on": 3,
    "nasal_strip_on": 2,
    "cheek_pieces_on": 2,
    "shadow_roll_on": 2,
    "blinkers_off": -2,
    "lasix_off": -4,
    "bar_shoes_on": -1,
    "mud_caulks_on": 2,
}
BLINKERS_OFF_PACE_BONUS = 3

# gear -> (short codes matched as whole tokens, word prefixes)
GEAR_TERMS = {
    "blinkers": ({"b"}, ("blink",)),
    "bar_shoes": ({"bs"}, ("bar",)),
    "mud_caulks": ({"mc"}, ("mud",)),
    "tongue_tie": ({"tt"}, ("tongue",)),
    "nasal_strip": ({"ns"}, ("nasal",)),
    "shadow_roll": ({"sr"}, ("shadow",)),
    "cheek_pieces": ({"cp"}, ("cheek",)),
    "lasix": ({"l"}, ("lasix",)),
}

# first-time list entries that name each gear
FIRST_TIME_NAMES = {
    "blinkers": {"blinkers", "b"},
    "tongue_tie": {"tongue tie", "tt"},
    "nasal_strip": {"nasal strip", "ns"},
    "cheek_pieces": {"cheek pieces", "cp"},
    "shadow_roll": {"shadow roll", "sr"},
}

PACE_ISSUE_WORDS = ("hung", "lugged", "bore", "rank", "keen", "fought")


@dataclass
class EquipmentChange:
    kind: str
    description: str
    points: int


@dataclass
class EquipmentScoreResult:
    """Equipment category result."""

    total: int = BASE_EQUIPMENT_SCORE
    base_score: int = BASE_EQUIPMENT_SCORE
    changes: list[EquipmentChange] = field(default_factory=list)
    has_changes: bool = False
    reasoning: str = "No equipment changes"


# ──────────────────────────────────────────────
# Raw string matching
# ──────────────────────────────────────────────

def _tokens(raw: str) -> list[str]:
    return [t for t in re.split(r"[^a-z]+", (raw or "").lower()) if t]


def raw_has_gear(raw: str, gear: str) -> bool:
    """True when a raw equipment/medication string mentions ``gear``."""
    codes, prefixes = GEAR_TERMS[gear]
    return any(tok in codes or tok.startswith(prefixes) for tok in _tokens(raw))


def had_in_last_race(horse: HorseEntry, gear: str) -> bool:
    if not horse.past_performances:
        return False
    last = horse.past_performances[0]
    raw = last.medication if gear == "lasix" else last.equipment
    return raw_has_gear(raw, gear)


def _first_time(horse: HorseEntry, gear: str) -> bool:
    listed = {e.strip().lower() for e in horse.equipment.first_time_equipment}
    return bool(listed & FIRST_TIME_NAMES.get(gear, set()))


def _added_since_last(horse: HorseEntry, gear: str, wearing: bool) -> bool:
    """Gear worn today, absent last out. Needs a prior start to compare with."""
    return wearing and bool(horse.past_performances) and not had_in_last_race(horse, gear)


def had_pace_issues(pps: list[PastPerformance]) -> bool:
    """Led early then faded, or a comment about fighting the rider."""
    for pp in pps[:3]:
        line = pp.running_line
        if line.quarter_mile is not None and line.finish is not None:
            if line.quarter_mile <= 2 and line.finish > 5:
                return True
        text = f"{pp.trip_comment} {pp.comment}".lower()
        if any(word in text for word in PACE_ISSUE_WORDS):
            return True
    return False


# ──────────────────────────────────────────────
# Change detection
# ──────────────────────────────────────────────

def is_first_time_lasix(horse: HorseEntry) -> bool:
    return horse.medication.lasix_first_time or _added_since_last(horse, "lasix", horse.medication.lasix)


def is_lasix_off(horse: HorseEntry) -> bool:
    med = horse.medication
    if med.lasix_off:
        return True
    return bool(med.raw.strip()) and not med.lasix and had_in_last_race(horse, "lasix")


def is_first_time_blinkers(horse: HorseEntry) -> bool:
    return _first_time(horse, "blinkers") or _added_since_last(horse, "blinkers", horse.equipment.blinkers)


def is_blinkers_off(horse: HorseEntry) -> bool:
    equip = horse.equipment
    if equip.blinkers_off:
        return True
    return bool(equip.raw.strip()) and not equip.blinkers and had_in_last_race(horse, "blinkers")


def detect_equipment_changes(
    horse: HorseEntry,
    track_condition: Optional[str] = None,
) -> list[EquipmentChange]:
    equip = horse.equipment
    changes: list[EquipmentChange] = []

    def add(kind: str, description: str, points: Optional[int] = None) -> None:
        changes.append(EquipmentChange(kind, description, CHANGE_POINTS[kind] if points is None else points))

    # Lasix
    if is_first_time_lasix(horse):
        add("lasix_first", "First-time Lasix")
    elif is_lasix_off(horse):
        add("lasix_off", "Lasix off")

    # Blinkers
    if is_first_time_blinkers(horse):
        add("blinkers_on", "Blinkers ON (first time)")
    elif is_blinkers_off(horse):
        if had_pace_issues(horse.past_performances):
            add("blinkers_off", "Blinkers OFF (pace issues)",
                CHANGE_POINTS["blinkers_off"] + BLINKERS_OFF_PACE_BONUS)
        else:
            add("blinkers_off", "Blinkers OFF")

    for gear, flag, label in (
        ("tongue_tie", equip.tongue_tie, "Tongue tie ON"),
        ("nasal_strip", equip.nasal_strip, "Nasal strip ON"),
        ("cheek_pieces", equip.cheek_pieces, "Cheek pieces ON"),
        ("shadow_roll", equip.shadow_roll, "Shadow roll ON"),
    ):
        if _first_time(horse, gear) or _added_since_last(horse, gear, flag):
            add(f"{gear}_on", label)

    if _added_since_last(horse, "bar_shoes", equip.bar_shoes):
        add("bar_shoes_on", "Bar shoes ON")

    if equip.mud_caulks and tracks.is_wet_condition(track_condition):
        add("mud_caulks_on", "Mud caulks ON (wet track)")

    return changes


def calculate_equipment_score(
    horse: HorseEntry,
    track_condition: Optional[str] = None,
) -> EquipmentScoreResult:
    changes = detect_equipment_changes(horse, track_condition)
    total = int(clamp(BASE_EQUIPMENT_SCORE + sum(c.points for c in changes), 0, MAX_EQUIPMENT_SCORE))
    return EquipmentScoreResult(
        total=total,
        base_score=BASE_EQUIPMENT_SCORE,
        changes=changes,
        has_changes=bool(changes),
        reasoning=" + ".join(c.description for c in changes) if changes else "No equipment changes",
    )
