"""Connections scoring: trainer (0-10), jockey (0-12), partnership (0-2).

Stat source precedence for trainer and jockey:
  1. Current-meet stats when meet starts > 0          ("meet")
  2. Career stat string from the entry                ("career")
  3. The horse's own past performances                ("pp")
  4. The field-wide database built from every entry's PPs ("database")

Anything other than meet stats is an approximation, so it is capped below
the meet maxima (trainer 7, jockey 8).
"""

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from handicapper.models import HorseEntry, PastPerformance
from handicapper.scoring.bands import banded, pct

logger = logging.getLogger(__name__)

MAX_TRAINER_SCORE = 10
MAX_JOCKEY_SCORE = 12
MAX_PARTNERSHIP_BONUS = 2
MAX_CONNECTIONS_SCORE = 24

TRAINER_FALLBACK_CAP = 7
JOCKEY_FALLBACK_CAP = 8
LIMITED_DATA_SCORE = 1
MIN_STARTS = 3
ELITE_MIN_STARTS = 20

# (min win %, trainer points, jockey points); the 25% tier needs 20+ starts
_WIN_RATE_TIERS = [
    (25, 9, 11),
    (20, 8, 10),
    (15, 6, 8),
    (12, 5, 6),
    (10, 3, 4),
]
_ELITE_POINTS = (MAX_TRAINER_SCORE, MAX_JOCKEY_SCORE)
_FLOOR_POINTS = (1, 2)

# (tier, min joint starts, min win %, bonus, label)
PARTNERSHIP_TIERS = [
    ("elite", 8, 30, 2, "Elite combo"),
    ("strong", 5, 25, 1, "Strong combo"),
    ("good", 5, 20, 0, "Good combo"),
    ("regular", 5, 15, 0, "Regular combo"),
]

_SOURCE_TAGS = {"meet": "", "career": " [career]", "pp": " [PP]", "database": " [field]"}

_RECORD_RE = re.compile(r"(\d+)\s+(\d+)\s*-\s*(\d+)\s*-\s*(\d+)")
_STARTS_WINS_RE = re.compile(r"starts?\s*:?\s*(\d+).*?wins?\s*:?\s*(\d+)", re.IGNORECASE)
_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*%")


@dataclass(frozen=True)
class ConnectionStats:
    """Win/ITM record for a trainer or jockey.

    ``starts`` is None when only a win percentage is known.
    """

    name: str
    starts: Optional[int]
    wins: int
    places: int = 0
    shows: int = 0
    win_rate: float = 0.0
    itm_rate: float = 0.0
    source: str = "meet"              # meet, career, pp, database


@dataclass(frozen=True)
class PartnershipStats:
    trainer: str
    jockey: str
    starts: int
    wins: int
    win_rate: float


@dataclass(frozen=True)
class ConnectionsDatabase:
    """Field-wide trainer/jockey records keyed by normalized name. Read-only."""

    trainers: Mapping[str, ConnectionStats] = field(default_factory=lambda: MappingProxyType({}))
    jockeys: Mapping[str, ConnectionStats] = field(default_factory=lambda: MappingProxyType({}))
    partnerships: Mapping[str, PartnershipStats] = field(default_factory=lambda: MappingProxyType({}))


@dataclass
class PartnershipAnalysis:
    starts: int = 0
    wins: int = 0
    win_rate: float = 0.0
    tier: str = "new"                 # elite, strong, good, regular, limited, new
    bonus: int = 0
    is_first_time_with_jockey: bool = True
    reasoning: str = ""


@dataclass
class ConnectionsScoreResult:
    """Connections category result."""

    total: int = 0
    trainer: int = 0
    jockey: int = 0
    partnership_bonus: int = 0
    trainer_stats: Optional[ConnectionStats] = None
    jockey_stats: Optional[ConnectionStats] = None
    partnership: Optional[PartnershipAnalysis] = None
    reasoning: str = ""


# ──────────────────────────────────────────────
# Names / parsing
# ──────────────────────────────────────────────

def normalize_name(name: str) -> str:
    """Upper-case, drop periods and commas, collapse whitespace."""
    cleaned = re.sub(r"[.,]", "", name or "").upper()
    return re.sub(r"\s+", " ", cleaned).strip()


def _make_stats(name: str, starts: int, wins: int, places: int, shows: int, source: str) -> ConnectionStats:
    return ConnectionStats(
        name=name,
        starts=starts,
        wins=wins,
        places=places,
        shows=shows,
        win_rate=pct(wins, starts),
        itm_rate=pct(wins + places + shows, starts),
        source=source,
    )


def parse_career_stats(text: str, name: str = "") -> Optional[ConnectionStats]:
    """Parse a career stat string.

    Accepts "220 33-28-30" (starts wins-places-shows), "Starts 120 Wins 25",
    or a bare "15% Win". Returns None when nothing usable is found.
    """
    if not text or not text.strip():
        return None

    m = _RECORD_RE.search(text)
    if m:
        starts, wins, places, shows = (int(g) for g in m.groups())
        if starts > 0:
            return _make_stats(name, starts, wins, places, shows, "career")

    m = _STARTS_WINS_RE.search(text)
    if m:
        starts, wins = int(m.group(1)), int(m.group(2))
        if starts > 0:
            return _make_stats(name, starts, wins, 0, 0, "career")

    m = _PERCENT_RE.search(text)
    if m:
        return ConnectionStats(name=name, starts=None, wins=0, win_rate=float(m.group(1)), source="career")
    return None


# ──────────────────────────────────────────────
# Field database
# ──────────────────────────────────────────────

def build_connections_database(horses: list[HorseEntry]) -> ConnectionsDatabase:
    """Aggregate trainer, jockey and pairing records from every entry's PPs.

    Each horse's PPs are credited to its current trainer and to the jockey
    who rode in that race.
    """
    trainer_counts: dict[str, list] = {}
    jockey_counts: dict[str, list] = {}
    pair_counts: dict[str, list] = {}

    def tally(counts: dict[str, list], key: str, display: str, pp: PastPerformance) -> None:
        entry = counts.setdefault(key, [display, 0, 0, 0, 0])
        entry[1] += 1
        if pp.finish_position == 1:
            entry[2] += 1
        elif pp.finish_position == 2:
            entry[3] += 1
        elif pp.finish_position == 3:
            entry[4] += 1

    for horse in horses:
        trainer_key = normalize_name(horse.trainer_name)
        trainer_counts.setdefault(trainer_key, [horse.trainer_name, 0, 0, 0, 0])
        jockey_counts.setdefault(normalize_name(horse.jockey_name), [horse.jockey_name, 0, 0, 0, 0])

        for pp in horse.past_performances:
            tally(trainer_counts, trainer_key, horse.trainer_name, pp)
            if not pp.jockey:
                continue
            jockey_key = normalize_name(pp.jockey)
            tally(jockey_counts, jockey_key, pp.jockey, pp)
            tally(pair_counts, f"{trainer_key}|{jockey_key}", f"{horse.trainer_name}|{pp.jockey}", pp)

    def freeze(counts: dict[str, list]) -> Mapping[str, ConnectionStats]:
        return MappingProxyType({
            key: _make_stats(name, starts, wins, places, shows, "database")
            for key, (name, starts, wins, places, shows) in counts.items()
        })

    partnerships = {}
    for key, (display, starts, wins, _places, _shows) in pair_counts.items():
        trainer, jockey = display.split("|", 1)
        partnerships[key] = PartnershipStats(trainer, jockey, starts, wins, pct(wins, starts))

    logger.debug(
        "Connections database: %d trainers, %d jockeys, %d pairings",
        len(trainer_counts), len(jockey_counts), len(partnerships),
    )
    return ConnectionsDatabase(
        trainers=freeze(trainer_counts),
        jockeys=freeze(jockey_counts),
        partnerships=MappingProxyType(partnerships),
    )


# ──────────────────────────────────────────────
# Stat resolution
# ──────────────────────────────────────────────

def _stats_from_pps(name: str, pps: list[PastPerformance]) -> Optional[ConnectionStats]:
    if not pps:
        return None
    wins = sum(1 for pp in pps if pp.finish_position == 1)
    places = sum(1 for pp in pps if pp.finish_position == 2)
    shows = sum(1 for pp in pps if pp.finish_position == 3)
    return _make_stats(name, len(pps), wins, places, shows, "pp")


def _from_database(table: Mapping[str, ConnectionStats], name: str) -> Optional[ConnectionStats]:
    stats = table.get(normalize_name(name))
    if stats is None or not stats.starts:
        return None
    return stats


def resolve_trainer_stats(
    horse: HorseEntry,
    database: Optional[ConnectionsDatabase] = None,
) -> Optional[ConnectionStats]:
    if horse.trainer_meet_starts:
        return _make_stats(
            horse.trainer_name,
            horse.trainer_meet_starts,
            horse.trainer_meet_wins or 0,
            horse.trainer_meet_places or 0,
            horse.trainer_meet_shows or 0,
            "meet",
        )
    career = parse_career_stats(horse.trainer_stats, horse.trainer_name)
    if career is not None:
        return career
    own = _stats_from_pps(horse.trainer_name, horse.past_performances)
    if own is not None:
        return own
    if database is not None:
        return _from_database(database.trainers, horse.trainer_name)
    return None


def resolve_jockey_stats(
    horse: HorseEntry,
    database: Optional[ConnectionsDatabase] = None,
) -> Optional[ConnectionStats]:
    if horse.jockey_meet_starts:
        return _make_stats(
            horse.jockey_name,
            horse.jockey_meet_starts,
            horse.jockey_meet_wins or 0,
            horse.jockey_meet_places or 0,
            horse.jockey_meet_shows or 0,
            "meet",
        )
    career = parse_career_stats(horse.jockey_stats, horse.jockey_name)
    if career is not None:
        return career

    jockey = normalize_name(horse.jockey_name)
    ridden = [pp for pp in horse.past_performances if normalize_name(pp.jockey) == jockey]
    own = _stats_from_pps(horse.jockey_name, ridden)
    if own is not None:
        return own
    if database is not None:
        return _from_database(database.jockeys, horse.jockey_name)
    return None


# ──────────────────────────────────────────────
# Scoring
# ──────────────────────────────────────────────

def _is_limited(stats: Optional[ConnectionStats]) -> bool:
    return stats is None or (stats.starts is not None and stats.starts < MIN_STARTS)


def _rate_points(stats: ConnectionStats, column: int) -> int:
    elite_sample = stats.starts is not None and stats.starts >= ELITE_MIN_STARTS
    if stats.win_rate >= 25 and elite_sample:
        return _ELITE_POINTS[column]
    tiers = [(rate, points[column]) for rate, *points in _WIN_RATE_TIERS]
    return banded(stats.win_rate, tiers, _FLOOR_POINTS[column])


def calculate_trainer_score(stats: Optional[ConnectionStats]) -> int:
    if _is_limited(stats):
        return LIMITED_DATA_SCORE
    points = _rate_points(stats, 0)
    if stats.source != "meet":
        points = min(points, TRAINER_FALLBACK_CAP)
    return points


def calculate_jockey_score(stats: Optional[ConnectionStats]) -> int:
    if _is_limited(stats):
        return LIMITED_DATA_SCORE
    points = _rate_points(stats, 1)
    if stats.source != "meet":
        points = min(points, JOCKEY_FALLBACK_CAP)
    return points


def analyze_partnership(horse: HorseEntry) -> PartnershipAnalysis:
    """Today's trainer with today's jockey, from the horse's own PPs."""
    jockey = normalize_name(horse.jockey_name)
    together = [pp for pp in horse.past_performances if pp.jockey and normalize_name(pp.jockey) == jockey]
    starts = len(together)
    if starts == 0:
        return PartnershipAnalysis(reasoning="First time with this jockey")

    wins = sum(1 for pp in together if pp.finish_position == 1)
    rate = pct(wins, starts)
    for tier, min_starts, min_rate, bonus, label in PARTNERSHIP_TIERS:
        if starts >= min_starts and rate >= min_rate:
            return PartnershipAnalysis(
                starts=starts,
                wins=wins,
                win_rate=rate,
                tier=tier,
                bonus=bonus,
                is_first_time_with_jockey=False,
                reasoning=f"{label}: {rate:.0f}% win ({wins}/{starts}) +{bonus}pts",
            )
    return PartnershipAnalysis(
        starts=starts,
        wins=wins,
        win_rate=rate,
        tier="limited",
        is_first_time_with_jockey=False,
        reasoning=f"Limited combo: {starts} start{'s' if starts != 1 else ''} together",
    )


def _describe(prefix: str, stats: Optional[ConnectionStats]) -> str:
    if _is_limited(stats):
        return f"{prefix}: Limited data"
    tag = _SOURCE_TAGS.get(stats.source, "")
    if stats.starts is None:
        return f"{prefix}: {stats.win_rate:.0f}%{tag}"
    return f"{prefix}: {stats.win_rate:.0f}% ({stats.wins}/{stats.starts}){tag}"


def calculate_connections_score(
    horse: HorseEntry,
    database: Optional[ConnectionsDatabase] = None,
) -> ConnectionsScoreResult:
    """Trainer + jockey + partnership, capped at 24."""
    trainer_stats = resolve_trainer_stats(horse, database)
    jockey_stats = resolve_jockey_stats(horse, database)
    trainer = calculate_trainer_score(trainer_stats)
    jockey = calculate_jockey_score(jockey_stats)
    partnership = analyze_partnership(horse)

    total = min(MAX_CONNECTIONS_SCORE, trainer + jockey + partnership.bonus)
    reasoning = " | ".join([
        _describe("T", trainer_stats),
        _describe("J", jockey_stats),
        partnership.reasoning,
    ])

    return ConnectionsScoreResult(
        total=total,
        trainer=trainer,
        jockey=jockey,
        partnership_bonus=partnership.bonus,
        trainer_stats=trainer_stats,
        jockey_stats=jockey_stats,
        partnership=partnership,
        reasoning=reasoning,
    )
