"""Score a race card from a JSON file and print the ranked field.

Usage:
    python scripts/score_race.py race.json
    python scripts/score_race.py race.json --live-odds 3=5-2 --scratch 2 --condition sloppy
    python scripts/score_race.py race.json --diagnostics
    python scripts/score_race.py race.json --json

The card is {"race": {...}, "horses": [{...}, ...]} with keys matching
RaceHeader and HorseEntry. Unknown keys are ignored.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from pydantic import ValidationError

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from handicapper.config import settings  # noqa: E402
from handicapper.models import HorseEntry, RaceHeader  # noqa: E402
from handicapper.scoring import (  # noqa: E402
    calculate_race_confidence,
    calculate_race_scores,
    format_odds,
    get_ranked_horses,
    get_top_horses,
)
from handicapper.scoring.diagnostics import diagnose_field  # noqa: E402
from handicapper.scoring.overlay import detect_value_plays  # noqa: E402

logger = logging.getLogger(__name__)


def parse_live_odds(values: list[str]) -> dict[int, str]:
    """["3=5-2", "7=9-1"] -> {3: "5-2", 7: "9-1"}."""
    odds: dict[int, str] = {}
    for value in values:
        program, sep, price = value.partition("=")
        if not sep or not program.strip().isdigit():
            raise argparse.ArgumentTypeError(f"Bad --live-odds value {value!r}, expected PROGRAM=ODDS")
        odds[int(program)] = price.strip()
    return odds


def load_card(path: Path) -> tuple[RaceHeader, list[HorseEntry]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    race = RaceHeader.model_validate(data.get("race", {}))
    horses = [HorseEntry.model_validate(h) for h in data.get("horses", [])]
    return race, horses


def print_table(scored, race: RaceHeader, confidence: int) -> None:
    print(f"\n{race.track_code} R{race.race_number}  {race.distance_furlongs}f {race.surface} "
          f"{race.classification}  ({race.track_condition})")
    print(f"{'Rk':>3} {'#':>3}  {'Horse':<22} {'Base':>5} {'Ovl':>4} {'Total':>5}  {'Tier':<10} Odds")
    print("-" * 68)
    for sh in get_ranked_horses(scored):
        s = sh.score
        odds = s.breakdown.odds.odds_value
        print(f"{sh.rank:>3} {sh.horse.program_number:>3}  {sh.horse.horse_name[:22]:<22} "
              f"{s.base_score:>5} {s.overlay_score:>+4} {s.total:>5}  {s.tier:<10} {format_odds(odds)}")
    for sh in scored:
        if sh.score.is_scratched:
            print(f"  -  {sh.horse.program_number:>3}  {sh.horse.horse_name[:22]:<22} SCRATCHED")
    print(f"\nRace confidence: {confidence}")

    top = ", ".join(f"#{sh.horse.program_number} {sh.horse.horse_name}"
                    for sh in get_top_horses(scored, settings.top_horses))
    print(f"Top picks: {top}")


def print_diagnostics(scored, get_odds) -> None:
    diag = diagnose_field(scored, get_odds)
    print("\nDiagnostics")
    print("-" * 68)
    for d in diag.horses:
        market = f"{d.market_probability:.1f}%" if d.market_probability is not None else "n/a"
        print(f"#{d.program_number:<3} model {d.model_probability:.1f}% vs market {market} "
              f"({d.disagreement_level}); weak: {', '.join(d.weakest_categories) or '-'}")
        for flag in d.favorite_flags:
            print(f"      ! {flag}")
    for issue in diag.systematic_issues:
        print(f"  * {issue}")

    plays = detect_value_plays(scored, get_odds)
    if plays:
        print("\nValue plays")
        for p in plays:
            print(f"  #{p.program_number} {p.horse_name}: {p.overlay_percent:+.0f}% "
                  f"(fair {p.fair_odds_display}, actual {p.actual_odds_display}) -> {p.recommendation.action}")


def to_json(scored, confidence: int) -> str:
    rows = []
    for sh in scored:
        rows.append({
            "index": sh.index,
            "program_number": sh.horse.program_number,
            "horse_name": sh.horse.horse_name,
            "rank": sh.rank,
            "is_scratched": sh.score.is_scratched,
            "base_score": sh.score.base_score,
            "overlay_score": sh.score.overlay_score,
            "total": sh.score.total,
            "tier": sh.score.tier,
            "breakdown": asdict(sh.score.breakdown),
        })
    return json.dumps({"confidence": confidence, "horses": rows}, indent=2, default=str)


def main() -> int:
    parser = argparse.ArgumentParser(description="Score a race card")
    parser.add_argument("card", type=Path, help="JSON race card")
    parser.add_argument("--live-odds", nargs="*", default=[], metavar="PROGRAM=ODDS",
                        help="Current odds by program number, e.g. 3=5-2")
    parser.add_argument("--scratch", nargs="*", type=int, default=[], metavar="PROGRAM",
                        help="Program numbers to scratch")
    parser.add_argument("--condition", default=None, help="Track condition override")
    parser.add_argument("--diagnostics", action="store_true", help="Print field diagnostics")
    parser.add_argument("--json", action="store_true", help="Emit results as JSON")
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(message)s")

    try:
        live_odds = parse_live_odds(args.live_odds)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    try:
        race, horses = load_card(args.card)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in %s: %s", args.card, e)
        return 1
    except OSError as e:
        logger.error("Cannot read %s: %s", args.card, e)
        return 1
    except ValidationError as e:
        logger.error("Malformed race card %s: %s", args.card, e)
        return 1

    scratched = set(args.scratch)
    scored = calculate_race_scores(
        horses,
        race,
        is_scratched=lambda i: horses[i].program_number in scratched,
        track_condition=args.condition,
        live_odds=live_odds,
    )
    confidence = calculate_race_confidence(scored)

    if args.json:
        print(to_json(scored, confidence))
        return 0

    print_table(scored, race, confidence)
    if args.diagnostics:
        print_diagnostics(
            scored, lambda i, ml: live_odds.get(horses[i].program_number, ml),
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
