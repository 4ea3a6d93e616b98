from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .models import DEFAULT_CALENDAR, RawFixture, SeasonCalendar
from .normalise import parse_fixture_date

logger = logging.getLogger(__name__)

MatchKey = Tuple[int, int, str]  # (day, month, sport)


def _preference(f: RawFixture) -> tuple:
    # Played first, then a stable order over the raw fields
    return (0 if f.played else 1, f.date, f.home_team, f.away_team, f.score_time, f.source)


def dedupe_fixtures(fixtures: Iterable[RawFixture]) -> List[RawFixture]:
    """Collapse rows one source listed twice (e.g. on both phase pages).

    Rows are the same match when date, home and away strings are identical.
    A played row replaces a kept upcoming one, never the other way round.
    """
    kept: dict[str, RawFixture] = {}
    for f in fixtures:
        key = f"{f.date}|{f.home_team}|{f.away_team}"
        current = kept.get(key)
        if current is None or (f.played and not current.played):
            kept[key] = f
    return list(kept.values())


def match_key(f: RawFixture, calendar: SeasonCalendar = DEFAULT_CALENDAR) -> Optional[MatchKey]:
    parsed = parse_fixture_date(f.date, calendar)
    if parsed is None:
        return None
    return (parsed.day, parsed.month, f.sport)


def find_key_collisions(
    fixtures: Iterable[RawFixture], calendar: SeasonCalendar = DEFAULT_CALENDAR
) -> dict[MatchKey, List[RawFixture]]:
    """Keys reported by more than one fixture; the tracked team plays once a day per sport."""
    groups: dict[MatchKey, List[RawFixture]] = defaultdict(list)
    for f in fixtures:
        key = match_key(f, calendar)
        if key is not None:
            groups[key].append(f)
    return {k: v for k, v in groups.items() if len(v) > 1}


@dataclass
class MergeReport:
    in_both: int = 0
    added: int = 0
    updated: int = 0


def merge_cross_source(
    primary: List[RawFixture],
    secondary: Iterable[RawFixture],
    calendar: SeasonCalendar = DEFAULT_CALENDAR,
    report: Optional[MergeReport] = None,
) -> List[RawFixture]:
    """Fold the verification source into the primary volleyball fixtures.

    Matches the primary source missed are appended. A result the secondary
    already has is copied onto a primary fixture still marked upcoming.
    A primary fixture that has a result is left alone.
    """
    report = report if report is not None else MergeReport()
    merged = list(primary)

    primary_groups: dict[MatchKey, List[RawFixture]] = defaultdict(list)
    for f in merged:
        key = match_key(f, calendar)
        if key is not None:
            primary_groups[key].append(f)
    primary_by_key = {k: min(g, key=_preference) for k, g in primary_groups.items()}

    secondary_groups: dict[MatchKey, List[RawFixture]] = defaultdict(list)
    for f in secondary:
        key = match_key(f, calendar)
        if key is None:
            logger.debug("merge: ignoring secondary fixture with unparseable date %r", f.date)
            continue
        secondary_groups[key].append(f)

    ordered = sorted(secondary_groups, key=lambda k: (calendar.season_index(k[1]), k[0], k[2]))
    for key in ordered:
        candidate = min(secondary_groups[key], key=_preference)
        target = primary_by_key.get(key)
        if target is None:
            merged.append(candidate)
            primary_by_key[key] = candidate
            report.added += 1
            logger.info(
                "merge: added from verification %s vs %s (%s)",
                candidate.home_team, candidate.away_team, candidate.date,
            )
            continue

        report.in_both += 1
        if not target.played and candidate.played:
            target.outcome = candidate.outcome.model_copy()
            report.updated += 1
            logger.info("merge: result from verification %s %s -> %s", target.date, target.sport, target.score_time)

    logger.info(
        "cross-verification: in both %d, added %d, results updated %d",
        report.in_both, report.added, report.updated,
    )
    return merged
