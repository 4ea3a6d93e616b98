from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Iterable, Optional, Tuple

from .models import DEFAULT_CALENDAR, Event, Played, RawFixture, SeasonCalendar, TrackedTeam
from .normalise import parse_fixture_date

logger = logging.getLogger(__name__)


def fixture_to_event(
    fixture: RawFixture,
    team: TrackedTeam,
    calendar: SeasonCalendar = DEFAULT_CALENDAR,
) -> Optional[Tuple[str, Event]]:
    """Project a fixture onto the tracked team's calendar, keyed by month name."""
    parsed = parse_fixture_date(fixture.date, calendar)
    if parsed is None:
        logger.warning("dropping %s fixture with unparseable date %r", fixture.sport, fixture.date)
        return None
    month_name = calendar.month_name(parsed.month)
    if month_name is None:
        return None

    is_home = team.matches(fixture.home_team)
    outcome = fixture.outcome
    if fixture.match_time:
        time = fixture.match_time
    elif isinstance(outcome, Played):
        time = ""
    else:
        time = outcome.time

    fields: dict[str, Any] = {
        "day": parsed.day,
        "sport": fixture.sport,
        "location": "home" if is_home else "away",
        "opponent": fixture.away_team if is_home else fixture.home_team,
        "time": time,
    }
    logo = fixture.away_logo if is_home else fixture.home_logo
    if fixture.venue:
        fields["venue"] = fixture.venue
    if logo:
        fields["logo"] = logo
    if isinstance(outcome, Played):
        fields["status"] = "played"
        fields["score"] = outcome.score
    if fixture.competition:
        fields["competition"] = fixture.competition
    if fixture.penalties:
        fields["penalties"] = fixture.penalties

    return month_name, Event(**fields)


def project_fixtures(
    fixtures: Iterable[RawFixture],
    team: TrackedTeam,
    calendar: SeasonCalendar = DEFAULT_CALENDAR,
) -> dict[str, list[Event]]:
    by_month: dict[str, list[Event]] = defaultdict(list)
    for fixture in fixtures:
        projected = fixture_to_event(fixture, team, calendar)
        if projected is None:
            continue
        month_name, event = projected
        by_month[month_name].append(event)
    return dict(by_month)
