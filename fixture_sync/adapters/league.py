from __future__ import annotations

import logging
import pathlib
import re
from functools import partial
from typing import List, Optional, Sequence

import httpx
from pydantic import ValidationError
from selectolax.parser import HTMLParser, Node

from ..models import RawFixture, TrackedTeam, Upcoming
from ..normalise import clean_text, find_existing_logo, is_valid_team_pair, parse_clock, parse_outcome
from .transport import FetchTask, get_html

logger = logging.getLogger(__name__)

SOURCE = "league"
# Senior categories are labelled "Α' Κατηγορία" with either apostrophe
DEFAULT_CATEGORY_PREFIXES = ("Α'", "Α’")

_TEAM_SPLIT_RE = re.compile(r"\s+[—–]\s+|\s+VS\s+", re.IGNORECASE)


def _text(node: Optional[Node]) -> str:
    return clean_text(node.text(separator=" ", strip=True)) if node is not None else ""


def parse_schedule_page(
    html: str,
    sport: str,
    *,
    team: TrackedTeam,
    category_prefixes: Sequence[str] = DEFAULT_CATEGORY_PREFIXES,
    logos_dir: Optional[pathlib.Path] = None,
    logo_prefix: str = "images/team_logos",
) -> List[RawFixture]:
    """Parse the league's schedule table: Date | Match | Time/Result | Category | Venue."""
    doc = HTMLParser(html)
    fixtures: List[RawFixture] = []
    prefixes = tuple(category_prefixes)

    for row in doc.css("table.sp-data-table tbody tr"):
        cells = row.css("td")
        if len(cells) < 5:
            continue

        # <date> holds a sortable "2025-10-17 18:00:00" next to the visible text
        clock_hint = _text(cells[2].css_first("date"))
        for cell in (cells[0], cells[2]):
            for el in cell.css("date"):
                el.decompose()

        date = _text(cells[0])
        match_text = _text(cells[1])
        result_text = _text(cells[2])
        category = _text(cells[3])
        venue = _text(cells[4].css_first("a")) or _text(cells[4])

        if not category.startswith(prefixes):
            continue

        teams = _TEAM_SPLIT_RE.split(match_text)
        if len(teams) != 2:
            logger.warning("league %s: cannot split teams in %r", sport, match_text)
            continue
        home, away = teams[0].strip(), teams[1].strip()
        if not is_valid_team_pair(home, away):
            logger.warning("league %s: dropping row %r", sport, match_text)
            continue

        try:
            outcome = parse_outcome(result_text)
            match_time = None
            if isinstance(outcome, Upcoming):
                clock = parse_clock(clock_hint) or outcome.time
                outcome = Upcoming(time=clock)
                match_time = clock or None

            is_home = team.matches(home)
            logo = None
            if logos_dir is not None:
                logo = find_existing_logo(away if is_home else home, logos_dir, logo_prefix)

            fixtures.append(
                RawFixture(
                    date=date,
                    home_team=home,
                    away_team=away,
                    home_logo=None if is_home else logo,
                    away_logo=logo if is_home else None,
                    outcome=outcome,
                    venue=venue,
                    sport=sport,
                    match_time=match_time,
                    source=SOURCE,
                )
            )
        except ValidationError as e:
            logger.warning("league %s: invalid fixture %r on %r: %s", sport, match_text, date, e)

    return fixtures


def fetch_sport(
    client: httpx.Client,
    sport: str,
    url: str,
    *,
    team: TrackedTeam,
    category_prefixes: Sequence[str] = DEFAULT_CATEGORY_PREFIXES,
    logos_dir: Optional[pathlib.Path] = None,
    logo_prefix: str = "images/team_logos",
) -> List[RawFixture]:
    logger.info("fetching league fixtures (%s): %s", sport, url)
    html = get_html(client, url)
    fixtures = parse_schedule_page(
        html,
        sport,
        team=team,
        category_prefixes=category_prefixes,
        logos_dir=logos_dir,
        logo_prefix=logo_prefix,
    )
    logger.info("found %d %s league fixtures", len(fixtures), sport)
    return fixtures


def plan(config: dict, logos_dir: Optional[pathlib.Path] = None) -> List[FetchTask]:
    """One task per configured volleyball sport page."""
    if not (config.get("feature_flags", {}) or {}).get("enable_league", True):
        return []
    league_cfg = config.get("league", {}) or {}
    team = TrackedTeam.from_config(config)
    prefixes = league_cfg.get("category_prefixes") or DEFAULT_CATEGORY_PREFIXES
    logo_prefix = (config.get("logos", {}) or {}).get("prefix", "images/team_logos")
    return [
        FetchTask(
            SOURCE,
            f"{SOURCE}:{sport}",
            partial(
                fetch_sport,
                sport=sport,
                url=url,
                team=team,
                category_prefixes=prefixes,
                logos_dir=logos_dir,
                logo_prefix=logo_prefix,
            ),
        )
        for sport, url in (league_cfg.get("urls", {}) or {}).items()
    ]
