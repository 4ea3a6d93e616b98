"""Secondary volleyball source used to cross-check the league schedule.

The competition pages render a list view whose cells are labelled spans:
``Label2`` home team, ``Label4`` away team, ``LB_DataOra`` "DD/MM/YYYY HH:MM",
``LB_SetCasa``/``LB_SetOspiti`` sets won. Team names are in Latin script.
"""

from __future__ import annotations

import logging
import re
from functools import partial
from typing import List, Optional, Sequence

import httpx
from pydantic import ValidationError
from selectolax.parser import HTMLParser, Node

from ..models import Played, RawFixture, Upcoming
from ..normalise import clean_text, is_valid_team_pair
from .transport import FetchTask, get_html

logger = logging.getLogger(__name__)

SOURCE = "verification"
DEFAULT_TEAM_FILTERS = ("SALAMINA",)

_ROW_SELECTOR = '[id*="RadListView1"] .rlvI, [id*="RadListView1"] .rlvA'
_DATETIME_RE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})\s+(\d{2}:\d{2})")


def _text(node: Optional[Node]) -> str:
    return clean_text(node.text(separator=" ", strip=True)) if node is not None else ""


def parse_matches_page(
    html: str,
    sport: str,
    *,
    team_filters: Sequence[str] = DEFAULT_TEAM_FILTERS,
) -> List[RawFixture]:
    doc = HTMLParser(html)
    needles = [t.upper() for t in team_filters if t]
    fixtures: List[RawFixture] = []

    for row in doc.css(_ROW_SELECTOR):
        home = _text(row.css_first('[id*="Label2"]'))
        away = _text(row.css_first('[id*="Label4"]'))
        if not home or not away:
            continue
        if needles and not any(n in home.upper() or n in away.upper() for n in needles):
            continue
        if not is_valid_team_pair(home, away):
            logger.warning("verification %s: dropping row %r vs %r", sport, home, away)
            continue

        stamp = _text(row.css_first('[id*="LB_DataOra"]'))
        m = _DATETIME_RE.search(stamp)
        if not m:
            logger.warning("verification %s: unparseable date %r for %s vs %s", sport, stamp, home, away)
            continue
        date = f"{m.group(1)}/{m.group(2)}/{m.group(3)}"
        match_time = m.group(4)

        home_sets = _text(row.css_first('[id*="LB_SetCasa"]'))
        away_sets = _text(row.css_first('[id*="LB_SetOspiti"]'))
        # 0-0 is how the site renders a match that has not been played
        has_score = bool(home_sets and away_sets) and (home_sets, away_sets) != ("0", "0")

        try:
            outcome = Played(score=f"{home_sets}-{away_sets}") if has_score else Upcoming(time=match_time)
            fixtures.append(
                RawFixture(
                    date=date,
                    home_team=home,
                    away_team=away,
                    outcome=outcome,
                    sport=sport,
                    match_time=match_time,
                    source=SOURCE,
                )
            )
        except ValidationError as e:
            logger.warning("verification %s: invalid fixture %s vs %s on %s: %s", sport, home, away, date, e)

    return fixtures


def fetch_sport(
    client: httpx.Client,
    sport: str,
    url: str,
    *,
    team_filters: Sequence[str] = DEFAULT_TEAM_FILTERS,
) -> List[RawFixture]:
    logger.info("fetching verification fixtures (%s): %s", sport, url)
    html = get_html(client, url)
    fixtures = parse_matches_page(html, sport, team_filters=team_filters)
    logger.info("found %d %s verification fixtures", len(fixtures), sport)
    return fixtures


def plan(config: dict) -> List[FetchTask]:
    if not (config.get("feature_flags", {}) or {}).get("enable_verification", True):
        logger.info("verification source disabled")
        return []
    ver_cfg = config.get("verification", {}) or {}
    filters = ver_cfg.get("team_filters") or DEFAULT_TEAM_FILTERS
    return [
        FetchTask(SOURCE, f"{SOURCE}:{sport}", partial(fetch_sport, sport=sport, url=url, team_filters=filters))
        for sport, url in (ver_cfg.get("urls", {}) or {}).items()
    ]
