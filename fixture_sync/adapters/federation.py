"""Federation site: football fixtures published as two competition-phase pages.

Page layout (one block per match day)::

    <!-- <h5 class="fixures-game-date">5-Οκτωβρίου-2025</h5> -->
    <div class="mob-fixtures ...">
      <div><img src="..."><div class="col-xs-7">HOME</div></div>
      <div>2-1</div>                      score, or kick-off time if upcoming
      <div><img src="..."><div class="col-xs-7">AWAY</div></div>
      <div><!-- <div>ΓΗΠΕΔΟ ...</div> --></div>   optional venue
    </div>

The date headers are commented out in the markup, so rows are matched to
their date by position in the raw HTML.
"""

from __future__ import annotations

import logging
import re
from functools import partial
from typing import List, Optional

import httpx
from pydantic import ValidationError
from selectolax.parser import HTMLParser, Node

from ..models import Played, RawFixture
from ..normalise import clean_text, federation_logo_path, is_valid_team_pair, parse_outcome
from .transport import FetchTask, get_html

logger = logging.getLogger(__name__)

SOURCE = "federation"
SPORT = "football-men"
VENUE_MARKER = "ΓΗΠΕΔΟ"

_DATE_COMMENT_RE = re.compile(
    r"<!--\s*<h5[^>]*fixures-game-date[^>]*>\s*(\d{1,2})-([^-\s<]+)-(\d{4})\s*</h5>\s*-->"
)
_ROW_START_RE = re.compile(
    r"<div\b[^>]*?\bclass\s*=\s*[\"'][^\"']*(?<![\w-])mob-fixtures(?![\w-])", re.IGNORECASE
)
_VENUE_COMMENT_RE = re.compile(r"<!--[\s\S]*?<div>([^<]+)</div>[\s\S]*?-->")
_PENALTY_SCORE_RE = re.compile(r"^(\d+)\s*-\s*(\d+)\s*\((\d+)\s*-\s*(\d+)\)$")


def _text(node: Optional[Node]) -> str:
    return clean_text(node.text(separator=" ", strip=True)) if node is not None else ""


def _date_before(marks: list[tuple[int, str]], pos: int) -> str:
    current = ""
    for mark_pos, value in marks:
        if mark_pos >= pos:
            break
        current = value
    return current


def _venue_in(segment: str) -> str:
    for m in _VENUE_COMMENT_RE.finditer(segment):
        if VENUE_MARKER in m.group(1):
            return clean_text(m.group(1))
    return ""


def parse_phase_page(
    html: str,
    *,
    team_filter: Optional[str] = None,
    competition: Optional[str] = None,
    logo_prefix: str = "images/team_logos",
) -> List[RawFixture]:
    date_marks = [
        (m.start(), f"{m.group(1)} {m.group(2)} {m.group(3)}") for m in _DATE_COMMENT_RE.finditer(html)
    ]
    row_starts = [m.start() for m in _ROW_START_RE.finditer(html)]

    doc = HTMLParser(html)
    rows = doc.css("div.mob-fixtures")
    if len(rows) != len(row_starts):
        logger.warning(
            "federation: %d fixture rows parsed but %d found in the markup, dates may be misaligned",
            len(rows),
            len(row_starts),
        )
    fixtures: List[RawFixture] = []
    for i, row in enumerate(rows):
        pos = row_starts[i] if i < len(row_starts) else 0
        end = row_starts[i + 1] if i + 1 < len(row_starts) else len(html)

        cols = [c for c in row.iter() if c.tag == "div"]
        if len(cols) < 3:
            continue

        home = _text(cols[0].css_first("div.col-xs-7"))
        away = _text(cols[2].css_first("div.col-xs-7"))
        score_text = _text(cols[1])
        if not score_text or not is_valid_team_pair(home, away):
            logger.warning("federation: dropping row %d (%r vs %r, %r)", i, home, away, score_text)
            continue

        date = _date_before(date_marks, pos)
        if not date:
            logger.warning("federation: no date header before %s vs %s", home, away)
            continue

        venue = _venue_in(html[pos:end]) if len(cols) >= 4 else ""
        home_img = cols[0].css_first("img")
        away_img = cols[2].css_first("img")

        penalties = None
        pm = _PENALTY_SCORE_RE.match(score_text)
        try:
            if pm:
                outcome = Played(score=f"{pm.group(1)}-{pm.group(2)}")
                penalties = f"{pm.group(3)}-{pm.group(4)}"
            else:
                outcome = parse_outcome(score_text)
            fixtures.append(
                RawFixture(
                    date=date,
                    home_team=home,
                    away_team=away,
                    home_logo=federation_logo_path(home, logo_prefix) if home_img and home_img.attributes.get("src") else None,
                    away_logo=federation_logo_path(away, logo_prefix) if away_img and away_img.attributes.get("src") else None,
                    outcome=outcome,
                    venue=venue,
                    sport=SPORT,
                    competition=competition,
                    penalties=penalties,
                    source=SOURCE,
                )
            )
        except ValidationError as e:
            logger.warning("federation: invalid fixture %s vs %s on %s: %s", home, away, date, e)

    if team_filter:
        needle = team_filter.upper()
        fixtures = [f for f in fixtures if needle in f.home_team.upper() or needle in f.away_team.upper()]
    return fixtures


def fetch_phase(
    client: httpx.Client,
    phase: dict,
    *,
    team_filter: Optional[str] = None,
    logo_prefix: str = "images/team_logos",
) -> List[RawFixture]:
    url = phase["url"]
    logger.info("fetching federation fixtures: %s", url)
    html = get_html(client, url)
    fixtures = parse_phase_page(
        html,
        team_filter=team_filter,
        competition=phase.get("competition"),
        logo_prefix=logo_prefix,
    )
    logger.info("found %d federation fixtures on %s", len(fixtures), phase.get("label") or url)
    return fixtures


def plan(config: dict) -> List[FetchTask]:
    """One task per configured phase page; results are not de-duplicated here."""
    if not (config.get("feature_flags", {}) or {}).get("enable_federation", True):
        return []
    fed_cfg = config.get("federation", {}) or {}
    logo_prefix = (config.get("logos", {}) or {}).get("prefix", "images/team_logos")
    return [
        FetchTask(
            SOURCE,
            f"{SOURCE}:{phase.get('label') or phase['url']}",
            partial(fetch_phase, phase=phase, team_filter=fed_cfg.get("team_filter"), logo_prefix=logo_prefix),
        )
        for phase in fed_cfg.get("phases", [])
    ]
