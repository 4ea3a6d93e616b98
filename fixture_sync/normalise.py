from __future__ import annotations

import pathlib
import re
import unicodedata
from typing import Iterable, NamedTuple, Optional, Union

from .models import DEFAULT_CALENDAR, Played, SeasonCalendar, Upcoming


_WS_RE = re.compile(r"\s+")
_DAY_RE = re.compile(r"^\d{1,2}$")
_SLASH_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})(?:/(\d{4}))?$")
_SCORE_TEXT_RE = re.compile(r"^(\d+)\s*-\s*(\d+)$")
_CLOCK_RE = re.compile(r"\b(\d{1,2}):(\d{2})\b")
# Women's-division suffix, e.g. "ΟΜΟΝΟΙΑ (Γ)"
_DIVISION_MARKER_RE = re.compile(r"\s*\((?:Γ|W)\)\s*$", re.IGNORECASE)
_UNSAFE_FILENAME_RE = re.compile(r"[^\w\s-]")
_FILENAME_SEP_RE = re.compile(r"[-\s]+")

LOGO_EXTENSIONS = ("png", "jpg", "jpeg", "svg", "gif")

# Competition headings that occasionally get picked up as a fixture row
SECTION_HEADER_PHRASES = ("πρωτάθλημα", "κατηγορία", "κύπελλο", "διοργανώσεις")


class FixtureDate(NamedTuple):
    day: int
    month: int


def fold_text(s: str) -> str:
    """Casefold and drop accents, keeping non-Latin letters intact."""
    decomposed = unicodedata.normalize("NFD", s or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WS_RE.sub(" ", stripped.casefold()).strip()


def clean_text(s: str) -> str:
    return _WS_RE.sub(" ", s or "").strip()


def parse_fixture_date(s: object, calendar: SeasonCalendar = DEFAULT_CALENDAR) -> Optional[FixtureDate]:
    """Return ``(day, month)`` for the date encodings the sources use, else None.

    Accepted: ``"5 Οκτωβρίου 2025"`` (localized month name), ``"17/10/2025"``
    and ``"17/10"``.
    """
    if not isinstance(s, str):
        return None
    text = clean_text(s)
    if not text:
        return None

    parts = text.split(" ")
    if len(parts) >= 2 and _DAY_RE.match(parts[0]):
        folded = {fold_text(k): v for k, v in calendar.localized_months.items()}
        month = folded.get(fold_text(parts[1]))
        if month is not None:
            return _checked(int(parts[0]), month)

    m = _SLASH_DATE_RE.match(text)
    if m:
        return _checked(int(m.group(1)), int(m.group(2)))
    return None


def _checked(day: int, month: int) -> Optional[FixtureDate]:
    if 1 <= day <= 31 and 1 <= month <= 12:
        return FixtureDate(day, month)
    return None


def normalize_opponent(name: str) -> str:
    """Comparison key for an opponent; not for display."""
    return _DIVISION_MARKER_RE.sub("", (name or "").upper()).strip()


def parse_clock(text: str) -> str:
    """First ``H:MM``/``HH:MM`` in ``text`` as ``HH:MM``, else ``""``."""
    m = _CLOCK_RE.search(text or "")
    if not m or int(m.group(1)) > 23 or int(m.group(2)) > 59:
        return ""
    return f"{int(m.group(1)):02d}:{m.group(2)}"


def parse_outcome(text: str) -> Union[Played, Upcoming]:
    """A score cell becomes Played; anything else is Upcoming with its kick-off time, if any.

    Postponement notes and placeholders such as ``-`` carry no time.
    """
    cleaned = clean_text(text)
    m = _SCORE_TEXT_RE.match(cleaned)
    if m:
        return Played(score=f"{m.group(1)}-{m.group(2)}")
    return Upcoming(time=parse_clock(cleaned))


def is_valid_team_pair(home: str, away: str, skip_phrases: Iterable[str] = SECTION_HEADER_PHRASES) -> bool:
    if not home or not away:
        return False
    if len(home) <= 3 or len(away) <= 3:
        return False
    folded_home, folded_away = fold_text(home), fold_text(away)
    for phrase in skip_phrases:
        p = fold_text(phrase)
        if p in folded_home or p in folded_away:
            return False
    return True


def make_safe_filename(team_name: str) -> str:
    name = _UNSAFE_FILENAME_RE.sub("", team_name or "").strip()
    return _FILENAME_SEP_RE.sub("_", name)


def federation_logo_path(team_name: str, prefix: str = "images/team_logos") -> str:
    return f"{prefix}/{make_safe_filename(team_name)}.png"


def find_existing_logo(
    team_name: str,
    logos_dir: Union[str, pathlib.Path],
    prefix: str = "images/team_logos",
) -> Optional[str]:
    """Look up an already cached logo for a team; exact name first, then safe name."""
    base = pathlib.Path(logos_dir)
    clean = _DIVISION_MARKER_RE.sub("", team_name or "").strip()
    if not clean:
        return None
    for stem in (clean, make_safe_filename(clean)):
        for ext in LOGO_EXTENSIONS:
            if (base / f"{stem}.{ext}").is_file():
                return f"{prefix}/{stem}.{ext}"
    return None
