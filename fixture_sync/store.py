"""Persisted event store and the reconcile pass that folds scraped events into it.

The store is a JSON object of month name -> list of events. Events whose
sport is not scraped (club meetings and the like) belong to the operator:
they are loaded as plain JSON values and written back exactly as read.
Scraped-sport events that the current run no longer reports are kept as
they are.
"""

from __future__ import annotations

import logging
import pathlib
import shutil
from collections import Counter
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import orjson
from pydantic import ValidationError

from .models import DEFAULT_CALENDAR, SCRAPED_SPORTS, Event, RawFixture, SeasonCalendar
from .normalise import normalize_opponent
from .utils import iso_z, now_utc, read_json, write_json

logger = logging.getLogger(__name__)

# Entries this pipeline does not own stay raw JSON values
StoredEvent = Union[Event, Any]
EventStore = dict[str, List[StoredEvent]]
EventKey = Tuple[int, str, str]

# Copied onto a matched event only when the fresh event has a value
_OPTIONAL_UPDATE_FIELDS = ("status", "score", "logo", "venue", "competition", "penalties")

_SPORT_COUNT_KEYS = {
    "football-men": "footballFixtures",
    "volleyball-men": "volleyballMenFixtures",
    "volleyball-women": "volleyballWomenFixtures",
}


def load_store(
    path: str | pathlib.Path,
    scraped_sports: Sequence[str] = SCRAPED_SPORTS,
) -> EventStore:
    """Read the previous run's store.

    Only a file that does not parse, or is not a mapping of month -> list,
    counts as no prior state. Scraped-sport events are validated one by one;
    everything else is passed through untouched.
    """
    path = pathlib.Path(path)
    if not path.exists():
        logger.info("no event store at %s, starting empty", path)
        return {}
    try:
        data = read_json(path)
    except (OSError, orjson.JSONDecodeError) as e:
        logger.warning("event store %s is unreadable, treating as empty: %s", path, e)
        _keep_copy(path)
        return {}
    if not isinstance(data, dict) or not all(isinstance(v, list) for v in data.values()):
        logger.warning("event store %s is not a month -> list mapping, treating as empty", path)
        _keep_copy(path)
        return {}

    return {
        month: [_load_event(item, scraped_sports, f"{month}[{idx}]") for idx, item in enumerate(items)]
        for month, items in data.items()
    }


def _load_event(item: Any, scraped_sports: Sequence[str], where: str) -> StoredEvent:
    if not isinstance(item, dict) or item.get("sport") not in scraped_sports:
        return item
    try:
        return Event.model_validate(item, strict=True)
    except ValidationError as e:
        logger.warning("stored event %s kept as is, it does not validate: %s", where, e)
        return item


def _keep_copy(path: pathlib.Path) -> None:
    stamp = now_utc().strftime("%Y%m%dT%H%M%SZ")
    backup = path.with_name(f"{path.name}.corrupt-{stamp}")
    try:
        shutil.copy2(path, backup)
        logger.warning("copied unreadable store to %s", backup)
    except OSError as e:
        logger.error("could not back up %s: %s", path, e)


def dump_event(event: StoredEvent) -> Any:
    return event.to_dict() if isinstance(event, Event) else event


def save_store(path: str | pathlib.Path, store: Mapping[str, Sequence[StoredEvent]]) -> None:
    write_json(path, {month: [dump_event(e) for e in events] for month, events in store.items()})


def event_key(event: Event) -> EventKey:
    return (event.day, event.sport, normalize_opponent(event.opponent))


def _sort_day(event: StoredEvent) -> int:
    day = event.day if isinstance(event, Event) else (event.get("day") if isinstance(event, dict) else None)
    try:
        return int(day)
    except (TypeError, ValueError):
        # undated entries go last
        return 32


def _apply_update(target: Event, fresh: Event) -> None:
    target.time = fresh.time
    target.location = fresh.location
    for name in _OPTIONAL_UPDATE_FIELDS:
        value = getattr(fresh, name)
        if value:
            setattr(target, name, value)


def reconcile_month(
    existing: Sequence[StoredEvent],
    fresh: Iterable[Event],
    scraped_sports: Sequence[str] = SCRAPED_SPORTS,
) -> List[StoredEvent]:
    """Merge one month's fresh events into its stored events.

    Stored scraped-sport events matching a fresh event by (day, sport,
    opponent) are updated in place; unmatched ones and every other stored
    entry are kept. Fresh events that matched nothing are appended. The
    result is ordered by day.
    """
    fresh_by_key: dict[EventKey, Event] = {}
    for e in fresh:
        key = event_key(e)
        if key in fresh_by_key:
            logger.warning("two fresh events share key %s, keeping the first", key)
            continue
        fresh_by_key[key] = e

    consumed: set[EventKey] = set()
    for e in existing:
        if not isinstance(e, Event) or e.sport not in scraped_sports:
            continue
        key = event_key(e)
        match = fresh_by_key.get(key)
        if match is not None:
            _apply_update(e, match)
            consumed.add(key)

    added = [e for key, e in fresh_by_key.items() if key not in consumed]
    return sorted([*existing, *added], key=_sort_day)


def reconcile_store(
    existing: Mapping[str, Sequence[StoredEvent]],
    fresh_by_month: Mapping[str, Sequence[Event]],
    calendar: SeasonCalendar = DEFAULT_CALENDAR,
    scraped_sports: Sequence[str] = SCRAPED_SPORTS,
) -> EventStore:
    out: EventStore = {}
    for month in calendar.months:
        old = list(existing.get(month, []))
        fresh = fresh_by_month.get(month, [])
        if not fresh and old:
            logger.info("%s: nothing scraped, keeping %d stored events as they are", month, len(old))
            out[month] = old
            continue
        out[month] = reconcile_month(old, fresh, scraped_sports)
    # Keys outside the season are not ours to drop
    for key, events in existing.items():
        if key not in out:
            out[key] = list(events)
    return out


def count_events(store: Mapping[str, Sequence[StoredEvent]]) -> int:
    return sum(len(events) for events in store.values())


def build_audit(
    fixtures: Sequence[RawFixture],
    *,
    title: str = "",
    sources: Optional[Mapping[str, Any]] = None,
) -> dict[str, Any]:
    by_sport = Counter(f.sport for f in fixtures)
    by_status = Counter(f.status for f in fixtures)
    metadata: dict[str, Any] = {
        "title": title,
        "scrapedAt": iso_z(now_utc()),
        "sources": dict(sources or {}),
        "totalFixtures": len(fixtures),
    }
    for sport, key in _SPORT_COUNT_KEYS.items():
        metadata[key] = by_sport.get(sport, 0)
    metadata["playedFixtures"] = by_status.get("Played", 0)
    metadata["upcomingFixtures"] = by_status.get("Upcoming", 0)
    return {"metadata": metadata, "fixtures": [f.to_wire() for f in fixtures]}


def write_audit(
    path: str | pathlib.Path,
    fixtures: Sequence[RawFixture],
    *,
    title: str = "",
    sources: Optional[Mapping[str, Any]] = None,
) -> None:
    write_json(path, build_audit(fixtures, title=title, sources=sources))


def read_audit_fixtures(path: str | pathlib.Path) -> List[RawFixture]:
    data = read_json(path)
    return [RawFixture.from_wire(item) for item in data.get("fixtures", [])]
