from __future__ import annotations

import argparse
import logging
import pathlib
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import httpx
import yaml
from pydantic import ValidationError

from .adapters import FetchTask, plan_federation, plan_league, plan_verification
from .adapters.transport import FetchError, build_client
from .events import project_fixtures
from .merge import MergeReport, dedupe_fixtures, find_key_collisions, merge_cross_source
from .models import SCRAPED_SPORTS, VOLLEYBALL_SPORTS, Event, RawFixture, SeasonCalendar, TrackedTeam
from .store import (
    EventStore,
    count_events,
    load_store,
    read_audit_fixtures,
    reconcile_store,
    save_store,
    write_audit,
)
from .utils import read_env, read_json, setup_logging

logger = logging.getLogger(__name__)

ROOT = pathlib.Path(__file__).resolve().parents[1]
DEFAULT_CONFIG = pathlib.Path(__file__).resolve().parent / "config.yaml"


def load_config(path: str | pathlib.Path | None = None) -> dict:
    cfg_path = pathlib.Path(path or read_env("FIXTURE_SYNC_CONFIG") or DEFAULT_CONFIG)
    return yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}


def _resolve(p: str | pathlib.Path) -> pathlib.Path:
    p = pathlib.Path(p)
    return p if p.is_absolute() else ROOT / p


def output_paths(cfg: dict) -> Tuple[pathlib.Path, pathlib.Path]:
    out = cfg.get("output", {}) or {}
    store = read_env("FIXTURE_SYNC_STORE") or out.get("store", "data/events.json")
    audit = read_env("FIXTURE_SYNC_AUDIT") or out.get("audit", "data/fixtures_audit.json")
    return _resolve(store), _resolve(audit)


def source_urls(cfg: dict) -> dict:
    return {
        "football": [p["url"] for p in (cfg.get("federation", {}) or {}).get("phases", [])],
        "volleyball": dict((cfg.get("league", {}) or {}).get("urls", {}) or {}),
        "volleyballVerification": dict((cfg.get("verification", {}) or {}).get("urls", {}) or {}),
    }


@dataclass
class RunSummary:
    fetched: Dict[str, int] = field(default_factory=dict)
    after_dedup: int = 0
    after_merge: int = 0
    total: int = 0
    written: int = 0
    warnings: List[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def log(self) -> None:
        logger.info("=" * 60)
        for label, n in self.fetched.items():
            logger.info("  fetched %-34s %d", label, n)
        logger.info("  football after dedup                 %d", self.after_dedup)
        logger.info("  volleyball after merge               %d", self.after_merge)
        logger.info("  total fixtures                       %d", self.total)
        logger.info("  events written to store              %d", self.written)
        for message in self.warnings:
            logger.warning("  ! %s", message)
        logger.info("=" * 60)


def plan_fetches(cfg: dict) -> List[FetchTask]:
    logos_cfg = cfg.get("logos", {}) or {}
    logos_dir = _resolve(logos_cfg["dir"]) if logos_cfg.get("dir") else None
    return [*plan_federation(cfg), *plan_league(cfg, logos_dir=logos_dir), *plan_verification(cfg)]


def run_fetches(
    tasks: List[FetchTask],
    cfg: dict,
    client: Optional[httpx.Client] = None,
) -> Tuple[Dict[str, List[RawFixture]], Dict[str, Exception]]:
    """Run every fetch task concurrently; one task failing does not stop the others."""
    if not tasks:
        return {}, {}
    if client is None:
        with build_client(cfg) as own:
            return run_fetches(tasks, cfg, own)

    workers = int((cfg.get("http", {}) or {}).get("max_workers", len(tasks)))
    done: Dict[str, List[RawFixture]] = {}
    failures: Dict[str, Exception] = {}
    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        futures = {executor.submit(task.run, client): task for task in tasks}
        for future in as_completed(futures):
            task = futures[future]
            try:
                done[task.label] = future.result()
            except Exception as e:
                logger.error("%s failed: %s", task.label, e)
                failures[task.label] = e
    # Keep task order so downstream stages see the same input every run
    results = {t.label: done[t.label] for t in tasks if t.label in done}
    return results, failures


def collect_fixtures(
    cfg: dict,
    summary: RunSummary,
    client: Optional[httpx.Client] = None,
) -> List[RawFixture]:
    calendar = SeasonCalendar.from_config(cfg)
    tasks = plan_fetches(cfg)
    results, failures = run_fetches(tasks, cfg, client)

    for task in tasks:
        if task.label in results:
            summary.fetched[task.label] = len(results[task.label])

    fatal = [t.label for t in tasks if t.source == "federation" and t.label in failures]
    for task in tasks:
        if task.label in failures and task.label not in fatal:
            summary.warn(f"{task.label} unavailable, continuing without it: {failures[task.label]}")
    if fatal:
        raise FetchError("federation", "; ".join(f"{label}: {failures[label]}" for label in fatal))

    def gathered(source: str) -> List[RawFixture]:
        out: List[RawFixture] = []
        for task in tasks:
            if task.source == source:
                out.extend(results.get(task.label, []))
        return out

    football = dedupe_fixtures(gathered("federation"))
    summary.after_dedup = len(football)

    primary = [f for f in gathered("league") if f.sport in VOLLEYBALL_SPORTS]
    secondary = [f for f in gathered("verification") if f.sport in VOLLEYBALL_SPORTS]
    report = MergeReport()
    volleyball = merge_cross_source(primary, secondary, calendar, report)
    summary.after_merge = len(volleyball)

    fixtures = football + volleyball
    for (day, month, sport), group in find_key_collisions(fixtures, calendar).items():
        teams = ", ".join(f"{f.home_team} vs {f.away_team}" for f in group)
        summary.warn(f"data integrity: {len(group)} {sport} fixtures on {day}/{month}: {teams}")
    summary.total = len(fixtures)
    return fixtures


def fetch_cmd(
    cfg: dict,
    client: Optional[httpx.Client] = None,
    summary: Optional[RunSummary] = None,
) -> List[RawFixture]:
    summary = summary if summary is not None else RunSummary()
    fixtures = collect_fixtures(cfg, summary, client)
    if not fixtures:
        summary.warn("no fixtures retrieved from any source, nothing to do")
        return []
    _, audit_path = output_paths(cfg)
    write_audit(audit_path, fixtures, title=cfg.get("title", ""), sources=source_urls(cfg))
    logger.info("audit snapshot written to %s", audit_path)
    return fixtures


def build_cmd(
    cfg: dict,
    fixtures: Optional[List[RawFixture]] = None,
    summary: Optional[RunSummary] = None,
) -> Optional[EventStore]:
    summary = summary if summary is not None else RunSummary()
    store_path, audit_path = output_paths(cfg)
    if fixtures is None:
        if audit_path.exists():
            fixtures = read_audit_fixtures(audit_path)
        else:
            # no snapshot yet; scrape now
            fixtures = fetch_cmd(cfg, summary=summary)
    if not fixtures:
        logger.info("no fixtures to reconcile, %s left untouched", store_path)
        return None

    calendar = SeasonCalendar.from_config(cfg)
    team = TrackedTeam.from_config(cfg)
    scraped_sports = tuple(cfg.get("scraped_sports") or SCRAPED_SPORTS)

    fresh = project_fixtures(fixtures, team, calendar)
    existing = load_store(store_path, scraped_sports)
    store = reconcile_store(existing, fresh, calendar, scraped_sports)
    save_store(store_path, store)
    summary.written = count_events(store)
    logger.info("event store %s synced with %d fixtures (manual edits kept)", store_path, len(fixtures))
    return store


def validate_cmd(cfg: dict) -> None:
    store_path, _ = output_paths(cfg)
    calendar = SeasonCalendar.from_config(cfg)
    ok = True
    if not store_path.exists():
        print(f"missing {store_path}")
        raise SystemExit(1)
    data = read_json(store_path)
    if not isinstance(data, dict):
        print(f"{store_path.name} not an object")
        raise SystemExit(1)
    for month in calendar.months:
        events = data.get(month)
        if not isinstance(events, list):
            print(f"{month} missing or not a list")
            ok = False
            continue
        days: List[int] = []
        for idx, raw in enumerate(events):
            try:
                ev = Event.model_validate(raw)
            except ValidationError as e:
                print(f"{month}[{idx}] invalid: {e}")
                ok = False
                continue
            if ev.score and ev.status != "played":
                print(f"{month}[{idx}] has a score but status {ev.status!r}")
                ok = False
            days.append(ev.day)
        if days != sorted(days):
            print(f"{month} not ordered by day")
            ok = False
    if not ok:
        raise SystemExit(1)
    print("ok")


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="fixture_sync", description="Team fixtures reconciliation pipeline")
    parser.add_argument("--config", help="path to config.yaml")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)
    sub.add_parser("fetch")
    sub.add_parser("build")
    sub.add_parser("all")
    sub.add_parser("validate")
    args = parser.parse_args(argv)

    setup_logging(args.verbose)
    cfg = load_config(args.config)

    if args.cmd == "validate":
        validate_cmd(cfg)
        return

    summary = RunSummary()
    try:
        if args.cmd == "fetch":
            fetch_cmd(cfg, summary=summary)
        elif args.cmd == "build":
            build_cmd(cfg, summary=summary)
        elif args.cmd == "all":
            fixtures = fetch_cmd(cfg, summary=summary)
            if fixtures:
                build_cmd(cfg, fixtures=fixtures, summary=summary)
    except FetchError as e:
        logger.error("fatal: %s", e)
        summary.log()
        raise SystemExit(1)
    summary.log()


if __name__ == "__main__":
    main()
