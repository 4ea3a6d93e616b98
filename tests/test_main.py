"""Tests for the pipeline commands in fixture_sync.main."""

import pathlib
from unittest.mock import patch

import httpx
import pytest
import yaml

from fixture_sync.adapters import FetchError, FetchTask
from fixture_sync.main import (
    ROOT,
    RunSummary,
    build_cmd,
    fetch_cmd,
    load_config,
    main,
    output_paths,
    plan_fetches,
    run_fetches,
    validate_cmd,
)
from fixture_sync.utils import read_json, write_json

from .factories import FEDERATION_PAGE, LEAGUE_PAGE, VERIFICATION_PAGE, make_fixture

PAGES = {
    "fed.test": FEDERATION_PAGE,
    "league.test": LEAGUE_PAGE,
    "verify.test": VERIFICATION_PAGE,
}

ENV_VARS = ("FIXTURE_SYNC_CONFIG", "FIXTURE_SYNC_STORE", "FIXTURE_SYNC_AUDIT", "FIXTURE_SYNC_USER_AGENT")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config(tmp_path):
    return {
        "title": "Test fixtures",
        "team": {"name": "ΝΕΑ ΣΑΛΑΜΙΝΑ", "aliases": ["NEA SALAMINA"]},
        "season": {"start_year": 2025},
        "http": {"max_workers": 3},
        "federation": {
            "team_filter": "ΝΕΑ ΣΑΛΑΜΙΝΑ ΑΜΜΟΧΩΣΤΟΥ",
            "phases": [
                {"label": "one", "url": "https://fed.test/p1"},
                {"label": "two", "url": "https://fed.test/p2"},
            ],
        },
        "league": {"urls": {"volleyball-men": "https://league.test/men"}},
        "verification": {
            "team_filters": ["NEA SALAMINA"],
            "urls": {"volleyball-men": "https://verify.test/men"},
        },
        "output": {
            "store": str(tmp_path / "events.json"),
            "audit": str(tmp_path / "fixtures_audit.json"),
        },
    }


def site_client(*failing: str) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host in failing:
            return httpx.Response(503)
        return httpx.Response(200, text=PAGES[host])

    return httpx.Client(transport=httpx.MockTransport(handler))


class TestPlanAndRun:
    """Tests for fetch planning and the concurrent runner."""

    def test_one_task_per_page(self, config) -> None:
        labels = [t.label for t in plan_fetches(config)]
        assert labels == [
            "federation:one",
            "federation:two",
            "league:volleyball-men",
            "verification:volleyball-men",
        ]

    def test_feature_flags_remove_tasks(self, config) -> None:
        config["feature_flags"] = {"enable_verification": False}
        assert {t.source for t in plan_fetches(config)} == {"federation", "league"}

    def test_failures_isolated_and_order_kept(self) -> None:
        def boom(client):
            raise httpx.ConnectError("refused")

        first = [make_fixture(date="1/10/2025")]
        last = [make_fixture(date="2/10/2025")]
        tasks = [
            FetchTask("league", "a", lambda client: first),
            FetchTask("verification", "b", boom),
            FetchTask("league", "c", lambda client: last),
        ]
        results, failures = run_fetches(tasks, {}, client=object())
        assert list(results) == ["a", "c"]
        assert results["a"] == first
        assert list(failures) == ["b"]
        assert isinstance(failures["b"], httpx.ConnectError)

    def test_no_tasks(self) -> None:
        assert run_fetches([], {}) == ({}, {})


class TestFetchCmd:
    """Tests for the fetch stage."""

    def test_collects_dedupes_and_merges(self, config, tmp_path) -> None:
        summary = RunSummary()
        with site_client() as client:
            fixtures = fetch_cmd(config, client=client, summary=summary)

        assert summary.fetched == {
            "federation:one": 2,
            "federation:two": 2,
            "league:volleyball-men": 2,
            "verification:volleyball-men": 2,
        }
        assert summary.after_dedup == 2
        assert summary.after_merge == 3
        assert summary.total == len(fixtures) == 5
        assert summary.warnings == []

        by_date = {f.date: f for f in fixtures if f.sport == "volleyball-men"}
        assert by_date["17/10/2025"].score_time == "3-1"
        assert by_date["17/10/2025"].source == "league"
        assert by_date["31/10/2025"].source == "verification"

        meta = read_json(tmp_path / "fixtures_audit.json")["metadata"]
        assert meta["totalFixtures"] == 5
        assert meta["playedFixtures"] == 3
        assert meta["sources"]["football"] == ["https://fed.test/p1", "https://fed.test/p2"]

    def test_federation_failure_is_fatal(self, config, tmp_path) -> None:
        with site_client("fed.test") as client:
            with pytest.raises(FetchError) as exc:
                fetch_cmd(config, client=client)
        assert exc.value.source == "federation"
        assert not (tmp_path / "fixtures_audit.json").exists()

    def test_verification_failure_is_not_fatal(self, config) -> None:
        summary = RunSummary()
        with site_client("verify.test") as client:
            fixtures = fetch_cmd(config, client=client, summary=summary)
        assert len(fixtures) == 4
        assert any("verification:volleyball-men" in w for w in summary.warnings)

    def test_league_failure_is_not_fatal(self, config) -> None:
        summary = RunSummary()
        with site_client("league.test") as client:
            fixtures = fetch_cmd(config, client=client, summary=summary)
        volleyball = [f for f in fixtures if f.sport == "volleyball-men"]
        assert [f.source for f in volleyball] == ["verification", "verification"]
        assert any("league:volleyball-men" in w for w in summary.warnings)

    def test_nothing_fetched_is_a_no_op(self, config, tmp_path) -> None:
        config["feature_flags"] = {
            "enable_federation": False,
            "enable_league": False,
            "enable_verification": False,
        }
        summary = RunSummary()
        assert fetch_cmd(config, client=object(), summary=summary) == []
        assert not (tmp_path / "fixtures_audit.json").exists()
        assert summary.warnings


class TestBuildCmd:
    """Tests for the reconcile stage."""

    def test_writes_all_months(self, config, tmp_path) -> None:
        with site_client() as client:
            fixtures = fetch_cmd(config, client=client)
        summary = RunSummary()
        build_cmd(config, fixtures=fixtures, summary=summary)

        store = read_json(tmp_path / "events.json")
        assert len(store) == 12
        october = store["october"]
        assert [e["day"] for e in october] == [5, 17, 19, 24, 31]
        assert october[0]["opponent"] == "ΟΜΟΝΟΙΑ 29Μ"
        assert october[0]["score"] == "2-1"
        assert october[1]["time"] == "18:00"
        assert october[1]["score"] == "3-1"
        assert october[4]["location"] == "away"
        assert october[4]["opponent"] == "OMONIA NICOSIA"
        assert summary.written == 5

    def test_reads_audit_snapshot(self, config, tmp_path) -> None:
        with site_client() as client:
            fixtures = fetch_cmd(config, client=client)
        direct = build_cmd(config, fixtures=fixtures)
        (tmp_path / "events.json").unlink()
        from_audit = build_cmd(config)
        assert {m: [e.to_dict() for e in v] for m, v in from_audit.items()} == {
            m: [e.to_dict() for e in v] for m, v in direct.items()
        }

    def test_manual_events_survive(self, config, tmp_path) -> None:
        meeting = {"day": 12, "sport": "meeting", "location": "clubhouse", "time": "19:30"}
        write_json(tmp_path / "events.json", {"october": [meeting]})
        with site_client() as client:
            fixtures = fetch_cmd(config, client=client)
        build_cmd(config, fixtures=fixtures)
        october = read_json(tmp_path / "events.json")["october"]
        assert meeting in october
        assert [e["day"] for e in october] == [5, 12, 17, 19, 24, 31]

    def test_logo_cache_from_config(self, config, tmp_path) -> None:
        logos = tmp_path / "logos"
        logos.mkdir()
        (logos / "ΟΜΟΝΟΙΑ.png").write_bytes(b"png")
        config["logos"] = {"dir": str(logos), "prefix": "images/team_logos"}
        with site_client() as client:
            build_cmd(config, fixtures=fetch_cmd(config, client=client))
        october = read_json(tmp_path / "events.json")["october"]
        assert october[3]["day"] == 24
        assert october[3]["logo"] == "images/team_logos/ΟΜΟΝΟΙΑ.png"

    def test_no_fixtures_leaves_store_alone(self, config, tmp_path) -> None:
        assert build_cmd(config, fixtures=[]) is None
        assert not (tmp_path / "events.json").exists()


class TestValidateCmd:
    def test_ok(self, config, capsys) -> None:
        with site_client() as client:
            build_cmd(config, fixtures=fetch_cmd(config, client=client))
        validate_cmd(config)
        assert capsys.readouterr().out.strip() == "ok"

    def test_missing_store(self, config) -> None:
        with pytest.raises(SystemExit):
            validate_cmd(config)

    def test_flags_problems(self, config, tmp_path, capsys) -> None:
        months = {m: [] for m in ("september", "october", "november", "december", "january", "february",
                                  "march", "april", "may", "june", "july", "august")}
        months["october"] = [
            {"day": 20, "sport": "football-men", "score": "1-0"},
            {"day": 3, "sport": "football-men"},
        ]
        del months["august"]
        write_json(tmp_path / "events.json", months)
        with pytest.raises(SystemExit) as exc:
            validate_cmd(config)
        assert exc.value.code == 1
        out = capsys.readouterr().out
        assert "october[0] has a score" in out
        assert "october not ordered by day" in out
        assert "august missing" in out


class TestConfig:
    def test_packaged_config(self) -> None:
        cfg = load_config()
        assert cfg["team"]["name"]
        assert len(cfg["federation"]["phases"]) == 2

    def test_output_paths(self, config, tmp_path) -> None:
        assert output_paths(config) == (tmp_path / "events.json", tmp_path / "fixtures_audit.json")

    def test_relative_paths_resolve_from_repo_root(self) -> None:
        store, audit = output_paths({})
        assert store == ROOT / "data" / "events.json"
        assert audit == ROOT / "data" / "fixtures_audit.json"

    def test_env_overrides(self, config, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("FIXTURE_SYNC_STORE", str(tmp_path / "other.json"))
        store, _ = output_paths(config)
        assert store == tmp_path / "other.json"


class TestMain:
    """Tests for the command-line entry point."""

    def write_config(self, config, tmp_path) -> pathlib.Path:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(config, allow_unicode=True), encoding="utf-8")
        return path

    def test_all(self, config, tmp_path) -> None:
        path = self.write_config(config, tmp_path)
        with patch("fixture_sync.main.build_client", return_value=site_client()):
            main(["--config", str(path), "all"])
        assert (tmp_path / "fixtures_audit.json").exists()
        assert len(read_json(tmp_path / "events.json")["october"]) == 5

    def test_fatal_source_exits_non_zero(self, config, tmp_path) -> None:
        path = self.write_config(config, tmp_path)
        with patch("fixture_sync.main.build_client", return_value=site_client("fed.test")):
            with pytest.raises(SystemExit) as exc:
                main(["--config", str(path), "all"])
        assert exc.value.code == 1
        assert not (tmp_path / "events.json").exists()

    def test_subcommand_required(self) -> None:
        with pytest.raises(SystemExit):
            main([])
