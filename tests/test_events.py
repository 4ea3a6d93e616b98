"""Tests for fixture_sync.events."""

from fixture_sync.events import fixture_to_event, project_fixtures
from fixture_sync.models import SeasonCalendar

from .factories import TEAM, make_fixture


class TestFixtureToEvent:
    """Tests for projecting one fixture onto the team's calendar."""

    def test_home_played(self) -> None:
        month, event = fixture_to_event(make_fixture(score_time="2-1"), TEAM)
        assert month == "october"
        assert event.to_dict() == {
            "day": 5,
            "sport": "football-men",
            "location": "home",
            "opponent": "ΟΜΟΝΟΙΑ",
            "time": "",
            "status": "played",
            "score": "2-1",
        }

    def test_away_upcoming(self) -> None:
        fixture = make_fixture(
            date="19 Οκτωβρίου 2025",
            home_team="ΕΘΝΙΚΟΣ ΑΧΝΑΣ",
            away_team="ΝΕΑ ΣΑΛΑΜΙΝΑ ΑΜΜΟΧΩΣΤΟΥ",
            score_time="18:00",
        )
        month, event = fixture_to_event(fixture, TEAM)
        assert month == "october"
        assert event.location == "away"
        assert event.opponent == "ΕΘΝΙΚΟΣ ΑΧΝΑΣ"
        assert event.time == "18:00"
        assert event.status is None
        assert "score" not in event.to_dict()

    def test_postponed_fixture_has_no_time(self) -> None:
        _, event = fixture_to_event(make_fixture(date="19 Οκτωβρίου 2025", score_time="Αναβολή"), TEAM)
        assert event.time == ""
        assert event.status is None

    def test_explicit_match_time_wins(self) -> None:
        fixture = make_fixture(date="17/10/2025", score_time="3-1", match_time="18:00", sport="volleyball-men")
        _, event = fixture_to_event(fixture, TEAM)
        assert event.time == "18:00"
        assert event.score == "3-1"

    def test_latin_alias_orients_the_event(self) -> None:
        fixture = make_fixture(
            date="31/10/2025",
            home_team="OMONIA NICOSIA",
            away_team="NEA SALAMINA FAMAGUSTA",
            score_time="19:00",
            sport="volleyball-women",
        )
        _, event = fixture_to_event(fixture, TEAM)
        assert event.location == "away"
        assert event.opponent == "OMONIA NICOSIA"

    def test_opponent_logo_venue_and_tags(self) -> None:
        fixture = make_fixture(
            score_time="1-1",
            home_logo="images/team_logos/ΝΕΑ_ΣΑΛΑΜΙΝΑ.png",
            away_logo="images/team_logos/ΟΜΟΝΟΙΑ.png",
            venue="ΓΗΠΕΔΟ ΑΜΜΟΧΩΣΤΟΣ",
            competition="cup",
            penalties="4-3",
        )
        _, event = fixture_to_event(fixture, TEAM)
        assert event.logo == "images/team_logos/ΟΜΟΝΟΙΑ.png"
        assert event.venue == "ΓΗΠΕΔΟ ΑΜΜΟΧΩΣΤΟΣ"
        assert event.competition == "cup"
        assert event.penalties == "4-3"

    def test_unparseable_date(self) -> None:
        assert fixture_to_event(make_fixture(date="TBD"), TEAM) is None

    def test_calendar_month_names(self) -> None:
        calendar = SeasonCalendar(start_year=2025, localized_months={"October": 10})
        month, _ = fixture_to_event(make_fixture(date="5 October 2025"), TEAM, calendar)
        assert month == "october"


class TestProjectFixtures:
    def test_groups_by_month(self) -> None:
        fixtures = [
            make_fixture(date="5 Οκτωβρίου 2025"),
            make_fixture(date="2 Νοεμβρίου 2025", score_time="16:00"),
            make_fixture(date="19/10/2025", score_time="18:00"),
            make_fixture(date="nonsense"),
        ]
        grouped = project_fixtures(fixtures, TEAM)
        assert sorted(grouped) == ["november", "october"]
        assert [e.day for e in grouped["october"]] == [5, 19]
        assert grouped["november"][0].time == "16:00"

    def test_empty(self) -> None:
        assert project_fixtures([], TEAM) == {}
