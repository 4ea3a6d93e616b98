from __future__ import annotations

import re
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

Sport = Literal["football-men", "volleyball-men", "volleyball-women"]
Status = Literal["Played", "Upcoming"]

SCRAPED_SPORTS: tuple[str, ...] = ("football-men", "volleyball-men", "volleyball-women")
VOLLEYBALL_SPORTS: tuple[str, ...] = ("volleyball-men", "volleyball-women")

SCORE_RE = re.compile(r"^\d+-\d+$")


class Played(BaseModel):
    kind: Literal["played"] = "played"
    score: str

    @field_validator("score")
    @classmethod
    def _is_score(cls, v: str) -> str:
        if not SCORE_RE.match(v):
            raise ValueError(f"not a score: {v!r}")
        return v


class Upcoming(BaseModel):
    kind: Literal["upcoming"] = "upcoming"
    time: str = ""  # HH:MM when known

    @field_validator("time")
    @classmethod
    def _is_not_score(cls, v: str) -> str:
        if SCORE_RE.match(v):
            raise ValueError(f"upcoming fixture carries a score: {v!r}")
        return v


Outcome = Annotated[Union[Played, Upcoming], Field(discriminator="kind")]


class RawFixture(BaseModel):
    """One match as reported by a single source, before projection.

    The source pages overload a single cell with either the score or the
    kick-off time; ``outcome`` holds that cell as a tagged variant and
    ``to_wire`` puts the overload back for the audit artifact.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    date: str  # source encoding: "5 Οκτωβρίου 2025", "17/10/2025", "17/10"
    home_team: str
    away_team: str
    outcome: Outcome
    sport: Sport
    home_logo: Optional[str] = None
    away_logo: Optional[str] = None
    venue: str = ""
    match_time: Optional[str] = None  # explicit start time when the source has one
    competition: Optional[Literal["league", "cup"]] = None
    penalties: Optional[str] = None
    source: str = ""

    @property
    def played(self) -> bool:
        return isinstance(self.outcome, Played)

    @property
    def status(self) -> Status:
        return "Played" if self.played else "Upcoming"

    @property
    def score_time(self) -> str:
        if isinstance(self.outcome, Played):
            return self.outcome.score
        return self.outcome.time

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude={"outcome"})
        data["scoreTime"] = self.score_time
        data["status"] = self.status
        return data

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "RawFixture":
        payload = {k: v for k, v in data.items() if k not in ("scoreTime", "status")}
        score_time = str(data.get("scoreTime") or "")
        if data.get("status") == "Played":
            payload["outcome"] = Played(score=score_time)
        else:
            payload["outcome"] = Upcoming(time=score_time)
        return cls.model_validate(payload)


class Event(BaseModel):
    """A fixture as persisted in the event store, seen from the tracked team.

    Unknown keys are kept so that fields an operator added by hand survive
    a reconcile pass.
    """

    model_config = ConfigDict(extra="allow")

    day: int = Field(ge=1, le=31)
    sport: str
    location: str = ""
    opponent: str = ""
    time: str = ""
    venue: Optional[str] = None
    logo: Optional[str] = None
    status: Optional[str] = None
    score: Optional[str] = None
    competition: Optional[str] = None
    penalties: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


MONTH_NUMBERS: dict[str, int] = {
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
    "july": 7,
    "august": 8,
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
}

SEASON_MONTHS: list[str] = [
    "september", "october", "november", "december",
    "january", "february", "march", "april",
    "may", "june", "july", "august",
]

# Genitive month names as printed by the federation site
GREEK_MONTHS: dict[str, int] = {
    "Σεπτεμβρίου": 9,
    "Οκτωβρίου": 10,
    "Νοεμβρίου": 11,
    "Δεκεμβρίου": 12,
    "Ιανουαρίου": 1,
    "Φεβρουαρίου": 2,
    "Μαρτίου": 3,
    "Απριλίου": 4,
    "Μαΐου": 5,
    "Ιουνίου": 6,
    "Ιουλίου": 7,
    "Αυγούστου": 8,
}


class SeasonCalendar(BaseModel):
    """Month buckets of one season, shared by every stage that needs dates."""

    start_year: int
    months: list[str] = Field(default_factory=lambda: list(SEASON_MONTHS))
    localized_months: dict[str, int] = Field(default_factory=lambda: dict(GREEK_MONTHS))

    @model_validator(mode="after")
    def _check_months(self) -> "SeasonCalendar":
        if sorted(self.months) != sorted(MONTH_NUMBERS):
            raise ValueError("season months must list each calendar month exactly once")
        bad = {k: v for k, v in self.localized_months.items() if not 1 <= v <= 12}
        if bad:
            raise ValueError(f"localized month numbers out of range: {bad}")
        return self

    def month_name(self, month: int) -> Optional[str]:
        for name in self.months:
            if MONTH_NUMBERS[name] == month:
                return name
        return None

    def season_index(self, month: int) -> int:
        name = self.month_name(month)
        return self.months.index(name) if name else len(self.months)

    def year_for(self, month: int) -> int:
        first = MONTH_NUMBERS[self.months[0]]
        return self.start_year if month >= first else self.start_year + 1

    @classmethod
    def from_config(cls, config: dict) -> "SeasonCalendar":
        season = config.get("season", {}) or {}
        data: dict[str, Any] = {"start_year": int(season.get("start_year", DEFAULT_CALENDAR.start_year))}
        if season.get("months"):
            data["months"] = [str(m).lower() for m in season["months"]]
        if season.get("localized_months"):
            data["localized_months"] = {str(k): int(v) for k, v in season["localized_months"].items()}
        return cls(**data)


DEFAULT_CALENDAR = SeasonCalendar(start_year=2025)


class TrackedTeam(BaseModel):
    name: str
    aliases: list[str] = Field(default_factory=list)

    def matches(self, team_name: str) -> bool:
        upper = (team_name or "").upper()
        return any(n.upper() in upper for n in (self.name, *self.aliases) if n)

    @classmethod
    def from_config(cls, config: dict) -> "TrackedTeam":
        team = config.get("team", {}) or {}
        return cls(name=team.get("name", ""), aliases=list(team.get("aliases", []) or []))
