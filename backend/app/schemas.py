from datetime import date, datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MatchStatus = Literal["waiting", "inProgress", "finished", "cancelled"]
Side = Literal["A", "B"]


def _trimmed(value: Optional[str], field_name: str, *, required: bool) -> Optional[str]:
    if value is None:
        if required:
            raise ValueError(f"{field_name} is required")
        return None
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    trimmed = value.strip()
    if not trimmed:
        if required:
            raise ValueError(f"{field_name} must not be empty")
        return None
    return trimmed


class DoubleMember(BaseModel):
    name: str
    country: Optional[str] = None


class PlayerIn(BaseModel):
    name: str = Field(..., max_length=200)
    country: Optional[str] = Field(default=None, max_length=10)
    members: List[DoubleMember] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _trimmed(value, "name", required=True)

    @field_validator("country", mode="before")
    @classmethod
    def _normalize_country(cls, value: Optional[str]) -> Optional[str]:
        country = _trimmed(value, "country", required=False)
        return country.upper() if country else None


class PlayerOut(BaseModel):
    name: str
    country: Optional[str] = None
    members: List[DoubleMember] = Field(default_factory=list)


class MatchCreate(BaseModel):
    """Match metadata as supplied by the tournament feed."""

    feed_match_id: Optional[str] = Field(default=None, alias="feedMatchId")
    championship_id: Optional[str] = Field(default=None, alias="championshipId")
    encounter_id: Optional[str] = Field(default=None, alias="encounterId")
    date: Optional[str] = None
    table: int = Field(..., ge=1)
    event_key: Optional[str] = Field(default=None, alias="eventKey")
    match_desc: Optional[str] = Field(default=None, alias="matchDesc")
    scheduled_time: Optional[str] = Field(default=None, alias="scheduledTime")
    match_number: Optional[int] = Field(default=None, alias="matchNumber", ge=0)
    type: Literal["single", "double"] = "single"
    player1: PlayerIn
    player2: PlayerIn

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @field_validator("date")
    @classmethod
    def _validate_date(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        try:
            return date.fromisoformat(value.strip()).isoformat()
        except ValueError:
            raise ValueError("date must be formatted as YYYY-MM-DD")

    @field_validator("feed_match_id", "encounter_id", "championship_id", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Optional[str]) -> Optional[str]:
        return _trimmed(value, "id", required=False)


class MatchOut(BaseModel):
    """Match record together with its derived scoring view."""

    id: str
    feed_match_id: Optional[str] = Field(default=None, alias="feedMatchId")
    championship_id: Optional[str] = Field(default=None, alias="championshipId")
    encounter_id: Optional[str] = Field(default=None, alias="encounterId")
    date: Optional[str] = None
    table: int
    event_key: Optional[str] = Field(default=None, alias="eventKey")
    match_desc: Optional[str] = Field(default=None, alias="matchDesc")
    scheduled_time: Optional[str] = Field(default=None, alias="scheduledTime")
    match_number: Optional[int] = Field(default=None, alias="matchNumber")
    type: str = "single"
    player1: PlayerOut
    player2: PlayerOut
    sets: List[Dict[str, int]]
    sets_won: Dict[str, int] = Field(alias="setsWon")
    display_sets_won: Dict[str, int] = Field(alias="displaySetsWon")
    status: MatchStatus
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    side_flipped: bool = Field(alias="sideFlipped")
    left_side: Side = Field(alias="leftSide")
    can_launch_set: bool = Field(alias="canLaunchSet")
    can_terminate: bool = Field(alias="canTerminate")
    version: int

    model_config = ConfigDict(populate_by_name=True)


class MatchActionIn(BaseModel):
    """Operator event. Its content is checked by the scoring engine, which
    rejects unknown types, sides and deltas with a 400."""

    type: str
    by: Optional[str] = None
    delta: int = 1
    expected_version: Optional[int] = Field(default=None, alias="expectedVersion", ge=0)

    model_config = ConfigDict(populate_by_name=True)

    def to_event(self) -> dict:
        event: dict = {"type": self.type}
        if self.type == "POINT":
            event["by"] = self.by
            event["delta"] = self.delta
        return event


class MatchActionOut(BaseModel):
    ok: bool = True
    changed: bool
    sides_flipped: bool = Field(alias="sidesFlipped")
    winner: Optional[Side] = None
    match: MatchOut

    model_config = ConfigDict(populate_by_name=True)


class AutoFinishIn(BaseModel):
    encounter_id: str = Field(..., alias="encounterId", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class AutoFinishOut(BaseModel):
    updated: int


class TableStatusOut(BaseModel):
    table: int
    has_active_match: bool = Field(alias="hasActiveMatch")
    active_match_id: Optional[str] = Field(default=None, alias="activeMatchId")

    model_config = ConfigDict(populate_by_name=True)


class MilestoneCreate(BaseModel):
    encounter_id: Optional[str] = Field(default=None, alias="encounterId")

    model_config = ConfigDict(populate_by_name=True)


class MilestoneMatchInfo(BaseModel):
    match_id: str = Field(alias="matchId")
    player1_name: str = Field(alias="player1Name")
    player2_name: str = Field(alias="player2Name")
    player1_country: Optional[str] = Field(default=None, alias="player1Country")
    player2_country: Optional[str] = Field(default=None, alias="player2Country")
    match_start_time: datetime = Field(alias="matchStartTime")
    time_since_start: int = Field(alias="timeSinceStart", ge=0)
    current_score: Dict[str, int] = Field(alias="currentScore")
    sets_won: Dict[str, int] = Field(alias="setsWon")
    match_status: MatchStatus = Field(alias="matchStatus")
    match_desc: Optional[str] = Field(default=None, alias="matchDesc")

    model_config = ConfigDict(populate_by_name=True)


class MilestoneOut(BaseModel):
    id: str
    table_number: int = Field(alias="tableNumber")
    encounter_id: Optional[str] = Field(default=None, alias="encounterId")
    match_id: Optional[str] = Field(default=None, alias="matchId")
    date: str
    time: str
    recorded_at: datetime = Field(alias="recordedAt")
    match_info: Optional[MilestoneMatchInfo] = Field(default=None, alias="matchInfo")

    model_config = ConfigDict(populate_by_name=True)
