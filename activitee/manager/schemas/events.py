import re
from datetime import date, datetime, time
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from activitee.core.exceptions import ValidationError
from activitee.manager.models.attendance import AttendanceStatus
from activitee.manager.models.events import EventStatus, EventType
from activitee.manager.schemas.targets import GroupTargetIn, TargetScopeIn
from activitee.manager.services.targeting import AudienceScopes


def _blank_to_none(v):
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class SeriesRuleIn(BaseModel):
    """Weekly recurrence of a series (weekday 0 = Sunday .. 6 = Saturday)"""

    weekday: int = Field(..., ge=0, le=6)
    time_of_day: time = Field(..., description="HH:MM or HH:MM:SS, local time")
    interval_weeks: int = Field(1, description="Values below 1 are raised to 1")
    start_date: date
    end_date: date

    @field_validator("time_of_day", mode="before")
    @classmethod
    def parse_time_of_day(cls, v):
        if isinstance(v, str):
            v = v.strip()
            # naive wall-clock only; offsets such as "+02:00" are rejected
            if not re.match(r"^\d{2}:\d{2}(:\d{2})?$", v):
                raise ValueError("Invalid time format. Use HH:MM or HH:MM:SS")
            try:
                return time.fromisoformat(v)
            except ValueError:
                raise ValueError("Invalid time format. Use HH:MM or HH:MM:SS")
        if isinstance(v, time) and v.tzinfo is not None:
            return v.replace(tzinfo=None)
        return v

    @field_validator("interval_weeks", mode="before")
    @classmethod
    def raise_interval(cls, v):
        if v is None:
            return 1
        return max(1, int(v))


class CreateEventsRequest(BaseModel):
    mode: Literal["single", "series"]
    event_type: EventType
    title: Optional[str] = Field(None, max_length=200)
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(
        None, description="Defaults to 60, clamped to 1..240"
    )
    location_text: Optional[str] = Field(None, max_length=255)
    coach_note: Optional[str] = None
    series: Optional[SeriesRuleIn] = None

    group_target: GroupTargetIn
    player_target: TargetScopeIn = Field(default_factory=TargetScopeIn)
    coach_target: TargetScopeIn = Field(default_factory=TargetScopeIn)
    parent_target: TargetScopeIn = Field(default_factory=TargetScopeIn)

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("title", "location_text", "coach_note")
    @classmethod
    def blank_is_none(cls, v):
        return _blank_to_none(v)

    @field_validator("starts_at", "ends_at")
    @classmethod
    def wall_clock(cls, v):
        # wall-clock as written by the client; no timezone conversion
        if v is not None and v.tzinfo is not None:
            return v.replace(tzinfo=None)
        return v

    def audience_scopes(self) -> AudienceScopes:
        return AudienceScopes(
            players=self.player_target.to_scope(),
            coaches=self.coach_target.to_scope(),
            parents=self.parent_target.to_scope(),
        )

    def require_series(self) -> SeriesRuleIn:
        if self.series is None:
            raise ValidationError("Missing series payload")
        return self.series


class CreateEventsResponse(BaseModel):
    ok: bool = True
    created_event_ids: List[int]
    created_series_ids: List[int]
    created_events: int
    created_series: int
    first_event_id: Optional[int] = None
    created_series_id: Optional[int] = None
    at: datetime


class EventRead(BaseModel):
    id: int
    group_id: int
    organization_id: int
    event_type: EventType
    title: Optional[str] = None
    starts_at: datetime
    ends_at: datetime
    duration_minutes: int
    location_text: Optional[str] = None
    coach_note: Optional[str] = None
    series_id: Optional[int] = None
    status: EventStatus

    model_config = ConfigDict(from_attributes=True)


class UpcomingEventsResponse(BaseModel):
    events: List[EventRead]


class CalendarGroupRead(BaseModel):
    id: int
    name: Optional[str] = None
    is_active: bool
    is_archived: bool
    head_coach_user_id: Optional[int] = None


class AttendeePairRead(BaseModel):
    event_id: int
    player_id: int
    status: AttendanceStatus


class OrganizationRead(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class CalendarResponse(BaseModel):
    events: List[EventRead]
    groups: List[CalendarGroupRead]
    organizations: List[OrganizationRead]
    attendees: List[AttendeePairRead]


class OptionGroupRead(BaseModel):
    id: int
    name: str
    organization_id: int
    head_coach_user_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class OptionMemberRead(BaseModel):
    id: int
    organization_id: int


class EventOptionsResponse(BaseModel):
    organizations: List[OrganizationRead]
    groups: List[OptionGroupRead]
    players: List[OptionMemberRead]
    coaches: List[OptionMemberRead]
    parents: List[OptionMemberRead]
