from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from activitee.manager.schemas.events import OrganizationRead
from activitee.manager.services.group_reassignment import ActorType


class MoveMemberRequest(BaseModel):
    actor_type: ActorType
    user_id: int = Field(..., gt=0)
    to_group_id: int = Field(..., gt=0)
    from_group_id: Optional[int] = Field(None, gt=0)
    remove_from_source: bool = False

    @field_validator("from_group_id", mode="before")
    @classmethod
    def null_string_is_none(cls, v):
        # older clients send "null" for "no source group"
        if v in ("", "null"):
            return None
        return v


class RemoveMemberRequest(BaseModel):
    actor_type: ActorType
    user_id: int = Field(..., gt=0)
    group_id: int = Field(..., gt=0)


class OkResponse(BaseModel):
    ok: bool = True


class AssignmentGroupRead(BaseModel):
    id: int
    name: str
    is_active: bool
    head_coach_user_id: Optional[int] = None
    organization_id: int

    model_config = ConfigDict(from_attributes=True)


class GroupPlayerRead(BaseModel):
    group_id: int
    player_user_id: int


class GroupCoachRead(BaseModel):
    group_id: int
    coach_user_id: int
    is_head: bool


class GroupAssignmentsResponse(BaseModel):
    organization: OrganizationRead
    groups: List[AssignmentGroupRead]
    players: List[int]
    coaches: List[int]
    group_players: List[GroupPlayerRead]
    group_coaches: List[GroupCoachRead]
