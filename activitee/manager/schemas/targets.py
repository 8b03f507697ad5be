from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from activitee.manager.services.targeting import (
    ALL_TARGETS,
    NO_TARGETS,
    GroupScope,
    TargetScope,
    selected,
)


def _unique_ids(values: List[int]) -> List[int]:
    seen = set()
    unique = []
    for value in values:
        if value not in seen:
            seen.add(value)
            unique.append(value)
    return unique


class TargetScopeIn(BaseModel):
    """Targeting directive for one audience (players, coaches or parents)"""

    mode: Literal["none", "all", "selected"] = "none"
    ids: List[int] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("ids")
    @classmethod
    def dedupe_ids(cls, v):
        return _unique_ids(v)

    def to_scope(self) -> TargetScope:
        if self.mode == "all":
            return ALL_TARGETS
        if self.mode == "selected":
            return selected(self.ids)
        return NO_TARGETS


class GroupTargetIn(BaseModel):
    mode: Literal["all", "selected"]
    ids: List[int] = Field(default_factory=list)

    @field_validator("ids")
    @classmethod
    def dedupe_ids(cls, v):
        return _unique_ids(v)

    def to_scope(self) -> GroupScope:
        if self.mode == "all":
            return ALL_TARGETS
        return selected(self.ids)
