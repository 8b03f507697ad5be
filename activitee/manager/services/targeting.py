"""
Target resolution: who an event applies to inside one group.

Every function here is pure over a snapshot of membership and link data, so
resolving the same scopes against the same snapshot always gives the same
sets.
"""
from dataclasses import dataclass, field
from typing import (
    AbstractSet,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Union,
)

from activitee.core.exceptions import NoTargetGroupsError


@dataclass(frozen=True)
class NoTargets:
    pass


@dataclass(frozen=True)
class AllTargets:
    pass


@dataclass(frozen=True)
class SelectedTargets:
    ids: FrozenSet[int] = frozenset()


TargetScope = Union[NoTargets, AllTargets, SelectedTargets]
GroupScope = Union[AllTargets, SelectedTargets]

NO_TARGETS = NoTargets()
ALL_TARGETS = AllTargets()


def selected(ids: Iterable[int]) -> SelectedTargets:
    return SelectedTargets(frozenset(ids))


@dataclass(frozen=True)
class AudienceScopes:
    players: TargetScope = NO_TARGETS
    # NoTargets for coaches means "the group's own coaches"
    coaches: TargetScope = NO_TARGETS
    parents: TargetScope = NO_TARGETS


@dataclass(frozen=True)
class OrganizationRoster:
    """Active memberships of one organization, per role"""

    players: FrozenSet[int] = frozenset()
    coaches: FrozenSet[int] = frozenset()
    parents: FrozenSet[int] = frozenset()


@dataclass(frozen=True)
class GroupContext:
    group_id: int
    organization_id: int
    player_ids: FrozenSet[int]
    coach_ids: FrozenSet[int]
    roster: OrganizationRoster
    guardians_by_player: Mapping[int, AbstractSet[int]] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedTargets:
    players: FrozenSet[int] = frozenset()
    coaches: FrozenSet[int] = frozenset()
    parents: FrozenSet[int] = frozenset()

    @property
    def attendee_ids(self) -> FrozenSet[int]:
        """Attendance rows do not distinguish players from guardians"""
        return self.players | self.parents

    @property
    def everyone(self) -> FrozenSet[int]:
        return self.players | self.coaches | self.parents


class SchedulableGroup(Protocol):
    id: int
    is_active: bool

    @property
    def is_archive(self) -> bool: ...


def effective_coach_ids(
    head_coach_user_id: Optional[int], linked_coach_ids: Iterable[int]
) -> FrozenSet[int]:
    """Coaches of a group: explicit links plus the head coach"""
    coach_ids = set(linked_coach_ids)
    if head_coach_user_id is not None:
        coach_ids.add(head_coach_user_id)
    return frozenset(coach_ids)


def _pick(scope: TargetScope, pool: FrozenSet[int]) -> FrozenSet[int]:
    if isinstance(scope, AllTargets):
        return pool
    if isinstance(scope, SelectedTargets):
        # ids outside the pool are dropped silently
        return scope.ids & pool
    return frozenset()


def resolve_players(scope: TargetScope, context: GroupContext) -> FrozenSet[int]:
    return _pick(scope, context.player_ids)


def resolve_coaches(scope: TargetScope, context: GroupContext) -> FrozenSet[int]:
    # "all" and "selected" are club-wide, broader than player resolution
    if isinstance(scope, NoTargets):
        return context.coach_ids
    return _pick(scope, context.roster.coaches)


def resolve_parents(
    scope: TargetScope, context: GroupContext, player_targets: AbstractSet[int]
) -> FrozenSet[int]:
    if isinstance(scope, NoTargets):
        return frozenset()

    parents = set(_pick(scope, context.roster.parents))
    for player_id in player_targets:
        for guardian_id in context.guardians_by_player.get(player_id, ()):
            if guardian_id in context.roster.parents:
                parents.add(guardian_id)
    return frozenset(parents)


def resolve_targets(scopes: AudienceScopes, context: GroupContext) -> ResolvedTargets:
    players = resolve_players(scopes.players, context)
    return ResolvedTargets(
        players=players,
        coaches=resolve_coaches(scopes.coaches, context),
        parents=resolve_parents(scopes.parents, context, players),
    )


def resolve_target_groups(
    scope: GroupScope, groups: Sequence[SchedulableGroup]
) -> List[SchedulableGroup]:
    """
    Groups an event batch is created for, in the order given.

    Inactive and archive groups are never returned.

    Raises:
        NoTargetGroupsError: nothing is left to schedule for
    """
    candidates = [g for g in groups if g.is_active and not g.is_archive]

    if isinstance(scope, AllTargets):
        chosen = candidates
    elif isinstance(scope, SelectedTargets):
        chosen = [g for g in candidates if g.id in scope.ids]
    else:
        chosen = []

    if not chosen:
        requested = sorted(scope.ids) if isinstance(scope, SelectedTargets) else []
        raise NoTargetGroupsError(requested)
    return chosen
