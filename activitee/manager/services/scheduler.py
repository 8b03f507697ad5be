"""
Scheduling orchestrator.

Entry point for the three write operations exposed to managers:
create events (single or weekly series) for a set of groups, move a member
between groups, and remove a member from a group. Authorization and input
checks run before the first write; every event occurrence and every member
move is its own unit of work; push notifications go out only after commit.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from activitee.core.clock import Clock, system_clock
from activitee.core.database import TransactionManager
from activitee.core.exceptions import AuthorizationError, ValidationError
from activitee.core.logging_utils import log_business_event
from activitee.core.push_sender import NotificationSink, normalize_recipients, push_sender
from activitee.manager.crud.events import create_event, create_series
from activitee.manager.crud.groups import (
    get_group_coach_map,
    get_group_player_map,
    get_schedulable_groups,
)
from activitee.manager.crud.guardians import get_guardians_by_player
from activitee.manager.crud.memberships import (
    assert_superadmin_or_manager,
    get_managed_organization_ids,
    get_organization_rosters,
)
from activitee.manager.models.events import EventType
from activitee.manager.models.groups import Group
from activitee.manager.schemas.events import CreateEventsRequest
from activitee.manager.schemas.groups import MoveMemberRequest, RemoveMemberRequest
from activitee.manager.services.attendance_sync import sync_event_attendance
from activitee.manager.services.group_reassignment import (
    GroupReassignmentService,
    ReassignmentResult,
)
from activitee.manager.services.recurrence import (
    Occurrence,
    RecurrenceRule,
    clamp_duration,
    expand,
)
from activitee.manager.services.targeting import (
    NoTargets,
    GroupContext,
    OrganizationRoster,
    ResolvedTargets,
    resolve_target_groups,
    resolve_targets,
)

logger = logging.getLogger(__name__)

CALENDAR_LINK = "/manager/calendar"
GROUPS_LINK = "/manager/groups"


@dataclass
class CreateEventsResult:
    created_event_ids: List[int] = field(default_factory=list)
    created_series_ids: List[int] = field(default_factory=list)
    recipients: List[int] = field(default_factory=list)
    at: Optional[datetime] = None

    @property
    def first_event_id(self) -> Optional[int]:
        return self.created_event_ids[0] if self.created_event_ids else None

    @property
    def created_series_id(self) -> Optional[int]:
        return self.created_series_ids[0] if self.created_series_ids else None


def single_event_window(
    request: CreateEventsRequest, duration_minutes: int
) -> Tuple[datetime, datetime]:
    """
    Start and end of a one-off event.

    Training sessions always last ``duration_minutes``; other event types
    carry an explicit end that must come after the start.
    """
    if request.starts_at is None:
        raise ValidationError("Missing starts_at")

    if request.event_type == EventType.training:
        try:
            return request.starts_at, request.starts_at + timedelta(minutes=duration_minutes)
        except OverflowError:
            raise ValidationError(
                "Event ends past the last representable date",
                {"starts_at": request.starts_at.isoformat()},
            )

    if request.ends_at is None:
        raise ValidationError("Missing ends_at")
    if request.ends_at <= request.starts_at:
        raise ValidationError(
            "ends_at must be after starts_at",
            {
                "starts_at": request.starts_at.isoformat(),
                "ends_at": request.ends_at.isoformat(),
            },
        )
    return request.starts_at, request.ends_at


class SchedulingService:
    def __init__(
        self,
        session: AsyncSession,
        clock: Clock = system_clock,
        notifier: NotificationSink = push_sender,
    ):
        self.session = session
        self.clock = clock
        self.notifier = notifier

    async def create_events(
        self, caller_id: int, request: CreateEventsRequest
    ) -> CreateEventsResult:
        """
        Create one event per target group (single mode) or one series per
        target group plus its expanded occurrences (series mode), and attach
        the resolved attendees and coaches to every event created.

        Raises:
            AuthorizationError: caller manages no organization
            ValidationError: bad event window or series rule
            InvalidRangeError: series end date before its start date
            NoTargetGroupsError: no active, non-archive group selected
            PersistenceError: the store rejected a write; earlier
                occurrences stay committed
        """
        organization_ids = await get_managed_organization_ids(self.session, caller_id)
        if not organization_ids:
            raise AuthorizationError("No managed organizations", {"user_id": caller_id})

        duration = clamp_duration(request.duration_minutes)

        single_window = None
        rule = None
        occurrences: List[Occurrence] = []
        if request.mode == "single":
            single_window = single_event_window(request, duration)
        else:
            series = request.require_series()
            rule = RecurrenceRule(
                weekday=series.weekday,
                time_of_day=series.time_of_day,
                interval_weeks=series.interval_weeks,
                start_date=series.start_date,
                end_date=series.end_date,
                duration_minutes=duration,
            )
            # same dates for every group; expand once
            occurrences = list(expand(rule))

        candidates = await get_schedulable_groups(self.session, organization_ids)
        groups = resolve_target_groups(request.group_target.to_scope(), candidates)
        targets = await self._resolve_group_targets(groups, request)

        result = CreateEventsResult(at=self.clock.now())
        for group in groups:
            group_targets = targets[group.id]
            if single_window is not None:
                starts_at, ends_at = single_window
                event_id = await self._create_occurrence(
                    group, request, caller_id, starts_at, ends_at, duration, None, group_targets
                )
                result.created_event_ids.append(event_id)
                continue

            async with TransactionManager(self.session, "create_series"):
                series_row = await create_series(
                    self.session,
                    group,
                    event_type=request.event_type,
                    title=request.title,
                    location_text=request.location_text,
                    coach_note=request.coach_note,
                    duration_minutes=duration,
                    weekday=rule.weekday,
                    time_of_day=rule.time_of_day,
                    interval_weeks=rule.interval_weeks,
                    start_date=rule.start_date,
                    end_date=rule.end_date,
                    created_by=caller_id,
                )
                series_id = series_row.id
            result.created_series_ids.append(series_id)

            for occurrence in occurrences:
                event_id = await self._create_occurrence(
                    group,
                    request,
                    caller_id,
                    occurrence.starts_at,
                    occurrence.ends_at,
                    duration,
                    series_id,
                    group_targets,
                )
                result.created_event_ids.append(event_id)

        everyone = []
        for group in groups:
            everyone.extend(sorted(targets[group.id].everyone))
        result.recipients = normalize_recipients(everyone, caller_id)

        log_business_event(
            "events_created",
            "organization",
            sorted({g.organization_id for g in groups}),
            {
                "mode": request.mode,
                "event_type": request.event_type.value,
                "groups": [g.id for g in groups],
                "events": len(result.created_event_ids),
                "series": len(result.created_series_ids),
                "created_by": caller_id,
            },
        )

        if result.created_event_ids:
            await self.notifier.notify(
                result.recipients,
                "Nouvel événement" if request.mode == "single" else "Nouvelle série d'événements",
                request.title or request.event_type.value,
                CALENDAR_LINK,
            )
        return result

    async def move_member(
        self, caller_id: int, organization_id: int, request: MoveMemberRequest
    ) -> ReassignmentResult:
        await assert_superadmin_or_manager(self.session, caller_id, organization_id)

        result = await GroupReassignmentService(self.session, self.clock).move_member(
            organization_id,
            request.actor_type,
            request.user_id,
            request.to_group_id,
            from_group_id=request.from_group_id,
            remove_from_source=request.remove_from_source,
        )

        log_business_event(
            "member_moved",
            "group",
            result.linked_group_id,
            {
                "organization_id": organization_id,
                "actor_type": request.actor_type.value,
                "user_id": request.user_id,
                "from_group_id": result.unlinked_group_id,
                "moved_by": caller_id,
            },
        )
        await self.notifier.notify(
            normalize_recipients([request.user_id], caller_id),
            "Changement de groupe",
            "Vous avez été ajouté à un nouveau groupe",
            f"{GROUPS_LINK}/{result.linked_group_id}",
        )
        return result

    async def remove_member(
        self, caller_id: int, organization_id: int, request: RemoveMemberRequest
    ) -> ReassignmentResult:
        await assert_superadmin_or_manager(self.session, caller_id, organization_id)

        result = await GroupReassignmentService(self.session, self.clock).remove_member(
            organization_id, request.actor_type, request.user_id, request.group_id
        )

        log_business_event(
            "member_removed",
            "group",
            result.unlinked_group_id,
            {
                "organization_id": organization_id,
                "actor_type": request.actor_type.value,
                "user_id": request.user_id,
                "rows_removed": result.rows_removed,
                "removed_by": caller_id,
            },
        )
        await self.notifier.notify(
            normalize_recipients([request.user_id], caller_id),
            "Changement de groupe",
            "Vous avez été retiré d'un groupe",
            GROUPS_LINK,
        )
        return result

    async def _resolve_group_targets(
        self, groups: Sequence[Group], request: CreateEventsRequest
    ) -> Dict[int, ResolvedTargets]:
        """Resolve every audience once per group, from one membership snapshot"""
        scopes = request.audience_scopes()

        player_map = await get_group_player_map(self.session, [g.id for g in groups])
        coach_map = await get_group_coach_map(self.session, groups)
        rosters = await get_organization_rosters(
            self.session, {g.organization_id for g in groups}
        )

        guardians = {}
        if not isinstance(scopes.parents, NoTargets):
            linked_players = set()
            for player_ids in player_map.values():
                linked_players |= player_ids
            guardians = await get_guardians_by_player(self.session, linked_players)

        resolved = {}
        for group in groups:
            context = GroupContext(
                group_id=group.id,
                organization_id=group.organization_id,
                player_ids=player_map.get(group.id, frozenset()),
                coach_ids=coach_map.get(group.id, frozenset()),
                roster=rosters.get(group.organization_id, OrganizationRoster()),
                guardians_by_player=guardians,
            )
            resolved[group.id] = resolve_targets(scopes, context)
        return resolved

    async def _create_occurrence(
        self,
        group: Group,
        request: CreateEventsRequest,
        caller_id: int,
        starts_at: datetime,
        ends_at: datetime,
        duration: int,
        series_id: Optional[int],
        targets: ResolvedTargets,
    ) -> int:
        async with TransactionManager(self.session, "create_event"):
            event = await create_event(
                self.session,
                group,
                event_type=request.event_type,
                title=request.title,
                starts_at=starts_at,
                ends_at=ends_at,
                duration_minutes=duration,
                location_text=request.location_text,
                coach_note=request.coach_note,
                series_id=series_id,
                created_by=caller_id,
            )
            event_id = event.id
            await sync_event_attendance(self.session, event_id, targets)
        return event_id
