from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from activitee.core.clock import Clock, get_clock
from activitee.core.database import get_session
from activitee.core.dependencies import get_current_caller
from activitee.core.exceptions import AuthorizationError
from activitee.core.limits import limiter
from activitee.core.push_sender import NotificationSink, get_push_sender
from activitee.manager.crud.attendance import get_attendee_pairs
from activitee.manager.crud.events import (
    get_calendar_events,
    get_groups_by_ids,
    get_upcoming_events,
)
from activitee.manager.crud.groups import get_schedulable_groups
from activitee.manager.crud.memberships import (
    get_active_members,
    get_managed_organization_ids,
)
from activitee.manager.models.organizations import Organization
from activitee.manager.schemas.events import (
    CalendarResponse,
    CreateEventsRequest,
    CreateEventsResponse,
    EventOptionsResponse,
    UpcomingEventsResponse,
)
from activitee.manager.services.scheduler import SchedulingService

router = APIRouter(prefix="/manager/events", tags=["Manager Events"])


async def _managed_organizations(db: AsyncSession, caller_id: int):
    organization_ids = await get_managed_organization_ids(db, caller_id)
    if not organization_ids:
        raise AuthorizationError("No managed organizations", {"user_id": caller_id})

    result = await db.execute(
        select(Organization)
        .where(Organization.id.in_(organization_ids))
        .order_by(Organization.name, Organization.id)
    )
    return list(result.scalars().all())


@router.get("/options", response_model=EventOptionsResponse)
@limiter.limit("60/minute")
async def get_event_creation_options(
    request: Request,
    caller_id: int = Depends(get_current_caller),
    db: AsyncSession = Depends(get_session),
):
    """
    Everything the event form needs: managed organizations, their
    schedulable groups and the players, coaches and parents to pick from.
    """
    organizations = await _managed_organizations(db, caller_id)
    organization_ids = [o.id for o in organizations]

    groups = await get_schedulable_groups(db, organization_ids)
    members = await get_active_members(db, organization_ids)

    return EventOptionsResponse(
        organizations=organizations,
        groups=groups,
        players=members["player"],
        coaches=members["coach"],
        parents=members["parent"],
    )


@router.post("", response_model=CreateEventsResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_events(
    request: Request,
    payload: CreateEventsRequest,
    caller_id: int = Depends(get_current_caller),
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    notifier: NotificationSink = Depends(get_push_sender),
):
    """
    Create a one-off event or a weekly series for the selected groups.

    Each target group gets its own event (or series). Attendees and coaches
    are attached to every created event according to the audience targets.
    """
    service = SchedulingService(db, clock=clock, notifier=notifier)
    result = await service.create_events(caller_id, payload)

    return CreateEventsResponse(
        created_event_ids=result.created_event_ids,
        created_series_ids=result.created_series_ids,
        created_events=len(result.created_event_ids),
        created_series=len(result.created_series_ids),
        first_event_id=result.first_event_id,
        created_series_id=result.created_series_id,
        at=result.at,
    )


@router.get("/upcoming", response_model=UpcomingEventsResponse)
@limiter.limit("60/minute")
async def list_upcoming_events(
    request: Request,
    limit: int = Query(10, description="Clamped to 1..50"),
    caller_id: int = Depends(get_current_caller),
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    organization_ids = await get_managed_organization_ids(db, caller_id)
    if not organization_ids:
        raise AuthorizationError("No managed organizations", {"user_id": caller_id})

    limit = max(1, min(limit, 50))
    events = await get_upcoming_events(db, organization_ids, clock.now(), limit)
    return UpcomingEventsResponse(events=events)


@router.get("/calendar", response_model=CalendarResponse)
@limiter.limit("30/minute")
async def get_calendar(
    request: Request,
    caller_id: int = Depends(get_current_caller),
    db: AsyncSession = Depends(get_session),
):
    organizations = await _managed_organizations(db, caller_id)

    events = await get_calendar_events(db, [o.id for o in organizations])
    groups = await get_groups_by_ids(db, [e.group_id for e in events])
    attendees = await get_attendee_pairs(db, [e.id for e in events])

    return CalendarResponse(
        events=events,
        groups=[
            {
                "id": g.id,
                "name": g.name,
                "is_active": g.is_active,
                "is_archived": g.is_archive,
                "head_coach_user_id": g.head_coach_user_id,
            }
            for g in groups
        ],
        organizations=organizations,
        attendees=attendees,
    )
