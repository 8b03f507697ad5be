from datetime import date, datetime, time
from typing import Iterable, List, Optional

from sqlalchemy import and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from activitee.core.database import db_operation
from activitee.manager.models.events import Event, EventSeries, EventStatus, EventType
from activitee.manager.models.groups import Group


async def create_series(
    session: AsyncSession,
    group: Group,
    *,
    event_type: EventType,
    title: Optional[str],
    location_text: Optional[str],
    coach_note: Optional[str],
    duration_minutes: int,
    weekday: int,
    time_of_day: time,
    interval_weeks: int,
    start_date: date,
    end_date: date,
    created_by: int,
) -> EventSeries:
    series = EventSeries(
        group_id=group.id,
        organization_id=group.organization_id,
        event_type=event_type,
        title=title,
        location_text=location_text,
        coach_note=coach_note,
        duration_minutes=duration_minutes,
        weekday=weekday,
        time_of_day=time_of_day,
        interval_weeks=interval_weeks,
        start_date=start_date,
        end_date=end_date,
        is_active=True,
        created_by=created_by,
    )
    session.add(series)
    await session.flush()
    return series


async def create_event(
    session: AsyncSession,
    group: Group,
    *,
    event_type: EventType,
    title: Optional[str],
    starts_at: datetime,
    ends_at: datetime,
    duration_minutes: int,
    location_text: Optional[str],
    coach_note: Optional[str],
    series_id: Optional[int],
    created_by: int,
) -> Event:
    event = Event(
        group_id=group.id,
        organization_id=group.organization_id,
        event_type=event_type,
        title=title,
        starts_at=starts_at,
        ends_at=ends_at,
        duration_minutes=duration_minutes,
        location_text=location_text,
        coach_note=coach_note,
        series_id=series_id,
        status=EventStatus.scheduled,
        created_by=created_by,
    )
    session.add(event)
    await session.flush()
    return event


@db_operation
async def get_future_event_ids(
    session: AsyncSession, group_id: int, now: datetime
) -> List[int]:
    """Scheduled events of a group that start strictly after ``now``"""
    result = await session.execute(
        select(Event.id)
        .where(
            and_(
                Event.group_id == group_id,
                Event.starts_at > now,
                Event.status == EventStatus.scheduled,
            )
        )
        .order_by(Event.starts_at, Event.id)
    )
    return list(result.scalars().all())


@db_operation
async def get_upcoming_events(
    session: AsyncSession,
    organization_ids: Iterable[int],
    now: datetime,
    limit: int = 10,
) -> List[Event]:
    organization_ids = list(set(organization_ids))
    if not organization_ids:
        return []

    result = await session.execute(
        select(Event)
        .where(
            and_(
                Event.organization_id.in_(organization_ids),
                Event.status == EventStatus.scheduled,
                Event.starts_at >= now,
            )
        )
        .order_by(Event.starts_at, Event.id)
        .limit(limit)
    )
    return list(result.scalars().all())


@db_operation
async def get_calendar_events(
    session: AsyncSession, organization_ids: Iterable[int]
) -> List[Event]:
    organization_ids = list(set(organization_ids))
    if not organization_ids:
        return []

    result = await session.execute(
        select(Event)
        .where(Event.organization_id.in_(organization_ids))
        .order_by(Event.starts_at, Event.id)
    )
    return list(result.scalars().all())


@db_operation
async def get_groups_by_ids(session: AsyncSession, group_ids: Iterable[int]) -> List[Group]:
    group_ids = list(set(group_ids))
    if not group_ids:
        return []

    result = await session.execute(
        select(Group).where(Group.id.in_(group_ids)).order_by(Group.name, Group.id)
    )
    return list(result.scalars().all())
