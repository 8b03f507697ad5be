from datetime import date, datetime, time, timedelta, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.future import select

from activitee.core.config import ARCHIVE_GROUP_NAME
from activitee.core.exceptions import (
    AuthorizationError,
    InvalidRangeError,
    NoTargetGroupsError,
    PersistenceError,
    ValidationError,
)
from activitee.manager.models import (
    Attendee,
    CoachAssignment,
    Event,
    EventSeries,
    GroupPlayer,
)
from activitee.manager.schemas.events import CreateEventsRequest
from activitee.manager.schemas.groups import MoveMemberRequest, RemoveMemberRequest
from activitee.manager.services import scheduler
from activitee.manager.services.attendance_sync import sync_event_attendance
from activitee.manager.services.scheduler import SchedulingService

MANAGER = 1
HEAD = 10
COACH = 11
P1, P2 = 21, 22
PARENT = 31
OUTSIDER = 99


@pytest.fixture
def service(session, clock, push):
    return SchedulingService(session, clock=clock, notifier=push)


async def seed_club(seed):
    organization = await seed.organization()
    await seed.member(organization, MANAGER, "manager")
    for user_id in (HEAD, COACH):
        await seed.member(organization, user_id, "coach")
    for user_id in (P1, P2):
        await seed.member(organization, user_id, "player")
    await seed.member(organization, PARENT, "parent")

    group = await seed.group(organization, "U12", head_coach_user_id=HEAD)
    other = await seed.group(organization, "U14")
    await seed.group(organization, ARCHIVE_GROUP_NAME)
    await seed.player_link(group, P1)
    await seed.player_link(other, P2)
    await seed.coach_link(other, COACH)
    await seed.guardian(P1, PARENT)
    return organization, group, other


def make_request(**overrides):
    payload = {
        "mode": "single",
        "event_type": "training",
        "title": "  Entraînement  ",
        "starts_at": "2024-01-20T18:00:00",
        "duration_minutes": 90,
        "group_target": {"mode": "all"},
        "player_target": {"mode": "all"},
        "parent_target": {"mode": "selected", "ids": []},
    }
    payload.update(overrides)
    return CreateEventsRequest(**payload)


async def attendees_of(session, event_id):
    result = await session.execute(
        select(Attendee.player_id).where(Attendee.event_id == event_id)
    )
    return set(result.scalars().all())


async def coaches_of(session, event_id):
    result = await session.execute(
        select(CoachAssignment.coach_id).where(CoachAssignment.event_id == event_id)
    )
    return set(result.scalars().all())


async def test_single_event_per_target_group(session, seed, service, push):
    _, group, other = await seed_club(seed)

    result = await service.create_events(MANAGER, make_request())

    assert len(result.created_event_ids) == 2
    assert result.created_series_ids == []

    events = (
        await session.execute(select(Event).order_by(Event.group_id))
    ).scalars().all()
    assert [e.group_id for e in events] == [group.id, other.id]
    assert events[0].title == "Entraînement"
    assert events[0].ends_at == datetime(2024, 1, 20, 19, 30)

    assert await attendees_of(session, events[0].id) == {P1, PARENT}
    assert await coaches_of(session, events[0].id) == {HEAD}
    assert await attendees_of(session, events[1].id) == {P2}
    assert await coaches_of(session, events[1].id) == {COACH}

    assert len(push.calls) == 1
    assert sorted(push.calls[0]["recipients"]) == sorted([P1, PARENT, HEAD, P2, COACH])


async def test_selected_group_and_players(session, seed, service):
    _, group, _ = await seed_club(seed)

    result = await service.create_events(
        MANAGER,
        make_request(
            group_target={"mode": "selected", "ids": [group.id]},
            player_target={"mode": "selected", "ids": [P1, P2]},
            parent_target={"mode": "none"},
            coach_target={"mode": "selected", "ids": [COACH, OUTSIDER]},
        ),
    )

    (event_id,) = result.created_event_ids
    assert await attendees_of(session, event_id) == {P1}
    assert await coaches_of(session, event_id) == {COACH}


async def test_series_creates_series_and_occurrences(session, seed, service):
    _, group, _ = await seed_club(seed)

    result = await service.create_events(
        MANAGER,
        make_request(
            mode="series",
            starts_at=None,
            group_target={"mode": "selected", "ids": [group.id]},
            series={
                "weekday": 3,
                "time_of_day": "16:00",
                "interval_weeks": 0,
                "start_date": "2024-01-01",
                "end_date": "2024-01-31",
            },
        ),
    )

    assert len(result.created_series_ids) == 1
    assert len(result.created_event_ids) == 5

    series = (await session.execute(select(EventSeries))).scalar_one()
    assert series.interval_weeks == 1
    assert series.start_date == date(2024, 1, 1)

    events = (
        await session.execute(select(Event).order_by(Event.starts_at))
    ).scalars().all()
    assert {e.series_id for e in events} == {series.id}
    assert events[0].starts_at == datetime(2024, 1, 3, 16, 0)
    assert events[-1].ends_at == datetime(2024, 1, 31, 17, 30)
    for event in events:
        assert await attendees_of(session, event.id) == {P1, PARENT}


async def test_series_range_error_before_writes(session, seed, service, push):
    await seed_club(seed)

    with pytest.raises(InvalidRangeError):
        await service.create_events(
            MANAGER,
            make_request(
                mode="series",
                series={
                    "weekday": 3,
                    "time_of_day": "16:00:00",
                    "start_date": "2024-02-01",
                    "end_date": "2024-01-01",
                },
            ),
        )

    assert (await session.execute(select(Event))).scalars().all() == []
    assert (await session.execute(select(EventSeries))).scalars().all() == []
    assert push.calls == []


async def test_series_requires_rule(seed, service):
    await seed_club(seed)

    with pytest.raises(ValidationError):
        await service.create_events(MANAGER, make_request(mode="series"))


async def test_match_needs_end_after_start(seed, service):
    await seed_club(seed)

    with pytest.raises(ValidationError):
        await service.create_events(
            MANAGER,
            make_request(event_type="interclub", ends_at="2024-01-20T17:00:00"),
        )


async def test_match_keeps_explicit_end(session, seed, service):
    await seed_club(seed)

    result = await service.create_events(
        MANAGER,
        make_request(event_type="interclub", ends_at="2024-01-20T21:00:00"),
    )

    event = await session.get(Event, result.created_event_ids[0])
    assert event.ends_at == datetime(2024, 1, 20, 21, 0)


async def test_archive_only_selection_fails(seed, service):
    organization, _, _ = await seed_club(seed)
    archive = await seed.group(organization, ARCHIVE_GROUP_NAME)

    with pytest.raises(NoTargetGroupsError):
        await service.create_events(
            MANAGER, make_request(group_target={"mode": "selected", "ids": [archive.id]})
        )


async def test_caller_without_managed_organization(seed, service):
    await seed_club(seed)

    with pytest.raises(AuthorizationError):
        await service.create_events(P1, make_request())


async def test_superadmin_schedules_everywhere(seed, service):
    await seed_club(seed)
    await seed.superadmin(OUTSIDER)

    result = await service.create_events(OUTSIDER, make_request())

    assert len(result.created_event_ids) == 2


async def test_move_member_requires_manager(seed, service):
    organization, group, other = await seed_club(seed)

    with pytest.raises(AuthorizationError):
        await service.move_member(
            P1,
            organization.id,
            MoveMemberRequest(actor_type="player", user_id=P1, to_group_id=other.id),
        )


async def test_move_member_notifies_moved_user(session, seed, service, push):
    organization, group, other = await seed_club(seed)
    future = await seed.event(other, datetime(2024, 1, 22, 18, 0))

    await service.move_member(
        MANAGER,
        organization.id,
        MoveMemberRequest(
            actor_type="player",
            user_id=P1,
            to_group_id=other.id,
            from_group_id=group.id,
            remove_from_source=True,
        ),
    )

    assert await attendees_of(session, future.id) == {P1}
    assert push.calls[-1]["recipients"] == [P1]
    linked = await session.execute(
        select(GroupPlayer.group_id).where(GroupPlayer.player_user_id == P1)
    )
    assert linked.scalars().all() == [other.id]


async def test_remove_member_skips_self_notification(seed, service, push):
    organization, group, _ = await seed_club(seed)
    await seed.member(organization, COACH, "manager")

    await service.remove_member(
        COACH,
        organization.id,
        RemoveMemberRequest(actor_type="coach", user_id=COACH, group_id=group.id),
    )

    assert push.calls[-1]["recipients"] == []


async def test_training_ending_past_last_representable_date(session, seed, service):
    await seed_club(seed)

    with pytest.raises(ValidationError):
        await service.create_events(
            MANAGER, make_request(starts_at="9999-12-31T23:30:00")
        )

    assert (await session.execute(select(Event))).scalars().all() == []


def test_aware_time_of_day_is_stored_as_wall_clock():
    request = make_request(
        mode="series",
        series={
            "weekday": 3,
            "time_of_day": time(16, 0, tzinfo=timezone(timedelta(hours=2))),
            "start_date": "2024-01-01",
            "end_date": "2024-01-31",
        },
    )

    assert request.series.time_of_day == time(16, 0)
    assert request.series.time_of_day.tzinfo is None


async def test_store_error_mid_series_keeps_earlier_occurrences(
    session, seed, service, push, monkeypatch
):
    _, group, _ = await seed_club(seed)
    calls = []

    async def fail_on_third(session, event_id, targets):
        calls.append(event_id)
        if len(calls) == 3:
            raise SQLAlchemyError("connection dropped")
        return await sync_event_attendance(session, event_id, targets)

    monkeypatch.setattr(scheduler, "sync_event_attendance", fail_on_third)

    with pytest.raises(PersistenceError) as exc_info:
        await service.create_events(
            MANAGER,
            make_request(
                mode="series",
                starts_at=None,
                group_target={"mode": "selected", "ids": [group.id]},
                series={
                    "weekday": 3,
                    "time_of_day": "16:00",
                    "start_date": "2024-01-01",
                    "end_date": "2024-01-31",
                },
            ),
        )

    assert exc_info.value.error_code == "PERSISTENCE_ERROR"
    events = (
        await session.execute(select(Event).order_by(Event.starts_at))
    ).scalars().all()
    assert [e.starts_at for e in events] == [
        datetime(2024, 1, 3, 16, 0),
        datetime(2024, 1, 10, 16, 0),
    ]
    for event in events:
        assert await attendees_of(session, event.id) == {P1, PARENT}
    assert len((await session.execute(select(EventSeries))).scalars().all()) == 1
    assert push.calls == []
