from datetime import datetime

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.future import select

from activitee.core.exceptions import (
    CrossOrganizationTargetError,
    HeadCoachRemovalForbiddenError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from activitee.core.config import ARCHIVE_GROUP_NAME
from activitee.manager.models import (
    AttendanceStatus,
    Attendee,
    CoachAssignment,
    EventStatus,
    GroupCoach,
    GroupPlayer,
)
from activitee.manager.services import group_reassignment
from activitee.manager.services.attendance_sync import sync_event_attendance
from activitee.manager.services.group_reassignment import (
    ActorType,
    GroupReassignmentService,
)
from activitee.manager.services.targeting import ResolvedTargets

PAST = datetime(2024, 1, 10, 18, 0)
FUTURE = datetime(2024, 1, 20, 18, 0)
LATER = datetime(2024, 1, 27, 18, 0)
PLAYER = 501
COACH = 601
HEAD = 602


async def attendee_events(session, user_id):
    result = await session.execute(
        select(Attendee.event_id).where(Attendee.player_id == user_id)
    )
    return set(result.scalars().all())


async def coach_events(session, coach_id):
    result = await session.execute(
        select(CoachAssignment.event_id).where(CoachAssignment.coach_id == coach_id)
    )
    return set(result.scalars().all())


async def links(session, model, column, user_id):
    result = await session.execute(select(model.group_id).where(column == user_id))
    return set(result.scalars().all())


@pytest.fixture
def service(session, clock):
    return GroupReassignmentService(session, clock)


async def seed_two_groups(seed, session):
    organization = await seed.organization()
    group_a = await seed.group(organization, "A", head_coach_user_id=HEAD)
    group_b = await seed.group(organization, "B")
    await seed.player_link(group_a, PLAYER)
    await seed.coach_link(group_a, COACH)

    events = {
        "a_past": await seed.event(group_a, PAST),
        "a_future": await seed.event(group_a, FUTURE),
        "a_later": await seed.event(group_a, LATER),
        "b_past": await seed.event(group_b, PAST),
        "b_future": await seed.event(group_b, FUTURE),
        "b_cancelled": await seed.event(group_b, LATER, status=EventStatus.cancelled),
    }
    for key in ("a_past", "a_future", "a_later"):
        await sync_event_attendance(
            session,
            events[key].id,
            ResolvedTargets(players=frozenset({PLAYER}), coaches=frozenset({COACH})),
        )
    await session.commit()
    return organization, group_a, group_b, events


async def test_move_player_keeps_history(session, seed, service):
    organization, group_a, group_b, events = await seed_two_groups(seed, session)

    result = await service.move_member(
        organization.id,
        ActorType.player,
        PLAYER,
        group_b.id,
        from_group_id=group_a.id,
        remove_from_source=True,
    )

    assert await attendee_events(session, PLAYER) == {
        events["a_past"].id,
        events["b_future"].id,
    }
    assert await links(session, GroupPlayer, GroupPlayer.player_user_id, PLAYER) == {
        group_b.id
    }
    assert result.rows_removed == 2
    assert result.unlinked_group_id == group_a.id

    status = await session.execute(
        select(Attendee.status).where(Attendee.event_id == events["b_future"].id)
    )
    assert status.scalar_one() == AttendanceStatus.present


async def test_move_without_source_removal_adds_only(session, seed, service):
    organization, group_a, group_b, events = await seed_two_groups(seed, session)

    await service.move_member(organization.id, ActorType.player, PLAYER, group_b.id)

    assert await links(session, GroupPlayer, GroupPlayer.player_user_id, PLAYER) == {
        group_a.id,
        group_b.id,
    }
    assert await attendee_events(session, PLAYER) == {
        events["a_past"].id,
        events["a_future"].id,
        events["a_later"].id,
        events["b_future"].id,
    }


async def test_move_into_same_group_is_noop_for_source(session, seed, service):
    organization, group_a, _, events = await seed_two_groups(seed, session)

    result = await service.move_member(
        organization.id,
        ActorType.player,
        PLAYER,
        group_a.id,
        from_group_id=group_a.id,
        remove_from_source=True,
    )

    assert result.unlinked_group_id is None
    assert await links(session, GroupPlayer, GroupPlayer.player_user_id, PLAYER) == {
        group_a.id
    }
    assert len(await attendee_events(session, PLAYER)) == 3


async def test_move_coach_cascades_assignments(session, seed, service):
    organization, group_a, group_b, events = await seed_two_groups(seed, session)

    await service.move_member(
        organization.id,
        ActorType.coach,
        COACH,
        group_b.id,
        from_group_id=group_a.id,
        remove_from_source=True,
    )

    assert await coach_events(session, COACH) == {
        events["a_past"].id,
        events["b_future"].id,
    }
    result = await session.execute(
        select(GroupCoach.is_head).where(
            GroupCoach.group_id == group_b.id, GroupCoach.coach_user_id == COACH
        )
    )
    assert result.scalar_one() is False


async def test_move_is_idempotent(session, seed, service):
    organization, group_a, group_b, events = await seed_two_groups(seed, session)

    outcomes = [
        await service.move_member(
            organization.id,
            ActorType.player,
            PLAYER,
            group_b.id,
            from_group_id=group_a.id,
            remove_from_source=True,
        )
        for _ in range(2)
    ]

    assert [o.rows_added for o in outcomes] == [1, 0]
    assert [o.rows_removed for o in outcomes] == [2, 0]
    result = await session.execute(
        select(Attendee).where(Attendee.event_id == events["b_future"].id)
    )
    assert len(result.scalars().all()) == 1


async def test_move_to_other_organization_is_rejected(session, seed, service):
    organization, group_a, _, _ = await seed_two_groups(seed, session)
    other = await seed.organization("Other club")
    foreign = await seed.group(other, "Foreign")

    with pytest.raises(CrossOrganizationTargetError):
        await service.move_member(
            organization.id,
            ActorType.player,
            PLAYER,
            foreign.id,
            from_group_id=group_a.id,
            remove_from_source=True,
        )

    assert await links(session, GroupPlayer, GroupPlayer.player_user_id, PLAYER) == {
        group_a.id
    }


async def test_move_to_archive_group_is_rejected(session, seed, service):
    organization, group_a, _, _ = await seed_two_groups(seed, session)
    archive = await seed.group(organization, ARCHIVE_GROUP_NAME)

    with pytest.raises(ValidationError):
        await service.move_member(organization.id, ActorType.player, PLAYER, archive.id)


async def test_move_to_missing_group(session, seed, service):
    organization, _, _, _ = await seed_two_groups(seed, session)

    with pytest.raises(NotFoundError):
        await service.move_member(organization.id, ActorType.player, PLAYER, 9999)


async def test_remove_player_drops_future_rows_only(session, seed, service):
    organization, group_a, _, events = await seed_two_groups(seed, session)

    result = await service.remove_member(
        organization.id, ActorType.player, PLAYER, group_a.id
    )

    assert result.rows_removed == 2
    assert await attendee_events(session, PLAYER) == {events["a_past"].id}
    assert await links(session, GroupPlayer, GroupPlayer.player_user_id, PLAYER) == set()


async def test_head_coach_cannot_be_removed(session, seed, service):
    organization, group_a, _, _ = await seed_two_groups(seed, session)
    await seed.coach_link(group_a, HEAD, is_head=True)

    with pytest.raises(HeadCoachRemovalForbiddenError):
        await service.remove_member(organization.id, ActorType.coach, HEAD, group_a.id)

    assert await links(session, GroupCoach, GroupCoach.coach_user_id, HEAD) == {
        group_a.id
    }
    assert await links(session, GroupCoach, GroupCoach.coach_user_id, COACH) == {
        group_a.id
    }


async def test_remove_from_foreign_group_is_not_found(session, seed, service):
    organization, _, _, _ = await seed_two_groups(seed, session)
    other = await seed.organization("Other club")
    foreign = await seed.group(other, "Foreign")

    with pytest.raises(NotFoundError):
        await service.remove_member(organization.id, ActorType.player, PLAYER, foreign.id)


async def test_failed_move_rolls_back_every_write(session, seed, service, monkeypatch):
    organization, group_a, group_b, events = await seed_two_groups(seed, session)
    group_a_id, group_b_id = group_a.id, group_b.id
    group_a_events = {events[key].id for key in ("a_past", "a_future", "a_later")}

    async def broken_add(session, event_ids, user_ids):
        raise SQLAlchemyError("connection dropped")

    monkeypatch.setattr(group_reassignment, "add_attendees", broken_add)

    with pytest.raises(PersistenceError):
        await service.move_member(
            organization.id,
            ActorType.player,
            PLAYER,
            group_b_id,
            from_group_id=group_a_id,
            remove_from_source=True,
        )

    assert await links(session, GroupPlayer, GroupPlayer.player_user_id, PLAYER) == {
        group_a_id
    }
    assert await attendee_events(session, PLAYER) == group_a_events


async def test_failed_remove_rolls_back_unlink(session, seed, service, monkeypatch):
    organization, group_a, _, events = await seed_two_groups(seed, session)
    group_a_id = group_a.id
    group_a_events = {events[key].id for key in ("a_past", "a_future", "a_later")}

    async def broken_delete(session, event_ids, coach_id):
        raise SQLAlchemyError("connection dropped")

    monkeypatch.setattr(group_reassignment, "delete_coach_assignments", broken_delete)

    with pytest.raises(PersistenceError):
        await service.remove_member(organization.id, ActorType.coach, COACH, group_a_id)

    assert await links(session, GroupCoach, GroupCoach.coach_user_id, COACH) == {
        group_a_id
    }
    assert await coach_events(session, COACH) == group_a_events
