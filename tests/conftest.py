import os

os.environ.setdefault("JWT_SECRET_KEY", "activitee-test-secret-key-with-enough-length")
os.environ.setdefault("VALIDATE_CONFIG_ON_IMPORT", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from activitee.core.clock import FixedClock
from activitee.core.database import Base
from activitee.manager.models import (
    AppAdmin,
    Event,
    EventStatus,
    EventType,
    Group,
    GroupCoach,
    GroupPlayer,
    Membership,
    MemberRole,
    Organization,
    PlayerGuardian,
)

NOW = datetime(2024, 1, 15, 12, 0)


class RecordingPushSender:
    """Stands in for the push dispatch endpoint and keeps every call"""

    def __init__(self):
        self.calls = []

    async def notify(self, recipients, title, body=None, link=None):
        self.calls.append(
            {"recipients": list(recipients), "title": title, "body": body, "link": link}
        )
        return True


class Seeder:
    """Inserts fixture rows and commits after each helper call"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def organization(self, name="Club Atlas"):
        return await self._save(Organization(name=name))

    async def superadmin(self, user_id):
        return await self._save(AppAdmin(user_id=user_id))

    async def member(self, organization, user_id, role, is_active=True):
        return await self._save(
            Membership(
                organization_id=organization.id,
                user_id=user_id,
                role=MemberRole(role),
                is_active=is_active,
            )
        )

    async def group(self, organization, name="U12", head_coach_user_id=None, is_active=True):
        return await self._save(
            Group(
                organization_id=organization.id,
                name=name,
                head_coach_user_id=head_coach_user_id,
                is_active=is_active,
            )
        )

    async def player_link(self, group, player_user_id):
        return await self._save(GroupPlayer(group_id=group.id, player_user_id=player_user_id))

    async def coach_link(self, group, coach_user_id, is_head=False):
        return await self._save(
            GroupCoach(group_id=group.id, coach_user_id=coach_user_id, is_head=is_head)
        )

    async def guardian(self, player_user_id, guardian_user_id, can_view=True):
        return await self._save(
            PlayerGuardian(
                player_user_id=player_user_id,
                guardian_user_id=guardian_user_id,
                can_view=can_view,
            )
        )

    async def event(self, group, starts_at, duration_minutes=60, status=EventStatus.scheduled):
        return await self._save(
            Event(
                group_id=group.id,
                organization_id=group.organization_id,
                event_type=EventType.training,
                starts_at=starts_at,
                ends_at=starts_at + timedelta(minutes=duration_minutes),
                duration_minutes=duration_minutes,
                status=status,
                created_by=1,
            )
        )


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed(session):
    return Seeder(session)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def push():
    return RecordingPushSender()
