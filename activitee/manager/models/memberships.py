from enum import Enum

from sqlalchemy import (
    Column,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from activitee.core.database import Base


class MemberRole(str, Enum):
    manager = "manager"
    coach = "coach"
    player = "player"
    parent = "parent"


class Membership(Base):
    """
    Role held by a user inside an organization.

    A user may hold several roles in the same organization (coach and parent,
    for example); each role is its own row. Rows are soft-disabled through
    ``is_active`` and never deleted here.
    """

    __tablename__ = "organization_members"

    id = Column(Integer, primary_key=True, autoincrement=True)

    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    # identity lives in an external service, so no FK on user ids
    user_id = Column(Integer, nullable=False)
    role = Column(SQLEnum(MemberRole, name="member_role"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    organization = relationship("Organization", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "user_id", "role", name="uq_member_org_user_role"
        ),
        Index("ix_members_org_role_active", "organization_id", "role", "is_active"),
        Index("ix_members_user", "user_id"),
    )

    def __repr__(self):
        return (
            f"<Membership(organization_id={self.organization_id}, "
            f"user_id={self.user_id}, role={self.role}, active={self.is_active})>"
        )
