from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from activitee.core.database import Base


class Organization(Base):
    """Club/academy tenant; owns groups, memberships and events"""

    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True)
    name = Column(String(150), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # relations
    memberships = relationship(
        "Membership", back_populates="organization", cascade="all, delete"
    )
    groups = relationship("Group", back_populates="organization", cascade="all, delete")

    def __repr__(self):
        return f"<Organization(id={self.id}, name='{self.name}')>"


class AppAdmin(Base):
    """Platform superadmins; may act on every organization"""

    __tablename__ = "app_admins"

    user_id = Column(Integer, primary_key=True, autoincrement=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<AppAdmin(user_id={self.user_id})>"
