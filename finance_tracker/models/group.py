from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from finance_tracker.database import Base


class GroupRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class FamilyGroup(Base):
    __tablename__ = "family_groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(String, default="")
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    created_by = relationship("User")
    members = relationship(
        "GroupMember", back_populates="group", cascade="all, delete-orphan"
    )
    invites = relationship(
        "GroupInvite", back_populates="group", cascade="all, delete-orphan"
    )
    accounts = relationship("Account", back_populates="group")


class GroupMember(Base):
    __tablename__ = "group_members"
    __table_args__ = (UniqueConstraint("group_id", "user_id", name="uq_group_member"),)

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey("family_groups.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String, nullable=False, default=GroupRole.MEMBER.value)
    joined_at = Column(DateTime, default=datetime.utcnow)

    group = relationship("FamilyGroup", back_populates="members")
    user = relationship("User")

    @property
    def is_admin(self):
        return self.role == GroupRole.ADMIN.value


class GroupInvite(Base):
    __tablename__ = "group_invites"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey("family_groups.id"), nullable=False, index=True)
    code = Column(String(64), unique=True, nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    max_uses = Column(Integer, default=0, nullable=False)  # 0 = unlimited
    used_count = Column(Integer, default=0, nullable=False)
    revoked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    group = relationship("FamilyGroup", back_populates="invites")
    created_by = relationship("User")

    def is_expired(self, now=None):
        return (now or datetime.utcnow()) > self.expires_at

    def is_exhausted(self):
        return self.max_uses > 0 and self.used_count >= self.max_uses
