from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from finance_tracker.database import Base


class NotificationType(str, Enum):
    GROUP_INVITE = "group_invite"
    EXPENSE = "expense"
    GOAL_REACHED = "goal_reached"
    BUDGET_ALERT = "budget_alert"
    SUMMARY = "summary"
    DUE_DATE = "due_date"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    link = Column(String, default="")
    group_id = Column(Integer, ForeignKey("family_groups.id"), nullable=True)
    invite_id = Column(Integer, ForeignKey("group_invites.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User")
