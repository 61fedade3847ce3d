from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from finance_tracker.database import Base


class GoalStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class GroupGoal(Base):
    __tablename__ = "group_goals"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("family_groups.id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    name = Column(String, nullable=False)
    description = Column(String, default="")
    target_amount = Column(Float, nullable=False)
    current_amount = Column(Float, nullable=False, default=0)
    start_date = Column(Date, nullable=False)
    target_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default=GoalStatus.ACTIVE.value)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    group = relationship("FamilyGroup")
    account = relationship("Account")
    created_by = relationship("User")
    contributions = relationship(
        "GoalContribution",
        back_populates="goal",
        cascade="all, delete-orphan",
        order_by="GoalContribution.created_at",
    )

    @property
    def is_completed(self):
        return self.status == GoalStatus.COMPLETED.value

    @property
    def progress_percentage(self):
        if self.target_amount <= 0:
            return 0.0
        return min(100.0, self.current_amount / self.target_amount * 100)

    @property
    def remaining_amount(self):
        return max(0.0, self.target_amount - self.current_amount)


class GoalContribution(Base):
    __tablename__ = "goal_contributions"

    id = Column(Integer, primary_key=True)
    goal_id = Column(Integer, ForeignKey("group_goals.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    amount = Column(Float, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    goal = relationship("GroupGoal", back_populates="contributions")
    user = relationship("User")
