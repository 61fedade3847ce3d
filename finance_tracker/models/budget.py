from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from finance_tracker.database import Base

WARNING_PERCENT = 80
EXCEEDED_PERCENT = 100


class BudgetStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class CategoryStatus(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    EXCEEDED = "exceeded"


def _status_for(percentage):
    if percentage > EXCEEDED_PERCENT:
        return CategoryStatus.EXCEEDED.value
    if percentage >= WARNING_PERCENT:
        return CategoryStatus.WARNING.value
    return CategoryStatus.GOOD.value


class Budget(Base):
    """Monthly spending plan, personal (no group) or shared by a group."""

    __tablename__ = "budgets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    group_id = Column(Integer, ForeignKey("family_groups.id"), nullable=True, index=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    status = Column(String, nullable=False, default=BudgetStatus.ACTIVE.value)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User")
    group = relationship("FamilyGroup")
    categories = relationship(
        "BudgetCategory",
        back_populates="budget",
        cascade="all, delete-orphan",
        order_by="BudgetCategory.category",
    )

    @property
    def is_group_budget(self):
        return self.group_id is not None

    @property
    def total_limit(self):
        return sum(c.limit for c in self.categories)

    @property
    def total_spent(self):
        return sum(c.spent for c in self.categories)

    @property
    def progress_percentage(self):
        if self.total_limit <= 0:
            return 0.0
        return self.total_spent / self.total_limit * 100

    @property
    def remaining_amount(self):
        return max(0.0, self.total_limit - self.total_spent)

    @property
    def overall_status(self):
        return _status_for(self.progress_percentage)


class BudgetCategory(Base):
    __tablename__ = "budget_categories"

    id = Column(Integer, primary_key=True)
    budget_id = Column(Integer, ForeignKey("budgets.id"), nullable=False, index=True)
    category = Column(String, nullable=False)
    limit = Column(Float, nullable=False)
    spent = Column(Float, nullable=False, default=0)
    # Set once when the threshold is first crossed, never cleared
    notified_at_80 = Column(DateTime, nullable=True)
    notified_at_100 = Column(DateTime, nullable=True)

    budget = relationship("Budget", back_populates="categories")

    @property
    def progress_percentage(self):
        if not self.limit or self.limit <= 0:
            return 0.0
        return (self.spent or 0) / self.limit * 100

    @property
    def remaining_amount(self):
        return max(0.0, (self.limit or 0) - (self.spent or 0))

    @property
    def status(self):
        return _status_for(self.progress_percentage)

    def should_notify_at_80(self, previous_percentage):
        """True when spend just crossed 80% from below and no alert went out yet."""
        return (
            self.notified_at_80 is None
            and previous_percentage < WARNING_PERCENT <= self.progress_percentage
        )

    def should_notify_at_100(self, previous_percentage):
        return (
            self.notified_at_100 is None
            and previous_percentage < EXCEEDED_PERCENT <= self.progress_percentage
        )
