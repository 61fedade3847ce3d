from enum import Enum

from sqlalchemy import Column, Integer, String, Float, ForeignKey
from sqlalchemy.orm import relationship

from finance_tracker.database import Base


class AccountType(str, Enum):
    INDIVIDUAL = "individual"
    JOINT = "joint"


class Account(Base):
    """A bucket of money: the user's own (individual) or a group's (joint)."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False, default=AccountType.INDIVIDUAL.value)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    group_id = Column(Integer, ForeignKey("family_groups.id"), nullable=True, index=True)
    budget_limit = Column(Float, nullable=True)

    user = relationship("User")
    group = relationship("FamilyGroup", back_populates="accounts")

    @property
    def is_joint(self):
        return self.type == AccountType.JOINT.value

    @property
    def is_individual(self):
        return self.type == AccountType.INDIVIDUAL.value
