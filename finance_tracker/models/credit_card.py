from datetime import date

from sqlalchemy import Column, Date, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from finance_tracker.database import Base


def months_between(start, end):
    """Whole calendar months from ``start`` to ``end``, ignoring the day."""
    return (end.year - start.year) * 12 + (end.month - start.month)


class CreditCard(Base):
    __tablename__ = "credit_cards"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    closing_day = Column(Integer, nullable=False)
    due_day = Column(Integer, nullable=False)
    limit_amount = Column(Float, default=0)

    account = relationship("Account")
    installments = relationship(
        "Installment", back_populates="credit_card", cascade="all, delete-orphan"
    )


class Installment(Base):
    __tablename__ = "installments"

    id = Column(Integer, primary_key=True, index=True)
    credit_card_id = Column(
        Integer, ForeignKey("credit_cards.id"), nullable=False, index=True
    )
    description = Column(String, nullable=False)
    total_amount = Column(Float, nullable=False)
    installment_amount = Column(Float, nullable=False)
    total_installments = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    category = Column(String, default="Outros")

    credit_card = relationship("CreditCard", back_populates="installments")

    def is_active(self, today=None):
        elapsed = months_between(self.start_date, today or date.today())
        return 0 <= elapsed < self.total_installments

    def current_installment(self, today=None):
        return months_between(self.start_date, today or date.today()) + 1

    def remaining_amount(self, today=None):
        paid = min(self.current_installment(today), self.total_installments)
        return max(0.0, self.total_amount - paid * self.installment_amount)
