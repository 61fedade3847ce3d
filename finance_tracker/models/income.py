from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from finance_tracker.database import Base


class Income(Base):
    __tablename__ = "incomes"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    amount_usd = Column(Float, nullable=False, default=0)
    exchange_rate = Column(Float, nullable=False, default=1)
    amount_brl = Column(Float, nullable=False)
    gross_amount = Column(Float, nullable=False)
    tax_amount = Column(Float, nullable=False, default=0)
    net_amount = Column(Float, nullable=False)
    description = Column(String, default="")
    created_at = Column(DateTime, default=datetime.utcnow)

    account = relationship("Account")
