from sqlalchemy import Column, Integer, String

from finance_tracker.database import Base

PRO_LABORE = "pro_labore"
INSS_CEILING = "inss_ceiling"
INSS_RATE = "inss_rate"
BUDGET_WARNING_THRESHOLD = "budget_warning_threshold"
RECORD_START_DATE = "record_start_date"
MANUAL_BRACKET = "manual_bracket"

SETTING_KEYS = (
    PRO_LABORE,
    INSS_CEILING,
    INSS_RATE,
    BUDGET_WARNING_THRESHOLD,
    RECORD_START_DATE,
    MANUAL_BRACKET,
)


class Setting(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, nullable=False, index=True)
    value = Column(String, nullable=False, default="")
