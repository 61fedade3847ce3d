"""
Runtime financial settings and their in-memory cache.

Every income calculation and page render needs pro-labore, INSS and bracket
settings. They are read from the key/value ``settings`` table at most once
per TTL window; writers call :meth:`SettingsCache.invalidate` after saving.
"""

import threading
import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, Optional

import structlog
from sqlalchemy.orm import Session

from finance_tracker.config import get_settings
from finance_tracker.database import SessionLocal
from finance_tracker.models import Setting
from finance_tracker.models import settings as keys
from finance_tracker.services.tax import INSSConfig, calculate_inss

logger = structlog.get_logger(__name__)

DEFAULT_BUDGET_WARNING_THRESHOLD = 100.0


@dataclass
class SettingsData:
    pro_labore: float = 0.0
    inss_ceiling: float = 0.0
    inss_rate: float = 0.0  # percent
    inss_amount: float = 0.0
    budget_warning_threshold: float = DEFAULT_BUDGET_WARNING_THRESHOLD
    record_start_date: Optional[date] = None
    manual_bracket: int = 0

    @property
    def inss_config(self) -> INSSConfig:
        return INSSConfig(
            pro_labore=self.pro_labore,
            ceiling=self.inss_ceiling,
            rate=self.inss_rate / 100,
        )


def _to_float(value: Optional[str]) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_int(value: Optional[str]) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _to_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


def load_settings(db: Session) -> SettingsData:
    raw: Dict[str, str] = {s.key: s.value for s in db.query(Setting).all()}

    data = SettingsData(
        pro_labore=_to_float(raw.get(keys.PRO_LABORE)),
        inss_ceiling=_to_float(raw.get(keys.INSS_CEILING)),
        inss_rate=_to_float(raw.get(keys.INSS_RATE)),
        budget_warning_threshold=_to_float(raw.get(keys.BUDGET_WARNING_THRESHOLD)),
        record_start_date=_to_date(raw.get(keys.RECORD_START_DATE)),
        manual_bracket=_to_int(raw.get(keys.MANUAL_BRACKET)),
    )
    if data.budget_warning_threshold <= 0:
        data.budget_warning_threshold = DEFAULT_BUDGET_WARNING_THRESHOLD
    if not 0 <= data.manual_bracket <= 6:
        data.manual_bracket = 0
    data.inss_amount = calculate_inss(data.inss_config)
    return data


def update_settings(db: Session, values: Dict[str, object]) -> None:
    """Upsert the given keys. Unknown keys are ignored."""
    for key, value in values.items():
        if key not in keys.SETTING_KEYS:
            continue
        text = "" if value is None else str(value)
        setting = db.query(Setting).filter(Setting.key == key).first()
        if setting:
            setting.value = text
        else:
            db.add(Setting(key=key, value=text))
    db.commit()


class SettingsCache:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._session_factory = session_factory
        self._ttl = (
            ttl_seconds if ttl_seconds is not None else get_settings().settings_cache_ttl_seconds
        )
        self._clock = clock
        self._lock = threading.Lock()
        self._data: Optional[SettingsData] = None
        self._loaded_at = 0.0

    def _fresh_data(self) -> Optional[SettingsData]:
        data, loaded_at = self._data, self._loaded_at
        if data is not None and self._clock() - loaded_at < self._ttl:
            return data
        return None

    def get(self) -> SettingsData:
        data = self._fresh_data()
        if data is not None:
            logger.debug("settings_cache_hit")
            return data

        with self._lock:
            # another thread may have refreshed while we waited
            data = self._fresh_data()
            if data is not None:
                return data

            logger.debug("settings_cache_miss", expired=self._data is not None)
            with self._session_factory() as db:
                self._data = load_settings(db)
            self._loaded_at = self._clock()
            return self._data

    def invalidate(self) -> None:
        with self._lock:
            self._data = None
            self._loaded_at = 0.0
        logger.info("settings_cache_invalidated")


settings_cache = SettingsCache()


def get_settings_cache() -> SettingsCache:
    return settings_cache
