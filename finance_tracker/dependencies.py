# dependencies.py
from datetime import date
from typing import List

from fastapi import Depends
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.models import User
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.settings import SettingsCache, SettingsData, get_settings_cache


def get_app_settings(cache: SettingsCache = Depends(get_settings_cache)) -> SettingsData:
    return cache.get()


def get_account_ids(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
) -> List[int]:
    return AccountService(db).get_user_account_ids(current_user.id)


def get_today() -> date:
    return date.today()
