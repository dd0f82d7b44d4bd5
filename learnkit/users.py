from __future__ import annotations

import datetime
from collections import Counter
from typing import Any, Dict

import structlog
from sqlalchemy.exc import IntegrityError

from . import db, weekly
from .db import AppLaunch, User
from .errors import Conflict, NotFound
from .schemas import UserCreate, UserProfileUpdate

logger = structlog.get_logger()

DEFAULT_PEAK_HOUR = 19
PEAK_WINDOW_DAYS = 30


def create_user(data: UserCreate) -> User:
    with db.get_session() as session:
        if session.query(User.id).filter(User.email == data.email).first() is not None:
            raise Conflict(f"Email already registered: {data.email}")
        user = User(**data.model_dump())
        session.add(user)
        try:
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise Conflict(f"Email already registered: {data.email}") from e
        logger.info("user_created", user_id=user.id)
        return user


def get_user(user_id: int) -> User:
    with db.get_session() as session:
        return db.require(session, User, user_id)


def find_user_by_email(email: str) -> User:
    with db.get_session() as session:
        user = session.query(User).filter(User.email == email).first()
        if user is None:
            raise NotFound(f"User not found: {email}")
        return user


def update_profile(user_id: int, patch: UserProfileUpdate) -> User:
    with db.get_session() as session:
        user = db.require(session, User, user_id)
        for field, value in patch.changes().items():
            setattr(user, field, value)
        session.commit()
        return user


def record_app_launch(user_id: int) -> AppLaunch:
    """Store a launch and make sure this week's baselines exist."""
    with db.get_session() as session:
        db.require(session, User, user_id)
        launch = AppLaunch(user_id=user_id, launch_time=db.now())
        session.add(launch)
        session.commit()
    weekly.ensure_weekly_baselines(user_id)
    return launch


def peak_hours(user_id: int) -> Dict[str, Any]:
    """Most frequent launch hour over the last 30 days and a reminder one hour before it."""
    current = db.now()
    since = current - datetime.timedelta(days=PEAK_WINDOW_DAYS)
    with db.get_session() as session:
        db.require(session, User, user_id)
        launch_times = [
            row.launch_time
            for row in session.query(AppLaunch.launch_time)
            .filter(AppLaunch.user_id == user_id, AppLaunch.launch_time >= since)
            .all()
        ]

    by_hour = Counter(t.hour for t in launch_times)
    if by_hour:
        # ties go to the earliest hour
        peak_hour, launch_count = min(by_hour.items(), key=lambda item: (-item[1], item[0]))
    else:
        peak_hour, launch_count = DEFAULT_PEAK_HOUR, 0

    reminder_hour = 23 if peak_hour == 0 else peak_hour - 1
    suggested = datetime.datetime.combine(current.date(), datetime.time(hour=reminder_hour))
    return {
        "peak_hour": peak_hour,
        "launch_count": launch_count,
        "suggested_reminder_time": suggested.isoformat(),
    }
