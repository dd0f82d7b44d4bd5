"""Schedules and reminders."""
from __future__ import annotations

import datetime
from typing import List

import structlog

from . import db
from .db import Reminder, Schedule, User
from .errors import InvalidRequest
from .schemas import ReminderCreate, ReminderUpdate, ScheduleCreate, ScheduleUpdate

logger = structlog.get_logger()

UPCOMING_DAYS = 7


def _check_times(start: datetime.datetime, end: datetime.datetime) -> None:
    if end < start:
        raise InvalidRequest(f"schedule end_time {end.isoformat()} precedes start_time {start.isoformat()}")


def create_schedule(user_id: int, data: ScheduleCreate) -> Schedule:
    _check_times(data.start_time, data.end_time)
    with db.get_session() as session:
        db.require(session, User, user_id)
        schedule = Schedule(user_id=user_id, is_completed=False, **data.model_dump())
        session.add(schedule)
        session.commit()
        logger.info("schedule_created", schedule_id=schedule.id, user_id=user_id)
        return schedule


def list_schedules(user_id: int) -> List[Schedule]:
    with db.get_session() as session:
        db.require(session, User, user_id)
        return session.query(Schedule).filter(Schedule.user_id == user_id).order_by(Schedule.start_time).all()


def get_schedule(schedule_id: int) -> Schedule:
    with db.get_session() as session:
        return db.require(session, Schedule, schedule_id)


def update_schedule(schedule_id: int, patch: ScheduleUpdate) -> Schedule:
    changes = patch.changes()
    with db.get_session() as session:
        schedule = db.require(session, Schedule, schedule_id)
        _check_times(changes.get("start_time", schedule.start_time), changes.get("end_time", schedule.end_time))
        for field, value in changes.items():
            setattr(schedule, field, value)
        session.commit()
        return schedule


def delete_schedule(schedule_id: int) -> None:
    with db.get_session() as session:
        schedule = db.require(session, Schedule, schedule_id)
        session.query(Reminder).filter(Reminder.schedule_id == schedule_id).update(
            {Reminder.schedule_id: None}, synchronize_session=False
        )
        session.delete(schedule)
        session.commit()


def create_reminder(user_id: int, data: ReminderCreate) -> Reminder:
    with db.get_session() as session:
        db.require(session, User, user_id)
        if data.schedule_id is not None:
            db.require(session, Schedule, data.schedule_id)
        reminder = Reminder(user_id=user_id, **data.model_dump())
        session.add(reminder)
        session.commit()
        logger.info("reminder_created", reminder_id=reminder.id, user_id=user_id)
        return reminder


def list_reminders(user_id: int) -> List[Reminder]:
    with db.get_session() as session:
        db.require(session, User, user_id)
        return (
            session.query(Reminder)
            .filter(Reminder.user_id == user_id)
            .order_by(Reminder.notification_time)
            .all()
        )


def upcoming_reminders(user_id: int) -> List[Reminder]:
    """Reminders due within the next seven days, soonest first."""
    current = db.now()
    with db.get_session() as session:
        db.require(session, User, user_id)
        return (
            session.query(Reminder)
            .filter(
                Reminder.user_id == user_id,
                Reminder.notification_time >= current,
                Reminder.notification_time <= current + datetime.timedelta(days=UPCOMING_DAYS),
            )
            .order_by(Reminder.notification_time)
            .all()
        )


def get_reminder(reminder_id: int) -> Reminder:
    with db.get_session() as session:
        return db.require(session, Reminder, reminder_id)


def update_reminder(reminder_id: int, patch: ReminderUpdate) -> Reminder:
    with db.get_session() as session:
        reminder = db.require(session, Reminder, reminder_id)
        for field, value in patch.changes().items():
            setattr(reminder, field, value)
        session.commit()
        return reminder


def delete_reminder(reminder_id: int) -> None:
    with db.get_session() as session:
        reminder = db.require(session, Reminder, reminder_id)
        session.delete(reminder)
        session.commit()
