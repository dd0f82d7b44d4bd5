"""
Weekly baselines and statistics.

At the start of a week (or on the first request that notices the week
changed) the user's card difficulty distribution and every goal's progress
are snapshotted into baseline rows keyed by (year, month, week_of_month).
Weekly statistics are then the difference between the live values and those
baselines.

Weeks run Monday to Sunday. The first, possibly partial, week of a month is
week 1, so a week that spans two months is keyed by the month of the day the
key is computed for.
"""
from __future__ import annotations

import datetime
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import cards, db
from .db import (
    Card, Goal, GoalStudySession, StudySession, User, WeeklyCardBaseline, WeeklyGoalBaseline, WeeklyStat,
    WordBook, WordBookStudySession,
)

logger = structlog.get_logger()

WeekKey = Tuple[int, int, int]


def week_key(day: datetime.date) -> WeekKey:
    first_weekday = day.replace(day=1).weekday()  # Monday = 0
    return day.year, day.month, (day.day - 1 + first_weekday) // 7 + 1


def week_bounds(day: datetime.date) -> Tuple[datetime.datetime, datetime.datetime]:
    """Monday 00:00 through Sunday 23:59:59.999999 of the week containing ``day``."""
    monday = day - datetime.timedelta(days=day.weekday())
    sunday = monday + datetime.timedelta(days=6)
    return datetime.datetime.combine(monday, datetime.time.min), datetime.datetime.combine(sunday, datetime.time.max)


def _key_filter(model: Any, user_id: int, key: WeekKey) -> List[Any]:
    year, month, week_number = key
    return [model.user_id == user_id, model.year == year, model.month == month, model.week_number == week_number]


def _card_baseline(session: Session, user_id: int, key: WeekKey) -> Optional[WeeklyCardBaseline]:
    return session.query(WeeklyCardBaseline).filter(*_key_filter(WeeklyCardBaseline, user_id, key)).first()


def add_goal_baseline(session: Session, goal: Goal, key: WeekKey) -> bool:
    """Snapshot ``goal`` for week ``key`` unless it already has a baseline there."""
    existing = (
        session.query(WeeklyGoalBaseline.id)
        .filter(*_key_filter(WeeklyGoalBaseline, goal.user_id, key), WeeklyGoalBaseline.goal_id == goal.id)
        .first()
    )
    if existing is not None:
        return False
    year, month, week_number = key
    session.add(WeeklyGoalBaseline(
        user_id=goal.user_id,
        goal_id=goal.id,
        year=year,
        month=month,
        week_number=week_number,
        start_amount=goal.current_progress,
        unit=goal.target_unit,
        goal_title=goal.title,
    ))
    return True


def ensure_weekly_baselines(user_id: int) -> bool:
    """Create this week's baselines for ``user_id`` if the card baseline is missing.

    Safe to call any number of times. Returns True when rows were written.
    """
    key = week_key(db.now().date())
    year, month, week_number = key
    with db.get_session() as session:
        db.require(session, User, user_id)
        if _card_baseline(session, user_id, key) is not None:
            return False

        counts = cards.difficulty_counts(session, user_id=user_id)
        total = (
            session.query(func.count(Card.id))
            .join(WordBook, Card.word_book_id == WordBook.id)
            .filter(WordBook.user_id == user_id)
            .scalar()
        ) or 0
        goals = session.query(Goal).filter(Goal.user_id == user_id).order_by(Goal.id).all()
        goals_snapshotted = 0
        try:
            session.add(WeeklyCardBaseline(
                user_id=user_id,
                year=year,
                month=month,
                week_number=week_number,
                total_card_count=total,
                hard_count=counts["hard_count"],
                normal_count=counts["normal_count"],
                easy_count=counts["easy_count"],
            ))
            for goal in goals:
                if add_goal_baseline(session, goal, key):
                    goals_snapshotted += 1
            session.commit()
        except IntegrityError:
            # A concurrent request created them first
            session.rollback()
            logger.info("weekly_baselines_already_created", user_id=user_id, week=key)
            return False
        logger.info(
            "weekly_baselines_created",
            user_id=user_id,
            week=key,
            total_cards=total,
            goals=goals_snapshotted,
        )
        return True


def _bucket(hard: int, normal: int, easy: int) -> Dict[str, int]:
    return {"hard": hard, "normal": normal, "easy": easy}


def get_weekly_stats(user_id: int) -> Dict[str, Any]:
    today = db.now().date()
    key = week_key(today)
    start, end = week_bounds(today)
    with db.get_session() as session:
        db.require(session, User, user_id)

        pomodoro_minutes = (
            session.query(func.coalesce(func.sum(GoalStudySession.duration_minutes), 0))
            .filter(
                GoalStudySession.user_id == user_id,
                GoalStudySession.started_at >= start,
                GoalStudySession.started_at <= end,
            )
            .scalar()
        ) or 0
        word_book_sessions = (
            session.query(WordBookStudySession)
            .filter(
                WordBookStudySession.user_id == user_id,
                WordBookStudySession.started_at >= start,
                WordBookStudySession.started_at <= end,
            )
            .all()
        )
        word_book_minutes = sum(s.duration_minutes for s in word_book_sessions)

        # No baseline yet means every current card counts as a change this week
        baseline = _card_baseline(session, user_id, key)
        if baseline is None:
            week_start = _bucket(0, 0, 0)
        else:
            week_start = _bucket(baseline.hard_count, baseline.normal_count, baseline.easy_count)
        live = cards.difficulty_counts(session, user_id=user_id)
        current = _bucket(live["hard_count"], live["normal_count"], live["easy_count"])
        changes = {bucket: current[bucket] - week_start[bucket] for bucket in current}

        goal_progress = []
        goal_baselines = (
            session.query(WeeklyGoalBaseline)
            .filter(*_key_filter(WeeklyGoalBaseline, user_id, key))
            .order_by(WeeklyGoalBaseline.goal_id)
            .all()
        )
        for goal_baseline in goal_baselines:
            goal = session.get(Goal, goal_baseline.goal_id)
            if goal is None:
                continue
            goal_progress.append({
                "goal_id": goal.id,
                "goal_title": goal.title,
                "start_amount": goal_baseline.start_amount,
                "current_amount": goal.current_progress,
                "change": goal.current_progress - goal_baseline.start_amount,
                "unit": goal_baseline.unit,
            })

    year, month, week_number = key
    return {
        "week_info": {"year": year, "month": month, "week_number": week_number},
        "study_time": {
            "pomodoro_minutes": pomodoro_minutes,
            "word_book_minutes": word_book_minutes,
            "total_minutes": pomodoro_minutes + word_book_minutes,
        },
        "card_improvement": {"week_start": week_start, "current": current, "changes": changes},
        "goal_progress": goal_progress,
    }


def _upsert_weekly_stat(session: Session, user_id: int, key: WeekKey, rate: float) -> None:
    stat = session.query(WeeklyStat).filter(*_key_filter(WeeklyStat, user_id, key)).first()
    if stat is None:
        year, month, week_number = key
        session.add(WeeklyStat(
            user_id=user_id, year=year, month=month, week_number=week_number, achievement_rate=rate
        ))
    else:
        stat.achievement_rate = rate


def get_weekly_summary(user_id: int) -> Dict[str, Any]:
    """Generic study-session totals for this week plus the goal achievement rate.

    The rate is written to the WeeklyStat row for the week on every call.
    """
    today = db.now().date()
    key = week_key(today)
    start, end = week_bounds(today)
    with db.get_session() as session:
        db.require(session, User, user_id)
        total_minutes, total_pomo_count, total_sessions = (
            session.query(
                func.coalesce(func.sum(StudySession.duration_minutes), 0),
                func.coalesce(func.sum(StudySession.pomo_count), 0),
                func.count(StudySession.id),
            )
            .filter(
                StudySession.user_id == user_id,
                StudySession.started_at >= start,
                StudySession.started_at <= end,
            )
            .one()
        )
        total_goals = session.query(func.count(Goal.id)).filter(Goal.user_id == user_id).scalar() or 0
        completed_goals = (
            session.query(func.count(Goal.id))
            .filter(Goal.user_id == user_id, Goal.is_completed.is_(True))
            .scalar()
        ) or 0
        rate = completed_goals / total_goals if total_goals else 0.0

        _upsert_weekly_stat(session, user_id, key, rate)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            _upsert_weekly_stat(session, user_id, key, rate)
            session.commit()

    year, month, week_number = key
    return {
        "year": year,
        "month": month,
        "week_number": week_number,
        "total_minutes": int(total_minutes),
        "total_pomo_count": int(total_pomo_count),
        "total_sessions": int(total_sessions),
        "achievement_rate": rate,
    }
