"""
Timed study sessions.

Three kinds share one lifecycle: a session is Active while ``ended_at`` is
NULL and Ended once it is set. Ended is terminal. A user holds at most one
Active session per kind.

  - StudySession: generic pomodoro session, optionally linked to a goal
  - GoalStudySession: pomodoro session for a goal, duration derived from pomodoros
  - WordBookStudySession: flashcard session that snapshots the book's
    difficulty distribution at start and end
"""
from __future__ import annotations

import datetime
from typing import Any, Dict, List, Optional, Type, Union

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import cards, db, goals
from .db import Goal, GoalStudySession, StudySession, User, WordBook, WordBookStudySession
from .errors import Conflict, IllegalState, InvalidRequest, NotFound
from .schemas import GoalStudySessionEnd, StudySessionEnd, WordBookStudySessionEnd

logger = structlog.get_logger()

POMODORO_MINUTES = 25

PomodoroSession = Union[StudySession, GoalStudySession]
AnySession = Union[StudySession, GoalStudySession, WordBookStudySession]

# URL segment -> model
KINDS: Dict[str, Type[Any]] = {
    "study": StudySession,
    "goal-study": GoalStudySession,
    "wordbook-study": WordBookStudySession,
}


def _active(session: Session, model: Type[Any], user_id: int) -> Optional[Any]:
    return session.query(model).filter(model.user_id == user_id, model.ended_at.is_(None)).first()


def _commit_start(session: Session, model: Type[Any], study: Any) -> None:
    session.add(study)
    try:
        session.commit()
    except IntegrityError as e:
        # Partial unique index on active sessions caught a concurrent start
        session.rollback()
        raise Conflict(f"User {study.user_id} already has an active {model.__name__}") from e


def _check_can_start(session: Session, model: Type[Any], user_id: int) -> None:
    db.require(session, User, user_id)
    active = _active(session, model, user_id)
    if active is not None:
        raise Conflict(f"User {user_id} already has an active {model.__name__} (id {active.id})")


# ---------------------------------------------------------------------------
# Start
# ---------------------------------------------------------------------------

def _start_pomodoro(model: Type[Any], user_id: int, goal_id: Optional[int]) -> PomodoroSession:
    with db.get_session() as session:
        _check_can_start(session, model, user_id)
        if goal_id is not None:
            db.require(session, Goal, goal_id)
        study = model(
            user_id=user_id,
            goal_id=goal_id,
            started_at=db.now(),
            achieved_amount=0,
            duration_minutes=0,
            pomo_count=0,
        )
        _commit_start(session, model, study)
        logger.info("session_started", kind=model.__tablename__, session_id=study.id, user_id=user_id, goal_id=goal_id)
        return study


def start_study_session(user_id: int, goal_id: Optional[int] = None) -> StudySession:
    return _start_pomodoro(StudySession, user_id, goal_id)


def start_goal_study_session(user_id: int, goal_id: Optional[int] = None) -> GoalStudySession:
    return _start_pomodoro(GoalStudySession, user_id, goal_id)


def start_word_book_study_session(user_id: int, word_book_id: int) -> WordBookStudySession:
    """Start a flashcard session: snapshot the book's distribution and re-baseline its queue."""
    with db.get_session() as session:
        _check_can_start(session, WordBookStudySession, user_id)
        book = db.require(session, WordBook, word_book_id)
        counts = cards.difficulty_counts(session, word_book_id=word_book_id)
        cards.rebaseline_priorities(session, book)
        study = WordBookStudySession(
            user_id=user_id,
            word_book_id=word_book_id,
            started_at=db.now(),
            start_hard_count=counts["hard_count"],
            start_normal_count=counts["normal_count"],
            start_easy_count=counts["easy_count"],
        )
        _commit_start(session, WordBookStudySession, study)
        logger.info(
            "session_started",
            kind=WordBookStudySession.__tablename__,
            session_id=study.id,
            user_id=user_id,
            word_book_id=word_book_id,
        )
        return study


# ---------------------------------------------------------------------------
# Update / end
# ---------------------------------------------------------------------------

def _require_active(study: AnySession) -> None:
    if study.ended_at is not None:
        raise IllegalState(f"{type(study).__name__} {study.id} has already ended")


def update_pomo_count(model: Type[Any], session_id: int, pomo_count: int) -> PomodoroSession:
    if model not in (StudySession, GoalStudySession):
        raise InvalidRequest(f"{model.__name__} does not track pomodoros")
    if pomo_count < 0:
        raise InvalidRequest(f"pomo_count must not be negative (got {pomo_count})")
    with db.get_session() as session:
        study = db.require(session, model, session_id)
        _require_active(study)
        study.pomo_count = pomo_count
        study.duration_minutes = pomo_count * POMODORO_MINUTES
        session.commit()
        return study


def _credit_goal(session: Session, study: PomodoroSession) -> None:
    if study.goal_id is None or study.achieved_amount <= 0:
        return
    goal = session.get(Goal, study.goal_id)
    if goal is not None:
        goals.apply_progress(goal, study.achieved_amount)


def end_study_session(session_id: int, data: StudySessionEnd) -> StudySession:
    with db.get_session() as session:
        study = db.require(session, StudySession, session_id)
        _require_active(study)
        study.ended_at = db.now()
        study.achieved_amount = data.achieved_amount
        study.duration_minutes = data.duration_minutes
        study.pomo_count = data.pomo_count
        study.note = data.note
        _credit_goal(session, study)
        session.commit()
        logger.info("session_ended", kind=StudySession.__tablename__, session_id=session_id,
                    duration_minutes=study.duration_minutes)
        return study


def end_goal_study_session(session_id: int, data: GoalStudySessionEnd) -> GoalStudySession:
    with db.get_session() as session:
        study = db.require(session, GoalStudySession, session_id)
        _require_active(study)
        study.ended_at = db.now()
        study.achieved_amount = data.achieved_amount
        study.pomo_count = data.pomo_count
        study.duration_minutes = data.pomo_count * POMODORO_MINUTES
        study.note = data.note
        _credit_goal(session, study)
        session.commit()
        logger.info("session_ended", kind=GoalStudySession.__tablename__, session_id=session_id,
                    duration_minutes=study.duration_minutes)
        return study


def end_word_book_study_session(session_id: int, data: WordBookStudySessionEnd) -> WordBookStudySession:
    with db.get_session() as session:
        study = db.require(session, WordBookStudySession, session_id)
        _require_active(study)
        if study.word_book_id is not None:
            live = cards.difficulty_counts(session, word_book_id=study.word_book_id)
        else:
            live = {"hard_count": 0, "normal_count": 0, "easy_count": 0}
        study.ended_at = db.now()
        study.end_hard_count = data.end_hard_count if data.end_hard_count is not None else live["hard_count"]
        study.end_normal_count = data.end_normal_count if data.end_normal_count is not None else live["normal_count"]
        study.end_easy_count = data.end_easy_count if data.end_easy_count is not None else live["easy_count"]
        session.commit()
        logger.info("session_ended", kind=WordBookStudySession.__tablename__, session_id=session_id,
                    duration_minutes=study.duration_minutes)
        return study


def delete_session(model: Type[Any], session_id: int) -> None:
    with db.get_session() as session:
        study = db.require(session, model, session_id)
        session.delete(study)
        session.commit()
        logger.info("session_deleted", kind=model.__tablename__, session_id=session_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_session_record(model: Type[Any], session_id: int) -> AnySession:
    with db.get_session() as session:
        return db.require(session, model, session_id)


def list_sessions(model: Type[Any], user_id: int) -> List[AnySession]:
    with db.get_session() as session:
        db.require(session, User, user_id)
        return session.query(model).filter(model.user_id == user_id).order_by(model.started_at.desc(), model.id).all()


def get_active_session(model: Type[Any], user_id: int) -> AnySession:
    with db.get_session() as session:
        db.require(session, User, user_id)
        study = _active(session, model, user_id)
        if study is None:
            raise NotFound(f"User {user_id} has no active {model.__name__}")
        return study


def list_by_goal(model: Type[Any], goal_id: int) -> List[PomodoroSession]:
    if model not in (StudySession, GoalStudySession):
        raise InvalidRequest(f"{model.__name__} is not linked to goals")
    with db.get_session() as session:
        return session.query(model).filter(model.goal_id == goal_id).order_by(model.id).all()


def list_by_word_book(word_book_id: int) -> List[WordBookStudySession]:
    with db.get_session() as session:
        return (
            session.query(WordBookStudySession)
            .filter(WordBookStudySession.word_book_id == word_book_id)
            .order_by(WordBookStudySession.id)
            .all()
        )


def session_statistics(
    model: Type[Any], user_id: int, start: datetime.datetime, end: datetime.datetime
) -> Dict[str, Any]:
    """Totals over sessions started between ``start`` and ``end`` (inclusive)."""
    if end < start:
        raise InvalidRequest("end must not be before start")
    with db.get_session() as session:
        db.require(session, User, user_id)
        in_range = (model.user_id == user_id, model.started_at >= start, model.started_at <= end)
        if model is WordBookStudySession:
            studies = session.query(model).filter(*in_range).all()
            return {
                "total_sessions": len(studies),
                "total_minutes": sum(s.duration_minutes for s in studies),
                "hard_improvement": sum(s.start_hard_count - s.end_hard_count for s in studies if not s.in_progress),
                "easy_increase": sum(s.end_easy_count - s.start_easy_count for s in studies if not s.in_progress),
            }
        total_sessions, total_minutes, total_pomo_count, total_achieved = (
            session.query(
                func.count(model.id),
                func.coalesce(func.sum(model.duration_minutes), 0),
                func.coalesce(func.sum(model.pomo_count), 0),
                func.coalesce(func.sum(model.achieved_amount), 0),
            )
            .filter(*in_range)
            .one()
        )
        return {
            "total_sessions": int(total_sessions),
            "total_minutes": int(total_minutes),
            "total_pomo_count": int(total_pomo_count),
            "total_achieved_amount": int(total_achieved),
        }
