from __future__ import annotations

from typing import List

import structlog

from . import db, weekly
from .db import Goal, GoalStudySession, StudySession, User
from .errors import InvalidRequest
from .schemas import GoalCreate, GoalUpdate

logger = structlog.get_logger()


def latch_completion(goal: Goal) -> bool:
    """Mark the goal completed the first time progress reaches the target. Never un-completes."""
    if not goal.is_completed and goal.current_progress >= goal.total_target_amount:
        goal.is_completed = True
        goal.completed_at = db.now()
        logger.info("goal_completed", goal_id=goal.id, progress=goal.current_progress)
        return True
    return False


def apply_progress(goal: Goal, amount: int) -> Goal:
    if amount < 0:
        raise InvalidRequest(f"progress amount must not be negative (got {amount})")
    goal.current_progress = goal.current_progress + amount
    latch_completion(goal)
    return goal


def create_goal(user_id: int, data: GoalCreate) -> Goal:
    """Create a goal and snapshot it into this week's goal baselines."""
    with db.get_session() as session:
        db.require(session, User, user_id)
        goal = Goal(user_id=user_id, current_progress=0, is_completed=False, **data.model_dump())
        session.add(goal)
        session.flush()
        weekly.add_goal_baseline(session, goal, weekly.week_key(db.now().date()))
        session.commit()
        logger.info("goal_created", goal_id=goal.id, user_id=user_id)
        return goal


def list_goals(user_id: int) -> List[Goal]:
    with db.get_session() as session:
        db.require(session, User, user_id)
        return session.query(Goal).filter(Goal.user_id == user_id).order_by(Goal.id).all()


def list_active_goals(user_id: int) -> List[Goal]:
    with db.get_session() as session:
        db.require(session, User, user_id)
        return (
            session.query(Goal)
            .filter(Goal.user_id == user_id, Goal.is_completed.is_(False))
            .order_by(Goal.id)
            .all()
        )


def get_goal(goal_id: int) -> Goal:
    with db.get_session() as session:
        return db.require(session, Goal, goal_id)


def update_goal(goal_id: int, patch: GoalUpdate) -> Goal:
    changes = patch.changes()
    with db.get_session() as session:
        goal = db.require(session, Goal, goal_id)
        for field, value in changes.items():
            setattr(goal, field, value)
        latch_completion(goal)
        session.commit()
        return goal


def delete_goal(goal_id: int) -> None:
    """Delete a goal. Linked sessions are detached; weekly baselines are kept."""
    with db.get_session() as session:
        goal = db.require(session, Goal, goal_id)
        for model in (StudySession, GoalStudySession):
            session.query(model).filter(model.goal_id == goal_id).update(
                {model.goal_id: None}, synchronize_session=False
            )
        session.delete(goal)
        session.commit()
        logger.info("goal_deleted", goal_id=goal_id)


def add_progress(goal_id: int, amount: int) -> Goal:
    with db.get_session() as session:
        goal = db.require(session, Goal, goal_id)
        apply_progress(goal, amount)
        session.commit()
        logger.info("goal_progress_added", goal_id=goal_id, amount=amount, progress=goal.current_progress)
        return goal
