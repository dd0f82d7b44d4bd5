from __future__ import annotations
from sqlalchemy import (
    create_engine, Boolean, Date, DateTime, Enum as SAEnum, Float as SAFloat, ForeignKey, Index, Integer,
    String, Text, UniqueConstraint, text,
)
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session, Mapped, mapped_column
import datetime
import enum
import os
from typing import Optional, Any, Dict

from .errors import NotFound


class Base(DeclarativeBase):
    pass


DB_PATH: str = os.environ.get("LEARNKIT_DB", "learnkit.db")
DATABASE_URL: str = os.environ.get("LEARNKIT_DATABASE_URL") or f"sqlite:///{DB_PATH}"
engine = create_engine(DATABASE_URL)
# Prevent attribute expiration on commit so returned objects remain accessible
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def now() -> datetime.datetime:
    """Current local wall-clock time. Every timestamp in the database goes through here."""
    return datetime.datetime.now()


def _iso(value: Optional[datetime.datetime | datetime.date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class Difficulty(str, enum.Enum):
    EASY = "EASY"
    NORMAL = "NORMAL"
    HARD = "HARD"


class TimestampMixin:
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: now())
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: now(), onupdate=lambda: now())


class User(TimestampMixin, Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    nickname: Mapped[str] = mapped_column(String, nullable=False)
    profile_image_url: Mapped[Optional[str]] = mapped_column(Text)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "nickname": self.nickname,
            "profile_image_url": self.profile_image_url,
            "created_at": _iso(self.created_at),
        }


class WordBook(TimestampMixin, Base):
    """A named set of flashcards. The three ratios say how often HARD/NORMAL cards come back relative to EASY."""
    __tablename__ = "wordbooks"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500))
    hard_frequency_ratio: Mapped[int] = mapped_column(Integer, nullable=False, default=6)
    normal_frequency_ratio: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    easy_frequency_ratio: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    @property
    def ratios(self) -> Dict[Difficulty, int]:
        return {
            Difficulty.HARD: self.hard_frequency_ratio,
            Difficulty.NORMAL: self.normal_frequency_ratio,
            Difficulty.EASY: self.easy_frequency_ratio,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "hard_frequency_ratio": self.hard_frequency_ratio,
            "normal_frequency_ratio": self.normal_frequency_ratio,
            "easy_frequency_ratio": self.easy_frequency_ratio,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Card(TimestampMixin, Base):
    __tablename__ = "cards"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    word_book_id: Mapped[int] = mapped_column(ForeignKey("wordbooks.id"), nullable=False, index=True)
    front_text: Mapped[str] = mapped_column(Text, nullable=False)
    back_text: Mapped[str] = mapped_column(Text, nullable=False)
    difficulty: Mapped[Optional[Difficulty]] = mapped_column(SAEnum(Difficulty, native_enum=False, length=10))
    review_priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # lower = due sooner
    last_reviewed_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "word_book_id": self.word_book_id,
            "front_text": self.front_text,
            "back_text": self.back_text,
            "difficulty": self.difficulty.value if self.difficulty else None,
            "review_priority": self.review_priority,
            "last_reviewed_at": _iso(self.last_reviewed_at),
            "view_count": self.view_count,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Goal(TimestampMixin, Base):
    __tablename__ = "goals"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[Optional[datetime.date]] = mapped_column(Date)
    end_date: Mapped[Optional[datetime.date]] = mapped_column(Date)
    total_target_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    target_unit: Mapped[str] = mapped_column(String(50), nullable=False)
    current_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "total_target_amount": self.total_target_amount,
            "target_unit": self.target_unit,
            "current_progress": self.current_progress,
            "is_completed": self.is_completed,
            "completed_at": _iso(self.completed_at),
        }


def _active_session_index(table: str) -> Index:
    # At most one row per user with ended_at IS NULL
    return Index(
        f"uq_{table}_active_user",
        "user_id",
        unique=True,
        sqlite_where=text("ended_at IS NULL"),
        postgresql_where=text("ended_at IS NULL"),
    )


class PomodoroSessionMixin:
    """Columns shared by the generic and the goal-linked pomodoro sessions."""
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    goal_id: Mapped[Optional[int]] = mapped_column(ForeignKey("goals.id"), index=True)
    started_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=lambda: now())
    ended_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)  # NULL = in progress
    achieved_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pomo_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    note: Mapped[Optional[str]] = mapped_column(Text)

    @property
    def in_progress(self) -> bool:
        return self.ended_at is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "goal_id": self.goal_id,
            "started_at": _iso(self.started_at),
            "ended_at": _iso(self.ended_at),
            "in_progress": self.in_progress,
            "achieved_amount": self.achieved_amount,
            "duration_minutes": self.duration_minutes,
            "pomo_count": self.pomo_count,
            "note": self.note,
        }


class StudySession(PomodoroSessionMixin, TimestampMixin, Base):
    __tablename__ = "study_sessions"
    __table_args__ = (_active_session_index("study_sessions"),)


class GoalStudySession(PomodoroSessionMixin, TimestampMixin, Base):
    __tablename__ = "goal_study_sessions"
    __table_args__ = (_active_session_index("goal_study_sessions"),)


class WordBookStudySession(TimestampMixin, Base):
    __tablename__ = "wordbook_study_sessions"
    __table_args__ = (_active_session_index("wordbook_study_sessions"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    word_book_id: Mapped[Optional[int]] = mapped_column(ForeignKey("wordbooks.id"), index=True)
    started_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=lambda: now())
    ended_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    # difficulty distribution when the session started / ended
    start_hard_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_normal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_easy_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    end_hard_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    end_normal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    end_easy_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    @property
    def in_progress(self) -> bool:
        return self.ended_at is None

    @property
    def duration_minutes(self) -> int:
        """Whole wall-clock minutes between start and end, 0 while in progress."""
        if self.ended_at is None:
            return 0
        return int((self.ended_at - self.started_at).total_seconds() // 60)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "word_book_id": self.word_book_id,
            "started_at": _iso(self.started_at),
            "ended_at": _iso(self.ended_at),
            "in_progress": self.in_progress,
            "duration_minutes": self.duration_minutes,
            "start_counts": {
                "hard": self.start_hard_count,
                "normal": self.start_normal_count,
                "easy": self.start_easy_count,
            },
            "end_counts": {
                "hard": self.end_hard_count,
                "normal": self.end_normal_count,
                "easy": self.end_easy_count,
            },
        }


class WeeklyCardBaseline(TimestampMixin, Base):
    __tablename__ = "weekly_card_baselines"
    __table_args__ = (UniqueConstraint("user_id", "year", "month", "week_number", name="uq_weekly_card_baseline_week"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    total_card_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hard_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    normal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    easy_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class WeeklyGoalBaseline(TimestampMixin, Base):
    __tablename__ = "weekly_goal_baselines"
    __table_args__ = (
        UniqueConstraint("user_id", "goal_id", "year", "month", "week_number", name="uq_weekly_goal_baseline_week"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    goal_id: Mapped[int] = mapped_column(Integer, nullable=False)  # survives goal deletion
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    start_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)
    goal_title: Mapped[str] = mapped_column(String, nullable=False)


class WeeklyStat(TimestampMixin, Base):
    __tablename__ = "weekly_stats"
    __table_args__ = (UniqueConstraint("user_id", "year", "month", "week_number", name="uq_weekly_stat_week"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    achievement_rate: Mapped[float] = mapped_column(SAFloat, nullable=False, default=0.0)


class Schedule(TimestampMixin, Base):
    __tablename__ = "schedules"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    start_time: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "is_completed": self.is_completed,
        }


class Reminder(TimestampMixin, Base):
    __tablename__ = "reminders"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    schedule_id: Mapped[Optional[int]] = mapped_column(ForeignKey("schedules.id"))
    message: Mapped[str] = mapped_column(String, nullable=False)
    notification_time: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "schedule_id": self.schedule_id,
            "message": self.message,
            "notification_time": _iso(self.notification_time),
        }


class AppLaunch(Base):
    __tablename__ = "app_launches"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    launch_time: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=lambda: now())


def is_db_initialized() -> bool:
    """Check if the database is already initialized by checking if tables exist."""
    from sqlalchemy import inspect
    inspector = inspect(engine)
    table_names = inspector.get_table_names()
    return set(Base.metadata.tables).issubset(set(table_names))


def init_db() -> None:
    """Initialize the database by creating all tables."""
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    return SessionLocal()


def require(session: Session, model: Any, entity_id: Any) -> Any:
    """``session.get`` that raises NotFound naming the model and id."""
    instance = session.get(model, entity_id)
    if instance is None:
        raise NotFound.entity(model.__name__, entity_id)
    return instance
