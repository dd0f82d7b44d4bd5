"""
Shared fixtures: a throwaway SQLite database per test, a pinned clock, and
small factories for the entities most tests need.
"""

import os
import tempfile
import datetime
from typing import Any, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# app.py skips its startup side effects in test mode
os.environ.setdefault("TEST_MODE", "1")

from learnkit import cards, db, goals, users
from learnkit.schemas import CardCreate, GoalCreate, UserCreate, WordBookCreate

# Wednesday of the third week of October 2026 (Oct 1 is a Thursday)
FIXED_NOW = datetime.datetime(2026, 10, 14, 10, 30, 0)


class Clock:
    """Stand-in for db.now() that only moves when told to."""

    def __init__(self, start: datetime.datetime) -> None:
        self.current = start

    def __call__(self) -> datetime.datetime:
        return self.current

    def advance(self, **kwargs: Any) -> datetime.datetime:
        self.current += datetime.timedelta(**kwargs)
        return self.current

    def set(self, value: datetime.datetime) -> None:
        self.current = value


@pytest.fixture(scope="function")
def temp_db() -> Generator[None, None, None]:
    """Setup transient SQLite DB for testing."""
    fd, path = tempfile.mkstemp()
    os.close(fd)
    db.engine = create_engine(f"sqlite:///{path}")
    db.SessionLocal = sessionmaker(bind=db.engine, expire_on_commit=False)
    db.Base.metadata.create_all(bind=db.engine)
    yield
    db.engine.dispose()
    os.unlink(path)


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> Clock:
    fake = Clock(FIXED_NOW)
    monkeypatch.setattr(db, "now", fake)
    return fake


@pytest.fixture
def user(temp_db: Any, clock: Clock) -> db.User:
    return users.create_user(UserCreate(email="learner@example.com", nickname="learner"))


def make_word_book(user_id: int, title: str = "JLPT N3", ratios: tuple = (6, 3, 1)) -> db.WordBook:
    hard, normal, easy = ratios
    return cards.create_word_book(user_id, WordBookCreate(
        title=title,
        hard_frequency_ratio=hard,
        normal_frequency_ratio=normal,
        easy_frequency_ratio=easy,
    ))


def make_cards(word_book_id: int, count: int, difficulty: Any = None) -> list:
    return [
        cards.create_card(word_book_id, CardCreate(front_text=f"front {i}", back_text=f"back {i}", difficulty=difficulty))
        for i in range(count)
    ]


def make_goal(user_id: int, total: int = 100, unit: str = "pages", title: str = "Read the textbook") -> db.Goal:
    return goals.create_goal(user_id, GoalCreate(title=title, total_target_amount=total, target_unit=unit))


def count_rows(model: Any) -> int:
    session = db.get_session()
    n = session.query(model).count()
    session.close()
    return n
