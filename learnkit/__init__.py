"""
LearnKit

Study-management backend: word-books and flashcards scheduled by review
priority, goals, pomodoro study sessions, and weekly statistics.
"""

from . import db
from . import errors
from . import schemas
from . import scheduler
from . import cards
from . import weekly
from . import goals
from . import sessions
from . import users
from . import planner

__version__ = "0.1.0"
__all__ = [
    "db", "errors", "schemas", "scheduler", "cards", "weekly", "goals", "sessions", "users", "planner",
]
