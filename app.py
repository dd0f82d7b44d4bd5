#!/usr/bin/env python3
"""
LearnKit - Flask JSON API
Word-books and flashcards, goals, pomodoro study sessions and weekly
statistics over HTTP. Every route lives under /api and speaks JSON.
"""

import os
import sys
import logging
from datetime import datetime
from typing import Any, Type

import structlog
from flask import Flask, jsonify, request
from pydantic import BaseModel, ValidationError
from werkzeug.exceptions import HTTPException

# Check for test mode
TEST_MODE = os.environ.get("TEST_MODE", "0") == "1"

# Check for debug mode
DEBUG = os.environ.get("DEBUG", "0") == "1"

# Add the current directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from learnkit import cards, db, goals, planner, sessions, users, weekly
from learnkit.db import GoalStudySession, WordBookStudySession
from learnkit.errors import InvalidRequest, LearnKitError
from learnkit.schemas import (
    CardCreate, CardReview, CardUpdate, DateRange, GoalCreate, GoalProgress, GoalStudySessionEnd, GoalUpdate,
    ReminderCreate, ReminderUpdate, ScheduleCreate, ScheduleUpdate, StudySessionEnd, StudySessionStart,
    UserCreate, UserProfileUpdate, WordBookCreate, WordBookStudySessionEnd, WordBookStudySessionStart,
    WordBookUpdate,
)


def configure_logging(debug: bool = DEBUG) -> None:
    """Console output in development, JSON lines when ENV=production."""
    is_production = os.getenv("ENV", "development").lower() == "production"
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if is_production:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger()

app = Flask(__name__)
app.config["API_TOKEN"] = os.environ.get("LEARNKIT_API_TOKEN") or None

KIND = '<any(study, "goal-study", "wordbook-study"):kind>'
POMODORO_KIND = '<any(study, "goal-study"):kind>'


# ---------------------------------------------------------------------------
# Request plumbing
# ---------------------------------------------------------------------------

def error_response(status: int, message: str) -> Any:
    body = {"status": status, "message": message, "timestamp": datetime.now().isoformat()}
    return jsonify(body), status


def parse_body(model: Type[BaseModel]) -> Any:
    """Validate the JSON body against ``model``. A missing body counts as ``{}``."""
    data = request.get_json(silent=True)
    return model.model_validate({} if data is None else data)


def int_arg(name: str, required: bool = True) -> Any:
    raw = request.args.get(name)
    if raw is None:
        if required:
            raise InvalidRequest(f"missing query parameter: {name}")
        return None
    try:
        return int(raw)
    except ValueError:
        raise InvalidRequest(f"query parameter {name} must be an integer (got {raw!r})")


def listing(items: Any) -> Any:
    return jsonify([item.to_dict() for item in items])


@app.before_request
def initialize_app() -> None:
    """Initialize the database if needed."""
    if TEST_MODE or hasattr(app, "_database_initialized"):
        return
    if not db.is_db_initialized():
        db.init_db()
        logger.info("database_initialized", url=db.DATABASE_URL)
    setattr(app, "_database_initialized", True)


@app.before_request
def check_api_token() -> Any:
    """When LEARNKIT_API_TOKEN is configured every /api call must present it."""
    token = app.config.get("API_TOKEN")
    if not token or not request.path.startswith("/api/"):
        return None
    if request.headers.get("X-Api-Token") != token:
        logger.warning("api_token_rejected", path=request.path, remote_addr=request.remote_addr)
        return error_response(401, "Missing or invalid API token")
    return None


@app.errorhandler(LearnKitError)
def handle_domain_error(e: LearnKitError) -> Any:
    logger.info("request_failed", path=request.path, status=e.status_code, error=e.message)
    return error_response(e.status_code, e.message)


@app.errorhandler(ValidationError)
def handle_validation_error(e: ValidationError) -> Any:
    details = "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}" for err in e.errors()
    )
    return error_response(400, f"Invalid request: {details}")


@app.errorhandler(HTTPException)
def handle_http_error(e: HTTPException) -> Any:
    return error_response(e.code or 500, e.description or e.name)


@app.errorhandler(Exception)
def handle_unexpected_error(e: Exception) -> Any:
    logger.exception("unhandled_error", path=request.path, method=request.method)
    return error_response(500, "Internal server error")


@app.route("/health")
def health() -> Any:
    return jsonify({"status": "ok"})


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@app.route("/api/users", methods=["POST"])
def create_user() -> Any:
    user = users.create_user(parse_body(UserCreate))
    return jsonify(user.to_dict()), 201


@app.route("/api/users/<int:user_id>")
def get_user(user_id: int) -> Any:
    return jsonify(users.get_user(user_id).to_dict())


@app.route("/api/users/search")
def search_user() -> Any:
    email = request.args.get("email")
    if not email:
        raise InvalidRequest("missing query parameter: email")
    return jsonify(users.find_user_by_email(email).to_dict())


@app.route("/api/users/<int:user_id>/profile", methods=["PATCH"])
def update_profile(user_id: int) -> Any:
    return jsonify(users.update_profile(user_id, parse_body(UserProfileUpdate)).to_dict())


@app.route("/api/users/<int:user_id>/app-launches", methods=["POST"])
def record_app_launch(user_id: int) -> Any:
    launch = users.record_app_launch(user_id)
    return jsonify({
        "id": launch.id,
        "user_id": launch.user_id,
        "launch_time": launch.launch_time.isoformat(),
    }), 201


@app.route("/api/users/<int:user_id>/peak-hours")
def peak_hours(user_id: int) -> Any:
    return jsonify(users.peak_hours(user_id))


# ---------------------------------------------------------------------------
# Word-books and cards
# ---------------------------------------------------------------------------

@app.route("/api/users/<int:user_id>/wordbooks", methods=["POST"])
def create_word_book(user_id: int) -> Any:
    book = cards.create_word_book(user_id, parse_body(WordBookCreate))
    return jsonify(book.to_dict()), 201


@app.route("/api/users/<int:user_id>/wordbooks")
def list_word_books(user_id: int) -> Any:
    return listing(cards.list_word_books(user_id))


@app.route("/api/wordbooks/<int:word_book_id>")
def get_word_book(word_book_id: int) -> Any:
    return jsonify(cards.get_word_book(word_book_id).to_dict())


@app.route("/api/wordbooks/<int:word_book_id>", methods=["PATCH"])
def update_word_book(word_book_id: int) -> Any:
    return jsonify(cards.update_word_book(word_book_id, parse_body(WordBookUpdate)).to_dict())


@app.route("/api/wordbooks/<int:word_book_id>", methods=["DELETE"])
def delete_word_book(word_book_id: int) -> Any:
    cards.delete_word_book(word_book_id)
    return "", 204


@app.route("/api/wordbooks/<int:word_book_id>/cards", methods=["POST"])
def create_card(word_book_id: int) -> Any:
    card = cards.create_card(word_book_id, parse_body(CardCreate))
    return jsonify(card.to_dict()), 201


@app.route("/api/wordbooks/<int:word_book_id>/cards")
def list_cards(word_book_id: int) -> Any:
    return listing(cards.list_cards(word_book_id))


@app.route("/api/wordbooks/<int:word_book_id>/cards/next")
def next_due_card(word_book_id: int) -> Any:
    return jsonify(cards.next_due_card(word_book_id).to_dict())


@app.route("/api/wordbooks/<int:word_book_id>/cards/statistics")
def word_book_card_statistics(word_book_id: int) -> Any:
    return jsonify(cards.word_book_card_statistics(word_book_id))


@app.route("/api/wordbooks/<int:word_book_id>/cards/reset-priorities", methods=["POST"])
def reset_word_book_priorities(word_book_id: int) -> Any:
    return jsonify({"reset": cards.reset_word_book_priorities(word_book_id)})


@app.route("/api/users/<int:user_id>/cards/statistics")
def user_card_statistics(user_id: int) -> Any:
    return jsonify(cards.user_card_statistics(user_id))


@app.route("/api/cards/<int:card_id>")
def get_card(card_id: int) -> Any:
    return jsonify(cards.get_card(card_id).to_dict())


@app.route("/api/cards/<int:card_id>", methods=["PATCH"])
def update_card(card_id: int) -> Any:
    return jsonify(cards.update_card(card_id, parse_body(CardUpdate)).to_dict())


@app.route("/api/cards/<int:card_id>", methods=["DELETE"])
def delete_card(card_id: int) -> Any:
    cards.delete_card(card_id)
    return "", 204


@app.route("/api/cards/<int:card_id>/review", methods=["PATCH"])
def review_card(card_id: int) -> Any:
    review = parse_body(CardReview)
    return jsonify(cards.review_card(card_id, review.difficulty).to_dict())


@app.route("/api/cards/<int:card_id>/priority", methods=["PATCH"])
def reset_card_priority(card_id: int) -> Any:
    return jsonify(cards.reset_priority(card_id, int_arg("priority")).to_dict())


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------

@app.route("/api/users/<int:user_id>/goals", methods=["POST"])
def create_goal(user_id: int) -> Any:
    goal = goals.create_goal(user_id, parse_body(GoalCreate))
    return jsonify(goal.to_dict()), 201


@app.route("/api/users/<int:user_id>/goals")
def list_goals(user_id: int) -> Any:
    return listing(goals.list_goals(user_id))


@app.route("/api/users/<int:user_id>/goals/active")
def list_active_goals(user_id: int) -> Any:
    return listing(goals.list_active_goals(user_id))


@app.route("/api/goals/<int:goal_id>")
def get_goal(goal_id: int) -> Any:
    return jsonify(goals.get_goal(goal_id).to_dict())


@app.route("/api/goals/<int:goal_id>", methods=["PATCH"])
def update_goal(goal_id: int) -> Any:
    return jsonify(goals.update_goal(goal_id, parse_body(GoalUpdate)).to_dict())


@app.route("/api/goals/<int:goal_id>", methods=["DELETE"])
def delete_goal(goal_id: int) -> Any:
    goals.delete_goal(goal_id)
    return "", 204


@app.route("/api/goals/<int:goal_id>/progress", methods=["PATCH"])
def add_goal_progress(goal_id: int) -> Any:
    progress = parse_body(GoalProgress)
    return jsonify(goals.add_progress(goal_id, progress.amount).to_dict())


# ---------------------------------------------------------------------------
# Study sessions
# ---------------------------------------------------------------------------

@app.route(f"/api/users/<int:user_id>/{KIND}-sessions", methods=["POST"])
def start_session(user_id: int, kind: str) -> Any:
    if kind == "wordbook-study":
        start = parse_body(WordBookStudySessionStart)
        study = sessions.start_word_book_study_session(user_id, start.word_book_id)
    elif kind == "goal-study":
        study = sessions.start_goal_study_session(user_id, parse_body(StudySessionStart).goal_id)
    else:
        study = sessions.start_study_session(user_id, parse_body(StudySessionStart).goal_id)
    return jsonify(study.to_dict()), 201


@app.route(f"/api/users/<int:user_id>/{KIND}-sessions")
def list_sessions(user_id: int, kind: str) -> Any:
    return listing(sessions.list_sessions(sessions.KINDS[kind], user_id))


@app.route(f"/api/users/<int:user_id>/{KIND}-sessions/active")
def get_active_session(user_id: int, kind: str) -> Any:
    return jsonify(sessions.get_active_session(sessions.KINDS[kind], user_id).to_dict())


@app.route(f"/api/users/<int:user_id>/{KIND}-sessions/statistics")
def session_statistics(user_id: int, kind: str) -> Any:
    span = DateRange.model_validate(request.args.to_dict())
    return jsonify(sessions.session_statistics(sessions.KINDS[kind], user_id, span.start, span.end))


@app.route(f"/api/{KIND}-sessions")
def list_sessions_by_parent(kind: str) -> Any:
    if kind == "wordbook-study":
        return listing(sessions.list_by_word_book(int_arg("word_book_id")))
    return listing(sessions.list_by_goal(sessions.KINDS[kind], int_arg("goal_id")))


@app.route(f"/api/{KIND}-sessions/<int:session_id>")
def get_session(kind: str, session_id: int) -> Any:
    return jsonify(sessions.get_session_record(sessions.KINDS[kind], session_id).to_dict())


@app.route(f"/api/{KIND}-sessions/<int:session_id>", methods=["DELETE"])
def delete_session(kind: str, session_id: int) -> Any:
    sessions.delete_session(sessions.KINDS[kind], session_id)
    return "", 204


@app.route(f"/api/{KIND}-sessions/<int:session_id>/end", methods=["PATCH"])
def end_session(kind: str, session_id: int) -> Any:
    model = sessions.KINDS[kind]
    if model is WordBookStudySession:
        study = sessions.end_word_book_study_session(session_id, parse_body(WordBookStudySessionEnd))
    elif model is GoalStudySession:
        study = sessions.end_goal_study_session(session_id, parse_body(GoalStudySessionEnd))
    else:
        study = sessions.end_study_session(session_id, parse_body(StudySessionEnd))
    return jsonify(study.to_dict())


@app.route(f"/api/{POMODORO_KIND}-sessions/<int:session_id>/pomo-count", methods=["PATCH"])
def update_pomo_count(kind: str, session_id: int) -> Any:
    pomo_count = int_arg("pomoCount", required=False)
    if pomo_count is None:
        pomo_count = int_arg("pomo_count")
    study = sessions.update_pomo_count(sessions.KINDS[kind], session_id, pomo_count)
    return jsonify(study.to_dict())


# ---------------------------------------------------------------------------
# Weekly statistics
# ---------------------------------------------------------------------------

@app.route("/api/users/<int:user_id>/weekly-stats")
def weekly_stats(user_id: int) -> Any:
    return jsonify(weekly.get_weekly_stats(user_id))


@app.route("/api/users/<int:user_id>/weekly-stats/baseline", methods=["POST"])
def weekly_baseline(user_id: int) -> Any:
    return jsonify({"created": weekly.ensure_weekly_baselines(user_id)})


@app.route("/api/users/<int:user_id>/weekly-summary")
def weekly_summary(user_id: int) -> Any:
    return jsonify(weekly.get_weekly_summary(user_id))


# ---------------------------------------------------------------------------
# Schedules and reminders
# ---------------------------------------------------------------------------

@app.route("/api/users/<int:user_id>/schedules", methods=["POST"])
def create_schedule(user_id: int) -> Any:
    schedule = planner.create_schedule(user_id, parse_body(ScheduleCreate))
    return jsonify(schedule.to_dict()), 201


@app.route("/api/users/<int:user_id>/schedules")
def list_schedules(user_id: int) -> Any:
    return listing(planner.list_schedules(user_id))


@app.route("/api/schedules/<int:schedule_id>")
def get_schedule(schedule_id: int) -> Any:
    return jsonify(planner.get_schedule(schedule_id).to_dict())


@app.route("/api/schedules/<int:schedule_id>", methods=["PATCH"])
def update_schedule(schedule_id: int) -> Any:
    return jsonify(planner.update_schedule(schedule_id, parse_body(ScheduleUpdate)).to_dict())


@app.route("/api/schedules/<int:schedule_id>", methods=["DELETE"])
def delete_schedule(schedule_id: int) -> Any:
    planner.delete_schedule(schedule_id)
    return "", 204


@app.route("/api/users/<int:user_id>/reminders", methods=["POST"])
def create_reminder(user_id: int) -> Any:
    reminder = planner.create_reminder(user_id, parse_body(ReminderCreate))
    return jsonify(reminder.to_dict()), 201


@app.route("/api/users/<int:user_id>/reminders")
def list_reminders(user_id: int) -> Any:
    return listing(planner.list_reminders(user_id))


@app.route("/api/users/<int:user_id>/reminders/upcoming")
def upcoming_reminders(user_id: int) -> Any:
    return listing(planner.upcoming_reminders(user_id))


@app.route("/api/reminders/<int:reminder_id>")
def get_reminder(reminder_id: int) -> Any:
    return jsonify(planner.get_reminder(reminder_id).to_dict())


@app.route("/api/reminders/<int:reminder_id>", methods=["PATCH"])
def update_reminder(reminder_id: int) -> Any:
    return jsonify(planner.update_reminder(reminder_id, parse_body(ReminderUpdate)).to_dict())


@app.route("/api/reminders/<int:reminder_id>", methods=["DELETE"])
def delete_reminder(reminder_id: int) -> Any:
    planner.delete_reminder(reminder_id)
    return "", 204


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='LearnKit API server')
    parser.add_argument('--host', default='127.0.0.1', help='Host IP to bind to (default: 127.0.0.1)')
    parser.add_argument('--port', type=int, default=5000, help='Port to bind to (default: 5000)')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')

    args = parser.parse_args()

    if args.debug:
        DEBUG = True
        configure_logging(DEBUG)

    if not db.is_db_initialized():
        db.init_db()
        logger.info("database_initialized", url=db.DATABASE_URL)

    logger.info("server_starting", host=args.host, port=args.port)
    app.run(debug=DEBUG, host=args.host, port=args.port)
