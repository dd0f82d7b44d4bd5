import datetime
from typing import Any

import pytest
from pydantic import ValidationError

from learnkit import planner, users
from learnkit.db import WeeklyCardBaseline
from learnkit.errors import Conflict, InvalidRequest, NotFound
from learnkit.schemas import (
    ReminderCreate, ReminderUpdate, ScheduleCreate, ScheduleUpdate, UserCreate, UserProfileUpdate,
)

from conftest import FIXED_NOW, count_rows


class TestUsers:
    def test_duplicate_email_conflicts(self, user: Any) -> None:
        with pytest.raises(Conflict):
            users.create_user(UserCreate(email="learner@example.com", nickname="copy"))

    def test_find_by_email(self, user: Any) -> None:
        assert users.find_user_by_email("learner@example.com").id == user.id
        with pytest.raises(NotFound):
            users.find_user_by_email("nobody@example.com")

    def test_profile_patch(self, user: Any) -> None:
        updated = users.update_profile(user.id, UserProfileUpdate(profile_image_url="https://img.example/a.png"))
        assert updated.nickname == "learner"
        assert updated.profile_image_url == "https://img.example/a.png"
        renamed = users.update_profile(user.id, UserProfileUpdate(nickname="study-bot", profile_image_url=None))
        assert renamed.nickname == "study-bot"
        assert renamed.profile_image_url is None

    def test_profile_patch_rejects_null_nickname(self) -> None:
        with pytest.raises(ValidationError):
            UserProfileUpdate(nickname=None)


class TestAppLaunches:
    def test_launch_creates_weekly_baselines(self, user: Any) -> None:
        users.record_app_launch(user.id)
        users.record_app_launch(user.id)
        assert count_rows(WeeklyCardBaseline) == 1

    def test_default_peak_hour(self, user: Any) -> None:
        peak = users.peak_hours(user.id)
        assert peak == {
            "peak_hour": 19,
            "launch_count": 0,
            "suggested_reminder_time": datetime.datetime(2026, 10, 14, 18, 0).isoformat(),
        }

    def test_most_frequent_hour_in_last_30_days(self, user: Any, clock: Any) -> None:
        clock.set(FIXED_NOW - datetime.timedelta(days=40, hours=-11))  # old, at 21:30
        for _ in range(5):
            users.record_app_launch(user.id)
        clock.set(FIXED_NOW.replace(hour=8))
        users.record_app_launch(user.id)
        for day in range(3):
            clock.set(FIXED_NOW.replace(hour=21) - datetime.timedelta(days=day + 1))
            users.record_app_launch(user.id)
        clock.set(FIXED_NOW)

        peak = users.peak_hours(user.id)
        assert peak["peak_hour"] == 21
        assert peak["launch_count"] == 3
        assert peak["suggested_reminder_time"] == "2026-10-14T20:00:00"

    def test_midnight_peak_suggests_23(self, user: Any, clock: Any) -> None:
        clock.set(FIXED_NOW.replace(hour=0, minute=15))
        users.record_app_launch(user.id)
        clock.set(FIXED_NOW)
        assert users.peak_hours(user.id)["suggested_reminder_time"] == "2026-10-14T23:00:00"


class TestSchedules:
    def test_crud(self, user: Any) -> None:
        schedule = planner.create_schedule(user.id, ScheduleCreate(
            title="Kanji drill",
            start_time=datetime.datetime(2026, 10, 15, 19, 0),
            end_time=datetime.datetime(2026, 10, 15, 20, 0),
        ))
        assert schedule.is_completed is False
        done = planner.update_schedule(schedule.id, ScheduleUpdate(is_completed=True))
        assert done.is_completed is True
        assert done.title == "Kanji drill"
        assert [s.id for s in planner.list_schedules(user.id)] == [schedule.id]
        planner.delete_schedule(schedule.id)
        with pytest.raises(NotFound):
            planner.get_schedule(schedule.id)

    def test_end_before_start_rejected(self, user: Any) -> None:
        with pytest.raises(InvalidRequest):
            planner.create_schedule(user.id, ScheduleCreate(
                title="backwards",
                start_time=datetime.datetime(2026, 10, 15, 20, 0),
                end_time=datetime.datetime(2026, 10, 15, 19, 0),
            ))
        schedule = planner.create_schedule(user.id, ScheduleCreate(
            title="ok",
            start_time=datetime.datetime(2026, 10, 15, 19, 0),
            end_time=datetime.datetime(2026, 10, 15, 20, 0),
        ))
        with pytest.raises(InvalidRequest):
            planner.update_schedule(schedule.id, ScheduleUpdate(end_time=datetime.datetime(2026, 10, 15, 18, 0)))


class TestReminders:
    def test_upcoming_window_is_seven_days_ascending(self, user: Any) -> None:
        for days, message in ((3, "later"), (1, "soon"), (-1, "past"), (8, "too far")):
            planner.create_reminder(user.id, ReminderCreate(
                message=message, notification_time=FIXED_NOW + datetime.timedelta(days=days)
            ))
        assert [r.message for r in planner.upcoming_reminders(user.id)] == ["soon", "later"]
        assert len(planner.list_reminders(user.id)) == 4

    def test_unknown_schedule_rejected(self, user: Any) -> None:
        with pytest.raises(NotFound):
            planner.create_reminder(user.id, ReminderCreate(
                schedule_id=99, message="x", notification_time=FIXED_NOW
            ))

    def test_update_and_delete(self, user: Any) -> None:
        reminder = planner.create_reminder(user.id, ReminderCreate(message="review", notification_time=FIXED_NOW))
        updated = planner.update_reminder(reminder.id, ReminderUpdate(message="review N3"))
        assert updated.message == "review N3"
        assert updated.notification_time == FIXED_NOW
        planner.delete_reminder(reminder.id)
        assert planner.list_reminders(user.id) == []
