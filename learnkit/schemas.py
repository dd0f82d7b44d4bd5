"""
Request payload records.

Create records carry every required field. Patch records are explicit
optional-field update records: a field the caller did not send is absent
from ``changes()`` and is left alone; a field sent as ``null`` clears a
nullable column. Non-nullable columns reject ``null``.
"""
from __future__ import annotations

import datetime
from typing import Any, ClassVar, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .db import Difficulty


class Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Patch(Payload):
    required_fields: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_null_required(self) -> "Patch":
        for name in self.required_fields:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} may not be null")
        return self

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class UserCreate(Payload):
    email: str = Field(min_length=3)
    nickname: str = Field(min_length=1)
    profile_image_url: Optional[str] = None


class UserProfileUpdate(Patch):
    required_fields: ClassVar[Tuple[str, ...]] = ("nickname",)
    nickname: Optional[str] = Field(default=None, min_length=1)
    profile_image_url: Optional[str] = None


class WordBookCreate(Payload):
    title: str = Field(min_length=1)
    description: Optional[str] = Field(default=None, max_length=500)
    hard_frequency_ratio: int = 6
    normal_frequency_ratio: int = 3
    easy_frequency_ratio: int = 1


class WordBookUpdate(Patch):
    required_fields: ClassVar[Tuple[str, ...]] = (
        "title", "hard_frequency_ratio", "normal_frequency_ratio", "easy_frequency_ratio",
    )
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, max_length=500)
    hard_frequency_ratio: Optional[int] = None
    normal_frequency_ratio: Optional[int] = None
    easy_frequency_ratio: Optional[int] = None


class CardCreate(Payload):
    front_text: str = Field(min_length=1)
    back_text: str = Field(min_length=1)
    difficulty: Optional[Difficulty] = None


class CardUpdate(Patch):
    required_fields: ClassVar[Tuple[str, ...]] = ("front_text", "back_text")
    front_text: Optional[str] = Field(default=None, min_length=1)
    back_text: Optional[str] = Field(default=None, min_length=1)
    difficulty: Optional[Difficulty] = None


class CardReview(Payload):
    difficulty: Difficulty


class GoalCreate(Payload):
    title: str = Field(min_length=1)
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    total_target_amount: int = Field(gt=0)
    target_unit: str = Field(min_length=1, max_length=50)


class GoalUpdate(Patch):
    required_fields: ClassVar[Tuple[str, ...]] = ("title", "total_target_amount", "target_unit")
    title: Optional[str] = Field(default=None, min_length=1)
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    total_target_amount: Optional[int] = Field(default=None, gt=0)
    target_unit: Optional[str] = Field(default=None, min_length=1, max_length=50)


class GoalProgress(Payload):
    amount: int


class StudySessionStart(Payload):
    goal_id: Optional[int] = None


class WordBookStudySessionStart(Payload):
    word_book_id: int


class StudySessionEnd(Payload):
    achieved_amount: int = Field(default=0, ge=0)
    duration_minutes: int = Field(default=0, ge=0)
    pomo_count: int = Field(default=0, ge=0)
    note: Optional[str] = None


class GoalStudySessionEnd(Payload):
    achieved_amount: int = Field(default=0, ge=0)
    pomo_count: int = Field(default=0, ge=0)
    note: Optional[str] = None


class WordBookStudySessionEnd(Payload):
    """End counts are optional; any count left out is read from the live card distribution."""
    end_hard_count: Optional[int] = Field(default=None, ge=0)
    end_normal_count: Optional[int] = Field(default=None, ge=0)
    end_easy_count: Optional[int] = Field(default=None, ge=0)


class DateRange(Payload):
    start: datetime.datetime
    end: datetime.datetime


class ScheduleCreate(Payload):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    start_time: datetime.datetime
    end_time: datetime.datetime


class ScheduleUpdate(Patch):
    required_fields: ClassVar[Tuple[str, ...]] = ("title", "start_time", "end_time", "is_completed")
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    start_time: Optional[datetime.datetime] = None
    end_time: Optional[datetime.datetime] = None
    is_completed: Optional[bool] = None


class ReminderCreate(Payload):
    schedule_id: Optional[int] = None
    message: str = Field(min_length=1)
    notification_time: datetime.datetime


class ReminderUpdate(Patch):
    required_fields: ClassVar[Tuple[str, ...]] = ("message", "notification_time")
    message: Optional[str] = Field(default=None, min_length=1)
    notification_time: Optional[datetime.datetime] = None
