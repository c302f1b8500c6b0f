from __future__ import annotations

import datetime as dt
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from tutorly.domain.enums import ExceptionType, LessonColor, StudentStatus, TransactionStatus


class DomainModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class WeeklyScheduleSlot(DomainModel):
    day: int = Field(ge=0, le=6)
    start_time: float = Field(ge=0, lt=24)
    duration: float = Field(gt=0)

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration


def initials_of(name: str) -> str:
    parts = [part for part in name.split() if part]
    return "".join(part[0].upper() for part in parts[:2])


class Student(DomainModel):
    id: str
    name: str
    initials: str = ""
    subject: str = ""
    status: StudentStatus = StudentStatus.ACTIVE
    color: LessonColor = LessonColor.STONE
    joined: dt.date | None = None
    weekly_schedule: list[WeeklyScheduleSlot] = Field(default_factory=list)
    price_per_hour: float | None = Field(default=None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def default_initials(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("initials"):
            return {**data, "initials": initials_of(str(data.get("name", "")))}
        return data

    @property
    def is_active(self) -> bool:
        return self.status == StudentStatus.ACTIVE


class OccurrenceBase(DomainModel):
    id: str
    title: str
    subtitle: str = ""
    day: int = Field(ge=0, le=6)
    start_time: float = Field(ge=0, lt=24)
    duration: float = Field(gt=0)
    color: LessonColor = LessonColor.STONE
    is_group: bool = False

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration


class OneOffBooking(OccurrenceBase):
    kind: Literal["one_off"] = "one_off"
    date: dt.date | None = None
    student_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def derive_day_from_date(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        raw = data.get("date")
        if raw is None:
            return data
        if isinstance(raw, dt.datetime):
            lesson_date = raw.date()
        elif isinstance(raw, dt.date):
            lesson_date = raw
        else:
            try:
                lesson_date = dt.date.fromisoformat(str(raw)[:10])
            except ValueError:
                return data
        return {**data, "date": lesson_date, "day": lesson_date.weekday()}


class RecurringOccurrence(OccurrenceBase):
    kind: Literal["recurring"] = "recurring"
    date: dt.date
    student_id: str
    recurrence_rule_id: str


Occurrence = Annotated[OneOffBooking | RecurringOccurrence, Field(discriminator="kind")]


class RecurringException(DomainModel):
    id: str
    recurrence_rule_id: str
    date: dt.date
    type: ExceptionType
    new_time: float | None = Field(default=None, ge=0, lt=24)
    new_duration: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def validate_override(self) -> RecurringException:
        if self.type == ExceptionType.TIME_CHANGE and self.new_time is None:
            msg = "timeChange exception requires newTime"
            raise ValueError(msg)
        if self.type == ExceptionType.DURATION_CHANGE and self.new_duration is None:
            msg = "durationChange exception requires newDuration"
            raise ValueError(msg)
        return self


class Transaction(DomainModel):
    id: str
    date: dt.date
    student_name: str
    initials: str = ""
    subject: str = ""
    status: TransactionStatus = TransactionStatus.PAID
    amount: float
    color: LessonColor = LessonColor.STONE
    duration_hours: float | None = None


class ConflictingItem(DomainModel):
    title: str
    subtitle: str
    student_id: str | None = None


class Conflict(DomainModel):
    day: int
    time: float
    duration: float
    conflicting_item: ConflictingItem


class SuggestedSlot(DomainModel):
    start_time: float
    end_time: float


class DashboardState(DomainModel):
    students: list[Student] = Field(default_factory=list)
    one_off_bookings: list[OneOffBooking] = Field(default_factory=list)
    recurring_exceptions: list[RecurringException] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    processed_keys: frozenset[str] = Field(default_factory=frozenset)

    def student_by_id(self, student_id: str) -> Student | None:
        return next((student for student in self.students if student.id == student_id), None)


class AccrualResult(DomainModel):
    new_transactions: list[Transaction] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    processed_keys: frozenset[str] = Field(default_factory=frozenset)


class EarningsSummary(DomainModel):
    total: float
    this_month: float
    this_week: float
    average_hourly_rate: float
    transaction_count: int
