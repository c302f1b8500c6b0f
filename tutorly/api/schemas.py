from __future__ import annotations

import datetime as dt
from typing import ClassVar

from pydantic import Field, model_validator

from tutorly.domain.enums import LessonColor, StudentStatus
from tutorly.domain.models import DomainModel, WeeklyScheduleSlot


class ConflictCheckRequest(DomainModel):
    candidate_slots: list[WeeklyScheduleSlot]
    exclude_student_id: str | None = None


class PatchModel(DomainModel):
    # Fields that may be explicitly cleared with null; every other field must carry a value.
    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_values(self) -> PatchModel:
        cleared = sorted(
            name
            for name in self.model_fields_set
            if getattr(self, name) is None and name not in self.nullable_fields
        )
        if cleared:
            msg = f"fields cannot be null: {', '.join(cleared)}"
            raise ValueError(msg)
        return self


class BookingPatch(PatchModel):
    nullable_fields: ClassVar[frozenset[str]] = frozenset({"date", "student_id"})

    title: str | None = None
    subtitle: str | None = None
    day: int | None = Field(default=None, ge=0, le=6)
    start_time: float | None = Field(default=None, ge=0, lt=24)
    duration: float | None = Field(default=None, gt=0)
    color: LessonColor | None = None
    is_group: bool | None = None
    date: dt.date | None = None
    student_id: str | None = None


class StudentPatch(PatchModel):
    nullable_fields: ClassVar[frozenset[str]] = frozenset({"joined", "price_per_hour"})

    name: str | None = None
    initials: str | None = None
    subject: str | None = None
    status: StudentStatus | None = None
    color: LessonColor | None = None
    joined: dt.date | None = None
    price_per_hour: float | None = Field(default=None, ge=0)


class ScheduleUpdate(DomainModel):
    slots: list[WeeklyScheduleSlot] = Field(default_factory=list)
    template: str | None = None


class AccrualRunRequest(DomainModel):
    now: dt.datetime | None = None
