from __future__ import annotations


class TutorlyError(Exception):
    """Base class for domain errors raised by the scheduling engine."""


class CannotDeleteRecurringError(TutorlyError):
    def __init__(self, occurrence_id: str) -> None:
        self.occurrence_id = occurrence_id
        super().__init__(
            f"Occurrence {occurrence_id} is generated by a recurring pattern; "
            "edit the student's weekly schedule instead."
        )


class DuplicateIdError(TutorlyError, ValueError):
    def __init__(self, collection: str, item_id: str) -> None:
        self.collection = collection
        self.item_id = item_id
        super().__init__(f"{collection} already contains an item with id {item_id}")


class StudentNotFoundError(TutorlyError, LookupError):
    def __init__(self, student_id: str) -> None:
        self.student_id = student_id
        super().__init__(f"Student not found: {student_id}")


class UnknownTemplateError(TutorlyError, LookupError):
    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__(f"Unknown schedule template: {template_id}")


class InvalidChangeError(TutorlyError, ValueError):
    def __init__(self, item_id: str, detail: str) -> None:
        self.item_id = item_id
        self.detail = detail
        super().__init__(f"Invalid change for {item_id}: {detail}")


class ReservedIdError(TutorlyError, ValueError):
    def __init__(self, item_id: str, prefix: str) -> None:
        self.item_id = item_id
        self.prefix = prefix
        super().__init__(f"Ids starting with {prefix!r} are reserved for recurring lessons: {item_id}")
