from enum import StrEnum


class StudentStatus(StrEnum):
    ACTIVE = "Active"
    PAUSED = "Paused"
    RISK = "Risk"


class ExceptionType(StrEnum):
    SKIP = "skip"
    TIME_CHANGE = "timeChange"
    DURATION_CHANGE = "durationChange"


class TransactionStatus(StrEnum):
    PAID = "Paid"
    PENDING = "Pending"


class LessonColor(StrEnum):
    AMBER = "amber"
    BLUE = "blue"
    STONE = "stone"
    ACCENT = "accent"


class OccurrencePhase(StrEnum):
    UPCOMING = "upcoming"
    PAST = "past"


class Collection(StrEnum):
    STUDENTS = "students"
    ONE_OFF_BOOKINGS = "oneOffBookings"
    RECURRING_EXCEPTIONS = "recurringExceptions"
    TRANSACTIONS = "transactions"
    PROCESSED_KEYS = "processedKeys"
