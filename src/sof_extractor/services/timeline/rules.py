from __future__ import annotations

from enum import Enum
import re


class EventCategory(str, Enum):
    PRODUCTIVE = "productive"
    WEATHER = "weather"
    BREAKDOWN = "breakdown"
    WEEKEND_HOLIDAY = "weekend_holiday"
    SURVEY_INSPECTION = "survey_inspection"
    WAITING_FORMALITIES = "waiting_formalities"
    OTHER = "other"


class OperationStatus(str, Enum):
    BREAKDOWN = "breakdown"
    WEATHER_DELAY = "weather_delay"
    MEAL_BREAK = "meal_break"
    WORKING = "working"
    INSPECTION = "inspection"
    SURVEY = "survey"
    STOPPED = "stopped"
    COMPLETED = "completed"
    DEPARTED = "departed"
    IDLE = "idle"


# First matching rule wins, so a breakdown during loading is a breakdown.
CATEGORY_RULES: tuple[tuple[re.Pattern[str], EventCategory], ...] = (
    (re.compile(r"\b(breakdown|broke down|mechanical|engine|failure|repair)"), EventCategory.BREAKDOWN),
    (re.compile(r"\b(rain|weather|storm|wind|swell|fog)"), EventCategory.WEATHER),
    (re.compile(r"\b(weekend|holiday|saturday|sunday)"), EventCategory.WEEKEND_HOLIDAY),
    (re.compile(r"\b(survey|inspection)"), EventCategory.SURVEY_INSPECTION),
    (
        re.compile(r"\b(waiting|awaiting|formalities|customs|immigration|pratique|stop)"),
        EventCategory.WAITING_FORMALITIES,
    ),
    (
        re.compile(r"\b(full work|work|laytime commenced|loading|discharg|unload|cargo)"),
        EventCategory.PRODUCTIVE,
    ),
)

# Ordered by precedence, highest first.
STATUS_RULES: tuple[tuple[re.Pattern[str], OperationStatus], ...] = (
    (re.compile(r"breakdown|mechanical|engine"), OperationStatus.BREAKDOWN),
    (re.compile(r"rain|weather|storm"), OperationStatus.WEATHER_DELAY),
    (re.compile(r"meal|lunch|breakfast|dinner|tea"), OperationStatus.MEAL_BREAK),
    (re.compile(r"work|loading|discharge|unload|cargo"), OperationStatus.WORKING),
    (re.compile(r"inspection|formalities|custom|immigration"), OperationStatus.INSPECTION),
    (re.compile(r"survey"), OperationStatus.SURVEY),
    (re.compile(r"stop|stoppage|waiting|idle|delay"), OperationStatus.STOPPED),
    (re.compile(r"completed|complete|finished|done"), OperationStatus.COMPLETED),
    (re.compile(r"departed|sailing|sailed|etd"), OperationStatus.DEPARTED),
)

STATUS_PRECEDENCE: dict[OperationStatus, int] = {
    status: rank for rank, (_, status) in enumerate(STATUS_RULES)
}
STATUS_PRECEDENCE[OperationStatus.IDLE] = len(STATUS_RULES)


def normalize_description(description: str | None) -> str:
    if not description:
        return ""
    return " ".join(description.lower().split())


def categorize(description: str | None) -> EventCategory:
    text = normalize_description(description)
    for pattern, category in CATEGORY_RULES:
        if pattern.search(text):
            return category
    return EventCategory.OTHER


def status_of(description: str | None) -> OperationStatus:
    text = normalize_description(description)
    for pattern, status in STATUS_RULES:
        if pattern.search(text):
            return status
    return OperationStatus.IDLE


def detect_status(descriptions: list[str | None]) -> OperationStatus:
    return min(
        (status_of(description) for description in descriptions),
        key=STATUS_PRECEDENCE.__getitem__,
        default=OperationStatus.IDLE,
    )
