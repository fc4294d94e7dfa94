"""Records returned by the StudyTrack API.

The API speaks camelCase JSON; each record keeps snake_case field names in
Python and knows how to read itself from a response dict. Missing or mistyped
fields fall back to empty values instead of failing the whole load.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime

from st.util import format_trend_label, parse_api_iso


def _int(value, default=0):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(value, default=0.0):
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if math.isfinite(result) else default


def _str(value):
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


@dataclass
class Subject:
    id: str
    name: str
    color: str = ""
    session_count: int = 0
    total_minutes: int = 0

    @classmethod
    def from_api(cls, data):
        return cls(
            id=_str(data.get("id")),
            name=_str(data.get("name")),
            color=_str(data.get("color")),
            session_count=_int(data.get("sessionCount")),
            total_minutes=_int(data.get("totalMinutes")),
        )


@dataclass
class StudySession:
    id: str
    subject: str
    start_time: datetime | None
    end_time: datetime | None
    notes: str = ""
    reflection: str = ""
    duration_minutes: int = 0

    @classmethod
    def from_api(cls, data):
        return cls(
            id=_str(data.get("id")),
            subject=_str(data.get("subject")),
            start_time=parse_api_iso(data.get("startTime")),
            end_time=parse_api_iso(data.get("endTime")),
            notes=_str(data.get("notes")),
            reflection=_str(data.get("reflection")),
            duration_minutes=_int(data.get("durationMinutes")),
        )


@dataclass
class DailyStat:
    date: str
    total_minutes: int = 0
    session_count: int = 0
    average_minutes: float = 0.0


@dataclass
class Summary:
    total_minutes: int = 0
    session_count: int = 0
    average_session_minutes: float = 0.0
    today_minutes: int = 0
    week_minutes: int = 0
    month_minutes: int = 0
    streak_days: int = 0
    by_subject: dict[str, int] = field(default_factory=dict)
    daily_trend: list[DailyStat] = field(default_factory=list)

    @classmethod
    def from_api(cls, data):
        data = data or {}
        raw_by_subject = data.get("bySubject")
        by_subject = {}
        if isinstance(raw_by_subject, dict):
            by_subject = {_str(name): _int(minutes) for name, minutes in raw_by_subject.items()}
        daily_trend = [
            DailyStat(
                date=_str(item.get("date")),
                total_minutes=_int(item.get("totalMinutes")),
                session_count=_int(item.get("sessionCount")),
                average_minutes=_float(item.get("averageMinutes")),
            )
            for item in data.get("dailyTrend") or [] if isinstance(item, dict)
        ]
        return cls(
            total_minutes=_int(data.get("totalMinutes")),
            session_count=_int(data.get("sessionCount")),
            average_session_minutes=_float(data.get("averageSessionMinutes")),
            today_minutes=_int(data.get("todayMinutes")),
            week_minutes=_int(data.get("weekMinutes")),
            month_minutes=_int(data.get("monthMinutes")),
            streak_days=_int(data.get("streakDays")),
            by_subject=by_subject,
            daily_trend=daily_trend,
        )

    # Average only means something once a session exists.
    @property
    def average_minutes(self):
        return self.average_session_minutes if self.session_count > 0 else 0.0

    def subject_breakdown(self):
        """Return ``(name, minutes, percent)`` rows, biggest first. Percent is rounded to a whole number."""
        total = sum(self.by_subject.values())
        rows = sorted(self.by_subject.items(), key=lambda item: item[1], reverse=True)
        return [
            (name, minutes, int(math.floor(minutes / total * 100 + 0.5)) if total else 0)
            for name, minutes in rows
        ]

    def trend_rows(self):
        """Return ``(label, minutes, sessions)`` per day in the order the API sent them, e.g. ``("Mar 5", 45, 2)``."""
        return [(format_trend_label(day.date), day.total_minutes, day.session_count) for day in self.daily_trend]
