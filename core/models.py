"""
Record types for FocusGuard.

Plain dataclasses with to_dict()/from_dict() for JSON persistence.
Datetimes are naive local instants stored as ISO-8601 strings; every
duration is whole minutes.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Any, Dict, Iterable, List, Optional, Set, Type

import config
from core.errors import ValidationError


def _dt_to_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _dt_from_str(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def parse_hhmm(value: str) -> time:
    """
    Parse a 24-hour "HH:MM" string.

    Raises:
        ValidationError: If the string is not a valid time of day.
    """
    try:
        hours, minutes = str(value).split(":")
        return time(int(hours), int(minutes))
    except (ValueError, TypeError):
        raise ValidationError(f"Invalid time of day {value!r}, expected HH:MM") from None


def parse_weekday(value: str) -> str:
    """
    Normalise a weekday to its three-letter code.

    Accepts any case and full names ("Monday" -> "mon").
    """
    code = str(value).strip().lower()[:3]
    if code not in config.WEEKDAYS:
        raise ValidationError(f"Unknown weekday {value!r}")
    return code


def weekday_code(moment: datetime) -> str:
    """Three-letter weekday code of an instant."""
    return config.WEEKDAYS[moment.weekday()]


def elapsed_minutes(start: datetime, now: datetime) -> int:
    """Whole minutes from start to now, never negative."""
    seconds = (now - start).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // 60)


@dataclass
class ScheduleWindow:
    """
    A recurring weekly time window, [start, end) on the listed days.

    Windows that cross midnight (end <= start) are rejected.
    """

    start: str
    end: str
    days: Set[str] = field(default_factory=set)

    def __post_init__(self):
        start = parse_hhmm(self.start)
        end = parse_hhmm(self.end)
        if end <= start:
            raise ValidationError(
                f"Window {self.start}-{self.end} must end after it starts on the same day"
            )
        self.start = start.strftime("%H:%M")
        self.end = end.strftime("%H:%M")
        self.days = {parse_weekday(day) for day in self.days}

    def contains(self, now: datetime) -> bool:
        """True if now falls on one of the days and inside [start, end)."""
        if weekday_code(now) not in self.days:
            return False
        current = now.time()
        return parse_hhmm(self.start) <= current < parse_hhmm(self.end)

    def minutes_until_end(self, now: datetime) -> int:
        """Minutes (rounded up) from now until the window closes today."""
        end_at = datetime.combine(now.date(), parse_hhmm(self.end))
        seconds = (end_at - now).total_seconds()
        return max(0, math.ceil(seconds / 60))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "days": [day for day in config.WEEKDAYS if day in self.days],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScheduleWindow':
        return cls(start=data["start"], end=data["end"], days=set(data.get("days", [])))


@dataclass
class ScheduleBlock(ScheduleWindow):
    """A named study window, e.g. "Morning Study"."""

    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScheduleBlock':
        return cls(
            start=data["start"],
            end=data["end"],
            days=set(data.get("days", [])),
            name=data.get("name", ""),
        )


@dataclass
class User:
    """User profile fields the lockdown logic reads."""

    username: str
    id: Optional[int] = None
    screen_time_limit: int = config.DEFAULT_SCREEN_TIME_LIMIT
    maximum_screen_time: int = config.DEFAULT_MAXIMUM_SCREEN_TIME
    system_lockdown_enabled: bool = True
    exam_type: Optional[str] = None
    focus_mode: str = config.FOCUS_MODE_STUDY
    # None means the global MAX_EMERGENCY_OVERRIDES applies
    max_overrides: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "screen_time_limit": self.screen_time_limit,
            "maximum_screen_time": self.maximum_screen_time,
            "system_lockdown_enabled": self.system_lockdown_enabled,
            "exam_type": self.exam_type,
            "focus_mode": self.focus_mode,
            "max_overrides": self.max_overrides,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        return cls(
            id=data.get("id"),
            username=data["username"],
            screen_time_limit=data.get("screen_time_limit", config.DEFAULT_SCREEN_TIME_LIMIT),
            maximum_screen_time=data.get("maximum_screen_time", config.DEFAULT_MAXIMUM_SCREEN_TIME),
            system_lockdown_enabled=data.get("system_lockdown_enabled", True),
            exam_type=data.get("exam_type"),
            focus_mode=data.get("focus_mode", config.FOCUS_MODE_STUDY),
            max_overrides=data.get("max_overrides"),
        )


@dataclass
class FocusSession:
    """
    A bounded interval of enforced lockdown.

    The time budget is planned_duration plus OVERRIDE_GRANT_MINUTES per
    emergency override. Nothing here ticks: remaining time is always
    recomputed from now - start_time.
    """

    user_id: int
    start_time: datetime
    planned_duration: int
    focus_mode: str
    id: Optional[int] = None
    blocked_apps: List[int] = field(default_factory=list)
    emergency_overrides: int = 0
    is_active: bool = True
    end_time: Optional[datetime] = None
    actual_duration: Optional[int] = None

    def __post_init__(self):
        # Set semantics, stable order for storage
        self.blocked_apps = sorted(set(self.blocked_apps))

    def budget_minutes(self) -> int:
        """Planned minutes plus the minutes bought by overrides."""
        return self.planned_duration + self.emergency_overrides * config.OVERRIDE_GRANT_MINUTES

    def elapsed_minutes(self, now: datetime) -> int:
        return elapsed_minutes(self.start_time, now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "start_time": _dt_to_str(self.start_time),
            "end_time": _dt_to_str(self.end_time),
            "planned_duration": self.planned_duration,
            "actual_duration": self.actual_duration,
            "focus_mode": self.focus_mode,
            "blocked_apps": list(self.blocked_apps),
            "emergency_overrides": self.emergency_overrides,
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FocusSession':
        return cls(
            id=data.get("id"),
            user_id=data["user_id"],
            start_time=_dt_from_str(data["start_time"]),
            end_time=_dt_from_str(data.get("end_time")),
            planned_duration=data["planned_duration"],
            actual_duration=data.get("actual_duration"),
            focus_mode=data["focus_mode"],
            blocked_apps=data.get("blocked_apps", []),
            emergency_overrides=data.get("emergency_overrides", 0),
            is_active=data.get("is_active", True),
        )


@dataclass
class BlockedApp:
    """An app the user wants blocked, optionally on its own weekly windows."""

    user_id: int
    app_name: str
    id: Optional[int] = None
    block_schedule: List[ScheduleWindow] = field(default_factory=list)
    block_level: str = config.BLOCK_LEVEL_SOFT

    def __post_init__(self):
        if self.block_level not in config.BLOCK_LEVELS:
            raise ValidationError(
                f"Unknown block level {self.block_level!r}, expected one of {', '.join(config.BLOCK_LEVELS)}"
            )
        self.block_schedule = [
            w if isinstance(w, ScheduleWindow) else ScheduleWindow.from_dict(w)
            for w in self.block_schedule
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "app_name": self.app_name,
            "block_schedule": [w.to_dict() for w in self.block_schedule],
            "block_level": self.block_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BlockedApp':
        return cls(
            id=data.get("id"),
            user_id=data["user_id"],
            app_name=data["app_name"],
            block_schedule=data.get("block_schedule", []),
            block_level=data.get("block_level", config.BLOCK_LEVEL_SOFT),
        )


@dataclass
class StudySchedule:
    """Recurring study blocks; strict schedules force lockdown inside a block."""

    user_id: int
    exam_type: str
    id: Optional[int] = None
    schedule_blocks: List[ScheduleBlock] = field(default_factory=list)
    strict_enforcement: bool = True
    is_active: bool = True

    def __post_init__(self):
        self.schedule_blocks = [
            b if isinstance(b, ScheduleBlock) else ScheduleBlock.from_dict(b)
            for b in self.schedule_blocks
        ]

    def matching_blocks(self, now: datetime) -> List[ScheduleBlock]:
        """Blocks covering now. Overlaps are allowed, all matches are returned."""
        return [block for block in self.schedule_blocks if block.contains(now)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "exam_type": self.exam_type,
            "schedule_blocks": [b.to_dict() for b in self.schedule_blocks],
            "strict_enforcement": self.strict_enforcement,
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StudySchedule':
        return cls(
            id=data.get("id"),
            user_id=data["user_id"],
            exam_type=data["exam_type"],
            schedule_blocks=data.get("schedule_blocks", []),
            strict_enforcement=data.get("strict_enforcement", True),
            is_active=data.get("is_active", True),
        )


@dataclass
class AdhdAssessment:
    """Immutable result of one ADHD self-report."""

    user_id: int
    responses: List[int]
    total_score: int
    inattention_score: int
    hyperactivity_score: int
    impulsivity_score: int
    risk_level: str
    recommendations: List[str] = field(default_factory=list)
    completed_at: Optional[datetime] = None
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "responses": list(self.responses),
            "total_score": self.total_score,
            "inattention_score": self.inattention_score,
            "hyperactivity_score": self.hyperactivity_score,
            "impulsivity_score": self.impulsivity_score,
            "risk_level": self.risk_level,
            "recommendations": list(self.recommendations),
            "completed_at": _dt_to_str(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AdhdAssessment':
        return cls(
            id=data.get("id"),
            user_id=data["user_id"],
            responses=data["responses"],
            total_score=data["total_score"],
            inattention_score=data["inattention_score"],
            hyperactivity_score=data["hyperactivity_score"],
            impulsivity_score=data["impulsivity_score"],
            risk_level=data["risk_level"],
            recommendations=data.get("recommendations", []),
            completed_at=_dt_from_str(data.get("completed_at")),
        )


@dataclass(frozen=True)
class LockdownState:
    """Snapshot of what the lockdown screen should show right now."""

    is_locked: bool
    minutes_remaining: int
    can_override: bool
    session_expired: bool = False
    schedule_block: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_locked": self.is_locked,
            "minutes_remaining": self.minutes_remaining,
            "can_override": self.can_override,
            "session_expired": self.session_expired,
            "schedule_block": self.schedule_block,
        }


def validate_blocks(blocks: Iterable[Any], block_cls: Type[ScheduleWindow] = ScheduleBlock) -> List[ScheduleWindow]:
    """
    Coerce dicts to block_cls, raising ValidationError on bad input.

    Use block_cls=ScheduleWindow for a BlockedApp's own block_schedule.
    """
    result = []
    for block in blocks:
        if isinstance(block, block_cls):
            result.append(block)
            continue
        try:
            result.append(block_cls.from_dict(block))
        except (AttributeError, KeyError, TypeError) as e:
            raise ValidationError(f"Malformed schedule window {block!r}: {e}") from e
    return result
