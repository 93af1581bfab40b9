"""Analytics for computing focus statistics from session records."""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import config
from core.models import FocusSession


def format_minutes(minutes: int) -> str:
    """
    Format whole minutes as a compact duration.

    Examples:
        >>> format_minutes(45)
        "45m"
        >>> format_minutes(165)
        "2h 45m"
        >>> format_minutes(0)
        "0m"
    """
    total = int(minutes) if minutes > 0 else 0
    hours = total // 60
    mins = total % 60
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def format_time_left(minutes: int) -> str:
    """Countdown label for the lockdown timer; "LOCKED" once time is up."""
    if minutes <= 0:
        return "LOCKED"
    return format_minutes(minutes)


def focus_minutes(session: FocusSession, now: Optional[datetime] = None) -> int:
    """
    Minutes of focus a session accounts for.

    Completed sessions use their recorded actual_duration. Active sessions
    use elapsed time clamped to the budget.
    """
    if not session.is_active:
        return session.actual_duration or 0
    now = now or datetime.now()
    return min(session.elapsed_minutes(now), session.budget_minutes())


def sessions_on_day(sessions: Iterable[FocusSession], day: date) -> List[FocusSession]:
    """Sessions that started on the given date."""
    return [s for s in sessions if s.start_time.date() == day]


def compute_session_statistics(
    sessions: Iterable[FocusSession],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Summarise a set of sessions.

    Args:
        sessions: Sessions to summarise (typically one user's, one day).
        now: Reference time for active sessions. If None, uses current time.

    Returns:
        Dict with total/average minutes, counts, overrides and per-mode minutes.
    """
    now = now or datetime.now()
    sessions = list(sessions)

    by_mode = {mode: 0 for mode in config.FOCUS_MODES}
    total = 0
    completed_minutes = 0
    completed = 0
    overrides = 0

    for session in sessions:
        minutes = focus_minutes(session, now)
        total += minutes
        by_mode[session.focus_mode] = by_mode.get(session.focus_mode, 0) + minutes
        overrides += session.emergency_overrides
        if not session.is_active:
            completed += 1
            completed_minutes += minutes

    return {
        "total_minutes": total,
        "session_count": len(sessions),
        "completed_count": completed,
        "active_count": len(sessions) - completed,
        "overrides_used": overrides,
        "average_minutes": (completed_minutes / completed) if completed else 0.0,
        "minutes_by_mode": by_mode,
    }


def generate_summary_text(stats: Dict[str, Any]) -> str:
    """
    One-line summary of session statistics.

    Args:
        stats: Output of compute_session_statistics().
    """
    if stats["session_count"] == 0:
        return "No focus sessions yet."

    summary = (
        f"{format_minutes(stats['total_minutes'])} focused across "
        f"{stats['session_count']} session{'s' if stats['session_count'] != 1 else ''}"
    )
    if stats["overrides_used"]:
        summary += f", {stats['overrides_used']} emergency override{'s' if stats['overrides_used'] != 1 else ''}"
    return summary + "."
