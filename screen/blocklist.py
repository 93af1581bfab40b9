"""
Blocked-app policy for focus sessions.

Decides which of a user's blocked apps are blocked at a given instant.
An app is blocked when the running session lists it, or when one of its
own weekly block windows covers the instant. Enforcement itself is
simulated: soft blocks are advisory, hard and system blocks are enforced.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import config
from core.errors import ValidationError
from core.models import BlockedApp, FocusSession, ScheduleWindow

logger = logging.getLogger(__name__)


# Human-readable labels for the block levels (for status output)
BLOCK_LEVEL_LABELS: Dict[str, str] = {
    config.BLOCK_LEVEL_SOFT: "Advisory",
    config.BLOCK_LEVEL_HARD: "Blocked",
    config.BLOCK_LEVEL_SYSTEM: "System lockdown",
}


def validate_block_level(level: str) -> str:
    """
    Check a block level.

    Returns:
        The level, unchanged.

    Raises:
        ValidationError: If the level is not soft, hard or system.
    """
    if level not in config.BLOCK_LEVELS:
        raise ValidationError(
            f"Unknown block level {level!r}, expected one of {', '.join(config.BLOCK_LEVELS)}"
        )
    return level


def is_window_active(window: ScheduleWindow, now: datetime) -> bool:
    """True if now is on one of the window's days and inside [start, end)."""
    return window.contains(now)


def is_enforced(app: BlockedApp) -> bool:
    """Soft blocks only warn; hard and system blocks are enforced."""
    return app.block_level != config.BLOCK_LEVEL_SOFT


def apps_blocked_at(
    apps: Iterable[BlockedApp],
    now: datetime,
    session: Optional[FocusSession] = None,
) -> List[BlockedApp]:
    """
    Apps blocked at an instant.

    Args:
        apps: The user's blocked-app records.
        now: Instant to evaluate.
        session: The user's session; only counts while active.

    Returns:
        Blocked apps, in input order.
    """
    session_apps = set(session.blocked_apps) if session is not None and session.is_active else set()

    blocked = []
    for app in apps:
        if app.id in session_apps:
            blocked.append(app)
            continue
        if any(is_window_active(window, now) for window in app.block_schedule):
            blocked.append(app)

    logger.debug(f"{len(blocked)} apps blocked at {now.strftime('%a %H:%M')}")
    return blocked


def describe_block(app: BlockedApp) -> str:
    """One-line description like "Instagram (Blocked)"."""
    return f"{app.app_name} ({BLOCK_LEVEL_LABELS.get(app.block_level, app.block_level)})"
