"""Configuration settings for FocusGuard."""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv


def is_bundled() -> bool:
    """
    Check if the application is running from a PyInstaller bundle.

    Returns:
        True if running from a bundled executable, False otherwise.
    """
    return getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS')


def get_user_data_dir() -> Path:
    """
    Get the directory for user-writable data (sessions, schedules, etc.).

    FOCUSGUARD_DATA_DIR always wins when set.
    For development: BASE_DIR/data
    For bundled apps: A dedicated folder in the user's home directory
                      so data persists across updates.

    Returns:
        Path to the user data directory.
    """
    override = os.getenv("FOCUSGUARD_DATA_DIR", "")
    if override:
        return Path(override).expanduser()

    if is_bundled():
        if sys.platform == 'darwin':
            # macOS: ~/Library/Application Support/FocusGuard
            return Path.home() / "Library" / "Application Support" / "FocusGuard"
        elif sys.platform == 'win32':
            appdata = os.environ.get('APPDATA')
            if appdata:
                return Path(appdata) / "FocusGuard"
            return Path.home() / "AppData" / "Roaming" / "FocusGuard"
        # Linux: ~/.local/share/FocusGuard
        return Path.home() / ".local" / "share" / "FocusGuard"

    # Development mode - directory containing config.py
    return Path(__file__).parent / "data"


def _get_int_env(name: str, default: int) -> int:
    """
    Read a positive integer from the environment.

    Falls back to the default (with a warning) for malformed values so a
    typo in .env never stops the app from starting.
    """
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = -1
    if value < 0:
        import logging
        logging.getLogger(__name__).warning(
            f"{name}={raw!r} is not a non-negative integer, using {default}"
        )
        return default
    return value


# Load environment variables from .env file (only in development)
if not is_bundled():
    # Explicitly load from the project root (where config.py lives)
    _env_path = Path(__file__).parent / ".env"
    load_dotenv(_env_path)

# User data directory (created lazily by the stores on first save)
USER_DATA_DIR = get_user_data_dir()

# Record files
USERS_FILE = USER_DATA_DIR / "users.json"
SESSIONS_FILE = USER_DATA_DIR / "focus_sessions.json"
SCHEDULES_FILE = USER_DATA_DIR / "study_schedules.json"
BLOCKED_APPS_FILE = USER_DATA_DIR / "blocked_apps.json"
ASSESSMENTS_FILE = USER_DATA_DIR / "adhd_assessments.json"

# Lockdown policy
# Minutes of access bought by one emergency override (fixed, not configurable)
OVERRIDE_GRANT_MINUTES = 5
MAX_EMERGENCY_OVERRIDES = _get_int_env("MAX_EMERGENCY_OVERRIDES", 3)

# Expiry sweep runs once per minute to match the minute granularity of sessions
SWEEP_INTERVAL_SECONDS = _get_int_env("SWEEP_INTERVAL_SECONDS", 60)

# Focus modes
FOCUS_MODE_STUDY = "study"
FOCUS_MODE_WORK = "work"
FOCUS_MODE_EXAM = "exam"
FOCUS_MODES = (FOCUS_MODE_STUDY, FOCUS_MODE_WORK, FOCUS_MODE_EXAM)

# Block levels
BLOCK_LEVEL_SOFT = "soft"      # Advisory only
BLOCK_LEVEL_HARD = "hard"      # Enforced by the UI
BLOCK_LEVEL_SYSTEM = "system"  # Would need OS integration
BLOCK_LEVELS = (BLOCK_LEVEL_SOFT, BLOCK_LEVEL_HARD, BLOCK_LEVEL_SYSTEM)

# Weekday codes, indexed by datetime.weekday()
WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

# User profile defaults
DEFAULT_SCREEN_TIME_LIMIT = 180  # minutes/day
DEFAULT_MAXIMUM_SCREEN_TIME = 480  # minutes/day

# ADHD self-report (18 items, answers 0 "Never" .. 4 "Very Often")
ASSESSMENT_QUESTION_COUNT = 18
ASSESSMENT_INATTENTION_ITEMS = 9
ASSESSMENT_MAX_RESPONSE = 4
RISK_HIGH_THRESHOLD = 24
RISK_MODERATE_THRESHOLD = 14

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # Can override in .env: DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
