"""Repository of user profiles."""

import logging
from pathlib import Path
from typing import Any, Optional

import config
from core.errors import ConflictError, NotFoundError, ValidationError
from core.models import User
from tracking.store import RecordStore

logger = logging.getLogger(__name__)

# Profile fields a user may change, with the check each value must pass
_PROFILE_FIELDS = {
    "screen_time_limit": lambda v: _is_int(v) and v > 0,
    "maximum_screen_time": lambda v: _is_int(v) and v > 0,
    "system_lockdown_enabled": lambda v: isinstance(v, bool),
    "exam_type": lambda v: v is None or isinstance(v, str),
    "focus_mode": lambda v: v in config.FOCUS_MODES,
    "max_overrides": lambda v: v is None or (_is_int(v) and v >= 0),
}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class UserStore(RecordStore[User]):
    """User profiles. A missing profile means default settings."""

    def __init__(self, data_file: Optional[Path] = None) -> None:
        super().__init__(User, data_file)

    def get_by_username(self, username: str) -> Optional[User]:
        matches = self.find(lambda u: u.username == username)
        return matches[0] if matches else None

    def get_or_default(self, user_id: int) -> User:
        """The stored profile, or a default one carrying this id."""
        user = self.get(user_id)
        if user is None:
            return User(username=f"user{user_id}", id=user_id)
        return user

    def create_user(self, username: str, **profile: Any) -> User:
        """
        Register a user.

        Raises:
            ValidationError: Empty username or a bad profile value.
            ConflictError: The username is taken.
        """
        if not username or not username.strip():
            raise ValidationError("username must not be empty")
        _validate_profile(profile)
        with self.transaction():
            if self.get_by_username(username) is not None:
                raise ConflictError(f"Username {username!r} is already taken")
            user = self.create(User(username=username, **profile))
        logger.info(f"Created user {user.id} ({user.username})")
        return user

    def update_profile(self, user_id: int, **changes: Any) -> User:
        """
        Change profile settings such as system_lockdown_enabled or max_overrides.

        Raises:
            ValidationError: No changes, an unknown field or a bad value.
            NotFoundError: No stored profile for this user.
        """
        if not changes:
            raise ValidationError("No profile changes given")
        _validate_profile(changes)
        updated = self.update(user_id, **changes)
        if updated is None:
            raise NotFoundError(f"User {user_id} not found")
        logger.info(f"Updated profile for user {user_id}: {', '.join(sorted(changes))}")
        return updated


def _validate_profile(changes: dict) -> None:
    for name, value in changes.items():
        check = _PROFILE_FIELDS.get(name)
        if check is None:
            raise ValidationError(f"Unknown profile field {name!r}")
        if not check(value):
            raise ValidationError(f"Invalid value for {name}: {value!r}")
