"""Repository of study schedules and blocked apps."""

import logging
from pathlib import Path
from typing import List, Optional

from core.errors import NotFoundError
from core.models import BlockedApp, StudySchedule
from tracking.store import RecordStore

logger = logging.getLogger(__name__)


class ScheduleStore:
    """
    Durable StudySchedule and BlockedApp records.

    At most one schedule per user is active: creating an active schedule
    deactivates the previous one inside the same store transaction.
    """

    def __init__(
        self,
        schedules_file: Optional[Path] = None,
        blocked_apps_file: Optional[Path] = None,
    ) -> None:
        self.schedules: RecordStore[StudySchedule] = RecordStore(StudySchedule, schedules_file)
        self.blocked_apps: RecordStore[BlockedApp] = RecordStore(BlockedApp, blocked_apps_file)

    # ------------------------------------------------------------------
    # Study schedules
    # ------------------------------------------------------------------

    def create_schedule(self, schedule: StudySchedule) -> StudySchedule:
        """Store a schedule; an active one replaces the user's current one."""
        with self.schedules.transaction():
            created = self.schedules.create(schedule)
            if created.is_active:
                self._deactivate_others(created)
        logger.info(
            f"Created schedule {created.id} for user {created.user_id} "
            f"({len(created.schedule_blocks)} blocks, strict={created.strict_enforcement})"
        )
        return created

    def get_active(self, user_id: int) -> Optional[StudySchedule]:
        """The user's active schedule, or None."""
        active = self.schedules.find(lambda s: s.user_id == user_id and s.is_active)
        return active[-1] if active else None

    def update_schedule(self, schedule_id: int, **changes) -> StudySchedule:
        """
        Partially update a schedule.

        The update is applied (and validated) before any other schedule is
        deactivated, so a rejected update leaves every schedule untouched.

        Raises:
            NotFoundError: If the schedule does not exist.
            ValidationError: If a changed block is malformed.
            ValueError: If a change names an unknown field.
        """
        with self.schedules.transaction():
            updated = self.schedules.update(schedule_id, **changes)
            if updated is None:
                raise NotFoundError(f"Schedule {schedule_id} not found")
            if changes.get("is_active"):
                self._deactivate_others(updated)
        return updated

    def _deactivate_others(self, schedule: StudySchedule) -> None:
        """Note: assumes the caller is inside self.schedules.transaction()."""
        for other in self.schedules.find(
            lambda s: s.user_id == schedule.user_id and s.is_active and s.id != schedule.id
        ):
            self.schedules.update(other.id, is_active=False)
            logger.info(f"Deactivated schedule {other.id} for user {schedule.user_id}")

    # ------------------------------------------------------------------
    # Blocked apps
    # ------------------------------------------------------------------

    def create_blocked_app(self, app: BlockedApp) -> BlockedApp:
        created = self.blocked_apps.create(app)
        logger.info(f"Blocked app '{created.app_name}' ({created.block_level}) for user {created.user_id}")
        return created

    def get_blocked_app(self, app_id: int) -> Optional[BlockedApp]:
        return self.blocked_apps.get(app_id)

    def get_user_blocked_apps(self, user_id: int) -> List[BlockedApp]:
        return self.blocked_apps.find(lambda a: a.user_id == user_id)

    def update_blocked_app(self, app_id: int, **changes) -> BlockedApp:
        """
        Raises:
            NotFoundError: If the app does not exist.
        """
        updated = self.blocked_apps.update(app_id, **changes)
        if updated is None:
            raise NotFoundError(f"Blocked app {app_id} not found")
        return updated

    def delete_blocked_app(self, app_id: int) -> bool:
        deleted = self.blocked_apps.delete(app_id)
        if deleted:
            logger.info(f"Removed blocked app {app_id}")
        return deleted

    def remove_user_blocked_app(self, user_id: int, app_id: int) -> BlockedApp:
        """
        Delete one of the user's blocked apps.

        Raises:
            NotFoundError: If the app does not exist or belongs to someone else.
        """
        with self.blocked_apps.transaction():
            app = self.blocked_apps.get(app_id)
            if app is None or app.user_id != user_id:
                raise NotFoundError(f"Blocked app {app_id} not found for user {user_id}")
            self.delete_blocked_app(app_id)
        return app
