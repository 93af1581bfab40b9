#!/usr/bin/env python3
"""
FocusGuard - Main Entry Point

Focus sessions that lock distracting apps, with a limited number of
emergency overrides and strict study schedules.

Usage:
    python main.py start --user 1 --minutes 60 --mode study --apps 1,2
    python main.py status --user 1
    python main.py override --user 1
    python main.py sweep --watch
    python main.py set-profile --user 1 --lockdown off --max-overrides 5
    python main.py add-app --user 1 --name YouTube --level hard --windows '[...]'
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

import config
from core.errors import FocusGuardError, ValidationError
from core.lockdown import LockdownEngine
from core.models import BlockedApp, FocusSession, ScheduleWindow, StudySchedule, validate_blocks
from core.scheduler import SessionScheduler
from core.sweeper import ExpirySweeper
from screen.blocklist import describe_block, validate_block_level
from tracking.analytics import (
    compute_session_statistics,
    format_time_left,
    generate_summary_text,
)
from tracking.assessment import AssessmentStore, score_assessment
from tracking.schedule_store import ScheduleStore
from tracking.session_store import SessionStore
from tracking.user_store import UserStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format=config.LOG_FORMAT
)
logger = logging.getLogger(__name__)


class FocusGuard:
    """
    Wires the file-backed stores to the engine, scheduler and sweeper.
    """

    def __init__(self, in_memory: bool = False):
        """
        Args:
            in_memory: Keep all records in memory (no files written).
        """
        def path(p):
            return None if in_memory else p

        self.users = UserStore(path(config.USERS_FILE))
        self.sessions = SessionStore(path(config.SESSIONS_FILE))
        self.schedules = ScheduleStore(path(config.SCHEDULES_FILE), path(config.BLOCKED_APPS_FILE))
        self.assessments = AssessmentStore(path(config.ASSESSMENTS_FILE))
        self.engine = LockdownEngine(self.sessions, self.schedules, self.users)
        self.scheduler = SessionScheduler(self.sessions, self.schedules, self.engine)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def cmd_start(self, args) -> None:
        session = self.scheduler.start_session(
            args.user, args.minutes, args.mode, _parse_int_list(args.apps)
        )
        print(f"✓ Session {session.id} started: {format_time_left(session.planned_duration)} of {session.focus_mode}")

    def cmd_override(self, args) -> None:
        session = self.scheduler.request_override(args.user)
        limit = self.engine.max_overrides_for(args.user)
        print(
            f"⚠ Emergency override granted ({session.emergency_overrides}/{limit}): "
            f"{config.OVERRIDE_GRANT_MINUTES} minutes of access"
        )

    def cmd_extend(self, args) -> None:
        session = self.scheduler.extend_session(args.user, args.minutes)
        print(f"✓ Session {session.id} extended to {format_time_left(session.planned_duration)}")

    def cmd_end(self, args) -> None:
        session = self.scheduler.end_session(args.user)
        if session is None:
            print("No active session.")
        else:
            print(f"Session {session.id} ended after {session.actual_duration} min")

    def cmd_status(self, args) -> None:
        state = self.scheduler.get_lockdown_state(args.user)
        if state.is_locked:
            label = f"LOCKED - {format_time_left(state.minutes_remaining)} left"
            if state.schedule_block:
                label += f" ({state.schedule_block})"
        else:
            label = "Unlocked"
        print(label)
        if state.session_expired:
            print("Session time is up; it ends at the next sweep.")
        if state.can_override:
            print("Emergency override available.")
        for app in self.engine.blocked_apps_at(args.user):
            print(f"  - {describe_block(app)}")

    def cmd_history(self, args) -> None:
        sessions: List[FocusSession] = self.scheduler.get_session_history(args.user)
        for session in sessions:
            status = "active" if session.is_active else f"{session.actual_duration} min"
            print(f"#{session.id} {session.start_time:%Y-%m-%d %H:%M} {session.focus_mode} ({status})")
        print(generate_summary_text(compute_session_statistics(sessions)))

    def cmd_sweep(self, args) -> None:
        sweeper = ExpirySweeper(self.scheduler)
        if not args.watch:
            ended = sweeper.run_once()
            print(f"Ended {len(ended)} expired session(s).")
            return
        sweeper.start()
        try:
            while sweeper.is_running:
                sweeper.should_stop.wait(1.0)
        finally:
            sweeper.stop()

    def cmd_add_app(self, args) -> None:
        windows = []
        if args.windows:
            windows = validate_blocks(_parse_json_list(args.windows, "--windows"), ScheduleWindow)
        app = self.schedules.create_blocked_app(BlockedApp(
            user_id=args.user,
            app_name=args.name,
            block_level=validate_block_level(args.level),
            block_schedule=windows,
        ))
        print(f"✓ Blocked app {app.id}: {describe_block(app)}")

    def cmd_list_apps(self, args) -> None:
        apps = self.schedules.get_user_blocked_apps(args.user)
        if not apps:
            print("No blocked apps.")
            return
        for app in apps:
            windows = ", ".join(
                f"{'/'.join(w.to_dict()['days'])} {w.start}-{w.end}" for w in app.block_schedule
            )
            print(f"#{app.id} {describe_block(app)}" + (f" [{windows}]" if windows else ""))

    def cmd_remove_app(self, args) -> None:
        app = self.schedules.remove_user_blocked_app(args.user, args.app)
        print(f"✓ Removed blocked app {app.id}: {app.app_name}")

    def cmd_add_user(self, args) -> None:
        user = self.users.create_user(args.username, exam_type=args.exam_type)
        print(f"✓ User {user.id} created: {user.username}")

    def cmd_set_profile(self, args) -> None:
        changes = {}
        if args.lockdown is not None:
            changes["system_lockdown_enabled"] = args.lockdown == "on"
        if args.max_overrides is not None:
            changes["max_overrides"] = args.max_overrides
        if args.screen_time_limit is not None:
            changes["screen_time_limit"] = args.screen_time_limit
        if args.exam_type is not None:
            changes["exam_type"] = args.exam_type
        user = self.users.update_profile(args.user, **changes)
        limit = self.engine.max_overrides_for(user.id)
        print(
            f"✓ User {user.id}: lockdown {'on' if user.system_lockdown_enabled else 'off'}, "
            f"{limit} emergency overrides per session"
        )

    def cmd_set_schedule(self, args) -> None:
        blocks = _parse_json_list(args.blocks, "--blocks")
        schedule = self.schedules.create_schedule(StudySchedule(
            user_id=args.user,
            exam_type=args.exam_type,
            schedule_blocks=validate_blocks(blocks),
            strict_enforcement=not args.lenient,
        ))
        print(f"✓ Schedule {schedule.id} active with {len(schedule.schedule_blocks)} blocks")

    def cmd_assess(self, args) -> None:
        assessment = self.assessments.add(score_assessment(args.user, _parse_int_list(args.responses)))
        print(f"Score {assessment.total_score} - risk level: {assessment.risk_level.upper()}")
        for tip in assessment.recommendations:
            print(f"  - {tip}")


def _parse_json_list(value: str, option: str) -> list:
    """Parse a JSON list option, raising ValidationError otherwise."""
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise ValidationError(f"{option} is not valid JSON: {e}") from e
    if not isinstance(parsed, list):
        raise ValidationError(f"{option} must be a JSON list")
    return parsed


def _parse_int_list(value: Optional[str]) -> List[int]:
    """Parse "1,2,3" into [1, 2, 3]."""
    if not value:
        return []
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise ValidationError(f"Expected comma-separated integers, got {value!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="FocusGuard - Focus sessions with app lockdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py start --user 1 --minutes 90 --mode exam
  python main.py override --user 1
  python main.py sweep --watch
        """
    )
    commands = parser.add_subparsers(dest="command", required=True)

    def command(name: str, help_text: str) -> argparse.ArgumentParser:
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("--user", type=int, required=True, help="User id")
        return sub

    start = command("start", "Start a focus session")
    start.add_argument("--minutes", type=int, required=True, help="Planned duration in minutes")
    start.add_argument("--mode", default=config.FOCUS_MODE_STUDY, choices=config.FOCUS_MODES)
    start.add_argument("--apps", default="", help="Comma-separated blocked app ids")

    command("override", "Use an emergency override")

    extend = command("extend", "Extend the active session")
    extend.add_argument("--minutes", type=int, required=True)

    command("end", "End the active session")
    command("status", "Show lockdown state")
    command("history", "List past sessions")

    sweep = commands.add_parser("sweep", help="End expired sessions")
    sweep.add_argument("--watch", action="store_true", help="Keep sweeping every interval")

    add_app = command("add-app", "Add an app to the blocklist")
    add_app.add_argument("--name", required=True)
    add_app.add_argument("--level", default=config.BLOCK_LEVEL_SOFT, choices=config.BLOCK_LEVELS)
    add_app.add_argument(
        "--windows",
        help='JSON list of the app\'s own block windows, e.g. \'[{"start": "09:00", "end": "17:00", "days": ["mon"]}]\''
    )

    command("list-apps", "List blocked apps")

    remove_app = command("remove-app", "Remove an app from the blocklist")
    remove_app.add_argument("--app", type=int, required=True, help="Blocked app id")

    add_user = commands.add_parser("add-user", help="Register a user profile")
    add_user.add_argument("--username", required=True)
    add_user.add_argument("--exam-type")

    profile = command("set-profile", "Change a user's lockdown settings")
    profile.add_argument("--lockdown", choices=["on", "off"], help="System lockdown on or off")
    profile.add_argument("--max-overrides", type=int, help="Emergency overrides per session")
    profile.add_argument("--screen-time-limit", type=int, help="Daily screen time limit in minutes")
    profile.add_argument("--exam-type")

    schedule = command("set-schedule", "Replace the active study schedule")
    schedule.add_argument("--exam-type", required=True)
    schedule.add_argument(
        "--blocks", required=True,
        help='JSON list, e.g. \'[{"name": "Morning Study", "start": "06:00", "end": "10:00", "days": ["mon"]}]\''
    )
    schedule.add_argument("--lenient", action="store_true", help="Do not force lockdown during blocks")

    assess = command("assess", "Score an ADHD self-assessment")
    assess.add_argument("--responses", required=True, help="18 comma-separated answers, 0-4")

    return parser


def main(argv: Optional[List[str]] = None, app: Optional[FocusGuard] = None) -> int:
    """
    Main entry point — parses arguments and runs one command.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)
    app = app or FocusGuard()
    handler = getattr(app, "cmd_" + args.command.replace("-", "_"))

    try:
        handler(args)
    except FocusGuardError as e:
        print(f"Error ({e.error_type}): {e.message}")
        return 1
    except KeyboardInterrupt:
        print("\nGoodbye!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
