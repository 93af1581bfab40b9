"""
Tracking package — record stores and statistics for FocusGuard.

Sessions, schedules, blocked apps, user profiles and ADHD assessments,
persisted to local JSON files.
"""
