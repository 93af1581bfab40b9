"""
ADHD self-assessment scoring and storage.

The questionnaire has 18 items answered 0 ("Never") to 4 ("Very Often").
The first 9 items cover inattention, the last 9 hyperactivity-impulsivity.
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Sequence

import config
from core.errors import ValidationError
from core.models import AdhdAssessment
from tracking.store import RecordStore

logger = logging.getLogger(__name__)

RISK_LOW = "low"
RISK_MODERATE = "moderate"
RISK_HIGH = "high"


def classify_risk(total_score: int) -> str:
    """Map a total score to a risk level."""
    if total_score >= config.RISK_HIGH_THRESHOLD:
        return RISK_HIGH
    if total_score >= config.RISK_MODERATE_THRESHOLD:
        return RISK_MODERATE
    return RISK_LOW


def generate_recommendations(risk_level: str, inattention_score: int, hyperactivity_score: int) -> List[str]:
    """Coping suggestions based on the dominant subscale and risk level."""
    recommendations = []

    if inattention_score > hyperactivity_score:
        recommendations.append("Focus on organization and time management strategies")
        recommendations.append("Use tools like calendars, reminders, and task lists")
        recommendations.append("Break large tasks into smaller, manageable steps")
    else:
        recommendations.append("Incorporate regular physical activity to manage energy")
        recommendations.append("Practice mindfulness and relaxation techniques")
        recommendations.append("Create structured routines and environments")

    if risk_level == RISK_HIGH:
        recommendations.append("Consider consulting with a healthcare professional")
        recommendations.append("Explore therapy options like CBT or coaching")
    elif risk_level == RISK_MODERATE:
        recommendations.append("Monitor symptoms and their impact on daily life")
        recommendations.append("Implement self-management strategies consistently")

    recommendations.append("Use FocusGuard's blocking features during study time")
    recommendations.append("Join ADHD support groups or online communities")
    return recommendations


def score_assessment(user_id: int, responses: Sequence[int]) -> AdhdAssessment:
    """
    Score a completed questionnaire.

    Raises:
        ValidationError: Wrong number of answers or an answer outside 0-4.
    """
    if len(responses) != config.ASSESSMENT_QUESTION_COUNT:
        raise ValidationError(
            f"Expected {config.ASSESSMENT_QUESTION_COUNT} responses, got {len(responses)}"
        )
    for value in responses:
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= config.ASSESSMENT_MAX_RESPONSE:
            raise ValidationError(
                f"Responses must be whole numbers 0-{config.ASSESSMENT_MAX_RESPONSE}, got {value!r}"
            )

    split = config.ASSESSMENT_INATTENTION_ITEMS
    inattention = sum(responses[:split])
    hyperactivity = sum(responses[split:])
    total = inattention + hyperactivity
    risk = classify_risk(total)

    return AdhdAssessment(
        user_id=user_id,
        responses=list(responses),
        total_score=total,
        inattention_score=inattention,
        hyperactivity_score=hyperactivity,
        impulsivity_score=hyperactivity // 2,
        risk_level=risk,
        recommendations=generate_recommendations(risk, inattention, hyperactivity),
    )


class AssessmentStore(RecordStore[AdhdAssessment]):
    """
    Append-only assessment history.

    completed_at is strictly increasing per user: a timestamp that does not
    move past the user's latest one is bumped by a microsecond.
    """

    def __init__(self, data_file: Optional[Path] = None) -> None:
        super().__init__(AdhdAssessment, data_file)

    def add(self, assessment: AdhdAssessment, now: Optional[datetime] = None) -> AdhdAssessment:
        with self.transaction():
            completed_at = assessment.completed_at or now or datetime.now()
            latest = self.get_latest(assessment.user_id)
            if latest is not None and latest.completed_at is not None and completed_at <= latest.completed_at:
                completed_at = latest.completed_at + timedelta(microseconds=1)
            created = self.create(replace(assessment, completed_at=completed_at))
        logger.info(
            f"Recorded ADHD assessment {created.id} for user {created.user_id}: "
            f"score {created.total_score}, risk {created.risk_level}"
        )
        return created

    def get_user_assessments(self, user_id: int) -> List[AdhdAssessment]:
        """All of a user's assessments, newest first."""
        assessments = self.find(lambda a: a.user_id == user_id)
        assessments.sort(key=lambda a: a.completed_at or datetime.min, reverse=True)
        return assessments

    def get_latest(self, user_id: int) -> Optional[AdhdAssessment]:
        assessments = self.get_user_assessments(user_id)
        return assessments[0] if assessments else None
