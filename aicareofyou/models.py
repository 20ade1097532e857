"""Database models for the local AiCareOfYou backend.

The column layout mirrors the hosted Postgres tables so rows look the same
whichever backend served them.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict
from uuid import uuid4

from .extensions import db


def _uuid() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive values read back from SQLite."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RowMixin:
    """Serialise a row into the JSON shape the REST backend returns."""

    _private_columns = ()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for column in self.__table__.columns:  # type: ignore[attr-defined]
            if column.name in self._private_columns:
                continue
            value = getattr(self, column.name)
            if isinstance(value, datetime):
                value = as_utc(value).isoformat()
            elif isinstance(value, date):
                value = value.isoformat()
            data[column.name] = value
        return data


class UserProfile(RowMixin, db.Model):
    __tablename__ = "user_profiles"
    _private_columns = ("password_hash",)

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    email = db.Column(db.String(255), unique=True, nullable=True)
    full_name = db.Column(db.String(255), nullable=True)
    goals = db.Column(db.JSON, nullable=True)
    onboarding_completed = db.Column(db.Boolean, nullable=False, default=False)
    password_hash = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)


class Reflection(RowMixin, db.Model):
    __tablename__ = "reflections"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)
    sentiment = db.Column(db.String(16), nullable=True)
    mood_score = db.Column(db.Integer, nullable=True)
    voice_url = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, index=True)


class Habit(RowMixin, db.Model):
    __tablename__ = "habits"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    target_frequency = db.Column(db.String(16), nullable=False, default="daily")
    color = db.Column(db.String(16), nullable=False, default="#3B82F6")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)


class HabitCompletion(RowMixin, db.Model):
    __tablename__ = "habit_completions"
    __table_args__ = (db.UniqueConstraint("habit_id", "completed_at"),)

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    habit_id = db.Column(
        db.String(64), db.ForeignKey("habits.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(db.String(64), nullable=False, index=True)
    completed_at = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)


class InsightReport(RowMixin, db.Model):
    __tablename__ = "insight_reports"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    report_type = db.Column(db.String(16), nullable=False)
    summary = db.Column(db.Text, nullable=False)
    motivation = db.Column(db.Text, nullable=False)
    recommendations = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, index=True)


class StyleFeedback(RowMixin, db.Model):
    __tablename__ = "style_feedback"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    positive_comments = db.Column(db.JSON, nullable=False, default=list)
    suggestions = db.Column(db.JSON, nullable=False, default=list)
    style_rating = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)


class BodyFeedback(RowMixin, db.Model):
    __tablename__ = "body_feedback"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    front_image_url = db.Column(db.Text, nullable=False)
    back_image_url = db.Column(db.Text, nullable=False)
    height = db.Column(db.String(32), nullable=True)
    weight = db.Column(db.String(32), nullable=True)
    preferences = db.Column(db.JSON, nullable=True)
    strengths = db.Column(db.Text, nullable=False)
    weaknesses = db.Column(db.Text, nullable=False)
    workout_plan = db.Column(db.Text, nullable=False)
    nutrition_advice = db.Column(db.Text, nullable=False)
    motivational_message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)


class WeeklyRecap(RowMixin, db.Model):
    __tablename__ = "weekly_recaps"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    week_start = db.Column(db.DateTime(timezone=True), nullable=False)
    week_end = db.Column(db.DateTime(timezone=True), nullable=False)
    summary = db.Column(db.Text, nullable=True)
    video_url = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)


TABLES = {
    model.__tablename__: model
    for model in (
        UserProfile,
        Reflection,
        Habit,
        HabitCompletion,
        InsightReport,
        StyleFeedback,
        BodyFeedback,
        WeeklyRecap,
    )
}
