"""
Base model with common fields and methods
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm.exc import StaleDataError

from fixitnow import db
from fixitnow.errors import StateConflictError


def generate_uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BaseModel(db.Model):
    """Abstract base model with common fields"""
    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self, exclude=None):
        """
        Convert model to dictionary

        Args:
            exclude (list): List of fields to exclude

        Returns:
            dict: Model as dictionary
        """
        exclude = exclude or []
        data = {}

        for column in self.__table__.columns:
            if column.name not in exclude:
                data[column.name] = serialize_value(getattr(self, column.name))

        return data


def serialize_value(value):
    """JSON-friendly rendering of column values (money as float, times as ISO)."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def save_changes():
    """
    Commit the current unit of work.

    Rows with a version counter are written as compare-and-swap updates; if
    another request changed the row since it was read, the whole unit of
    work is rolled back and surfaced as a StateConflictError.
    """
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise StateConflictError(
            'The record was modified by another request. Please retry.'
        )
