import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.core import config
from scheduler.core.errors import ValidationError
from scheduler.models.availability import Availability
from scheduler.services.slot_computer import AvailabilityRule, parse_clock

logger = logging.getLogger(__name__)

DEFAULT_RULE = AvailabilityRule(
    days=frozenset(config.DEFAULT_AVAILABILITY_DAYS),
    start_time=config.DEFAULT_AVAILABILITY_START,
    end_time=config.DEFAULT_AVAILABILITY_END,
    time_zone=config.DEFAULT_TIME_ZONE,
)


def validate_rule(rule: AvailabilityRule) -> None:
    for label, value in (('Start time', rule.start_time), ('End time', rule.end_time)):
        try:
            parse_clock(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f'{label} must be a 24-hour HH:MM value.') from exc

    # Zero-padded HH:MM strings order the same way as the times they name.
    if not rule.start_time < rule.end_time:
        raise ValidationError('Start time must be before end time.')

    invalid_days = sorted(day for day in rule.days if not isinstance(day, int) or not 0 <= day <= 6)
    if invalid_days:
        raise ValidationError(f'Days must be between 0 (Sunday) and 6 (Saturday); got {invalid_days}.')


def _to_rule(row: Availability) -> AvailabilityRule:
    return AvailabilityRule(
        days=frozenset(row.days or []),
        start_time=row.start_time,
        end_time=row.end_time,
        time_zone=row.time_zone or config.DEFAULT_TIME_ZONE,
    )


class AvailabilityStore:
    """Reads and upserts the one weekly availability rule each user owns."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> AvailabilityRule | None:
        row = self.db.query(Availability).filter(Availability.user_id == user_id).first()
        if row is None:
            return None
        return _to_rule(row)

    def get_or_default(self, user_id: str) -> AvailabilityRule:
        return self.get(user_id) or DEFAULT_RULE

    def set(self, user_id: str, rule: AvailabilityRule) -> AvailabilityRule:
        """Replace the user's rule wholesale, creating it if absent."""
        validate_rule(rule)

        row = self.db.query(Availability).filter(Availability.user_id == user_id).first()
        if row is None:
            row = Availability(user_id=user_id)
            self.db.add(row)

        row.days = sorted(rule.days)
        row.start_time = rule.start_time
        row.end_time = rule.end_time
        row.time_zone = rule.time_zone

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info('Availability updated for user %s', user_id)
        return _to_rule(row)
