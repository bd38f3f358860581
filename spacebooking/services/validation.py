from dataclasses import dataclass, replace
from datetime import datetime, time
from typing import Callable, Optional
import pytz
from spacebooking.errors import ValidationError


@dataclass(frozen=True)
class ReservationCandidate:
    requester_id: int
    space_id: int
    start_time: datetime
    end_time: datetime
    purpose: str
    course_id: Optional[int] = None


@dataclass(frozen=True)
class OperatingHours:
    open: time
    close: time
    tz: pytz.BaseTzInfo

    @classmethod
    def from_config(cls, config):
        return cls(
            open=time.fromisoformat(config['OPERATING_HOURS_OPEN']),
            close=time.fromisoformat(config['OPERATING_HOURS_CLOSE']),
            tz=pytz.timezone(config['TIMEZONE']),
        )

    def localize(self, value: datetime) -> datetime:
        """Naive values are taken as wall-clock time in the configured zone."""
        if value.tzinfo is None:
            return self.tz.localize(value)
        return value.astimezone(self.tz)

    def contains(self, start: datetime, end: datetime) -> bool:
        # [open, close): a booking may start at `open` and end exactly at `close`.
        if start.date() != end.date():
            return False
        if not (self.open <= start.time() < self.close):
            return False
        return self.open < end.time() <= self.close


class RequestValidator:

    @staticmethod
    def validate(candidate: ReservationCandidate, hours: OperatingHours,
                 space_exists: Callable[[int], bool],
                 course_exists: Optional[Callable[[int], bool]] = None,
                 requester_exists: Optional[Callable[[int], bool]] = None) -> ReservationCandidate:
        """
        Check a creation request, failing on the first violated rule.

        Returns a copy of the candidate with both times normalized to UTC.
        """
        purpose = RequestValidator._required_text(
            candidate.purpose, 'purpose_required', "Purpose must not be empty."
        )

        start = hours.localize(candidate.start_time)
        end = hours.localize(candidate.end_time)
        if not start < end:
            raise ValidationError('time_order', "End time must be after start time.")

        if not hours.contains(start, end):
            raise ValidationError(
                'operating_hours',
                f"Reservations are only allowed between {hours.open:%H:%M} and {hours.close:%H:%M} on a single day."
            )

        if not space_exists(candidate.space_id):
            raise ValidationError('space_not_found', f"Space {candidate.space_id} does not exist.")

        if candidate.course_id is not None and course_exists and not course_exists(candidate.course_id):
            raise ValidationError('course_not_found', f"Course {candidate.course_id} does not exist.")

        if requester_exists and not requester_exists(candidate.requester_id):
            raise ValidationError('requester_not_found', f"User {candidate.requester_id} does not exist.")

        return replace(
            candidate,
            purpose=purpose,
            start_time=start.astimezone(pytz.utc),
            end_time=end.astimezone(pytz.utc),
        )

    @staticmethod
    def require_reason(reason: Optional[str]) -> str:
        return RequestValidator._required_text(reason, 'reason_required', "A reason is required.")

    @staticmethod
    def _required_text(value, rule, message) -> str:
        # Non-string JSON values (numbers, lists) count as missing.
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(rule, message)
        return value.strip()
