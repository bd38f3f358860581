import enum
from datetime import datetime, timezone
from sqlalchemy import DDL, event, func, text
from sqlalchemy.dialects.postgresql import ExcludeConstraint
from sqlalchemy.orm import validates
from spacebooking.extensions import db
from spacebooking.models.types import UTCDateTime


class ReservationStatus(str, enum.Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    REJECTED = 'rejected'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'
    NO_SHOW = 'no_show'


# Only these statuses contend for a space.
ACTIVE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)

# Entering one of these requires a non-empty reason stored in `notes`.
ANNOTATED_STATUSES = (ReservationStatus.REJECTED, ReservationStatus.CANCELLED)


def utcnow():
    return datetime.now(timezone.utc)


class Reservation(db.Model):
    __tablename__ = 'reservations'

    id = db.Column(db.Integer, primary_key=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    space_id = db.Column(db.Integer, db.ForeignKey('spaces.id'), nullable=False, index=True)
    course_id = db.Column(db.Integer, db.ForeignKey('courses.id'), nullable=True)

    start_time = db.Column(UTCDateTime, nullable=False, index=True)
    end_time = db.Column(UTCDateTime, nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default=ReservationStatus.PENDING.value)
    purpose = db.Column(db.Text, nullable=False)
    notes = db.Column(db.Text)
    no_show_reported_at = db.Column(UTCDateTime)

    created_at = db.Column(UTCDateTime, default=utcnow)
    updated_at = db.Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    requester = db.relationship('User', lazy='joined')
    space = db.relationship('Space', lazy='joined')

    __table_args__ = (
        db.CheckConstraint('start_time < end_time', name='check_reservation_interval'),
        db.CheckConstraint(
            "status IN ('pending', 'confirmed', 'rejected', 'cancelled', 'completed', 'no_show')",
            name='check_reservation_status',
        ),
        db.CheckConstraint(
            "status NOT IN ('rejected', 'cancelled') OR (notes IS NOT NULL AND notes <> '')",
            name='check_reservation_reason',
        ),
        # Storage-level backstop for the no-overlap rule; needs btree_gist.
        ExcludeConstraint(
            ('space_id', '='),
            (func.tstzrange(start_time, end_time, text("'[)'")), '&&'),
            using='gist',
            where=text("status IN ('pending', 'confirmed')"),
            name='no_active_space_overlap',
        ).ddl_if(dialect='postgresql'),
    )

    @validates('status')
    def _coerce_status(self, key, value):
        return ReservationStatus(value).value

    @validates('start_time', 'end_time')
    def _require_aware(self, key, value):
        if value is not None and value.tzinfo is None:
            raise ValueError(f"{key} must be timezone-aware")
        return value

    @property
    def current_status(self) -> ReservationStatus:
        return ReservationStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.current_status in ACTIVE_STATUSES

    def overlaps(self, start_time, end_time) -> bool:
        return self.start_time < end_time and start_time < self.end_time

    def to_dict(self):
        return {
            'id': self.id,
            'requester_id': self.requester_id,
            'requester_name': (self.requester.full_name or self.requester.username) if self.requester else None,
            'space_id': self.space_id,
            'space_name': self.space.name if self.space else None,
            'space_location': self.space.location if self.space else None,
            'course_id': self.course_id,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
            'status': self.status,
            'purpose': self.purpose,
            'notes': self.notes,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }


event.listen(
    Reservation.__table__,
    'before_create',
    DDL('CREATE EXTENSION IF NOT EXISTS btree_gist').execute_if(dialect='postgresql'),
)
