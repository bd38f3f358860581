import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from sqlalchemy.orm import validates
from spacebooking.extensions import db
from spacebooking.models.types import UTCDateTime


class Role(str, enum.Enum):
    ADMIN = 'admin'
    STAFF = 'staff'
    MEMBER = 'member'
    GUEST = 'guest'


@dataclass(frozen=True)
class Actor:
    """Identity and role of whoever is asking, resolved once per request."""
    id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    full_name = db.Column(db.String(128))
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(20), nullable=False, default=Role.MEMBER.value)

    created_at = db.Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.CheckConstraint(
            "role IN ('admin', 'staff', 'member', 'guest')",
            name='check_user_role',
        ),
    )

    @validates('role')
    def _coerce_role(self, key, value):
        return Role(value).value

    def as_actor(self) -> Actor:
        return Actor(id=self.id, role=Role(self.role))

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role
        }
