from spacebooking.models.user import User, Role, Actor
from spacebooking.models.space import Space, Course
from spacebooking.models.reservation import (
    Reservation,
    ReservationStatus,
    ACTIVE_STATUSES,
    ANNOTATED_STATUSES,
)
