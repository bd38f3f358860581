from flask import current_app
from sqlalchemy.exc import IntegrityError
from spacebooking.errors import ConflictError, SpaceBusyError
from spacebooking.extensions import space_locks
from spacebooking.models import Reservation, ReservationStatus
from spacebooking.services.authorization import AuthorizationPolicy, Action
from spacebooking.services.conflicts import ConflictDetector
from spacebooking.services.validation import RequestValidator, OperatingHours

EXCLUSION_VIOLATION = '23P01'


class AdmissionController:
    """
    Grants or refuses new reservations.

    The conflict check and the insert run as one unit per space: the space lock
    is held across the whole transaction, and on PostgreSQL the space row is
    locked too, so at most one of several overlapping requests can commit.
    """

    def __init__(self, store, locks=None):
        self.store = store
        self.locks = locks or space_locks
        self.detector = ConflictDetector(store)

    def create_reservation(self, candidate, actor) -> Reservation:
        # 1. Authorization
        AuthorizationPolicy.require(actor, Action.CREATE, candidate)

        # 2. Shape and business rules
        config = current_app.config
        candidate = RequestValidator.validate(
            candidate,
            OperatingHours.from_config(config),
            self.store.space_exists,
            course_exists=self.store.course_exists,
            requester_exists=self.store.user_exists,
        )

        timeout = config['SPACE_LOCK_TIMEOUT']

        # 3-5. Check-then-insert under exclusion
        def admit():
            self.store.lock_space(candidate.space_id, timeout)
            self.detector.assert_no_conflict(candidate.space_id, candidate.start_time, candidate.end_time)
            reservation = Reservation(
                requester_id=candidate.requester_id,
                space_id=candidate.space_id,
                course_id=candidate.course_id,
                start_time=candidate.start_time,
                end_time=candidate.end_time,
                purpose=candidate.purpose,
                status=ReservationStatus.PENDING,
            )
            return self.store.insert(reservation)

        try:
            with self.locks.hold(candidate.space_id, timeout):
                reservation = self.store.with_transaction(admit)
        except SpaceBusyError:
            current_app.logger.warning(
                "Space %s lock not acquired within %ss", candidate.space_id, timeout
            )
            raise
        except ConflictError as e:
            current_app.logger.warning(
                "Reservation request by user %s on space %s conflicts with reservation %s",
                candidate.requester_id, candidate.space_id, e.conflicting_id
            )
            raise
        except IntegrityError as e:
            # Only the exclusion constraint means another process won the slot.
            if getattr(e.orig, 'pgcode', None) != EXCLUSION_VIOLATION:
                raise
            conflict = self.detector.find_conflict(candidate.space_id, candidate.start_time, candidate.end_time)
            current_app.logger.warning("Storage rejected overlapping reservation on space %s: %s", candidate.space_id, e.orig)
            raise ConflictError(conflict) from e

        current_app.logger.info(
            "Reservation %s created by user %s on space %s [%s, %s)",
            reservation.id, reservation.requester_id, reservation.space_id,
            reservation.start_time.isoformat(), reservation.end_time.isoformat()
        )
        return reservation
