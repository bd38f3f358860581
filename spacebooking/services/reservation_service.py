from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from flask import current_app
from spacebooking.errors import AuthorizationError, NotFoundError, ValidationError
from spacebooking.models import Actor, ReservationStatus, Space, Role
from spacebooking.services.admission import AdmissionController
from spacebooking.services.authorization import AuthorizationPolicy
from spacebooking.services.lifecycle import LifecycleStateMachine
from spacebooking.services.store import ReservationStore
from spacebooking.services.validation import ReservationCandidate, OperatingHours


@dataclass(frozen=True)
class ReservationFilter:
    status: Optional[ReservationStatus] = None
    space_id: Optional[int] = None
    starts_after: Optional[datetime] = None
    ends_before: Optional[datetime] = None

    @classmethod
    def from_args(cls, args):
        """Build from query-string style args (`status`, `space_id`, `from`, `to`)."""
        status = args.get('status')
        if status:
            try:
                status = ReservationStatus(status)
            except ValueError:
                raise ValidationError('unknown_status', f"Unknown status '{status}'.")

        space_id = args.get('space_id')
        if space_id not in (None, ''):
            try:
                space_id = int(space_id)
            except (TypeError, ValueError):
                raise ValidationError('invalid_space_id', "space_id must be an integer.")
        else:
            space_id = None

        hours = OperatingHours.from_config(current_app.config)
        bounds = {}
        for key in ('from', 'to'):
            value = args.get(key)
            if not value:
                bounds[key] = None
                continue
            try:
                bounds[key] = hours.localize(datetime.fromisoformat(value))
            except ValueError:
                raise ValidationError('invalid_datetime', f"'{key}' must be an ISO 8601 datetime.")

        return cls(status=status or None, space_id=space_id,
                   starts_after=bounds['from'], ends_before=bounds['to'])


class ReservationService:
    """
    Entry points for callers (HTTP routes, CLI, tests).

    Mutating operations return the updated Reservation so callers can refresh
    their own view without reloading everything.
    """

    @staticmethod
    def _store():
        return ReservationStore()

    @staticmethod
    def actor_for(actor_id) -> Actor:
        """Resolve an actor id to its authoritative role."""
        role = ReservationService._store().role_of(actor_id)
        if role is None:
            raise AuthorizationError('identify', actor_id, message=f"Unknown actor {actor_id}.")
        return Actor(id=actor_id, role=role)

    # --- Creation ---

    @staticmethod
    def create_reservation(actor, space_id, start_time, end_time, purpose,
                           course_id=None, requester_id=None):
        """
        Request a space for [start_time, end_time).

        `requester_id` defaults to the actor; a mismatch is refused by the policy
        unless the actor is an admin.
        """
        candidate = ReservationCandidate(
            requester_id=actor.id if requester_id is None else requester_id,
            space_id=space_id,
            course_id=course_id,
            start_time=start_time,
            end_time=end_time,
            purpose=purpose,
        )
        store = ReservationService._store()
        return AdmissionController(store).create_reservation(candidate, actor)

    # --- Lifecycle ---

    @staticmethod
    def approve_reservation(reservation_id, actor):
        return LifecycleStateMachine(ReservationService._store()).approve(reservation_id, actor)

    @staticmethod
    def reject_reservation(reservation_id, actor, reason):
        return LifecycleStateMachine(ReservationService._store()).reject(reservation_id, actor, reason)

    @staticmethod
    def cancel_reservation(reservation_id, actor, reason):
        return LifecycleStateMachine(ReservationService._store()).cancel(reservation_id, actor, reason)

    @staticmethod
    def delete_reservation(reservation_id, actor):
        LifecycleStateMachine(ReservationService._store()).delete(reservation_id, actor)

    @staticmethod
    def report_no_show(reservation_id, actor, now=None):
        return LifecycleStateMachine(ReservationService._store()).report_no_show(reservation_id, actor, now)

    @staticmethod
    def sweep_finished(now=None):
        return LifecycleStateMachine(ReservationService._store()).sweep_finished(now)

    # --- Queries ---

    @staticmethod
    def list_reservations(actor, filters: Optional[ReservationFilter] = None):
        """Admins see everything; anyone else only their own reservations."""
        filters = filters or ReservationFilter()
        requester_id = None if AuthorizationPolicy.can_list_all(actor) else actor.id
        return ReservationService._store().query(
            requester_id=requester_id,
            status=filters.status,
            space_id=filters.space_id,
            starts_after=filters.starts_after,
            ends_before=filters.ends_before,
        )

    @staticmethod
    def get_reservation(reservation_id, actor):
        # Hidden reservations look missing rather than forbidden.
        reservation = ReservationService._store().get(reservation_id)
        if reservation is None:
            raise NotFoundError(reservation_id)
        if not AuthorizationPolicy.can_list_all(actor) and reservation.requester_id != actor.id:
            raise NotFoundError(reservation_id)
        return reservation

    @staticmethod
    def get_stats(actor):
        """Counts per status for the admin dashboard."""
        if actor.role != Role.ADMIN:
            raise AuthorizationError('view_stats', actor.id, message="Only administrators can view statistics.")
        counts = ReservationService._store().count_by_status()
        stats = {status.value: counts.get(status.value, 0) for status in ReservationStatus}
        stats['total'] = sum(counts.values())
        return stats

    @staticmethod
    def list_spaces():
        return Space.query.filter(Space.is_active == True).order_by(Space.name).all()
