from flask import current_app
from spacebooking.errors import NotFoundError, TransitionError, ValidationError
from spacebooking.models import ReservationStatus, ANNOTATED_STATUSES
from spacebooking.models.reservation import utcnow
from spacebooking.services.authorization import AuthorizationPolicy, Action
from spacebooking.services.validation import RequestValidator

S = ReservationStatus

# (from, to) -> action that authorizes it. `None` marks system-driven moves.
TRANSITIONS = {
    (S.PENDING, S.CONFIRMED): Action.APPROVE,
    (S.PENDING, S.REJECTED): Action.REJECT,
    (S.CONFIRMED, S.CANCELLED): Action.CANCEL,
    (S.CONFIRMED, S.COMPLETED): None,
    (S.CONFIRMED, S.NO_SHOW): None,
}

TERMINAL_STATUSES = frozenset({S.REJECTED, S.CANCELLED, S.COMPLETED, S.NO_SHOW})


class LifecycleStateMachine:
    """
    Drives stored reservations through their status lifecycle.

    Every status change is a compare-and-swap on the status read before the
    change, so of two concurrent transitions on the same reservation only one
    lands and the other sees a TransitionError.
    """

    def __init__(self, store):
        self.store = store

    @staticmethod
    def is_allowed(from_status, to_status) -> bool:
        return (S(from_status), S(to_status)) in TRANSITIONS

    @staticmethod
    def check_transition(from_status, to_status):
        if not LifecycleStateMachine.is_allowed(from_status, to_status):
            raise TransitionError(from_status, to_status)

    def _load(self, reservation_id):
        reservation = self.store.get(reservation_id)
        if reservation is None:
            raise NotFoundError(reservation_id)
        return reservation

    def transition(self, reservation_id, actor, action: Action, to_status, reason=None):
        reservation = self._load(reservation_id)
        AuthorizationPolicy.require(actor, action, reservation)

        from_status = reservation.current_status
        self.check_transition(from_status, to_status)

        notes = None
        if to_status in ANNOTATED_STATUSES:
            notes = RequestValidator.require_reason(reason)

        self._swap(reservation_id, from_status, to_status, notes)
        current_app.logger.info(
            "Reservation %s moved %s -> %s by user %s",
            reservation_id, from_status.value, to_status.value, actor.id
        )
        return self.store.refresh(reservation_id)

    def _swap(self, reservation_id, from_status, to_status, notes):
        swapped = self.store.with_transaction(
            lambda: self.store.compare_and_swap_status(reservation_id, from_status, to_status, notes)
        )
        if not swapped:
            current = self.store.refresh(reservation_id)
            if current is None:
                raise NotFoundError(reservation_id)
            current_app.logger.warning(
                "Lost race on reservation %s: expected %s, found %s",
                reservation_id, from_status.value, current.status
            )
            raise TransitionError(
                current.current_status, to_status,
                message=f"Reservation is no longer {from_status.value}.",
            )

    # --- Admin transitions ---

    def approve(self, reservation_id, actor):
        return self.transition(reservation_id, actor, Action.APPROVE, S.CONFIRMED)

    def reject(self, reservation_id, actor, reason):
        return self.transition(reservation_id, actor, Action.REJECT, S.REJECTED, reason)

    def cancel(self, reservation_id, actor, reason):
        return self.transition(reservation_id, actor, Action.CANCEL, S.CANCELLED, reason)

    # --- Deletion ---

    def delete(self, reservation_id, actor):
        """Hard removal, allowed from every status for the owner or an admin."""
        reservation = self._load(reservation_id)
        AuthorizationPolicy.require(actor, Action.DELETE, reservation)
        status = reservation.status

        if not self.store.with_transaction(lambda: self.store.delete(reservation_id)):
            raise NotFoundError(reservation_id)
        current_app.logger.info("Reservation %s (%s) deleted by user %s", reservation_id, status, actor.id)

    # --- Time-driven ---

    def report_no_show(self, reservation_id, actor, now=None):
        """Record that nobody showed up; the sweep turns it into NO_SHOW once the slot ends."""
        now = now or utcnow()
        reservation = self._load(reservation_id)
        AuthorizationPolicy.require(actor, Action.REPORT_NO_SHOW, reservation)

        if reservation.current_status != S.CONFIRMED:
            raise TransitionError(reservation.current_status, S.NO_SHOW)
        if reservation.start_time > now:
            raise ValidationError('not_started', "A no-show can only be reported once the reservation has started.")

        if not self.store.with_transaction(lambda: self.store.mark_no_show_reported(reservation_id, now)):
            current = self.store.refresh(reservation_id)
            if current is None:
                raise NotFoundError(reservation_id)
            raise TransitionError(current.current_status, S.NO_SHOW)
        current_app.logger.info("No-show reported on reservation %s by user %s", reservation_id, actor.id)
        return self.store.refresh(reservation_id)

    def sweep_finished(self, now=None):
        """
        Close out confirmed reservations whose slot has ended.

        Idempotent: reservations already finalized are skipped, and one that
        moves concurrently is simply left to whoever moved it.
        """
        now = now or utcnow()
        counts = {S.COMPLETED.value: 0, S.NO_SHOW.value: 0}

        for reservation in self.store.find_finished_confirmed(now):
            target = S.NO_SHOW if reservation.no_show_reported_at else S.COMPLETED
            reservation_id = reservation.id
            # A no-show reported after the read makes the swap miss; the next sweep picks it up.
            swapped = self.store.with_transaction(
                lambda: self.store.compare_and_swap_status(
                    reservation_id, S.CONFIRMED, target,
                    no_show_reported=(target == S.NO_SHOW),
                )
            )
            if swapped:
                counts[target.value] += 1

        if any(counts.values()):
            current_app.logger.info(
                "Sweep closed %d completed, %d no-show reservations",
                counts[S.COMPLETED.value], counts[S.NO_SHOW.value]
            )
        return counts
