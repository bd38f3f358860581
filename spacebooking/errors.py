"""
Typed failures returned to callers of the reservation engine.

Every error knows its HTTP status and whether the caller may retry, so the API
layer can render it without inspecting messages.
"""


class ReservationError(Exception):
    code = 'reservation_error'
    status_code = 400
    retryable = False

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {
            'error': self.code,
            'message': self.message,
            'retryable': self.retryable,
        }
        payload.update(self.details)
        return payload


class ValidationError(ReservationError):
    code = 'validation_error'
    status_code = 400

    def __init__(self, rule: str, message: str):
        super().__init__(message, rule=rule)
        self.rule = rule


class AuthorizationError(ReservationError):
    code = 'authorization_error'
    status_code = 403

    def __init__(self, action, actor_id=None, message=None):
        action_name = getattr(action, 'value', action)
        super().__init__(message or f"Not allowed to {action_name} this reservation.", action=action_name)
        self.action = action
        self.actor_id = actor_id


class NotFoundError(ReservationError):
    code = 'not_found'
    status_code = 404

    def __init__(self, reservation_id):
        super().__init__(f"Reservation {reservation_id} not found.", reservation_id=reservation_id)
        self.reservation_id = reservation_id


class ConflictError(ReservationError):
    code = 'conflict'
    status_code = 409
    retryable = True

    def __init__(self, conflicting=None, message=None):
        details = {}
        if conflicting is not None:
            details = {
                'conflicting_id': conflicting.id,
                'conflicting_start': conflicting.start_time.isoformat(),
                'conflicting_end': conflicting.end_time.isoformat(),
            }
        super().__init__(message or "Space is already reserved for this interval.", **details)
        self.conflicting = conflicting

    @property
    def conflicting_id(self):
        return self.conflicting.id if self.conflicting is not None else None


class SpaceBusyError(ConflictError):
    code = 'space_busy'

    def __init__(self, space_id, timeout):
        super().__init__(message=f"Space {space_id} is busy, try again shortly.")
        self.details.update(space_id=space_id, timeout=timeout)
        self.space_id = space_id


class TransitionError(ReservationError):
    code = 'transition_error'
    status_code = 409

    def __init__(self, from_status, to_status, message=None):
        from_name = getattr(from_status, 'value', from_status)
        to_name = getattr(to_status, 'value', to_status)
        super().__init__(
            message or f"Cannot move reservation from {from_name} to {to_name}.",
            from_status=from_name,
            to_status=to_name,
        )
        self.from_status = from_status
        self.to_status = to_status


class TransientStorageError(ReservationError):
    code = 'storage_unavailable'
    status_code = 503
    retryable = True
