import enum
from flask import current_app
from spacebooking.errors import AuthorizationError
from spacebooking.models import Role


class Action(str, enum.Enum):
    CREATE = 'create'
    APPROVE = 'approve'
    REJECT = 'reject'
    CANCEL = 'cancel'
    DELETE = 'delete'
    REPORT_NO_SHOW = 'report_no_show'


class Decision(enum.Enum):
    ALLOW = 'allow'
    DENY = 'deny'


ADMIN_ONLY_ACTIONS = {Action.APPROVE, Action.REJECT, Action.CANCEL, Action.REPORT_NO_SHOW}


class AuthorizationPolicy:

    @staticmethod
    def decide(actor, action: Action, reservation) -> Decision:
        """
        Decide whether `actor` may perform `action` on `reservation`.

        `reservation` is anything exposing `requester_id`: a stored Reservation
        or a creation candidate. Pure; never touches storage.
        """
        if actor.role == Role.ADMIN:
            return Decision.ALLOW

        if actor.role == Role.GUEST:
            return Decision.DENY

        if action in ADMIN_ONLY_ACTIONS:
            return Decision.DENY

        # Member / Staff: only on their own reservations
        if action in (Action.CREATE, Action.DELETE):
            if reservation is not None and reservation.requester_id == actor.id:
                return Decision.ALLOW

        return Decision.DENY

    @staticmethod
    def require(actor, action: Action, reservation):
        if AuthorizationPolicy.decide(actor, action, reservation) is Decision.DENY:
            current_app.logger.warning(
                "Denied %s for actor %s (%s) on reservation %s",
                action.value, actor.id, actor.role.value, getattr(reservation, 'id', None)
            )
            raise AuthorizationError(action, actor.id)

    @staticmethod
    def can_list_all(actor) -> bool:
        """Visibility: admins see every reservation, everyone else only their own."""
        return actor.role == Role.ADMIN
