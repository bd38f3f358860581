import pytest
from datetime import datetime, timezone
from spacebooking import db
from spacebooking.errors import AuthorizationError, NotFoundError, TransitionError, ValidationError
from spacebooking.models import Reservation, ReservationStatus
from spacebooking.services.lifecycle import LifecycleStateMachine, TERMINAL_STATUSES
from spacebooking.services.reservation_service import ReservationService, ReservationFilter
from spacebooking.services.store import ReservationStore
from tests.conftest import at, ADMIN_ID, STAFF_ID, MEMBER_ID, OTHER_MEMBER_ID, SPACE_ID, OTHER_SPACE_ID

S = ReservationStatus


def actor(actor_id):
    return ReservationService.actor_for(actor_id)


def create(actor_id=MEMBER_ID, start=None, end=None, space_id=SPACE_ID):
    return ReservationService.create_reservation(
        actor(actor_id), space_id, start or at(9), end or at(10), 'study'
    )


def utc(hour, minute=0, day=10):
    return datetime(2024, 1, day, hour, minute, tzinfo=timezone.utc)


# --- Transition table ---

@pytest.mark.parametrize('from_status,to_status', [
    (S.PENDING, S.CONFIRMED),
    (S.PENDING, S.REJECTED),
    (S.CONFIRMED, S.CANCELLED),
    (S.CONFIRMED, S.COMPLETED),
    (S.CONFIRMED, S.NO_SHOW),
])
def test_allowed_transitions(from_status, to_status):
    assert LifecycleStateMachine.is_allowed(from_status, to_status)


@pytest.mark.parametrize('from_status,to_status', [
    (S.PENDING, S.CANCELLED),
    (S.PENDING, S.COMPLETED),
    (S.CONFIRMED, S.REJECTED),
    (S.CONFIRMED, S.PENDING),
    (S.REJECTED, S.CONFIRMED),
])
def test_illegal_transitions_named_in_error(from_status, to_status):
    with pytest.raises(TransitionError) as excinfo:
        LifecycleStateMachine.check_transition(from_status, to_status)
    assert excinfo.value.to_dict()['from_status'] == from_status.value
    assert excinfo.value.to_dict()['to_status'] == to_status.value


@pytest.mark.parametrize('terminal', sorted(TERMINAL_STATUSES, key=lambda s: s.value))
def test_terminal_statuses_have_no_outgoing_transition(terminal):
    assert not any(LifecycleStateMachine.is_allowed(terminal, target) for target in S)


# --- Scenarios ---

def test_admin_approves_pending(app, init_data):
    reservation = create()
    approved = ReservationService.approve_reservation(reservation.id, actor(ADMIN_ID))

    assert approved.id == reservation.id
    assert approved.status == S.CONFIRMED
    assert approved.notes is None


def test_reject_requires_reason_and_leaves_state(app, init_data):
    reservation = create()

    with pytest.raises(ValidationError) as excinfo:
        ReservationService.reject_reservation(reservation.id, actor(ADMIN_ID), reason='')
    assert excinfo.value.rule == 'reason_required'

    assert db.session.get(Reservation, reservation.id).status == S.PENDING


def test_reject_records_reason(app, init_data):
    reservation = create()
    rejected = ReservationService.reject_reservation(reservation.id, actor(ADMIN_ID), 'Lab under maintenance')

    assert rejected.status == S.REJECTED
    assert rejected.notes == 'Lab under maintenance'


def test_rejecting_twice_is_transition_error(app, init_data):
    reservation = create()
    admin = actor(ADMIN_ID)
    ReservationService.reject_reservation(reservation.id, admin, 'first reason')

    with pytest.raises(TransitionError):
        ReservationService.reject_reservation(reservation.id, admin, 'second reason')

    stored = db.session.get(Reservation, reservation.id)
    assert stored.status == S.REJECTED
    assert stored.notes == 'first reason'


def test_owner_deletes_pending_and_list_omits_it(app, init_data):
    reservation = create(MEMBER_ID)
    owner = actor(MEMBER_ID)

    ReservationService.delete_reservation(reservation.id, owner)

    assert db.session.get(Reservation, reservation.id) is None
    assert ReservationService.list_reservations(owner) == []


def test_admin_cancels_confirmed_with_reason(app, init_data):
    admin = actor(ADMIN_ID)
    reservation = create()
    ReservationService.approve_reservation(reservation.id, admin)

    cancelled = ReservationService.cancel_reservation(reservation.id, admin, 'urgent maintenance')

    assert cancelled.status == S.CANCELLED
    assert cancelled.notes == 'urgent maintenance'


def test_cancel_pending_is_transition_error(app, init_data):
    reservation = create()
    with pytest.raises(TransitionError):
        ReservationService.cancel_reservation(reservation.id, actor(ADMIN_ID), 'urgent maintenance')


# --- Authorization ---

@pytest.mark.parametrize('actor_id', [MEMBER_ID, OTHER_MEMBER_ID, STAFF_ID])
def test_non_admin_cannot_approve_regardless_of_ownership(app, init_data, actor_id):
    reservation = create(MEMBER_ID)
    with pytest.raises(AuthorizationError):
        ReservationService.approve_reservation(reservation.id, actor(actor_id))
    assert db.session.get(Reservation, reservation.id).status == S.PENDING


def test_member_cannot_delete_someone_elses_reservation(app, init_data):
    reservation = create(MEMBER_ID)
    with pytest.raises(AuthorizationError):
        ReservationService.delete_reservation(reservation.id, actor(OTHER_MEMBER_ID))
    assert db.session.get(Reservation, reservation.id) is not None


@pytest.mark.parametrize('finish', ['reject', 'cancel'])
def test_terminal_reservations_remain_deletable(app, init_data, finish):
    admin = actor(ADMIN_ID)
    reservation = create(MEMBER_ID)
    if finish == 'reject':
        ReservationService.reject_reservation(reservation.id, admin, 'no')
    else:
        ReservationService.approve_reservation(reservation.id, admin)
        ReservationService.cancel_reservation(reservation.id, admin, 'closed')

    ReservationService.delete_reservation(reservation.id, actor(MEMBER_ID))
    assert db.session.get(Reservation, reservation.id) is None


def test_admin_deletes_any_reservation(app, init_data):
    reservation = create(MEMBER_ID)
    ReservationService.delete_reservation(reservation.id, actor(ADMIN_ID))
    assert Reservation.query.count() == 0


def test_unknown_reservation_not_found(app, init_data):
    admin = actor(ADMIN_ID)
    with pytest.raises(NotFoundError):
        ReservationService.approve_reservation(999, admin)
    with pytest.raises(NotFoundError):
        ReservationService.reject_reservation(999, admin, 'reason')
    with pytest.raises(NotFoundError):
        ReservationService.delete_reservation(999, admin)


# --- Concurrency on a single reservation ---

class RacingStore(ReservationStore):
    """Another admin rejects the reservation between our read and our write."""

    def compare_and_swap_status(self, reservation_id, expected, new, notes=None):
        super().compare_and_swap_status(reservation_id, expected, S.REJECTED, 'handled by another admin')
        return super().compare_and_swap_status(reservation_id, expected, new, notes)


def test_losing_concurrent_transition_sees_transition_error(app, init_data):
    reservation = create()

    with pytest.raises(TransitionError, match="no longer pending"):
        LifecycleStateMachine(RacingStore()).approve(reservation.id, actor(ADMIN_ID))

    stored = db.session.get(Reservation, reservation.id)
    assert stored.status == S.REJECTED
    assert stored.notes == 'handled by another admin'


# --- Visibility ---

def test_listing_scoped_per_role(app, init_data):
    mine = create(MEMBER_ID, at(9), at(10))
    theirs = create(OTHER_MEMBER_ID, at(11), at(12))

    member_view = ReservationService.list_reservations(actor(MEMBER_ID))
    admin_view = ReservationService.list_reservations(actor(ADMIN_ID))

    assert [r.id for r in member_view] == [mine.id]
    # Newest start first
    assert [r.id for r in admin_view] == [theirs.id, mine.id]


def test_listing_filters(app, init_data):
    admin = actor(ADMIN_ID)
    first = create(MEMBER_ID, at(9), at(10))
    second = create(MEMBER_ID, at(9), at(10), space_id=OTHER_SPACE_ID)
    ReservationService.approve_reservation(second.id, admin)

    confirmed = ReservationService.list_reservations(admin, ReservationFilter(status=S.CONFIRMED))
    assert [r.id for r in confirmed] == [second.id]

    in_space = ReservationService.list_reservations(admin, ReservationFilter(space_id=SPACE_ID))
    assert [r.id for r in in_space] == [first.id]

    later = ReservationService.list_reservations(admin, ReservationFilter(starts_after=utc(9, 30)))
    assert later == []


def test_get_hides_foreign_reservations(app, init_data):
    reservation = create(MEMBER_ID)
    assert ReservationService.get_reservation(reservation.id, actor(MEMBER_ID)).id == reservation.id
    with pytest.raises(NotFoundError):
        ReservationService.get_reservation(reservation.id, actor(OTHER_MEMBER_ID))


def test_stats_for_admin_only(app, init_data):
    admin = actor(ADMIN_ID)
    first = create(MEMBER_ID, at(9), at(10))
    create(MEMBER_ID, at(11), at(12))
    ReservationService.reject_reservation(first.id, admin, 'no')

    stats = ReservationService.get_stats(admin)
    assert stats['pending'] == 1
    assert stats['rejected'] == 1
    assert stats['confirmed'] == 0
    assert stats['total'] == 2

    with pytest.raises(AuthorizationError):
        ReservationService.get_stats(actor(MEMBER_ID))


# --- Time-driven completion ---

def test_sweep_completes_finished_confirmed(app, init_data):
    admin = actor(ADMIN_ID)
    done = create(MEMBER_ID, at(9), at(10))
    running = create(MEMBER_ID, at(11), at(12))
    pending = create(OTHER_MEMBER_ID, at(8), at(9))
    ReservationService.approve_reservation(done.id, admin)
    ReservationService.approve_reservation(running.id, admin)

    counts = ReservationService.sweep_finished(now=utc(11, 30))

    assert counts == {'completed': 1, 'no_show': 0}
    assert db.session.get(Reservation, done.id).status == S.COMPLETED
    assert db.session.get(Reservation, running.id).status == S.CONFIRMED
    assert db.session.get(Reservation, pending.id).status == S.PENDING


def test_sweep_is_idempotent(app, init_data):
    reservation = create()
    ReservationService.approve_reservation(reservation.id, actor(ADMIN_ID))

    ReservationService.sweep_finished(now=utc(12))
    counts = ReservationService.sweep_finished(now=utc(12))

    assert counts == {'completed': 0, 'no_show': 0}
    assert db.session.get(Reservation, reservation.id).status == S.COMPLETED


def test_reported_no_show_finalized_by_sweep(app, init_data):
    admin = actor(ADMIN_ID)
    absent = create(MEMBER_ID, at(9), at(10))
    attended = create(MEMBER_ID, at(9), at(10), space_id=OTHER_SPACE_ID)
    ReservationService.approve_reservation(absent.id, admin)
    ReservationService.approve_reservation(attended.id, admin)

    ReservationService.report_no_show(absent.id, admin, now=utc(9, 20))
    assert db.session.get(Reservation, absent.id).status == S.CONFIRMED

    counts = ReservationService.sweep_finished(now=utc(10))

    assert counts == {'completed': 1, 'no_show': 1}
    assert db.session.get(Reservation, absent.id).status == S.NO_SHOW
    assert db.session.get(Reservation, attended.id).status == S.COMPLETED


class LateNoShowStore(ReservationStore):
    """A no-show is reported between the sweep's read and its write."""

    def compare_and_swap_status(self, reservation_id, expected, new, notes=None, no_show_reported=None):
        self.mark_no_show_reported(reservation_id, utc(9, 30))
        return super().compare_and_swap_status(reservation_id, expected, new, notes, no_show_reported)


def test_sweep_does_not_complete_late_reported_no_show(app, init_data):
    reservation = create()
    ReservationService.approve_reservation(reservation.id, actor(ADMIN_ID))

    counts = LifecycleStateMachine(LateNoShowStore()).sweep_finished(now=utc(10))

    assert counts == {'completed': 0, 'no_show': 0}
    assert db.session.get(Reservation, reservation.id).status == S.CONFIRMED

    assert ReservationService.sweep_finished(now=utc(10)) == {'completed': 0, 'no_show': 1}
    assert db.session.get(Reservation, reservation.id).status == S.NO_SHOW


def test_no_show_rules(app, init_data):
    admin = actor(ADMIN_ID)
    reservation = create(MEMBER_ID, at(9), at(10))

    with pytest.raises(TransitionError):
        ReservationService.report_no_show(reservation.id, admin, now=utc(9, 30))

    ReservationService.approve_reservation(reservation.id, admin)
    with pytest.raises(ValidationError) as excinfo:
        ReservationService.report_no_show(reservation.id, admin, now=utc(8, 30))
    assert excinfo.value.rule == 'not_started'

    with pytest.raises(AuthorizationError):
        ReservationService.report_no_show(reservation.id, actor(MEMBER_ID), now=utc(9, 30))


# --- Serialization ---

def test_to_dict_requester_name(app, init_data):
    reservation = create()
    assert reservation.to_dict()['requester_name'] == 'alice'

    orphan = Reservation(requester_id=999, space_id=SPACE_ID, start_time=utc(9), end_time=utc(10),
                         purpose='study', status=S.PENDING)
    assert orphan.to_dict()['requester_name'] is None
