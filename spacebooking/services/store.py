import time
from flask import current_app
from sqlalchemy import select, update, delete, func, text
from sqlalchemy.exc import OperationalError
from spacebooking.extensions import db
from spacebooking.errors import TransientStorageError
from spacebooking.models import Reservation, ReservationStatus, Space, Course, User, ACTIVE_STATUSES
from spacebooking.models.reservation import utcnow


class ReservationStore:
    """
    Transactional storage contract used by the reservation engine.

    Backed by the Flask-SQLAlchemy session of the current app context. All
    writes happen inside `with_transaction`, which commits or rolls back as a
    unit and retries transient faults with exponential backoff.
    """

    # --- Transactions ---

    def with_transaction(self, fn, attempts=None, backoff=None):
        attempts = attempts or current_app.config['TRANSIENT_RETRY_ATTEMPTS']
        if backoff is None:
            backoff = current_app.config['TRANSIENT_RETRY_BACKOFF']

        for attempt in range(1, attempts + 1):
            try:
                result = fn()
                db.session.commit()
                return result
            except OperationalError as e:
                db.session.rollback()
                if attempt == attempts:
                    current_app.logger.error("Storage still failing after %d attempts: %s", attempts, e)
                    raise TransientStorageError("Storage is temporarily unavailable, please retry.") from e
                current_app.logger.warning("Transient storage fault (attempt %d/%d): %s", attempt, attempts, e)
                time.sleep(backoff * 2 ** (attempt - 1))
            except Exception:
                db.session.rollback()
                raise

    def lock_space(self, space_id, timeout_seconds):
        """
        Row-lock the space for the rest of the transaction.

        Only PostgreSQL honours this; elsewhere the in-process space lock is the
        sole exclusion.
        """
        if db.engine.dialect.name != 'postgresql':
            return
        db.session.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_seconds * 1000)}ms'"))
        db.session.execute(select(Space.id).where(Space.id == space_id).with_for_update())

    # --- Reference data ---

    def space_exists(self, space_id) -> bool:
        """Only active spaces can be booked."""
        space = db.session.get(Space, space_id)
        return space is not None and bool(space.is_active)

    def course_exists(self, course_id) -> bool:
        return db.session.get(Course, course_id) is not None

    def user_exists(self, user_id) -> bool:
        return db.session.get(User, user_id) is not None

    def role_of(self, actor_id):
        user = db.session.get(User, actor_id)
        return user.as_actor().role if user else None

    # --- Reads ---

    def get(self, reservation_id):
        return db.session.get(Reservation, reservation_id)

    def refresh(self, reservation_id):
        return db.session.get(Reservation, reservation_id, populate_existing=True)

    def find_active_reservations_for_space(self, space_id):
        stmt = (
            select(Reservation)
            .where(
                Reservation.space_id == space_id,
                Reservation.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
            .order_by(Reservation.start_time)
            .execution_options(populate_existing=True)
        )
        return db.session.scalars(stmt).unique().all()

    def find_finished_confirmed(self, now):
        stmt = (
            select(Reservation)
            .where(
                Reservation.status == ReservationStatus.CONFIRMED.value,
                Reservation.end_time <= now,
            )
            .order_by(Reservation.end_time)
            .execution_options(populate_existing=True)
        )
        return db.session.scalars(stmt).unique().all()

    def query(self, requester_id=None, status=None, space_id=None, starts_after=None, ends_before=None):
        stmt = select(Reservation)
        if requester_id is not None:
            stmt = stmt.where(Reservation.requester_id == requester_id)
        if status is not None:
            stmt = stmt.where(Reservation.status == ReservationStatus(status).value)
        if space_id is not None:
            stmt = stmt.where(Reservation.space_id == space_id)
        if starts_after is not None:
            stmt = stmt.where(Reservation.start_time >= starts_after)
        if ends_before is not None:
            stmt = stmt.where(Reservation.end_time <= ends_before)
        stmt = stmt.order_by(Reservation.start_time.desc(), Reservation.id.desc())
        return db.session.scalars(stmt).unique().all()

    def count_by_status(self):
        stmt = select(Reservation.status, func.count(Reservation.id)).group_by(Reservation.status)
        return {status: count for status, count in db.session.execute(stmt)}

    # --- Writes (call inside with_transaction) ---

    def insert(self, reservation):
        db.session.add(reservation)
        db.session.flush()
        return reservation

    def compare_and_swap_status(self, reservation_id, expected, new, notes=None, no_show_reported=None) -> bool:
        """
        Set the new status only if the row still holds `expected`. True on success.

        `no_show_reported`, when given, also pins whether a no-show was recorded.
        """
        stmt = update(Reservation).where(
            Reservation.id == reservation_id,
            Reservation.status == ReservationStatus(expected).value,
        )
        if no_show_reported is True:
            stmt = stmt.where(Reservation.no_show_reported_at.isnot(None))
        elif no_show_reported is False:
            stmt = stmt.where(Reservation.no_show_reported_at.is_(None))
        stmt = (
            stmt.values(status=ReservationStatus(new).value, notes=notes, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return db.session.execute(stmt).rowcount == 1

    def mark_no_show_reported(self, reservation_id, reported_at) -> bool:
        stmt = (
            update(Reservation)
            .where(
                Reservation.id == reservation_id,
                Reservation.status == ReservationStatus.CONFIRMED.value,
            )
            .values(no_show_reported_at=reported_at, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return db.session.execute(stmt).rowcount == 1

    def delete(self, reservation_id) -> bool:
        stmt = (
            delete(Reservation)
            .where(Reservation.id == reservation_id)
            .execution_options(synchronize_session='evaluate')
        )
        return db.session.execute(stmt).rowcount == 1
