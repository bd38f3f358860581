from datetime import datetime
from spacebooking.errors import ConflictError


def intervals_overlap(s1: datetime, e1: datetime, s2: datetime, e2: datetime) -> bool:
    """Half-open [s, e): back-to-back intervals do not overlap."""
    return s1 < e2 and s2 < e1


class ConflictDetector:
    """
    Finds active reservations colliding with an interval on one space.

    A linear scan over the space's active set, which stays small since
    terminal reservations are never contenders.
    """

    def __init__(self, store):
        self.store = store

    def find_conflict(self, space_id, start_time, end_time, exclude_id=None):
        for reservation in self.store.find_active_reservations_for_space(space_id):
            if exclude_id is not None and reservation.id == exclude_id:
                continue
            if intervals_overlap(reservation.start_time, reservation.end_time, start_time, end_time):
                return reservation
        return None

    def assert_no_conflict(self, space_id, start_time, end_time, exclude_id=None):
        conflict = self.find_conflict(space_id, start_time, end_time, exclude_id)
        if conflict is not None:
            raise ConflictError(conflict)
