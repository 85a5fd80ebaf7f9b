"""
Test the capacity-bounded attendance store.
"""
from concurrent.futures import ThreadPoolExecutor

import pytest
import redis
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rsvp.core import config
from rsvp.core.exceptions import AttendanceStoreUnavailableError
from rsvp.models.attendees import Attendee
from rsvp.models.events import Event
from rsvp.services.attendance import (
    AddResult,
    RemoveResult,
    event_lock,
    get_snapshot,
    is_member,
    remove,
    try_add,
)


class TestTryAdd:
    def test_add_member(self, db_session: Session, make_event):
        event_id = make_event(capacity=3).id

        assert try_add(db_session, event_id=event_id, user_id=1) is AddResult.ADDED

        snapshot = get_snapshot(db_session, event_id)
        assert snapshot.attendee_count == 1
        assert snapshot.attendees == (1,)
        assert is_member(db_session, event_id=event_id, user_id=1)

    def test_add_same_user_twice(self, db_session: Session, make_event):
        event_id = make_event(capacity=3).id
        try_add(db_session, event_id=event_id, user_id=1)

        assert try_add(db_session, event_id=event_id, user_id=1) is AddResult.ALREADY_MEMBER
        assert get_snapshot(db_session, event_id).attendee_count == 1

    def test_add_when_full(self, db_session: Session, make_event):
        event_id = make_event(capacity=2).id
        try_add(db_session, event_id=event_id, user_id=1)
        try_add(db_session, event_id=event_id, user_id=2)

        assert try_add(db_session, event_id=event_id, user_id=3) is AddResult.CAPACITY_EXCEEDED

        snapshot = get_snapshot(db_session, event_id)
        assert snapshot.attendee_count == 2
        assert snapshot.is_full
        assert snapshot.available_spots == 0

    def test_member_of_full_event_is_reported_as_member(self, db_session: Session, make_event):
        event_id = make_event(capacity=1).id
        try_add(db_session, event_id=event_id, user_id=1)

        assert try_add(db_session, event_id=event_id, user_id=1) is AddResult.ALREADY_MEMBER

    def test_add_to_missing_event(self, db_session: Session):
        assert try_add(db_session, event_id=99999, user_id=1) is AddResult.NOT_FOUND

    def test_events_are_independent(self, db_session: Session, make_event):
        first = make_event(capacity=1).id
        second = make_event(capacity=1).id

        assert try_add(db_session, event_id=first, user_id=1) is AddResult.ADDED
        assert try_add(db_session, event_id=second, user_id=1) is AddResult.ADDED
        assert try_add(db_session, event_id=first, user_id=2) is AddResult.CAPACITY_EXCEEDED

    def test_count_matches_rows(self, db_session: Session, make_event):
        event_id = make_event(capacity=5).id
        for user_id in (1, 2, 2, 3, 4, 5, 6):
            try_add(db_session, event_id=event_id, user_id=user_id)

        rows = db_session.scalar(select(func.count(Attendee.id)).where(Attendee.event_id == event_id))
        assert rows == 5
        assert db_session.scalar(select(Event.attendee_count).where(Event.id == event_id)) == 5


class TestRemove:
    def test_remove_member(self, db_session: Session, make_event):
        event_id = make_event(capacity=1).id
        try_add(db_session, event_id=event_id, user_id=1)

        assert remove(db_session, event_id=event_id, user_id=1) is RemoveResult.REMOVED

        snapshot = get_snapshot(db_session, event_id)
        assert snapshot.attendee_count == 0
        assert snapshot.attendees == ()

    def test_remove_non_member_is_idempotent(self, db_session: Session, make_event):
        event_id = make_event(capacity=2).id
        try_add(db_session, event_id=event_id, user_id=1)

        assert remove(db_session, event_id=event_id, user_id=2) is RemoveResult.NOT_MEMBER
        assert remove(db_session, event_id=event_id, user_id=2) is RemoveResult.NOT_MEMBER
        assert get_snapshot(db_session, event_id).attendee_count == 1

    def test_remove_frees_a_spot(self, db_session: Session, make_event):
        event_id = make_event(capacity=1).id
        try_add(db_session, event_id=event_id, user_id=1)
        remove(db_session, event_id=event_id, user_id=1)

        assert try_add(db_session, event_id=event_id, user_id=2) is AddResult.ADDED


class TestSnapshot:
    def test_snapshot_of_missing_event(self, db_session: Session):
        assert get_snapshot(db_session, 99999) is None

    def test_snapshot_keeps_insertion_order(self, db_session: Session, make_event):
        event_id = make_event(capacity=5).id
        for user_id in (30, 10, 20):
            try_add(db_session, event_id=event_id, user_id=user_id)

        snapshot = get_snapshot(db_session, event_id)
        assert snapshot.attendees == (30, 10, 20)
        assert snapshot.capacity == 5
        assert snapshot.available_spots == 2


class TestEventLock:
    def test_lock_timeout_is_reported(self, db_session: Session, make_event, fake_redis, monkeypatch):
        event_id = make_event(capacity=5).id
        monkeypatch.setattr(config, "LOCK_BLOCKING_TIMEOUT_SECONDS", 0.2)
        holder = fake_redis.lock(f"event_lock:{event_id}", timeout=10)
        assert holder.acquire(blocking=False) is True

        try:
            with pytest.raises(AttendanceStoreUnavailableError):
                try_add(db_session, event_id=event_id, user_id=1)
        finally:
            holder.release()

        assert get_snapshot(db_session, event_id).attendee_count == 0

    def test_redis_down_is_reported(self, db_session: Session, make_event, monkeypatch):
        event_id = make_event(capacity=5).id

        class BrokenLock:
            def acquire(self, blocking=True):
                raise redis.exceptions.ConnectionError("connection refused")

        class BrokenRedis:
            def lock(self, *args, **kwargs):
                return BrokenLock()

        monkeypatch.setattr("rsvp.services.attendance.get_redis_client", lambda: BrokenRedis())

        with pytest.raises(AttendanceStoreUnavailableError):
            try_add(db_session, event_id=event_id, user_id=1)

    def test_lock_is_released_after_use(self, fake_redis):
        with event_lock(42):
            other = fake_redis.lock("event_lock:42", timeout=5)
            assert other.acquire(blocking=False) is False

        assert other.acquire(blocking=False) is True
        other.release()

    def test_locks_are_per_event(self, fake_redis):
        with event_lock(1):
            with event_lock(2):
                assert fake_redis.get("event_lock:1") is not None
                assert fake_redis.get("event_lock:2") is not None


class TestConcurrentTryAdd:
    def test_concurrent_adds_never_exceed_capacity(self, file_sessionmaker):
        setup = file_sessionmaker()
        event = Event(title="Race Event", capacity=3, attendee_count=0)
        setup.add(event)
        setup.commit()
        event_id = event.id
        setup.close()

        def attempt(user_id: int) -> AddResult:
            db = file_sessionmaker()
            try:
                return try_add(db, event_id=event_id, user_id=user_id)
            finally:
                db.close()

        with ThreadPoolExecutor(max_workers=10) as executor:
            results = list(executor.map(attempt, range(1, 11)))

        assert results.count(AddResult.ADDED) == 3
        assert results.count(AddResult.CAPACITY_EXCEEDED) == 7

        check = file_sessionmaker()
        try:
            snapshot = get_snapshot(check, event_id)
            assert snapshot.attendee_count == 3
            assert len(snapshot.attendees) == 3
        finally:
            check.close()

    def test_same_user_racing_is_added_once(self, file_sessionmaker):
        setup = file_sessionmaker()
        event = Event(title="Dup Event", capacity=10, attendee_count=0)
        setup.add(event)
        setup.commit()
        event_id = event.id
        setup.close()

        def attempt(_: int) -> AddResult:
            db = file_sessionmaker()
            try:
                return try_add(db, event_id=event_id, user_id=7)
            finally:
                db.close()

        with ThreadPoolExecutor(max_workers=5) as executor:
            results = list(executor.map(attempt, range(5)))

        assert results.count(AddResult.ADDED) == 1
        assert results.count(AddResult.ALREADY_MEMBER) == 4
