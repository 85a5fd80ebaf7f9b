import enum
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import redis
from sqlalchemy import delete, exists, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rsvp.core import config
from rsvp.core.exceptions import AttendanceStoreUnavailableError
from rsvp.models.attendees import Attendee
from rsvp.models.events import Event

logger = logging.getLogger(__name__)


class AddResult(str, enum.Enum):
    ADDED = "ADDED"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    ALREADY_MEMBER = "ALREADY_MEMBER"
    NOT_FOUND = "NOT_FOUND"


class RemoveResult(str, enum.Enum):
    REMOVED = "REMOVED"
    NOT_MEMBER = "NOT_MEMBER"


@dataclass(frozen=True)
class AttendanceSnapshot:
    event_id: int
    capacity: int
    attendee_count: int
    attendees: tuple[int, ...] = ()

    @property
    def available_spots(self) -> int:
        return max(0, self.capacity - self.attendee_count)

    @property
    def is_full(self) -> bool:
        return self.attendee_count >= self.capacity


def get_redis_client():
    """Get Redis client for locking."""
    return redis.from_url(config.get_redis_url(), decode_responses=True)


@contextmanager
def event_lock(event_id: int) -> Iterator[None]:
    """
    Hold the per-event lock that serialises attendee writes.

    Events never share a lock, so contention stays scoped to one event.
    """
    redis_client = get_redis_client()
    lock = redis_client.lock(
        f"event_lock:{event_id}",
        timeout=config.LOCK_TIMEOUT_SECONDS,
        blocking_timeout=config.LOCK_BLOCKING_TIMEOUT_SECONDS,
    )
    try:
        acquired = lock.acquire(blocking=True)
    except redis.exceptions.RedisError as exc:
        logger.error("Redis unavailable while locking event %s: %s", event_id, exc)
        raise AttendanceStoreUnavailableError(event_id) from exc
    if not acquired:
        logger.warning("Timed out waiting for lock on event %s", event_id)
        raise AttendanceStoreUnavailableError(event_id)

    try:
        yield
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:
            # Lease ran out before release; the write already committed or rolled back.
            logger.warning("Lock on event %s expired before release", event_id)


def try_add(db: Session, *, event_id: int, user_id: int) -> AddResult:
    """
    Add ``user_id`` to the event's attendees if, at this instant, the event
    exists, the user is not yet a member and a spot is free.

    The check and the insert run as one transaction inside the event lock.
    The conditional UPDATE on attendee_count and the (event_id, user_id)
    unique constraint keep the invariant even without the lock.
    """
    with event_lock(event_id):
        try:
            already = db.scalar(
                select(exists().where(Attendee.event_id == event_id, Attendee.user_id == user_id))
            )
            if already:
                db.rollback()
                return AddResult.ALREADY_MEMBER

            res = db.execute(
                update(Event)
                .where(Event.id == event_id)
                .where(Event.attendee_count < Event.capacity)
                .values(attendee_count=Event.attendee_count + 1)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:  # type: ignore
                db.rollback()
                if not db.scalar(select(exists().where(Event.id == event_id))):
                    return AddResult.NOT_FOUND
                return AddResult.CAPACITY_EXCEEDED

            db.execute(insert(Attendee).values(event_id=event_id, user_id=user_id))
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info("Duplicate attendee user=%s event=%s rejected by constraint", user_id, event_id)
            return AddResult.ALREADY_MEMBER
        except Exception:
            db.rollback()
            raise

    logger.info("Added user=%s to event=%s", user_id, event_id)
    return AddResult.ADDED


def remove(db: Session, *, event_id: int, user_id: int) -> RemoveResult:
    """Remove membership if present. Removing an absent member is not an error."""
    with event_lock(event_id):
        try:
            res = db.execute(
                delete(Attendee)
                .where(Attendee.event_id == event_id, Attendee.user_id == user_id)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:  # type: ignore
                db.rollback()
                return RemoveResult.NOT_MEMBER

            db.execute(
                update(Event)
                .where(Event.id == event_id)
                .values(attendee_count=Event.attendee_count - 1)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

    logger.info("Removed user=%s from event=%s", user_id, event_id)
    return RemoveResult.REMOVED


def is_member(db: Session, *, event_id: int, user_id: int) -> bool:
    return bool(
        db.scalar(select(exists().where(Attendee.event_id == event_id, Attendee.user_id == user_id)))
    )


def get_snapshot(db: Session, event_id: int) -> AttendanceSnapshot | None:
    """Read-only view for display and pre-checks. Never gate a write on it."""
    row = db.execute(
        select(Event.capacity, Event.attendee_count).where(Event.id == event_id)
    ).first()
    if row is None:
        return None

    attendees = db.scalars(
        select(Attendee.user_id).where(Attendee.event_id == event_id).order_by(Attendee.id)
    ).all()
    return AttendanceSnapshot(
        event_id=event_id,
        capacity=row.capacity,
        attendee_count=row.attendee_count,
        attendees=tuple(attendees),
    )
