import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from rsvp.core.exceptions import CapacityBelowAttendanceError, EventHasAttendeesError, EventNotFoundError
from rsvp.models.events import Event
from rsvp.services.attendance import event_lock

logger = logging.getLogger(__name__)


def get_capacity(db: Session, event_id: int) -> int | None:
    return db.scalar(select(Event.capacity).where(Event.id == event_id))


def create_event(db: Session, *, title: str, capacity: int) -> Event:
    event = Event(title=title, capacity=capacity, attendee_count=0)
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created event %s with capacity %s", event.id, capacity)
    return event


def update_capacity(db: Session, event_id: int, capacity: int) -> Event:
    """Change capacity; shrinking below the current attendee count is rejected."""
    with event_lock(event_id):
        res = db.execute(
            update(Event)
            .where(Event.id == event_id, Event.attendee_count <= capacity)
            .values(capacity=capacity)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:  # type: ignore
            db.rollback()
            attendee_count = db.scalar(select(Event.attendee_count).where(Event.id == event_id))
            if attendee_count is None:
                raise EventNotFoundError(event_id)
            raise CapacityBelowAttendanceError(attendee_count)
        db.commit()

    event = db.get(Event, event_id)
    db.refresh(event)
    return event


def delete_event(db: Session, event_id: int) -> None:
    """Delete an event that nobody has registered for."""
    with event_lock(event_id):
        event = db.get(Event, event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        db.refresh(event)
        if event.attendee_count > 0:
            raise EventHasAttendeesError(event.attendee_count)
        db.delete(event)
        db.commit()
    logger.info("Deleted event %s", event_id)
