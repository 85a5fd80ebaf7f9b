from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from rsvp.core.exceptions import EventNotFoundError
from rsvp.database.db import get_db
from rsvp.schemas.events import EventCapacityUpdate, EventCreate, EventOut
from rsvp.schemas.reservations import AttendanceOut
from rsvp.services import catalog
from rsvp.services.attendance import get_snapshot

router = APIRouter(prefix="/event", tags=["events"])


@router.post("", response_model=EventOut)
def create_event(payload: EventCreate, db: Session = Depends(get_db)):
    return catalog.create_event(db, title=payload.title, capacity=payload.capacity)


@router.patch("/{event_id}", response_model=EventOut)
def update_event_capacity(event_id: int, payload: EventCapacityUpdate, db: Session = Depends(get_db)):
    return catalog.update_capacity(db, event_id, payload.capacity)


@router.delete("/{event_id}", status_code=204)
def delete_event(event_id: int, db: Session = Depends(get_db)):
    catalog.delete_event(db, event_id)
    return Response(status_code=204)


@router.get("/{event_id}/stats", response_model=AttendanceOut)
def event_stats(event_id: int, db: Session = Depends(get_db)):
    snapshot = get_snapshot(db, event_id)
    if snapshot is None:
        raise EventNotFoundError(event_id)
    return AttendanceOut.model_validate(snapshot)
