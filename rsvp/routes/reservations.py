from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rsvp.database.db import get_db
from rsvp.schemas.reservations import (
    AttendanceOut,
    CancelOut,
    ReservationChallengeOut,
    ReservationRequest,
    VerifyRequest,
)
from rsvp.services.reservations import cancel_reservation, request_reservation, verify_reservation

router = APIRouter(prefix="/event/{event_id}/rsvp", tags=["reservations"])


@router.post("", response_model=ReservationChallengeOut)
def request_rsvp(event_id: int, payload: ReservationRequest, db: Session = Depends(get_db)):
    """Send a verification code; the spot is only taken once the code is verified."""
    challenge = request_reservation(db, user_id=payload.user_id, event_id=event_id)
    return ReservationChallengeOut(
        challenge_id=challenge.challenge_id,
        expires_in_seconds=challenge.expires_in_seconds,
    )


@router.post("/verify", response_model=AttendanceOut)
def verify_rsvp(event_id: int, payload: VerifyRequest, db: Session = Depends(get_db)):
    snapshot = verify_reservation(db, user_id=payload.user_id, event_id=event_id, code=payload.code)
    return AttendanceOut.model_validate(snapshot)


@router.delete("", response_model=CancelOut)
def cancel_rsvp(event_id: int, user_id: int = Query(ge=1), db: Session = Depends(get_db)):
    snapshot = cancel_reservation(db, user_id=user_id, event_id=event_id)
    return CancelOut(attendance=AttendanceOut.model_validate(snapshot))
