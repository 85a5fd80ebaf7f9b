"""
Two-phase reservation flow: request a code, then verify it to take a spot.

Per (user, event) the flow moves Unregistered -> PendingVerification ->
Registered. A pending reservation falls back to Unregistered when its code
expires or a newer request supersedes it; cancelling a registration frees
the spot immediately.

The capacity check made when a code is requested is only a hint. The spot is
taken by ``attendance.try_add`` at verify time, since other users may fill
the event while a code is outstanding.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from rsvp.core import config
from rsvp.core.exceptions import (
    AlreadyRegisteredError,
    AlreadyVerifiedError,
    CapacityExceededError,
    CodeFormatError,
    EventNotFoundError,
    InvalidOrExpiredCodeError,
)
from rsvp.services import attendance, challenges
from rsvp.services.attendance import AddResult, AttendanceSnapshot
from rsvp.services.catalog import get_capacity
from rsvp.services.notifications import NotificationGateway
from rsvp.tasks import CeleryNotificationGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationChallenge:
    challenge_id: str
    expires_in_seconds: int


def get_notifier() -> NotificationGateway:
    return CeleryNotificationGateway()


def _notify(action: str, send, *args) -> None:
    # Delivery problems must never change the reservation outcome.
    try:
        send(*args)
    except Exception:
        logger.exception("Notification '%s' failed for %s", action, args[:2])


def request_reservation(
    db: Session,
    *,
    user_id: int,
    event_id: int,
    notifier: NotificationGateway | None = None,
) -> ReservationChallenge:
    """Issue a verification code for a user who wants a spot."""
    snapshot = attendance.get_snapshot(db, event_id)
    if snapshot is None:
        raise EventNotFoundError(event_id)
    if attendance.is_member(db, event_id=event_id, user_id=user_id):
        raise AlreadyRegisteredError(event_id, user_id)
    if snapshot.is_full:
        raise CapacityExceededError(event_id)

    challenge = challenges.issue_challenge(db, user_id=user_id, event_id=event_id)

    notifier = notifier or get_notifier()
    _notify("send_code", notifier.send_code, user_id, event_id, challenge.code)

    return ReservationChallenge(
        challenge_id=challenge.id,
        expires_in_seconds=config.OTP_TTL_MINUTES * 60,
    )


def verify_reservation(
    db: Session,
    *,
    user_id: int,
    event_id: int,
    code: str,
    notifier: NotificationGateway | None = None,
) -> AttendanceSnapshot:
    """Exchange a live code for a spot, if one is still free."""
    if not challenges.is_well_formed_code(code):
        raise CodeFormatError()

    challenge = challenges.find_live_challenge(db, user_id=user_id, event_id=event_id, code=code)
    if challenge is None:
        logger.info("Rejected code for user=%s event=%s", user_id, event_id)
        raise InvalidOrExpiredCodeError()
    challenge_id = challenge.id

    result = attendance.try_add(db, event_id=event_id, user_id=user_id)
    if result is AddResult.ALREADY_MEMBER:
        raise AlreadyRegisteredError(event_id, user_id)
    if result is AddResult.CAPACITY_EXCEEDED:
        logger.info("User=%s lost the race for event=%s", user_id, event_id)
        raise CapacityExceededError(event_id)
    if result is AddResult.NOT_FOUND:
        raise EventNotFoundError(event_id)

    try:
        challenges.mark_verified(db, challenge_id)
    except AlreadyVerifiedError:
        # The spot is already committed.
        logger.warning("Challenge %s was verified concurrently", challenge_id)

    notifier = notifier or get_notifier()
    _notify("send_confirmation", notifier.send_confirmation, user_id, event_id)

    snapshot = attendance.get_snapshot(db, event_id)
    if snapshot is None:
        raise EventNotFoundError(event_id)
    logger.info(
        "Registration confirmed user=%s event=%s (%s/%s)",
        user_id,
        event_id,
        snapshot.attendee_count,
        snapshot.capacity,
    )
    return snapshot


def cancel_reservation(db: Session, *, user_id: int, event_id: int) -> AttendanceSnapshot:
    """Give up a spot. Cancelling without a registration still succeeds."""
    if get_capacity(db, event_id) is None:
        raise EventNotFoundError(event_id)

    result = attendance.remove(db, event_id=event_id, user_id=user_id)
    logger.info("Cancel user=%s event=%s -> %s", user_id, event_id, result.value)

    snapshot = attendance.get_snapshot(db, event_id)
    if snapshot is None:
        raise EventNotFoundError(event_id)
    return snapshot
