import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from rsvp.core import config
from rsvp.core.exceptions import AlreadyVerifiedError
from rsvp.models.challenges import Challenge

logger = logging.getLogger(__name__)

CODE_LENGTH = 6


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_code() -> str:
    """Return a 6-digit code drawn uniformly from 100000-999999."""
    return str(100_000 + secrets.randbelow(900_000))


def is_well_formed_code(code: str) -> bool:
    return len(code) == CODE_LENGTH and code.isascii() and code.isdigit()


def issue_challenge(db: Session, *, user_id: int, event_id: int, now: datetime | None = None) -> Challenge:
    """
    Issue a fresh challenge for (user, event).

    Every unverified challenge previously issued for the pair is deleted in
    the same transaction, so at most one live challenge exists afterwards.
    """
    now = now or utcnow()
    superseded = db.execute(
        delete(Challenge).where(
            Challenge.user_id == user_id,
            Challenge.event_id == event_id,
            Challenge.verified.is_(False),
        )
        .execution_options(synchronize_session=False)
    )

    challenge = Challenge(
        user_id=user_id,
        event_id=event_id,
        code=generate_code(),
        created_at=now,
        expires_at=now + timedelta(minutes=config.OTP_TTL_MINUTES),
        verified=False,
    )
    db.add(challenge)
    db.commit()
    db.refresh(challenge)

    logger.info(
        "Issued challenge %s for user=%s event=%s (superseded %s)",
        challenge.id,
        user_id,
        event_id,
        superseded.rowcount,
    )
    return challenge


def find_live_challenge(
    db: Session,
    *,
    user_id: int,
    event_id: int,
    code: str,
    now: datetime | None = None,
) -> Challenge | None:
    """
    Return the live challenge matching ``code`` or None.

    None covers wrong, expired, superseded and unknown codes alike. Only the
    newest unverified challenge of the pair is considered live, so when two
    issues race the later one wins.
    """
    now = now or utcnow()
    latest = db.scalars(
        select(Challenge)
        .where(
            Challenge.user_id == user_id,
            Challenge.event_id == event_id,
            Challenge.verified.is_(False),
            Challenge.expires_at > now,
        )
        .order_by(Challenge.created_at.desc(), Challenge.id.desc())
        .limit(1)
    ).first()

    if latest is None or not secrets.compare_digest(latest.code, code):
        return None
    return latest


def mark_verified(db: Session, challenge_id: str, *, now: datetime | None = None) -> None:
    """Flip ``verified`` to true exactly once."""
    now = now or utcnow()
    res = db.execute(
        update(Challenge)
        .where(Challenge.id == challenge_id, Challenge.verified.is_(False))
        .values(verified=True, verified_at=now)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:  # type: ignore
        db.rollback()
        raise AlreadyVerifiedError(challenge_id)
    db.commit()


def purge_expired_challenges(db: Session, *, now: datetime | None = None) -> int:
    """Delete challenges that can never be used again. Returns the number removed."""
    now = now or utcnow()
    horizon = now - timedelta(minutes=config.OTP_RETENTION_MINUTES)
    res = db.execute(
        delete(Challenge).where(
            or_(
                Challenge.expires_at <= now,
                Challenge.verified_at <= horizon,
            )
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    removed = res.rowcount or 0  # type: ignore
    if removed:
        logger.info("Purged %s dead challenges", removed)
    return removed
