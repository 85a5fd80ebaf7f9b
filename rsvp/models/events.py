
from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rsvp.database.db import Base


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_events_capacity_positive"),
        CheckConstraint("attendee_count <= capacity", name="ck_events_attendee_count_within_capacity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Kept equal to len(attendees); the conditional update in the attendance store guards it.
    attendee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    attendees: Mapped[list["Attendee"]] = relationship(
        back_populates="event",
        order_by="Attendee.id",
        cascade="all, delete-orphan",
    )
