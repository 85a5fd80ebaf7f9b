from rsvp.models.attendees import Attendee
from rsvp.models.challenges import Challenge
from rsvp.models.events import Event

__all__ = ["Attendee", "Challenge", "Event"]
