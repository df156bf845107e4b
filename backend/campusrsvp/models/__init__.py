from campusrsvp.models.event import Event, EventStatus
from campusrsvp.models.notification import Notification, NotificationType
from campusrsvp.models.rsvp import Rsvp, RsvpStatus

__all__ = [
    "Event", "EventStatus",
    "Rsvp", "RsvpStatus",
    "Notification", "NotificationType",
]
