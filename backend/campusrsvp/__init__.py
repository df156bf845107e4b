"""Campus RSVP service: event RSVPs with capacity, buffer and waitlist."""

__version__ = "1.0.0"
