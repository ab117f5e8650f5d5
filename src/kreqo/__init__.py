"""kreqo: a session-authenticated task list with optimistic, reconciled client state."""

__version__ = "0.1.0"
