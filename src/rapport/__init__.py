"""Rapport: follow-up reminders for unanswered email and past meetings."""

__version__ = "0.1.0"
