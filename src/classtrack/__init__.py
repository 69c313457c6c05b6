"""Recurring class schedules and per-occurrence attendance tracking."""

__version__ = "0.1.0"
