"""Appointment scheduling core: availability, slots and booking lifecycle."""

__version__ = "0.1.0"
