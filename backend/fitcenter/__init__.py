"""Fitness center booking core: appointments, reservations and entitlements."""

__version__ = "1.0.0"
