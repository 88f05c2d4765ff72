"""Backing data store lookups."""

from .verifier import BookingVerifier, build_appointment_query, describe_booking

__all__ = ["BookingVerifier", "build_appointment_query", "describe_booking"]
