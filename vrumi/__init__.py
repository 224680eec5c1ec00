"""Vrumi Connect booking core: availability, bookings and lesson package ledger."""
