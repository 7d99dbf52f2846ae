"""
Utility functions and helpers for the PlaceTracker application.

This module contains shared helpers used across the services and Lambda
handlers: structured logging and OpenStreetMap address normalization.
"""

from .logging import log_event, mask_phone
from .osm import extract_address_parts, extract_contact_info

__all__ = ["log_event", "mask_phone", "extract_address_parts", "extract_contact_info"]
