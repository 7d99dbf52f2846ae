"""
Data models for the PlaceTracker application.

This module contains Pydantic models for data validation and serialization
used throughout the application for handling inbound SMS messages, places,
their links and photos, and user profiles.

Classes:
    SMSMessage: Model for incoming SMS message data
    PlaceRecord: Model representing a stored place
    ResolvedPlace: Place details resolved from a map link
    ExtractedLink: A classified map URL
    LinkKind: Enum for the supported map-link shapes
    EnrichmentResult: Outcome of a best-effort place lookup
    PlaceLink: A link attached to a place
    PlacePhoto: Photo metadata for a place
    Profile: User profile looked up by API token
"""

from .place import (
    EnrichmentResult,
    ExtractedLink,
    LinkKind,
    PlaceLink,
    PlacePhoto,
    PlaceRecord,
    Profile,
    ResolvedPlace,
)
from .sms import SMSMessage

__all__ = [
    "EnrichmentResult",
    "ExtractedLink",
    "LinkKind",
    "PlaceLink",
    "PlacePhoto",
    "PlaceRecord",
    "Profile",
    "ResolvedPlace",
    "SMSMessage",
]
