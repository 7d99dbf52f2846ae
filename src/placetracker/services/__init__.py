"""
Service layer for the PlaceTracker application.

This module contains business logic and AWS service integrations used
throughout the application.

Classes:
    PlaceService: Core business logic for place ingestion and management
    MapLinkService: Map link extraction, classification and query parsing
    AppleMapsService: Apple Maps access tokens and place lookup
    HashtagService: Hashtag derivation from place details and notes
    DynamoDBService: DynamoDB integration for data persistence
    StorageService: S3 integration for photo storage
"""

from .apple_maps_service import AccessTokenCache, AppleMapsService
from .dynamodb_service import DynamoDBService
from .hashtag_service import HashtagService
from .map_link_service import MapLinkService
from .place_service import PlaceService
from .storage_service import StorageService

__all__ = [
    "AccessTokenCache",
    "AppleMapsService",
    "DynamoDBService",
    "HashtagService",
    "MapLinkService",
    "PlaceService",
    "StorageService",
]
