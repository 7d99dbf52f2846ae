"""
PlaceTracker: Serverless place saving from SMS and phone shortcuts.

This package receives shared map links by SMS (Twilio webhook) or from a phone
shortcut, enriches them with place details from the Apple Maps Server API, and
stores the resulting places in DynamoDB with photos in S3.

Modules:
    lambdas: AWS Lambda function handlers for SMS, shortcut and management endpoints
    services: Business logic and AWS/Apple Maps integrations
    models: Data models and validation using Pydantic
    utils: Logging and address normalization helpers

Version: 0.1.0
"""

__version__ = "0.1.0"

from .models import PlaceRecord, ResolvedPlace, SMSMessage
from .services import AppleMapsService, DynamoDBService, PlaceService

__all__ = [
    "PlaceRecord",
    "ResolvedPlace",
    "SMSMessage",
    "AppleMapsService",
    "DynamoDBService",
    "PlaceService",
]
