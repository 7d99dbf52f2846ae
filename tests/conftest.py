"""
Pytest configuration and shared fixtures for PlaceTracker tests.

This module sets up mocked AWS services (moto), test data and common test
helpers shared across the unit tests.

Fixtures:
    aws_environment: Mocked DynamoDB tables and S3 bucket, env configured
    dynamodb_service: DynamoDBService bound to the mocked tables
    storage_service: StorageService bound to the mocked bucket
    fake_maps_service: Stand-in for AppleMapsService with canned results
    place_service: PlaceService wired to the mocked stores
    profile: An active profile with a known API token
"""

import base64
import json
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import boto3
import pytest
from moto import mock_aws

from src.placetracker.models.place import EnrichmentResult, Profile, ResolvedPlace
from src.placetracker.services.dynamodb_service import DynamoDBService
from src.placetracker.services.place_service import PlaceService
from src.placetracker.services.storage_service import StorageService


# Test configuration constants
PLACES_TABLE = "test-places"
PHOTOS_TABLE = "test-place-photos"
PROFILES_TABLE = "test-profiles"
PHOTOS_BUCKET = "test-place-photos-bucket"
TEST_PHONE_NUMBER = "+15551234567"
TEST_TOKEN = "invite-token-123"
TEST_USER_ID = "user-1"
OTHER_TOKEN = "invite-token-456"
OTHER_USER_ID = "user-2"


@pytest.fixture
def aws_credentials(monkeypatch):
    """
    Set fake AWS credentials and PlaceTracker configuration.

    moto intercepts every call, so these never reach AWS.
    """
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("AWS_REGION", "us-east-1")

    monkeypatch.setenv("PLACES_TABLE", PLACES_TABLE)
    monkeypatch.setenv("PLACE_PHOTOS_TABLE", PHOTOS_TABLE)
    monkeypatch.setenv("PROFILES_TABLE", PROFILES_TABLE)
    monkeypatch.setenv("PHOTOS_BUCKET", PHOTOS_BUCKET)
    monkeypatch.setenv("PHOTOS_PUBLIC_BASE_URL", "https://photos.example.com")
    monkeypatch.delenv("APPLE_MAPS_AUTH_TOKEN", raising=False)


@pytest.fixture
def aws_environment(aws_credentials):
    """
    Create the DynamoDB tables and S3 bucket the application expects.

    Tables mirror the deployed schema, including the secondary indexes the
    services query.
    """
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        dynamodb.create_table(
            TableName=PLACES_TABLE,
            KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
            AttributeDefinitions=[
                {"AttributeName": "id", "AttributeType": "S"},
                {"AttributeName": "user_id", "AttributeType": "S"},
                {"AttributeName": "created_at", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": "UserCreatedIndex",
                    "KeySchema": [
                        {"AttributeName": "user_id", "KeyType": "HASH"},
                        {"AttributeName": "created_at", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                }
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        dynamodb.create_table(
            TableName=PHOTOS_TABLE,
            KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
            AttributeDefinitions=[
                {"AttributeName": "id", "AttributeType": "S"},
                {"AttributeName": "place_id", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": "PlaceIndex",
                    "KeySchema": [{"AttributeName": "place_id", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                }
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        profiles = dynamodb.create_table(
            TableName=PROFILES_TABLE,
            KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
            AttributeDefinitions=[
                {"AttributeName": "id", "AttributeType": "S"},
                {"AttributeName": "api_key", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": "ApiKeyIndex",
                    "KeySchema": [{"AttributeName": "api_key", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                }
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        profiles.put_item(
            Item={"id": TEST_USER_ID, "api_key": TEST_TOKEN, "first_name": "Test", "is_active": True}
        )
        profiles.put_item(
            Item={"id": OTHER_USER_ID, "api_key": OTHER_TOKEN, "first_name": "Other", "is_active": True}
        )
        profiles.put_item(
            Item={"id": "user-inactive", "api_key": "inactive-token", "is_active": False}
        )

        boto3.client("s3", region_name="us-east-1").create_bucket(Bucket=PHOTOS_BUCKET)

        yield dynamodb


@pytest.fixture
def dynamodb_service(aws_environment):
    return DynamoDBService()


@pytest.fixture
def storage_service(aws_environment):
    return StorageService()


class FakeMapsService:
    """Records looked-up place IDs and returns a canned EnrichmentResult."""

    def __init__(self, result: Optional[EnrichmentResult] = None):
        self.result = result or EnrichmentResult(
            place=ResolvedPlace(
                name="Joe's Kansas City Bar-B-Que",
                latitude=39.0516,
                longitude=-94.6069,
                formatted_address="3002 W 47th Ave, Kansas City, KS 66103",
            )
        )
        self.calls = []

    def resolve_place(self, place_id: str) -> EnrichmentResult:
        self.calls.append(place_id)
        return self.result


@pytest.fixture
def fake_maps_service():
    return FakeMapsService()


@pytest.fixture
def place_service(dynamodb_service, storage_service, fake_maps_service):
    """
    PlaceService wired to the mocked stores and a canned maps lookup.

    The clock is fixed so storage paths are predictable.
    """
    return PlaceService(
        db_service=dynamodb_service,
        storage_service=storage_service,
        maps_service=fake_maps_service,
        clock=lambda: 1700000000.0,
    )


@pytest.fixture
def profile(dynamodb_service) -> Profile:
    return dynamodb_service.get_profile_by_api_key(TEST_TOKEN)


@pytest.fixture
def other_profile(dynamodb_service) -> Profile:
    return dynamodb_service.get_profile_by_api_key(OTHER_TOKEN)


# Test utilities
def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def twilio_event(body: str, from_number: str = TEST_PHONE_NUMBER, **kwargs) -> Dict[str, Any]:
    """Build an API Gateway proxy event for a Twilio inbound message."""
    event = {
        "httpMethod": "POST",
        "headers": {"Content-Type": "application/x-www-form-urlencoded"},
        "body": urlencode({"From": from_number, "Body": body, "MessageSid": "SM123"}),
        "isBase64Encoded": False,
        "requestContext": {"requestId": "test-request-123"},
    }
    event.update(kwargs)
    return event


def json_event(payload: Any, method: str = "POST") -> Dict[str, Any]:
    """Build an API Gateway proxy event with a JSON body."""
    return {
        "httpMethod": method,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload) if payload is not None else None,
        "isBase64Encoded": False,
        "requestContext": {"requestId": "test-request-123", "identity": {"sourceIp": "127.0.0.1"}},
    }


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "aws: mark test as requiring mocked AWS services")
