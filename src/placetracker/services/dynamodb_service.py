"""
DynamoDB service for the PlaceTracker application.

This service handles all interactions with DynamoDB for storing and retrieving
places, place photos and user profiles. It provides high-level methods for
CRUD operations with error handling that reports failure by return value.

Classes:
    DynamoDBService: Service for DynamoDB operations and data persistence
"""

import os
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from ..models.place import PlacePhoto, PlaceRecord, Profile


USER_CREATED_INDEX = "UserCreatedIndex"
PLACE_INDEX = "PlaceIndex"
API_KEY_INDEX = "ApiKeyIndex"


class DynamoDBService:
    """
    Service for managing PlaceTracker data in DynamoDB.

    Three tables back the application:

    * places: keyed by ``id``, with ``UserCreatedIndex`` (user_id, created_at)
    * place_photos: keyed by ``id``, with ``PlaceIndex`` (place_id)
    * profiles: keyed by ``id``, with ``ApiKeyIndex`` (api_key)

    Example:
        >>> db_service = DynamoDBService()
        >>> place = PlaceRecord(raw_text="Joe's BBQ")
        >>> db_service.save_place(place)
        True
    """

    def __init__(
        self,
        places_table: Optional[str] = None,
        photos_table: Optional[str] = None,
        profiles_table: Optional[str] = None,
    ):
        """
        Initialize the DynamoDB service.

        Table names fall back to the PLACES_TABLE, PLACE_PHOTOS_TABLE and
        PROFILES_TABLE environment variables.

        Raises:
            ValueError: If a table name is missing or the table does not exist
        """
        self.places_table_name = places_table or os.getenv("PLACES_TABLE")
        self.photos_table_name = photos_table or os.getenv("PLACE_PHOTOS_TABLE")
        self.profiles_table_name = profiles_table or os.getenv("PROFILES_TABLE")

        missing = [
            env
            for env, name in (
                ("PLACES_TABLE", self.places_table_name),
                ("PLACE_PHOTOS_TABLE", self.photos_table_name),
                ("PROFILES_TABLE", self.profiles_table_name),
            )
            if not name
        ]
        if missing:
            raise ValueError(
                "Table names must be provided either as parameters or "
                f"environment variables: {', '.join(missing)}"
            )

        try:
            self.dynamodb = boto3.resource(
                "dynamodb", region_name=os.getenv("AWS_REGION", "us-east-1")
            )
            self.places = self.dynamodb.Table(self.places_table_name)
            self.photos = self.dynamodb.Table(self.photos_table_name)
            self.profiles = self.dynamodb.Table(self.profiles_table_name)

            # Fails fast on a misconfigured deployment
            self.places.load()

        except ClientError as e:
            if e.response["Error"]["Code"] == "ResourceNotFoundException":
                raise ValueError(f"DynamoDB table '{self.places_table_name}' not found")
            raise

    # ---- places ----

    def save_place(self, place: PlaceRecord) -> bool:
        """
        Insert or replace a place.

        Args:
            place: Place to store

        Returns:
            True if the write succeeded, False otherwise
        """
        try:
            response = self.places.put_item(Item=place.to_dynamodb_item())
            return response["ResponseMetadata"]["HTTPStatusCode"] == 200

        except ClientError as e:
            print(f"Error saving place {place.id}: {e}")
            return False

    def get_place(self, place_id: str) -> Optional[PlaceRecord]:
        """Fetch a place by ID; None if missing or on error."""
        try:
            response = self.places.get_item(Key={"id": place_id})

            if "Item" in response:
                return PlaceRecord.from_dynamodb_item(response["Item"])

            return None

        except ClientError as e:
            print(f"Error retrieving place {place_id}: {e}")
            return None

    def list_places_for_user(self, user_id: str) -> Optional[List[PlaceRecord]]:
        """
        List a user's places, newest first.

        Returns:
            List of places, or None if the query failed
        """
        try:
            items = self._query_all(
                self.places,
                IndexName=USER_CREATED_INDEX,
                KeyConditionExpression=Key("user_id").eq(user_id),
                ScanIndexForward=False,
            )
        except ClientError as e:
            print(f"Error listing places for user {user_id}: {e}")
            return None

        places = []
        for item in items:
            try:
                places.append(PlaceRecord.from_dynamodb_item(item))
            except ValueError as e:
                print(f"Error converting item to PlaceRecord: {e}")
                continue

        return places

    def delete_place(self, place_id: str) -> bool:
        """Delete a place; True only if an item was actually removed."""
        try:
            response = self.places.delete_item(
                Key={"id": place_id}, ReturnValues="ALL_OLD"
            )
            return "Attributes" in response

        except ClientError as e:
            print(f"Error deleting place {place_id}: {e}")
            return False

    # ---- photos ----

    def count_photos(self, place_id: str) -> Optional[int]:
        """Number of photos attached to a place, or None on error."""
        try:
            count = 0
            kwargs: Dict[str, Any] = {
                "IndexName": PLACE_INDEX,
                "KeyConditionExpression": Key("place_id").eq(place_id),
                "Select": "COUNT",
            }
            while True:
                response = self.photos.query(**kwargs)
                count += response.get("Count", 0)
                if "LastEvaluatedKey" not in response:
                    return count
                kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

        except ClientError as e:
            print(f"Error counting photos for place {place_id}: {e}")
            return None

    def list_photos(self, place_id: str) -> List[PlacePhoto]:
        """Photos for a place ordered by ``display_order``; empty on error."""
        try:
            items = self._query_all(
                self.photos,
                IndexName=PLACE_INDEX,
                KeyConditionExpression=Key("place_id").eq(place_id),
            )
        except ClientError as e:
            print(f"Error listing photos for place {place_id}: {e}")
            return []

        photos = [PlacePhoto.from_dynamodb_item(item) for item in items]
        photos.sort(key=lambda p: (p.display_order, p.created_at))
        return photos

    def save_photo(self, photo: PlacePhoto) -> bool:
        try:
            self.photos.put_item(Item=photo.to_dynamodb_item())
            return True

        except ClientError as e:
            print(f"Error saving photo {photo.id}: {e}")
            return False

    def get_photo(self, photo_id: str) -> Optional[PlacePhoto]:
        try:
            response = self.photos.get_item(Key={"id": photo_id})

            if "Item" in response:
                return PlacePhoto.from_dynamodb_item(response["Item"])

            return None

        except ClientError as e:
            print(f"Error retrieving photo {photo_id}: {e}")
            return None

    def update_photo_description(
        self, photo_id: str, description: Optional[str]
    ) -> bool:
        """Set a photo's description; False if the photo is gone or on error."""
        try:
            self.photos.update_item(
                Key={"id": photo_id},
                UpdateExpression="SET description = :description",
                ExpressionAttributeValues={":description": description},
                ConditionExpression=Attr("id").exists(),
            )
            return True

        except ClientError as e:
            print(f"Error updating photo {photo_id}: {e}")
            return False

    def delete_photo(self, photo_id: str) -> bool:
        try:
            self.photos.delete_item(Key={"id": photo_id})
            return True

        except ClientError as e:
            print(f"Error deleting photo {photo_id}: {e}")
            return False

    # ---- profiles ----

    def get_profile_by_api_key(self, api_key: str) -> Optional[Profile]:
        """
        Resolve a caller-supplied token to an active profile.

        Returns:
            The profile, or None if the token is unknown, the profile is
            inactive, or the lookup failed
        """
        try:
            response = self.profiles.query(
                IndexName=API_KEY_INDEX,
                KeyConditionExpression=Key("api_key").eq(api_key),
                Limit=1,
            )
        except ClientError as e:
            print(f"Error looking up profile by token: {e}")
            return None

        items = response.get("Items", [])
        if not items:
            return None

        profile = Profile.from_dynamodb_item(items[0])
        if not profile.is_active:
            print(f"Profile {profile.id} is inactive")
            return None

        return profile

    def get_profile(self, user_id: str) -> Optional[Profile]:
        try:
            response = self.profiles.get_item(Key={"id": user_id})

            if "Item" in response:
                return Profile.from_dynamodb_item(response["Item"])

            return None

        except ClientError as e:
            print(f"Error retrieving profile {user_id}: {e}")
            return None

    def update_profile_photo(self, user_id: str, storage_path: str) -> bool:
        try:
            self.profiles.update_item(
                Key={"id": user_id},
                UpdateExpression="SET profile_photo_path = :path",
                ExpressionAttributeValues={":path": storage_path},
                ConditionExpression=Attr("id").exists(),
            )
            return True

        except ClientError as e:
            print(f"Error updating profile photo for {user_id}: {e}")
            return False

    def health_check(self) -> Dict[str, Any]:
        """
        Perform a health check on the DynamoDB service.

        Returns:
            Dictionary with health check results
        """
        try:
            table_description = self.places.meta.client.describe_table(
                TableName=self.places_table_name
            )

            return {
                "status": "healthy",
                "table_name": self.places_table_name,
                "table_status": table_description["Table"]["TableStatus"],
                "region": self.dynamodb.meta.client.meta.region_name,
            }

        except ClientError as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "table_name": self.places_table_name,
            }

    @staticmethod
    def _query_all(table: Any, **kwargs: Any) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        while True:
            response = table.query(**kwargs)
            items.extend(response.get("Items", []))
            if "LastEvaluatedKey" not in response:
                return items
            kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
