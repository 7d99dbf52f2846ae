"""
Place service for the PlaceTracker application.

This service contains the core business logic for places. It runs the SMS
ingestion pipeline (map link extraction, best-effort enrichment, hashtags,
record assembly), ingests shortcut submissions, and implements the
place-management actions behind the API handler.

Every public method returns a result dictionary:

    {"success": bool, "status_code": int, "error": Optional[str], ...data}

so the Lambda handlers only translate results into HTTP responses.

Classes:
    PlaceService: Core business logic service for place management
"""

import base64
import binascii
import math
import re
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from pydantic import ValidationError

from ..models.place import (
    MAX_LINKS_PER_PLACE,
    PlaceLink,
    PlacePhoto,
    PlaceRecord,
    Profile,
    ResolvedPlace,
)
from ..models.sms import SMSMessage
from ..utils.logging import log_event
from ..utils.osm import extract_address_parts, extract_contact_info
from .apple_maps_service import AppleMapsService
from .dynamodb_service import DynamoDBService
from .hashtag_service import HashtagService
from .map_link_service import MapLinkService
from .storage_service import StorageService


MAX_PHOTOS_PER_PLACE = 5
MAX_PROFILE_PHOTO_BYTES = 5 * 1024 * 1024
DEFAULT_CATEGORY = "Other"

# Fields the owner may edit through the "update" action
EDITABLE_FIELDS = (
    "title",
    "notes",
    "street_line1",
    "street_line2",
    "city",
    "state",
    "postal_code",
    "country",
    "phone",
    "website",
    "category",
)


def _result(status_code: int = 200, error: Optional[str] = None, **data: Any) -> Dict[str, Any]:
    return {"success": error is None, "status_code": status_code, "error": error, **data}


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and value != ""


class PlaceService:
    """
    Core business logic service for place management.

    Attributes:
        db_service: DynamoDB service for places, photos and profiles
        maps_service: Apple Maps service for short-link enrichment
        link_service: Map link extraction and query-link parsing
        hashtag_service: Hashtag derivation

    Example:
        >>> place_service = PlaceService()
        >>> sms = SMSMessage(phone_number="+15551234567",
        ...                  message_body="https://maps.apple.com/?ll=39.1,-94.6&q=Joe")
        >>> result = place_service.process_sms_message(sms)
        >>> result["place"].title
        'Joe'
    """

    def __init__(
        self,
        db_service: Optional[DynamoDBService] = None,
        maps_service: Optional[AppleMapsService] = None,
        storage_service: Optional[StorageService] = None,
        link_service: Optional[MapLinkService] = None,
        hashtag_service: Optional[HashtagService] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the place service.

        The storage service is only needed for photo actions and is created
        on first use when not provided.
        """
        self.db_service = db_service or DynamoDBService()
        self.maps_service = maps_service or AppleMapsService()
        self.link_service = link_service or MapLinkService()
        self.hashtag_service = hashtag_service or HashtagService()
        self._storage_service = storage_service
        self.clock = clock or time.time

    @property
    def storage_service(self) -> StorageService:
        if self._storage_service is None:
            self._storage_service = StorageService()
        return self._storage_service

    # ---- SMS ingestion ----

    def process_sms_message(self, sms_message: SMSMessage) -> Dict[str, Any]:
        """
        Turn an inbound SMS into a stored place.

        Enrichment is best-effort: a failed token exchange or place lookup
        leaves the title, coordinates and address empty but the raw message
        is still stored. Only a failed database write fails the request.

        Returns:
            Result dictionary with ``place`` (the assembled PlaceRecord) and
            ``enrichment_error`` (None when enrichment succeeded or was not
            attempted)
        """
        body = sms_message.message_body

        maps_url = self.link_service.extract_maps_url(body)
        place, enrichment_error = self.enrich_from_url(maps_url)

        notes = self.notes_from_body(body, maps_url)
        hashtags = self.hashtag_service.derive_hashtags(title=place.name, notes=notes)

        record = self.assemble_sms_record(sms_message, maps_url, place, hashtags, notes)

        if not self.db_service.save_place(record):
            return _result(500, "Failed to save place", place=record)

        log_event(
            "PLACE_SAVED",
            placeId=record.id,
            source=record.source,
            hasMapsUrl=maps_url is not None,
            hasCoordinates=record.latitude is not None,
            hashtagCount=len(record.hashtags),
            enrichmentError=enrichment_error,
        )

        return _result(200, place=record, enrichment_error=enrichment_error)

    def enrich_from_url(
        self, maps_url: Optional[str]
    ) -> Tuple[ResolvedPlace, Optional[str]]:
        """
        Resolve place details for a map URL.

        Short links go to the Apple Maps lookup; any other link is parsed
        locally from its query parameters.

        Returns:
            Tuple of (resolved place, enrichment error message or None)
        """
        if not maps_url:
            return ResolvedPlace(), None

        link = self.link_service.classify_link(maps_url)
        if link.place_id:
            result = self.maps_service.resolve_place(link.place_id)
            return result.place_or_empty(), result.error

        return self.link_service.parse_query_link(maps_url), None

    @staticmethod
    def notes_from_body(body: str, maps_url: Optional[str]) -> str:
        """Everything but the first occurrence of the map URL, trimmed."""
        if maps_url:
            body = body.replace(maps_url, "", 1)
        return body.strip()

    @staticmethod
    def assemble_sms_record(
        sms_message: SMSMessage,
        maps_url: Optional[str],
        place: ResolvedPlace,
        hashtags: Set[str],
        notes: str,
    ) -> PlaceRecord:
        return PlaceRecord(
            source="sms",
            from_phone=sms_message.phone_number,
            raw_text=sms_message.message_body,
            maps_url=maps_url,
            notes=notes,
            hashtags=hashtags,
            title=place.name,
            address=place.formatted_address,
            latitude=place.latitude,
            longitude=place.longitude,
        )

    # ---- shortcut ingestion ----

    def ingest_shortcut(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Store a place submitted by the phone shortcut.

        The shortcut sends the place name and address, coordinates, a free
        note, the user's token and the raw Nominatim ``address`` and
        ``extratags`` objects.

        Returns:
            Result dictionary with ``place_id`` on success
        """
        profile, failure = self.authenticate(payload)
        if failure:
            return failure

        osm_address = payload.get("osm_address")
        osm_extratags = payload.get("osm_extratags")
        if osm_address is not None and not isinstance(osm_address, dict):
            return _result(400, "osm_address must be an object")
        if osm_extratags is not None and not isinstance(osm_extratags, dict):
            return _result(400, "osm_extratags must be an object")

        address_parts = extract_address_parts(osm_address)
        contact = extract_contact_info(osm_extratags)

        try:
            record = PlaceRecord(
                user_id=profile.id,
                source="shortcut",
                title=payload.get("place_name") or None,
                raw_text=payload.get("place_address") or None,
                notes=payload.get("user_note") or None,
                category=payload.get("category") or DEFAULT_CATEGORY,
                osm_address=osm_address,
                osm_extratags=osm_extratags,
                latitude=payload.get("latitude"),
                longitude=payload.get("longitude"),
                **address_parts,
                **contact,
            )
        except ValidationError as e:
            return _result(400, f"Invalid place data: {e.errors()[0]['msg']}")

        record.hashtags = sorted(
            self.hashtag_service.derive_hashtags(
                title=record.title,
                city=record.city,
                state=record.state,
                country=record.country,
                notes=record.notes,
            )
        )

        if not self.db_service.save_place(record):
            return _result(500, "Error inserting place")

        log_event(
            "PLACE_SAVED",
            placeId=record.id,
            source=record.source,
            hasCoordinates=record.latitude is not None,
            hashtagCount=len(record.hashtags),
        )

        return _result(200, place_id=record.id)

    # ---- place management ----

    def handle_action(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Authenticate the caller and dispatch a management action.

        Supported actions: list, update, update_links, delete, upload_photo,
        delete_photo, update_photo, upload_profile_photo.
        """
        profile, failure = self.authenticate(payload)
        if failure:
            return failure

        handlers = {
            "list": self.list_places,
            "update": self.update_place,
            "update_links": self.update_links,
            "delete": self.delete_place,
            "upload_photo": self.upload_photo,
            "delete_photo": self.delete_photo,
            "update_photo": self.update_photo,
            "upload_profile_photo": self.upload_profile_photo,
        }

        handler = handlers.get(payload.get("action"))
        if handler is None:
            return _result(400, "Unknown action")

        return handler(profile, payload)

    def authenticate(
        self, payload: Dict[str, Any]
    ) -> Tuple[Optional[Profile], Optional[Dict[str, Any]]]:
        """
        Resolve ``user_token`` to an active profile.

        Returns:
            Tuple of (profile, None) on success or (None, 401 result)
        """
        user_token = payload.get("user_token")
        if not user_token or not isinstance(user_token, str):
            return None, _result(401, "Missing user_token")

        profile = self.db_service.get_profile_by_api_key(user_token)
        if profile is None:
            return None, _result(401, "Invalid or inactive user_token")

        return profile, None

    def list_places(self, profile: Profile, payload: Dict[str, Any]) -> Dict[str, Any]:
        places = self.db_service.list_places_for_user(profile.id)
        if places is None:
            return _result(500, "Error listing places")

        data = []
        for place in places:
            place_dict = place.to_api_dict()
            place_dict["photos"] = [
                self._photo_dict(photo) for photo in self.db_service.list_photos(place.id)
            ]
            data.append(place_dict)

        return _result(200, places=data)

    def update_place(self, profile: Profile, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Overwrite the editable fields of a place.

        Editable fields missing from the payload are cleared. Links are
        replaced only when ``links`` is present.
        """
        place, failure = self._owned_place(profile, payload.get("place_id"), "update")
        if failure:
            return failure

        changes: Dict[str, Any] = {field: payload.get(field) for field in EDITABLE_FIELDS}

        if "links" in payload:
            links, error = self.parse_links(payload["links"])
            if error:
                return _result(400, error)
            changes["links"] = links

        return self._save_changes(place, changes)

    def update_links(self, profile: Profile, payload: Dict[str, Any]) -> Dict[str, Any]:
        place, failure = self._owned_place(profile, payload.get("place_id"), "update_links")
        if failure:
            return failure

        links, error = self.parse_links(payload.get("links"))
        if error:
            return _result(400, error)

        return self._save_changes(place, {"links": links})

    def delete_place(self, profile: Profile, payload: Dict[str, Any]) -> Dict[str, Any]:
        place, failure = self._owned_place(profile, payload.get("place_id"), "delete")
        if failure:
            return failure

        # DynamoDB has no cascading delete; photo rows and blobs go first so a
        # failure leaves the place in place for a retry.
        photos = self.db_service.list_photos(place.id)
        paths = [path for p in photos for path in (p.storage_path, p.thumbnail_path)]
        if not self.storage_service.remove(paths):
            log_event("PLACE_STORAGE_DELETE_WARNING", placeId=place.id)

        for photo in photos:
            if not self.db_service.delete_photo(photo.id):
                return _result(500, "Error deleting place")

        if not self.db_service.delete_place(place.id):
            return _result(500, "Error deleting place")

        log_event("PLACE_DELETED", placeId=place.id)
        return _result(200)

    @staticmethod
    def parse_links(links: Any) -> Tuple[Optional[List[PlaceLink]], Optional[str]]:
        """
        Validate a links payload.

        Returns:
            Tuple of (links, None) or (None, error message)
        """
        if not isinstance(links, list):
            return None, "links must be an array"
        if len(links) > MAX_LINKS_PER_PLACE:
            return None, f"Maximum {MAX_LINKS_PER_PLACE} links allowed"

        parsed = []
        for link in links:
            if not isinstance(link, dict):
                return None, "Each link must have a url"
            try:
                parsed.append(PlaceLink(url=link.get("url"), label=link.get("label")))
            except ValidationError:
                return None, "Each link must have a url"

        return parsed, None

    # ---- photos ----

    def upload_photo(self, profile: Profile, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Attach a photo (and optional thumbnail) to a place.

        Blobs are uploaded first; if the photo record cannot be written the
        uploaded blobs are removed again.
        """
        place_id = payload.get("place_id")
        file_base64 = payload.get("file_base64")
        file_name = payload.get("file_name")

        if not place_id or not _is_text(file_base64) or not _is_text(file_name):
            return _result(400, "Missing place_id, file_base64, or file_name")

        place, failure = self._owned_place(profile, place_id, "upload_photo")
        if failure:
            return failure

        count = self.db_service.count_photos(place.id)
        if count is None:
            return _result(500, "Error checking photo count")
        if count >= MAX_PHOTOS_PER_PLACE:
            return _result(400, f"Maximum {MAX_PHOTOS_PER_PLACE} photos per place")

        file_bytes = self._decode_base64(file_base64)
        if file_bytes is None:
            return _result(400, "file_base64 is not valid base64")

        content_type = payload.get("file_type") or "image/jpeg"
        timestamp = int(self.clock() * 1000)
        safe_name = self.sanitize_file_name(file_name)
        storage_path = f"{profile.id}/{place.id}/{timestamp}_{safe_name}"

        if not self.storage_service.upload(storage_path, file_bytes, content_type):
            return _result(500, "Upload failed")

        thumbnail_path = None
        if payload.get("thumbnail_base64"):
            thumbnail_path = self._upload_thumbnail(
                payload["thumbnail_base64"],
                f"{profile.id}/{place.id}/thumb_{timestamp}_{safe_name}",
                content_type,
            )

        photo = PlacePhoto(
            place_id=place.id,
            storage_path=storage_path,
            thumbnail_path=thumbnail_path,
            description=payload.get("description") or None,
            display_order=count,
        )

        if not self.db_service.save_photo(photo):
            self.storage_service.remove([storage_path, thumbnail_path])
            return _result(500, "Database error saving photo")

        log_event("PHOTO_UPLOADED", placeId=place.id, photoId=photo.id)
        return _result(200, photo=self._photo_dict(photo))

    def delete_photo(self, profile: Profile, payload: Dict[str, Any]) -> Dict[str, Any]:
        photo, failure = self._owned_photo(profile, payload)
        if failure:
            return failure

        if not self.storage_service.remove([photo.storage_path, photo.thumbnail_path]):
            log_event("PHOTO_STORAGE_DELETE_WARNING", photoId=photo.id)

        if not self.db_service.delete_photo(photo.id):
            return _result(500, "Error deleting photo")

        return _result(200)

    def update_photo(self, profile: Profile, payload: Dict[str, Any]) -> Dict[str, Any]:
        photo, failure = self._owned_photo(profile, payload)
        if failure:
            return failure

        description = payload.get("description")
        if not self.db_service.update_photo_description(photo.id, description):
            return _result(500, "Error updating photo")

        return _result(200)

    def upload_profile_photo(
        self, profile: Profile, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Replace the caller's profile photo; the old blob is removed first."""
        file_base64 = payload.get("file_base64")
        file_name = payload.get("file_name")

        if not _is_text(file_base64) or not _is_text(file_name):
            return _result(400, "Missing file_base64 or file_name")

        if math.ceil(len(file_base64) * 3 / 4) > MAX_PROFILE_PHOTO_BYTES:
            return _result(400, "File too large. Maximum size is 5MB.")

        file_bytes = self._decode_base64(file_base64)
        if file_bytes is None:
            return _result(400, "file_base64 is not valid base64")

        if profile.profile_photo_path:
            self.storage_service.remove([profile.profile_photo_path])

        timestamp = int(self.clock() * 1000)
        storage_path = (
            f"profiles/{profile.id}/{timestamp}_{self.sanitize_file_name(file_name)}"
        )

        content_type = payload.get("file_type") or "image/jpeg"
        if not self.storage_service.upload(storage_path, file_bytes, content_type):
            return _result(500, "Upload failed")

        if not self.db_service.update_profile_photo(profile.id, storage_path):
            self.storage_service.remove([storage_path])
            return _result(500, "Failed to update profile")

        return _result(
            200,
            profile_photo_path=storage_path,
            profile_photo_url=self.storage_service.get_public_url(storage_path),
        )

    @staticmethod
    def sanitize_file_name(file_name: str) -> str:
        return re.sub(r"[^a-zA-Z0-9._-]", "_", file_name)

    # ---- helpers ----

    def _owned_place(
        self, profile: Profile, place_id: Any, action: str
    ) -> Tuple[Optional[PlaceRecord], Optional[Dict[str, Any]]]:
        """Load a place and check the caller owns it (400/404/403 otherwise)."""
        if not place_id or not isinstance(place_id, str):
            return None, _result(400, f"Missing place_id for {action}")

        place = self.db_service.get_place(place_id)
        if place is None:
            return None, _result(404, "Place not found")

        if place.user_id != profile.id:
            log_event("PLACE_ACCESS_FORBIDDEN", placeId=place_id, action=action)
            return None, _result(403, "Forbidden")

        return place, None

    def _owned_photo(
        self, profile: Profile, payload: Dict[str, Any]
    ) -> Tuple[Optional[PlacePhoto], Optional[Dict[str, Any]]]:
        photo_id = payload.get("photo_id")
        place_id = payload.get("place_id")

        if not photo_id or not place_id:
            return None, _result(400, "Missing photo_id or place_id")

        place, failure = self._owned_place(profile, place_id, payload.get("action", "photo"))
        if failure:
            return None, failure

        photo = self.db_service.get_photo(photo_id)
        if photo is None or photo.place_id != place.id:
            return None, _result(404, "Photo not found")

        return photo, None

    def _save_changes(self, place: PlaceRecord, changes: Dict[str, Any]) -> Dict[str, Any]:
        try:
            updated = PlaceRecord(
                **{**place.model_dump(), **changes, "updated_at": datetime.utcnow()}
            )
        except ValidationError as e:
            return _result(400, f"Invalid place data: {e.errors()[0]['msg']}")

        if not self.db_service.save_place(updated):
            return _result(500, "Error updating place")

        return _result(200)

    def _upload_thumbnail(
        self, thumbnail_base64: str, path: str, content_type: str
    ) -> Optional[str]:
        thumb_bytes = self._decode_base64(thumbnail_base64)
        if thumb_bytes is not None and self.storage_service.upload(
            path, thumb_bytes, content_type
        ):
            return path

        log_event("THUMBNAIL_UPLOAD_FAILED", path=path)
        return None

    def _photo_dict(self, photo: PlacePhoto) -> Dict[str, Any]:
        data = photo.model_dump(mode="json")
        data["url"] = self.storage_service.get_public_url(photo.storage_path)
        data["thumbnail_url"] = self.storage_service.get_public_url(photo.thumbnail_path)
        return data

    @staticmethod
    def _decode_base64(data: Any) -> Optional[bytes]:
        if not isinstance(data, str):
            return None
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            return None
