"""
Unit tests for the place service.

Covers the SMS ingestion pipeline, shortcut ingestion and the place
management actions against mocked DynamoDB and S3.
"""

from datetime import datetime, timedelta
from unittest.mock import Mock

import boto3
import pytest

from src.placetracker.models.place import EnrichmentResult, PlacePhoto, PlaceRecord
from src.placetracker.models.sms import SMSMessage
from src.placetracker.services.place_service import PlaceService
from tests.conftest import (
    OTHER_TOKEN,
    PHOTOS_BUCKET,
    TEST_PHONE_NUMBER,
    TEST_TOKEN,
    TEST_USER_ID,
    FakeMapsService,
    b64,
)


TS = 1700000000000


def sms(body: str) -> SMSMessage:
    return SMSMessage(phone_number=TEST_PHONE_NUMBER, message_body=body)


def act(service: PlaceService, action: str, token: str = TEST_TOKEN, **fields):
    return service.handle_action({"action": action, "user_token": token, **fields})


def bucket_keys():
    response = boto3.client("s3", region_name="us-east-1").list_objects_v2(Bucket=PHOTOS_BUCKET)
    return sorted(obj["Key"] for obj in response.get("Contents", []))


@pytest.fixture
def owned_place(dynamodb_service):
    place = PlaceRecord(
        user_id=TEST_USER_ID,
        source="shortcut",
        title="Joe's",
        notes="ribs",
        city="Kansas City",
        latitude=39.0997,
        longitude=-94.5786,
        links=[{"url": "https://joes.example/menu", "label": "Menu"}],
    )
    assert dynamodb_service.save_place(place)
    return place


class TestSMSIngestion:
    """Test cases for PlaceService.process_sms_message."""

    def test_short_link_is_enriched(self, place_service, fake_maps_service, dynamodb_service):
        result = place_service.process_sms_message(
            sms("Z-Man sandwich #bbq https://maps.apple/p/I6FD7682FD36BB3BE")
        )

        assert result["success"]
        assert result["enrichment_error"] is None
        assert fake_maps_service.calls == ["I6FD7682FD36BB3BE"]

        place = result["place"]
        assert place.title == "Joe's Kansas City Bar-B-Que"
        assert place.latitude == 39.0516
        assert place.longitude == -94.6069
        assert place.address == "3002 W 47th Ave, Kansas City, KS 66103"
        assert place.location == "SRID=4326;POINT(-94.6069 39.0516)"
        assert place.maps_url == "https://maps.apple/p/I6FD7682FD36BB3BE"
        assert place.notes == "Z-Man sandwich #bbq"
        assert place.from_phone == TEST_PHONE_NUMBER
        assert place.source == "sms"
        assert place.hashtags == ["#bbq", "#joeskansascitybarbque"]

        stored = dynamodb_service.get_place(place.id)
        assert stored.title == place.title
        assert stored.raw_text == "Z-Man sandwich #bbq https://maps.apple/p/I6FD7682FD36BB3BE"

    def test_query_link_is_parsed_locally(self, place_service, fake_maps_service):
        result = place_service.process_sms_message(
            sms("https://maps.apple.com/?ll=39.0997,-94.5786&q=Joe%20BBQ Great spot #bbq #KC")
        )

        place = result["place"]
        assert fake_maps_service.calls == []
        assert place.title == "Joe BBQ"
        assert place.latitude == 39.0997
        assert place.longitude == -94.5786
        assert place.address is None
        assert place.notes == "Great spot #bbq #KC"
        assert place.hashtags == ["#bbq", "#joebbq", "#kc"]

    def test_no_url(self, place_service, fake_maps_service):
        result = place_service.process_sms_message(sms("  just a note about lunch  "))

        place = result["place"]
        assert result["success"]
        assert fake_maps_service.calls == []
        assert place.maps_url is None
        assert place.notes == "just a note about lunch"
        assert place.title is None
        assert place.location is None
        assert place.hashtags == []

    def test_enrichment_failure_still_stores_message(self, dynamodb_service, storage_service):
        maps = FakeMapsService(EnrichmentResult(error="Place lookup failed: 404"))
        service = PlaceService(
            db_service=dynamodb_service, storage_service=storage_service, maps_service=maps
        )

        result = service.process_sms_message(sms("Joe's https://maps.apple/p/abc"))

        assert result["success"]
        assert result["enrichment_error"] == "Place lookup failed: 404"
        place = result["place"]
        assert place.title is None
        assert place.latitude is None
        assert place.longitude is None
        assert place.address is None
        assert place.notes == "Joe's"
        assert dynamodb_service.get_place(place.id) is not None

    def test_notes_remove_first_url_occurrence_only(self):
        url = "https://maps.apple/p/abc"

        assert PlaceService.notes_from_body(f"{url} and again {url}", url) == f"and again {url}"

    def test_storage_failure(self, fake_maps_service):
        db = Mock()
        db.save_place.return_value = False
        service = PlaceService(db_service=db, maps_service=fake_maps_service)

        result = service.process_sms_message(sms("Joe's https://maps.apple/p/abc"))

        assert not result["success"]
        assert result["status_code"] == 500


class TestShortcutIngestion:
    """Test cases for PlaceService.ingest_shortcut."""

    @pytest.fixture
    def payload(self):
        return {
            "user_token": TEST_TOKEN,
            "place_name": "Joe's Kansas City Bar-B-Que",
            "place_address": "3002 W 47th Ave, Kansas City, KS",
            "latitude": "39.0516",
            "longitude": -94.6069,
            "user_note": "Z-Man #bbq",
            "osm_address": {
                "house_number": "3002",
                "road": "West 47th Avenue",
                "neighbourhood": "Rosedale",
                "city": "Kansas City",
                "state": "Kansas",
                "postcode": "66103",
                "country": "United States",
                "country_code": "us",
            },
            "osm_extratags": {
                "contact:phone": "+1 913 722 3366",
                "website": "https://www.joeskc.com",
                "opening_hours": "Mo-Sa 10:30-21:00",
            },
        }

    def test_ingest(self, place_service, dynamodb_service, payload):
        result = place_service.ingest_shortcut(payload)

        assert result["success"]
        place = dynamodb_service.get_place(result["place_id"])
        assert place.user_id == TEST_USER_ID
        assert place.source == "shortcut"
        assert place.title == "Joe's Kansas City Bar-B-Que"
        assert place.raw_text == "3002 W 47th Ave, Kansas City, KS"
        assert place.notes == "Z-Man #bbq"
        assert place.latitude == 39.0516
        assert place.longitude == -94.6069
        assert place.street_line1 == "3002 West 47th Avenue"
        assert place.street_line2 == "Rosedale"
        assert place.city == "Kansas City"
        assert place.state == "Kansas"
        assert place.postal_code == "66103"
        assert place.country_code == "us"
        assert place.phone == "+1 913 722 3366"
        assert place.website == "https://www.joeskc.com"
        assert place.opening_hours == "Mo-Sa 10:30-21:00"
        assert place.category == "Other"
        assert place.osm_address["road"] == "West 47th Avenue"
        assert place.hashtags == [
            "#bbq",
            "#joeskansascitybarbque",
            "#kansas",
            "#kansascity",
            "#unitedstates",
        ]

    def test_category_kept(self, place_service, dynamodb_service, payload):
        payload["category"] = "Restaurant"

        result = place_service.ingest_shortcut(payload)

        assert dynamodb_service.get_place(result["place_id"]).category == "Restaurant"

    def test_half_coordinates_dropped(self, place_service, dynamodb_service, payload):
        payload["latitude"] = "not a number"

        result = place_service.ingest_shortcut(payload)

        place = dynamodb_service.get_place(result["place_id"])
        assert place.latitude is None
        assert place.longitude is None
        assert place.location is None

    def test_minimal_payload(self, place_service, dynamodb_service):
        result = place_service.ingest_shortcut({"user_token": TEST_TOKEN})

        place = dynamodb_service.get_place(result["place_id"])
        assert place.title is None
        assert place.city is None
        assert place.category == "Other"

    @pytest.mark.parametrize("token", [None, "", "unknown-token", "inactive-token", 123])
    def test_unauthorized(self, place_service, payload, token):
        payload["user_token"] = token

        result = place_service.ingest_shortcut(payload)

        assert not result["success"]
        assert result["status_code"] == 401

    def test_osm_address_must_be_object(self, place_service, payload):
        payload["osm_address"] = "3002 W 47th Ave"

        result = place_service.ingest_shortcut(payload)

        assert result["status_code"] == 400

    def test_non_text_title_rejected(self, place_service, payload):
        payload["place_name"] = 42

        result = place_service.ingest_shortcut(payload)

        assert result["status_code"] == 400


class TestPlaceManagement:
    """Test cases for the list/update/delete actions."""

    def test_unknown_action(self, place_service):
        result = act(place_service, "explode")

        assert result["status_code"] == 400
        assert result["error"] == "Unknown action"

    def test_unauthorized_before_action(self, place_service):
        result = act(place_service, "explode", token="nope")

        assert result["status_code"] == 401

    def test_list_newest_first(self, place_service, dynamodb_service):
        now = datetime.utcnow()
        older = PlaceRecord(user_id=TEST_USER_ID, title="Older", created_at=now - timedelta(days=1))
        newer = PlaceRecord(user_id=TEST_USER_ID, title="Newer", created_at=now)
        foreign = PlaceRecord(user_id="user-2", title="Not mine")
        for place in (older, newer, foreign):
            dynamodb_service.save_place(place)

        result = act(place_service, "list")

        assert result["success"]
        assert [p["title"] for p in result["places"]] == ["Newer", "Older"]
        assert result["places"][0]["photos"] == []

    def test_list_includes_photo_urls(self, place_service, dynamodb_service, owned_place):
        dynamodb_service.save_photo(
            PlacePhoto(place_id=owned_place.id, storage_path="user-1/p/1_a.jpg", display_order=1)
        )
        dynamodb_service.save_photo(
            PlacePhoto(
                place_id=owned_place.id,
                storage_path="user-1/p/0_b.jpg",
                thumbnail_path="user-1/p/thumb_0_b.jpg",
                display_order=0,
            )
        )

        result = act(place_service, "list")

        photos = result["places"][0]["photos"]
        assert [p["storage_path"] for p in photos] == ["user-1/p/0_b.jpg", "user-1/p/1_a.jpg"]
        assert photos[0]["url"] == "https://photos.example.com/user-1/p/0_b.jpg"
        assert photos[0]["thumbnail_url"] == "https://photos.example.com/user-1/p/thumb_0_b.jpg"
        assert photos[1]["thumbnail_url"] is None
        assert result["places"][0]["links"] == [
            {"url": "https://joes.example/menu", "label": "Menu"}
        ]

    def test_update_overwrites_editable_fields(self, place_service, dynamodb_service, owned_place):
        result = act(
            place_service,
            "update",
            place_id=owned_place.id,
            title="Joe's KC",
            category="Restaurant",
        )

        assert result["success"]
        place = dynamodb_service.get_place(owned_place.id)
        assert place.title == "Joe's KC"
        assert place.category == "Restaurant"
        assert place.notes is None
        assert place.city is None
        assert place.latitude == 39.0997
        assert place.links[0].url == "https://joes.example/menu"
        assert place.created_at == owned_place.created_at
        assert place.updated_at > owned_place.updated_at

    def test_update_replaces_links_when_given(self, place_service, dynamodb_service, owned_place):
        act(
            place_service,
            "update",
            place_id=owned_place.id,
            title="Joe's",
            links=[{"url": "https://a.example"}, {"url": "https://b.example", "label": "B"}],
        )

        place = dynamodb_service.get_place(owned_place.id)
        assert [link.url for link in place.links] == ["https://a.example", "https://b.example"]

    def test_update_requires_place_id(self, place_service):
        assert act(place_service, "update", title="x")["status_code"] == 400

    def test_update_missing_place(self, place_service):
        assert act(place_service, "update", place_id="missing")["status_code"] == 404

    def test_update_other_users_place(self, place_service, dynamodb_service, owned_place):
        result = act(place_service, "update", token=OTHER_TOKEN, place_id=owned_place.id, title="Mine now")

        assert result["status_code"] == 403
        assert dynamodb_service.get_place(owned_place.id).title == "Joe's"

    @pytest.mark.parametrize(
        "links",
        [
            "https://a.example",
            [{"url": f"https://{i}.example"} for i in range(4)],
            [{"label": "no url"}],
            [{"url": ""}],
            ["https://a.example"],
        ],
    )
    def test_update_links_validation(self, place_service, owned_place, links):
        result = act(place_service, "update_links", place_id=owned_place.id, links=links)

        assert result["status_code"] == 400

    def test_update_links(self, place_service, dynamodb_service, owned_place):
        result = act(place_service, "update_links", place_id=owned_place.id, links=[])

        assert result["success"]
        place = dynamodb_service.get_place(owned_place.id)
        assert place.links == []
        assert place.notes == "ribs"

    def test_delete(self, place_service, dynamodb_service, owned_place):
        result = act(place_service, "delete", place_id=owned_place.id)

        assert result["success"]
        assert dynamodb_service.get_place(owned_place.id) is None

    def test_delete_removes_photos(self, place_service, dynamodb_service, owned_place):
        uploaded = act(
            place_service,
            "upload_photo",
            place_id=owned_place.id,
            file_base64=b64(b"jpeg-bytes"),
            file_name="a.jpg",
            thumbnail_base64=b64(b"thumb-bytes"),
        )["photo"]
        unrelated = PlacePhoto(place_id="another-place", storage_path="x/b.jpg")
        dynamodb_service.save_photo(unrelated)

        result = act(place_service, "delete", place_id=owned_place.id)

        assert result["success"]
        assert dynamodb_service.get_place(owned_place.id) is None
        assert dynamodb_service.get_photo(uploaded["id"]) is None
        assert dynamodb_service.get_photo(unrelated.id) is not None
        assert bucket_keys() == []

    def test_delete_other_users_place(self, place_service, dynamodb_service, owned_place):
        result = act(place_service, "delete", token=OTHER_TOKEN, place_id=owned_place.id)

        assert result["status_code"] == 403
        assert dynamodb_service.get_place(owned_place.id) is not None


class TestPhotos:
    """Test cases for the photo actions."""

    def test_upload_photo(self, place_service, dynamodb_service, owned_place):
        result = act(
            place_service,
            "upload_photo",
            place_id=owned_place.id,
            file_base64=b64(b"jpeg-bytes"),
            file_name="my photo (1).jpg",
            thumbnail_base64=b64(b"thumb-bytes"),
            description="Burnt ends",
        )

        assert result["success"]
        photo = result["photo"]
        path = f"{TEST_USER_ID}/{owned_place.id}/{TS}_my_photo__1_.jpg"
        thumb = f"{TEST_USER_ID}/{owned_place.id}/thumb_{TS}_my_photo__1_.jpg"
        assert photo["storage_path"] == path
        assert photo["thumbnail_path"] == thumb
        assert photo["display_order"] == 0
        assert photo["url"] == f"https://photos.example.com/{path}"
        assert bucket_keys() == sorted([path, thumb])

        stored = dynamodb_service.list_photos(owned_place.id)
        assert len(stored) == 1
        assert stored[0].description == "Burnt ends"

    def test_upload_photo_bad_thumbnail_is_not_fatal(self, place_service, owned_place):
        result = act(
            place_service,
            "upload_photo",
            place_id=owned_place.id,
            file_base64=b64(b"jpeg-bytes"),
            file_name="a.jpg",
            thumbnail_base64="***",
        )

        assert result["success"]
        assert result["photo"]["thumbnail_path"] is None
        assert result["photo"]["thumbnail_url"] is None

    def test_upload_photo_limit(self, place_service, dynamodb_service, owned_place):
        for i in range(5):
            dynamodb_service.save_photo(
                PlacePhoto(place_id=owned_place.id, storage_path=f"x/{i}.jpg", display_order=i)
            )

        result = act(
            place_service,
            "upload_photo",
            place_id=owned_place.id,
            file_base64=b64(b"jpeg-bytes"),
            file_name="a.jpg",
        )

        assert result["status_code"] == 400
        assert bucket_keys() == []

    def test_upload_photo_display_order_follows_count(self, place_service, dynamodb_service, owned_place):
        dynamodb_service.save_photo(PlacePhoto(place_id=owned_place.id, storage_path="x/0.jpg"))

        result = act(
            place_service,
            "upload_photo",
            place_id=owned_place.id,
            file_base64=b64(b"jpeg-bytes"),
            file_name="a.jpg",
        )

        assert result["photo"]["display_order"] == 1

    @pytest.mark.parametrize(
        "fields",
        [
            {"file_base64": b64(b"x"), "file_name": "a.jpg"},
            {"place_id": "p", "file_name": "a.jpg"},
            {"place_id": "p", "file_base64": b64(b"x")},
        ],
    )
    def test_upload_photo_missing_fields(self, place_service, fields):
        assert act(place_service, "upload_photo", **fields)["status_code"] == 400

    def test_upload_photo_invalid_base64(self, place_service, owned_place):
        result = act(
            place_service,
            "upload_photo",
            place_id=owned_place.id,
            file_base64="not base64!",
            file_name="a.jpg",
        )

        assert result["status_code"] == 400

    def test_upload_photo_record_failure_removes_blobs(self, place_service, owned_place, monkeypatch):
        monkeypatch.setattr(place_service.db_service, "save_photo", lambda photo: False)

        result = act(
            place_service,
            "upload_photo",
            place_id=owned_place.id,
            file_base64=b64(b"jpeg-bytes"),
            file_name="a.jpg",
            thumbnail_base64=b64(b"thumb"),
        )

        assert result["status_code"] == 500
        assert bucket_keys() == []

    def test_upload_photo_other_users_place(self, place_service, owned_place):
        result = act(
            place_service,
            "upload_photo",
            token=OTHER_TOKEN,
            place_id=owned_place.id,
            file_base64=b64(b"jpeg-bytes"),
            file_name="a.jpg",
        )

        assert result["status_code"] == 403
        assert bucket_keys() == []

    def test_delete_photo(self, place_service, dynamodb_service, owned_place):
        uploaded = act(
            place_service,
            "upload_photo",
            place_id=owned_place.id,
            file_base64=b64(b"jpeg-bytes"),
            file_name="a.jpg",
        )["photo"]

        result = act(place_service, "delete_photo", place_id=owned_place.id, photo_id=uploaded["id"])

        assert result["success"]
        assert dynamodb_service.get_photo(uploaded["id"]) is None
        assert bucket_keys() == []

    def test_delete_photo_wrong_place(self, place_service, dynamodb_service, owned_place):
        photo = PlacePhoto(place_id="another-place", storage_path="x/a.jpg")
        dynamodb_service.save_photo(photo)

        result = act(place_service, "delete_photo", place_id=owned_place.id, photo_id=photo.id)

        assert result["status_code"] == 404
        assert dynamodb_service.get_photo(photo.id) is not None

    def test_delete_photo_missing_ids(self, place_service):
        assert act(place_service, "delete_photo", place_id="p")["status_code"] == 400

    def test_update_photo(self, place_service, dynamodb_service, owned_place):
        photo = PlacePhoto(place_id=owned_place.id, storage_path="x/a.jpg")
        dynamodb_service.save_photo(photo)

        result = act(
            place_service,
            "update_photo",
            place_id=owned_place.id,
            photo_id=photo.id,
            description="Ribs",
        )

        assert result["success"]
        assert dynamodb_service.get_photo(photo.id).description == "Ribs"


class TestProfilePhoto:
    """Test cases for the upload_profile_photo action."""

    def test_upload_replaces_previous(self, place_service, dynamodb_service, storage_service):
        old_path = f"profiles/{TEST_USER_ID}/1_old.jpg"
        storage_service.upload(old_path, b"old")
        dynamodb_service.update_profile_photo(TEST_USER_ID, old_path)

        result = act(
            place_service,
            "upload_profile_photo",
            file_base64=b64(b"new"),
            file_name="me.png",
            file_type="image/png",
        )

        new_path = f"profiles/{TEST_USER_ID}/{TS}_me.png"
        assert result["success"]
        assert result["profile_photo_path"] == new_path
        assert result["profile_photo_url"] == f"https://photos.example.com/{new_path}"
        assert bucket_keys() == [new_path]
        assert dynamodb_service.get_profile(TEST_USER_ID).profile_photo_path == new_path

    def test_too_large(self, place_service):
        result = act(
            place_service,
            "upload_profile_photo",
            file_base64="A" * 7_000_004,
            file_name="me.jpg",
        )

        assert result["status_code"] == 400
        assert bucket_keys() == []

    def test_missing_fields(self, place_service):
        assert act(place_service, "upload_profile_photo", file_name="me.jpg")["status_code"] == 400

    def test_profile_update_failure_removes_blob(self, place_service, monkeypatch):
        monkeypatch.setattr(
            place_service.db_service, "update_profile_photo", lambda user_id, path: False
        )

        result = act(
            place_service,
            "upload_profile_photo",
            file_base64=b64(b"new"),
            file_name="me.jpg",
        )

        assert result["status_code"] == 500
        assert bucket_keys() == []
