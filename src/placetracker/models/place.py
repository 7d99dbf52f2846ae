"""
Place data models for the PlaceTracker application.

This module defines the core PlaceRecord model and the supporting types used
while turning an inbound message or shortcut submission into a stored place:
the classified map link, the resolved place details, the enrichment result,
and the link/photo/profile records managed through the API.

Classes:
    LinkKind: Enum distinguishing short links from query links
    ExtractedLink: A classified map URL
    ResolvedPlace: Title, coordinates and address resolved for a link
    EnrichmentResult: Outcome of a best-effort place lookup
    PlaceLink: A user-supplied link attached to a place
    PlaceRecord: Pydantic model for a stored place
    PlacePhoto: Photo metadata stored alongside a place
    Profile: User profile looked up by API token
"""

import math
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


MAX_LINKS_PER_PLACE = 3


def coerce_coordinate(value: Any) -> Optional[float]:
    """
    Convert a numeric or numeric-like value to a finite float.

    Returns None for missing values, unparseable strings, booleans,
    non-finite numbers (NaN, infinity) and integers too large for a float.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        if not value.strip():
            return None
        try:
            number = float(value.strip())
        except (ValueError, OverflowError):
            return None
    else:
        return None

    return number if math.isfinite(number) else None


def coordinate_pair(
    latitude: Any, longitude: Any
) -> Tuple[Optional[float], Optional[float]]:
    """Return both coordinates as finite floats, or (None, None)."""
    lat = coerce_coordinate(latitude)
    lon = coerce_coordinate(longitude)
    if lat is None or lon is None:
        return None, None
    return lat, lon


def _to_dynamodb_value(value: Any) -> Any:
    # boto3 rejects float; numbers go through Decimal
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _to_dynamodb_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_dynamodb_value(v) for v in value]
    return value


def _from_dynamodb_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamodb_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamodb_value(v) for v in value]
    return value


class LinkKind(str, Enum):
    """The two map-link shapes the ingestion pipeline understands."""

    SHORT_LINK = "short_link"
    QUERY_LINK = "query_link"


class ExtractedLink(BaseModel):
    """A map URL found in free text, classified by shape."""

    model_config = ConfigDict(frozen=True)

    raw_url: str
    kind: LinkKind
    place_id: Optional[str] = None


class ResolvedPlace(BaseModel):
    """
    Place details resolved from a map link.

    Produced either by the remote place lookup or by parsing query
    parameters, never both. Coordinates are kept as a pair: if either side
    is missing or non-finite, both are None.
    """

    name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    formatted_address: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def pair_coordinates(cls, data: Any) -> Any:
        if isinstance(data, dict):
            lat, lon = coordinate_pair(data.get("latitude"), data.get("longitude"))
            data = {**data, "latitude": lat, "longitude": lon}
        return data

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class EnrichmentResult(BaseModel):
    """
    Outcome of a best-effort place lookup.

    Exactly one of ``place`` and ``error`` is set. Callers decide how to
    degrade; the ingestion pipeline uses ``place_or_empty()``.
    """

    place: Optional[ResolvedPlace] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def place_or_empty(self) -> ResolvedPlace:
        return self.place if self.place is not None else ResolvedPlace()


class PlaceLink(BaseModel):
    """A user-supplied link (menu, reservation page, review) for a place."""

    url: str = Field(..., min_length=1)
    label: Optional[str] = None

    @field_validator("url", mode="before")
    @classmethod
    def validate_url(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Each link must have a url")
        return v


class PlaceRecord(BaseModel):
    """
    Pydantic model representing a stored place.

    A place is created once per inbound SMS or shortcut submission and may
    later be edited through the management API.

    Example:
        >>> place = PlaceRecord(
        ...     from_phone="+15551234567",
        ...     raw_text="Joe's https://maps.apple.com/?ll=39.0997,-94.5786",
        ...     latitude=39.0997,
        ...     longitude=-94.5786,
        ... )
        >>> place.location
        'SRID=4326;POINT(-94.5786 39.0997)'
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: Optional[str] = None
    source: str = Field(default="sms", description="Ingestion channel")

    from_phone: Optional[str] = None
    raw_text: Optional[str] = None
    maps_url: Optional[str] = None
    notes: Optional[str] = None
    hashtags: List[str] = Field(default_factory=list)

    title: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location: Optional[str] = None

    street_line1: Optional[str] = None
    street_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None

    phone: Optional[str] = None
    website: Optional[str] = None
    opening_hours: Optional[str] = None
    category: Optional[str] = None

    osm_address: Optional[Dict[str, Any]] = None
    osm_extratags: Optional[Dict[str, Any]] = None
    links: List[PlaceLink] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="before")
    @classmethod
    def pair_coordinates(cls, data: Any) -> Any:
        """Drop half-populated or non-finite coordinates and derive the EWKT point."""
        if isinstance(data, dict):
            lat, lon = coordinate_pair(data.get("latitude"), data.get("longitude"))
            data = {**data, "latitude": lat, "longitude": lon}
            data["location"] = (
                f"SRID=4326;POINT({lon} {lat})" if lat is not None else None
            )
        return data

    @field_validator("hashtags", mode="before")
    @classmethod
    def sort_hashtags(cls, v: Any) -> List[str]:
        if v is None:
            return []
        return sorted(set(v))

    @field_validator("links")
    @classmethod
    def validate_links(cls, v: List[PlaceLink]) -> List[PlaceLink]:
        if len(v) > MAX_LINKS_PER_PLACE:
            raise ValueError(f"Maximum {MAX_LINKS_PER_PLACE} links allowed")
        return v

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """
        Convert the place to a DynamoDB item.

        Floats become Decimals and datetimes ISO strings; ``None`` values
        are dropped so sparse attributes stay out of the item.
        """
        item = _to_dynamodb_value(self.model_dump())
        return {k: v for k, v in item.items() if v is not None}

    @classmethod
    def from_dynamodb_item(cls, item: Dict[str, Any]) -> "PlaceRecord":
        return cls(**_from_dynamodb_value(item))

    def to_api_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation for API responses."""
        return self.model_dump(mode="json")


class PlacePhoto(BaseModel):
    """Photo metadata; the image bytes live in object storage."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    place_id: str
    storage_path: str
    thumbnail_path: Optional[str] = None
    description: Optional[str] = None
    display_order: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def to_dynamodb_item(self) -> Dict[str, Any]:
        item = _to_dynamodb_value(self.model_dump())
        return {k: v for k, v in item.items() if v is not None}

    @classmethod
    def from_dynamodb_item(cls, item: Dict[str, Any]) -> "PlacePhoto":
        return cls(**_from_dynamodb_value(item))


class Profile(BaseModel):
    """A user profile; ``api_key`` is the invite token clients send."""

    id: str
    api_key: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool = True
    profile_photo_path: Optional[str] = None

    @classmethod
    def from_dynamodb_item(cls, item: Dict[str, Any]) -> "Profile":
        return cls(**_from_dynamodb_value(item))
