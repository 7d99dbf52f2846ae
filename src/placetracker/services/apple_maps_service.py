"""
Apple Maps Server API service for the PlaceTracker application.

This service resolves Apple Maps short-link place identifiers into names,
coordinates and addresses. Apple issues a long-lived "Maps Auth Token" in the
developer portal; every API call instead needs a short-lived access token
obtained from ``/v1/token``. Access tokens are cached in an AccessTokenCache
so warm Lambda containers reuse them across invocations.

Classes:
    EnrichmentError: Base class for recoverable enrichment failures
    CredentialError: Access token could not be obtained
    PlaceLookupError: Place lookup failed
    AccessTokenCache: Holds one access token until shortly before expiry
    AppleMapsService: Token exchange and place lookup
"""

import os
import time
from typing import Any, Callable, Dict, Optional, Sequence, Tuple
from urllib.parse import quote

import requests

from ..models.place import EnrichmentResult, ResolvedPlace, coerce_coordinate
from ..utils.logging import log_event


DEFAULT_API_BASE = "https://maps-api.apple.com"
DEFAULT_EXPIRES_IN_SECONDS = 25 * 60
EXPIRY_MARGIN_MS = 30_000
REQUEST_TIMEOUT_SECONDS = 10

Rule = Callable[[Dict[str, Any]], Any]


class EnrichmentError(Exception):
    """A best-effort enrichment step failed; ingestion should continue."""


class CredentialError(EnrichmentError):
    """The Maps access token could not be obtained."""


class PlaceLookupError(EnrichmentError):
    """The place lookup call failed or returned an unusable body."""


def _epoch_ms() -> float:
    return time.time() * 1000


class AccessTokenCache:
    """
    Single-entry cache for the Maps access token.

    Reads and writes are not synchronized. Two requests racing past an
    expired entry both refresh it, and the later ``put`` wins.

    Example:
        >>> cache = AccessTokenCache()
        >>> cache.put("tok", expires_at_ms=100_000)
        >>> cache.get(now_ms=60_000)
        'tok'
        >>> cache.get(now_ms=80_000) is None
        True
    """

    def __init__(self, margin_ms: int = EXPIRY_MARGIN_MS):
        self.margin_ms = margin_ms
        self._token: Optional[str] = None
        self._expires_at_ms: float = 0

    def get(self, now_ms: float) -> Optional[str]:
        """Return the cached token if it outlives ``now_ms`` by more than the margin."""
        if self._token and self._expires_at_ms > now_ms + self.margin_ms:
            return self._token
        return None

    def put(self, token: str, expires_at_ms: float) -> None:
        self._token = token
        self._expires_at_ms = expires_at_ms

    @property
    def expires_at_ms(self) -> float:
        return self._expires_at_ms


def _path(*keys: str) -> Rule:
    """Build a rule reading a nested key path, None when any step is missing."""

    def rule(data: Dict[str, Any]) -> Any:
        value: Any = data
        for key in keys:
            if not isinstance(value, dict):
                return None
            value = value.get(key)
        return value

    return rule


def _joined_lines(*keys: str) -> Rule:
    lines = _path(*keys)

    def rule(data: Dict[str, Any]) -> Any:
        value = lines(data)
        if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
            return ", ".join(value)
        return None

    return rule


def _first(rules: Sequence[Rule], data: Dict[str, Any], accept: Callable[[Any], bool]) -> Any:
    """Apply rules in order and return the first accepted value."""
    for rule in rules:
        value = rule(data)
        if accept(value):
            return value
    return None


def _is_text(value: Any) -> bool:
    return isinstance(value, str)


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


# The place endpoint has returned several shapes over time; none is treated
# as canonical, so every field is read through an ordered rule list.
TOKEN_RULES: Tuple[Rule, ...] = (
    _path("accessToken"),
    _path("access_token"),
    _path("token"),
    _path("value"),
)
EXPIRES_IN_RULES: Tuple[Rule, ...] = (_path("expiresIn"), _path("expires_in"))
NAME_RULES: Tuple[Rule, ...] = (_path("name"), _path("place", "name"))
COORDINATE_RULES: Tuple[Rule, ...] = (
    _path("coordinate"),
    _path("place", "coordinate"),
)
LATITUDE_RULES: Tuple[Rule, ...] = (_path("latitude"), _path("lat"))
LONGITUDE_RULES: Tuple[Rule, ...] = (_path("longitude"), _path("lon"))
ADDRESS_RULES: Tuple[Rule, ...] = (
    _path("formattedAddress"),
    _path("address", "formattedAddress"),
    _path("place", "formattedAddress"),
    _joined_lines("formattedAddressLines"),
    _joined_lines("place", "formattedAddressLines"),
)


class AppleMapsService:
    """
    Service for the Apple Maps Server API.

    Attributes:
        auth_token: Long-lived Maps auth token from the developer portal
        api_base: Base URL of the Maps Server API
        token_cache: Cache holding the current short-lived access token
        clock: Callable returning the current epoch time in milliseconds

    Example:
        >>> maps = AppleMapsService(token_cache=AccessTokenCache())
        >>> result = maps.resolve_place("I6FD7682FD36BB3BE")
        >>> place = result.place_or_empty()
    """

    def __init__(
        self,
        auth_token: Optional[str] = None,
        token_cache: Optional[AccessTokenCache] = None,
        clock: Optional[Callable[[], float]] = None,
        api_base: Optional[str] = None,
        session: Optional[Any] = None,
    ):
        """
        Initialize the Apple Maps service.

        A missing auth token is not an error here; it surfaces as a
        CredentialError on the first lookup so ingestion keeps working
        without enrichment.

        Args:
            auth_token: Optional override for APPLE_MAPS_AUTH_TOKEN
            token_cache: Shared access-token cache (a private one if omitted)
            clock: Epoch-milliseconds clock, injectable for tests
            api_base: Optional override for APPLE_MAPS_API_BASE
            session: Object exposing ``get`` (defaults to the requests module)
        """
        self.auth_token = auth_token or os.getenv("APPLE_MAPS_AUTH_TOKEN", "")
        self.api_base = (
            api_base or os.getenv("APPLE_MAPS_API_BASE", DEFAULT_API_BASE)
        ).rstrip("/")
        self.token_cache = token_cache if token_cache is not None else AccessTokenCache()
        self.clock = clock or _epoch_ms
        self.http = session or requests

    def get_access_token(self) -> str:
        """
        Return a valid access token, exchanging the auth token when needed.

        Returns:
            Bearer token for Maps Server API calls

        Raises:
            CredentialError: If no auth token is configured, or the exchange
                fails, returns a non-JSON body, or lacks a token field
        """
        now_ms = self.clock()

        cached = self.token_cache.get(now_ms)
        if cached:
            return cached

        if not self.auth_token:
            raise CredentialError("APPLE_MAPS_AUTH_TOKEN is not configured")

        try:
            response = self.http.get(
                f"{self.api_base}/v1/token",
                headers={"Authorization": f"Bearer {self.auth_token}"},
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            raise CredentialError(f"Token exchange request failed: {e}") from e

        if not response.ok:
            raise CredentialError(
                f"Token exchange failed: {response.status_code} {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CredentialError(
                f"Token exchange returned non-JSON: {response.text[:200]}"
            ) from e

        if not isinstance(data, dict):
            raise CredentialError(f"Unexpected token response: {data!r}")

        token = _first(TOKEN_RULES, data, lambda v: isinstance(v, str) and v != "")
        if not token:
            raise CredentialError(f"Unexpected token response keys: {sorted(data)}")

        expires_in = _first(
            EXPIRES_IN_RULES,
            data,
            lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
        )
        if expires_in is None:
            expires_in = DEFAULT_EXPIRES_IN_SECONDS

        self.token_cache.put(token, now_ms + expires_in * 1000)
        log_event("MAPS_TOKEN_REFRESHED", expiresInSec=expires_in)

        return token

    def fetch_place(self, place_id: str) -> ResolvedPlace:
        """
        Look up a place by its Apple Maps identifier.

        Args:
            place_id: Identifier taken from a ``maps.apple/p/<id>`` short link

        Returns:
            ResolvedPlace with whatever fields the response carried

        Raises:
            CredentialError: If an access token could not be obtained
            PlaceLookupError: On a non-2xx status, transport failure or
                unparseable body
        """
        access_token = self.get_access_token()

        try:
            response = self.http.get(
                f"{self.api_base}/v1/place/{quote(place_id, safe='')}",
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            raise PlaceLookupError(f"Place lookup request failed: {e}") from e

        if not response.ok:
            raise PlaceLookupError(
                f"Place lookup failed: {response.status_code} {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise PlaceLookupError(
                f"Place lookup returned non-JSON: {response.text[:200]}"
            ) from e

        if not isinstance(data, dict):
            raise PlaceLookupError(f"Unexpected place response: {data!r}")

        return self.parse_place(data)

    def resolve_place(self, place_id: str) -> EnrichmentResult:
        """
        Best-effort place lookup.

        Returns:
            EnrichmentResult with the place, or with the error message when
            the credential exchange or lookup failed
        """
        try:
            place = self.fetch_place(place_id)
        except EnrichmentError as e:
            log_event(
                "MAPS_ENRICHMENT_FAILED",
                errorType=type(e).__name__,
                errorMessage=str(e),
                placeId=place_id,
            )
            return EnrichmentResult(error=str(e))

        log_event(
            "MAPS_PLACE_RESOLVED",
            placeId=place_id,
            hasName=place.name is not None,
            hasCoordinates=place.has_coordinates,
            hasAddress=place.formatted_address is not None,
        )
        return EnrichmentResult(place=place)

    @staticmethod
    def parse_place(data: Dict[str, Any]) -> ResolvedPlace:
        """Extract name, coordinates and address from a place response body."""
        name = _first(NAME_RULES, data, _is_text)

        coordinate = _first(COORDINATE_RULES, data, lambda v: isinstance(v, dict)) or {}
        latitude = coerce_coordinate(_first(LATITUDE_RULES, coordinate, _is_present))
        longitude = coerce_coordinate(_first(LONGITUDE_RULES, coordinate, _is_present))

        address = _first(ADDRESS_RULES, data, _is_text)

        return ResolvedPlace(
            name=name,
            latitude=latitude,
            longitude=longitude,
            formatted_address=address,
        )
