"""
Map link parsing service for the PlaceTracker application.

This service finds Apple Maps URLs in free-form SMS text, classifies them as
short links (``https://maps.apple/p/<id>``, resolved remotely) or query links
(``https://maps.apple.com/?ll=<lat>,<lon>&q=<title>``, parsed locally), and
decodes the query-link parameters. Nothing here touches the network.

Classes:
    MapLinkService: Extraction, classification and query-link parsing
"""

import re
from typing import Dict, Optional
from urllib.parse import unquote_plus, urlsplit

from ..models.place import ExtractedLink, LinkKind, ResolvedPlace, coordinate_pair


class MapLinkService:
    """
    Service for pulling place information out of Apple Maps links.

    Example:
        >>> service = MapLinkService()
        >>> url = service.extract_maps_url("Try this https://maps.apple/p/AbC.123 soon")
        >>> service.classify_link(url).place_id
        'AbC.123'
    """

    def __init__(self):
        # First Apple Maps URL anywhere in the text, up to the next whitespace
        self.url_pattern = re.compile(
            r"(https?://maps\.apple(?:\.com)?/\S+)", re.IGNORECASE
        )
        self.short_link_pattern = re.compile(
            r"^https?://maps\.apple/p/([^/?#\s]+)", re.IGNORECASE
        )

    def extract_maps_url(self, text: Optional[str]) -> Optional[str]:
        """
        Find the first Apple Maps URL in free text.

        Args:
            text: Message body to search

        Returns:
            The matched URL, or None when the text contains no map link
        """
        if not text:
            return None

        match = self.url_pattern.search(text)
        return match.group(1) if match else None

    def classify_link(self, url: str) -> ExtractedLink:
        """
        Classify a map URL as a short link or a query link.

        Args:
            url: URL previously returned by ``extract_maps_url``

        Returns:
            ExtractedLink carrying the place identifier for short links
        """
        match = self.short_link_pattern.match(url)
        if match:
            return ExtractedLink(
                raw_url=url, kind=LinkKind.SHORT_LINK, place_id=match.group(1)
            )
        return ExtractedLink(raw_url=url, kind=LinkKind.QUERY_LINK)

    def parse_query_link(self, url: str) -> ResolvedPlace:
        """
        Decode coordinates and title from a query link.

        ``ll`` carries ``"<lat>,<lon>"``; extra comma-separated parts are
        ignored. If either half is not a finite number both coordinates are
        None. ``q`` carries the title. Never raises: missing or malformed
        parameters yield None fields.

        Example:
            >>> MapLinkService().parse_query_link(
            ...     "https://maps.apple.com/?ll=39.0997,-94.5786&q=Joe%20BBQ"
            ... ).name
            'Joe BBQ'
        """
        params = self._query_params(url)

        latitude = longitude = None
        ll = params.get("ll")
        if ll:
            parts = ll.split(",")
            if len(parts) >= 2:
                latitude, longitude = coordinate_pair(parts[0], parts[1])

        title = params.get("q") or None

        return ResolvedPlace(name=title, latitude=latitude, longitude=longitude)

    def _query_params(self, url: str) -> Dict[str, str]:
        """
        Split a URL's query string into decoded parameters.

        The first occurrence of each key wins. Values that are not valid
        percent-encoded UTF-8 are kept raw.
        """
        try:
            query = urlsplit(url).query
        except ValueError:
            return {}

        params: Dict[str, str] = {}
        for pair in query.split("&"):
            if not pair:
                continue
            raw_key, _, raw_value = pair.partition("=")
            key = self._safe_decode(raw_key)
            if key not in params:
                params[key] = self._safe_decode(raw_value)

        return params

    @staticmethod
    def _safe_decode(value: str) -> str:
        try:
            return unquote_plus(value, errors="strict")
        except UnicodeDecodeError:
            return value
