"""
OpenStreetMap helpers for shortcut submissions.

The phone shortcut reverse-geocodes the current location with Nominatim and
forwards the raw ``address`` and ``extratags`` objects. These helpers fold
them into the flat address and contact columns stored on a place.
"""

from typing import Any, Dict, Optional


def _first_present(data: Dict[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        if data.get(key):
            return data[key]
    return None


def _join(data: Dict[str, Any], keys, separator: str) -> Optional[str]:
    parts = [str(data[key]) for key in keys if data.get(key)]
    return separator.join(parts) or None


def extract_address_parts(address: Optional[Dict[str, Any]]) -> Dict[str, Optional[str]]:
    """
    Normalize a Nominatim address object into place address columns.

    Example:
        >>> extract_address_parts({"house_number": "12", "road": "Main St",
        ...                        "town": "Lawrence", "state": "Kansas"})["street_line1"]
        '12 Main St'
    """
    address = address or {}

    return {
        "street_line1": _join(address, ("house_number", "road"), " "),
        "street_line2": _join(
            address, ("neighbourhood", "suburb", "city_district"), ", "
        ),
        "city": _first_present(
            address, "city", "town", "village", "hamlet", "municipality"
        ),
        "state": _first_present(
            address, "state", "state_district", "region", "province"
        ),
        "postal_code": address.get("postcode") or None,
        "country": address.get("country") or None,
        "country_code": address.get("country_code") or None,
    }


def extract_contact_info(extratags: Optional[Dict[str, Any]]) -> Dict[str, Optional[str]]:
    """Pull phone, website and opening hours out of Nominatim extratags."""
    extratags = extratags or {}

    return {
        "phone": _first_present(extratags, "phone", "contact:phone"),
        "website": _first_present(extratags, "website", "contact:website"),
        "opening_hours": extratags.get("opening_hours") or None,
    }
