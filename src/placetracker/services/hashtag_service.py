"""
Hashtag derivation for the PlaceTracker application.

Builds the tag set stored with every place: one tag per known descriptive
field (title, city, state, country) plus any ``#tags`` the sender typed in
their notes.

Classes:
    HashtagService: Deterministic hashtag derivation
"""

import re
from typing import Optional, Set


class HashtagService:
    """
    Service for deriving hashtags from place fields and notes.

    Example:
        >>> HashtagService().derive_hashtags(
        ...     title="Joe's Kansas City BBQ", notes="Great spot #bbq #KC"
        ... ) == {"#joeskansascitybbq", "#bbq", "#kc"}
        True
    """

    def __init__(self):
        self.strip_pattern = re.compile(r"[^a-z0-9]+")
        self.inline_tag_pattern = re.compile(r"#(\w+)")

    def derive_hashtags(
        self,
        title: Optional[str] = None,
        city: Optional[str] = None,
        state: Optional[str] = None,
        country: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Set[str]:
        """
        Derive the hashtag set for a place.

        Args:
            title: Place title
            city: City name
            state: State or region
            country: Country name
            notes: Free-text notes that may contain inline ``#tags``

        Returns:
            Set of lowercase ``#``-prefixed tags, each longer than one character
        """
        tags: Set[str] = set()

        for field in (title, city, state, country):
            if field:
                tags.add(self.make_tag(field))

        if notes:
            for word in self.inline_tag_pattern.findall(notes):
                tags.add("#" + word.lower())

        return {tag for tag in tags if len(tag) > 1}

    def make_tag(self, value: str) -> str:
        """Lowercase, drop everything outside ``[a-z0-9]`` and prefix ``#``."""
        return "#" + self.strip_pattern.sub("", value.lower())
