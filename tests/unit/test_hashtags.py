"""
Unit tests for hashtag derivation.
"""

import pytest

from src.placetracker.services.hashtag_service import HashtagService


class TestHashtagService:
    """Test cases for the HashtagService."""

    @pytest.fixture
    def hashtags(self):
        return HashtagService()

    def test_make_tag_strips_non_alphanumerics(self, hashtags):
        assert hashtags.make_tag("Joe's Kansas City Bar-B-Que") == "#joeskansascitybarbque"

    def test_fields_become_tags(self, hashtags):
        tags = hashtags.derive_hashtags(
            title="Joe's BBQ", city="Kansas City", state="Kansas", country="United States"
        )

        assert tags == {"#joesbbq", "#kansascity", "#kansas", "#unitedstates"}

    def test_inline_tags_from_notes(self, hashtags):
        tags = hashtags.derive_hashtags(notes="Great spot #bbq #KC")

        assert "#bbq" in tags
        assert "#kc" in tags

    def test_duplicates_collapse(self, hashtags):
        tags = hashtags.derive_hashtags(title="BBQ", notes="#bbq #BBQ")

        assert tags == {"#bbq"}

    def test_single_character_tags_dropped(self, hashtags):
        tags = hashtags.derive_hashtags(title="!!!", city="Ü", notes="# alone")

        assert tags == set()

    def test_empty_inputs(self, hashtags):
        assert hashtags.derive_hashtags() == set()
        assert hashtags.derive_hashtags(title="", notes="") == set()

    def test_derivation_is_deterministic(self, hashtags):
        kwargs = dict(title="Joe's", city="Lawrence", notes="#bbq #ribs")

        assert hashtags.derive_hashtags(**kwargs) == hashtags.derive_hashtags(**kwargs)
