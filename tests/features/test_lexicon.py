"""Unit tests for the subject-line lexicon."""

import pytest
from email_insights.features import lexicon


def _keys(subject):
    return [c.key for c in lexicon.matching_categories(subject)]


class TestLengthBin:
    """Tests for subject length bins."""

    @pytest.mark.parametrize("length,expected", [
        (0, '0-30'), (30, '0-30'), (31, '31-50'), (50, '31-50'), (51, '51-70'), (70, '51-70'), (71, '71+'),
    ])
    def test_bin_edges(self, length, expected):
        assert lexicon.length_bin('x' * length)['key'] == expected

    def test_strips_whitespace(self):
        assert lexicon.length_bin('   ' + 'x' * 30 + '   ')['key'] == '0-30'


class TestCategories:
    """Tests for term and structural predicates."""

    def test_example_subject(self):
        assert _keys("Last chance: 30% off ends tonight ⏰") == ['deadline', 'savings', 'emoji', 'number', 'percent']

    def test_word_boundaries(self):
        """'off' must not match inside 'office', 'now' not inside 'know'."""
        assert 'savings' not in _keys("Back to the office")
        assert 'deadline' not in _keys("Things you should know")

    def test_multi_word_phrase(self):
        assert 'restock' in _keys("Your favorite tee is back in stock")

    def test_personalization(self):
        assert 'personalization' in _keys("A little something for you")
        assert 'personalization' in _keys("{{ first_name }}, this one's special")
        assert 'personalization' not in _keys("Young at heart")

    def test_all_caps_ignores_codes(self):
        assert 'all_caps' in _keys("HUGE savings inside")
        assert 'all_caps' not in _keys("Use code SAVE20 at checkout")

    def test_price_and_punctuation(self):
        keys = _keys("Under $50: gifts they'll love [today only]?")

        assert {'price', 'gifting', 'brackets', 'question', 'number'} <= set(keys)

    def test_imperative_start(self):
        assert 'imperative' in _keys("Shop the new collection")
        assert 'imperative' not in _keys("The new collection is here")

    def test_empty_subject_matches_nothing(self):
        assert _keys("") == []

    def test_lookup_by_key(self):
        assert lexicon.CATEGORY_BY_KEY['deadline'].label == 'Deadline & Urgency'
        assert len(lexicon.CATEGORY_BY_KEY) == len(lexicon.CATEGORIES)
