"""Tests for shape alignment of translated documents."""

from __future__ import annotations

from localekit.core.aligner import align_to_base


def _key_sets(value):
    """Collect the key set of every object, by path."""
    found = {}

    def _walk(node, path):
        if isinstance(node, dict):
            found[path] = set(node)
            for key, child in node.items():
                _walk(child, path + "." + key)

    _walk(value, "")
    return found


class TestAlign:

    def test_idempotent_on_base(self, sample_document):
        assert align_to_base(sample_document, sample_document) == sample_document

    def test_missing_candidate_returns_base(self, sample_document):
        assert align_to_base(sample_document) == sample_document

    def test_extra_keys_are_dropped(self):
        assert align_to_base({"a": "x"}, {"a": "y", "note": "added"}) == {"a": "y"}

    def test_missing_keys_fall_back_to_base(self):
        assert align_to_base({"a": "x", "b": "z"}, {"a": "y"}) == {"a": "y", "b": "z"}

    def test_base_key_order_is_kept(self):
        result = align_to_base({"a": 1, "b": 2}, {"b": 3, "a": 4})
        assert list(result) == ["a", "b"]

    def test_array_taken_verbatim(self):
        assert align_to_base({"l": ["a", "b"]}, {"l": ["x"]}) == {"l": ["x"]}

    def test_non_array_candidate_keeps_base_array(self):
        assert align_to_base({"l": ["a"]}, {"l": "a"}) == {"l": ["a"]}

    def test_non_object_candidate_keeps_base_object(self):
        assert align_to_base({"m": {"k": "v"}}, {"m": "flattened"}) == {"m": {"k": "v"}}

    def test_scalar_type_change_is_accepted(self):
        assert align_to_base({"n": 1}, {"n": "one"}) == {"n": "one"}

    def test_key_sets_match_base_everywhere(self, sample_document):
        candidate = {
            "title": "Willkommen",
            "menu": {"open": "Öffnen", "junk": 1},
            "meta": "gone",
            "extra": {"x": 1},
        }
        result = align_to_base(sample_document, candidate)
        assert _key_sets(result) == _key_sets(sample_document)
        assert result["title"] == "Willkommen"
        assert result["menu"]["open"] == "Öffnen"
        assert result["meta"] == sample_document["meta"]
