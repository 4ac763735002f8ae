"""Tests for the recovery parser cascade and its repair helpers.

WHY: Model replies arrive in many broken shapes. Each stage of the
cascade exists for a specific kind of damage; these tests pin which
stage handles which reply so the ordering cannot regress silently.
"""

from __future__ import annotations

import pytest

from localekit.core.recovery import (
    RepairExhausted,
    balance_brackets,
    drop_trailing_commas,
    insert_missing_commas,
    isolate_bracketed,
    quote_bare_keys,
    recover,
    strip_fence,
)


class TestStages:
    """Which stage recovers which kind of reply."""

    def test_clean_notation(self):
        result = recover("a,Hallo\nb,\n  c,Welt")
        assert result.value == {"a": "Hallo", "b": {"c": "Welt"}}
        assert result.stage == "notation"

    def test_fenced_notation(self):
        result = recover("```toon\na,Hallo\nb,Welt\n```")
        assert result.value == {"a": "Hallo", "b": "Welt"}
        assert result.stage == "notation"

    def test_notation_wrapped_in_braces(self):
        result = recover("{\n  a,Hallo\n  b,Welt\n}")
        assert result.value == {"a": "Hallo", "b": "Welt"}
        assert result.stage == "notation_unwrapped"

    def test_fenced_json(self):
        result = recover('Here you go:\n```json\n{"a": "Hallo", "b": [1, 2]}\n```')
        assert result.value == {"a": "Hallo", "b": [1, 2]}
        assert result.stage == "json_direct"

    def test_json_with_commentary(self):
        result = recover('Sure! {"a": "Hallo"} Hope this helps.', expect=dict)
        assert result.value == {"a": "Hallo"}
        assert result.stage == "json_direct"

    def test_trailing_comma_json(self):
        result = recover('{"a": "Bonjour", "b": {"c": "Monde",}}')
        assert result.value == {"a": "Bonjour", "b": {"c": "Monde"}}
        assert result.stage == "json_repaired"

    def test_repair_keeps_colons_inside_values(self):
        result = recover('{"a": "Hello, note: read this",}', expect=dict)
        assert result.value == {"a": "Hello, note: read this"}
        assert result.stage == "json_repaired"

    def test_bare_keys_json(self):
        result = recover('{a: "x", b: [1, 2]}')
        assert result.value == {"a": "x", "b": [1, 2]}

    def test_truncated_json_is_closed(self):
        result = recover('{"a": "Hallo", "b": {"c": "We')
        assert result.value == {"a": "Hallo", "b": {"c": "We"}}
        assert result.stage == "json_repaired"

    def test_json_array_reply(self):
        result = recover('["eins", "zwei"]', expect=list)
        assert result.value == ["eins", "zwei"]

    def test_list_with_stray_comma_line(self):
        result = recover("- eins\n,\n- zwei", expect=list)
        assert result.value == ["eins", "zwei"]
        assert result.stage == "notation_decomma"

    def test_python_literal_reply(self):
        result = recover("{'a': 'Hallo', 'b': None, 'c': (1, 2)}", expect=dict)
        assert result.value == {"a": "Hallo", "b": None, "c": [1, 2]}
        assert result.stage == "literal"


class TestExpect:
    """Shape checks against the payload's container type."""

    def test_scalar_rejected_when_dict_expected(self):
        with pytest.raises(RepairExhausted) as info:
            recover("I cannot help with that.", expect=dict)
        stages = [a.stage for a in info.value.attempts]
        assert stages[0] == "strip_fence"
        assert "literal" in stages

    def test_empty_reply_is_never_an_empty_object(self):
        with pytest.raises(RepairExhausted):
            recover("```\n\n```")

    def test_scalar_accepted_without_expectation(self):
        assert recover("Bonjour").value == "Bonjour"

    def test_list_rejected_when_dict_expected(self):
        with pytest.raises(RepairExhausted) as info:
            recover('["x"]', expect=dict)
        errors = [a.error for a in info.value.attempts if a.stage == "json_direct"]
        assert errors == ["shape mismatch: expected dict, got list"]

    def test_commentary_before_json(self):
        result = recover('x\n["a"]', expect=list)
        assert result.value == ["a"]
        assert result.stage == "json_direct"


class TestExhausted:

    def test_message_lists_each_stage(self):
        with pytest.raises(RepairExhausted) as info:
            recover("{{{ :::", expect=dict)
        message = str(info.value)
        assert message.startswith("All recovery stages failed")
        for stage in ("notation", "json_direct", "json_repaired", "literal"):
            assert stage in message

    def test_never_executes_code(self):
        with pytest.raises(RepairExhausted):
            recover("__import__('os').system('echo hacked')", expect=dict)


class TestHelpers:

    def test_strip_fence_without_closing_fence(self):
        assert strip_fence("```json\n{\"a\": 1") == '{"a": 1'

    def test_strip_fence_plain_text(self):
        assert strip_fence("  a,1  ") == "a,1"

    def test_isolate_prefers_earliest_opener(self):
        assert isolate_bracketed('x [1, {"a": 2}] y') == '[1, {"a": 2}]'

    def test_balance_brackets_closes_in_nesting_order(self):
        assert balance_brackets('{"a": [1, {"b": 2') == '{"a": [1, {"b": 2}]}'

    def test_balance_brackets_ignores_brackets_in_strings(self):
        assert balance_brackets('{"a": "[x"') == '{"a": "[x"}'

    def test_drop_trailing_commas(self):
        assert drop_trailing_commas('{"a": [1, 2,], }') == '{"a": [1, 2] }'

    def test_insert_missing_commas(self):
        assert insert_missing_commas('{"a": "x"\n"b": "y"}') == '{"a": "x",\n"b": "y"}'

    def test_quote_bare_keys(self):
        assert quote_bare_keys('{a: 1, b_c: 2}') == '{"a": 1, "b_c": 2}'

    def test_quote_bare_keys_leaves_strings_alone(self):
        text = '{a: "Hello, note: read this", b: 1}'
        assert quote_bare_keys(text) == '{"a": "Hello, note: read this", "b": 1}'

    def test_drop_trailing_commas_leaves_strings_alone(self):
        assert drop_trailing_commas('{"a": "x,]",}') == '{"a": "x,]"}'
