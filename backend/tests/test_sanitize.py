"""
Spoken Admin API — Input Sanitizer Unit Tests
===============================================

What we test:
    ✅ Size bounds for strings, arrays and objects
    ✅ Key filtering (non-string and over-long keys dropped)
    ✅ Idempotence on nested payloads
    ✅ HTML stripping for rich-text fields
"""

import pytest

from spoken_admin.middleware.sanitize import (
    MAX_ARRAY_LENGTH,
    MAX_OBJECT_KEYS,
    MAX_STRING_LENGTH,
    sanitize,
    sanitize_html,
)


class TestSanitizeBounds:
    def test_string_is_trimmed(self):
        assert sanitize("  bonjour \n") == "bonjour"

    def test_long_string_is_truncated(self):
        assert sanitize("a" * 10_001) == "a" * 10_000

    def test_truncation_happens_after_trim(self):
        value = "   " + "b" * MAX_STRING_LENGTH
        assert sanitize(value) == "b" * MAX_STRING_LENGTH

    def test_array_is_capped(self):
        items = list(range(101))
        assert sanitize(items) == list(range(100))

    def test_array_items_are_sanitized(self):
        assert sanitize([" a ", [" b "]]) == ["a", ["b"]]

    def test_tuple_becomes_list(self):
        assert sanitize((" x ", 1)) == ["x", 1]

    def test_object_keeps_fifty_keys(self):
        payload = {f"key{i}": i for i in range(51)}

        result = sanitize(payload)

        assert len(result) == MAX_OBJECT_KEYS
        assert all(key in payload for key in result)

    def test_object_drops_long_keys(self):
        long_key = "k" * 101
        result = sanitize({long_key: "v", "ok": " v "})
        assert result == {"ok": "v"}

    def test_key_of_exactly_max_length_is_kept(self):
        key = "k" * 100
        assert sanitize({key: 1}) == {key: 1}

    def test_object_drops_non_string_keys(self):
        assert sanitize({1: "a", "b": "c"}) == {"b": "c"}

    @pytest.mark.parametrize("value", [0, 3.14, True, False, None])
    def test_scalars_pass_through(self, value):
        assert sanitize(value) is value


class TestSanitizeIdempotence:
    @pytest.mark.parametrize(
        "value",
        [
            "  padded  ",
            "x" * 20_000,
            list(range(250)),
            {f"k{i}": [" v "] * 120 for i in range(60)},
            {"nested": {"deeper": [{"title": "  t  ", "k" * 150: 1}]}},
            [None, 1, "a", {"b": [" c "]}],
        ],
    )
    def test_sanitize_twice_equals_once(self, value):
        once = sanitize(value)
        assert sanitize(once) == once

    def test_whitespace_at_the_cut_is_stripped(self):
        value = "a" * (MAX_STRING_LENGTH - 1) + " b"

        once = sanitize(value)

        assert once == "a" * (MAX_STRING_LENGTH - 1)
        assert sanitize(once) == once

    def test_bounded_values_are_fixed_points(self):
        value = {"title": "ok", "tags": ["a"] * MAX_ARRAY_LENGTH}
        assert sanitize(value) == value


class TestSanitizeHtml:
    def test_allowed_tags_are_kept(self):
        html = "<p>Bonjour <strong>tout</strong> le <em>monde</em></p>"
        assert sanitize_html(html) == html

    def test_attributes_are_removed(self):
        assert sanitize_html('<p class="x" onclick="evil()">hi</p>') == "<p>hi</p>"

    def test_script_removed_with_content(self):
        assert sanitize_html("a<script>alert(1)</script>b") == "ab"

    def test_disallowed_tags_removed_text_kept(self):
        assert sanitize_html('<a href="https://x">lien</a>') == "lien"

    def test_iframe_removed_with_content(self):
        assert sanitize_html('<p>a</p><iframe src="https://x">b</iframe>') == "<p>a</p>"

    @pytest.mark.parametrize(
        "html",
        [
            "<<b>script>alert(1)<</b>/script>",
            "<<i>img src=x onerror=alert(1)>",
            "<scr<script>ipt>alert(1)</script>",
        ],
    )
    def test_stripped_tags_never_reassemble(self, html):
        cleaned = sanitize_html(html)

        assert "<script" not in cleaned
        assert "<img" not in cleaned
        assert sanitize_html(cleaned) == cleaned

    def test_text_is_escaped(self):
        assert sanitize_html("1 < 2") == "1 &lt; 2"

    def test_empty_input(self):
        assert sanitize_html(None) == ""
        assert sanitize_html("") == ""
