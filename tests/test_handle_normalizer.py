"""
Tests for Telegram handle normalization
"""

import pytest

from app.services.handle_normalizer import normalize_handle, handles_match


class TestNormalizeHandle:
    @pytest.mark.parametrize("raw,expected", [
        ("foo", "foo"),
        ("@Foo", "foo"),
        ("  @FooBar  ", "foobar"),
        ("@@foo", "foo"),
        ("@ @Foo", "foo"),
        ("foo@bar", "foo@bar"),
        ("Foo_Bar123", "foo_bar123"),
    ])
    def test_canonical_form(self, raw, expected):
        assert normalize_handle(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "@", " @@ ", "@ @"])
    def test_absent_or_empty_is_none(self, raw):
        assert normalize_handle(raw) is None

    @pytest.mark.parametrize("raw", ["@Foo", " @ @Bar ", "BAZ", "@@Qux ", "  ", "Ünïcode", "a@B"])
    def test_idempotent(self, raw):
        once = normalize_handle(raw)
        assert normalize_handle(once) == once

    def test_non_ascii_letters_untouched(self):
        assert normalize_handle("@ÄBC") == "Äbc"


class TestHandlesMatch:
    def test_whitespace_marker_and_case_are_ignored(self):
        assert handles_match("@Foo", "foo")
        assert handles_match("  FOO ", "@foo")
        assert handles_match("@@foo", "Foo")

    def test_different_handles_do_not_match(self):
        assert not handles_match("bar", "barr")

    def test_empty_handles_never_match(self):
        assert not handles_match(None, None)
        assert not handles_match("", "")
        assert not handles_match("@", " ")
        assert not handles_match(None, "foo")
