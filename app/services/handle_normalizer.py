"""Canonical comparison keys for Telegram handles."""

from typing import Optional

HANDLE_MARKER = "@"


def normalize_handle(raw: Optional[str]) -> Optional[str]:
    """
    Turn a raw handle into its comparison key.

    "  @@FooBar " -> "foobar". Returns None for absent input and for input
    that is empty once whitespace and leading markers are removed.
    """
    if raw is None:
        return None
    key = raw.strip()
    # "@ @foo" must not leave whitespace or markers exposed for a second pass
    while key.startswith(HANDLE_MARKER):
        key = key.lstrip(HANDLE_MARKER).strip()
    # Telegram handles are ASCII; non-ASCII letters are left untouched
    key = "".join(ch.lower() if ch.isascii() else ch for ch in key)
    return key or None


def handles_match(a: Optional[str], b: Optional[str]) -> bool:
    """True when both handles normalize to the same non-empty key."""
    key_a = normalize_handle(a)
    return key_a is not None and key_a == normalize_handle(b)
