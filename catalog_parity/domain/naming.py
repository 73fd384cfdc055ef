"""
Entry naming helpers.

Entry names encode partition-key values as ``key=value/key=value``, with
characters that would break the path encoding escaped as ``%XX``.
"""

from typing import Optional, Sequence

DEFAULT_ENTRY_VALUE = "__DEFAULT_ENTRY__"

_ESCAPED_CHARS = frozenset('"#%\'*/:=?\\\x7f{[]^') | frozenset(chr(c) for c in range(1, 32))


def normalize_identifier(identifier: str) -> str:
    """Catalog, database and table identifiers are case-insensitive."""
    return identifier.strip().lower()


def escape_path_name(value: Optional[str]) -> str:
    """
    Escape a single key or value for use in an entry name.

    Examples:
        >>> escape_path_name("2017")
        '2017'
        >>> escape_path_name("a/b")
        'a%2Fb'
        >>> escape_path_name("")
        '__DEFAULT_ENTRY__'
    """
    if value is None or value == "":
        return DEFAULT_ENTRY_VALUE
    return "".join(f"%{ord(ch):02X}" if ch in _ESCAPED_CHARS else ch for ch in value)


def make_entry_name(keys: Sequence[str], values: Sequence[Optional[str]]) -> str:
    """
    Build the encoded entry name for ``values`` under partition ``keys``.

    Raises:
        ValueError: If the number of values does not match the number of keys
    """
    if len(keys) != len(values):
        raise ValueError(
            f"Invalid number of partition values: expected {len(keys)}, got {len(values)}"
        )
    return "/".join(
        f"{escape_path_name(key.lower())}={escape_path_name(value)}"
        for key, value in zip(keys, values)
    )
