"""Resolve the storage field a code snippet touches."""

from __future__ import annotations

import re

__all__ = ["UNKNOWN_ENTITY", "RESERVED_WORDS", "extract_entity"]

#: Sentinel for snippets with no resolvable field.
UNKNOWN_ENTITY = "unknown"

# Tokens that show up after ``self.`` in rendered code but never name a
# storage field.
RESERVED_WORDS = frozenset({"mut", "ref", "as", "let", "where", "self", "get", "insert"})

_SELF_FIELD_RE = re.compile(r"self\.([a-zA-Z_][a-zA-Z0-9_]*)\.")


def extract_entity(code: str) -> str:
    """Return the field name following the first ``self.`` access.

    Whitespace is ignored, only the first match counts and reserved words
    resolve to :data:`UNKNOWN_ENTITY`.

    >>> extract_entity("self.balances.get(owner)")
    'balances'
    >>> extract_entity("self.total_supply")
    'unknown'
    """
    match = _SELF_FIELD_RE.search(re.sub(r"\s+", "", code))
    if match is None:
        return UNKNOWN_ENTITY
    name = match.group(1)
    if name in RESERVED_WORDS:
        return UNKNOWN_ENTITY
    return name
