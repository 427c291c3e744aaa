"""
Canonical string keys for (name, term) feature pairs.

Every index map, in memory or off-heap, is keyed by the output of
`get_feature_key`, so the encoding must never change between the job that
builds a map and the jobs that read it.
"""

from __future__ import annotations

DELIMITER = "\u0001"
ESCAPE = "\\"

INTERCEPT_NAME = "(INTERCEPT)"
INTERCEPT_TERM = ""
# Every encoded pair contains an unescaped delimiter, so this key can never
# collide with a raw feature, including one literally named "(INTERCEPT)".
INTERCEPT_KEY = INTERCEPT_NAME


def _escape(part: str) -> str:
    return part.replace(ESCAPE, ESCAPE + ESCAPE).replace(DELIMITER, ESCAPE + DELIMITER)


def get_feature_key(name: str, term: str) -> str:
    """
    Encode a feature name and term into a single key.

    Occurrences of the delimiter and of the escape character inside either part
    are escaped, so distinct pairs always produce distinct keys.

    Examples
    --------
    >>> get_feature_key("age", "30-40") == "age\\u000130-40"
    True
    """
    return _escape(name) + DELIMITER + _escape(term)


def split_feature_key(key: str) -> tuple[str, str]:
    """Invert `get_feature_key`, returning the original (name, term) pair."""
    if key == INTERCEPT_KEY:
        return INTERCEPT_NAME, INTERCEPT_TERM
    parts: list[str] = []
    current: list[str] = []
    escaped = False
    for char in key:
        if escaped:
            current.append(char)
            escaped = False
        elif char == ESCAPE:
            escaped = True
        elif char == DELIMITER:
            if parts:
                raise ValueError(f"Malformed feature key: {key!r}")
            parts.append("".join(current))
            current = []
        else:
            current.append(char)

    if escaped or not parts:
        raise ValueError(f"Malformed feature key: {key!r}")
    parts.append("".join(current))
    return parts[0], parts[1]

