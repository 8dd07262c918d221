"""Gmail search query builder."""

from __future__ import annotations

import re
from typing import Union

_PREFIXES = {
    "sender": "from:",
    "recipient": "to:",
    "subject": "subject:",
    "label": "label:",
    "in": "in:",
    "category": "category:",
    "after": "after:",
    "before": "before:",
    "has": "has:",
}

_FLAGS = {
    "unread": "is:unread",
    "read": "is:read",
    "starred": "is:starred",
    "important": "is:important",
    "attachment": "has:attachment",
}

_TIME_RANGE = re.compile(r"^(\d+)([hdmy])$")

TermValue = Union[str, bool, int, list, tuple]


def parse_time_range(time_range: str) -> tuple[int, str]:
    """Split a relative range such as ``"1d"`` or ``"2m"`` into (number, unit).

    Units follow Gmail's ``newer_than`` operator: h(our), d(ay), m(onth), y(ear).
    """
    match = _TIME_RANGE.match(time_range.strip().lower())
    if not match:
        raise ValueError(
            f"Invalid time range {time_range!r}; expected a number followed by h, d, m or y"
        )
    return int(match.group(1)), match.group(2)


def construct_query(**terms: TermValue) -> str:
    """Construct a Gmail search query in which every term must match.

    Prefix a keyword with ``exclude_`` to negate it. A list value means
    "any of": it renders as ``{a b}``, or as one negated term per item when
    excluded. ``newer_than`` and ``older_than`` accept ``"1d"`` style strings
    or ``(number, unit)`` tuples. Boolean keywords (unread, starred, ...)
    are included when True.

    Keyword Arguments:
        sender, recipient, subject, label, in, category, after, before, has,
        newer_than, older_than, unread, read, starred, important, attachment
    """
    parts = []
    for key, value in terms.items():
        exclude = key.startswith("exclude_")
        if exclude:
            key = key[len("exclude_"):]

        if key in ("newer_than", "older_than"):
            number, unit = value if isinstance(value, tuple) else parse_time_range(value)
            rendered = [f"{key}:{number}{unit[0]}"]
        elif key in _FLAGS:
            if not value:
                continue
            rendered = [_FLAGS[key]]
        elif key in _PREFIXES:
            values = value if isinstance(value, (list, tuple)) else [value]
            rendered = [f"{_PREFIXES[key]}{v}" for v in values]
        else:
            raise ValueError(f"Unknown query term: {key!r}")

        if exclude:
            parts.extend(f"-{term}" for term in rendered)
        elif len(rendered) > 1:
            parts.append("{" + " ".join(rendered) + "}")
        else:
            parts.append(rendered[0])

    return " ".join(parts)


def recent_query(time_range: str = "1d") -> str:
    """Messages newer than ``time_range``, excluding spam, trash and no-reply senders."""
    return construct_query(
        newer_than=time_range,
        exclude_in=["spam", "trash"],
        exclude_sender="noreply",
    )
