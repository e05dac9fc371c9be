"""Allow-list matching for Slack senders.

Entries are Slack user ids (case-sensitive, e.g. 'U024BE7LH') or display
names (matched case-insensitively). A '*' entry accepts everyone. Entries may
be written as 'slack:U024BE7LH', 'user:U024BE7LH' or '<@U024BE7LH>'.
"""

import re
from typing import Iterable, Optional

WILDCARD = "*"

_MENTION_RE = re.compile(r"^<@([A-Z0-9]+)(?:\|[^>]*)?>$")
_PREFIX_RE = re.compile(r"^(?:slack|user):", re.IGNORECASE)


def _normalize_entry(entry: object) -> str:
    value = str(entry).strip()
    mention = _MENTION_RE.match(value)
    if mention:
        return mention.group(1)
    return _PREFIX_RE.sub("", value).strip()


def normalize_allow_list(entries: Optional[Iterable[object]]) -> list[str]:
    """Trim, strip prefixes and drop empties; identifier case is preserved."""
    if not entries:
        return []
    return [value for value in (_normalize_entry(e) for e in entries) if value]


def normalize_allow_list_lower(entries: Optional[Iterable[object]]) -> list[str]:
    return [entry.lower() for entry in normalize_allow_list(entries)]


def allow_list_matches(
    allow_list: Optional[Iterable[object]],
    id: str,
    name: Optional[str] = None,
) -> bool:
    """Return True if ``id`` or ``name`` is on the list.

    An empty or missing list never matches; "no restriction configured" is
    decided by the caller.
    """
    entries = normalize_allow_list(allow_list)
    if not entries:
        return False
    if WILDCARD in entries:
        return True
    if id and id in entries:
        return True
    if name and name.strip().lower() in normalize_allow_list_lower(entries):
        return True
    return False


def resolve_user_allowed(
    allow_list: Optional[Iterable[object]],
    user_id: str,
    user_name: Optional[str] = None,
) -> bool:
    """Per-channel ``users`` check: no list configured means everyone is allowed."""
    entries = normalize_allow_list(allow_list)
    if not entries:
        return True
    return allow_list_matches(entries, id=user_id, name=user_name)
