"""Ticket key detection and skip-keyword filtering."""

import re
from typing import Iterable, Sequence

from linkbot.models import MergeRequest, Note


def ticket_key_pattern(prefix: str | Sequence[str]) -> re.Pattern[str]:
    """Compile the pattern for keys like PROJ-123 (prefixes taken literally).

    Several prefixes may be given; any of them matches.
    """
    prefixes = [prefix] if isinstance(prefix, str) else list(dict.fromkeys(prefix))
    if len(prefixes) == 1:
        return re.compile(re.escape(prefixes[0]) + r"-\d+")
    # Longest first so "AB" wins over "A" on "AB-1"
    alternatives = "|".join(re.escape(p) for p in sorted(prefixes, key=len, reverse=True))
    return re.compile(f"(?:{alternatives})" + r"-\d+")


def find_ticket_key(
    title: str,
    description: str,
    notes: Iterable[Note | str],
    prefix: str | Sequence[str],
) -> str | None:
    """Return the first ticket key found, or None.

    Looks at the title, then the description, then note bodies in the
    given order. Stops at the first match, so notes are only consumed
    when title and description have none.
    """
    pattern = ticket_key_pattern(prefix)
    for text in (title, description):
        match = pattern.search(text or "")
        if match:
            return match.group(0)
    for note in notes:
        body = note if isinstance(note, str) else note.body
        match = pattern.search(body or "")
        if match:
            return match.group(0)
    return None


def has_ticket_reference(
    title: str,
    description: str,
    notes: Iterable[Note | str],
    prefix: str | Sequence[str],
) -> bool:
    """True if title, description or any note contains <prefix>-<digits>
    for one of the prefixes."""
    return find_ticket_key(title, description, notes, prefix) is not None


def matching_keyword(mr: MergeRequest, keywords: Iterable[str]) -> str | None:
    """Return the first keyword found (case-insensitive) in title or
    description."""
    haystacks = (mr.title.lower(), mr.description.lower())
    for keyword in keywords:
        needle = keyword.strip().lower()
        # Blank keywords would match everything
        if not needle:
            continue
        if any(needle in text for text in haystacks):
            return keyword
    return None


def is_skipped(mr: MergeRequest, keywords: Iterable[str]) -> bool:
    """True if any skip keyword appears in the title or description.

    An empty keyword list never filters.
    """
    return matching_keyword(mr, keywords) is not None
