"""
Parse — pulling addressing and urgency out of free text.

Messages address agents inline:
  @forge can you look at the login bug?
  @all standup in 5
  @scout @pulse the launch checklist is ASAP

This module extracts those into structured data. It doesn't touch the
store; resolving `all` against the roster happens in lifecycle.py.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .router import KNOWN_CATEGORIES


# Reserved mention that expands to the whole roster
MENTION_ALL = "all"

URGENCY_WORDS = frozenset({"urgent", "asap", "critical", "emergency"})

MENTION_PATTERN = re.compile(r"@([A-Za-z0-9_-]+)")

URGENCY_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(URGENCY_WORDS)) + r")\b",
    re.IGNORECASE,
)

WORD_PATTERN = re.compile(r"[a-z]+")

TITLE_MAX_CHARS = 80


@dataclass
class ParsedMessage:
    """A message with its addressing pulled out."""
    mentions: list[str] = field(default_factory=list)   # lower-cased, deduped, in order
    urgent: bool = False
    raw: str = ""

    @property
    def priority(self) -> str:
        return "urgent" if self.urgent else "normal"


def parse_mentions(text: str) -> list[str]:
    """All @names, lower-cased, first occurrence order, no repeats."""
    seen: dict[str, None] = {}
    for match in MENTION_PATTERN.finditer(text):
        seen.setdefault(match.group(1).lower(), None)
    return list(seen)


def is_urgent(text: str) -> bool:
    return URGENCY_PATTERN.search(text) is not None


def parse_message(text: str) -> ParsedMessage:
    return ParsedMessage(
        mentions=parse_mentions(text),
        urgent=is_urgent(text),
        raw=text,
    )


def infer_category(text: str, target_roles: list[str] | None = None) -> str | None:
    """Guess a routing category for a message that should become a task.

    First word in the text that the router knows ("fix the login bug" →
    bug). Failing that, if exactly one specialist was mentioned, their
    role. Otherwise None, which routes to the coordinator.
    """
    stripped = MENTION_PATTERN.sub(" ", text.lower())
    for word in WORD_PATTERN.findall(stripped):
        if word in KNOWN_CATEGORIES:
            return word

    roles = {r for r in (target_roles or []) if r != "coordinator"}
    if len(roles) == 1:
        return roles.pop()

    return None


def derive_title(text: str) -> str:
    """Task title from message text: mentions dropped, whitespace collapsed."""
    title = MENTION_PATTERN.sub("", text)
    title = re.sub(r"\s+", " ", title).strip(" ,:;-")
    if len(title) > TITLE_MAX_CHARS:
        title = title[:TITLE_MAX_CHARS - 3].rstrip() + "..."
    return title
