"""Decide which blocks are ours and give them a stable key.

Keys only depend on block text and on the section the block sits in, so
the same block always gets the same key no matter which version of the
builder wrote it. A block that gets no key is foreign: the reconciler
will never touch it.
"""

import re
from typing import Protocol, Sequence

from .builder import CONTRIBUTORS_LABEL, SECTION_ROW_LABELS
from .constants import HEADER_TAG, OURA_DATE_PROPERTY, ROOT_BLOCK_KEY, SECTION_NAMES
from .formatters import EN_DASH

_DATE_PROPERTY = re.compile(rf"^{re.escape(OURA_DATE_PROPERTY)}::\s*(.+)$", re.MULTILINE | re.IGNORECASE)
_PROPERTY_LINE = re.compile(r"^([\w-]+)::")

# "77 bpm avg / min 50 / max 120", or whichever parts were available
HEART_RATE_ROW = re.compile(r"^(?:\d+(?:\.\d+)? bpm avg|min \d+|max \d+)(?: / |$)")
HEART_RATE_ROW_KEY = "bpm"

# "07:00 – Cycling (45m, 350 kcal)" and "21:30 – [[Caffeine]] – note" are
# keyed by start time and name, so revised details update the same block.
TIMED_ROW = re.compile(rf"^(\d{{2}}:\d{{2}} {EN_DASH} .+?)(?: \(.*\)| {EN_DASH} .*)?$")
TIMED_SECTIONS = ("Workouts", "Tags")

Scope = tuple[str, ...]


class TextNode(Protocol):
    """Anything with text and children: desired ``BlockNode`` or read-back ``ExistingNode``."""

    text: str

    @property
    def children(self) -> Sequence["TextNode"]: ...


def extract_date_property(text: str) -> str | None:
    """Value of an ``oura-date:: YYYY-MM-DD`` line, if the text has one."""
    match = _DATE_PROPERTY.search(text or "")
    return match.group(1).strip() if match else None


def is_header_block(text: str) -> bool:
    """Legacy and current day blocks both start with the ``#ouraring`` tag."""
    return (text or "").strip().startswith(f"{HEADER_TAG} ")


def extract_root_key(node: TextNode) -> str | None:
    """Key for a page-level block, or ``None`` when it is not a day block.

    New blocks carry an ``oura-date::`` property child; blocks written by
    older versions only have the ``#ouraring`` header. Both resolve to the
    same fixed key because a page never holds more than one day block.
    """
    if extract_date_property(node.text):
        return ROOT_BLOCK_KEY
    for child in node.children:
        if extract_date_property(child.text):
            return ROOT_BLOCK_KEY
    if is_header_block(node.text):
        return ROOT_BLOCK_KEY
    return None


def extract_child_key(text: str, scope: Scope = ()) -> str | None:
    """Key for a block below the day block, or ``None`` when it is foreign.

    ``scope`` is the path of section keys between the day block and this
    block: ``()`` for the day block's own children, ``("Sleep",)`` for a
    row in the Sleep section, ``("Sleep", "Contributors")`` one deeper.

    Recognized anywhere: property lines (``label:: value``). Directly under
    the day block: section names (``Sleep`` or ``Sleep: ...``). Inside a
    section: the rows that section emits (``Score: 82``, ``Contributors``,
    the heart-rate summary, timed workout and tag lines).
    """
    trimmed = (text or "").strip()

    match = _PROPERTY_LINE.match(trimmed)
    if match:
        return match.group(1)

    if not scope:
        for section in SECTION_NAMES:
            if trimmed == section or trimmed.startswith(f"{section}:"):
                return section
        return None

    if trimmed == CONTRIBUTORS_LABEL and scope + (CONTRIBUTORS_LABEL,) in SECTION_ROW_LABELS:
        return CONTRIBUTORS_LABEL

    if scope == ("Heart rate",):
        return HEART_RATE_ROW_KEY if HEART_RATE_ROW.match(trimmed) else None

    if len(scope) == 1 and scope[0] in TIMED_SECTIONS:
        timed = TIMED_ROW.match(trimmed)
        return timed.group(1) if timed else None

    labels = SECTION_ROW_LABELS.get(scope, frozenset())
    label, sep, rest = trimmed.partition(":")
    if sep and label in labels and (not rest or rest[0] == " "):
        return label
    return None
