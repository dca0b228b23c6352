"""
Identifier Types and Choice Text Codec

Every question and block carries two identifiers:

    - a stable id (opaque, immutable for the object's lifetime)
    - a display reference (QID "Q<n>" / BID "BL<n>"), derived from
      document order and recomputed after every structural edit

Logic conditions join on the display reference, structural arrays and
destinations join on the stable id. The two are distinct types here so a
reader can always tell which one a field holds.

Choice texts encode a variable prefix and a label in one string,
e.g. "Q3_2 Latte". parse_choice/format_choice are the only places that
know this format.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import NewType, Optional


StableId = NewType("StableId", str)
DisplayRef = NewType("DisplayRef", str)


NEXT = "next"
END = "end"
BLOCK_PREFIX = "block:"

QID_PREFIX = "Q"
BID_PREFIX = "BL"

_CHOICE_VARIABLE_RE = re.compile(r"^\(?(Q\d+_\d+)\)?\s*")
_VALUE_REF_RE = re.compile(r"^(Q\d+)_(\d+.*)$", re.DOTALL)


@dataclass(frozen=True)
class ChoiceParts:
    """The two halves of a composite choice text."""

    variable: str
    label: str


def parse_choice(text: str) -> ChoiceParts:
    """
    Split "Q1_1 Yes" into variable "Q1_1" and label "Yes".

    A parenthesised prefix "(Q1_1) Yes" is accepted as well. Without a
    prefix the whole text is the label.
    """
    match = _CHOICE_VARIABLE_RE.match(text or "")
    if match:
        return ChoiceParts(variable=match.group(1), label=text[match.end():])
    return ChoiceParts(variable="", label=text or "")


def strip_choice_variable(text: str) -> str:
    return parse_choice(text).label


def format_choice(qid: str, index: int, label: str) -> str:
    """Build the composite text for the choice at 1-based ``index``."""
    return f"{qid}_{index} {label}"


def make_qid(counter: int) -> DisplayRef:
    return DisplayRef(f"{QID_PREFIX}{counter}")


def make_bid(counter: int) -> DisplayRef:
    return DisplayRef(f"{BID_PREFIX}{counter}")


def split_value_ref(value: str) -> Optional[tuple]:
    """
    Detect a condition value that embeds a choice variable.

    Returns (qid, rest) for "Q2_1 Yes" -> ("Q2", "1 Yes"), else None.
    """
    if not value:
        return None
    match = _VALUE_REF_RE.match(value)
    if not match:
        return None
    return match.group(1), match.group(2)


# =============================================================================
# DESTINATIONS
# =============================================================================

def block_destination(block_id: str) -> str:
    return f"{BLOCK_PREFIX}{block_id}"


def parse_block_destination(destination: Optional[str]) -> Optional[StableId]:
    """Return the block id of a "block:<id>" destination, else None."""
    if destination and destination.startswith(BLOCK_PREFIX):
        return StableId(destination[len(BLOCK_PREFIX):])
    return None


def is_terminal_destination(destination: Optional[str]) -> bool:
    """
    True for destinations that never need resolving.

    "next", "end" and an unset destination are always valid targets.
    """
    return not destination or destination in (NEXT, END)
