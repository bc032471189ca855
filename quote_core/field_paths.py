"""Parsing of bracket-path form field names.

The purchase form encodes the structure of the quote in its field names, e.g.
``website_quotation[quotes][0][breakdowns][2][passenger][first_name]``. Both the
field filtering (internal bookkeeping fields) and the grouping of fields per
passenger depend on this grammar, so it is parsed once here.
"""
from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Optional, Tuple

_ROOT_PATTERN = re.compile(r"^([^\[]*)")
_SEGMENT_PATTERN = re.compile(r"\[([^\[\]]*)\]")

# Structural words that never describe what a field means.
BOILERPLATE_SEGMENTS = frozenset(
    {
        "quotes",
        "breakdowns",
        "riders",
        "passenger",
        "passengers",
        "contact",
        "website",
        "quotation",
        "website_quotation",
        "websitebundle_quotation_search",
    }
)


@dataclass(frozen=True)
class FieldPath:
    """A field name split into its namespace root and bracket segments."""

    root: str
    segments: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, name: Optional[str]) -> "FieldPath":
        if not name:
            return cls(root="")
        root_match = _ROOT_PATTERN.match(name)
        root = root_match.group(1) if root_match else ""
        segments = tuple(_SEGMENT_PATTERN.findall(name[len(root):]))
        return cls(root=root, segments=segments)

    def has(self, segment: str) -> bool:
        return segment in self.segments

    def contains(self, *sequence: str) -> bool:
        """Return ``True`` when ``sequence`` appears contiguously in the segments."""

        size = len(sequence)
        if size == 0:
            return True
        for start in range(len(self.segments) - size + 1):
            if self.segments[start : start + size] == sequence:
                return True
        return False

    def index_after(self, segment: str) -> Optional[int]:
        """Return the numeric segment that directly follows ``segment``."""

        for position, value in enumerate(self.segments[:-1]):
            if value == segment:
                following = self.segments[position + 1]
                if following.isdigit():
                    return int(following)
        return None

    @property
    def breakdown_index(self) -> Optional[int]:
        return self.index_after("breakdowns")

    @property
    def rider_index(self) -> Optional[int]:
        return self.index_after("riders")

    @property
    def leaf(self) -> str:
        return self.segments[-1] if self.segments else self.root

    def semantic_tokens(self) -> Tuple[str, ...]:
        """Meaningful tokens, most specific first.

        Numeric indexes, empty segments and structural boilerplate are dropped.
        The namespace root only counts when the name has no bracket segments.
        """

        candidates = self.segments if self.segments else (self.root,)
        tokens = [
            token.strip()
            for token in reversed(candidates)
            if token.strip()
            and not token.strip().isdigit()
            and token.strip().lower() not in BOILERPLATE_SEGMENTS
        ]
        return tuple(tokens)


__all__ = ["BOILERPLATE_SEGMENTS", "FieldPath"]
