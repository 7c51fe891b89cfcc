"""
Direction normalization for free-form input.

Accepts canonical names, shortcuts (n, ne, u, ...), relative movement
(left/right/forward/back, resolved against the last heading) and single
character typos when exactly one direction is within edit distance 1.
"""

import re
from enum import Enum

from pydantic import BaseModel
from rapidfuzz.distance import Levenshtein

from worldgraph.models.direction import ALL_DIRECTIONS, Direction

DIRECTION_SHORTCUTS: dict[str, Direction] = {
    "n": Direction.NORTH,
    "s": Direction.SOUTH,
    "e": Direction.EAST,
    "w": Direction.WEST,
    "ne": Direction.NORTHEAST,
    "nw": Direction.NORTHWEST,
    "se": Direction.SOUTHEAST,
    "sw": Direction.SOUTHWEST,
    "u": Direction.UP,
    "d": Direction.DOWN,
    "i": Direction.IN,
    "o": Direction.OUT,
}

RELATIVE_DIRECTIONS = ("left", "right", "forward", "back")

# Clockwise compass ring used to rotate headings
_COMPASS_RING: tuple[Direction, ...] = (
    Direction.NORTH,
    Direction.NORTHEAST,
    Direction.EAST,
    Direction.SOUTHEAST,
    Direction.SOUTH,
    Direction.SOUTHWEST,
    Direction.WEST,
    Direction.NORTHWEST,
)

_SEPARATORS = re.compile(r"[\s\-_]+")


class NormalizationStatus(str, Enum):
    OK = "ok"
    AMBIGUOUS = "ambiguous"
    UNKNOWN = "unknown"


class DirectionNormalization(BaseModel):
    status: NormalizationStatus
    canonical: Direction | None = None
    clarification: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == NormalizationStatus.OK


def resolve_relative_direction(relative: str, last_heading: Direction) -> Direction | None:
    """
    Resolve left/right/forward/back against a heading.

    Returns None when the turn has no meaning for the heading (turning
    left while climbing up, for instance).
    """
    relative = relative.lower()
    if relative == "forward":
        return last_heading
    if relative == "back":
        return last_heading.opposite
    if last_heading not in _COMPASS_RING:
        return None
    index = _COMPASS_RING.index(last_heading)
    if relative == "right":
        return _COMPASS_RING[(index + 2) % len(_COMPASS_RING)]
    if relative == "left":
        return _COMPASS_RING[(index - 2) % len(_COMPASS_RING)]
    return None


def _typo_match(token: str) -> Direction | None:
    matches = [
        d for d in ALL_DIRECTIONS if Levenshtein.distance(token, d.value, score_cutoff=1) <= 1
    ]
    return matches[0] if len(matches) == 1 else None


def normalize_direction(
    text: str | None, last_heading: Direction | None = None
) -> DirectionNormalization:
    """
    Normalize raw direction text to a canonical Direction.

    Args:
        text: Raw input ("N", "north-east", "left", "nrth", ...)
        last_heading: Previous movement direction, needed for relative input

    Returns:
        DirectionNormalization with status ok, ambiguous or unknown
    """
    token = _SEPARATORS.sub("", (text or "").strip().lower())

    if not token:
        return DirectionNormalization(
            status=NormalizationStatus.UNKNOWN,
            clarification="Direction cannot be empty. Try: north, south, east, west, up, down, in, out.",
        )

    try:
        return DirectionNormalization(status=NormalizationStatus.OK, canonical=Direction(token))
    except ValueError:
        pass

    if token in DIRECTION_SHORTCUTS:
        return DirectionNormalization(
            status=NormalizationStatus.OK, canonical=DIRECTION_SHORTCUTS[token]
        )

    if token in RELATIVE_DIRECTIONS:
        if last_heading is None:
            return DirectionNormalization(
                status=NormalizationStatus.AMBIGUOUS,
                clarification=(
                    f'Relative direction "{token}" requires a previous move to establish '
                    'heading. Try a specific direction like "north" or "south".'
                ),
            )
        resolved = resolve_relative_direction(token, last_heading)
        if resolved is None:
            return DirectionNormalization(
                status=NormalizationStatus.AMBIGUOUS,
                clarification=f'Cannot resolve "{token}" from heading "{last_heading.value}".',
            )
        return DirectionNormalization(status=NormalizationStatus.OK, canonical=resolved)

    typo = _typo_match(token)
    if typo is not None:
        return DirectionNormalization(
            status=NormalizationStatus.OK,
            canonical=typo,
            clarification=f'Interpreted "{token}" as "{typo.value}".',
        )

    return DirectionNormalization(
        status=NormalizationStatus.UNKNOWN,
        clarification=f'"{token}" is not a recognized direction.',
    )
