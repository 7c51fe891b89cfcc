"""Canonical exit directions."""

from enum import Enum


class Direction(str, Enum):
    """Canonical directions an exit can point in."""

    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"
    NORTHEAST = "northeast"
    NORTHWEST = "northwest"
    SOUTHEAST = "southeast"
    SOUTHWEST = "southwest"
    UP = "up"
    DOWN = "down"
    IN = "in"
    OUT = "out"

    @property
    def opposite(self) -> "Direction":
        return OPPOSITE_DIRECTIONS[self]

    @property
    def is_horizontal(self) -> bool:
        return self in HORIZONTAL_DIRECTIONS


OPPOSITE_DIRECTIONS: dict[Direction, Direction] = {
    Direction.NORTH: Direction.SOUTH,
    Direction.SOUTH: Direction.NORTH,
    Direction.EAST: Direction.WEST,
    Direction.WEST: Direction.EAST,
    Direction.NORTHEAST: Direction.SOUTHWEST,
    Direction.SOUTHWEST: Direction.NORTHEAST,
    Direction.NORTHWEST: Direction.SOUTHEAST,
    Direction.SOUTHEAST: Direction.NORTHWEST,
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.IN: Direction.OUT,
    Direction.OUT: Direction.IN,
}

CARDINAL_DIRECTIONS: tuple[Direction, ...] = (
    Direction.NORTH,
    Direction.EAST,
    Direction.SOUTH,
    Direction.WEST,
)

# Cardinals first, then diagonals clockwise from northeast
HORIZONTAL_DIRECTIONS: tuple[Direction, ...] = CARDINAL_DIRECTIONS + (
    Direction.NORTHEAST,
    Direction.SOUTHEAST,
    Direction.SOUTHWEST,
    Direction.NORTHWEST,
)

VERTICAL_DIRECTIONS: tuple[Direction, ...] = (Direction.UP, Direction.DOWN)

PORTAL_DIRECTIONS: tuple[Direction, ...] = (Direction.IN, Direction.OUT)

ALL_DIRECTIONS: tuple[Direction, ...] = (
    HORIZONTAL_DIRECTIONS + VERTICAL_DIRECTIONS + PORTAL_DIRECTIONS
)


def opposite(direction: Direction | str) -> Direction:
    """Return the opposite of a direction (accepts enum members or their values)."""
    return OPPOSITE_DIRECTIONS[Direction(direction)]


def direction_order(direction: Direction) -> int:
    """Stable sort key following ALL_DIRECTIONS."""
    return ALL_DIRECTIONS.index(direction)
