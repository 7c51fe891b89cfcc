"""
Terrain guidance table.

Guidance shapes stub generation and oracle prompts and produces warnings
when a location's exit count falls outside the usual range. It never
blocks a commit.
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from worldgraph.models.direction import CARDINAL_DIRECTIONS, Direction, HORIZONTAL_DIRECTIONS
from worldgraph.models.location import TerrainType
from worldgraph.utils.exceptions import ConfigurationError

MAX_PROMPT_HINT_LENGTH = 500


class ExitPattern(str, Enum):
    CARDINAL = "cardinal"
    LINEAR = "linear"
    RADIAL = "radial"
    CUSTOM = "custom"


class TerrainGuidance(BaseModel):
    """Expected exit layout for one terrain type."""

    min_exits: int = Field(..., ge=0)
    max_exits: int = Field(..., ge=0)
    typical_exits: int = Field(..., ge=0)
    exit_pattern: ExitPattern
    prompt_hint: str = Field(..., min_length=1, max_length=MAX_PROMPT_HINT_LENGTH)
    default_directions: tuple[Direction, ...] = ()

    @model_validator(mode="after")
    def _check_range(self) -> "TerrainGuidance":
        if not self.min_exits <= self.typical_exits <= self.max_exits:
            raise ValueError(
                f"typical_exits {self.typical_exits} outside [{self.min_exits}, {self.max_exits}]"
            )
        return self

    def allows(self, exit_count: int) -> bool:
        return self.min_exits <= exit_count <= self.max_exits

    def candidate_directions(self) -> list[Direction]:
        """
        Directions to try when placing stubs, most natural first.

        Terrains without defaults fall back to the cardinals; the remaining
        compass directions always follow so callers can extend past defaults.
        """
        preferred = list(self.default_directions) or list(CARDINAL_DIRECTIONS)
        return preferred + [d for d in HORIZONTAL_DIRECTIONS if d not in preferred]


TERRAIN_GUIDANCE: dict[TerrainType, TerrainGuidance] = {
    TerrainType.OPEN_PLAIN: TerrainGuidance(
        min_exits=3,
        max_exits=5,
        typical_exits=4,
        exit_pattern=ExitPattern.CARDINAL,
        prompt_hint=(
            "Open plains typically allow travel in multiple directions unless narrative "
            "obstacles (fog, cliffs, swamps) are present."
        ),
        default_directions=CARDINAL_DIRECTIONS,
    ),
    TerrainType.DENSE_FOREST: TerrainGuidance(
        min_exits=1,
        max_exits=3,
        typical_exits=2,
        exit_pattern=ExitPattern.LINEAR,
        prompt_hint=(
            "Dense forests may limit visible exits to clearings or paths, but clever "
            "players might detect game trails."
        ),
    ),
    TerrainType.HILLTOP: TerrainGuidance(
        min_exits=3,
        max_exits=6,
        typical_exits=5,
        exit_pattern=ExitPattern.RADIAL,
        prompt_hint=(
            "Hilltops offer panoramic views suggesting multiple descent routes unless "
            "sheer cliffs block specific directions."
        ),
        default_directions=CARDINAL_DIRECTIONS + (Direction.DOWN,),
    ),
    TerrainType.RIVERBANK: TerrainGuidance(
        min_exits=2,
        max_exits=4,
        typical_exits=3,
        exit_pattern=ExitPattern.CUSTOM,
        prompt_hint=(
            "Riverbanks permit travel parallel to water flow; perpendicular crossings "
            "require bridges or fords. Consider current direction."
        ),
    ),
    TerrainType.NARROW_CORRIDOR: TerrainGuidance(
        min_exits=1,
        max_exits=3,
        typical_exits=2,
        exit_pattern=ExitPattern.LINEAR,
        prompt_hint=(
            "Corridors permit forward/back movement, but consider alcoves or climbing "
            "opportunities for additional exits."
        ),
    ),
}


def get_terrain_guidance(terrain: TerrainType | str) -> TerrainGuidance:
    """
    Look up guidance for a terrain.

    Raises:
        ConfigurationError: If the terrain has no guidance entry
    """
    try:
        return TERRAIN_GUIDANCE[TerrainType(terrain)]
    except (KeyError, ValueError) as e:
        raise ConfigurationError(
            f"Terrain type '{terrain}' not found in terrain guidance",
            context={"terrain": str(terrain)},
        ) from e


def is_terrain_type(value: str) -> bool:
    return value in {t.value for t in TerrainType}


def _validate_table() -> None:
    missing = set(TerrainType) - set(TERRAIN_GUIDANCE)
    if missing:
        raise ConfigurationError(
            f"Terrain guidance missing for: {sorted(t.value for t in missing)}",
            context={"missing": sorted(t.value for t in missing)},
        )


_validate_table()
