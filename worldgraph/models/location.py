"""
Location model with description layering and lifecycle tracking.
"""

import hashlib
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from worldgraph.models.direction import Direction
from worldgraph.utils.exceptions import BaseDescriptionImmutableError, ValidationError


class TerrainType(str, Enum):
    """Terrain archetypes that shape how many exits a location tends to have."""

    OPEN_PLAIN = "open-plain"
    DENSE_FOREST = "dense-forest"
    HILLTOP = "hilltop"
    RIVERBANK = "riverbank"
    NARROW_CORRIDOR = "narrow-corridor"


class LocationState(str, Enum):
    """
    Location lifecycle.

    stub -> pending -> crystallized. Only crystallized locations have an
    immutable base description.
    """

    STUB = "stub"
    PENDING = "pending"
    CRYSTALLIZED = "crystallized"


class LayerType(str, Enum):
    """Kinds of description layers stacked over the base text."""

    BASE = "base"
    AMBIENT = "ambient"
    DYNAMIC = "dynamic"
    WEATHER = "weather"
    LIGHTING = "lighting"


class ProvenanceSource(str, Enum):
    GENERATED = "generated"
    MANUAL = "manual"


class ExitAvailability(str, Enum):
    """How an exit slot presents to a traveller."""

    HARD = "hard"  # exit exists
    PENDING = "pending"  # implied by the description, not generated yet
    FORBIDDEN = "forbidden"  # explicitly impassable


class Provenance(BaseModel):
    """Where a location's base description came from."""

    source: ProvenanceSource = Field(default=ProvenanceSource.GENERATED)
    model: str | None = Field(default=None, description="Generator model identifier")
    batch_id: str | None = Field(default=None, description="Generating batch")
    input_hash: str | None = Field(default=None, description="sha256 hash of generator input")
    generated_at: datetime = Field(default_factory=datetime.now)


class DescriptionLayer(BaseModel):
    """Additive prose layered over the immutable base description."""

    layer_type: LayerType
    text: str = Field(..., min_length=1)
    authored_at: datetime = Field(default_factory=datetime.now)
    metadata: dict[str, Any] = Field(default_factory=dict)


class Location(BaseModel):
    """
    A node in the world graph.

    The base description is written once, when the location crystallizes.
    Everything that changes afterwards (weather, lighting, events) is an
    additional layer; the base text itself is never rewritten.
    """

    id: str = Field(..., description="Unique location ID (loc_xxx)")
    name: str = Field(default="", description="Display name")
    base_description: str = Field(default="", description="Immutable once crystallized")
    layers: list[DescriptionLayer] = Field(default_factory=list)
    terrain: TerrainType = Field(default=TerrainType.OPEN_PLAIN)
    state: LocationState = Field(default=LocationState.STUB)
    provenance: Provenance | None = Field(default=None)

    pending_exits: dict[Direction, str] = Field(
        default_factory=dict,
        description="Exits implied by the description but not generated yet (direction -> reason)",
    )
    forbidden_exits: dict[Direction, str] = Field(
        default_factory=dict,
        description="Directions that are explicitly impassable (direction -> reason)",
    )

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_crystallized(self) -> bool:
        return self.state == LocationState.CRYSTALLIZED

    def mark_pending(
        self,
        name: str,
        description: str,
        terrain: TerrainType | str,
        provenance: Provenance | None = None,
    ) -> None:
        """
        Attach generated text to a stub while it is staged.

        Raises:
            BaseDescriptionImmutableError: If the location is already crystallized
        """
        if self.is_crystallized:
            raise BaseDescriptionImmutableError(
                f"Location {self.id} is crystallized; base description cannot change",
                context={"location_id": self.id},
            )
        self.name = name
        self.base_description = description
        self.terrain = TerrainType(terrain)
        self.provenance = provenance
        self.state = LocationState.PENDING
        self.updated_at = datetime.now()

    def crystallize(self) -> None:
        """
        Freeze the base description.

        Raises:
            ValidationError: If the location has no description to freeze
        """
        if self.is_crystallized:
            return
        if self.state != LocationState.PENDING or not self.base_description.strip():
            raise ValidationError(
                f"Location {self.id} cannot crystallize from state {self.state.value}",
                context={"location_id": self.id, "state": self.state.value},
            )
        self.state = LocationState.CRYSTALLIZED
        self.updated_at = datetime.now()

    def append_layer(
        self, layer_type: LayerType | str, text: str, metadata: dict[str, Any] | None = None
    ) -> DescriptionLayer:
        """
        Append a description layer without touching the base text.

        Raises:
            ValidationError: If a second base layer is appended
        """
        layer_type = LayerType(layer_type)
        if layer_type == LayerType.BASE:
            raise ValidationError(
                "Base text is stored in base_description, not as a layer",
                context={"location_id": self.id},
            )
        layer = DescriptionLayer(layer_type=layer_type, text=text, metadata=metadata or {})
        self.layers.append(layer)
        self.updated_at = datetime.now()
        return layer

    def render_description(self) -> str:
        """Base description followed by every layer in authoring order."""
        parts = [self.base_description] + [layer.text for layer in self.layers]
        return "\n\n".join(p for p in parts if p)

    def exit_availability(
        self, direction: Direction, existing: set[Direction]
    ) -> ExitAvailability | None:
        """
        Classify a direction slot.

        Args:
            direction: Slot to classify
            existing: Directions that already hold a committed exit

        Returns:
            ExitAvailability, or None if nothing is known about the slot
        """
        if direction in existing:
            return ExitAvailability.HARD
        if direction in self.forbidden_exits:
            return ExitAvailability.FORBIDDEN
        if direction in self.pending_exits:
            return ExitAvailability.PENDING
        return None


def compute_input_hash(*parts: str) -> str:
    """
    Compute SHA256 hash of generator input for provenance.

    Parts are stripped and joined with a unit separator before hashing.

    Returns:
        Hash string in format "sha256:hexdigest"
    """
    normalized = "\x1f".join(p.strip() for p in parts)
    hash_bytes = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    return f"sha256:{hash_bytes}"
