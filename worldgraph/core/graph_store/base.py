"""
Base interface for world graph storage.

Locations are nodes keyed by ID; exits are directed edges keyed by
(origin_id, direction). Both upserts are idempotent.
"""

from abc import ABC, abstractmethod

from worldgraph.models.direction import Direction
from worldgraph.models.exit import Exit
from worldgraph.models.location import Location
from worldgraph.utils.exceptions import BaseDescriptionImmutableError


class GraphStore(ABC):
    """Abstract base class for graph storage implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the graph store (create tables/schema/constraints)."""
        pass

    # ═══════════════════════════════════════════════════════════
    # LOCATION OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def upsert_location(self, location: Location) -> None:
        """
        Insert or update a location by ID.

        Args:
            location: Location to store

        Raises:
            BaseDescriptionImmutableError: If the stored location is crystallized
                and the new base description differs
            GraphStoreError: If the write fails
        """
        pass

    @abstractmethod
    async def get_location(self, location_id: str) -> Location | None:
        """
        Retrieve a location by ID.

        Args:
            location_id: Location identifier

        Returns:
            Location or None if not found
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # EXIT OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def upsert_exit(self, exit: Exit) -> None:
        """
        Insert or replace the exit occupying (origin_id, direction).

        Reciprocal bookkeeping is the caller's job; the store only enforces
        one exit per direction slot.

        Args:
            exit: Exit to store

        Raises:
            GraphStoreError: If the write fails
        """
        pass

    @abstractmethod
    async def get_exit(self, origin_id: str, direction: Direction) -> Exit | None:
        """
        Retrieve the exit in a direction slot.

        Args:
            origin_id: Location the exit leaves from
            direction: Direction slot

        Returns:
            Exit or None if the slot is free
        """
        pass

    @abstractmethod
    async def get_exits(self, location_id: str) -> list[Exit]:
        """
        All outgoing exits of a location.

        Args:
            location_id: Origin location

        Returns:
            Exits ordered by direction
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # GRAPH TRAVERSAL
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def neighbors(
        self, location_id: str, max_hops: int = 1
    ) -> tuple[list[Location], list[Exit]]:
        """
        Locations reachable within max_hops along outgoing exits.

        Args:
            location_id: Start location (not included in the result)
            max_hops: Traversal radius

        Returns:
            (locations, exits) where exits are every exit traversed while
            expanding the frontier
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # UTILITY METHODS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def count_locations(self) -> int:
        """Count stored locations."""
        pass

    @abstractmethod
    async def count_exits(self) -> int:
        """Count stored exits."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close connections and cleanup resources."""
        pass

    @staticmethod
    def check_base_description(existing: Location | None, incoming: Location) -> None:
        """
        Refuse to rewrite a crystallized base description.

        Raises:
            BaseDescriptionImmutableError: If the base text would change
        """
        if (
            existing is not None
            and existing.is_crystallized
            and existing.base_description != incoming.base_description
        ):
            raise BaseDescriptionImmutableError(
                f"Base description of crystallized location {existing.id} is immutable",
                context={"location_id": existing.id},
            )
