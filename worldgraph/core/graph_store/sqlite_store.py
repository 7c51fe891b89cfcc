"""
SQLite graph store implementation.

Local, file-backed storage for locations and exits using aiosqlite.
"""

import json
from datetime import datetime
from pathlib import Path

import aiosqlite

from worldgraph.core.graph_store.base import GraphStore
from worldgraph.models.direction import Direction, direction_order
from worldgraph.models.exit import Exit, ExitSource
from worldgraph.models.location import (
    DescriptionLayer,
    Location,
    LocationState,
    Provenance,
    TerrainType,
)
from worldgraph.utils.exceptions import GraphStoreError
from worldgraph.utils.logger import get_logger

logger = get_logger(__name__)


class SQLiteGraphStore(GraphStore):
    """
    SQLite-based graph store for locations and exits.

    Features:
    - Fast local storage, WAL journal
    - JSON columns for layers, provenance and exit hints
    - Primary key on (origin_id, direction) so each slot holds one exit
    """

    def __init__(self, db_path: str = "data/worldgraph.db"):
        """
        Initialize SQLite graph store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None

        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        """Establish connection to SQLite."""
        if self.connection is None:
            self.connection = await aiosqlite.connect(self.db_path)
            await self.connection.execute("PRAGMA foreign_keys = ON")
            await self.connection.execute("PRAGMA journal_mode = WAL")
            await self.connection.commit()

    async def initialize(self) -> None:
        """Initialize database schema."""
        await self.connect()

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS locations (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                base_description TEXT NOT NULL,
                terrain TEXT NOT NULL,
                state TEXT NOT NULL,
                provenance TEXT,
                layers TEXT DEFAULT '[]',
                pending_exits TEXT DEFAULT '{}',
                forbidden_exits TEXT DEFAULT '{}',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """
        )

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS exits (
                origin_id TEXT NOT NULL,
                direction TEXT NOT NULL,
                destination_id TEXT NOT NULL,
                travel_duration REAL NOT NULL,
                narrative_hook TEXT,
                source TEXT NOT NULL,
                created_at TEXT NOT NULL,
                PRIMARY KEY (origin_id, direction),
                FOREIGN KEY (origin_id) REFERENCES locations(id) ON DELETE CASCADE,
                FOREIGN KEY (destination_id) REFERENCES locations(id) ON DELETE CASCADE
            )
        """
        )

        await self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_locations_state ON locations(state)"
        )
        await self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_exits_destination ON exits(destination_id)"
        )

        await self.connection.commit()
        logger.info(f"SQLite graph store ready at {self.db_path}")

    # ═══════════════════════════════════════════════════════════
    # LOCATION OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def upsert_location(self, location: Location) -> None:
        """Insert or update a location, keeping crystallized base text intact."""
        await self.connect()

        existing = await self.get_location(location.id)
        self.check_base_description(existing, location)

        try:
            await self.connection.execute(
                """
                INSERT INTO locations (
                    id, name, base_description, terrain, state, provenance, layers,
                    pending_exits, forbidden_exits, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    base_description = excluded.base_description,
                    terrain = excluded.terrain,
                    state = excluded.state,
                    provenance = excluded.provenance,
                    layers = excluded.layers,
                    pending_exits = excluded.pending_exits,
                    forbidden_exits = excluded.forbidden_exits,
                    updated_at = excluded.updated_at
                """,
                (
                    location.id,
                    location.name,
                    location.base_description,
                    location.terrain.value,
                    location.state.value,
                    location.provenance.model_dump_json() if location.provenance else None,
                    json.dumps([layer.model_dump(mode="json") for layer in location.layers]),
                    json.dumps({d.value: r for d, r in location.pending_exits.items()}),
                    json.dumps({d.value: r for d, r in location.forbidden_exits.items()}),
                    location.created_at.isoformat(),
                    location.updated_at.isoformat(),
                ),
            )
            await self.connection.commit()
        except aiosqlite.Error as e:
            raise GraphStoreError(
                f"Failed to upsert location {location.id}: {e}",
                context={"location_id": location.id},
            ) from e

    async def get_location(self, location_id: str) -> Location | None:
        """Get location by ID."""
        await self.connect()

        cursor = await self.connection.execute(
            "SELECT * FROM locations WHERE id = ?", (location_id,)
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return self._row_to_location(row)

    # ═══════════════════════════════════════════════════════════
    # EXIT OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def upsert_exit(self, exit: Exit) -> None:
        """Insert or replace the exit in (origin_id, direction)."""
        await self.connect()

        try:
            await self.connection.execute(
                """
                INSERT INTO exits (
                    origin_id, direction, destination_id, travel_duration,
                    narrative_hook, source, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(origin_id, direction) DO UPDATE SET
                    destination_id = excluded.destination_id,
                    travel_duration = excluded.travel_duration,
                    narrative_hook = excluded.narrative_hook,
                    source = excluded.source
                """,
                (
                    exit.origin_id,
                    exit.direction.value,
                    exit.destination_id,
                    exit.travel_duration,
                    exit.narrative_hook,
                    exit.source.value,
                    exit.created_at.isoformat(),
                ),
            )
            await self.connection.commit()
        except aiosqlite.Error as e:
            raise GraphStoreError(
                f"Failed to upsert exit {exit.origin_id}:{exit.direction.value}: {e}",
                context={"origin_id": exit.origin_id, "direction": exit.direction.value},
            ) from e

    async def get_exit(self, origin_id: str, direction: Direction) -> Exit | None:
        """Get the exit in a direction slot."""
        await self.connect()

        cursor = await self.connection.execute(
            "SELECT * FROM exits WHERE origin_id = ? AND direction = ?",
            (origin_id, Direction(direction).value),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return self._row_to_exit(row)

    async def get_exits(self, location_id: str) -> list[Exit]:
        """Get all outgoing exits of a location."""
        await self.connect()

        cursor = await self.connection.execute(
            "SELECT * FROM exits WHERE origin_id = ?", (location_id,)
        )
        rows = await cursor.fetchall()

        exits = [self._row_to_exit(row) for row in rows]
        return sorted(exits, key=lambda e: direction_order(e.direction))

    # ═══════════════════════════════════════════════════════════
    # GRAPH TRAVERSAL
    # ═══════════════════════════════════════════════════════════

    async def neighbors(
        self, location_id: str, max_hops: int = 1
    ) -> tuple[list[Location], list[Exit]]:
        """Breadth-first expansion along outgoing exits."""
        await self.connect()

        visited = {location_id}
        frontier = [location_id]
        locations: list[Location] = []
        exits: list[Exit] = []

        for _ in range(max_hops):
            next_frontier = []
            for current_id in frontier:
                for exit in await self.get_exits(current_id):
                    destination = exit.destination_id
                    if destination in visited:
                        exits.append(exit)
                        continue
                    location = await self.get_location(destination)
                    if location is None:
                        # Dangling exit
                        continue
                    exits.append(exit)
                    visited.add(destination)
                    locations.append(location)
                    next_frontier.append(destination)
            if not next_frontier:
                break
            frontier = next_frontier

        return locations, exits

    # ═══════════════════════════════════════════════════════════
    # UTILITY METHODS
    # ═══════════════════════════════════════════════════════════

    async def count_locations(self) -> int:
        """Count locations."""
        await self.connect()

        cursor = await self.connection.execute("SELECT COUNT(*) FROM locations")
        row = await cursor.fetchone()

        return row[0] if row else 0

    async def count_exits(self) -> int:
        """Count exits."""
        await self.connect()

        cursor = await self.connection.execute("SELECT COUNT(*) FROM exits")
        row = await cursor.fetchone()

        return row[0] if row else 0

    async def close(self) -> None:
        """Close the connection."""
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    def _row_to_location(self, row: tuple) -> Location:
        """Convert database row to Location object."""
        return Location(
            id=row[0],
            name=row[1],
            base_description=row[2],
            terrain=TerrainType(row[3]),
            state=LocationState(row[4]),
            provenance=Provenance.model_validate_json(row[5]) if row[5] else None,
            layers=[DescriptionLayer.model_validate(layer) for layer in json.loads(row[6] or "[]")],
            pending_exits={Direction(d): r for d, r in json.loads(row[7] or "{}").items()},
            forbidden_exits={Direction(d): r for d, r in json.loads(row[8] or "{}").items()},
            created_at=datetime.fromisoformat(row[9]),
            updated_at=datetime.fromisoformat(row[10]),
        )

    def _row_to_exit(self, row: tuple) -> Exit:
        """Convert database row to Exit object."""
        return Exit(
            origin_id=row[0],
            direction=Direction(row[1]),
            destination_id=row[2],
            travel_duration=row[3],
            narrative_hook=row[4],
            source=ExitSource(row[5]),
            created_at=datetime.fromisoformat(row[6]),
        )
