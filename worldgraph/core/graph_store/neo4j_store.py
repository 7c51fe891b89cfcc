"""
Neo4j graph store implementation.

Locations are (:Location) nodes; exits are [:EXIT] relationships carrying
their direction, so a direction slot is (origin node, direction property).
"""

import json
from datetime import datetime
from typing import Any

from neo4j import AsyncDriver, AsyncGraphDatabase

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


class Neo4jGraphStore(GraphStore):
    """
    Neo4j-based graph store for locations and exits.

    Features:
    - Native graph traversal for neighbor expansion
    - Unique constraint on Location.id
    - Exit upsert replaces the relationship occupying a direction slot
    """

    def __init__(
        self,
        uri: str = "bolt://localhost:7687",
        username: str = "neo4j",
        password: str = "password",
        database: str = "neo4j",
    ):
        """
        Initialize Neo4j graph store.

        Args:
            uri: Neo4j connection URI
            username: Username
            password: Password
            database: Database name
        """
        self.uri = uri
        self.username = username
        self.password = password
        self.database = database
        self.driver: AsyncDriver | None = None

    async def connect(self) -> None:
        """
        Establish connection to Neo4j.

        Raises:
            GraphStoreError: If connection fails
        """
        if self.driver is None:
            try:
                self.driver = AsyncGraphDatabase.driver(
                    self.uri,
                    auth=(self.username, self.password),
                )
            except Exception as e:
                logger.error(
                    f"Failed to connect to Neo4j: {e}",
                    extra={"uri": self.uri, "error": str(e)},
                )
                raise GraphStoreError(f"Failed to connect to Neo4j: {e}") from e

    async def initialize(self) -> None:
        """
        Create constraints and indexes.

        Raises:
            GraphStoreError: If initialization fails
        """
        try:
            await self.connect()

            async with self.driver.session(database=self.database) as session:
                await session.run(
                    "CREATE CONSTRAINT location_id IF NOT EXISTS "
                    "FOR (l:Location) REQUIRE l.id IS UNIQUE"
                )
                await session.run(
                    "CREATE INDEX location_state IF NOT EXISTS FOR (l:Location) ON (l.state)"
                )
        except Exception as e:
            logger.error(
                f"Failed to initialize Neo4j: {e}",
                extra={"database": self.database, "error": str(e)},
            )
            raise GraphStoreError(f"Failed to initialize Neo4j: {e}") from e

    # ═══════════════════════════════════════════════════════════
    # LOCATION OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def upsert_location(self, location: Location) -> None:
        """
        Merge a location node by ID.

        Raises:
            BaseDescriptionImmutableError: If a crystallized base text would change
            GraphStoreError: If the write fails
        """
        await self.connect()

        existing = await self.get_location(location.id)
        self.check_base_description(existing, location)

        try:
            async with self.driver.session(database=self.database) as session:
                await session.run(
                    """
                    MERGE (l:Location {id: $id})
                    ON CREATE SET l.created_at = $created_at
                    SET l.name = $name,
                        l.base_description = $base_description,
                        l.terrain = $terrain,
                        l.state = $state,
                        l.provenance = $provenance,
                        l.layers = $layers,
                        l.pending_exits = $pending_exits,
                        l.forbidden_exits = $forbidden_exits,
                        l.updated_at = $updated_at
                    """,
                    self._location_params(location),
                )
        except Exception as e:
            logger.error(
                f"Failed to upsert location: {e}",
                extra={"location_id": location.id, "error": str(e)},
            )
            raise GraphStoreError(
                f"Failed to upsert location {location.id}: {e}",
                context={"location_id": location.id},
            ) from e

    async def get_location(self, location_id: str) -> Location | None:
        """Get location by ID."""
        await self.connect()

        try:
            async with self.driver.session(database=self.database) as session:
                result = await session.run(
                    "MATCH (l:Location {id: $id}) RETURN l", {"id": location_id}
                )
                record = await result.single()
        except Exception as e:
            raise GraphStoreError(
                f"Failed to get location {location_id}: {e}",
                context={"location_id": location_id},
            ) from e

        if not record:
            return None

        return self._node_to_location(dict(record["l"]))

    # ═══════════════════════════════════════════════════════════
    # EXIT OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def upsert_exit(self, exit: Exit) -> None:
        """
        Replace whatever exit occupies (origin_id, direction).

        Raises:
            GraphStoreError: If either endpoint is missing or the write fails
        """
        await self.connect()

        try:
            async with self.driver.session(database=self.database) as session:
                result = await session.run(
                    """
                    MATCH (o:Location {id: $origin_id}), (d:Location {id: $destination_id})
                    OPTIONAL MATCH (o)-[old:EXIT {direction: $direction}]->()
                    DELETE old
                    WITH DISTINCT o, d
                    CREATE (o)-[e:EXIT {
                        direction: $direction,
                        travel_duration: $travel_duration,
                        narrative_hook: $narrative_hook,
                        source: $source,
                        created_at: $created_at
                    }]->(d)
                    RETURN count(e) AS created
                    """,
                    {
                        "origin_id": exit.origin_id,
                        "destination_id": exit.destination_id,
                        "direction": exit.direction.value,
                        "travel_duration": exit.travel_duration,
                        "narrative_hook": exit.narrative_hook,
                        "source": exit.source.value,
                        "created_at": exit.created_at.isoformat(),
                    },
                )
                record = await result.single()
        except Exception as e:
            logger.error(
                f"Failed to upsert exit: {e}",
                extra={"origin_id": exit.origin_id, "direction": exit.direction.value},
            )
            raise GraphStoreError(
                f"Failed to upsert exit {exit.origin_id}:{exit.direction.value}: {e}",
                context={"origin_id": exit.origin_id, "direction": exit.direction.value},
            ) from e

        if not record or record["created"] == 0:
            raise GraphStoreError(
                f"Cannot create exit {exit.origin_id}:{exit.direction.value}; endpoint missing",
                context={"origin_id": exit.origin_id, "destination_id": exit.destination_id},
            )

    async def get_exit(self, origin_id: str, direction: Direction) -> Exit | None:
        """Get the exit in a direction slot."""
        exits = await self._query_exits([origin_id], Direction(direction))
        return exits[0] if exits else None

    async def get_exits(self, location_id: str) -> list[Exit]:
        """Get all outgoing exits of a location."""
        exits = await self._query_exits([location_id])
        return sorted(exits, key=lambda e: direction_order(e.direction))

    # ═══════════════════════════════════════════════════════════
    # GRAPH TRAVERSAL
    # ═══════════════════════════════════════════════════════════

    async def neighbors(
        self, location_id: str, max_hops: int = 1
    ) -> tuple[list[Location], list[Exit]]:
        """Breadth-first expansion, one Cypher query per hop."""
        await self.connect()

        visited = {location_id}
        frontier = [location_id]
        locations: list[Location] = []
        exits: list[Exit] = []

        for _ in range(max_hops):
            if not frontier:
                break
            try:
                async with self.driver.session(database=self.database) as session:
                    result = await session.run(
                        """
                        MATCH (o:Location)-[e:EXIT]->(d:Location)
                        WHERE o.id IN $ids
                        RETURN o.id AS origin_id, d.id AS destination_id, e, d
                        """,
                        {"ids": frontier},
                    )
                    records = [record async for record in result]
            except Exception as e:
                raise GraphStoreError(
                    f"Failed to expand neighbors of {location_id}: {e}",
                    context={"location_id": location_id},
                ) from e

            next_frontier = []
            for record in records:
                exits.append(
                    self._rel_to_exit(
                        record["origin_id"], record["destination_id"], dict(record["e"])
                    )
                )
                destination = record["destination_id"]
                if destination not in visited:
                    visited.add(destination)
                    locations.append(self._node_to_location(dict(record["d"])))
                    next_frontier.append(destination)
            frontier = next_frontier

        return locations, exits

    # ═══════════════════════════════════════════════════════════
    # UTILITY METHODS
    # ═══════════════════════════════════════════════════════════

    async def count_locations(self) -> int:
        """Count location nodes."""
        await self.connect()

        async with self.driver.session(database=self.database) as session:
            result = await session.run("MATCH (l:Location) RETURN count(l) AS count")
            record = await result.single()
            return record["count"] if record else 0

    async def count_exits(self) -> int:
        """Count exit relationships."""
        await self.connect()

        async with self.driver.session(database=self.database) as session:
            result = await session.run("MATCH ()-[e:EXIT]->() RETURN count(e) AS count")
            record = await result.single()
            return record["count"] if record else 0

    async def close(self) -> None:
        """Close the driver."""
        if self.driver is not None:
            await self.driver.close()
            self.driver = None

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    async def _query_exits(
        self, origin_ids: list[str], direction: Direction | None = None
    ) -> list[Exit]:
        await self.connect()

        query = """
            MATCH (o:Location)-[e:EXIT]->(d:Location)
            WHERE o.id IN $ids
        """
        params: dict[str, Any] = {"ids": origin_ids}
        if direction is not None:
            query += " AND e.direction = $direction"
            params["direction"] = direction.value
        query += " RETURN o.id AS origin_id, d.id AS destination_id, e"

        try:
            async with self.driver.session(database=self.database) as session:
                result = await session.run(query, params)
                records = [record async for record in result]
        except Exception as e:
            raise GraphStoreError(
                f"Failed to query exits: {e}", context={"origin_ids": origin_ids}
            ) from e

        return [
            self._rel_to_exit(r["origin_id"], r["destination_id"], dict(r["e"])) for r in records
        ]

    @staticmethod
    def _location_params(location: Location) -> dict[str, Any]:
        return {
            "id": location.id,
            "name": location.name,
            "base_description": location.base_description,
            "terrain": location.terrain.value,
            "state": location.state.value,
            "provenance": location.provenance.model_dump_json() if location.provenance else None,
            "layers": json.dumps([layer.model_dump(mode="json") for layer in location.layers]),
            "pending_exits": json.dumps({d.value: r for d, r in location.pending_exits.items()}),
            "forbidden_exits": json.dumps(
                {d.value: r for d, r in location.forbidden_exits.items()}
            ),
            "created_at": location.created_at.isoformat(),
            "updated_at": location.updated_at.isoformat(),
        }

    @staticmethod
    def _node_to_location(node: dict[str, Any]) -> Location:
        """Convert Neo4j node properties to Location."""
        return Location(
            id=node["id"],
            name=node.get("name", ""),
            base_description=node.get("base_description", ""),
            terrain=TerrainType(node.get("terrain", TerrainType.OPEN_PLAIN.value)),
            state=LocationState(node.get("state", LocationState.STUB.value)),
            provenance=(
                Provenance.model_validate_json(node["provenance"])
                if node.get("provenance")
                else None
            ),
            layers=[
                DescriptionLayer.model_validate(layer)
                for layer in json.loads(node.get("layers") or "[]")
            ],
            pending_exits={
                Direction(d): r for d, r in json.loads(node.get("pending_exits") or "{}").items()
            },
            forbidden_exits={
                Direction(d): r
                for d, r in json.loads(node.get("forbidden_exits") or "{}").items()
            },
            created_at=datetime.fromisoformat(node["created_at"]),
            updated_at=datetime.fromisoformat(node["updated_at"]),
        )

    @staticmethod
    def _rel_to_exit(origin_id: str, destination_id: str, rel: dict[str, Any]) -> Exit:
        """Convert an EXIT relationship to Exit."""
        return Exit(
            origin_id=origin_id,
            destination_id=destination_id,
            direction=Direction(rel["direction"]),
            travel_duration=rel["travel_duration"],
            narrative_hook=rel.get("narrative_hook"),
            source=ExitSource(rel.get("source", ExitSource.GENERATED.value)),
            created_at=(
                datetime.fromisoformat(rel["created_at"])
                if rel.get("created_at")
                else datetime.now()
            ),
        )
