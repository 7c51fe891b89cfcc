"""
Shared test fixtures for graph store tests.
"""

import pytest

from worldgraph.core.graph_store.neo4j_store import Neo4jGraphStore
from worldgraph.core.graph_store.sqlite_store import SQLiteGraphStore
from worldgraph.models.direction import Direction
from worldgraph.models.exit import Exit
from worldgraph.models.location import Location, LocationState, Provenance, TerrainType


@pytest.fixture
def neo4j_store():
    """Create Neo4j store for testing."""
    return Neo4jGraphStore(
        uri="bolt://localhost:7687",
        username="neo4j",
        password="password",
        database="neo4j",
    )


@pytest.fixture
async def sqlite_store(tmp_path):
    """Create an initialized SQLite store in a temp directory."""
    store = SQLiteGraphStore(db_path=str(tmp_path / "graph" / "world.db"))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def make_location():
    """Build a crystallized location."""

    def build(location_id: str, description: str | None = None, **kwargs) -> Location:
        return Location(
            id=location_id,
            name=kwargs.pop("name", location_id.removeprefix("loc_").title()),
            base_description=description or f"The place called {location_id} is quiet.",
            state=kwargs.pop("state", LocationState.CRYSTALLIZED),
            terrain=kwargs.pop("terrain", TerrainType.OPEN_PLAIN),
            provenance=kwargs.pop("provenance", Provenance(model="test-model", batch_id="b1")),
            **kwargs,
        )

    return build


@pytest.fixture
def make_exit():
    def build(origin: str, destination: str, direction: Direction, duration: float = 60.0):
        return Exit(
            origin_id=origin,
            destination_id=destination,
            direction=direction,
            travel_duration=duration,
        )

    return build
