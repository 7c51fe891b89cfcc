"""
Tests for the LLM-backed narrative oracle.

The provider is mocked; these tests cover prompt content, token budgets and
how provider failures map onto oracle errors.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from worldgraph.core.oracle.llm_oracle import (
    LLMNarrativeOracle,
    OracleBatchOutput,
    OracleConsistencyOutput,
)
from worldgraph.models.direction import Direction
from worldgraph.models.generation import BatchRequest, StubDescription, StubRequest
from worldgraph.models.location import Location, TerrainType
from worldgraph.models.reconnection import ConsistencyRequest, ConsistencyVerdict
from worldgraph.utils.exceptions import (
    LLMError,
    LLMTimeoutError,
    OracleResponseError,
    OracleTimeoutError,
    OracleUnavailableError,
    ValidationError,
)


@pytest.fixture
def llm():
    provider = MagicMock()
    provider.model = "llama3.1:8b"
    provider.complete = AsyncMock()
    provider.close = AsyncMock()
    return provider


@pytest.fixture
def batch_request():
    return BatchRequest(
        batch_id="batch_test",
        root_name="Market Square",
        root_description="A cobbled square bustles with stalls.",
        root_terrain=TerrainType.OPEN_PLAIN,
        arrival_direction=Direction.SOUTH,
        stubs=[
            StubRequest(
                stub_id="loc_n",
                parent_name="Market Square",
                direction=Direction.NORTH,
                return_direction=Direction.SOUTH,
                terrain_hint=TerrainType.HILLTOP,
            ),
            StubRequest(
                stub_id="loc_e",
                parent_name="Market Square",
                direction=Direction.EAST,
                return_direction=Direction.WEST,
                terrain_hint=TerrainType.RIVERBANK,
            ),
        ],
    )


@pytest.fixture
def consistency_request():
    return ConsistencyRequest(
        source=Location(id="loc_a", name="Mill", base_description="An old mill."),
        target=Location(id="loc_b", name="Ford", base_description="A shallow ford."),
        direction=Direction.NORTHEAST,
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestGenerateBatch:
    """Test batch description requests."""

    async def test_returns_descriptions(self, llm, batch_request):
        llm.complete.return_value = OracleBatchOutput(
            locations=[
                StubDescription(stub_id="loc_n", name="Beacon Hill"),
                StubDescription(stub_id="loc_e", name="Willow Bank"),
            ]
        )
        oracle = LLMNarrativeOracle(llm)

        response = await oracle.generate_batch(batch_request, deadline=5.0)

        assert response.model == "llama3.1:8b"
        assert response.for_stub("loc_e").name == "Willow Bank"
        assert llm.complete.call_args.kwargs["response_format"] is OracleBatchOutput

    async def test_prompt_carries_context(self, llm, batch_request):
        llm.complete.return_value = OracleBatchOutput()
        oracle = LLMNarrativeOracle(llm)

        await oracle.generate_batch(batch_request, deadline=5.0)

        prompt = llm.complete.call_args.args[0]
        assert "Root location: Market Square (open-plain)" in prompt
        assert "arrived at the root from the south" in prompt
        assert "stub_id=loc_n: north of Market Square" in prompt
        assert "return south" in prompt
        assert "Hilltops offer panoramic views" in prompt
        assert "narrow-corridor" in prompt

    async def test_token_budget_scales_with_batch(self, llm, batch_request):
        llm.complete.return_value = OracleBatchOutput()
        oracle = LLMNarrativeOracle(llm, max_tokens=4000)

        await oracle.generate_batch(batch_request, deadline=5.0)
        assert llm.complete.call_args.kwargs["max_tokens"] == 600

        small = LLMNarrativeOracle(llm, max_tokens=300)
        await small.generate_batch(batch_request, deadline=5.0)
        assert llm.complete.call_args.kwargs["max_tokens"] == 300

    async def test_deadline_maps_to_timeout(self, llm, batch_request):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1.0)

        llm.complete.side_effect = slow
        oracle = LLMNarrativeOracle(llm)

        with pytest.raises(OracleTimeoutError) as exc_info:
            await oracle.generate_batch(batch_request, deadline=0.01)

        assert exc_info.value.retryable
        assert exc_info.value.context["batch_id"] == "batch_test"

    @pytest.mark.parametrize(
        "error,expected,retryable",
        [
            (LLMTimeoutError("slow"), OracleTimeoutError, True),
            (LLMError("connection refused"), OracleUnavailableError, True),
            (ValidationError("not json"), OracleResponseError, False),
        ],
    )
    async def test_provider_errors_mapped(self, llm, batch_request, error, expected, retryable):
        llm.complete.side_effect = error
        oracle = LLMNarrativeOracle(llm)

        with pytest.raises(expected) as exc_info:
            await oracle.generate_batch(batch_request, deadline=5.0)

        assert exc_info.value.retryable is retryable


@pytest.mark.unit
@pytest.mark.asyncio
class TestAssessConsistency:
    """Test consistency judgements."""

    async def test_verdict_parsed(self, llm, consistency_request):
        llm.complete.return_value = OracleConsistencyOutput(
            verdict=" Contradictory ", reason="The mill wall faces north-east."
        )
        oracle = LLMNarrativeOracle(llm)

        assessment = await oracle.assess_consistency(consistency_request, deadline=5.0)

        assert assessment.verdict == ConsistencyVerdict.CONTRADICTORY
        assert assessment.reason == "The mill wall faces north-east."
        prompt = llm.complete.call_args.args[0]
        assert "lead northeast from A and southwest from B" in prompt
        assert llm.complete.call_args.kwargs["temperature"] == 0.0

    async def test_unknown_verdict_is_ambiguous(self, llm, consistency_request):
        llm.complete.return_value = OracleConsistencyOutput(verdict="probably")
        oracle = LLMNarrativeOracle(llm)

        assessment = await oracle.assess_consistency(consistency_request, deadline=5.0)

        assert assessment.verdict == ConsistencyVerdict.AMBIGUOUS

    async def test_close_closes_provider(self, llm):
        await LLMNarrativeOracle(llm).close()

        llm.close.assert_awaited_once()
