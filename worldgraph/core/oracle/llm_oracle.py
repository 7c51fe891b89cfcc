"""
LLM-backed narrative oracle.

One structured completion per batch. Provider failures are mapped onto the
oracle error taxonomy so the orchestrator can tell retryable failures from
terminal ones.
"""

import asyncio

from pydantic import BaseModel, Field

from worldgraph.core.llm.base import LLMProvider
from worldgraph.core.oracle.base import NarrativeOracle
from worldgraph.core.terrain import get_terrain_guidance
from worldgraph.models.direction import ALL_DIRECTIONS
from worldgraph.models.generation import BatchRequest, BatchResponse, StubDescription
from worldgraph.models.location import TerrainType
from worldgraph.models.reconnection import (
    ConsistencyAssessment,
    ConsistencyRequest,
    ConsistencyVerdict,
)
from worldgraph.utils.exceptions import (
    LLMError,
    LLMTimeoutError,
    OracleResponseError,
    OracleTimeoutError,
    OracleUnavailableError,
    ValidationError,
)
from worldgraph.utils.logger import get_logger

logger = get_logger(__name__)

TOKENS_PER_LOCATION = 200


class OracleBatchOutput(BaseModel):
    """Structured output requested from the LLM."""

    locations: list[StubDescription] = Field(default_factory=list)


class OracleConsistencyOutput(BaseModel):
    verdict: str = Field(..., description="consistent, contradictory or ambiguous")
    reason: str = ""


class LLMNarrativeOracle(NarrativeOracle):
    """
    Narrative oracle on top of any LLMProvider.

    Features:
    - Terrain guidance injected into the prompt
    - Token budget scaled with batch size
    - Timeouts, outages and parse failures mapped to distinct oracle errors
    """

    def __init__(self, llm: LLMProvider, temperature: float = 0.7, max_tokens: int = 4000):
        """
        Initialize the oracle.

        Args:
            llm: Provider used for completions
            temperature: Sampling temperature for prose
            max_tokens: Upper bound on the completion budget
        """
        self.llm = llm
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def generate_batch(self, request: BatchRequest, deadline: float) -> BatchResponse:
        prompt = self._build_batch_prompt(request)
        budget = min(self.max_tokens, TOKENS_PER_LOCATION * max(1, len(request.stubs)) + 200)

        output = await self._call(
            prompt,
            OracleBatchOutput,
            max_tokens=budget,
            temperature=self.temperature,
            deadline=deadline,
            context={"batch_id": request.batch_id, "stubs": len(request.stubs)},
        )

        logger.debug(
            f"Oracle described {len(output.locations)}/{len(request.stubs)} stubs",
            extra={"batch_id": request.batch_id},
        )
        return BatchResponse(descriptions=output.locations, model=getattr(self.llm, "model", None))

    async def assess_consistency(
        self, request: ConsistencyRequest, deadline: float
    ) -> ConsistencyAssessment:
        prompt = self._build_consistency_prompt(request)

        output = await self._call(
            prompt,
            OracleConsistencyOutput,
            max_tokens=300,
            temperature=0.0,
            deadline=deadline,
            context={"source_id": request.source.id, "target_id": request.target.id},
        )

        try:
            verdict = ConsistencyVerdict(output.verdict.strip().lower())
        except ValueError:
            verdict = ConsistencyVerdict.AMBIGUOUS
        return ConsistencyAssessment(verdict=verdict, reason=output.reason)

    async def close(self) -> None:
        await self.llm.close()

    async def _call(
        self,
        prompt: str,
        response_format: type[BaseModel],
        max_tokens: int,
        temperature: float,
        deadline: float,
        context: dict,
    ):
        try:
            return await asyncio.wait_for(
                self.llm.complete(
                    prompt,
                    response_format=response_format,
                    max_tokens=max_tokens,
                    temperature=temperature,
                ),
                timeout=deadline,
            )
        except (asyncio.TimeoutError, LLMTimeoutError) as e:
            raise OracleTimeoutError(
                f"Oracle exceeded deadline of {deadline}s", context=context
            ) from e
        except ValidationError as e:
            raise OracleResponseError(f"Oracle response unusable: {e}", context=context) from e
        except LLMError as e:
            raise OracleUnavailableError(f"Oracle unavailable: {e}", context=context) from e

    def _build_batch_prompt(self, request: BatchRequest) -> str:
        lines = []
        for stub in request.stubs:
            guidance = get_terrain_guidance(stub.terrain_hint)
            placement = (
                f"{stub.direction.value} of {stub.parent_name}"
                if stub.direction
                else f"the location itself ({stub.parent_name})"
            )
            back = (
                f" A traveller must be able to return {stub.return_direction.value}."
                if stub.return_direction
                else ""
            )
            lines.append(
                f"- stub_id={stub.stub_id}: {placement}; suggested terrain "
                f"{stub.terrain_hint.value}. {guidance.prompt_hint}{back}"
            )

        terrains = ", ".join(t.value for t in TerrainType)
        directions = ", ".join(d.value for d in ALL_DIRECTIONS)
        arrival = (
            f"Travellers arrived at the root from the {request.arrival_direction.value}.\n"
            if request.arrival_direction
            else ""
        )

        return f"""You are describing newly discovered places in a persistent text adventure world.

Root location: {request.root_name} ({request.root_terrain.value})
{request.root_description}
{arrival}
Describe each of the following places in 2-4 sentences of second-person present tense prose.
Mention visible routes onward (paths, stairs, bridges, doors) and the direction they lead,
and mention obstacles that block directions. Do not contradict the root description.

{chr(10).join(lines)}

For each place return: stub_id (unchanged), name (short, evocative), description,
terrain (one of: {terrains}), narrative_hook (one sentence describing the way in),
exit_hints (list of {{direction, confidence}} with direction one of: {directions}).
"""

    def _build_consistency_prompt(self, request: ConsistencyRequest) -> str:
        return f"""Two places in a text adventure may be joined by a new path.

Place A: {request.source.name}
{request.source.base_description}

Place B: {request.target.name}
{request.target.base_description}

The path would lead {request.direction.value} from A and {request.direction.opposite.value} from B.

Answer with verdict "consistent" if both descriptions allow this path, "contradictory"
if either description rules it out (walls, cliffs, water, blocked routes), or "ambiguous"
if you cannot tell. Give a one sentence reason.
"""
