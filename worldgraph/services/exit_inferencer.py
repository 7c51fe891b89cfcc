"""
Exit inference from location prose.

Scores every direction by scanning the description clause by clause:
a direction word next to an affordance (path, stairs, bridge, ...) is a
strong signal, a bare mention a weak one, and a direction word next to an
obstacle (sheer cliff, impassable, ...) a contradiction. Oracle hints are
blended in but never accepted on their own.
"""

import re

from worldgraph.core.directions import normalize_direction
from worldgraph.core.terrain import get_terrain_guidance
from worldgraph.models.direction import ALL_DIRECTIONS, Direction, direction_order
from worldgraph.models.exit import ExitProposal
from worldgraph.models.generation import ExitHint
from worldgraph.models.location import TerrainType
from worldgraph.utils.exceptions import ConfigurationError
from worldgraph.utils.logger import get_logger

logger = get_logger(__name__)

AFFORDANCE_CONFIDENCE = 0.85
MENTION_CONFIDENCE = 0.55
WEAK_MENTION_CONFIDENCE = 0.35
CONTRADICTED_CONFIDENCE = 0.05

# Diagonals precede cardinals so "north-east" is not also read as "north"
_DIRECTION_PATTERNS: list[tuple[Direction, re.Pattern, bool]] = [
    (Direction.NORTHEAST, re.compile(r"\bnorth[\s-]?east(?:ward|wards|ern)?\b"), False),
    (Direction.NORTHWEST, re.compile(r"\bnorth[\s-]?west(?:ward|wards|ern)?\b"), False),
    (Direction.SOUTHEAST, re.compile(r"\bsouth[\s-]?east(?:ward|wards|ern)?\b"), False),
    (Direction.SOUTHWEST, re.compile(r"\bsouth[\s-]?west(?:ward|wards|ern)?\b"), False),
    (Direction.NORTH, re.compile(r"\bnorth(?:ward|wards|ern)?\b"), False),
    (Direction.SOUTH, re.compile(r"\bsouth(?:ward|wards|ern)?\b"), False),
    (Direction.EAST, re.compile(r"\beast(?:ward|wards|ern)?\b"), False),
    (Direction.WEST, re.compile(r"\bwest(?:ward|wards|ern)?\b"), False),
    # Generic words: a bare mention is weak evidence
    (
        Direction.UP,
        re.compile(r"\b(?:up(?:ward|wards|hill|stairs)?|above|ascend\w*|climb\w*)\b"),
        True,
    ),
    (
        Direction.DOWN,
        re.compile(r"\b(?:down(?:ward|wards|hill|stairs)?|below|descend\w*)\b"),
        True,
    ),
    (Direction.IN, re.compile(r"\b(?:inside|inward|indoors|entrance)\b"), True),
    (Direction.OUT, re.compile(r"\b(?:outside|outward|outdoors)\b"), True),
]

_AFFORDANCES = re.compile(
    r"\b(?:path|paths|trail|trails|track|tracks|road|roads|lane|passage|passages|corridor|"
    r"stair|stairs|staircase|steps|ladder|door|doors|doorway|gate|gates|arch|archway|"
    r"bridge|ford|opening|tunnel|route|way|leads?|continues?|opens?|winds?|runs?|"
    r"slopes?|heads?)\b"
)

_OBSTACLES = re.compile(
    r"\b(?:blocked|blocks?|impassable|sheer|cliffs?|walls?|no way|cannot|can't|"
    r"dead[\s-]end|sealed|collapsed|rubble|unclimbable|barred|closed off|impenetrable)\b"
)

_CLAUSE_SPLIT = re.compile(r"[.;:!?,]|\b(?:while|but|whereas|although)\b")


class ExitInferencer:
    """
    Derives exit proposals from a description.

    The return direction is always part of the result: if the prose does not
    support it, it is forced in with full confidence, and if the prose argues
    against it the proposal is flagged as contradicted and a warning logged.
    """

    def __init__(self, confidence_threshold: float = 0.5):
        """
        Args:
            confidence_threshold: Proposals below this confidence are dropped
        """
        self.confidence_threshold = confidence_threshold

    def infer_exits(
        self,
        description: str,
        terrain: TerrainType | str,
        arrival_direction: Direction | None,
        exit_hints: list[ExitHint] | None = None,
    ) -> list[ExitProposal]:
        """
        Infer exits from a location description.

        Args:
            description: Location prose
            terrain: Terrain type, used to flag unusual exit counts
            arrival_direction: Direction leading back to where the traveller came
                from; guaranteed to appear in the result
            exit_hints: Optional oracle hints, blended with the text score

        Returns:
            Proposals sorted by canonical direction order
        """
        scores = self._score_text(description or "")
        hints = self._normalize_hints(exit_hints or [])

        proposals: dict[Direction, ExitProposal] = {}
        for direction in ALL_DIRECTIONS:
            text_conf, reason, contradicted = scores.get(direction, (0.0, "", False))
            confidence = text_conf
            if direction in hints and not contradicted:
                hint = hints[direction]
                confidence = max(text_conf, round((text_conf + hint) / 2, 3))
                reason = f"{reason}; oracle hint {hint:.2f}" if reason else f"oracle hint {hint:.2f}"
            if confidence >= self.confidence_threshold:
                proposals[direction] = ExitProposal(
                    direction=direction,
                    confidence=confidence,
                    reason=reason,
                    contradicted=contradicted,
                )

        if arrival_direction is not None and arrival_direction not in proposals:
            _, _, contradicted = scores.get(arrival_direction, (0.0, "", False))
            if contradicted:
                logger.warning(
                    f"Description contradicts forced return exit {arrival_direction.value}",
                    extra={"direction": arrival_direction.value, "terrain": str(terrain)},
                )
            proposals[arrival_direction] = ExitProposal(
                direction=arrival_direction,
                confidence=1.0,
                reason="forced return path"
                + (" (description implies it is blocked)" if contradicted else ""),
                forced=True,
                contradicted=contradicted,
            )

        result = sorted(proposals.values(), key=lambda p: direction_order(p.direction))
        self._log_terrain_mismatch(terrain, len(result))
        return result

    def find_blocked(self, description: str) -> list[Direction]:
        """Directions the description explicitly rules out."""
        scores = self._score_text(description or "")
        return sorted(
            (d for d, (_, _, contradicted) in scores.items() if contradicted),
            key=direction_order,
        )

    def _score_text(self, description: str) -> dict[Direction, tuple[float, str, bool]]:
        """Best (confidence, reason, contradicted) per direction over all clauses."""
        scores: dict[Direction, tuple[float, str, bool]] = {}
        blocked: set[Direction] = set()

        for clause in _CLAUSE_SPLIT.split(description.lower()):
            if not clause or not clause.strip():
                continue
            remaining = clause
            mentioned: list[tuple[Direction, bool]] = []
            for direction, pattern, weak in _DIRECTION_PATTERNS:
                if pattern.search(remaining):
                    mentioned.append((direction, weak))
                    remaining = pattern.sub(" ", remaining)
            if not mentioned:
                continue
            if any(not weak for _, weak in mentioned):
                # "a path leads north up the hill" is about north, not up
                mentioned = [(d, weak) for d, weak in mentioned if not weak]

            has_obstacle = bool(_OBSTACLES.search(clause))
            has_affordance = bool(_AFFORDANCES.search(clause))
            for direction, weak in mentioned:
                if has_obstacle:
                    blocked.add(direction)
                    continue
                if has_affordance:
                    candidate = (AFFORDANCE_CONFIDENCE, f"route described: '{clause.strip()}'")
                else:
                    candidate = (
                        WEAK_MENTION_CONFIDENCE if weak else MENTION_CONFIDENCE,
                        f"mentioned: '{clause.strip()}'",
                    )
                current = scores.get(direction)
                if current is None or candidate[0] > current[0]:
                    scores[direction] = (candidate[0], candidate[1], False)

        # An explicit obstacle outweighs any mention elsewhere
        for direction in blocked:
            scores[direction] = (CONTRADICTED_CONFIDENCE, "blocked in description", True)

        return scores

    def _normalize_hints(self, hints: list[ExitHint]) -> dict[Direction, float]:
        normalized: dict[Direction, float] = {}
        for hint in hints:
            result = normalize_direction(hint.direction)
            if not result.ok or result.canonical is None:
                continue
            confidence = min(max(hint.confidence, 0.0), 1.0)
            normalized[result.canonical] = max(normalized.get(result.canonical, 0.0), confidence)
        return normalized

    def _log_terrain_mismatch(self, terrain: TerrainType | str, count: int) -> None:
        try:
            guidance = get_terrain_guidance(terrain)
        except ConfigurationError:
            return
        if not guidance.allows(count):
            logger.debug(
                f"{count} exits inferred, terrain {terrain} usually has "
                f"{guidance.min_exits}-{guidance.max_exits}",
                extra={"terrain": str(terrain), "count": count},
            )
