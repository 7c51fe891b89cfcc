"""
Tests for free-form direction normalization.
"""

import pytest

from worldgraph.core.directions import (
    NormalizationStatus,
    normalize_direction,
    resolve_relative_direction,
)
from worldgraph.models.direction import Direction


class TestNormalizeDirection:
    """Test canonical names, shortcuts and typos."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("north", Direction.NORTH),
            ("  SOUTH ", Direction.SOUTH),
            ("north-east", Direction.NORTHEAST),
            ("South_West", Direction.SOUTHWEST),
            ("n", Direction.NORTH),
            ("NW", Direction.NORTHWEST),
            ("u", Direction.UP),
            ("o", Direction.OUT),
            ("in", Direction.IN),
        ],
    )
    def test_recognized(self, raw, expected):
        result = normalize_direction(raw)

        assert result.ok
        assert result.canonical == expected
        assert result.clarification is None

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_input(self, raw):
        result = normalize_direction(raw)

        assert result.status == NormalizationStatus.UNKNOWN
        assert "cannot be empty" in result.clarification

    def test_single_typo_corrected(self):
        result = normalize_direction("nrth")

        assert result.ok
        assert result.canonical == Direction.NORTH
        assert result.clarification == 'Interpreted "nrth" as "north".'

    def test_typo_matching_two_directions_is_unknown(self):
        # "est" is one edit away from both east and west
        result = normalize_direction("est")

        assert result.status == NormalizationStatus.UNKNOWN
        assert result.canonical is None

    def test_gibberish_unknown(self):
        result = normalize_direction("sideways")

        assert result.status == NormalizationStatus.UNKNOWN
        assert "not a recognized direction" in result.clarification


class TestRelativeDirections:
    """Test left/right/forward/back against a heading."""

    def test_relative_without_heading_is_ambiguous(self):
        result = normalize_direction("left")

        assert result.status == NormalizationStatus.AMBIGUOUS
        assert "previous move" in result.clarification

    @pytest.mark.parametrize(
        "relative,heading,expected",
        [
            ("forward", Direction.NORTH, Direction.NORTH),
            ("back", Direction.NORTH, Direction.SOUTH),
            ("left", Direction.NORTH, Direction.WEST),
            ("right", Direction.NORTH, Direction.EAST),
            ("right", Direction.NORTHWEST, Direction.NORTHEAST),
            ("left", Direction.SOUTHWEST, Direction.SOUTHEAST),
            ("back", Direction.UP, Direction.DOWN),
        ],
    )
    def test_resolved_against_heading(self, relative, heading, expected):
        result = normalize_direction(relative, last_heading=heading)

        assert result.ok
        assert result.canonical == expected

    def test_turn_while_climbing_is_ambiguous(self):
        assert resolve_relative_direction("left", Direction.UP) is None

        result = normalize_direction("left", last_heading=Direction.UP)

        assert result.status == NormalizationStatus.AMBIGUOUS
        assert '"up"' in result.clarification


class TestTypoCorrection:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("soth", Direction.SOUTH),
            ("dwn", Direction.DOWN),
            ("upp", Direction.UP),
            ("sotheast", Direction.SOUTHEAST),
        ],
    )
    def test_single_edit_corrected(self, raw, expected):
        result = normalize_direction(raw)

        assert result.canonical == expected
        assert result.clarification == f'Interpreted "{raw}" as "{expected.value}".'

    def test_two_edits_not_corrected(self):
        result = normalize_direction("wset")

        assert result.status == NormalizationStatus.UNKNOWN
