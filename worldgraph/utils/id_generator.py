"""
ID generation utilities for WorldGraph.

Provides consistent ID generation for all entity types:
- Locations: loc_xxx
- Generation batches: batch_xxx
- Staging handles: stage_xxx
- Reconnection candidates: recon_xxx
"""

from uuid import uuid4


def generate_location_id() -> str:
    """
    Generate unique Location ID.

    Returns:
        ID in format "loc_xxx" where xxx is 12 hex characters
    """
    return f"loc_{uuid4().hex[:12]}"


def generate_batch_id() -> str:
    """
    Generate unique GenerationBatch ID.

    Returns:
        ID in format "batch_xxx" where xxx is 12 hex characters
    """
    return f"batch_{uuid4().hex[:12]}"


def generate_staging_id() -> str:
    """Generate unique staging handle ID ("stage_xxx")."""
    return f"stage_{uuid4().hex[:12]}"


def generate_candidate_id() -> str:
    """Generate unique ReconnectionCandidate ID ("recon_xxx")."""
    return f"recon_{uuid4().hex[:12]}"
