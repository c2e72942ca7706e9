"""
Pydantic schema definitions for the catalog module.

``SpellOut`` is the client-facing shape of a spell: title-cased name and
no creator. ``BatchRequest`` / ``BatchResult`` carry a multi-spell post
and its per-item outcomes.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SpellMetadataOut(BaseModel):
    system: str


class SpellOut(BaseModel):
    name: str
    description: str
    attributes: Optional[Dict[str, Any]] = None
    metadata: SpellMetadataOut


class MessageResponse(BaseModel):
    message: str


class BatchRequest(BaseModel):
    """Envelope for posting several spells at once: ``{"data": [...]}``.

    Items are kept raw so that each one is decoded, and can fail,
    on its own.
    """

    data: List[Any] = Field(default_factory=list)


class OutcomeStatus(str, Enum):
    CREATED = "created"
    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"
    ERROR = "error"


class BatchOutcome(BaseModel):
    index: int
    status: OutcomeStatus
    response_code: int
    message: str
    # Display name of the spell, when the item could be read at all.
    name: Optional[str] = None


class BatchResult(BaseModel):
    """Per-item outcomes of a batch create, in input order."""

    count: int
    succeeded: bool
    response_code: int
    response_message: str
    items: List[BatchOutcome] = Field(default_factory=list)
