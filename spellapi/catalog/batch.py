"""
Batch creation of spells.

Each input item is decoded and created independently. A failing item is
recorded and the loop moves on; items created before it stay created.
"""

import logging
from typing import Any, Iterable, List

from ..errors import AlreadyExists, CatalogError, ErrorKind, InvalidInput
from ..models import display, parse_decoded
from .schemas import BatchOutcome, BatchResult, OutcomeStatus
from .service import SpellCatalog

logger = logging.getLogger(__name__)

ALL_CREATED_MESSAGE = "Spell(s) added"
SOME_FAILED_MESSAGE = (
    "Some errors occurred while processing input. See items for more details."
)


def _create_one(catalog: SpellCatalog, index: int, raw: Any) -> BatchOutcome:
    try:
        spell = parse_decoded(raw)
    except InvalidInput as exc:
        return BatchOutcome(
            index=index,
            status=OutcomeStatus.INVALID_INPUT,
            response_code=exc.status_code,
            message=exc.message,
        )

    name = display(spell.name)
    try:
        catalog.create(spell)
    except AlreadyExists as exc:
        return BatchOutcome(
            index=index,
            status=OutcomeStatus.CONFLICT,
            response_code=exc.status_code,
            message=exc.message,
            name=name,
        )
    except CatalogError as exc:
        logger.error("create_many: item %d (%s) failed: %s", index, spell.name, exc)
        return BatchOutcome(
            index=index,
            status=OutcomeStatus.ERROR,
            response_code=ErrorKind.INTERNAL.status_code,
            message=exc.message,
            name=name,
        )

    return BatchOutcome(
        index=index,
        status=OutcomeStatus.CREATED,
        response_code=201,
        message="Spell added",
        name=name,
    )


def create_many(catalog: SpellCatalog, items: Iterable[Any]) -> BatchResult:
    """Create every item, collecting one outcome per item in input order."""
    outcomes: List[BatchOutcome] = [
        _create_one(catalog, index, raw) for index, raw in enumerate(items)
    ]
    failed = [o for o in outcomes if o.status is not OutcomeStatus.CREATED]
    if failed:
        logger.warning("create_many: %d of %d spells failed", len(failed), len(outcomes))

    return BatchResult(
        count=len(outcomes),
        succeeded=not failed,
        response_code=400 if failed else 201,
        response_message=SOME_FAILED_MESSAGE if failed else ALL_CREATED_MESSAGE,
        items=outcomes,
    )
