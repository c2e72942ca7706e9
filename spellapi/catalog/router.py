"""
Route definitions for the spell catalog API.

Endpoints:
- GET    /spells/{name}          : one spell by name (+ filters)
- DELETE /spells/{name}          : delete one spell by name (+ filters)
- POST   /spells                 : add a spell, or several with {"data": [...]}
- GET    /spells                 : list spells matching the filters
- GET    /spellmetadata/{name}   : distinct values of a field
- GET    /spellmetadata          : attribute names available as filters

Filters are plain query parameters and may repeat
(``?school=evocation&school=conjuration``). ``system`` narrows to one
ruleset; any other key matches the spell attribute of the same name.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response
from pydantic import ValidationError

from ..errors import CatalogError
from ..flags import (
    DELETE_SPELL,
    GET_SPELL_METADATA,
    GET_SPELL_METADATA_NAMES,
    MULTIPOST_SPELL,
    USER_HEADER,
    FeatureFlags,
)
from ..models import parse_decoded
from .batch import create_many
from .schemas import BatchRequest, MessageResponse, SpellOut
from .service import SpellCatalog

logger = logging.getLogger(__name__)

router = APIRouter(tags=["spells"])


def get_catalog(request: Request) -> SpellCatalog:
    return request.app.state.catalog


def get_flags(request: Request) -> FeatureFlags:
    return request.app.state.flags


def _query_params(request: Request) -> Dict[str, List[str]]:
    """Collect repeated query parameters into ``name -> [values]``."""
    params: Dict[str, List[str]] = {}
    for key, value in request.query_params.multi_items():
        params.setdefault(key, []).append(value)
    return params


def _require_flag(flags: FeatureFlags, request: Request, flag: str) -> None:
    if not flags.is_enabled(flag, request.headers.get(USER_HEADER)):
        raise HTTPException(status_code=403, detail="Forbidden")


def _http_error(exc: CatalogError) -> HTTPException:
    if exc.status_code >= 500:
        logger.error("%s failed: %s", exc.kind.value, exc)
        return HTTPException(status_code=exc.status_code, detail="Internal Server Error")
    return HTTPException(status_code=exc.status_code, detail=exc.message)


@router.get("/spells/{name}", response_model=SpellOut, response_model_exclude_none=True)
def get_spell(
    name: str,
    request: Request,
    catalog: SpellCatalog = Depends(get_catalog),
):
    try:
        spell = catalog.find(name, _query_params(request))
    except CatalogError as exc:
        raise _http_error(exc) from exc
    if spell.is_empty:
        raise HTTPException(status_code=404, detail="Not Found")
    return spell.to_wire()


@router.post("/spells", status_code=201)
def post_spell(
    request: Request,
    response: Response,
    payload: Any = Body(None),
    catalog: SpellCatalog = Depends(get_catalog),
    flags: FeatureFlags = Depends(get_flags),
):
    """Add one spell, or a batch when the body is ``{"data": [...]}``.

    Batches need the ``multipost-spell`` flag. A batch answers 201 when
    every spell was added and 400 otherwise, with one outcome per item.
    """
    is_batch = isinstance(payload, dict) and "data" in payload
    if is_batch and flags.is_enabled(MULTIPOST_SPELL, request.headers.get(USER_HEADER)):
        try:
            batch = BatchRequest.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail="data must be a list of spells") from exc
        result = create_many(catalog, batch.data)
        response.status_code = result.response_code
        return result

    try:
        spell = parse_decoded(payload)
        catalog.create(spell)
    except CatalogError as exc:
        raise _http_error(exc) from exc
    return MessageResponse(message="Spell added")


@router.delete("/spells/{name}", status_code=202, response_model=MessageResponse)
def delete_spell(
    name: str,
    request: Request,
    catalog: SpellCatalog = Depends(get_catalog),
    flags: FeatureFlags = Depends(get_flags),
):
    _require_flag(flags, request, DELETE_SPELL)
    try:
        deleted = catalog.delete(name, _query_params(request))
    except CatalogError as exc:
        raise _http_error(exc) from exc
    if deleted.is_empty:
        raise HTTPException(status_code=404, detail="Not Found")
    return MessageResponse(message="Spell removed")


@router.get("/spells", response_model=List[SpellOut], response_model_exclude_none=True)
def list_spells(request: Request, catalog: SpellCatalog = Depends(get_catalog)):
    try:
        spells = catalog.list_all(_query_params(request))
    except CatalogError as exc:
        raise _http_error(exc) from exc
    return [spell.to_wire() for spell in spells]


@router.get("/spellmetadata/{name}", response_model=Dict[str, List[str]])
def get_spell_metadata(
    name: str,
    request: Request,
    catalog: SpellCatalog = Depends(get_catalog),
    flags: FeatureFlags = Depends(get_flags),
):
    _require_flag(flags, request, GET_SPELL_METADATA)
    try:
        values = catalog.distinct_values(name)
    except CatalogError as exc:
        raise _http_error(exc) from exc
    return {name: values}


@router.get("/spellmetadata", response_model=List[str])
def list_spell_metadata(
    request: Request,
    catalog: SpellCatalog = Depends(get_catalog),
    flags: FeatureFlags = Depends(get_flags),
):
    _require_flag(flags, request, GET_SPELL_METADATA_NAMES)
    try:
        return catalog.distinct_field_names(_query_params(request))
    except CatalogError as exc:
        raise _http_error(exc) from exc
