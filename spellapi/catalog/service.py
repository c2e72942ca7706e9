"""
Catalog operations over a spell store.

``SpellCatalog`` composes the filter compiler with a ``SpellStore`` and
enforces the catalog rules:

* a name lookup must resolve to at most one spell (``AmbiguousMatch``
  otherwise; narrow it with ``system``),
* a (name, system) identity is created at most once,
* deletes remove exactly the resolved identity, never whatever a loose
  filter would match.

The catalog keeps no state of its own besides the store handle, so one
instance can serve any number of concurrent requests. The existence check
in ``create`` is not atomic with the write; the store's unique index is
what finally rejects a duplicate.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List, Optional

from ..errors import (
    AlreadyExists,
    AmbiguousMatch,
    ConsistencyError,
    DecodeError,
    DuplicateDocument,
    StoreError,
)
from ..models import Spell, decode_document, validate
from .filters import SYSTEM_KEY, Filter, QueryParams, compile_filter, field_path

if TYPE_CHECKING:
    from ..storage import SpellStore

logger = logging.getLogger(__name__)

NOT_FOUND = Spell()


class SpellCatalog:
    def __init__(self, store: "SpellStore"):
        self.store = store

    # ------------------------------------------------------------------
    # Store access with operation context
    # ------------------------------------------------------------------
    def _query(self, operation: str, spell_filter: Filter) -> List[dict]:
        try:
            return self.store.query(spell_filter)
        except StoreError as exc:
            logger.error("%s: query %s failed: %s", operation, spell_filter.to_mongo(), exc)
            raise StoreError(f"{operation}: query failed on store: {exc}") from exc

    @staticmethod
    def _decode(operation: str, document: dict) -> Spell:
        try:
            return decode_document(document)
        except DecodeError as exc:
            logger.error("%s: undecodable document %r: %s", operation, document, exc)
            raise DecodeError(f"{operation}: {exc}") from exc

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def find(self, name: str, params: Optional[QueryParams] = None) -> Spell:
        """Return the single spell matching ``name`` and ``params``.

        Returns the empty ``NOT_FOUND`` spell when nothing matches and
        raises ``AmbiguousMatch`` when more than one spell does.
        """
        spell_filter = compile_filter(name, params)
        results = self._query("find", spell_filter)
        if not results:
            return NOT_FOUND
        if len(results) > 1:
            logger.warning("find: %d spells match %s", len(results), spell_filter.to_mongo())
            raise AmbiguousMatch()
        return self._decode("find", results[0])

    def create(self, spell: Spell) -> Spell:
        """Validate and store a new spell, refusing an existing identity."""
        validate(spell)

        try:
            existing = self.find(spell.name, {SYSTEM_KEY: [spell.metadata.system]})
        except AmbiguousMatch as exc:
            raise ConsistencyError(f"failed to check for existing spells: {exc}") from exc

        if not existing.is_empty and existing.name == spell.name:
            logger.warning("create: %s already exists in %s", spell.name, spell.metadata.system)
            raise AlreadyExists()

        try:
            self.store.insert(spell.to_document())
        except DuplicateDocument as exc:
            # Lost a race with a concurrent create of the same identity.
            logger.warning("create: store rejected duplicate %s: %s", spell.identity, exc)
            raise AlreadyExists() from exc
        except StoreError as exc:
            logger.error("create: insert of %s failed: %s", spell.identity, exc)
            raise StoreError(f"create: failed to add spell to store: {exc}") from exc

        logger.info("Spell %s added to system %s", spell.name, spell.metadata.system)
        return spell

    def delete(self, name: str, params: Optional[QueryParams] = None) -> Spell:
        """Delete the one spell matching ``name`` and ``params``.

        The match is resolved first and the delete is issued for the
        resolved (name, system) pair only. Returns the deleted spell, or
        ``NOT_FOUND`` when nothing matched.
        """
        resolved = self.find(name, params)
        if resolved.is_empty:
            return NOT_FOUND

        try:
            self.store.delete(Filter.identity(resolved.name, resolved.metadata.system))
        except StoreError as exc:
            logger.error("delete: removing %s failed: %s", resolved.identity, exc)
            raise StoreError(f"delete: failed to delete spell from store: {exc}") from exc

        logger.info("Spell %s removed from system %s", resolved.name, resolved.metadata.system)
        return resolved

    def list_all(self, params: Optional[QueryParams] = None) -> List[Spell]:
        results = self._query("list_all", compile_filter(None, params))
        return [self._decode("list_all", document) for document in results]

    def distinct_values(self, field_name: str) -> List[str]:
        """Distinct stored values of ``system`` or of an attribute, as strings."""
        path = field_path(field_name)
        try:
            values = self.store.distinct_values(path)
        except StoreError as exc:
            logger.error("distinct_values: %s failed: %s", path, exc)
            raise StoreError(f"distinct_values: failed to get values of {path}: {exc}") from exc
        return [_as_text(value) for value in values]

    def distinct_field_names(self, params: Optional[QueryParams] = None) -> List[str]:
        # ``params`` is accepted for the request contract but does not narrow
        # the listing yet.
        try:
            return list(self.store.distinct_field_names())
        except StoreError as exc:
            logger.error("distinct_field_names failed: %s", exc)
            raise StoreError(f"distinct_field_names: failed to get field names: {exc}") from exc


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else str(value)
