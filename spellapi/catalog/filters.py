"""
Filter compiler for spell queries.

Request parameters arrive untyped (``name -> [values]``). They are turned
into a ``Filter``: a conjunction of ``Equals`` and ``MemberOf`` constraints
keyed by document path. The same ``Filter`` renders to a MongoDB query
(``to_mongo``) and can be evaluated in-process (``matches``), so matching
rules live here rather than in each store.

Paths:

* ``name``             -> ``name`` (normalized)
* ``system``           -> ``metadata.system`` (first value only)
* anything else ``k``  -> ``attributes.k`` (any of the supplied values)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..errors import InvalidInput
from ..models import normalize

NAME_PATH = "name"
SYSTEM_KEY = "system"
SYSTEM_PATH = "metadata.system"
ATTRIBUTES_PATH = "attributes"

QueryParams = Mapping[str, Sequence[str]]

_MISSING = object()


def field_path(field_name: str) -> str:
    """Map a logical field name to its storage path.

    Names that are empty, start with ``$`` or contain ``.`` would address
    something other than one attribute and are rejected.
    """
    if field_name == SYSTEM_KEY:
        return SYSTEM_PATH
    if not field_name or field_name.startswith("$") or "." in field_name or "\0" in field_name:
        raise InvalidInput(f"invalid filter field: {field_name!r}", field=field_name)
    return f"{ATTRIBUTES_PATH}.{field_name}"


def _lookup(document: Mapping[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else [value]


@dataclass(frozen=True)
class Equals:
    path: str
    value: Any

    def matches(self, document: Mapping[str, Any]) -> bool:
        stored = _lookup(document, self.path)
        if stored is _MISSING:
            return False
        return any(item == self.value for item in _as_list(stored))

    def to_mongo(self) -> Dict[str, Any]:
        return {self.path: {"$eq": self.value}}


@dataclass(frozen=True)
class MemberOf:
    path: str
    values: Tuple[Any, ...]

    def matches(self, document: Mapping[str, Any]) -> bool:
        stored = _lookup(document, self.path)
        if stored is _MISSING:
            return False
        # A stored list matches when it shares at least one value with the set.
        return any(_member(item, self.values) for item in _as_list(stored))

    def to_mongo(self) -> Dict[str, Any]:
        return {self.path: {"$in": list(self.values)}}


def _member(item: Any, values: Tuple[Any, ...]) -> bool:
    for value in values:
        if isinstance(item, bool) != isinstance(value, bool):
            continue
        if item == value:
            return True
    return False


Constraint = Union[Equals, MemberOf]


@dataclass(frozen=True)
class Filter:
    """Conjunction of constraints. No constraints matches every document."""

    constraints: Tuple[Constraint, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.constraints

    def matches(self, document: Mapping[str, Any]) -> bool:
        return all(constraint.matches(document) for constraint in self.constraints)

    def to_mongo(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        for constraint in self.constraints:
            query.update(constraint.to_mongo())
        return query

    @classmethod
    def of(cls, constraints: Iterable[Constraint]) -> "Filter":
        # Sorted by path so equal parameter sets compile to equal filters
        # whatever order the keys arrived in.
        return cls(tuple(sorted(constraints, key=lambda c: c.path)))

    @classmethod
    def identity(cls, name: str, system: str) -> "Filter":
        """Exact filter for one (name, system) pair."""
        return cls.of([Equals(NAME_PATH, normalize(name)), Equals(SYSTEM_PATH, system)])


def _numeric(value: Any) -> Optional[Union[int, float]]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _candidates(values: Sequence[Any]) -> Tuple[Any, ...]:
    """Supplied values plus their numeric reading, without duplicates.

    Query strings are always text, while stored attributes may be numbers.
    """
    out: List[Any] = []
    for value in values:
        for candidate in (value, _numeric(value)):
            if candidate is None or any(
                type(candidate) is type(seen) and candidate == seen for seen in out
            ):
                continue
            out.append(candidate)
    return tuple(out)


def compile_filter(name: Optional[str] = None, params: Optional[QueryParams] = None) -> Filter:
    """Build a ``Filter`` from an optional identity name and query parameters.

    Parameters
    ----------
    name : Optional[str]
        Spell name. When given, adds an equality constraint on the
        normalized name.
    params : Optional[Mapping[str, Sequence[str]]]
        Multi-valued query parameters. ``system`` uses its first value;
        every other key becomes a membership test on ``attributes.<key>``.
        Keys with no values are ignored.

    Returns
    -------
    Filter
        The conjunction of all constraints. Empty when neither a name nor
        any parameter was supplied.
    """
    constraints: List[Constraint] = []
    if name is not None:
        constraints.append(Equals(NAME_PATH, normalize(name)))

    for key, values in (params or {}).items():
        if isinstance(values, str):
            values = [values]
        if not values:
            continue
        if key == SYSTEM_KEY:
            constraints.append(Equals(SYSTEM_PATH, values[0]))
        else:
            constraints.append(MemberOf(field_path(key), _candidates(values)))

    return Filter.of(constraints)
