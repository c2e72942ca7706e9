# spellapi/errors.py
"""
Error taxonomy for the spell catalog.

Every failure raised by the core carries an ``ErrorKind`` so callers can
classify it structurally (by kind or class) instead of matching on the
message text. ``ErrorKind.status_code`` gives the HTTP status the request
layer answers with.

Not finding a spell is *not* an error: lookups return the empty ``Spell``
sentinel and callers check ``Spell.is_empty``.
"""

from enum import Enum
from typing import Optional


MULTIPLE_MATCHING_SPELLS = "multiple matching spells found"
SPELL_ALREADY_EXISTS = "spell already exists for this system"


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    ALREADY_EXISTS = "already_exists"
    AMBIGUOUS_MATCH = "ambiguous_match"
    DECODE_ERROR = "decode_error"
    STORE_ERROR = "store_error"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.AMBIGUOUS_MATCH: 400,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.DECODE_ERROR: 500,
    ErrorKind.STORE_ERROR: 500,
    ErrorKind.INTERNAL: 500,
}


class CatalogError(Exception):
    """Base class for every classified catalog failure."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return self.kind.status_code


class InvalidInput(CatalogError):
    """A record failed validation or could not be read at all.

    ``field`` names the first missing required field, or is ``None`` when
    the payload itself was malformed.
    """

    kind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    @classmethod
    def missing(cls, field: str) -> "InvalidInput":
        return cls(f"missing required field: {field}", field=field)


class AlreadyExists(CatalogError):
    kind = ErrorKind.ALREADY_EXISTS

    def __init__(self, message: str = SPELL_ALREADY_EXISTS):
        super().__init__(message)


class AmbiguousMatch(CatalogError):
    kind = ErrorKind.AMBIGUOUS_MATCH

    def __init__(self, message: str = MULTIPLE_MATCHING_SPELLS):
        super().__init__(message)


class DecodeError(CatalogError):
    """A stored document could not be turned back into a ``Spell``."""

    kind = ErrorKind.DECODE_ERROR


class StoreError(CatalogError):
    """Opaque failure reported by the document store."""

    kind = ErrorKind.STORE_ERROR


class DuplicateDocument(StoreError):
    """The store rejected a write because of its unique (name, system) index."""


class ConsistencyError(CatalogError):
    """The catalog found the store in a state it cannot act on."""

    kind = ErrorKind.INTERNAL
