# spellapi/models.py
import re
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .errors import DecodeError, InvalidInput

# A letter not preceded by a letter, digit or apostrophe starts a word.
_WORD_START = re.compile(r"(?<![\w'])[^\W\d_]")


def normalize(raw_name: Optional[str]) -> str:
    """Identity/storage form of a spell name (trimmed, lowercase)."""
    return (raw_name or "").strip().lower()


def display(name: str) -> str:
    """Client-facing form of a name: first letter of every word upper-cased.

    Words are split on anything but letters, digits and apostrophes, so
    "fire-bolt" reads "Fire-Bolt" and "3rd" stays "3rd".

    Presentation only. Never compare or store the result.
    """
    return _WORD_START.sub(lambda match: match.group(0).upper(), name)


class SpellMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    system: str = ""
    # Stored but never sent back to clients.
    creator: Optional[str] = None

    @field_validator("system", mode="before")
    @classmethod
    def _system_not_null(cls, value: Any) -> Any:
        return "" if value is None else value


class Spell(BaseModel):
    """A catalog entry.

    ``name`` is always held in its normalized form, whatever casing the
    client submitted. Two spells share an identity when their names and
    ``metadata.system`` are equal. ``Spell()`` (empty name) is the
    "not found" sentinel returned by lookups.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = ""
    description: str = ""
    attributes: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("attributes", "spelldata"),
    )
    metadata: SpellMetadata = Field(default_factory=SpellMetadata)

    @field_validator("name", "description", mode="before")
    @classmethod
    def _text_not_null(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        return normalize(value)

    @field_validator("attributes", "metadata", mode="before")
    @classmethod
    def _mapping_not_null(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def is_empty(self) -> bool:
        return not self.name

    @property
    def identity(self) -> Tuple[str, str]:
        return self.name, self.metadata.system

    def to_wire(self) -> Dict[str, Any]:
        """Representation sent to clients: title-cased name, no creator."""
        wire: Dict[str, Any] = {
            "name": display(self.name),
            "description": self.description,
        }
        if self.attributes:
            wire["attributes"] = dict(self.attributes)
        wire["metadata"] = {"system": self.metadata.system}
        return wire

    def to_document(self) -> Dict[str, Any]:
        """Representation written to the document store."""
        metadata: Dict[str, Any] = {"system": self.metadata.system}
        if self.metadata.creator:
            metadata["creator"] = self.metadata.creator
        return {
            "name": self.name,
            "description": self.description,
            "attributes": dict(self.attributes),
            "metadata": metadata,
        }


def validate(spell: Spell) -> Spell:
    """Check required fields in order name, description, system.

    Only the first missing field is reported.
    """
    if not spell.name:
        raise InvalidInput.missing("name")
    if not spell.description.strip():
        raise InvalidInput.missing("description")
    if not spell.metadata.system.strip():
        raise InvalidInput.missing("system")
    return spell


def _describe(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    if location:
        return f"{location}: {error['msg']}"
    return error["msg"]


def parse_spell(raw: Any) -> Spell:
    """Read a client-supplied record (JSON text or a decoded mapping) and validate it."""
    try:
        if isinstance(raw, (bytes, bytearray, str)):
            spell = Spell.model_validate_json(raw)
        else:
            spell = Spell.model_validate(raw)
    except ValidationError as exc:
        raise InvalidInput(f"malformed spell: {_describe(exc)}") from exc
    return validate(spell)


def parse_decoded(raw: Any) -> Spell:
    """Validate a value already decoded from a JSON body; only objects are spells."""
    if not isinstance(raw, Mapping):
        raise InvalidInput("malformed spell: expected a JSON object")
    return parse_spell(raw)


def decode_document(document: Mapping[str, Any]) -> Spell:
    """Turn a raw stored document back into a ``Spell``."""
    try:
        return Spell.model_validate(document)
    except ValidationError as exc:
        raise DecodeError(f"failed to decode stored spell: {_describe(exc)}") from exc
