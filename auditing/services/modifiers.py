"""
Attribute modifiers applied to audited values.

A modifier is either a redactor (one-way, destroys information) or an
encoder (encode/decode pair, decode exactly inverts encode). Identifiers are
resolved when they are registered, so an unusable identifier fails before
any value is touched.
"""
import base64
import json
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from auditing.exceptions import InvalidModifierError
from auditing.models.enums import Direction
from auditing.utils import import_string


class AttributeModifier(ABC):
    """Base of the modifier variant. Subclass a redactor or an encoder, never this."""
    reversible = False


class AttributeRedactor(AttributeModifier):
    """Irreversible transform applied before an audit is stored."""

    @abstractmethod
    def redact(self, value: Any) -> Any:
        ...


class AttributeEncoder(AttributeModifier):
    """Reversible transform; decode(encode(x)) == x."""
    reversible = True

    @abstractmethod
    def encode(self, value: Any) -> Any:
        ...

    @abstractmethod
    def decode(self, value: Any) -> Any:
        ...


def _masked_length(total: int) -> int:
    # Keep a tenth of the text, but always mask at least one character
    tenth = math.ceil(total / 10)
    return total - tenth if total > tenth else 1


class LeftRedactor(AttributeRedactor):
    """Mask everything but the trailing tenth: 'N/A' -> '##A'."""

    def redact(self, value: Any) -> Any:
        if value is None:
            return None
        text = str(value)
        total = len(text)
        return text[_masked_length(total):].rjust(total, "#")


class RightRedactor(AttributeRedactor):
    """Mask everything but the leading tenth: 'How To Audit' -> 'Ho##########'."""

    def redact(self, value: Any) -> Any:
        if value is None:
            return None
        text = str(value)
        total = len(text)
        return text[:total - _masked_length(total)].ljust(total, "#")


class Base64Encoder(AttributeEncoder):
    """
    Base64 of the JSON form of a value, so ints, floats, bools and strings
    decode to the same type. None passes through.
    """

    def encode(self, value: Any) -> Any:
        if value is None:
            return None
        return base64.b64encode(json.dumps(value).encode("utf-8")).decode("ascii")

    def decode(self, value: Any) -> Any:
        if value is None:
            return None
        return json.loads(base64.b64decode(value).decode("utf-8"))


def resolve_modifier(attribute: str, identifier: Any) -> AttributeModifier:
    """
    Turn a modifier identifier into a modifier instance.

    Accepts an instance, a class, or a dotted import path to a class. Anything
    that is not a redactor or an encoder raises InvalidModifierError.
    """
    candidate = identifier
    if isinstance(candidate, str):
        try:
            candidate = import_string(candidate)
        except ImportError:
            raise InvalidModifierError(attribute, identifier)

    if isinstance(candidate, type):
        if not issubclass(candidate, (AttributeRedactor, AttributeEncoder)):
            raise InvalidModifierError(attribute, identifier)
        try:
            candidate = candidate()
        except TypeError:
            # Abstract or needs constructor arguments
            raise InvalidModifierError(attribute, identifier)

    if not isinstance(candidate, (AttributeRedactor, AttributeEncoder)):
        raise InvalidModifierError(attribute, identifier)

    return candidate


class ModifierRegistry:
    """Attribute name -> resolved modifier."""

    def __init__(self, modifiers: Optional[Mapping[str, Any]] = None):
        self._modifiers: Dict[str, AttributeModifier] = {}
        for attribute, identifier in (modifiers or {}).items():
            self.register(attribute, identifier)

    @classmethod
    def from_record(cls, record: Any) -> "ModifierRegistry":
        return cls(getattr(record, "attribute_modifiers", None) or {})

    def register(self, attribute: str, identifier: Any) -> AttributeModifier:
        modifier = resolve_modifier(attribute, identifier)
        self._modifiers[attribute] = modifier
        return modifier

    def get(self, attribute: str) -> Optional[AttributeModifier]:
        return self._modifiers.get(attribute)

    def redacted_attributes(self) -> List[str]:
        return [
            attribute for attribute, modifier in self._modifiers.items()
            if isinstance(modifier, AttributeRedactor)
        ]

    def has_redactor(self) -> bool:
        return bool(self.redacted_attributes())

    def apply(self, direction: Direction, attribute: str, value: Any) -> Any:
        """
        Pass a value through the attribute's modifier.

        Redacted values cannot be decoded; DECODE returns the stored value as
        is so it can still be displayed. Reconstruction refuses redactors
        before it ever decodes.
        """
        modifier = self._modifiers.get(attribute)
        if modifier is None:
            return value

        if isinstance(modifier, AttributeEncoder):
            if direction == Direction.ENCODE:
                return modifier.encode(value)
            return modifier.decode(value)

        if direction == Direction.ENCODE:
            return modifier.redact(value)
        return value

    def encode_values(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        return {key: self.apply(Direction.ENCODE, key, value) for key, value in values.items()}

    def decode_values(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        return {key: self.apply(Direction.DECODE, key, value) for key, value in values.items()}

    def __contains__(self, attribute: str) -> bool:
        return attribute in self._modifiers

    def __len__(self) -> int:
        return len(self._modifiers)
