"""
State transitions.

Reconstructs a record's state at the time of a stored audit by applying one
side of the audit's diff onto the live record as pending changes. Every check
runs before the first assignment, so a failed transition leaves the record
exactly as it was. Nothing is flushed or committed here.
"""
from datetime import date, datetime
from typing import Any, Dict, List

from sqlalchemy import Date, DateTime
from sqlalchemy import inspect as sa_inspect

from auditing.exceptions import (
    IdentityMismatchError,
    IncompatibleSchemaError,
    IrreversibleModifierError,
    TypeMismatchError,
)
from auditing.models.enums import Direction
from auditing.services.modifiers import ModifierRegistry


def normalize_key(value: Any, numeric: bool = True) -> Any:
    """
    Comparable form of a key value.

    With ``numeric`` set, 1 and "1" compare equal; otherwise every part is
    compared as text, so "7" and "007" stay distinct.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value if numeric else str(value)
    if isinstance(value, str):
        text = value.strip()
        if numeric and text.lstrip("-").isdigit():
            return int(text)
        return value
    if isinstance(value, tuple):
        return tuple(normalize_key(part, numeric) for part in value)
    return str(value) if value is not None else None


def integer_key_columns(record_class: Any) -> List[bool]:
    """One flag per primary key column: True where the column holds integers."""
    flags = []
    for column in sa_inspect(record_class).primary_key:
        try:
            flags.append(issubclass(column.type.python_type, int))
        except NotImplementedError:
            flags.append(False)
    return flags


def coerce_key(record_class: Any, value: Any) -> Any:
    """Key value in the form the record class's primary key columns hold."""
    flags = integer_key_columns(record_class)
    if isinstance(value, tuple) and len(value) == len(flags):
        return tuple(normalize_key(part, flag) for part, flag in zip(value, flags))
    if len(flags) == 1:
        return normalize_key(value, flags[0])
    return normalize_key(value, numeric=False)


def check_type(record: Any, audit: Any) -> None:
    if audit.subject_type not in type(record).get_type_names():
        raise TypeMismatchError(record.get_morph_class(), audit.subject_type)


def check_identity(record: Any, audit: Any) -> None:
    expected = record.get_key()
    if coerce_key(type(record), audit.subject_id) == coerce_key(type(record), expected):
        return
    # Composite keys are stored as the text of the tuple
    if isinstance(expected, tuple) and str(audit.subject_id) == str(expected):
        return
    raise IdentityMismatchError(expected, audit.subject_id)


def check_modifiers(modifiers: ModifierRegistry) -> None:
    redacted = modifiers.redacted_attributes()
    if redacted:
        raise IrreversibleModifierError(redacted)


def incompatible_keys(record: Any, values: Dict[str, Any]) -> List[str]:
    """Stored keys the record has no assignable column for."""
    assignable = set(record.get_column_names())
    return [key for key in values if key not in assignable]


def _coerce(record: Any, key: str, value: Any) -> Any:
    # Dates were stored as strings; hand the column a native value again
    if not isinstance(value, str):
        return value
    column_type = sa_inspect(type(record)).columns[key].type
    try:
        if isinstance(column_type, DateTime):
            return datetime.fromisoformat(value)
        if isinstance(column_type, Date):
            return date.fromisoformat(value[:10])
    except ValueError:
        return value
    return value


def transition(record: Any, audit: Any, use_old_values: bool = False) -> Any:
    """
    Apply ``audit.old_values`` (or ``new_values``) onto ``record``.

    Checks run in order and the first failure wins: subject type, subject
    identity, redactors, schema compatibility. Returns the same record with
    the applied values pending.
    """
    check_type(record, audit)
    check_identity(record, audit)

    modifiers = ModifierRegistry.from_record(record)
    check_modifiers(modifiers)

    values = dict((audit.old_values if use_old_values else audit.new_values) or {})
    incompatibilities = incompatible_keys(record, values)
    if incompatibilities:
        raise IncompatibleSchemaError(
            f"Incompatibility between [{record.get_morph_class()}:{record.get_key()}] "
            f"and [{type(audit).__name__}:{getattr(audit, 'id', None)}]",
            incompatibilities,
        )

    decoded = {
        key: _coerce(record, key, modifiers.apply(Direction.DECODE, key, value))
        for key, value in values.items()
    }
    for key, value in decoded.items():
        setattr(record, key, value)

    return record
