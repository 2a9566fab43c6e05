"""Enums for the auditing system - lifecycle events and modifier directions."""
from enum import Enum


class AuditEventName(str, Enum):
    """Lifecycle events with a built-in attribute strategy."""
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    RESTORED = "restored"
    # Declared, but only audited when a record type lists it explicitly
    RETRIEVED = "retrieved"


# Events audited for every record type regardless of its event configuration
DEFAULT_EVENTS = (
    AuditEventName.CREATED.value,
    AuditEventName.UPDATED.value,
    AuditEventName.DELETED.value,
    AuditEventName.RESTORED.value,
)


class Direction(str, Enum):
    """Direction a value travels through the modifier pipeline."""
    ENCODE = "encode"
    DECODE = "decode"
