"""
Audit record construction.

Turns a tracked record plus an event into an immutable AuditRecord: resolve
the event policy, compute the raw diff, normalize and encode the values,
attach actor and request context, then let the record transform the payload.
The builder raises on every failure and returns nothing partial.
"""
import enum
import uuid
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from auditing.exceptions import AuditingError, InvalidEventError
from auditing.models.audit import AuditRecord
from auditing.services.modifiers import ModifierRegistry
from auditing.services.policy import EventPolicy
from auditing.services.resolvers import load_resolver
from auditing.settings import Settings, get_settings


class AuditBuilder:
    """Builds audit records with injected actor and context resolvers."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        resolvers: Optional[Mapping] = None
    ):
        self.settings = settings or get_settings()
        self.resolvers = resolvers

    def normalize_value(self, value: Any) -> Any:
        """Reduce a value to a flat, serializable scalar."""
        if isinstance(value, datetime):
            return value.strftime(self.settings.date_format)
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, enum.Enum):
            return value.value
        if isinstance(value, (Decimal, uuid.UUID)):
            return str(value)
        return value

    def build(self, record: Any, event: Optional[str] = None) -> AuditRecord:
        """
        Build the audit record for ``event`` (defaults to the record's audit event).

        Raises InvalidEventError, MissingStrategyError, InvalidModifierError or
        InvalidResolverError.
        """
        event = event or record.get_audit_event()
        policy = EventPolicy(record, self.settings)
        if policy.resolve_strategy(event) is None:
            raise InvalidEventError(event)

        old_values, new_values = policy.attributes_for(event)

        modifiers = ModifierRegistry.from_record(record)
        old_values = modifiers.encode_values(
            {key: self.normalize_value(value) for key, value in old_values.items()}
        )
        new_values = modifiers.encode_values(
            {key: self.normalize_value(value) for key, value in new_values.items()}
        )

        payload = {
            "event": event,
            "old_values": old_values,
            "new_values": new_values,
            "subject_type": record.get_morph_class(),
            "subject_id": record.get_key(),
            **self.resolve_metadata(),
            "created_at": datetime.utcnow(),
        }
        payload["context"]["tags"] = list(record.generate_tags() or [])

        payload = record.transform_audit(payload)
        if not isinstance(payload, Mapping):
            raise AuditingError(
                f"{type(record).__name__}.transform_audit() must return a mapping, "
                f"got {type(payload).__name__}"
            )

        return AuditRecord(**dict(payload))

    def resolve_metadata(self) -> Dict[str, Any]:
        """Actor, group and request context from the configured resolvers."""
        user = load_resolver("user", self.settings, self.resolvers)
        group = load_resolver("group", self.settings, self.resolvers)
        url = load_resolver("url", self.settings, self.resolvers)
        ip_address = load_resolver("ip_address", self.settings, self.resolvers)
        user_agent = load_resolver("user_agent", self.settings, self.resolvers)

        actor_id, actor_type = user.resolve() or (None, None)
        return {
            "actor_id": None if actor_id is None else str(actor_id),
            "actor_type": actor_type,
            "group_id": _optional_str(group.resolve()),
            "context": {
                "url": url.resolve(),
                "ip_address": ip_address.resolve(),
                "user_agent": user_agent.resolve(),
            },
        }


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)
