"""
Audit models.

AuditRecord is the immutable value the builder produces. Audit is its
persisted form in the audits table; rows are written once by a driver and
only ever deleted by pruning.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Column, String, Integer, DateTime, Text, JSON, Index

from auditing.database import Base
from auditing.models.enums import Direction
from auditing.services.modifiers import ModifierRegistry
from auditing.settings import get_settings


class AuditRecord(BaseModel):
    """
    Immutable diff snapshot of one lifecycle event on a tracked record.

    old_values and new_values share their key set, except for created and
    restored audits (old_values empty) and deleted audits (new_values empty).

    A record's transform_audit() hook may add, drop or retype any key, so
    fields are not validated: keys the hook removes fall back to their
    defaults and keys it adds are kept as extra fields.
    """
    model_config = ConfigDict(frozen=True, extra="allow")

    event: Any = None
    old_values: Any = Field(default_factory=dict)
    new_values: Any = Field(default_factory=dict)
    subject_type: Any = None
    subject_id: Any = None
    actor_id: Any = None
    actor_type: Any = None
    group_id: Any = None
    context: Any = Field(default_factory=dict)
    created_at: Any = Field(default_factory=datetime.utcnow)

    def _context(self) -> Dict[str, Any]:
        return self.context if isinstance(self.context, dict) else {}

    @property
    def url(self) -> Optional[str]:
        return self._context().get("url")

    @property
    def ip_address(self) -> Optional[str]:
        return self._context().get("ip_address")

    @property
    def user_agent(self) -> Optional[str]:
        return self._context().get("user_agent")

    @property
    def tags(self) -> List[str]:
        return list(self._context().get("tags") or [])


class Audit(Base):
    """
    Stored audit row.

    Invariants:
    - Written once by a driver, never edited
    - Deleted only by threshold pruning
    """
    __tablename__ = "audits"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    actor_type = Column(String, nullable=True)
    actor_id = Column(String, nullable=True)
    group_id = Column(String, nullable=True)
    event = Column(String, nullable=False, index=True)
    subject_type = Column(String, nullable=False)
    subject_id = Column(String, nullable=False)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    url = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String, nullable=True)
    tags = Column(String, nullable=True)  # comma separated
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_audits_subject", "subject_type", "subject_id"),
        Index("ix_audits_actor", "actor_id", "actor_type"),
    )

    @classmethod
    def from_record(cls, record: AuditRecord) -> "Audit":
        tags = record.tags
        created_at = record.created_at if isinstance(record.created_at, datetime) else datetime.utcnow()
        return cls(
            actor_type=record.actor_type,
            actor_id=None if record.actor_id is None else str(record.actor_id),
            group_id=None if record.group_id is None else str(record.group_id),
            event=record.event,
            subject_type=record.subject_type,
            subject_id=None if record.subject_id is None else str(record.subject_id),
            old_values=record.old_values,
            new_values=record.new_values,
            url=record.url,
            ip_address=record.ip_address,
            user_agent=record.user_agent,
            tags=",".join(str(tag) for tag in tags) if tags else None,
            created_at=created_at,
            updated_at=created_at,
        )

    def to_record(self) -> AuditRecord:
        return AuditRecord(
            event=self.event,
            old_values=self.old_values or {},
            new_values=self.new_values or {},
            subject_type=self.subject_type,
            subject_id=self.subject_id,
            actor_id=self.actor_id,
            actor_type=self.actor_type,
            group_id=self.group_id,
            context={
                "url": self.url,
                "ip_address": self.ip_address,
                "user_agent": self.user_agent,
                "tags": self.get_tags(),
            },
            created_at=self.created_at,
        )

    # Presentation

    def get_tags(self) -> List[str]:
        if not self.tags:
            return []
        return [tag for tag in self.tags.split(",") if tag]

    def resolve_data(self, auditable: Any = None) -> Dict[str, Any]:
        """
        Flatten the audit into audit_*, user_*, new_* and old_* keys.

        new_* and old_* values are decoded through the subject's encoders when
        the live subject is given.
        """
        data = {
            "audit_id": self.id,
            "audit_event": self.event,
            "audit_url": self.url,
            "audit_ip_address": self.ip_address,
            "audit_user_agent": self.user_agent,
            "audit_tags": self.tags,
            "audit_created_at": _serialize(self.created_at),
            "audit_updated_at": _serialize(self.updated_at),
            "user_id": self.actor_id,
            "user_type": self.actor_type,
            "group_id": self.group_id,
        }
        modifiers = _registry_for(auditable)
        for key, value in (self.new_values or {}).items():
            data[f"new_{key}"] = _serialize(modifiers.apply(Direction.DECODE, key, value))
        for key, value in (self.old_values or {}).items():
            data[f"old_{key}"] = _serialize(modifiers.apply(Direction.DECODE, key, value))
        return data

    def get_metadata(self) -> Dict[str, Any]:
        return {
            key: value for key, value in self.resolve_data().items()
            if not key.startswith(("new_", "old_"))
        }

    def get_modified(self, auditable: Any = None) -> Dict[str, Dict[str, Any]]:
        """Attribute -> {"old": value, "new": value}, each side present only if stored."""
        modified: Dict[str, Dict[str, Any]] = {}
        for key, value in self.resolve_data(auditable).items():
            state, _, attribute = key.partition("_")
            if state in ("new", "old") and attribute:
                modified.setdefault(attribute, {})[state] = value
        return modified


def _registry_for(auditable: Any) -> ModifierRegistry:
    if auditable is None:
        return ModifierRegistry()
    return ModifierRegistry.from_record(auditable)


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.strftime(get_settings().date_format)
    if isinstance(value, date):
        return value.isoformat()
    return value
