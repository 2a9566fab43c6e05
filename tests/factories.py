"""Tracked record models and audit factories used across the tests."""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Text
from auditing.database import Base
from auditing.models.audit import Audit, AuditRecord
from auditing.models.auditable import Auditable, audit_strategy


class Article(Base, Auditable):
    """
    A typical tracked record: integer key, timestamps, one date column.
    """
    __tablename__ = "articles"

    audit_type_aliases = ("legacy_articles",)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    reviewed = Column(Integer, nullable=False, default=0)
    published_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    @audit_strategy
    def get_published_event_attributes(self):
        return {"published_at": None}, {"published_at": self.published_at}

    @audit_strategy("get_multi_event_attributes")
    def multi_event_attributes(self):
        return {}, {"title": self.title}


class ApiModel(Base, Auditable):
    """Tracked record with a string key and a logical type name."""
    __tablename__ = "api_models"
    __audit_type__ = "api_models"

    id = Column(String, primary_key=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


def make_article(**overrides) -> Article:
    """Unsaved article with sensible defaults."""
    values = {
        "title": "How To Audit Models",
        "content": "First step: install the package.",
        "reviewed": 0,
        "published_at": None,
    }
    values.update(overrides)
    return Article(**values)


def make_audit_record(**overrides) -> AuditRecord:
    values = {
        "event": "updated",
        "subject_type": Article.get_morph_class(),
        "subject_id": 1,
        "old_values": {},
        "new_values": {},
        "context": {"url": "console", "ip_address": "127.0.0.1", "user_agent": None, "tags": []},
    }
    values.update(overrides)
    return AuditRecord(**values)


def make_audit(db_session, **overrides) -> Audit:
    """Stored audit row."""
    audit = Audit.from_record(make_audit_record(**overrides))
    db_session.add(audit)
    db_session.commit()
    db_session.refresh(audit)
    return audit
