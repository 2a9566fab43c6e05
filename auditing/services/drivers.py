"""
Audit drivers - where finished audit records go.

The database driver stores audits through the SQLAlchemy session and prunes
a subject's history down to its threshold.
"""
from abc import ABC, abstractmethod
from typing import Any, List

from sqlalchemy.orm import Session

from auditing.exceptions import InvalidDriverError
from auditing.models.audit import Audit, AuditRecord
from auditing.structured_logging import get_logger
from auditing.utils import import_string

logger = get_logger(__name__)


class AuditDriver(ABC):
    """Persistence collaborator for audit records."""

    def __init__(self, db: Session):
        self.db = db

    @abstractmethod
    def audit(self, record: AuditRecord) -> Any:
        """Durably store a finished audit record."""

    @abstractmethod
    def prune(self, auditable: Any, threshold: int) -> bool:
        """Keep only the ``threshold`` most recent audits of a subject."""


class DatabaseDriver(AuditDriver):
    """Stores audits in the audits table."""

    def audit(self, record: AuditRecord) -> Audit:
        audit = Audit.from_record(record)
        self.db.add(audit)
        self.db.commit()
        self.db.refresh(audit)

        logger.debug(
            "audit_stored",
            audit_id=audit.id,
            audit_event=audit.event,
            subject_type=audit.subject_type,
            subject_id=audit.subject_id,
        )
        return audit

    def audits_for(self, auditable: Any) -> List[Audit]:
        """Audits of a subject, newest first."""
        return self.db.query(Audit).filter(
            Audit.subject_type == auditable.get_morph_class(),
            Audit.subject_id == str(auditable.get_key())
        ).order_by(Audit.created_at.desc(), Audit.id.desc()).all()

    def prune(self, auditable: Any, threshold: int) -> bool:
        # 0 or less keeps everything
        if threshold <= 0:
            return False

        for_removal = [audit.id for audit in self.audits_for(auditable)[threshold:]]
        if not for_removal:
            return False

        deleted = self.db.query(Audit).filter(
            Audit.id.in_(for_removal)
        ).delete(synchronize_session=False)
        self.db.commit()

        logger.info(
            "audits_pruned",
            subject_type=auditable.get_morph_class(),
            subject_id=str(auditable.get_key()),
            threshold=threshold,
            deleted=deleted,
        )
        return deleted > 0


def resolve_driver(name: str, db: Session) -> AuditDriver:
    """
    Driver for a configured name.

    "database" selects DatabaseDriver; anything else must be a dotted path to
    an AuditDriver subclass.
    """
    if name == "database":
        return DatabaseDriver(db)

    try:
        driver_class = import_string(name)
    except ImportError:
        raise InvalidDriverError(name)

    if not isinstance(driver_class, type) or not issubclass(driver_class, AuditDriver):
        raise InvalidDriverError(name)

    return driver_class(db)
