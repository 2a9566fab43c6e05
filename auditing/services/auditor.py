"""
Auditor - gates, builds, stores and prunes audits for tracked records.

This is the entry point the service layer calls. Building never touches the
database; storing and pruning go through the record's driver.
"""
from typing import Any, List, Mapping, Optional

from sqlalchemy.orm import Session

from auditing.context import ExecutionContext
from auditing.models.audit import Audit
from auditing.services.builder import AuditBuilder
from auditing.services.drivers import AuditDriver, DatabaseDriver, resolve_driver
from auditing.services.policy import EventPolicy
from auditing.settings import Settings, get_settings
from auditing.structured_logging import get_logger

logger = get_logger(__name__)


class Auditor:
    """Runs the audit pipeline for one database session."""

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        resolvers: Optional[Mapping] = None
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.builder = AuditBuilder(self.settings, resolvers)

    def driver_for(self, record: Any) -> AuditDriver:
        name = getattr(record, "audit_driver", None) or self.settings.driver
        return resolve_driver(name, self.db)

    def execute(
        self,
        record: Any,
        event: Optional[str] = None,
        context: Optional[ExecutionContext] = None
    ) -> Optional[Any]:
        """
        Audit ``event`` on ``record`` if the policy allows it.

        Returns the stored audit, or None when the event is not audited in
        this context. Builder errors propagate unchanged.
        """
        context = context or ExecutionContext()
        event = event or record.get_audit_event()
        policy = EventPolicy(record, self.settings)

        if not policy.is_auditable(event, context):
            logger.debug(
                "audit_skipped",
                audit_event=event,
                subject_type=record.get_morph_class(),
                console=context.running_in_console,
                restoring=context.restoring,
            )
            return None

        audit_record = self.builder.build(record, event)

        driver = self.driver_for(record)
        audit = driver.audit(audit_record)
        driver.prune(record, policy.threshold)

        logger.info(
            "audit_recorded",
            audit_event=event,
            subject_type=audit_record.subject_type,
            subject_id=str(audit_record.subject_id),
            attributes=sorted(set(audit_record.old_values or {}) | set(audit_record.new_values or {})),
        )
        return audit

    def audits_for(self, record: Any) -> List[Audit]:
        """Stored audits of a record, newest first."""
        return DatabaseDriver(self.db).audits_for(record)
