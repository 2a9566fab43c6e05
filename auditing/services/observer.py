"""
Lifecycle hooks for tracked records.

The service layer calls these around its own writes:

    observer.updated(article)   # before the commit, while history is intact
    db.commit()

A restore writes the record again, which would otherwise be audited as an
update as well. restore() runs the write under a restoring context so only
the restore itself is audited.
"""
from typing import Any, Callable, Optional

from auditing.context import ExecutionContext
from auditing.models.enums import AuditEventName
from auditing.services.auditor import Auditor
from auditing.structured_logging import get_logger

logger = get_logger(__name__)


class AuditableObserver:
    """Maps record lifecycle events onto the auditor."""

    def __init__(self, auditor: Auditor):
        self.auditor = auditor

    def _execute(self, record: Any, event: AuditEventName, context: Optional[ExecutionContext]):
        record.set_audit_event(event.value)
        return self.auditor.execute(record, event.value, context)

    def retrieved(self, record: Any, context: Optional[ExecutionContext] = None):
        return self._execute(record, AuditEventName.RETRIEVED, context)

    def created(self, record: Any, context: Optional[ExecutionContext] = None):
        return self._execute(record, AuditEventName.CREATED, context)

    def updated(self, record: Any, context: Optional[ExecutionContext] = None):
        return self._execute(record, AuditEventName.UPDATED, context)

    def deleted(self, record: Any, context: Optional[ExecutionContext] = None):
        return self._execute(record, AuditEventName.DELETED, context)

    def restored(self, record: Any, context: Optional[ExecutionContext] = None):
        return self._execute(record, AuditEventName.RESTORED, context)

    def restore(
        self,
        record: Any,
        callback: Callable[[Any, ExecutionContext], Any],
        context: Optional[ExecutionContext] = None
    ):
        """
        Run ``callback(record, restoring_context)`` then audit the restore.

        The restoring context only exists inside the callback, so a failing
        callback cannot leave later updates suppressed. Nothing is audited
        when the callback raises.
        """
        context = context or ExecutionContext()
        try:
            callback(record, context.for_restore())
        except Exception:
            logger.warning(
                "restore_failed",
                subject_type=record.get_morph_class(),
                subject_id=str(record.get_key()),
                exc_info=True,
            )
            raise
        return self.restored(record, context)
