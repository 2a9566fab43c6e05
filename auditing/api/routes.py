"""API routes for reading audits and previewing state transitions."""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from auditing.database import get_db
from auditing.exceptions import TransitionError
from auditing.models.audit import Audit
from auditing.models.auditable import resolve_auditable_type
from auditing.services.transition import coerce_key
from auditing.structured_logging import get_logger
from auditing.api.schemas import (
    AuditResponse,
    AuditDetailResponse,
    TransitionResponse,
    TransitionErrorResponse
)

router = APIRouter()
logger = get_logger(__name__)


def _get_audit(db: Session, audit_id: int) -> Audit:
    audit = db.query(Audit).filter(Audit.id == audit_id).first()
    if not audit:
        raise HTTPException(status_code=404, detail="Audit not found")
    return audit


def _load_subject(db: Session, audit: Audit):
    """Live record an audit belongs to, or None if it no longer exists."""
    auditable_class = resolve_auditable_type(audit.subject_type)
    if auditable_class is None:
        return None
    return db.get(auditable_class, coerce_key(auditable_class, audit.subject_id))


@router.get("/audits", response_model=List[AuditResponse])
def list_audits(
    subject_type: Optional[str] = None,
    subject_id: Optional[str] = None,
    event: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db)
):
    """List audits, newest first, optionally for one subject."""
    query = db.query(Audit)
    if subject_type:
        query = query.filter(Audit.subject_type == subject_type)
    if subject_id:
        query = query.filter(Audit.subject_id == subject_id)
    if event:
        query = query.filter(Audit.event == event)
    return query.order_by(Audit.created_at.desc(), Audit.id.desc()).limit(limit).all()


@router.get("/audits/{audit_id}", response_model=AuditDetailResponse)
def get_audit(audit_id: int, db: Session = Depends(get_db)):
    """
    Show one audit: metadata plus the modified attributes.
    Encoded values are decoded when the subject still exists.
    """
    audit = _get_audit(db, audit_id)
    subject = _load_subject(db, audit)
    return AuditDetailResponse(
        id=audit.id,
        metadata=audit.get_metadata(),
        modified=audit.get_modified(subject),
        tags=audit.get_tags()
    )


@router.post("/audits/{audit_id}/transition", response_model=TransitionResponse, responses={
    409: {"model": TransitionErrorResponse, "description": "Audit cannot be applied to the subject"}
})
def preview_transition(audit_id: int, old: bool = False, db: Session = Depends(get_db)):
    """
    Show the pending changes that transitioning the subject to this audit would make.

    The subject is never saved; the session is rolled back afterwards.
    """
    audit = _get_audit(db, audit_id)
    subject = _load_subject(db, audit)
    if subject is None:
        raise HTTPException(status_code=404, detail="Audited record not found")

    try:
        subject.transition_to(audit, old=old)
        pending = subject.get_dirty()
    except TransitionError as e:
        logger.info("transition_refused", audit_id=audit_id, reason=e.message)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": e.message,
                "incompatibilities": getattr(e, "incompatibilities", [])
            }
        )
    finally:
        db.rollback()

    return TransitionResponse(
        audit_id=audit.id,
        subject_type=audit.subject_type,
        subject_id=audit.subject_id,
        use_old_values=old,
        pending=pending
    )
