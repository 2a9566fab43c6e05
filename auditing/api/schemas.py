"""Pydantic schemas for audit presentation responses."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict


class AuditResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event: str
    subject_type: str
    subject_id: str
    actor_id: Optional[str]
    actor_type: Optional[str]
    group_id: Optional[str]
    old_values: Optional[Dict[str, Any]]
    new_values: Optional[Dict[str, Any]]
    url: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    tags: Optional[str]
    created_at: datetime


class AuditDetailResponse(BaseModel):
    """Presentation view of one audit."""
    id: int
    metadata: Dict[str, Any]
    modified: Dict[str, Dict[str, Any]]
    tags: List[str] = []


class TransitionResponse(BaseModel):
    """Pending changes a transition would apply. Nothing is saved."""
    audit_id: int
    subject_type: str
    subject_id: str
    use_old_values: bool
    pending: Dict[str, Any]


# Error response
class TransitionErrorResponse(BaseModel):
    """Response when a stored audit cannot be applied."""
    message: str
    incompatibilities: List[str] = []
