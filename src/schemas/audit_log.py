"""
Audit Log Schemas
"""

from pydantic import AliasChoices, BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime

from src.models.audit_log import AuditAction


class AuditLogResponse(BaseModel):
    id: int
    user_id: int
    action: AuditAction
    entity_type: str
    entity_id: Optional[int] = None
    changes: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("extra_metadata", "metadata")
    )
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    chart_of_account_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
