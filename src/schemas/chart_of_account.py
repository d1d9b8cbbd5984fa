"""
Chart of Account Schemas
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from src.models.chart_of_account import COAType


class ChartOfAccountCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    account_type: COAType
    category: str = Field(..., min_length=1)
    subcategory: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[int] = None
    is_active: bool = True


class ChartOfAccountUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    account_type: Optional[COAType] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[int] = None


class ChartOfAccountResponse(BaseModel):
    id: int
    code: str
    name: str
    account_type: COAType
    category: str
    subcategory: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[int] = None
    is_active: bool
    created_by_id: Optional[int] = None
    updated_by_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DeleteResult(BaseModel):
    deleted: bool
    deactivated: bool
