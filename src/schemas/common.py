"""
Common Schemas
Shared response envelopes
"""

from pydantic import BaseModel
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Cursor-paginated list"""
    items: List[T]
    next_cursor: Optional[int] = None


class MessageResponse(BaseModel):
    """Plain acknowledgement"""
    success: bool = True
    message: str


class CountResponse(BaseModel):
    count: int
