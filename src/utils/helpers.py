"""
Helper Utilities
Common helper functions
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
from datetime import datetime, date
from enum import Enum
from sqlalchemy import func
from sqlalchemy.orm import Session

from src.utils.exceptions import BadRequestError


def generate_document_number(db: Session, column, prefix: str, now: Optional[datetime] = None) -> str:
    """
    Generate a sequential document number

    Args:
        db: Database session
        column: Model column holding the numbers (e.g. Claim.claim_number)
        prefix: Document prefix such as "TR" or "CLM"
        now: Clock override

    Returns:
        str: Number in format PREFIX-YYYY-NNNNN, one past the highest issued this year
    """
    year = (now or datetime.utcnow()).year
    stem = f"{prefix}-{year}-"
    last = db.query(func.max(column)).filter(column.like(f"{stem}%")).scalar()
    sequence = int(last[len(stem):]) + 1 if last else 1
    return f"{stem}{sequence:05d}"


def normalize_phone(phone: Optional[str]) -> str:
    """Strip whitespace and a leading plus sign"""
    if not phone:
        return ""
    cleaned = "".join(phone.split())
    return cleaned[1:] if cleaned.startswith("+") else cleaned


def paginate(query, id_column, limit: int = 50, cursor: Optional[int] = None) -> Tuple[List[Any], Optional[int]]:
    """
    Cursor pagination over a query ordered newest first

    Args:
        query: SQLAlchemy query (not yet ordered)
        id_column: Primary key column used as the cursor
        limit: Page size
        cursor: Id of the first row of the requested page

    Returns:
        Tuple[list, Optional[int]]: (items, next_cursor)
    """
    if cursor is not None:
        query = query.filter(id_column <= cursor)
    rows = query.order_by(id_column.desc()).limit(limit + 1).all()
    next_cursor = None
    if len(rows) > limit:
        next_cursor = rows.pop().id
    return rows, next_cursor


def ensure_no_cycle(start_id: Optional[int], target_id: int, parent_of: Callable[[int], Optional[int]], message: str):
    """
    Walk a parent chain and fail if it reaches the node being re-parented

    Args:
        start_id: Proposed parent id
        target_id: Id of the node whose parent changes
        parent_of: Returns the parent id of a node
        message: Error message for the cycle case

    Raises:
        BadRequestError: If the proposed parent is the node or one of its descendants
    """
    seen = set()
    current = start_id
    while current is not None:
        if current == target_id:
            raise BadRequestError(message)
        if current in seen:
            # Pre-existing loop elsewhere in the tree
            raise BadRequestError(message)
        seen.add(current)
        current = parent_of(current)


def month_key(value: datetime) -> str:
    """Bucket a timestamp as YYYY-MM"""
    return value.strftime("%Y-%m")


def months_back(count: int, now: Optional[datetime] = None) -> List[str]:
    """The last `count` month keys, oldest first, including the current month"""
    now = now or datetime.utcnow()
    year, month = now.year, now.month
    keys = []
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(keys))


def to_jsonable(value: Any) -> Any:
    """Convert a column value to something the JSON column accepts"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def model_snapshot(instance, exclude: Tuple[str, ...] = ("hashed_password",)) -> Dict[str, Any]:
    """
    Column values of a model instance for audit before/after records

    Args:
        instance: SQLAlchemy model instance
        exclude: Column names to leave out

    Returns:
        dict: Column name to JSON-safe value
    """
    return {
        column.key: to_jsonable(getattr(instance, column.key))
        for column in instance.__table__.columns
        if column.key not in exclude
    }


def get_client_ip(request) -> str:
    """
    Get client IP address from request

    Args:
        request: FastAPI request object

    Returns:
        str: Client IP address
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
