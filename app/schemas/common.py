from typing import Optional, List, Generic, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


# Paginated response wrapper - used by all list endpoints
class PaginatedResponse(BaseModel, Generic[T]):
    success: bool = True
    data: List[T]
    total: int
    page: int
    limit: int
    total_pages: int


# Error responses - every failure leaves the API in this shape
class ErrorResponse(BaseModel):
    success: bool = False
    message: str


class IllegalTransitionError(ErrorResponse):
    current_status: str
    attempted: str


def total_pages(total: int, limit: int) -> int:
    return -(-total // limit) if total else 0


class SweepResult(BaseModel):
    success: bool = True
    scanned: int
    expired: int
    skipped: int
    message: Optional[str] = None
