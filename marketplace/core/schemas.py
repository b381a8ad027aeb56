from typing import Generic, List, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Enveloppe commune des réponses de l'API."""
    success: bool = True
    data: T


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    limit: int
    offset: int
