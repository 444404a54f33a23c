from typing import Generic, List, TypeVar
from pydantic import BaseModel

T = TypeVar("T")

class Page(BaseModel, Generic[T]):
    page: int
    per_page: int
    total: int
    items: List[T] = []

    @property
    def last_page(self) -> int:
        return max(1, -(-self.total // self.per_page))
