from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import Page

ENTITIES = ("Listing", "OrderItem", "Order", "Todo")

class DataAccessError(Exception):
    """The data backend rejected an operation or could not be reached."""

class RecordNotFound(DataAccessError):
    def __init__(self, entity: str, record_id: str):
        super().__init__(f"{entity} {record_id} not found")
        self.entity = entity
        self.record_id = record_id

class AuthorizationError(DataAccessError):
    pass

class Repository(ABC):
    """Typed CRUDL access to the marketplace records.

    Filters are plain equality maps on camelCase field names, e.g.
    ``{"listingId": "L1"}``. ``list`` returns one page; callers that need
    every match use ``list_all``.
    """

    @abstractmethod
    async def get(self, entity: str, record_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def list(
        self,
        entity: str,
        filter: Optional[Dict[str, Any]] = None,
        *,
        limit: Optional[int] = None,
        next_token: Optional[str] = None,
    ) -> Page:
        ...

    @abstractmethod
    async def update(self, entity: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """``fields`` must carry ``id``. Raises ``RecordNotFound`` for unknown ids."""

    @abstractmethod
    async def create(self, entity: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def list_all(self, entity: str, filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        token: Optional[str] = None
        while True:
            page = await self.list(entity, filter, next_token=token)
            items.extend(page.items)
            token = page.next_token
            if not token:
                return items

    async def aclose(self) -> None:
        pass

def check_entity(entity: str) -> str:
    if entity not in ENTITIES:
        raise ValueError(f"unknown entity {entity!r}")
    return entity
