"""
Contracts for the external services a map client talks to.

Concrete implementations live in lostmap.utils; tests use in-memory fakes.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from pydantic import BaseModel

from lostmap.models.identity import Identity


IdentityCallback = Callable[[Optional[Identity]], None]
SnapshotCallback = Callable[[List[Dict[str, Any]]], None]
ErrorCallback = Callable[[Exception], None]


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


# Field value the document store replaces with its own clock on write
SERVER_TIMESTAMP = _ServerTimestamp()


class GeocodeResult(BaseModel):
    latitude: float
    longitude: float
    display_name: Optional[str] = None


class IdentityProvider(Protocol):
    def on_identity_changed(self, callback: IdentityCallback) -> Callable[[], None]:
        """Register a listener; it fires once right away with the current state."""
        ...

    async def sign_in(self, method: str, **credentials: Any) -> Identity: ...

    async def sign_out(self) -> None: ...


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class DocumentStore(Protocol):
    def subscribe(
        self,
        collection: str,
        order_by: str,
        descending: bool,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """Deliver the full ordered result set now and after every change."""
        ...

    async def insert(self, collection: str, fields: Mapping[str, Any]) -> str: ...

    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None: ...


class BlobStore(Protocol):
    async def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> None: ...

    async def get_retrieval_url(self, key: str) -> str: ...

    async def delete(self, key: str) -> None: ...


class GeocodeService(Protocol):
    async def search(self, text: str) -> List[GeocodeResult]: ...
