import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session, SQLModel, select

from lostmap.core.interfaces import SERVER_TIMESTAMP, ErrorCallback, SnapshotCallback
from lostmap.models.lost_item import LostItem

logger = logging.getLogger(__name__)

COLLECTIONS: Dict[str, Type[SQLModel]] = {"lost_items": LostItem}

# assigned by the store, never by callers
READ_ONLY_FIELDS = {"id", "created_at"}


class SQLSubscription:
    """
    One live query. Snapshots are numbered by the store; anything older than
    the last delivered snapshot, or arriving after unsubscribe, is dropped.
    """

    def __init__(
        self,
        store: "SQLDocumentStore",
        collection: str,
        order_by: str,
        descending: bool,
        loop: asyncio.AbstractEventLoop,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback],
    ):
        self.store = store
        self.collection = collection
        self.order_by = order_by
        self.descending = descending
        self.loop = loop
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True
        self._last_seq = 0

    def unsubscribe(self) -> None:
        self.active = False
        self.store._remove(self)

    def push(self, seq: int, documents: List[Dict[str, Any]]) -> None:
        self._schedule(self._deliver, seq, documents)

    def fail(self, exc: Exception) -> None:
        self._schedule(self._fail, exc)

    def _schedule(self, callback, *args) -> None:
        try:
            self.loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # subscriber's loop is gone
            logger.warning("Dropping %s subscription, event loop closed", self.collection)
            self.unsubscribe()

    def _deliver(self, seq: int, documents: List[Dict[str, Any]]) -> None:
        if not self.active or seq <= self._last_seq:
            return
        self._last_seq = seq
        self.on_snapshot(documents)

    def _fail(self, exc: Exception) -> None:
        if self.active and self.on_error is not None:
            self.on_error(exc)


class SQLDocumentStore:
    """
    Document-store facade over SQLModel tables.

    Every committed write re-runs each live query on the written collection and
    hands the full ordered result to the subscriber's event loop.
    """

    def __init__(self, engine, collections: Optional[Mapping[str, Type[SQLModel]]] = None):
        self.engine = engine
        self.collections = dict(collections or COLLECTIONS)
        self._lock = threading.RLock()
        self._seq = 0
        self._subscriptions: List[SQLSubscription] = []
        self._pending = set()

    def _model(self, collection: str) -> Type[SQLModel]:
        try:
            return self.collections[collection]
        except KeyError:
            raise LookupError(f"Unknown collection '{collection}'")

    def subscribe(
        self,
        collection: str,
        order_by: str,
        descending: bool,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> SQLSubscription:
        model = self._model(collection)
        if order_by not in model.model_fields:
            raise ValueError(f"Cannot order {collection} by '{order_by}'")

        subscription = SQLSubscription(
            self, collection, order_by, descending,
            asyncio.get_running_loop(), on_snapshot, on_error,
        )
        with self._lock:
            self._subscriptions.append(subscription)

        task = subscription.loop.create_task(self._initial_snapshot(subscription))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        return subscription

    async def _initial_snapshot(self, subscription: SQLSubscription) -> None:
        try:
            seq, documents = await run_in_threadpool(self._snapshot, subscription)
        except Exception as e:
            logger.exception("Initial %s snapshot failed", subscription.collection)
            subscription._fail(e)
            return

        subscription._deliver(seq, documents)

    def _remove(self, subscription: SQLSubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _snapshot(self, subscription: SQLSubscription) -> Tuple[int, List[Dict[str, Any]]]:
        model = self._model(subscription.collection)
        column = getattr(model, subscription.order_by)

        with self._lock:
            self._seq += 1
            seq = self._seq

            with Session(self.engine) as session:
                rows = session.exec(
                    select(model).order_by(
                        column.desc() if subscription.descending else column.asc(),
                        model.id,
                    )
                ).all()

            return seq, [row.model_dump() for row in rows]

    def _publish(self, collection: str) -> None:
        with self._lock:
            subscriptions = [s for s in self._subscriptions if s.collection == collection]

            for subscription in subscriptions:
                try:
                    seq, documents = self._snapshot(subscription)
                except Exception as e:
                    logger.exception("Refreshing %s snapshot failed", collection)
                    subscription.fail(e)
                    continue
                subscription.push(seq, documents)

    def _resolve(self, model: Type[SQLModel], fields: Mapping[str, Any]) -> Dict[str, Any]:
        values = {}
        for field, value in fields.items():
            if field not in model.model_fields:
                raise ValueError(f"Field '{field}' does not exist")
            if value is SERVER_TIMESTAMP:
                value = datetime.now(timezone.utc)
            values[field] = value
        return values

    async def insert(self, collection: str, fields: Mapping[str, Any]) -> str:
        return await run_in_threadpool(self._insert, collection, dict(fields))

    def _insert(self, collection: str, fields: Dict[str, Any]) -> str:
        model = self._model(collection)
        values = self._resolve(model, fields)

        if "id" in values:
            raise ValueError("Field 'id' is assigned by the store")

        with self._lock:
            with Session(self.engine) as session:
                row = model(**values)
                session.add(row)
                session.commit()
                session.refresh(row)
                doc_id = str(row.id)

            logger.info("Inserted %s/%s", collection, doc_id)
            self._publish(collection)

        return doc_id

    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        await run_in_threadpool(self._update, collection, doc_id, dict(fields))

    def _update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        model = self._model(collection)
        values = self._resolve(model, fields)

        for field in values:
            if field in READ_ONLY_FIELDS:
                raise ValueError(f"Field '{field}' cannot be updated")

        with self._lock:
            with Session(self.engine) as session:
                row = session.get(model, doc_id)
                if row is None:
                    raise LookupError(f"{collection}/{doc_id} not found")

                for field, value in values.items():
                    setattr(row, field, value)

                session.add(row)
                session.commit()

            logger.info("Updated %s/%s (%s)", collection, doc_id, ", ".join(sorted(values)))
            self._publish(collection)
