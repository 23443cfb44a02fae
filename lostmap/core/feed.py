import logging
from typing import Any, Dict, List, Optional

from lostmap.core.interfaces import DocumentStore, Subscription
from lostmap.core.record_store import RecordStore
from lostmap.models.report import Report

logger = logging.getLogger(__name__)

REPORTS_COLLECTION = "lost_items"


class LiveFeedSubscriber:
    """Keeps a RecordStore in step with the live lost_items query."""

    def __init__(
        self,
        documents: DocumentStore,
        records: RecordStore,
        collection: str = REPORTS_COLLECTION,
    ):
        self.documents = documents
        self.records = records
        self.collection = collection
        self._subscription: Optional[Subscription] = None
        # Identifies the current subscription; deliveries carrying an older
        # token arrived after stop() and must not touch the store.
        self._token: Optional[object] = None
        self.snapshots_applied = 0

    @property
    def active(self) -> bool:
        return self._subscription is not None

    def start(self) -> None:
        if self._subscription is not None:
            return

        token = object()
        self._token = token
        self._subscription = self.documents.subscribe(
            self.collection,
            order_by="created_at",
            descending=True,
            on_snapshot=lambda docs: self._on_snapshot(token, docs),
            on_error=lambda exc: self._on_error(token, exc),
        )
        logger.info("Subscribed to %s feed", self.collection)

    def stop(self) -> None:
        subscription = self._subscription
        self._subscription = None
        self._token = None

        if subscription is not None:
            subscription.unsubscribe()
            logger.info("Unsubscribed from %s feed", self.collection)

    def _on_snapshot(self, token: object, documents: List[Dict[str, Any]]) -> None:
        if token is not self._token:
            logger.debug("Dropping snapshot delivered after teardown")
            return

        reports = []
        for doc in documents:
            try:
                reports.append(Report.from_document(doc))
            except ValueError as e:
                logger.warning("Skipping malformed %s document: %s", self.collection, e)

        self.records.replace_all(reports)
        self.snapshots_applied += 1

    def _on_error(self, token: object, exc: Exception) -> None:
        if token is not self._token:
            return
        logger.error("Feed error on %s, keeping last snapshot: %s", self.collection, exc)
