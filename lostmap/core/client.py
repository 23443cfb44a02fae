import logging
from typing import Optional

from pydantic import ValidationError as FieldError

from lostmap.core.commit import CommitPipeline
from lostmap.core.draft import Draft, DraftEditor, DraftMode
from lostmap.core.errors import NotFoundError, ValidationError
from lostmap.core.feed import LiveFeedSubscriber
from lostmap.core.geocode import GeocodeResolver
from lostmap.core.interfaces import BlobStore, DocumentStore, GeocodeService, IdentityProvider
from lostmap.core.record_store import RecordStore
from lostmap.core.session import SessionContext
from lostmap.models.report import Location

logger = logging.getLogger(__name__)


class MapClient:
    """
    Everything one user's map needs: who is signed in, the live pins, the
    report being written and the last search marker.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        documents: DocumentStore,
        blobs: BlobStore,
        geocoder: GeocodeService,
        allow_edit_unowned: bool = True,
    ):
        self.identity = identity
        self.session = SessionContext(identity, allow_edit_unowned=allow_edit_unowned)
        self.records = RecordStore(self.session)
        self.feed = LiveFeedSubscriber(documents, self.records)
        self.drafts = DraftEditor(self.session)
        self.pipeline = CommitPipeline(self.drafts, self.session, documents, blobs)
        self.geocoder = GeocodeResolver(geocoder)
        self.search_marker: Optional[Location] = None

    def open(self) -> None:
        self.feed.start()

    def close(self) -> None:
        self.feed.stop()
        self.session.close()

    def click_map(self, latitude: float, longitude: float) -> Draft:
        try:
            position = Location(latitude=latitude, longitude=longitude)
        except FieldError:
            raise ValidationError("That point is not on the map.")
        return self.drafts.begin(DraftMode.CREATE, position=position)

    def start_edit(self, report_id: str) -> Draft:
        report = self.records.get(report_id)
        if report is None:
            raise NotFoundError("Report not found")
        return self.drafts.begin(DraftMode.EDIT, seed=report)

    async def commit(self) -> str:
        return await self.pipeline.commit()

    async def search(self, query: str) -> Location:
        location = await self.geocoder.resolve(query)
        self.search_marker = location
        logger.info("Search marker moved to %s, %s", location.latitude, location.longitude)
        return location

    def clear_search(self) -> None:
        self.search_marker = None
