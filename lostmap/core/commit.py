import logging
from typing import Any, Dict, Optional

from lostmap.core.draft import DraftEditor, DraftMode, PendingImage
from lostmap.core.errors import AuthRequiredError, UploadError, ValidationError, WriteError
from lostmap.core.feed import REPORTS_COLLECTION
from lostmap.core.interfaces import SERVER_TIMESTAMP, BlobStore, DocumentStore
from lostmap.core.session import SessionContext
from lostmap.utils.s3_service import compress_image, make_upload_key

logger = logging.getLogger(__name__)


class CommitPipeline:
    """
    Turns the current draft into a write against the document store.

    The record store is left alone: a committed report shows up once the live
    feed delivers it.
    """

    def __init__(
        self,
        drafts: DraftEditor,
        session: SessionContext,
        documents: DocumentStore,
        blobs: BlobStore,
        collection: str = REPORTS_COLLECTION,
    ):
        self.drafts = drafts
        self.session = session
        self.documents = documents
        self.blobs = blobs
        self.collection = collection

    async def commit(self) -> str:
        draft = self.drafts.current()
        if draft is None:
            raise ValidationError("No report in progress.")

        draft.ensure_complete()

        identity = self.session.current_identity()
        if identity is None:
            raise AuthRequiredError()

        with self.drafts.committing() as draft:
            uploaded_key: Optional[str] = None
            image_url: Optional[str] = None

            if draft.pending_image is not None:
                uploaded_key, image_url = await self._upload(draft.pending_image)

            try:
                if draft.mode == DraftMode.EDIT:
                    fields: Dict[str, Any] = {"description": draft.description.strip()}
                    if image_url is not None:
                        fields["image_url"] = image_url

                    await self.documents.update(self.collection, draft.target_id, fields)
                    report_id = draft.target_id
                else:
                    report_id = await self.documents.insert(
                        self.collection,
                        {
                            "description": draft.description.strip(),
                            "latitude": draft.position.latitude,
                            "longitude": draft.position.longitude,
                            "created_at": SERVER_TIMESTAMP,
                            "image_url": image_url,
                            "owner_id": identity.uid,
                            "owner_display_name": identity.label,
                        },
                    )
            except Exception as e:
                logger.exception("Saving %s report failed", draft.mode.value)
                if uploaded_key is not None:
                    await self._discard(uploaded_key)
                raise WriteError(f"Error saving report: {e}") from e

        self.drafts.clear(draft)
        logger.info("Committed %s report %s", draft.mode.value, report_id)
        return report_id

    async def _upload(self, image: PendingImage):
        try:
            data, ext, mime = compress_image(image.data)
            key = make_upload_key(image.filename, ext)
            await self.blobs.upload(key, data, mime)
            url = await self.blobs.get_retrieval_url(key)
        except Exception as e:
            logger.exception("Uploading %s failed", image.filename)
            raise UploadError(f"Image upload failed: {e}") from e

        return key, url

    async def _discard(self, key: str) -> None:
        try:
            await self.blobs.delete(key)
        except Exception as e:
            logger.warning("Could not delete orphaned upload %s: %s", key, e)
