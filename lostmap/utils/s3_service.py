import io
import os
import time
import logging
import threading
from typing import Optional, Tuple
from PIL import Image, ImageOps
import boto3
from fastapi.concurrency import run_in_threadpool
from slugify import slugify

logger = logging.getLogger(__name__)

FOLDER = "lost_items"
SIGNED_URL_MAX_EXPIRY = 7 * 24 * 3600  # SigV4 limit

_key_lock = threading.Lock()
_last_key_ts = 0


# Tried in order; Pillow builds without libwebp fall through to JPEG
ENCODINGS = (
    ("WEBP", "webp", "image/webp", {"method": 6}),
    ("JPEG", "jpg", "image/jpeg", {"optimize": True}),
)


def compress_image(data: bytes, max_width=1400, quality=80) -> Tuple[bytes, str, str]:
    with Image.open(io.BytesIO(data)) as source:
        # phone cameras store rotation in EXIF rather than in the pixels
        img = ImageOps.exif_transpose(source).convert("RGB")

    if img.width > max_width:
        height = round(img.height * max_width / img.width)
        img = img.resize((max_width, height), Image.Resampling.LANCZOS)

    for fmt, ext, mime, options in ENCODINGS:
        buffer = io.BytesIO()
        try:
            img.save(buffer, format=fmt, quality=quality, **options)
        except (OSError, KeyError) as e:
            logger.warning("%s encoding failed: %s", fmt, e)
            continue
        return buffer.getvalue(), ext, mime

    raise OSError("No usable image encoder")


def _next_timestamp_ms() -> int:
    global _last_key_ts

    with _key_lock:
        ts = int(time.time() * 1000)
        if ts <= _last_key_ts:
            ts = _last_key_ts + 1
        _last_key_ts = ts
        return ts


def make_upload_key(original_name: str, ext: str) -> str:
    """Timestamp-prefixed key; the timestamp never repeats within a process."""
    base = slugify(os.path.splitext(os.path.basename(original_name))[0]) or "photo"
    ts = _next_timestamp_ms()
    return f"{FOLDER}/{ts}_{base}.{ext}"


class S3BlobStore:
    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        public_base_url: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self.public_base_url = public_base_url
        self.s3 = client or boto3.client(
            service_name="s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            region_name="auto",
        )

    async def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        extra = {"ContentType": content_type} if content_type else None
        await run_in_threadpool(
            self.s3.upload_fileobj, io.BytesIO(data), self.bucket, key, ExtraArgs=extra
        )
        logger.info("Uploaded %s (%d bytes)", key, len(data))

    async def get_retrieval_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"

        return self.s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=SIGNED_URL_MAX_EXPIRY,
        )

    async def delete(self, key: str) -> None:
        await run_in_threadpool(self.s3.delete_object, Bucket=self.bucket, Key=key)
        logger.info("Deleted %s", key)
