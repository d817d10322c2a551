"""
Attachment resolver.

Turns whatever the caller sent into a single ImageReference, or None when
there is no image to analyse. "No image" is a normal outcome, never an
exception; the router answers it with an upload prompt.

Entry points and their resolution strategies:
  - chat webhook (JSON)   first attachment → first non-empty URL field
  - file upload           named multipart file → temp file → base64 string
  - direct URL            imageUrl body field, passed through as-is

Chat platform attachment field assumptions
------------------------------------------
Only the FIRST attachment is examined. Its URL may arrive under any of these
keys; they are tried in _URL_EXTRACTORS order and the first non-empty string
wins:

  url, file_url, download_url, link, preview_url, thumbnail_url

If the platform adds a new key, only _URL_EXTRACTORS needs updating.
"""

import base64
import logging
import os
import tempfile
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Union

from fastapi import UploadFile

from food_relay.models.analysis import Base64Image, RemoteImageUrl
from food_relay.models.chat_event import InboundEvent

logger = logging.getLogger(__name__)

# Upload copy chunk size for spooling to disk
_CHUNK_SIZE = 1024 * 1024


# ---------------------------------------------------------------------------
# Attachment URL extraction
# ---------------------------------------------------------------------------

def _field_extractor(field: str) -> Callable[[dict], Optional[str]]:
    """Build an extractor returning attachment[field] when it is a non-empty string."""

    def extract(attachment: dict) -> Optional[str]:
        value = attachment.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    extract.__name__ = f"extract_{field}"
    return extract


# Fixed priority list, not a search.
_URL_FIELDS = ("url", "file_url", "download_url", "link", "preview_url", "thumbnail_url")

_URL_EXTRACTORS: list[Callable[[dict], Optional[str]]] = [
    _field_extractor(field) for field in _URL_FIELDS
]


def first_attachment(event: InboundEvent) -> Optional[dict[str, Any]]:
    """
    Return the first attachment record of an event, or None.

    The top-level ``attachments`` list is preferred; when it is absent the
    ``message.attachments`` list is used. Any entries after the first are
    ignored.
    """
    attachments = event.attachments
    if attachments is None and isinstance(event.message, dict):
        nested = event.message.get("attachments")
        if isinstance(nested, list):
            attachments = nested

    if not attachments:
        return None

    first = attachments[0]
    if not isinstance(first, dict):
        logger.warning(f"Ignoring non-object attachment record: {type(first).__name__}")
        return None
    return first


def resolve_attachment_url(attachment: dict[str, Any]) -> Optional[RemoteImageUrl]:
    """Apply the extractors in priority order; None when no field holds a URL."""
    for extractor in _URL_EXTRACTORS:
        url = extractor(attachment)
        if url:
            return RemoteImageUrl(url=url)
    return None


def resolve_event_image(event: InboundEvent) -> Optional[RemoteImageUrl]:
    """Resolve an InboundEvent straight to an image reference (or None)."""
    attachment = first_attachment(event)
    if attachment is None:
        return None
    return resolve_attachment_url(attachment)


def resolve_direct_url(image_url: Optional[str]) -> Optional[RemoteImageUrl]:
    """Wrap the imageUrl of a direct pass-through request."""
    if image_url and image_url.strip():
        return RemoteImageUrl(url=image_url.strip())
    return None


def resolve_direct_image(
    image_url: Optional[str],
    image_base64: Optional[str] = None,
) -> Optional[Union[RemoteImageUrl, Base64Image]]:
    """
    Resolve a direct pass-through body. imageUrl wins; an inline imageBase64
    (with or without a data: prefix) is used only when no URL was given.
    """
    remote = resolve_direct_url(image_url)
    if remote is not None:
        return remote
    data = strip_data_url_prefix(image_base64 or "")
    return Base64Image(data=data) if data else None


# ---------------------------------------------------------------------------
# Base64 helpers
# ---------------------------------------------------------------------------

def strip_data_url_prefix(b64: str) -> str:
    """
    Remove a data URL prefix, leaving the bare base64 payload:
      data:image/jpeg;base64,/9j/4AAQSk...  ->  /9j/4AAQSk...
    """
    s = (b64 or "").strip()
    if "base64," in s:
        return s.split("base64,", 1)[-1].strip()
    if s.startswith("data:") and "," in s:
        return s.split(",", 1)[-1].strip()
    return s


def encode_bytes(content: bytes) -> Base64Image:
    return Base64Image(data=base64.b64encode(content).decode("ascii"))


def encode_file(path: str) -> Base64Image:
    """Read a file fully and return its base64 encoding."""
    with open(path, "rb") as fh:
        return encode_bytes(fh.read())


# ---------------------------------------------------------------------------
# Multipart uploads
# ---------------------------------------------------------------------------

@contextmanager
def spooled_upload(upload: UploadFile, tmp_dir: Optional[str] = None) -> Iterator[str]:
    """
    Copy an uploaded file to a request-scoped temp file and yield its path.

    The temp file is removed when the block exits, whether it returns
    normally or raises.
    """
    suffix = os.path.splitext(upload.filename or "")[1].lower()
    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix, dir=tmp_dir) as tmp_file:
        tmp_path = tmp_file.name
        try:
            upload.file.seek(0)
            while True:
                chunk = upload.file.read(_CHUNK_SIZE)
                if not chunk:
                    break
                tmp_file.write(chunk)
        except Exception:
            tmp_file.close()
            os.unlink(tmp_path)
            raise

    try:
        yield tmp_path
    finally:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass


def resolve_upload(
    upload: Optional[UploadFile],
    tmp_dir: Optional[str] = None,
) -> Optional[Base64Image]:
    """
    Resolve a multipart upload to a base64 image.

    A missing file field, or a file with no content, is treated exactly like
    an event with no attachments and yields None. Nothing is left on disk.
    """
    if upload is None or not hasattr(upload, "file"):
        return None

    with spooled_upload(upload, tmp_dir=tmp_dir) as tmp_path:
        size = os.path.getsize(tmp_path)
        if size == 0:
            logger.info(f"Uploaded file {upload.filename!r} is empty")
            return None
        logger.info(f"Encoding uploaded file {upload.filename!r} ({size:,} bytes)")
        return encode_file(tmp_path)
