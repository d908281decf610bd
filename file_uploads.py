# ============================================================================
#  file_uploads.py — Shopify Files
#  Version: 2.0.0
#  CHANGES: fileCreate from URL with staged-upload fallback, attachments
#           uploaded by content hash
# ============================================================================
import logging
import mimetypes
import os
from typing import Optional
from urllib.parse import urlparse

from caches import FileIdCache
from errors import SourceError
from models import Attachment, StagedUploadInput
from text_utils import normalize_url_for_cache

logger = logging.getLogger(__name__)


class FileUploader:
    def __init__(self, shop, url_cache: Optional[FileIdCache] = None, hash_cache: Optional[FileIdCache] = None):
        self.shop = shop
        self.url_cache = url_cache or FileIdCache()
        self.hash_cache = hash_cache or FileIdCache()

    def ensure_file_from_url(self, url: str, content_type: str = "IMAGE") -> str:
        """File GID for a public URL, created once per process."""
        key = normalize_url_for_cache(url)
        cached = self.url_cache.get(key)
        if cached:
            return cached
        file_id = self.shop.file_create(key, content_type)
        status = self.shop.file_status(file_id)
        if status == "FAILED":
            logger.warning(f"fileCreate from URL failed for {key}; falling back to staged upload")
            file_id = self.upload_from_url(key, content_type)
        self.url_cache.put(key, file_id)
        return file_id

    def upload_from_url(self, url: str, content_type: str = "IMAGE") -> str:
        content = self.shop.download(url)
        filename = os.path.basename(urlparse(url).path) or "file"
        mime = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        return self.upload_bytes(filename, content, mime, content_type)

    def upload_bytes(self, filename: str, content: bytes, mime: str, content_type: str = "FILE") -> str:
        resource = "IMAGE" if content_type == "IMAGE" else "FILE"
        targets = self.shop.staged_uploads_create([
            StagedUploadInput(filename=filename, mime_type=mime, resource=resource, file_size=len(content))
        ])
        if not targets:
            raise SourceError(f"No staged upload target for {filename}")
        target = targets[0]
        self.shop.upload_staged(target, filename, content, mime)
        return self.shop.file_create(target.resource_url, content_type, alt=filename)

    def ensure_attachment(self, attachment: Attachment) -> str:
        """Generic file for a source attachment, deduplicated by content hash."""
        cached = self.hash_cache.get(attachment.hash)
        if cached:
            return cached
        if attachment.local_path:
            if not os.path.isfile(attachment.local_path):
                raise SourceError(f"Attachment file not found: {attachment.local_path}", {"attachment_id": attachment.attachment_id})
            with open(attachment.local_path, "rb") as fh:
                content = fh.read()
        elif attachment.url:
            content = self.shop.download(attachment.url)
        else:
            raise SourceError(f"Attachment {attachment.attachment_id} has neither path nor URL")
        file_id = self.upload_bytes(attachment.filename, content, attachment.mime, "FILE")
        self.hash_cache.put(attachment.hash, file_id)
        logger.info(f"Attachment {attachment.filename} uploaded as {file_id}")
        return file_id
# ============================================================================
# End of file_uploads.py — Version: 2.0.0
# ============================================================================
