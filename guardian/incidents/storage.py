"""
Campus Guardian Incidents — attachment blob storage

Objects are written under <upload_dir>/incidents/<uuid>/<filename> and served
back at /uploads/incidents/<uuid>/<filename>.
"""
import logging
import os
import re
import uuid
from pathlib import Path
from typing import Callable, List, Optional

from ..errors import ServiceUnavailable, ValidationFailed
from .models import Attachment

logger = logging.getLogger(__name__)

PREFIX = "incidents"
PUBLIC_ROOT = "/uploads"
MAX_ATTACHMENT_BYTES = 25 * 1024 * 1024

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")

ProgressCallback = Callable[[float], None]


def safe_filename(filename: str) -> str:
    base = os.path.basename(filename or "").strip() or "attachment"
    cleaned = _UNSAFE.sub("_", base).strip("._")
    return cleaned or "attachment"


class BlobStorage:

    def __init__(self, upload_dir: str):
        self.root = Path(upload_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def upload(self, attachment: Attachment) -> str:
        """Store one object and return its public URL."""
        if not attachment.content:
            raise ValidationFailed(f"Attachment '{attachment.filename}' is empty.", field="attachments")
        if len(attachment.content) > MAX_ATTACHMENT_BYTES:
            raise ValidationFailed(f"Attachment '{attachment.filename}' is too large.", field="attachments")

        key = f"{PREFIX}/{uuid.uuid4().hex}/{safe_filename(attachment.filename)}"
        target = self.root / key
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                f.write(attachment.content)
        except OSError as e:
            logger.error(f"[Storage] upload failed for {key}: {e}")
            raise ServiceUnavailable("Attachment upload failed. Please try again.") from e

        logger.info(f"[Storage] stored {key} ({len(attachment.content)} bytes)")
        return f"{PUBLIC_ROOT}/{key}"

    def upload_all(
        self,
        attachments: List[Attachment],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[str]:
        """Upload one after another, reporting i/n after each completes."""
        urls = []
        total = len(attachments)
        for i, attachment in enumerate(attachments, start=1):
            urls.append(self.upload(attachment))
            if on_progress:
                on_progress(i / total)
        return urls

    def remove(self, url: str):
        """Best-effort delete of an object previously returned by upload()."""
        if not url.startswith(PUBLIC_ROOT + "/"):
            return
        target = self.root / url[len(PUBLIC_ROOT) + 1:]
        try:
            target.unlink()
            target.parent.rmdir()
        except OSError as e:
            logger.debug(f"[Storage] cleanup skipped for {url}: {e}")
