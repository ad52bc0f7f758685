"""
Temporary upload storage

Uploaded bytes are written to a NamedTemporaryFile for the decoders that need a
path on disk, and removed again on every exit path:

    with uploads.scoped(data, media_type, owner_id) as document:
        content = extractor.extract(document)

release() is idempotent, so a caller may free storage early and still rely on
the scope exit as the backstop for errors and cancellation. Everything here is
blocking file I/O; async callers run the whole scope in a worker thread.
"""

import logging
import os
import tempfile
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, FrozenSet, Iterator, Optional

from errors import StorageError, ValidationError
from ingestion.schemas import UploadedDocument

log = logging.getLogger(__name__)

# ── Config ───────────────────────────────────────────────────────────────────

MAX_UPLOAD_SIZE = int(os.getenv("MAX_UPLOAD_SIZE", 10 * 1024 * 1024))  # 10MB default
UPLOAD_TMP_DIR = os.getenv("UPLOAD_TMP_DIR") or None  # None → system temp dir

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PPTX = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

ALLOWED_MEDIA_TYPES: FrozenSet[str] = frozenset({
    "text/plain",
    "text/markdown",
    PDF,
    DOCX,
    PPTX,
})

# Extension → media types it may be declared as (don't trust the declared type alone)
EXTENSION_MEDIA_TYPES: Dict[str, FrozenSet[str]] = {
    "txt": frozenset({"text/plain"}),
    "md": frozenset({"text/markdown", "text/plain"}),
    "pdf": frozenset({PDF}),
    "docx": frozenset({DOCX}),
    "pptx": frozenset({PPTX}),
}

SUFFIX_BY_MEDIA_TYPE = {
    "text/plain": ".txt",
    "text/markdown": ".md",
    PDF: ".pdf",
    DOCX: ".docx",
    PPTX: ".pptx",
}


def normalize_media_type(media_type: Optional[str]) -> str:
    """'Text/Plain; charset=utf-8' → 'text/plain'"""
    if not media_type:
        return ""
    return media_type.split(";", 1)[0].strip().lower()


class TemporaryUploadManager:
    """
    Owns the on-disk lifecycle of uploaded documents.

    Safe to share between concurrent pipeline invocations: each document is
    tracked individually and released at most once.
    """

    def __init__(
        self,
        max_size: int = MAX_UPLOAD_SIZE,
        allowed_types: FrozenSet[str] = ALLOWED_MEDIA_TYPES,
        tmp_dir: Optional[str] = UPLOAD_TMP_DIR,
    ):
        self.max_size = max_size
        self.allowed_types = frozenset(normalize_media_type(t) for t in allowed_types)
        self.tmp_dir = tmp_dir
        self._active: Dict[str, UploadedDocument] = {}
        self._lock = threading.Lock()

    @property
    def active_count(self) -> int:
        """Number of acquired documents whose storage has not been released"""
        with self._lock:
            return len(self._active)

    def _validate(self, size: int, media_type: str, filename: Optional[str], size_limit: int) -> None:
        if size > size_limit:
            raise ValidationError(
                f"File too large: {size} bytes. Max: {size_limit} bytes ({size_limit // 1048576}MB)"
            )

        if media_type not in self.allowed_types:
            raise ValidationError(
                f"Unsupported media type: {media_type or '<missing>'}. "
                f"Allowed: {', '.join(sorted(self.allowed_types))}"
            )

        if filename:
            extension = Path(filename).suffix.lower().lstrip(".")
            expected = EXTENSION_MEDIA_TYPES.get(extension)
            if expected is not None and media_type not in expected:
                raise ValidationError(f"Media type mismatch: .{extension} file declared as {media_type}")

    def acquire(
        self,
        data: bytes,
        media_type: str,
        owner_id: str,
        filename: Optional[str] = None,
        size_limit: Optional[int] = None,
    ) -> UploadedDocument:
        """
        Validate an upload and write it to temporary storage.

        Size and type are checked before anything touches the disk.

        Raises:
            ValidationError: size over the limit, or type not in the allow-list
        """
        media_type = normalize_media_type(media_type)
        limit = self.max_size if size_limit is None else min(size_limit, self.max_size)
        self._validate(len(data), media_type, filename, limit)

        tmp = tempfile.NamedTemporaryFile(
            delete=False,
            suffix=SUFFIX_BY_MEDIA_TYPE.get(media_type, ""),
            prefix="upload_",
            dir=self.tmp_dir,
        )
        try:
            tmp.write(data)
            tmp.close()
        except BaseException:
            tmp.close()
            os.unlink(tmp.name)
            raise

        document = UploadedDocument(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            storage_path=tmp.name,
            media_type=media_type,
            size_bytes=len(data),
            filename=filename,
        )
        with self._lock:
            self._active[document.id] = document

        log.info("upload: acquired id=%s type=%s size=%s", document.id, media_type, len(data))
        return document

    def release(self, document: UploadedDocument) -> None:
        """
        Remove the document's temporary file.

        Idempotent: a second call, or a call for a file that is already gone,
        does nothing. An unexpected OS error is logged and the document stays
        registered as active so the leak is visible.
        """
        with self._lock:
            if document.released:
                return
            try:
                os.unlink(document.storage_path)
            except FileNotFoundError:
                log.warning("upload: file already gone id=%s", document.id)
            except OSError as e:
                log.error("upload: release failed id=%s error=%s", document.id, type(e).__name__)
                return
            document.released = True
            self._active.pop(document.id, None)

        log.info("upload: released id=%s", document.id)

    @contextmanager
    def scoped(
        self,
        data: bytes,
        media_type: str,
        owner_id: str,
        filename: Optional[str] = None,
        size_limit: Optional[int] = None,
    ) -> Iterator[UploadedDocument]:
        """
        Acquire an upload for the duration of a with-block.

        Storage is released when the block exits for any reason: normal exit,
        an exception, or task cancellation unwinding through it.

        Raises:
            StorageError: the block finished normally but the file could not be
                removed. An exception from the block itself is never replaced.
        """
        document = self.acquire(data, media_type, owner_id, filename=filename, size_limit=size_limit)
        try:
            yield document
        finally:
            self.release(document)
        if not document.released:
            raise StorageError("Temporary upload could not be removed", document_id=document.id)
