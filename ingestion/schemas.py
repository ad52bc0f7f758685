"""
Types for the ingestion stage
An uploaded document and the text extracted from it. Neither is persisted.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


class ExtractionStatus(str, enum.Enum):
    OK = "ok"
    UNSUPPORTED_TYPE = "unsupported-type"
    EMPTY = "empty"


@dataclass
class UploadedDocument:
    """
    A stored upload owned by exactly one pipeline invocation.

    `storage_path` is only valid while `released` is False.
    """
    id: str
    owner_id: str
    storage_path: str
    media_type: str
    size_bytes: int
    filename: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    released: bool = False


@dataclass(frozen=True)
class ExtractedContent:
    document_id: str
    text: str
    status: ExtractionStatus = ExtractionStatus.OK

    @property
    def char_count(self) -> int:
        return len(self.text)
