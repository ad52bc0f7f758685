"""
Ingestion Package

Steps that run while an upload is held in temporary storage:
1. Store (uploads)      → UploadedDocument on disk, size/type checked
2. Extract (parser)     → plain text via a media-type decoder
3. Normalize            → artifact-free text, minimum length enforced

The upload is released when the pipeline leaves its scope, whatever the outcome.
"""

from .schemas import ExtractedContent, ExtractionStatus, UploadedDocument
from .uploads import ALLOWED_MEDIA_TYPES, TemporaryUploadManager
from .parser import ContentExtractor
from .normalizer import normalize_text

__all__ = [
    # Step 1: Store
    "TemporaryUploadManager",
    "ALLOWED_MEDIA_TYPES",

    # Step 2: Extract
    "ContentExtractor",

    # Step 3: Normalize
    "normalize_text",

    # Schemas
    "UploadedDocument",
    "ExtractedContent",
    "ExtractionStatus",
]
