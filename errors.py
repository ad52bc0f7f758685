"""
Error taxonomy for the assessment content pipeline.

Every pipeline failure derives from QuizPipelineError and carries a stable `kind`
string so the HTTP boundary can map it to a response without inspecting messages.
Messages never include document text, prompts, raw model output or credentials.
"""

from typing import Optional


class QuizPipelineError(Exception):
    """Base class for all pipeline errors."""

    kind = "pipeline_error"

    def __init__(self, message: str, *, document_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.document_id = document_id

    def __str__(self) -> str:
        if self.document_id:
            return f"{self.message} (document={self.document_id})"
        return self.message


class ConfigurationError(QuizPipelineError):
    """Required configuration is missing. Fatal at startup."""

    kind = "configuration_error"


class ValidationError(QuizPipelineError):
    """Bad caller input: size, media type, question count, answer index out of range."""

    kind = "validation_error"


class UnsupportedTypeError(QuizPipelineError):
    """No decoder exists for the declared media type."""

    kind = "unsupported_type"

    def __init__(self, media_type: str, *, document_id: Optional[str] = None):
        super().__init__(f"Unsupported media type: {media_type}", document_id=document_id)
        self.media_type = media_type


class EmptyContentError(QuizPipelineError):
    """Decoded text is blank or shorter than the minimum usable length."""

    kind = "empty_content"

    def __init__(self, length: int, minimum: int, *, document_id: Optional[str] = None):
        super().__init__(
            f"Extracted text too short: {length} chars (minimum {minimum})",
            document_id=document_id,
        )
        self.length = length
        self.minimum = minimum


class GenerationServiceError(QuizPipelineError):
    """The generation service returned a permanent error or retries were exhausted."""

    kind = "generation_service_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        attempts: int = 1,
        document_id: Optional[str] = None,
    ):
        super().__init__(message, document_id=document_id)
        self.status_code = status_code
        self.attempts = attempts


class SchemaValidationError(QuizPipelineError):
    """Generated output is well-formed HTTP but semantically invalid."""

    kind = "schema_validation_error"

    def __init__(self, message: str, *, issues: Optional[list] = None, document_id: Optional[str] = None):
        super().__init__(message, document_id=document_id)
        self.issues = issues or []


class PersistenceError(QuizPipelineError):
    """The store rejected a write. The store's exception is kept as __cause__."""

    kind = "persistence_error"


class StorageError(QuizPipelineError):
    """A temporary upload could not be removed from disk."""

    kind = "storage_error"
