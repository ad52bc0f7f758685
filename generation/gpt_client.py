"""
OpenAI client for quiz generation.

The SDK's own retries are disabled (max_retries=0) so that every attempt,
delay and give-up is decided and logged here:

  - timeouts, connection failures, 408, 429 and 5xx → retried with
    exponential backoff and jitter, at most GENERATION_MAX_RETRIES times
  - any other 4xx → GenerationServiceError immediately
  - a successful reply that fails the schema → SchemaValidationError, not retried

Model: gpt-4o-mini  (override with GPT_MODEL env var, e.g. "gpt-4o")
"""

import asyncio
import logging
import os
import random
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Tuple

import openai
from openai import AsyncOpenAI

from errors import ConfigurationError, GenerationServiceError
from generation.question_generator import SYSTEM_PROMPT, build_prompt, check_question_count
from generation.schemas import GenerationRequest, GenerationResponse
from generation.validator import parse_generated_questions
from ingestion.schemas import ExtractedContent

# Request lines from the SDK transport carry nothing we need at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)

log = logging.getLogger(__name__)

# ── Model config ───────────────────────────────────────────────────────────────
GPT_MODEL = os.getenv("GPT_MODEL", "gpt-4o-mini")
GENERATION_TIMEOUT_SECONDS = float(os.getenv("GENERATION_TIMEOUT_SECONDS", 60))
GENERATION_MAX_RETRIES = int(os.getenv("GENERATION_MAX_RETRIES", 3))
GENERATION_BACKOFF_BASE = float(os.getenv("GENERATION_BACKOFF_BASE", 1.0))
GENERATION_BACKOFF_MAX = float(os.getenv("GENERATION_BACKOFF_MAX", 20.0))

TRANSIENT_STATUS_CODES = frozenset({408, 429})


def is_transient_status(status_code: Optional[int]) -> bool:
    return status_code is not None and (status_code in TRANSIENT_STATUS_CODES or status_code >= 500)


class QuizGenerator(ABC):
    """Anything that turns extracted content into validated questions."""

    @abstractmethod
    async def generate(self, content: ExtractedContent, desired_count: int) -> GenerationResponse:
        ...


class OpenAIQuizGenerator(QuizGenerator):
    """
    Chat Completions backed generator with bounded retries.

    Example:
        >>> generator = OpenAIQuizGenerator.from_env()
        >>> response = await generator.generate(content, desired_count=5)
        >>> len(response.questions)
        5
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = GPT_MODEL,
        timeout: float = GENERATION_TIMEOUT_SECONDS,
        max_retries: int = GENERATION_MAX_RETRIES,
        backoff_base: float = GENERATION_BACKOFF_BASE,
        backoff_max: float = GENERATION_BACKOFF_MAX,
        temperature: float = 0.4,
        max_tokens: int = 4096,
        client: Optional[AsyncOpenAI] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not api_key or not api_key.strip():
            raise ConfigurationError("OPENAI_API_KEY is not set. Add it to your .env file.")
        if max_retries < 0:
            raise ConfigurationError("GENERATION_MAX_RETRIES must be >= 0")

        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._sleep = sleep
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    @classmethod
    def from_env(cls, **kwargs) -> "OpenAIQuizGenerator":
        return cls(api_key=os.getenv("OPENAI_API_KEY"), **kwargs)

    # ── Public API ────────────────────────────────────────────────────────────

    async def generate(self, content: ExtractedContent, desired_count: int) -> GenerationResponse:
        """
        Generate `desired_count` questions from extracted content.

        Raises:
            ValidationError:        desired_count out of range
            GenerationServiceError: permanent service error or retries exhausted
            SchemaValidationError:  reply did not match the question schema
        """
        check_question_count(desired_count)
        request = GenerationRequest(
            document_id=content.document_id,
            question_count=desired_count,
            prompt=build_prompt(content.text, desired_count),
        )

        log.info(
            "generate: start document=%s count=%s prompt_chars=%s model=%s",
            request.document_id, desired_count, len(request.prompt), self.model,
        )
        raw, attempts = await self._complete_with_retry(request)
        questions = parse_generated_questions(raw, desired_count, document_id=request.document_id)

        log.info("generate: done document=%s questions=%s attempts=%s", request.document_id, len(questions), attempts)
        return GenerationResponse(
            document_id=request.document_id,
            question_count_requested=desired_count,
            questions=questions,
            model=self.model,
            attempts=attempts,
            raw_payload=raw,
        )

    # ── Internals ─────────────────────────────────────────────────────────────

    async def _complete(self, prompt: str) -> str:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content or ""

    def backoff_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Delay before retry number `attempt` (1-based), never above backoff_max"""
        if retry_after is not None and retry_after >= 0:
            return min(retry_after, self.backoff_max)
        delay = min(self.backoff_max, self.backoff_base * (2 ** (attempt - 1)))
        return delay / 2 + random.uniform(0, delay / 2)

    async def _complete_with_retry(self, request: GenerationRequest) -> Tuple[str, int]:
        attempt = 0
        while True:
            attempt += 1
            retry_after = None
            try:
                raw = await asyncio.wait_for(self._complete(request.prompt), timeout=self.timeout)
                return raw, attempt
            except openai.APIStatusError as e:
                if not is_transient_status(e.status_code):
                    log.error(
                        "generate: permanent error document=%s status=%s attempt=%s",
                        request.document_id, e.status_code, attempt,
                    )
                    raise GenerationServiceError(
                        f"Generation service rejected the request (HTTP {e.status_code})",
                        status_code=e.status_code,
                        attempts=attempt,
                        document_id=request.document_id,
                    ) from e
                error, status_code = e, e.status_code
                retry_after = _retry_after_seconds(e)
            except (openai.APIConnectionError, asyncio.TimeoutError) as e:
                # APITimeoutError is a subclass of APIConnectionError
                error, status_code = e, None

            if attempt > self.max_retries:
                log.error(
                    "generate: giving up document=%s attempts=%s last_error=%s",
                    request.document_id, attempt, type(error).__name__,
                )
                raise GenerationServiceError(
                    f"Generation service unavailable after {attempt} attempt(s): {type(error).__name__}",
                    status_code=status_code,
                    attempts=attempt,
                    document_id=request.document_id,
                ) from error

            delay = self.backoff_delay(attempt, retry_after)
            log.warning(
                "generate: transient error document=%s error=%s status=%s attempt=%s retry_in=%.2fs",
                request.document_id, type(error).__name__, status_code, attempt, delay,
            )
            await self._sleep(delay)


def _retry_after_seconds(error: openai.APIStatusError) -> Optional[float]:
    response = getattr(error, "response", None)
    if response is None:
        return None
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
