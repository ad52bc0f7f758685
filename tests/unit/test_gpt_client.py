# =============================================================================
# TESTS - OpenAI quiz generator (retry, backoff, error classification)
# =============================================================================
# The OpenAI client is replaced by a fake whose create() raises real openai
# exception types built on httpx responses.
# =============================================================================

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from errors import ConfigurationError, GenerationServiceError, SchemaValidationError, ValidationError
from generation.gpt_client import OpenAIQuizGenerator, is_transient_status
from ingestion.schemas import ExtractedContent
from tests.factories import make_question_dicts

API_URL = "https://api.openai.com/v1/chat/completions"


def _status_error(cls, status_code: int, headers=None):
    response = httpx.Response(status_code, headers=headers, request=httpx.Request("POST", API_URL))
    return cls(message=f"HTTP {status_code}", response=response, body=None)


def _completion(raw: str):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=raw))])


def _fake_client(*effects):
    """Client whose chat.completions.create yields `effects` in order."""
    create = AsyncMock(side_effect=list(effects))
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create))), create


def _generator(client, **kwargs):
    sleep = AsyncMock()
    generator = OpenAIQuizGenerator(api_key="test-key", client=client, sleep=sleep, **kwargs)
    return generator, sleep


@pytest.fixture
def content(lesson_text):
    return ExtractedContent(document_id="doc-1", text=lesson_text)


@pytest.fixture
def valid_reply():
    return _completion(json.dumps({"questions": make_question_dicts(5)}))


class TestConfiguration:

    @pytest.mark.parametrize("api_key", [None, "", "   "])
    def test_missing_api_key(self, api_key):
        """No key → ConfigurationError, never a placeholder."""
        with pytest.raises(ConfigurationError):
            OpenAIQuizGenerator(api_key=api_key)

    def test_from_env_without_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ConfigurationError):
            OpenAIQuizGenerator.from_env()

    def test_from_env_with_key(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        generator = OpenAIQuizGenerator.from_env(model="gpt-4o")

        assert generator.model == "gpt-4o"

    def test_negative_retries(self):
        with pytest.raises(ConfigurationError):
            OpenAIQuizGenerator(api_key="test-key", max_retries=-1)


class TestGenerate:

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, content, valid_reply):
        client, create = _fake_client(valid_reply)
        generator, sleep = _generator(client)

        response = await generator.generate(content, desired_count=5)

        assert len(response.questions) == 5
        assert response.attempts == 1
        assert response.document_id == "doc-1"
        assert create.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_request_shape(self, content, valid_reply):
        client, create = _fake_client(valid_reply)
        generator, _ = _generator(client, model="gpt-4o-mini")

        await generator.generate(content, desired_count=5)

        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0]["role"] == "system"
        assert content.text in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_rate_limited_twice_then_success(self, content, valid_reply):
        """Two 429s are retried transparently; the third attempt succeeds."""
        client, create = _fake_client(
            _status_error(openai.RateLimitError, 429),
            _status_error(openai.RateLimitError, 429),
            valid_reply,
        )
        generator, sleep = _generator(client, backoff_base=1.0, backoff_max=20.0)

        response = await generator.generate(content, desired_count=5)

        assert response.attempts == 3
        assert len(response.questions) == 5
        assert create.await_count == 3
        assert sleep.await_count == 2
        delays = [call.args[0] for call in sleep.await_args_list]
        assert 0.5 <= delays[0] <= 1.0
        assert 1.0 <= delays[1] <= 2.0

    @pytest.mark.asyncio
    async def test_retry_after_header_honoured(self, content, valid_reply):
        client, _ = _fake_client(
            _status_error(openai.RateLimitError, 429, headers={"retry-after": "3"}),
            valid_reply,
        )
        generator, sleep = _generator(client)

        await generator.generate(content, desired_count=5)

        sleep.assert_awaited_once_with(3.0)

    @pytest.mark.asyncio
    async def test_server_and_connection_errors_are_transient(self, content, valid_reply):
        request = httpx.Request("POST", API_URL)
        client, create = _fake_client(
            _status_error(openai.InternalServerError, 503),
            openai.APIConnectionError(request=request),
            openai.APITimeoutError(request=request),
            valid_reply,
        )
        generator, _ = _generator(client, max_retries=3)

        response = await generator.generate(content, desired_count=5)

        assert response.attempts == 4
        assert create.await_count == 4

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, content):
        client, create = _fake_client(*[_status_error(openai.RateLimitError, 429) for _ in range(4)])
        generator, sleep = _generator(client, max_retries=3)

        with pytest.raises(GenerationServiceError) as exc:
            await generator.generate(content, desired_count=5)

        assert exc.value.attempts == 4
        assert exc.value.status_code == 429
        assert isinstance(exc.value.__cause__, openai.RateLimitError)
        assert create.await_count == 4
        assert sleep.await_count == 3

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self, content):
        """A 400 surfaces immediately."""
        client, create = _fake_client(_status_error(openai.BadRequestError, 400))
        generator, sleep = _generator(client)

        with pytest.raises(GenerationServiceError) as exc:
            await generator.generate(content, desired_count=5)

        assert exc.value.status_code == 400
        assert exc.value.attempts == 1
        assert create.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_auth_error_not_retried(self, content):
        client, create = _fake_client(_status_error(openai.AuthenticationError, 401))
        generator, _ = _generator(client)

        with pytest.raises(GenerationServiceError):
            await generator.generate(content, desired_count=5)

        assert create.await_count == 1

    @pytest.mark.asyncio
    async def test_invalid_reply_not_retried(self, content):
        """Correct index 7 against 3 options → SchemaValidationError after one call."""
        question = make_question_dicts(1, options=3)[0]
        question["correct_index"] = 7
        client, create = _fake_client(_completion(json.dumps({"questions": [question]})))
        generator, sleep = _generator(client)

        with pytest.raises(SchemaValidationError) as exc:
            await generator.generate(content, desired_count=1)

        assert exc.value.document_id == "doc-1"
        assert create.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bad_count_rejected_before_call(self, content):
        client, create = _fake_client()
        generator, _ = _generator(client)

        with pytest.raises(ValidationError):
            await generator.generate(content, desired_count=0)

        create.assert_not_awaited()


class TestBackoff:

    def test_delay_capped(self):
        generator = OpenAIQuizGenerator(api_key="test-key", client=object(), backoff_base=1.0, backoff_max=5.0)

        for attempt in range(1, 10):
            assert 0 <= generator.backoff_delay(attempt) <= 5.0

    def test_retry_after_capped(self):
        generator = OpenAIQuizGenerator(api_key="test-key", client=object(), backoff_max=5.0)

        assert generator.backoff_delay(1, retry_after=120) == 5.0

    @pytest.mark.parametrize("status_code,expected", [
        (429, True), (408, True), (500, True), (503, True),
        (400, False), (401, False), (404, False), (422, False), (None, False),
    ])
    def test_transient_classification(self, status_code, expected):
        assert is_transient_status(status_code) is expected
