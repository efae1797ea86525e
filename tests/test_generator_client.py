"""Unit tests for the generator client and its backends."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.config import GeneratorConfig
from app.exceptions import ConfigurationException, EmptyGeneratorResponse
from app.services.generator_client import (
    AnthropicBackend,
    GeminiBackend,
    GeneratorClient,
    MockBackend,
    OpenAIBackend,
    TextGenerationBackend,
    create_backend,
)


@pytest.fixture
def openai_config():
    """OpenAI generator configuration."""
    return GeneratorConfig(provider="openai", model="gpt-4o", api_key="sk-test", max_tokens=1000)


@pytest.fixture
def mock_openai_client():
    """Create a mock AsyncOpenAI client."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=MagicMock(
            choices=[MagicMock(message=MagicMock(content='[{"questionText": "Q"}]'))],
            usage=MagicMock(total_tokens=100),
        )
    )
    return client


class TestBackends:
    """Tests for provider backends."""

    @pytest.mark.asyncio
    async def test_openai_backend(self, openai_config, mock_openai_client):
        """OpenAI backend sends system and user messages with config values."""
        backend = OpenAIBackend(openai_config, client=mock_openai_client)
        result = await backend.complete("payload", system_prompt="system")

        assert result == '[{"questionText": "Q"}]'
        kwargs = mock_openai_client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["max_tokens"] == 1000
        assert kwargs["messages"] == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "payload"},
        ]

    @pytest.mark.asyncio
    async def test_openai_backend_no_choices(self, openai_config, mock_openai_client):
        """A response without choices yields empty text."""
        mock_openai_client.chat.completions.create.return_value = MagicMock(choices=[], usage=None)
        backend = OpenAIBackend(openai_config, client=mock_openai_client)
        assert await backend.complete("payload") == ""

    @pytest.mark.asyncio
    async def test_gemini_backend(self):
        """Gemini backend uses the async models API of its own client."""
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(return_value=MagicMock(text="[]"))
        config = GeneratorConfig(provider="gemini", model="gemini-2.0-flash", api_key="key")
        backend = GeminiBackend(config, client=client)

        assert await backend.complete("payload", system_prompt="system") == "[]"
        kwargs = client.aio.models.generate_content.await_args.kwargs
        assert kwargs["model"] == "gemini-2.0-flash"
        assert kwargs["contents"] == "payload"
        assert kwargs["config"].system_instruction == "system"

    @pytest.mark.asyncio
    async def test_anthropic_backend_joins_text_blocks(self):
        """Anthropic backend concatenates text content blocks."""
        client = MagicMock()
        client.messages.create = AsyncMock(
            return_value=MagicMock(
                content=[
                    MagicMock(type="text", text="[{"),
                    MagicMock(type="tool_use", text="ignored"),
                    MagicMock(type="text", text="}]"),
                ]
            )
        )
        config = GeneratorConfig(provider="anthropic", model="claude-model", api_key="key")
        backend = AnthropicBackend(config, client=client)

        assert await backend.complete("payload", system_prompt="system") == "[{}]"
        assert client.messages.create.await_args.kwargs["system"] == "system"

    @pytest.mark.asyncio
    async def test_mock_backend_follows_specification(self, sample_spec):
        """Mock output matches bucket counts, declared types and twisted share."""
        raw = await MockBackend().complete("payload", spec=sample_spec)
        items = json.loads(raw)

        assert len(items) == 25
        two_mark = [i["questionType"] for i in items if i["marks"] == 2]
        assert two_mark == ["FILL_BLANKS"] * 4 + ["SHORT_ANSWER"] * 4
        one_mark = [i for i in items if i["marks"] == 1]
        assert [i["isTwisted"] for i in one_mark] == [True] + [False] * 9
        assert all(len(i["options"]) == 4 for i in one_mark)

    @pytest.mark.asyncio
    async def test_mock_backend_is_deterministic(self, sample_spec):
        """The same specification always gives the same output."""
        backend = MockBackend()
        assert await backend.complete("p", spec=sample_spec) == await backend.complete("p", spec=sample_spec)


class TestCreateBackend:
    """Tests for backend selection."""

    def test_mock_selected(self):
        """The mock provider needs no API key."""
        assert isinstance(create_backend(GeneratorConfig(provider="mock")), MockBackend)

    def test_unknown_provider_raises(self):
        """Unknown providers raise ConfigurationException."""
        config = GeneratorConfig.model_construct(provider="unknown")
        with pytest.raises(ConfigurationException):
            create_backend(config)

    def test_incomplete_backend_cannot_be_created(self):
        """Backends must implement complete."""

        class SilentBackend(TextGenerationBackend):
            name = "silent"

        with pytest.raises(TypeError):
            SilentBackend()


class TestGeneratorClient:
    """Tests for the generator client."""

    @pytest.mark.asyncio
    async def test_generate_returns_raw_text(self):
        """Backend text is returned unchanged."""
        backend = MagicMock()
        backend.name = "stub"
        backend.complete = AsyncMock(return_value="raw text [ ]")
        client = GeneratorClient(GeneratorConfig(), backend=backend)

        assert await client.generate("payload") == "raw text [ ]"

    @pytest.mark.asyncio
    async def test_empty_response_raises(self):
        """Whitespace-only output raises EmptyGeneratorResponse."""
        backend = MagicMock()
        backend.name = "stub"
        backend.complete = AsyncMock(return_value="  \n")
        client = GeneratorClient(GeneratorConfig(), backend=backend)

        with pytest.raises(EmptyGeneratorResponse):
            await client.generate("payload")

    @pytest.mark.asyncio
    async def test_provider_errors_propagate(self):
        """SDK errors are not wrapped or retried."""
        backend = MagicMock()
        backend.name = "stub"
        backend.complete = AsyncMock(side_effect=TimeoutError("slow"))
        client = GeneratorClient(GeneratorConfig(), backend=backend)

        with pytest.raises(TimeoutError):
            await client.generate("payload")
        backend.complete.assert_awaited_once()
