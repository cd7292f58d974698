"""Unit tests for the llm module."""
import pytest
from hypothesis import given
from hypothesis import strategies as st

from consultstream.artifacts import ArtifactKind, extract
from consultstream.config import CONFIG_ERROR_SENTINEL
from consultstream.llm import (
    ChatMessage,
    GeminiProvider,
    GeneratedImage,
    InlineData,
    LLMProvider,
    SimulatedProvider,
    StreamingResponse,
    create_llm_provider,
)
from consultstream.llm.models import StreamChunk
from consultstream.prompts import clear_cache, get_system_instruction, load_prompt


async def collect(stream: StreamingResponse) -> str:
    return "".join([chunk.text async for chunk in stream])


class TestLLMProviderInterface:
    """Tests for LLMProvider interface."""

    def test_llm_provider_is_abstract(self):
        """Test that LLMProvider cannot be instantiated directly."""
        with pytest.raises(TypeError):
            LLMProvider()  # type: ignore


class TestModels:
    """Tests for llm data models."""

    @given(st.binary(max_size=256))
    def test_inline_data_bytes(self, data: bytes):
        """Property test: inline payloads decode to the original bytes."""
        assert InlineData.from_bytes(data, "application/pdf").to_bytes() == data

    def test_data_url(self):
        """Test encoding an image as a data URL."""
        image = GeneratedImage(data=b"abc", mime_type="image/jpeg")
        assert image.to_data_url() == "data:image/jpeg;base64,YWJj"

    @pytest.mark.asyncio
    async def test_streaming_response_usage(self):
        """Test that usage is available after iteration."""
        async def generate():
            yield StreamChunk(text="a")
            response.set_usage({"total_tokens": 3})

        response = StreamingResponse(generate())
        assert response.usage is None
        assert await collect(response) == "a"
        assert response.usage == {"total_tokens": 3}


class TestSimulatedProvider:
    """Tests for SimulatedProvider."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message,kind", [
        ("Run a SWOT analysis", ArtifactKind.FRAMEWORK),
        ("pestle please", ArtifactKind.FRAMEWORK),
        ("Design a launch visual", ArtifactKind.IMAGE_REQUEST),
        ("Show our KPI scorecard", ArtifactKind.KPI),
        ("Project revenue growth", ArtifactKind.CHART),
    ])
    async def test_keyword_widgets(self, message: str, kind: ArtifactKind):
        """Test that keywords select the streamed widget kind."""
        provider = SimulatedProvider(word_delay=0)
        text = await collect(await provider.chat_stream([], message))

        result = extract(text)
        assert result.artifact is not None
        assert result.artifact.type == kind
        assert result.clean_text.startswith("###")

    @pytest.mark.asyncio
    async def test_text_only_answer(self):
        """Test answers without a widget."""
        provider = SimulatedProvider(word_delay=0)
        text = await collect(await provider.chat_stream([], "What are our competitors doing?"))

        assert "json-widget" not in text
        assert text.startswith("### Competitive Landscape")

    @pytest.mark.asyncio
    async def test_fence_arrives_in_pieces(self):
        """Test that the widget is streamed across several fragments."""
        provider = SimulatedProvider(word_delay=0)
        stream = await provider.chat_stream([], "revenue chart")
        fragments = [chunk.text async for chunk in stream]

        assert sum("json-widget" in f for f in fragments) == 1
        assert not fragments[-1].startswith("```json-widget")
        assert stream.usage["total_tokens"] > 0

    @pytest.mark.asyncio
    async def test_unconfigured_reports_sentinel(self):
        """Test the configuration error sentinel."""
        provider = SimulatedProvider(word_delay=0, configured=False)
        assert await collect(await provider.chat_stream([], "hi")) == CONFIG_ERROR_SENTINEL

    @pytest.mark.asyncio
    async def test_generate_image(self):
        """Test the placeholder image."""
        image = await SimulatedProvider(word_delay=0).generate_image("anything")
        assert image.mime_type == "image/png"
        assert image.data.startswith(b"\x89PNG")


class TestGeminiProvider:
    """Tests for GeminiProvider that need no network."""

    @pytest.mark.asyncio
    async def test_missing_key_reports_sentinel(self):
        """Test that a provider without a key streams the sentinel."""
        provider = GeminiProvider(api_key=None)
        assert await collect(await provider.chat_stream([], "hello")) == CONFIG_ERROR_SENTINEL

    @pytest.mark.asyncio
    async def test_missing_key_image_fails(self):
        """Test that image generation without a key raises."""
        with pytest.raises(RuntimeError):
            await GeminiProvider(api_key=None).generate_image("skyline")

    def test_convert_history(self):
        """Test role mapping and skipping of empty turns."""
        provider = GeminiProvider(api_key=None)
        contents = provider._convert_history([
            ChatMessage(role="user", content="How is growth?"),
            ChatMessage(role="assistant", content="Up 12%."),
            ChatMessage(role="assistant", content=""),
        ])

        assert [c.role for c in contents] == ["user", "model"]
        assert contents[1].parts[0].text == "Up 12%."

    def test_default_model(self):
        """Test the default chat model."""
        assert GeminiProvider(api_key=None).model == "gemini-2.5-flash"


class TestLLMFactory:
    """Tests for LLM provider factory."""

    def test_create_gemini_provider(self):
        """Test creating Gemini provider via factory."""
        provider = create_llm_provider("gemini", api_key=None, model="gemini-2.5-pro")
        assert isinstance(provider, GeminiProvider)
        assert provider.model == "gemini-2.5-pro"

    def test_gemini_requires_api_key_entry(self):
        """Test that the api_key entry must be given explicitly."""
        with pytest.raises(TypeError):
            create_llm_provider("gemini")

    @pytest.mark.parametrize("name", ["simulated", "mock", "SIMULATED"])
    def test_create_simulated_provider(self, name: str):
        """Test creating the simulated provider by its names."""
        assert isinstance(create_llm_provider(name, word_delay=0), SimulatedProvider)

    def test_unsupported_provider(self):
        """Test that unsupported provider raises ValueError."""
        with pytest.raises(ValueError):
            create_llm_provider("unsupported")


class TestPrompts:
    """Tests for the system instruction."""

    def test_language_is_injected(self):
        """Test that the answer language appears in the instruction."""
        instruction = get_system_instruction(language="Spanish")
        assert "Spanish" in instruction
        assert "json-widget" in instruction
        assert "CURRENT LIVE DASHBOARD DATA" not in instruction

    def test_context_is_injected(self):
        """Test that a dashboard snapshot is included when given."""
        instruction = get_system_instruction(context="Revenue: 2.4M")
        assert "CURRENT LIVE DASHBOARD DATA" in instruction
        assert "Revenue: 2.4M" in instruction

    def test_override_directory(self, tmp_path, monkeypatch):
        """Test that a template in the override directory wins."""
        (tmp_path / "system.txt").write_text("Answer in {language}.{context_block}", encoding="utf-8")
        monkeypatch.setenv("CONSULTSTREAM_PROMPTS_DIR", str(tmp_path))
        clear_cache()
        try:
            assert get_system_instruction(language="French") == "Answer in French."
        finally:
            clear_cache()

    def test_missing_template(self):
        """Test that an unknown template name raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_prompt("no-such-template")
