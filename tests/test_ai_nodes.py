import pytest

from aiworks.errors import MissingInputError, NodeExecutionError
from aiworks.nodes import NodeRegistry, build_registry
from aiworks.nodes.ai import AINodes

from conftest import FakeLLM


def test_registry_catalog():
    registry = build_registry(FakeLLM())

    assert registry.list_types() == [
        "code-generation",
        "image-analysis",
        "multi-agent",
        "sentiment-analysis",
        "text-generation",
        "text-summarization",
        "translation",
    ]
    assert [spec.type_name for spec in registry.by_category("Vision")] == ["image-analysis"]
    assert [spec.type_name for spec in registry.search("TRANSLAT")] == ["translation"]
    assert registry.lookup("nope") is None
    with pytest.raises(KeyError):
        registry.get("nope")


def test_catalog_entries_describe_ports_and_defaults():
    registry = build_registry(FakeLLM())
    entry = next(item for item in registry.list_specs() if item["type"] == "text-generation")

    assert entry["inputs"] == ["prompt", "context"]
    assert entry["outputs"] == ["text", "metadata"]
    assert registry.get("text-generation").defaults()["maxTokens"] == 1024


def test_empty_registry():
    assert NodeRegistry().list_specs() == []


@pytest.mark.asyncio
async def test_text_generation_with_context():
    llm = FakeLLM(text="generated words")

    result = await AINodes(llm).text_generation(
        {"prompt": "Write", "context": "about tea"},
        {"apiKey": "k", "model": "gemini-1.5-flash", "temperature": 0.3, "maxTokens": 50, "topP": 0.9, "topK": 20},
    )

    assert result["text"] == "generated words"
    assert result["metadata"] == {
        "model": "gemini-1.5-flash",
        "promptTokens": 2,
        "completionTokens": 4,
        "finishReason": "STOP",
    }
    call = llm.calls[0]
    assert call["prompt"] == "Write\n\nContext: about tea"
    assert (call["max_output_tokens"], call["top_p"], call["top_k"]) == (50, 0.9, 20)


@pytest.mark.asyncio
async def test_text_generation_non_gemini_model_is_simulated():
    llm = FakeLLM()

    result = await AINodes(llm).text_generation({"prompt": "Hi"}, {"model": "claude-3-haiku"})

    assert result["metadata"] == {"model": "claude-3-haiku", "simulated": True}
    assert llm.calls == []


@pytest.mark.asyncio
async def test_text_generation_requires_prompt():
    with pytest.raises(MissingInputError, match="prompt"):
        await AINodes(FakeLLM()).text_generation({}, {"model": "gemini-1.5-flash"})


@pytest.mark.asyncio
async def test_summarization_prompt():
    llm = FakeLLM(text="short")

    result = await AINodes(llm).summarization(
        {"text": "A very long article"}, {"model": "gemini-1.5-flash", "maxLength": 30, "format": "bullets"}
    )

    assert result == {"summary": "short"}
    assert "30" in llm.prompts[0]
    assert "A very long article" in llm.prompts[0]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("reply", "label"),
    [("Positive.", "positive"), ("This is NEGATIVE", "negative"), ("mixed feelings", "neutral")],
)
async def test_sentiment_simple(reply, label):
    result = await AINodes(FakeLLM(text=reply)).sentiment({"text": "I love it"}, {"model": "gemini-1.5-flash"})

    assert result == {"sentiment": {"label": label, "raw": reply}}


@pytest.mark.asyncio
async def test_sentiment_detailed_parses_json():
    llm = FakeLLM(text='{"label": "positive", "score": 0.9}')

    result = await AINodes(llm).sentiment({"text": "great"}, {"model": "gemini-1.5-flash", "detailed": True})

    assert result == {"sentiment": {"label": "positive", "score": 0.9}}


@pytest.mark.asyncio
async def test_sentiment_detailed_falls_back_to_raw():
    result = await AINodes(FakeLLM(text="not json")).sentiment(
        {"text": "great"}, {"model": "gemini-1.5-flash", "detailed": True}
    )

    assert result["sentiment"]["raw"] == "not json"
    assert "error" in result["sentiment"]


@pytest.mark.asyncio
async def test_code_generation_extracts_fenced_block():
    reply = "Here you go:\n```python\nprint('hi')\n```\nThis prints hi."

    result = await AINodes(FakeLLM(text=reply)).code_generation(
        {"prompt": "say hi"}, {"model": "gemini-1.5-pro", "language": "auto"}
    )

    assert result == {"code": "print('hi')", "language": "python"}


@pytest.mark.asyncio
async def test_code_generation_without_block_uses_whole_text():
    result = await AINodes(FakeLLM(text="  x = 1  ")).code_generation(
        {"prompt": "assign"}, {"model": "gemini-1.5-pro", "language": "go"}
    )

    assert result == {"code": "x = 1", "language": "go"}


@pytest.mark.asyncio
async def test_translation_prompt_names_languages():
    llm = FakeLLM(text="Hallo")

    result = await AINodes(llm).translation(
        {"text": "Hello"}, {"model": "gemini-1.5-flash", "sourceLanguage": "en", "targetLanguage": "de"}
    )

    assert result == {"translatedText": "Hallo"}
    assert "Hello" in llm.prompts[0]


@pytest.mark.asyncio
async def test_image_analysis_is_simulated():
    llm = FakeLLM()

    result = await AINodes(llm).image_analysis(
        {"imageUrl": "https://example.com/cat.png"}, {"model": "gemini-pro-vision", "analysisType": "colors"}
    )

    assert "https://example.com/cat.png" in result["description"]
    assert result["tags"][-1] == "colors"
    assert llm.calls == []


@pytest.mark.asyncio
async def test_image_analysis_rejects_unknown_type():
    with pytest.raises(NodeExecutionError):
        await AINodes(FakeLLM()).image_analysis({"imageUrl": "u"}, {"analysisType": "x-ray"})
