import pytest

from aiworks.errors import LLMError, MissingInputError, NodeExecutionError
from aiworks.nodes.builtin import BuiltinNodes, input_handler, output_handler, process_handler

from conftest import FakeLLM


@pytest.mark.asyncio
async def test_input_text():
    assert await input_handler({}, {"inputType": "text", "inputValue": "hi"}) == {"text": "hi"}
    assert await input_handler({}, {}) == {"text": ""}


@pytest.mark.asyncio
async def test_input_json():
    result = await input_handler({}, {"inputType": "json", "inputValue": '{"a": [1, 2]}'})

    assert result == {"data": {"a": [1, 2]}}


@pytest.mark.asyncio
async def test_input_invalid_json():
    with pytest.raises(NodeExecutionError, match="Invalid JSON input"):
        await input_handler({}, {"inputType": "json", "inputValue": "{nope"})


@pytest.mark.asyncio
async def test_input_api_is_described_not_fetched():
    result = await input_handler({}, {"inputType": "api", "url": "https://example.com/data"})

    assert result["response"]["url"] == "https://example.com/data"
    assert result["response"]["method"] == "GET"


@pytest.mark.asyncio
async def test_output_passes_value_through():
    payload = {"nested": [1, 2]}

    assert (await output_handler({"data": payload}, {}))["output"] is payload
    assert await output_handler({"text": "t", "data": payload}, {}) == {"output": "t"}
    assert await output_handler({}, {}) == {"output": None}


@pytest.mark.asyncio
async def test_transform():
    params = {"processType": "transform", "transformFunction": "{'total': data.price * data.qty}"}

    result = await process_handler({"data": {"price": 2.5, "qty": 4}}, params)

    assert result == {"output": {"total": 10.0}}


@pytest.mark.asyncio
async def test_transform_defaults_to_identity():
    assert await process_handler({"text": "same"}, {"processType": "transform"}) == {"output": "same"}


@pytest.mark.asyncio
async def test_filter_wraps_single_value():
    params = {"processType": "filter", "filterCondition": "item.ok"}

    assert await process_handler({"data": {"ok": True}}, params) == {"filtered": [{"ok": True}]}
    assert await process_handler({}, params) == {"filtered": []}


@pytest.mark.asyncio
async def test_bad_expression_raises_node_error():
    with pytest.raises(NodeExecutionError, match="Transform failed"):
        await process_handler({"data": 1}, {"processType": "transform", "transformFunction": "__import__('os')"})


@pytest.mark.asyncio
async def test_llm_node_uses_configured_model():
    llm = FakeLLM(text="done")
    nodes = BuiltinNodes(llm)

    result = await nodes.llm_handler(
        {"data": {"q": 1}},
        {"apiKey": "k", "model": "gemini-1.5-pro", "prompt": "Explain {input}", "temperature": 0.2},
    )

    assert result == {"text": "done", "model": "gemini-1.5-pro"}
    assert llm.calls[0]["prompt"] == 'Explain {"q": 1}'
    assert llm.calls[0]["temperature"] == 0.2


@pytest.mark.asyncio
async def test_llm_node_unknown_model_falls_back_to_default():
    llm = FakeLLM()

    await BuiltinNodes(llm).llm_handler({"prompt": "hi"}, {"apiKey": "k", "model": "gpt-4o"})

    assert llm.calls[0]["model"] is None


@pytest.mark.asyncio
async def test_llm_node_without_prompt():
    with pytest.raises(MissingInputError):
        await BuiltinNodes(FakeLLM()).llm_handler({}, {"apiKey": "k"})


@pytest.mark.asyncio
async def test_llm_errors_propagate():
    with pytest.raises(LLMError):
        await BuiltinNodes(FakeLLM(fail=True)).llm_handler({"prompt": "hi"}, {"apiKey": "k"})


@pytest.mark.asyncio
async def test_search_tool_returns_placeholders():
    result = await BuiltinNodes(FakeLLM()).tool_handler({"text": "python"}, {"toolType": "search"})

    assert result["query"] == "python"
    assert len(result["results"]) == 2


@pytest.mark.asyncio
async def test_code_tool_does_not_execute():
    result = await BuiltinNodes(FakeLLM()).tool_handler({}, {"toolType": "code", "code": "print(1)"})

    assert result["code"] == "print(1)"
    assert "simulated" in result["result"]


@pytest.mark.asyncio
async def test_calculator_tool():
    result = await BuiltinNodes(FakeLLM()).tool_handler({}, {"toolType": "calculator", "expression": "(42*7)/3"})

    assert result == {"result": "98.0"}


@pytest.mark.asyncio
async def test_unknown_tool_type():
    result = await BuiltinNodes(FakeLLM()).tool_handler({}, {"toolType": "teleport"})

    assert result == {"message": "Unsupported tool type: teleport"}
