"""Tests for agent invocation and output validation."""

import pytest

from tests.fixtures.workflows import make_agent, reply
from weaveflow.constants import PARSE_FAILURE_OUTPUT
from weaveflow.errors import ModelInvocationError, ResponseParseError
from weaveflow.invoker import (
    AgentInvoker,
    build_prompt,
    coerce_to_schema,
    extract_json,
    parse_json_object,
    render_prompt,
)
from weaveflow.models import ScriptedLanguageModel


def test_render_prompt_substitutes_both_placeholder_forms():
    agent = make_agent(
        "a", inputs=["text"], prompt="Double: {{text}} Single: {text} Spaced: {{ text }}"
    )
    rendered = render_prompt(agent, {"text": "hello"})
    assert rendered == "Double: hello Single: hello Spaced: hello"


def test_render_prompt_handles_annotated_names():
    agent = make_agent(
        "a",
        inputs=["text: string"],
        prompt="Plain {{text}} annotated {{text: string}} other {text:markdown}",
    )
    rendered = render_prompt(agent, {"text: string": "hi"})
    assert rendered == "Plain hi annotated hi other hi"


def test_render_prompt_serializes_structured_values():
    agent = make_agent("a", inputs=["data"], prompt="Data: {{data}}")
    rendered = render_prompt(agent, {"data": {"k": [1, 2]}})
    assert '"k": [' in rendered
    assert "\n" in rendered


def test_render_prompt_leaves_unknown_placeholders():
    agent = make_agent("a", inputs=["x"], prompt="{{x}} and {{y}} and {json}")
    assert render_prompt(agent, {"x": 1}) == "1 and {{y}} and {json}"


def test_render_prompt_does_not_expand_placeholders_inside_values():
    agent = make_agent("a", inputs=["a", "b"], prompt="A={{a}} B={{b}}")
    rendered = render_prompt(agent, {"a": "{{b}}", "b": "SECRET"})
    assert rendered == "A={{b}} B=SECRET"


def test_build_prompt_lists_normalized_output_keys():
    agent = make_agent("a", outputs=["summary: string", "score"])
    prompt = build_prompt(agent, {})
    assert '"summary": "value"' in prompt
    assert '"score": "value"' in prompt
    assert "summary: string" not in prompt
    assert '"reasoning"' in prompt


def test_parse_json_object_prefers_fenced_block():
    text = 'Here {"ignored": true}\n```json\n{"result": {"a": 1}}\n```'
    assert parse_json_object(text) == {"result": {"a": 1}}


def test_parse_json_object_finds_bare_object_in_prose():
    text = 'Sure! {"result": {"a": "has } brace", "b": {"c": 2}}, "reasoning": "r"} done.'
    payload = parse_json_object(text)
    assert payload["result"] == {"a": "has } brace", "b": {"c": 2}}
    assert payload["reasoning"] == "r"


def test_parse_json_object_skips_invalid_candidates():
    text = '{not json} then {"ok": 1}'
    assert parse_json_object(text) == {"ok": 1}


def test_parse_json_object_raises_without_object():
    with pytest.raises(ResponseParseError) as excinfo:
        parse_json_object("not json at all")
    assert excinfo.value.raw_text == "not json at all"

    result = extract_json("[1, 2, 3]")
    assert not result.ok
    assert result.parse_error


def test_coerce_fills_missing_and_drops_undeclared():
    agent = make_agent("a", outputs=["x", "y: string"])
    output = coerce_to_schema(
        agent, {"result": {"x": 1, "extra": 2}, "reasoning": "r"}
    )
    assert output.result == {"x": 1, "y: string": "Missing output: y"}
    assert output.reasoning == "r"


def test_coerce_accepts_bare_payload_and_defaults_reasoning():
    agent = make_agent("a", outputs=["x"])
    output = coerce_to_schema(agent, {"x": "v"})
    assert output.result == {"x": "v"}
    assert output.reasoning == "No reasoning provided"


def test_coerce_keys_result_by_declared_names():
    agent = make_agent("a", outputs=["summary: string"])
    output = coerce_to_schema(agent, {"result": {"summary": "short"}})
    assert output.result == {"summary: string": "short"}


@pytest.mark.asyncio
async def test_invoke_returns_exactly_declared_outputs():
    model = ScriptedLanguageModel(
        replies=[reply({"x": 1, "z": 3}), "```\n" + reply({"y": 2}) + "\n```"]
    )
    agent = make_agent("a", outputs=["x", "y"])
    invoker = AgentInvoker(model)

    first = await invoker.invoke(agent, {})
    second = await invoker.invoke(agent, {})

    assert first.result == {"x": 1, "y": "Missing output: y"}
    assert second.result == {"x": "Missing output: x", "y": 2}
    for output in (first, second):
        assert set(output.result) == set(agent.outputs)


@pytest.mark.asyncio
async def test_invoke_sends_rendered_prompt():
    model = ScriptedLanguageModel(replies=[reply({"out": "ok"})])
    agent = make_agent("a", inputs=["topic"], outputs=["out"], prompt="Write about {{topic}}")

    await AgentInvoker(model).invoke(agent, {"topic": "rivers"})

    assert model.prompts[0].startswith("Write about rivers")
    assert '"out": "value"' in model.prompts[0]


@pytest.mark.asyncio
async def test_invoke_unparseable_response_yields_placeholders():
    model = ScriptedLanguageModel(replies=["not json at all"])
    agent = make_agent("a", outputs=["x"])

    output = await AgentInvoker(model).invoke(agent, {})

    assert output.result == {"x": PARSE_FAILURE_OUTPUT}
    assert "parsing" in output.reasoning.lower()


@pytest.mark.asyncio
async def test_invoke_propagates_model_failure():
    model = ScriptedLanguageModel(replies=[ModelInvocationError("boom", status_code=503)])
    agent = make_agent("a", outputs=["x"])

    with pytest.raises(ModelInvocationError) as excinfo:
        await AgentInvoker(model).invoke(agent, {})
    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "text",
    [
        '{"result": {"a": 1, "b: number": 2, "c": 3}}',
        '{"result": {}}',
        '{"result": "not a map", "reasoning": "r"}',
        '{"a": 1, "unrelated": true}',
        "```json\n{\"result\": {\"B\": 1}}\n```",
        "[]",
        "",
    ],
)
async def test_invoke_result_keys_always_match_declared_outputs(text):
    agent = make_agent("a", outputs=["a: string", "b"])
    output = await AgentInvoker(ScriptedLanguageModel(replies=[text])).invoke(agent, {})

    assert list(output.result) == ["a: string", "b"]
    assert output.reasoning
