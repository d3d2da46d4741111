"""Agent invocation: prompt rendering, model call and output validation.

The invoker guarantees that the ``result`` of every returned
:class:`~weaveflow.contracts.AgentOutput` holds exactly the agent's declared
outputs, keyed by their declared names, whatever the model produced.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel

from .constants import MISSING_OUTPUT_TEMPLATE, NO_REASONING, PARSE_FAILURE_OUTPUT
from .contracts import Agent, AgentOutput
from .errors import ResponseParseError
from .models.base import LanguageModel
from .naming import lookup, normalize, parse_field

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)


class ParseResult(BaseModel):
    """Outcome of extracting JSON from model text: a payload or an error."""

    payload: Optional[Dict[str, Any]] = None
    parse_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.payload is not None


def render_value(value: Any) -> str:
    """Render an input value for inclusion in a prompt."""
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, indent=2, default=str)
    return str(value)


def placeholder_pattern(names: List[str]) -> re.Pattern:
    """Match ``{{name}}`` or ``{name}`` for any of ``names``, annotation allowed."""
    # Longest names first so ``text: string`` wins over ``text``.
    alternation = "|".join(
        re.escape(name) for name in sorted(names, key=len, reverse=True)
    )
    return re.compile(
        r"\{\{\s*(?P<double>" + alternation + r")\s*(?::[^{}]*)?\}\}"
        r"|(?<!\{)\{\s*(?P<single>" + alternation + r")\s*(?::[^{}]*)?\}(?!\})"
    )


def render_prompt(agent: Agent, inputs: Dict[str, Any]) -> str:
    """Substitute ``{{input}}`` / ``{input}`` placeholders in the agent prompt.

    The template is scanned once, so placeholder-like text inside an input
    value is passed through untouched.
    """
    if not inputs:
        return agent.prompt

    # Placeholder text -> input name. Exact names take precedence over
    # normalized ones.
    sources: Dict[str, str] = {name: name for name in inputs}
    for name in inputs:
        sources.setdefault(parse_field(name).name, name)
    rendered = {name: render_value(value) for name, value in inputs.items()}
    used = set()

    def substitute(match: re.Match) -> str:
        source = sources[match.group("double") or match.group("single")]
        used.add(source)
        return rendered[source]

    prompt = placeholder_pattern(list(sources)).sub(substitute, agent.prompt)
    for name in inputs:
        if name not in used:
            logger.debug(f"Input '{name}' has no placeholder in prompt of {agent.name}")
    return prompt


def output_instructions(agent: Agent) -> str:
    """Instruction block demanding the agent's JSON output contract."""
    keys = [field.name for field in agent.output_fields]
    fields = ",\n    ".join(f'"{key}": "value"' for key in keys)
    return (
        "\n\nIMPORTANT: Your response must be in valid JSON format with the "
        "following structure:\n"
        "{\n"
        '  "result": {\n'
        f"    {fields}\n"
        "  },\n"
        '  "reasoning": "Explanation of how you arrived at this result"\n'
        "}\n\n"
        f"Make sure to include all the required output fields: {', '.join(keys)}\n"
        "Do not include any keys in \"result\" other than these."
    )


def build_prompt(agent: Agent, inputs: Dict[str, Any]) -> str:
    return render_prompt(agent, inputs) + output_instructions(agent)


def _brace_spans(text: str) -> Iterator[str]:
    """Yield top-level ``{...}`` spans using string-aware brace matching."""
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"' and depth > 0:
            in_string = True
        elif char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start : index + 1]


def parse_json_object(text: str) -> Dict[str, Any]:
    """Return the first JSON object found in ``text``.

    Fenced code blocks are preferred over bare brace spans.

    Raises:
        ResponseParseError: If no candidate parses as a JSON object.
    """
    candidates = [m.group(1).strip() for m in _FENCE_RE.finditer(text)]
    candidates.extend(_brace_spans(text))

    last_error = "no JSON object found"
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = str(e)
            continue
        if isinstance(parsed, dict):
            return parsed
        last_error = f"expected a JSON object, got {type(parsed).__name__}"
    raise ResponseParseError(last_error, raw_text=text)


def extract_json(text: str) -> ParseResult:
    try:
        return ParseResult(payload=parse_json_object(text))
    except ResponseParseError as e:
        return ParseResult(parse_error=str(e))


def coerce_to_schema(agent: Agent, payload: Dict[str, Any]) -> AgentOutput:
    """Fit a parsed model payload to the agent's declared outputs."""
    raw_result = payload.get("result")
    if not isinstance(raw_result, dict):
        if "result" in payload:
            logger.warning(
                f"Agent {agent.name} returned a non-object result; discarding it"
            )
            raw_result = {}
        else:
            # Model answered with bare output keys instead of the envelope.
            raw_result = {k: v for k, v in payload.items() if k != "reasoning"}

    fields = agent.output_fields
    result: Dict[str, Any] = {}
    missing = []
    for field in fields:
        found, value = lookup(raw_result, field)
        if found:
            result[field.raw] = value
        else:
            result[field.raw] = MISSING_OUTPUT_TEMPLATE.format(name=field.name)
            missing.append(field.raw)
    if missing:
        logger.warning(
            f"OutputContractViolation: agent {agent.name} did not produce "
            f"{', '.join(missing)}"
        )

    declared_keys = {field.name for field in fields}
    extra = [key for key in raw_result if normalize(key) not in declared_keys]
    if extra:
        logger.info(
            f"Dropping undeclared outputs from agent {agent.name}: {', '.join(extra)}"
        )

    reasoning = payload.get("reasoning")
    if reasoning is None or reasoning == "":
        reasoning = NO_REASONING
    elif not isinstance(reasoning, str):
        reasoning = render_value(reasoning)

    return AgentOutput(result=result, reasoning=reasoning)


def parse_failure_output(agent: Agent, detail: str) -> AgentOutput:
    return AgentOutput(
        result={declared: PARSE_FAILURE_OUTPUT for declared in agent.outputs},
        reasoning=f"Error parsing response: {detail}",
    )


class AgentInvoker:
    """Runs a single agent against a language model."""

    def __init__(self, model: LanguageModel) -> None:
        self.model = model

    async def invoke(self, agent: Agent, inputs: Dict[str, Any]) -> AgentOutput:
        """Execute ``agent`` with ``inputs`` and return its validated output.

        Raises:
            ModelInvocationError: If the language model call fails.
        """
        logger.info(f"Invoking agent {agent.name} with inputs: {list(inputs)}")
        prompt = build_prompt(agent, inputs)
        logger.debug(f"Prompt for {agent.name}: {prompt}")

        text = await self.model.complete(prompt)

        parsed = extract_json(text)
        if not parsed.ok:
            logger.error(
                f"Error parsing response of agent {agent.name}: {parsed.parse_error}"
            )
            logger.debug(f"Raw response: {text}")
            return parse_failure_output(agent, parsed.parse_error or "")

        output = coerce_to_schema(agent, parsed.payload)
        logger.info(f"Agent {agent.name} produced outputs: {list(output.result)}")
        return output
