"""Run a hand-built weaveflow pipeline against a scripted model."""

import asyncio
import json

from weaveflow import (
    Agent,
    Connection,
    ExecutionRegistry,
    Orchestrator,
    Workflow,
    WorkflowFlow,
)
from weaveflow.models import ScriptedLanguageModel


def build_workflow() -> Workflow:
    summarizer = Agent(
        id="summarizer",
        name="Summarizer",
        prompt="Summarize the following text in one sentence: {{text}}",
        inputs=["text: string"],
        outputs=["summary: string"],
    )
    extractor = Agent(
        id="extractor",
        name="Keyword Extractor",
        prompt="List three keywords for: {{summary}}",
        inputs=["summary: string"],
        outputs=["keywords: string[]"],
    )
    return Workflow(
        user_id="guide",
        name="Summarize and tag",
        agents=[summarizer, extractor],
        flow=WorkflowFlow(
            connections=[Connection(source="summarizer", target="extractor")]
        ),
    )


def scripted_model() -> ScriptedLanguageModel:
    return ScriptedLanguageModel(
        replies=[
            json.dumps(
                {
                    "result": {"summary": "Rivers shape the land they cross."},
                    "reasoning": "Condensed the article.",
                }
            ),
            "```json\n"
            + json.dumps({"result": {"keywords": ["rivers", "erosion", "land"]}})
            + "\n```",
        ]
    )


async def run_inline():
    """Execute directly and print each update as it is emitted."""
    print("🚀 Inline execution")

    orchestrator = Orchestrator(
        build_workflow(),
        scripted_model(),
        on_update=lambda u: print(f"  [{u.type.value}] {u.message}"),
    )
    result = await orchestrator.execute({"text": "A long article about rivers..."})
    print(f"✅ Results: {result.results}")


async def run_in_background():
    """Start through the registry and poll until complete."""
    print("\n🔄 Background execution")

    registry = ExecutionRegistry()
    execution_id = registry.start(
        build_workflow(), {"text": "A long article about rivers..."}, scripted_model()
    )

    seen = 0
    while True:
        status = registry.poll(execution_id)
        for update in status.updates[seen:]:
            print(f"  [{update.type.value}] {update.message}")
        seen = len(status.updates)
        if status.is_complete:
            break
        await asyncio.sleep(0.1)
    print(f"✅ Execution {execution_id} finished: {status.state.value}")


async def main():
    print("🤖 weaveflow pipeline guide\n")
    await run_inline()
    await run_in_background()


if __name__ == "__main__":
    asyncio.run(main())
