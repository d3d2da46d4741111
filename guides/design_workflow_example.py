"""Design a workflow from a problem statement with a real model and run it.

Usage:
    WEAVEFLOW_MODEL=openai:gpt-4o python guides/design_workflow_example.py \
        "Turn meeting notes into action items" notes="..."
"""

import asyncio
import sys

from weaveflow import WorkflowService, get_language_model, get_store
from weaveflow.contracts import WorkflowInput


async def main():
    problem = sys.argv[1]
    inputs = dict(arg.split("=", 1) for arg in sys.argv[2:])

    service = WorkflowService(get_store(), get_language_model())
    workflow = await service.create_workflow(
        WorkflowInput(name="example", problem_statement=problem), user_id="example"
    )
    for agent in workflow.agents:
        print(f"{agent.id}: {agent.name} {agent.inputs} -> {agent.outputs}")

    result = await service.execute_workflow(workflow.id, inputs, "example")
    for update in result.updates:
        print(f"[{update.type.value}] {update.message}")
    print(result.results)


if __name__ == "__main__":
    asyncio.run(main())
