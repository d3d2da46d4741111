"""Command line interface for weaveflow workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import typer

from weaveflow.contracts import ExecutionUpdate, UpdateType, WorkflowInput
from weaveflow.errors import NotFoundError, WeaveflowError
from weaveflow.models import get_language_model
from weaveflow.persistence import get_store
from weaveflow.registry import get_registry
from weaveflow.service import WorkflowService

app = typer.Typer(help="CLI for weaveflow workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for managing workflows")
agent_app = typer.Typer(help="Commands for managing agents")

app.add_typer(workflow_app, name="workflow")
app.add_typer(agent_app, name="agent")

DEFAULT_USER = "local"
POLL_INTERVAL = 0.2


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
) -> None:
    """weaveflow CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _service() -> WorkflowService:
    return WorkflowService(get_store(), get_language_model(), get_registry())


def _parse_inputs(pairs: List[str], inputs_json: Optional[str]) -> Dict[str, Any]:
    inputs: Dict[str, Any] = {}
    if inputs_json:
        try:
            loaded = json.loads(inputs_json)
        except json.JSONDecodeError as e:
            raise typer.BadParameter(f"--inputs-json is not valid JSON: {e}")
        if not isinstance(loaded, dict):
            raise typer.BadParameter("--inputs-json must be a JSON object")
        inputs.update(loaded)
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise typer.BadParameter(f"Expected key=value, got '{pair}'")
        inputs[key.strip()] = value
    return inputs


def _format_update(update: ExecutionUpdate) -> str:
    line = f"[{update.type.value}] {update.message}"
    if update.type == UpdateType.AGENT_COMPLETE and update.data:
        outputs = json.dumps(update.data.get("outputs", {}), default=str)
        line += f"\n    outputs: {outputs}"
    elif update.type == UpdateType.COMPLETE and update.data:
        results = json.dumps(update.data.get("results", {}), indent=2, default=str)
        line += f"\n{results}"
    return line


@workflow_app.command("create")
def workflow_create(
    name: str = typer.Option(..., "--name", help="Workflow name"),
    problem: str = typer.Option(..., "--problem", help="Problem statement"),
    description: str = typer.Option("", "--description", help="Description"),
    user: str = typer.Option(DEFAULT_USER, "--user", help="Owner id"),
) -> None:
    """
    Design a workflow for a problem statement and store it as a draft.

    Example:
        weaveflow workflow create --name triage --problem "Sort support tickets"
    """
    service = _service()
    try:
        workflow = asyncio.run(
            service.create_workflow(
                WorkflowInput(
                    name=name, description=description, problem_statement=problem
                ),
                user,
            )
        )
    except WeaveflowError as exc:
        typer.secho(f"Failed to create workflow: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"Created workflow {workflow.id}")
    for agent in workflow.agents:
        typer.echo(f"- {agent.id}: {agent.name}")


@workflow_app.command("list")
def workflow_list(
    user: str = typer.Option(DEFAULT_USER, "--user", help="Owner id"),
) -> None:
    """List the user's workflows, most recently updated first."""
    workflows = asyncio.run(_service().list_workflows(user))
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        typer.echo(f"{wf.id}\t{wf.status.value}\t{wf.name}")


@workflow_app.command("show")
def workflow_show(
    workflow_id: str,
    user: str = typer.Option(DEFAULT_USER, "--user", help="Owner id"),
) -> None:
    """Show agents and connections of a workflow."""
    try:
        wf = asyncio.run(_service().get_workflow(workflow_id, user))
    except NotFoundError:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)

    typer.echo(f"Workflow {wf.id}: {wf.name} ({wf.status.value})")
    if wf.last_run:
        typer.echo(f"Last run: {wf.last_run.isoformat()}")
    for agent in wf.agents:
        typer.echo(
            f"- {agent.id} {agent.name}: "
            f"inputs={', '.join(agent.inputs) or '-'} "
            f"outputs={', '.join(agent.outputs) or '-'}"
        )
    for connection in wf.flow.connections:
        typer.echo(f"  {connection.source} -> {connection.target}")


@workflow_app.command("delete")
def workflow_delete(
    workflow_id: str,
    user: str = typer.Option(DEFAULT_USER, "--user", help="Owner id"),
) -> None:
    """Delete a workflow document."""
    try:
        asyncio.run(_service().delete_workflow(workflow_id, user))
    except NotFoundError:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Deleted workflow {workflow_id}")


async def _run_and_follow(
    service: WorkflowService, workflow_id: str, inputs: Dict[str, Any], user: str
) -> Optional[ExecutionUpdate]:
    execution_id = await service.start_execution(workflow_id, inputs, user)
    typer.echo(f"Execution {execution_id}")

    seen = 0
    while True:
        status = service.poll_execution(execution_id)
        for update in status.updates[seen:]:
            typer.echo(_format_update(update))
        seen = len(status.updates)
        if status.is_complete:
            await service.registry.wait(execution_id)
            return status.updates[-1] if status.updates else None
        await asyncio.sleep(POLL_INTERVAL)


@workflow_app.command("run")
def workflow_run(
    workflow_id: str,
    input_pairs: List[str] = typer.Option([], "--input", "-i", help="Global input key=value"),
    inputs_json: Optional[str] = typer.Option(
        None, "--inputs-json", help="Global inputs as a JSON object"
    ),
    user: str = typer.Option(DEFAULT_USER, "--user", help="Owner id"),
) -> None:
    """
    Execute a workflow and stream its updates.

    Example:
        weaveflow workflow run 3f2a... -i text="hello world"
        weaveflow workflow run 3f2a... --inputs-json '{"count": 5}'
    """
    inputs = _parse_inputs(input_pairs, inputs_json)
    service = _service()
    try:
        last = asyncio.run(_run_and_follow(service, workflow_id, inputs, user))
    except NotFoundError:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)

    if last is None or last.type == UpdateType.ERROR:
        raise typer.Exit(code=1)


@agent_app.command("improve")
def agent_improve(
    workflow_id: str,
    agent_id: str,
    save: bool = typer.Option(False, "--save", help="Store the improved prompt"),
    user: str = typer.Option(DEFAULT_USER, "--user", help="Owner id"),
) -> None:
    """Ask the model for a better prompt template for one agent."""
    try:
        agent = asyncio.run(
            _service().improve_agent(workflow_id, agent_id, user, save=save)
        )
    except NotFoundError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1)
    except WeaveflowError as exc:
        typer.secho(f"Failed to improve prompt: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(agent.prompt)
    if save:
        typer.echo(f"Saved prompt for agent {agent.id}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
