import asyncio
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar
from urllib.parse import urlparse

import httpx
import typer
import uvicorn

from scenably.errors import ScenablyError
from scenably.models import ExecutionStatus, Frequency, Scenario, ScheduleTrigger, new_id, utc_now
from scenably.recorder.codegen import render_transcript, transform_transcript
from scenably.recorder.script import ActionScript
from scenably.supervisor.services import Services, build_services
from scenably.supervisor.settings import resolve_settings

app = typer.Typer(help="Record, replay and schedule browser scenarios.")

SERVICE_HOST = "127.0.0.1"
SERVICE_PORT = 7878
SERVICE_URL = f"http://{SERVICE_HOST}:{SERVICE_PORT}"

T = TypeVar("T")


async def _with_services(operation: Callable[[Services], Awaitable[T]]) -> T:
    services = build_services(resolve_settings())
    await services.store.init()
    try:
        return await operation(services)
    finally:
        await services.close()


def _run(operation: Callable[[Services], Awaitable[T]]) -> T:
    """Run an async operation against locally built services, mapping core errors to exit code 1."""
    try:
        return asyncio.run(_with_services(operation))
    except ScenablyError as exc:
        typer.echo(f"Error [{exc.error_code}]: {exc.message}")
        raise typer.Exit(code=1)


def _echo_json(payload: object) -> None:
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def serve(
    host: str = typer.Option(SERVICE_HOST, help="Bind address"),
    port: int = typer.Option(SERVICE_PORT, help="Bind port"),
):
    """Run the HTTP service with the periodic scheduler driver."""
    uvicorn.run("scenably.supervisor.app:app", host=host, port=port, log_level="info")


@app.command()
def health(url: str = typer.Option(SERVICE_URL, help="Service base URL")):
    """Probe a running service."""
    try:
        response = httpx.get(f"{url}/health", timeout=5.0)
    except httpx.HTTPError as exc:
        typer.echo(f"Service: NOT RESPONDING ({exc})")
        raise typer.Exit(code=1)
    if response.status_code != 200:
        typer.echo(f"Service: UNHEALTHY (HTTP {response.status_code})")
        raise typer.Exit(code=1)
    typer.echo(f"Service: RUNNING (version {response.json().get('version', '?')})")


@app.command()
def record(
    url: str,
    name: Optional[str] = typer.Option(None, help="Scenario name (defaults to the target host)"),
    discard: bool = typer.Option(False, "--discard", help="Stop without saving a scenario"),
):
    """Record interactions in a live browser and save them as a scenario."""

    async def _record(services: Services) -> None:
        session_id = await services.registry.start(url)
        session = services.registry.get_status(session_id)
        typer.echo(f"Recording {session.target_url} (session {session_id}).")
        typer.echo("Interact with the browser, then press Enter here to finish.")
        await asyncio.to_thread(input)

        script, message = await services.registry.stop(session_id, save_transcript=not discard)
        typer.echo(message)
        if script is None:
            return
        now = utc_now()
        scenario = await services.store.save_scenario(
            Scenario(
                id=new_id(),
                name=name or urlparse(session.target_url).hostname or session.target_url,
                target_url=session.target_url,
                script=script,
                created_at=now,
                updated_at=now,
            )
        )
        services.registry.mark_completed(session_id)
        typer.echo(f"Saved scenario {scenario.id} ({len(scenario.script)} actions)")

    _run(_record)


@app.command()
def convert(path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Recorder transcript file")):
    """Convert a raw recorder transcript into ActionScript JSON."""
    script = transform_transcript(path.read_text(encoding="utf-8"))
    _echo_json(script.to_dict())


@app.command()
def render(path: Path = typer.Argument(..., exists=True, dir_okay=False, help="ActionScript JSON file")):
    """Render ActionScript JSON as a runnable Playwright python script."""
    try:
        script = ActionScript.from_dict(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValueError) as exc:
        typer.echo(f"Invalid ActionScript: {exc}")
        raise typer.Exit(code=1)
    typer.echo(render_transcript(script), nl=False)


@app.command()
def scenarios():
    """List stored scenarios."""

    async def _list(services: Services) -> list:
        return [scenario.to_dict() for scenario in await services.store.list_scenarios()]

    for scenario in _run(_list):
        typer.echo(f"{scenario['id']}  {scenario['name']}  {scenario['target_url']}")


@app.command()
def run(
    scenario_id: str,
    debug: bool = typer.Option(False, "--debug", help="Headed browser with slow motion"),
):
    """Execute a scenario now and print its result."""

    async def _execute(services: Services):
        scenario = await services.store.load_scenario(scenario_id)
        return await services.engine.execute(scenario, debug=debug)

    result = _run(_execute)
    _echo_json(result.to_dict())
    if result.status != ExecutionStatus.SUCCESS:
        raise typer.Exit(code=1)


@app.command("schedule-set")
def schedule_set(
    scenario_id: str,
    frequency: Frequency = typer.Option(..., help="DAILY, WEEKLY or MONTHLY"),
    time: str = typer.Option(..., help="HH:MM in the configured timezone"),
    day_of_week: Optional[str] = typer.Option(None, help="WEEKLY only, e.g. MON,WED"),
    day_of_month: Optional[int] = typer.Option(None, help="MONTHLY only, 1-31"),
    disabled: bool = typer.Option(False, "--disabled", help="Save the trigger disabled"),
):
    """Create or replace the schedule trigger of a scenario."""
    trigger = ScheduleTrigger(
        scenario_id=scenario_id,
        frequency=frequency,
        time=time,
        enabled=not disabled,
        day_of_week=day_of_week,
        day_of_month=day_of_month,
    )
    saved = _run(lambda services: services.scheduler.save(trigger))
    _echo_json(saved.to_dict())


@app.command("schedule-toggle")
def schedule_toggle(
    scenario_id: str,
    enabled: bool = typer.Option(True, "--enable/--disable"),
):
    """Enable or disable a scenario's trigger without touching its history."""
    saved = _run(lambda services: services.scheduler.toggle(scenario_id, enabled))
    typer.echo(f"Schedule for {scenario_id}: {'enabled' if saved.enabled else 'disabled'}")


@app.command("schedule-delete")
def schedule_delete(scenario_id: str):
    """Delete a scenario's trigger; run history is kept."""
    _run(lambda services: services.scheduler.delete(scenario_id))
    typer.echo(f"Schedule for {scenario_id} deleted")


@app.command()
def schedules():
    """List schedule triggers."""
    for trigger in _run(lambda services: services.scheduler.list_triggers()):
        state = "on " if trigger.enabled else "off"
        detail = trigger.day_of_week or (str(trigger.day_of_month) if trigger.day_of_month else "")
        typer.echo(f"[{state}] {trigger.scenario_id}  {trigger.frequency.value} {trigger.time} {detail}".rstrip())


@app.command()
def runs(scenario_id: str, limit: int = typer.Option(20, help="Maximum runs to show")):
    """Show scheduled run history for a scenario, newest first."""
    for item in _run(lambda services: services.scheduler.list_runs(scenario_id, limit=limit)):
        suffix = f"  {item.error_message}" if item.error_message else ""
        typer.echo(f"{item.due_at.isoformat()}  {item.status.value:<8} {item.execution_id}{suffix}")


@app.command()
def tick():
    """Evaluate triggers once and wait for dispatched runs to finish."""

    async def _tick(services: Services) -> list:
        appended = await services.scheduler.tick()
        await services.scheduler.drain()
        return appended

    appended = _run(_tick)
    typer.echo(f"Dispatched {len(appended)} scheduled run(s)")


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    app()


if __name__ == "__main__":
    main()
