"""CLI interface for BUGTRAIL.

This module provides the Typer-based command-line interface over the
ticketing command layer. Each command runs one TicketingService operation
and exits with the code of the error it reports.

Commands:
    auth       Validate credentials and store them
    check      Check the stored credentials against the tracker
    create     Create a ticket, uploading attachments first
    teams      List the teams tickets can be filed against
    templates  List the tracker's issue templates
"""

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from rich.table import Table

from bugtrail.config.manager import ConfigManager
from bugtrail.integrations.ticketing import (
    CommandResult,
    CreateTicketRequest,
    InvalidConfigError,
    TicketingService,
    create_ticketing_service,
)
from bugtrail.integrations.ticketing.exceptions import exit_code_for_kind
from bugtrail.utils.console import (
    console,
    print_error,
    print_header,
    print_info,
    print_success,
    print_warning,
    show_version,
)
from bugtrail.utils.errors import BugtrailError, ExitCode
from bugtrail.utils.logging import setup_logging

T = TypeVar("T")

app = typer.Typer(
    name="bugtrail",
    help="BUGTRAIL - File QA bug reports with evidence in your issue tracker",
    add_completion=False,
    no_args_is_help=True,
)

JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Print the raw command result as JSON"),
]


def version_callback(value: bool) -> None:
    """Display version and exit."""
    if value:
        show_version()
        raise typer.Exit()


class AsyncLoopAlreadyRunningError(BugtrailError):
    """Raised when trying to run async code in an existing event loop."""

    _default_exit_code = ExitCode.GENERAL_ERROR


def run_async(coro_factory: Callable[[], Coroutine[None, None, T]]) -> T:
    """Run an async coroutine, refusing to nest inside a running loop.

    Takes a factory so the check happens before the coroutine exists.

    Raises:
        AsyncLoopAlreadyRunningError: If an event loop is already running
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop is not None:
        raise AsyncLoopAlreadyRunningError(
            "Cannot run async operation: an event loop is already running. "
            "Use 'await' directly when calling from async code."
        )

    return asyncio.run(coro_factory())


def _load_config() -> ConfigManager:
    config = ConfigManager()
    config.load()
    return config


async def _with_stored_credentials(
    service: TicketingService,
    operation: Callable[[TicketingService], Awaitable[CommandResult]],
) -> CommandResult:
    """Authenticate with the stored credentials, then run an operation."""
    stored = service.get_credentials()
    if not stored.ok:
        return stored
    if stored.data is None:
        return CommandResult.failure(
            InvalidConfigError("No ticketing credentials stored. Run 'bugtrail auth' first.")
        )

    authenticated = await service.authenticate(stored.data)
    if not authenticated.ok:
        return authenticated
    return await operation(service)


def _execute(
    operation: Callable[[TicketingService], Awaitable[CommandResult]],
    *,
    use_stored_credentials: bool = True,
) -> CommandResult:
    """Build the service from configuration and run one operation."""
    setup_logging()

    async def _run() -> CommandResult:
        async with create_ticketing_service(_load_config()) as service:
            if use_stored_credentials:
                return await _with_stored_credentials(service, operation)
            return await operation(service)

    try:
        return run_async(_run)
    except BugtrailError as e:
        print_error(str(e))
        raise typer.Exit(e.exit_code) from e


def _finish(result: CommandResult, json_output: bool) -> None:
    """Print the result if requested and exit with the error's code."""
    if json_output:
        console.print_json(data=result.to_dict())
    if result.ok:
        return

    error = result.error or {}
    if not json_output:
        print_error(error.get("message", "Unknown error"))
    raise typer.Exit(exit_code_for_kind(error.get("kind", "")))


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            callback=version_callback,
            is_eager=True,
            help="Show version information",
        ),
    ] = None,
) -> None:
    """BUGTRAIL - File QA bug reports with evidence in your issue tracker."""


@app.command()
def auth(
    api_key: Annotated[
        str,
        typer.Option(
            "--api-key",
            prompt=True,
            hide_input=True,
            help="Tracker API key",
        ),
    ],
    team_id: Annotated[
        str | None,
        typer.Option("--team-id", help="Team new tickets are filed against"),
    ] = None,
    workspace_id: Annotated[
        str | None,
        typer.Option("--workspace-id", help="Workspace identifier (provider-specific)"),
    ] = None,
    save: Annotated[
        bool,
        typer.Option("--save/--no-save", help="Store the credentials after validation"),
    ] = True,
    json_output: JsonOption = False,
) -> None:
    """Validate credentials with the tracker and store them."""
    credentials = {"api_key": api_key, "team_id": team_id, "workspace_id": workspace_id}

    async def _authenticate(service: TicketingService) -> CommandResult:
        result = await service.authenticate(credentials)
        if result.ok and save:
            saved = service.save_credentials(credentials)
            if not saved.ok:
                return saved
        return result

    result = _execute(_authenticate, use_stored_credentials=False)
    if result.ok and not json_output:
        print_success("Credentials validated" + (" and saved" if save else ""))
    _finish(result, json_output)


@app.command()
def check(json_output: JsonOption = False) -> None:
    """Check the stored credentials against the tracker."""

    async def _check(service: TicketingService) -> CommandResult:
        stored = service.get_credentials()
        if stored.ok and stored.data is not None:
            authenticated = await service.authenticate(stored.data)
            if not authenticated.ok:
                return authenticated
        # Without stored credentials the check reports a disconnected status
        return await service.check_connection()

    result = _execute(_check, use_stored_credentials=False)
    if not json_output and result.ok:
        status = result.data or {}
        if status.get("connected"):
            print_success(f"Connected to {status.get('integration_name')}")
        else:
            print_warning(
                f"Not connected to {status.get('integration_name')}: {status.get('message')}"
            )
    _finish(result, json_output)
    if not (result.data or {}).get("connected"):
        raise typer.Exit(ExitCode.CONNECTION_FAILED)


@app.command()
def create(
    title: Annotated[str, typer.Option("--title", "-t", help="Ticket title")],
    description: Annotated[
        str,
        typer.Option("--description", "-d", help="Markdown description"),
    ] = "",
    description_file: Annotated[
        Path | None,
        typer.Option(
            "--description-file",
            exists=True,
            dir_okay=False,
            readable=True,
            help="Read the description from a Markdown file",
        ),
    ] = None,
    attachments: Annotated[
        list[Path] | None,
        typer.Option("--attachment", "-a", help="File to attach (repeatable)"),
    ] = None,
    priority: Annotated[
        str | None,
        typer.Option("--priority", "-p", help="Priority code (Linear: 0-4)"),
    ] = None,
    labels: Annotated[
        list[str] | None,
        typer.Option("--label", "-l", help="Label ID to apply (repeatable)"),
    ] = None,
    assignee_id: Annotated[
        str | None,
        typer.Option("--assignee", help="Assignee ID"),
    ] = None,
    state_id: Annotated[
        str | None,
        typer.Option("--state", help="Workflow state ID"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Print the request without sending it"),
    ] = False,
    json_output: JsonOption = False,
) -> None:
    """Create a ticket, uploading attachments first."""
    if description_file is not None:
        description = description_file.read_text(encoding="utf-8")

    request = CreateTicketRequest(
        title=title,
        description=description,
        attachments=tuple(str(path) for path in attachments or ()),
        priority=priority,
        labels=frozenset(labels or ()),
        assignee_id=assignee_id,
        state_id=state_id,
    )

    if dry_run:
        print_header("Dry run")
        console.print_json(data=request.to_dict())
        for path in request.attachments:
            if not Path(path).is_file():
                print_warning(f"Attachment not found: {path}")
        return

    result = _execute(lambda service: service.create_ticket(request))
    if result.ok and not json_output:
        ticket = result.data
        print_success(f"Created {ticket['identifier']}: {ticket['url']}")
        for attachment in ticket["attachment_results"]:
            if not attachment["success"]:
                print_warning(
                    f"{Path(attachment['file_path']).name} not attached: {attachment['message']}"
                )
    _finish(result, json_output)


@app.command()
def teams(json_output: JsonOption = False) -> None:
    """List the teams tickets can be filed against."""
    result = _execute(lambda service: service.fetch_teams())
    if result.ok and not json_output:
        if not result.data:
            print_info("No teams found")
        else:
            table = Table(title="Teams")
            table.add_column("Key", style="bold")
            table.add_column("Name")
            table.add_column("ID", style="dim")
            for team in result.data:
                table.add_row(team["key"], team["name"], team["id"])
            console.print(table)
    _finish(result, json_output)


@app.command()
def templates(json_output: JsonOption = False) -> None:
    """List the tracker's issue templates."""
    result = _execute(lambda service: service.fetch_templates())
    if result.ok and not json_output:
        if not result.data:
            print_info("No issue templates found")
        else:
            table = Table(title="Issue templates")
            table.add_column("Name", style="bold")
            table.add_column("Team", style="dim")
            table.add_column("ID", style="dim")
            for template in result.data:
                table.add_row(template["name"], template["team_id"] or "-", template["id"])
            console.print(table)
    _finish(result, json_output)


__all__ = ["app", "run_async"]
