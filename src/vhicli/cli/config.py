"""Authentication and configuration commands."""

import typer

from ..api.auth import AuthHandler
from ..api.exceptions import VHICliError
from ..utils import (
    console,
    create_table,
    print_data,
    print_error,
    print_info,
    print_success,
    prompt,
)
from ..utils.helpers import async_to_sync
from ._shared import get_state

app = typer.Typer(help="Manage vhicli configuration", no_args_is_help=True)

_SECRET_KEYS = {"password"}


@async_to_sync
async def auth(
    ctx: typer.Context,
    username: str = typer.Option(None, "--username", "-u", help="User name (default: from config)"),
    password: str = typer.Option(None, "--password", "-p", help="Password (default: from config, else prompted)"),
    domain: str = typer.Option(None, "--domain", "-d", help="Domain name (default: from config)"),
    project: str = typer.Option(None, "--project", help="Project name (default: from config)"),
) -> None:
    """Authenticate and cache a project-scoped token for the host."""
    state = get_state(ctx)

    try:
        config = state.config
        host = state.resolve_host()

        username = username or config.username or prompt("Username")
        password = password or config.password or prompt("Password", password=True)
        domain = domain or config.domain
        project = project or config.project or prompt("Project")

        handler = AuthHandler(host, verify_ssl=config.verify_ssl, timeout=config.timeout)
        token = await handler.authenticate(username, password, domain, project)
        state.token_store.save(token)

        print_success(
            f"Authenticated to {host} (project {project}); "
            f"token valid until {token.expires_at:%Y-%m-%d %H:%M:%S %Z}"
        )

    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command("show")
def show_config(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
) -> None:
    """Show the effective configuration (secrets are masked)."""
    state = get_state(ctx)

    try:
        config = state.config
    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)

    data = config.model_dump()
    for key in _SECRET_KEYS:
        if data.get(key):
            data[key] = "********"

    if json_output:
        print_data(data, json_output=True)
        return

    if not state.config_manager.exists():
        print_info(f"No config file at {state.config_manager.config_file}; showing defaults")
    table = create_table(
        title=str(state.config_manager.config_file),
        columns=[("Key", "cyan"), ("Value", "white")],
    )
    for key, value in data.items():
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


@app.command("set")
def set_config(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Config key (e.g. host, flavor_id, networks)"),
    value: str = typer.Argument(None, help="New value (prompted, hidden, for password)"),
) -> None:
    """Set one configuration value in the rc file."""
    state = get_state(ctx)

    try:
        if value is None:
            value = prompt(key, password=key in _SECRET_KEYS)
        state.config_manager.set_value(key, value)
    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Set '{key}' in {state.config_manager.config_file}")
