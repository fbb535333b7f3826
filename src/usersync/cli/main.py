"""usersync CLI — add users to both stores and watch the two lists.

Usage:
    usersync serve                          # Run the reference REST backend
    usersync domains                        # Show the selectable domains
    usersync add Alice a@x.com -d a.shop.com   # Dual-write one user
    usersync list -d b.shop.com             # Print both lists once
    usersync watch                          # Live screen with both lists

Inside `watch`, type a command and press enter:
    d <domain>          switch the domain filter
    a <name> <email>    add a user (quote names with spaces)
    r                   refetch the REST list
    q                   quit
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import shlex
import sys
from typing import Optional

import click
from pydantic import ValidationError

from usersync import __version__
from usersync.config import settings
from usersync.dependencies import (
    build_api_client,
    build_coordinator,
    build_view_model,
    close_realtime_store,
    get_realtime_store,
)
from usersync.errors import ApiError, RealtimeError
from usersync.logs import configure_logging
from usersync.schemas.user import User
from usersync.services.dual_write import SubmitOutcome, SubmitStatus
from usersync.ui.render import render_screen, render_section
from usersync.ui.view_model import UserDirectoryViewModel

WATCH_HELP = "Commands: d <domain> | a <name> <email> | r | q"

_OUTCOME_COLORS = {
    SubmitStatus.CREATED: "green",
    SubmitStatus.PARTIAL: "yellow",
    SubmitStatus.FAILED: "red",
    SubmitStatus.INVALID: "red",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _echo_outcome(outcome: SubmitOutcome) -> None:
    click.secho(outcome.message, fg=_OUTCOME_COLORS[outcome.status], err=not outcome.rest_written)


domain_option = click.option(
    "--domain",
    "-d",
    type=click.Choice(settings.domains),
    default=None,
    help=f"Domain filter (default: {settings.default_domain})",
)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="usersync")
@click.option(
    "--log-level",
    default=settings.log_level,
    show_default=True,
    help="Minimum level of log lines written to stderr",
)
def main(log_level: str):
    """usersync — add users to a REST store and a realtime store, watch both."""
    configure_logging(log_level)


# ---------------------------------------------------------------------------
# usersync serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=settings.backend_port, show_default=True, type=int)
@click.option("--reload", is_flag=True, help="Restart on code changes")
def serve(host: str, port: int, reload: bool):
    """Run the reference REST backend (GET /api/userGet, POST /api/userPost)."""
    import uvicorn

    uvicorn.run("usersync.main:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# usersync domains
# ---------------------------------------------------------------------------


@main.command()
def domains():
    """List the domains users can be filed under."""
    for i, domain in enumerate(settings.domains):
        suffix = "  (default)" if i == 0 else ""
        click.echo(f"{domain}{suffix}")


# ---------------------------------------------------------------------------
# usersync add
# ---------------------------------------------------------------------------


@main.command()
@click.argument("name")
@click.argument("email")
@domain_option
def add(name: str, email: str, domain: Optional[str]):
    """Add a user to the REST store, then to the realtime store."""
    outcome = _run(_add_impl(name, email, domain or settings.default_domain))
    _echo_outcome(outcome)
    if not outcome.rest_written:
        sys.exit(1)


async def _add_impl(name: str, email: str, domain: str) -> SubmitOutcome:
    store = get_realtime_store()
    try:
        async with build_api_client() as api:
            return await build_coordinator(api, store).submit(name, email, domain)
    finally:
        await close_realtime_store()


# ---------------------------------------------------------------------------
# usersync list
# ---------------------------------------------------------------------------


@main.command(name="list")
@domain_option
def list_users(domain: Optional[str]):
    """Print both user lists for one domain."""
    _run(_list_impl(domain or settings.default_domain))


async def _list_impl(domain: str) -> None:
    store = get_realtime_store()
    try:
        try:
            docs = await store.query(settings.users_collection, "domain", domain)
            live_users = [User.model_validate(doc) for doc in docs]
        except (RealtimeError, ValidationError) as exc:
            click.secho(f"Realtime store unavailable: {exc}", fg="red", err=True)
            live_users = []

        async with build_api_client() as api:
            try:
                rest_users = await api.fetch_users(domain)
            except ApiError as exc:
                click.secho(f"Could not load users: {exc.message}", fg="red", err=True)
                rest_users = []
    finally:
        await close_realtime_store()

    click.secho(f"Domain: {domain}", bold=True)
    click.echo()
    render_section("Realtime Live Users", "green", False, live_users)
    render_section("REST Stored Users", "blue", False, rest_users)


# ---------------------------------------------------------------------------
# usersync watch
# ---------------------------------------------------------------------------


@main.command()
@domain_option
def watch(domain: Optional[str]):
    """Live screen: both lists, refreshed as the stores change."""
    _run(_watch_impl(domain))


def _redraw(vm: UserDirectoryViewModel) -> None:
    click.clear()
    render_screen(vm)
    click.echo(WATCH_HELP)


async def _handle_command(vm: UserDirectoryViewModel, line: str) -> bool:
    """Apply one typed command. Returns False when the user wants out."""
    try:
        parts = shlex.split(line)
    except ValueError as exc:
        click.secho(f"Could not parse command: {exc}", fg="red")
        return True
    if not parts:
        return True

    cmd, args = parts[0].lower(), parts[1:]
    if cmd in ("q", "quit", "exit"):
        return False
    if cmd == "d" and len(args) == 1:
        if args[0] not in vm.domains:
            click.secho(f"Unknown domain. Choose one of: {', '.join(vm.domains)}", fg="red")
            return True
        await vm.set_domain(args[0])
    elif cmd == "a" and len(args) == 2:
        vm.name, vm.email = args
        await vm.submit()
    elif cmd == "r":
        await vm.refresh_rest()
    else:
        click.echo(WATCH_HELP)
    return True


async def _watch_impl(domain: Optional[str]) -> None:
    store = get_realtime_store()
    loop = asyncio.get_running_loop()
    try:
        async with build_api_client() as api:
            vm = build_view_model(api, store)
            vm.add_listener(lambda: _redraw(vm))
            await vm.set_domain(domain or vm.domain)
            try:
                while True:
                    # stdin is blocking; read it off the event loop thread
                    line = await loop.run_in_executor(None, sys.stdin.readline)
                    if not line:
                        break
                    if not await _handle_command(vm, line):
                        break
            finally:
                await vm.close()
    finally:
        await close_realtime_store()


if __name__ == "__main__":
    main()
