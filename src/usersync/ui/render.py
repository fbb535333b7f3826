"""Plain-text rendering of the user-management screen."""

from typing import Sequence

import click

from usersync.schemas.user import User
from usersync.ui.view_model import UserDirectoryViewModel

_NOTICE_COLORS = {"info": "green", "warning": "yellow", "error": "red"}


def section_lines(loading: bool, users: Sequence[User]) -> list[str]:
    """Body of one list section: loading, empty, or one line per user."""
    if loading:
        return ["Loading..."]
    if not users:
        return ["No data found."]
    return [f"{user.name} | {user.email} | {user.domain}" for user in users]


def render_section(title: str, color: str, loading: bool, users: Sequence[User]) -> None:
    click.secho(title, fg=color, bold=True)
    for line in section_lines(loading, users):
        click.echo(f"  {line}")
    click.echo()


def render_screen(vm: UserDirectoryViewModel) -> None:
    click.secho("User Management", bold=True)
    domains = "  ".join(
        click.style(d, bold=True) if d == vm.domain else d for d in vm.domains
    )
    click.echo(f"Domain: {domains}")
    click.echo()

    render_section("Realtime Live Users", "green", vm.live_loading, vm.live_users)
    render_section("REST Stored Users", "blue", vm.rest_loading, vm.rest_users)

    notice = vm.last_notice
    if notice is not None:
        click.secho(notice.text, fg=_NOTICE_COLORS.get(notice.level, "white"))
