from __future__ import annotations

import json
import logging
from typing import List, Optional

import typer

from groupgate import __version__
from groupgate.config import get_settings

app = typer.Typer(add_completion=False, help="groupgate CLI")


@app.callback()
def _root() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def version() -> None:
    typer.echo(__version__)


@app.command("init-db")
def init_db_command() -> None:
    """Create all tables (SCHEMA_MODE=create_all only)."""
    from groupgate.database import init_db

    init_db(create_tables=True)
    typer.echo("Database initialized.")


@app.command("check-access")
def check_access(
    username: str = typer.Argument(..., help="Username"),
    group: str = typer.Argument(..., help="Group id or name"),
    access: List[str] = typer.Argument(..., help="One or more access levels"),
) -> None:
    """
    Print whether the user has one of the access levels (or 'full') to the group.
    """
    from groupgate.database import get_db_session
    from groupgate.exceptions import GroupGateException
    from groupgate.models.group import Group
    from groupgate.models.user import User
    from groupgate.security.groups.service import GroupAccessService

    with get_db_session() as session:
        user = session.query(User).filter(User.username == username).first()
        if not user:
            typer.echo(f"Error: user '{username}' not found", err=True)
            raise typer.Exit(1)

        if group.isdigit():
            target = session.get(Group, int(group))
        else:
            target = session.query(Group).filter(Group.name == group).first()
        if not target:
            typer.echo(f"Error: group '{group}' not found", err=True)
            raise typer.Exit(1)

        try:
            allowed = GroupAccessService(session, User).has_access(user, target, list(access))
        except GroupGateException as exc:
            typer.echo(json.dumps(exc.to_dict()), err=True)
            raise typer.Exit(2)

    typer.echo(json.dumps({"user": username, "group": target.name, "access": allowed}))
    raise typer.Exit(0 if allowed else 1)


@app.command("access-map")
def access_map(
    username: str = typer.Argument(..., help="Username"),
    by: str = typer.Option("name", "--by", help="Key the map by group 'name' or 'id'"),
) -> None:
    """Print the user's direct group access map as JSON."""
    from groupgate.database import get_db_session
    from groupgate.models.user import User
    from groupgate.security.groups.service import GroupAccessService

    if by not in {"name", "id"}:
        typer.echo(f"Unknown key: {by}", err=True)
        raise typer.Exit(1)

    with get_db_session() as session:
        user = session.query(User).filter(User.username == username).first()
        if not user:
            typer.echo(f"Error: user '{username}' not found", err=True)
            raise typer.Exit(1)

        service = GroupAccessService(session, User)
        if by == "id":
            result = service.group_ids_access_map(user)
        else:
            result = service.group_names_access_map(user)

    typer.echo(json.dumps(result, indent=2, sort_keys=True, default=str))


@app.command("db")
def db_command(
    action: str = typer.Argument(..., help="upgrade|downgrade|current|history"),
    revision: Optional[str] = typer.Option(
        None, "--revision", "-r", help="Target revision (for upgrade/downgrade)"
    ),
) -> None:
    """
    Apply or inspect schema migrations (SCHEMA_MODE=migrations).

    Actions:
      upgrade   - Apply migrations (default: head)
      downgrade - Revert migrations (default: one step)
      current   - Show current revision
      history   - Show migration history
    """
    from pathlib import Path

    from alembic import command
    from alembic.config import Config

    alembic_ini = Path.cwd() / "alembic.ini"
    if not alembic_ini.exists():
        typer.echo("Error: alembic.ini not found", err=True)
        raise typer.Exit(1)

    config = Config(str(alembic_ini))
    actions = {
        "upgrade": lambda: command.upgrade(config, revision or "head"),
        "downgrade": lambda: command.downgrade(config, revision or "-1"),
        "current": lambda: command.current(config),
        "history": lambda: command.history(config),
    }
    if action not in actions:
        typer.echo(f"Unknown action: {action}", err=True)
        raise typer.Exit(1)

    actions[action]()


def main() -> None:
    app()
