"""
Database CLI commands.

    database status - Show the schema revision and row counts of the state database
    database backup - Copy the state database to a `.bak` file
    database reset - Remove the state database and create an empty one
    database upgrade - Migrate the state database to the latest schema
    database compact - Reclaim free pages in the state database
"""

import click

from lendstate.cli import cli
from lendstate.config import settings
from lendstate.database.operations import (
    backup_sqlite_database,
    compact_sqlite_database,
    create_new_sqlite_database,
    get_database_revisions,
    get_scoped_sqlite_session,
    get_state_summary,
    upgrade_existing_sqlite_database,
)
from lendstate.exceptions.database import BackupExists
from lendstate.version import __version__


@cli.group()
def database() -> None:
    """
    State database commands
    """


@database.command("status")
def database_status() -> None:
    """
    Show the schema revision and row counts of the state database.
    """

    db_path = settings.database.path
    if not db_path.exists():
        click.echo(f"No state database found at {db_path}.")
        return

    current_revision, latest_revision = get_database_revisions(db_path)
    click.echo(f"Database: {db_path}")
    click.echo(f"Schema revision: {current_revision} (latest: {latest_revision})")

    db_session = get_scoped_sqlite_session(database_path=db_path)
    with db_session() as session:
        for label, count in get_state_summary(session).items():
            click.echo(f"{label.capitalize()}: {count:,}")


@database.command("backup")
def database_backup() -> None:
    """
    Back up the state database.
    """

    try:
        backup_path = backup_sqlite_database(settings.database.path)
    except BackupExists as exc:
        if not click.confirm(
            f"A backup already exists at {exc.path}. Replace it?",
            default=False,
        ):
            raise click.Abort from None
        exc.path.unlink()
        backup_path = backup_sqlite_database(settings.database.path)

    click.echo(f"Backup written to {backup_path}.")


@database.command("reset")
def database_reset() -> None:
    """
    Remove and recreate the state database.
    """

    db_path = settings.database.path
    if not click.confirm(
        f"All lending state in {db_path} will be deleted and replaced with an empty database "
        f"using the {__package__} {__version__} schema. Continue?",
        default=False,
    ):
        raise click.Abort

    db_path.unlink(missing_ok=True)
    create_new_sqlite_database(db_path)


@database.command("upgrade")
@click.option(
    "--force",
    is_flag=True,
    help="Skip confirmation prompt",
)
def database_upgrade(*, force: bool) -> None:
    """
    Upgrade the state database to the latest schema.
    """

    db_path = settings.database.path
    current_revision, latest_revision = get_database_revisions(db_path)
    if current_revision == latest_revision:
        click.echo(f"The database is already at the latest revision ({latest_revision}).")
        return

    if not force and not click.confirm(
        f"Migrate {db_path} from revision {current_revision} to {latest_revision}?",
        default=False,
    ):
        raise click.Abort

    upgrade_existing_sqlite_database(db_path)


@database.command("compact")
def database_compact() -> None:
    """
    Compact the state database.
    """

    compact_sqlite_database(settings.database.path)
