import asyncio
from contextlib import asynccontextmanager
import subprocess
from typing import Annotated

from rich import print
from sqlalchemy.ext.asyncio import async_sessionmaker
import typer

from transit_api.core.config import settings
from transit_api.core.db import build_engine, init_db
from transit_api.core.db.crud import otp_challenge_db
from transit_api.core.enums import AccountRole
from transit_api.core.exceptions.types import AppException
from transit_api.core.services.accounts import AccountStore

app = typer.Typer()


@asynccontextmanager
async def _command_engine():
    """Engine scoped to one command run, disposed on exit."""
    engine = build_engine(settings.DATABASE_URL)
    try:
        yield engine
    finally:
        await engine.dispose()


async def init_db_task() -> None:
    async with _command_engine() as engine:
        await init_db(engine)
    print("[green]Database tables created[/green]")


async def create_admin_task(name: str, email: str, password: str) -> None:
    """
    Create the first (or another) admin account.

    An existing non-admin account with the same email is promoted after
    confirmation; an existing admin is left untouched.
    """
    store = AccountStore(
        email_domain=settings.email_domain,
        min_password_length=settings.PASSWORD_MIN_LENGTH,
    )
    async with _command_engine() as engine:
        session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
        async with session_factory() as session:
            email = store.validate_email(email, complete_username=True)
            existing = await store.find_by_email(session, email)
            if existing is not None:
                if existing.role == AccountRole.ADMIN:
                    print(f"[yellow]Admin already exists:[/yellow] {email}")
                    return
                if not typer.confirm(
                    f"{email} exists as {existing.role.value}. Promote to admin?"
                ):
                    print("[cyan]Nothing changed[/cyan]")
                    return
                await store.update_profile(
                    session, existing.id, {"role": AccountRole.ADMIN}
                )
                print(f"[green]Account promoted to admin:[/green] {email}")
                return

            account = await store.create(
                session,
                name=name,
                email=email,
                password=password,
                role=AccountRole.ADMIN,
            )
            print(f"[green]Admin created:[/green] {account.email}")


async def purge_otps_task() -> int:
    async with _command_engine() as engine:
        session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
        async with session_factory() as session:
            removed = await otp_challenge_db.delete_expired(session)
    print(f"[green]Removed {removed} expired OTP challenge(s)[/green]")
    return removed


@app.command()
def initdb():
    """
    Create every table directly from the models.

    Meant for local development and tests; deployed databases use ``migrate``.
    """
    asyncio.run(init_db_task())


@app.command()
def createadmin(
    email: Annotated[
        str | None,
        typer.Option(help="Admin email or bare username. Defaults to BOOTSTRAP_ADMIN_EMAIL."),
    ] = None,
    name: Annotated[
        str | None,
        typer.Option(help="Display name. Defaults to BOOTSTRAP_ADMIN_NAME."),
    ] = None,
):
    """
    Create an admin account.

    The password is read from BOOTSTRAP_ADMIN_PASSWORD when set, otherwise
    prompted for (hidden, with confirmation). It is never accepted as a
    command-line argument.
    """
    email = email or settings.BOOTSTRAP_ADMIN_EMAIL or typer.prompt("Email")
    name = name or settings.BOOTSTRAP_ADMIN_NAME
    password = settings.BOOTSTRAP_ADMIN_PASSWORD or typer.prompt(
        "Password", hide_input=True, confirmation_prompt=True
    )
    try:
        asyncio.run(create_admin_task(name, email, password))
    except AppException as e:
        print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


@app.command()
def purgeotps():
    """Delete OTP challenges that are past their expiry."""
    asyncio.run(purge_otps_task())


@app.command()
def makemigrations(comment: Annotated[str, typer.Argument()] = "auto"):
    """
    Creates a new Alembic migration revision with an autogenerated migration script.

    Args:
        comment (str, optional): The message to use for the migration revision. Defaults to "auto".

    Raises:
        subprocess.CalledProcessError: If the Alembic command fails.
    """
    try:
        revision_command = ["alembic", "revision", "--autogenerate", "-m", comment]
        print(f"Running Alembic migrations: {' '.join(revision_command)}")
        subprocess.run(revision_command, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise
    print("[green]Make migrations complete[/green]")


@app.command()
def showmigrations():
    """Shows the Alembic migration history."""
    try:
        history_command = ["alembic", "history"]
        print(f"Running Alembic history: {' '.join(history_command)}")
        subprocess.run(history_command, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise
    print("[green]Show migrations complete[/green]")


@app.command()
def migrate():
    """
    Runs the Alembic database migration to upgrade the schema to the latest version.
    """
    try:
        upgrade_command = ["alembic", "upgrade", "head"]
        print(f"Running Alembic upgrade: {' '.join(upgrade_command)}")
        subprocess.run(upgrade_command, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise
    print("[green]Migration complete[/green]")


@app.command()
def runserver():
    try:
        server_command = (
            "uvicorn transit_api.main:app --host 127.0.0.1 --port 8000 --reload"
            if settings.DEBUG
            else "uvicorn transit_api.main:app --host 0.0.0.0 --port 8000"
        )
        print(f"Running FastAPI server: {server_command}")
        subprocess.run(server_command.split(), check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise


if __name__ == "__main__":
    app()
