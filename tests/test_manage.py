"""
Test suite for manage.py CLI commands.

Commands run against a throwaway SQLite file per test.

Run tests:
    pytest tests/test_manage.py -v
"""

import asyncio
import subprocess
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from typer.testing import CliRunner

import manage
from manage import app
from transit_api.core.db.models import Account, OTPChallenge
from transit_api.core.enums import AccountRole
from transit_api.core.utils import verify_password

runner = CliRunner()

ADMIN_PASSWORD = "admin-pass-9"


@pytest.fixture
def cli_settings(test_settings, tmp_path):
    """Point manage.py at a fresh SQLite file with tables created."""
    settings = test_settings.model_copy(
        update={
            "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}",
            "BOOTSTRAP_ADMIN_EMAIL": None,
            "BOOTSTRAP_ADMIN_PASSWORD": None,
        }
    )
    with patch.object(manage, "settings", settings):
        result = runner.invoke(app, ["initdb"])
        assert result.exit_code == 0, result.stdout
        yield settings


async def _run_query(url: str, statement):
    engine = create_async_engine(url)
    try:
        async with async_sessionmaker(bind=engine, expire_on_commit=False)() as session:
            return (await session.execute(statement)).scalars().all()
    finally:
        await engine.dispose()


def _accounts(settings) -> list[Account]:
    return asyncio.run(_run_query(settings.DATABASE_URL, select(Account)))


class TestInitDB:

    def test_creates_tables(self, cli_settings):
        assert _accounts(cli_settings) == []
        assert (
            asyncio.run(_run_query(cli_settings.DATABASE_URL, select(OTPChallenge)))
            == []
        )

    def test_is_repeatable(self, cli_settings):
        result = runner.invoke(app, ["initdb"])
        assert result.exit_code == 0


class TestCreateAdmin:

    def test_prompts_for_email_and_password(self, cli_settings):
        result = runner.invoke(
            app,
            ["createadmin", "--name", "Head Office"],
            input=f"transport.admin\n{ADMIN_PASSWORD}\n{ADMIN_PASSWORD}\n",
        )

        assert result.exit_code == 0, result.stdout
        assert ADMIN_PASSWORD not in result.stdout
        [admin] = _accounts(cli_settings)
        assert admin.email == "transport.admin@cfd.nu.edu.pk"
        assert admin.name == "Head Office"
        assert admin.role == AccountRole.ADMIN
        assert admin.password_hash != ADMIN_PASSWORD
        assert verify_password(ADMIN_PASSWORD, admin.password_hash)

    def test_reads_bootstrap_settings(self, cli_settings):
        settings = cli_settings.model_copy(
            update={
                "BOOTSTRAP_ADMIN_EMAIL": "ops@cfd.nu.edu.pk",
                "BOOTSTRAP_ADMIN_PASSWORD": ADMIN_PASSWORD,
            }
        )
        with patch.object(manage, "settings", settings):
            result = runner.invoke(app, ["createadmin"])

        assert result.exit_code == 0, result.stdout
        [admin] = _accounts(cli_settings)
        assert admin.email == "ops@cfd.nu.edu.pk"
        assert admin.name == settings.BOOTSTRAP_ADMIN_NAME

    def test_existing_admin_left_alone(self, cli_settings):
        args = ["createadmin", "--email", "ops"]
        runner.invoke(app, args, input=f"{ADMIN_PASSWORD}\n{ADMIN_PASSWORD}\n")
        result = runner.invoke(app, args, input="other-pass-1\nother-pass-1\n")

        assert result.exit_code == 0
        assert "already exists" in result.stdout
        [admin] = _accounts(cli_settings)
        assert verify_password(ADMIN_PASSWORD, admin.password_hash)

    def test_non_admin_promoted_on_yes(self, cli_settings):
        self._seed_student(cli_settings, "student@cfd.nu.edu.pk")

        result = runner.invoke(
            app,
            ["createadmin", "--email", "student@cfd.nu.edu.pk"],
            input=f"{ADMIN_PASSWORD}\n{ADMIN_PASSWORD}\ny\n",
        )

        assert result.exit_code == 0, result.stdout
        [account] = _accounts(cli_settings)
        assert account.role == AccountRole.ADMIN

    def test_non_admin_untouched_on_no(self, cli_settings):
        self._seed_student(cli_settings, "student@cfd.nu.edu.pk")

        result = runner.invoke(
            app,
            ["createadmin", "--email", "student@cfd.nu.edu.pk"],
            input=f"{ADMIN_PASSWORD}\n{ADMIN_PASSWORD}\nn\n",
        )

        assert result.exit_code == 0
        [account] = _accounts(cli_settings)
        assert account.role == AccountRole.STUDENT

    def test_rejects_foreign_domain(self, cli_settings):
        result = runner.invoke(
            app,
            ["createadmin", "--email", "boss@gmail.com"],
            input=f"{ADMIN_PASSWORD}\n{ADMIN_PASSWORD}\n",
        )

        assert result.exit_code == 1
        assert "university email" in result.stdout
        assert _accounts(cli_settings) == []

    def test_rejects_short_password(self, cli_settings):
        result = runner.invoke(
            app, ["createadmin", "--email", "ops"], input="abc\nabc\n"
        )

        assert result.exit_code == 1
        assert "at least" in result.stdout
        assert _accounts(cli_settings) == []

    @staticmethod
    def _seed_student(settings, email: str) -> None:
        async def _seed():
            engine = create_async_engine(settings.DATABASE_URL)
            try:
                session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
                async with session_factory() as session:
                    await manage.AccountStore().create(
                        session, name="Student", email=email, password=ADMIN_PASSWORD
                    )
            finally:
                await engine.dispose()

        asyncio.run(_seed())


class TestPurgeOTPs:

    def test_reports_count(self, cli_settings):
        result = runner.invoke(app, ["purgeotps"])

        assert result.exit_code == 0
        assert "Removed 0 expired OTP challenge(s)" in result.stdout


class TestAlembicCommands:

    @pytest.mark.parametrize(
        "args, expected",
        [
            (["migrate"], ["alembic", "upgrade", "head"]),
            (["showmigrations"], ["alembic", "history"]),
            (
                ["makemigrations", "add index"],
                ["alembic", "revision", "--autogenerate", "-m", "add index"],
            ),
        ],
    )
    def test_runs_alembic(self, args, expected):
        with patch("manage.subprocess.run") as mock_run:
            result = runner.invoke(app, args)

        assert result.exit_code == 0
        mock_run.assert_called_once_with(expected, check=True)

    def test_failure_propagates(self):
        with patch(
            "manage.subprocess.run",
            side_effect=subprocess.CalledProcessError(1, ["alembic"]),
        ):
            result = runner.invoke(app, ["migrate"])

        assert result.exit_code != 0
        assert isinstance(result.exception, subprocess.CalledProcessError)


class TestRunServer:

    def test_production_binds_all_interfaces(self, test_settings):
        settings = test_settings.model_copy(update={"DEBUG": False})
        with (
            patch.object(manage, "settings", settings),
            patch("manage.subprocess.run") as mock_run,
        ):
            runner.invoke(app, ["runserver"])

        command = mock_run.call_args.args[0]
        assert command[:2] == ["uvicorn", "transit_api.main:app"]
        assert "0.0.0.0" in command
        assert "--reload" not in command

    def test_debug_reloads(self, test_settings):
        settings = test_settings.model_copy(update={"DEBUG": True})
        with (
            patch.object(manage, "settings", settings),
            patch("manage.subprocess.run") as mock_run,
        ):
            runner.invoke(app, ["runserver"])

        assert "--reload" in mock_run.call_args.args[0]
