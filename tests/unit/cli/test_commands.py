"""
Tests for the click commands and CLI helpers.
"""

from __future__ import annotations

import json
import logging

import click
import pytest
from click.testing import CliRunner

from pdsmigrate.cli import cli
from pdsmigrate.cli.common import configure_logging, error_lines, handle_exception
from pdsmigrate.cli.interactive import (
    default_temporary_handle,
    temporary_handle_validator,
    validate_email,
    validate_handle,
    validate_string,
    validate_url,
)
from pdsmigrate.exceptions import HandleUpdateError, MigrationTransitionError
from pdsmigrate.models import MigrationState
from pdsmigrate.operations import Operations
from tests.fixtures import (
    CONFIRMATION_TOKEN,
    FINAL_HANDLE,
    PRIVATE_KEY_HEX,
    TEMPORARY_HANDLE,
    make_credentials,
    make_operations,
    make_raw_credentials,
    make_split_credentials,
)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def patched_operations(monkeypatch: pytest.MonkeyPatch) -> Operations:
    """Make the migrate command use AsyncMock operations."""
    operations = make_operations()
    monkeypatch.setattr(Operations, "from_config", lambda *args, **kwargs: operations)
    return operations


def interactive_input(*, handle: str = "alice.pds.example.com", confirm: str = "y") -> str:
    lines = [
        "",  # accept the default old PDS URL
        "@alice.bsky.social",
        "old-password",
        "pds-example-com-abcde-fghij",
        "pds.example.com",
        handle,
    ]
    if handle == FINAL_HANDLE:
        lines.append("")  # accept the suggested temporary handle
    lines += [
        "alice@example.org",
        "new-password",
        "new-password",
        confirm,
        CONFIRMATION_TOKEN,
    ]
    return "\n".join(lines) + "\n"


class TestCliGroup:
    """Tests for the top-level group."""

    def test_version(self, runner: CliRunner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "pdsmigrate" in result.output

    def test_migrate_help(self, runner: CliRunner):
        result = runner.invoke(cli, ["migrate", "-h"])

        assert result.exit_code == 0
        assert "--pipe" in result.output
        assert "--blob-page-size" in result.output

    @pytest.mark.parametrize(
        "args",
        [["--timeout", "0"], ["--blob-page-size", "0"], ["--blob-page-size", "1001"]],
    )
    def test_rejects_bad_options(self, runner: CliRunner, args: list[str]):
        result = runner.invoke(cli, ["migrate", "--pipe", *args])
        assert result.exit_code == 2


class TestMigratePipe:
    """Tests for ``migrate --pipe``."""

    def test_pauses_and_writes_state(self, runner: CliRunner, patched_operations: Operations):
        start = json.dumps({"state": "Ready", "credentials": make_raw_credentials()})

        result = runner.invoke(cli, ["migrate", "--pipe"], input=start)

        assert result.exit_code == 0
        output = json.loads(result.output.strip().splitlines()[-1])
        assert output["state"] == "RequestedPlcOperation"
        patched_operations.request_plc_operation.assert_awaited_once()

    def test_invalid_input_exits_with_error(
        self, runner: CliRunner, patched_operations: Operations
    ):
        result = runner.invoke(cli, ["migrate", "--pipe"], input="not json")

        assert result.exit_code == 1
        assert "Error: Invalid input: must be JSON" in result.output
        patched_operations.initialize_sessions.assert_not_awaited()


class TestMigrateInteractive:
    """Tests for interactive ``migrate``."""

    def test_full_migration(self, runner: CliRunner, patched_operations: Operations):
        result = runner.invoke(cli, ["migrate"], input=interactive_input())

        assert result.exit_code == 0, result.output
        patched_operations.initialize_sessions.assert_awaited_once_with(make_credentials())
        assert "Migration completed successfully!" in result.output
        assert PRIVATE_KEY_HEX in result.output

    def test_custom_handle_uses_temporary_handle(
        self, runner: CliRunner, patched_operations: Operations
    ):
        result = runner.invoke(cli, ["migrate"], input=interactive_input(handle=FINAL_HANDLE))

        assert result.exit_code == 0, result.output
        assert "custom handle" in result.output
        [credentials] = patched_operations.initialize_sessions.await_args.args
        assert credentials == make_split_credentials()
        assert credentials.migration_handle == TEMPORARY_HANDLE

    def test_declining_cancels(self, runner: CliRunner, patched_operations: Operations):
        result = runner.invoke(cli, ["migrate"], input=interactive_input(confirm="n"))

        assert result.exit_code == 0
        patched_operations.initialize_sessions.assert_not_awaited()
        assert PRIVATE_KEY_HEX not in result.output

    def test_invalid_answer_is_asked_again(
        self, runner: CliRunner, patched_operations: Operations
    ):
        text = interactive_input().replace("alice@example.org", "nope\nalice@example.org")

        result = runner.invoke(cli, ["migrate"], input=text)

        assert result.exit_code == 0, result.output
        assert "Must be a valid email address" in result.output


class TestPromptValidators:
    """Tests for the prompt validators."""

    def test_validate_url_adds_scheme(self):
        assert validate_url(" pds.example.com ") == "https://pds.example.com"

    def test_validate_url_rejects_garbage(self):
        with pytest.raises(click.BadParameter):
            validate_url("https://")

    def test_validate_string(self):
        assert validate_string("x") == "x"
        with pytest.raises(click.BadParameter):
            validate_string("")

    def test_validate_email(self):
        assert validate_email(" alice@example.org ") == "alice@example.org"
        with pytest.raises(click.BadParameter):
            validate_email("alice")

    def test_validate_handle_strips_at(self):
        assert validate_handle("@alice.bsky.social") == "alice.bsky.social"
        with pytest.raises(click.BadParameter):
            validate_handle("al.bsky.social")

    def test_temporary_handle_must_be_under_new_pds(self):
        validate = temporary_handle_validator("pds.example.com")

        assert validate(TEMPORARY_HANDLE) == TEMPORARY_HANDLE
        with pytest.raises(click.BadParameter, match="subdomain"):
            validate("alice-temp.other.com")

    def test_default_temporary_handle(self):
        assert default_temporary_handle(FINAL_HANDLE, "pds.example.com") == TEMPORARY_HANDLE


class TestErrorReporting:
    """Tests for error_lines and handle_exception."""

    def test_error_lines_follow_causes(self):
        try:
            try:
                raise ValueError("connection reset")
            except ValueError as e:
                raise MigrationTransitionError(MigrationState.MIGRATED_DATA) from e
        except MigrationTransitionError as error:
            lines = error_lines(error)

        assert lines == [
            'Error: Migration failed during state "MigratedData"',
            "Caused by: connection reset",
        ]

    def test_handle_exception_writes_to_stderr(self, capsys: pytest.CaptureFixture[str]):
        handle_exception(RuntimeError("boom"))

        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err == "Error: boom\n"

    def test_handle_exception_logs_innermost_error_at_its_severity(
        self, caplog: pytest.LogCaptureFixture
    ):
        try:
            try:
                raise HandleUpdateError(TEMPORARY_HANDLE, FINAL_HANDLE)
            except HandleUpdateError as e:
                raise MigrationTransitionError(MigrationState.CHECKED_ACCOUNT_STATUS) from e
        except MigrationTransitionError as error:
            with caplog.at_level(logging.DEBUG, logger="pdsmigrate.cli.common"):
                handle_exception(error)

        [record] = caplog.records
        assert record.levelno == logging.WARNING
        assert record.getMessage() == (
            "MIGRATION_HANDLE_UPDATE_FAILED: Update the handle manually from the new PDS"
        )

    def test_handle_exception_does_not_log_foreign_errors(
        self, caplog: pytest.LogCaptureFixture
    ):
        with caplog.at_level(logging.DEBUG, logger="pdsmigrate.cli.common"):
            handle_exception(RuntimeError("boom"))

        assert caplog.records == []

    def test_handle_exception_debug_prints_traceback(self, capsys: pytest.CaptureFixture[str]):
        try:
            raise RuntimeError("boom")
        except RuntimeError as e:
            handle_exception(e, debug=True)

        assert "Traceback" in capsys.readouterr().err


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.mark.parametrize(
        ("verbose", "level"),
        [(0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG), (3, logging.DEBUG)],
    )
    def test_levels(self, verbose: int, level: int):
        configure_logging(verbose)
        assert logging.getLogger("pdsmigrate").level == level

    def test_replaces_previous_handler(self):
        configure_logging(1)
        configure_logging(1)

        handlers = logging.getLogger("pdsmigrate").handlers
        assert len(handlers) == 1
