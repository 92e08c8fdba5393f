"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.
The engine behind the CLI is an in-memory one seeded by each test.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import sys

import pytest
from loguru import logger
from typer.testing import CliRunner

from coursework.cli import main as cli

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_engine(engine, settings, monkeypatch):
    """Point the CLI at the test engine instead of one built from settings."""
    context = cli.CLIContext()
    context.settings = settings
    context._engine = engine
    monkeypatch.setattr(cli, "_context", context)
    yield engine
    # The CLI callback bound loguru to the runner's stderr
    logger.remove()
    logger.add(sys.stderr, level="WARNING")


@pytest.fixture
def pending_certificate(engine, student, completed_enrollment, course):
    return engine.certificates.request_certificate(student, course.id)


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        result = runner.invoke(cli.app, ["--help"])

        assert result.exit_code == 0
        assert "Commands" in result.output
        assert "certificates" in result.output

    @pytest.mark.parametrize("group", ["db", "courses", "enrollments", "analytics", "certificates"])
    def test_group_help(self, group):
        result = runner.invoke(cli.app, [group, "--help"])

        assert result.exit_code == 0


class TestCatalogCommands:
    def test_courses_list(self, course):
        result = runner.invoke(cli.app, ["courses", "list"])

        assert result.exit_code == 0
        assert "Networking" in result.output

    def test_pending_and_decide(self, engine, student, course, profile):
        enrollment = engine.enrollments.request_enrollment(student, course.id, profile)

        listed = runner.invoke(cli.app, ["enrollments", "pending"])
        decided = runner.invoke(cli.app, ["enrollments", "decide", enrollment.id, "approve"])

        assert listed.exit_code == 0
        assert "Ada" in listed.output
        assert decided.exit_code == 0
        assert "approved" in decided.output


class TestCertificateCommands:
    def test_list_and_verify(self, pending_certificate):
        listed = runner.invoke(cli.app, ["certificates", "list", "--status", "pending"])
        verified = runner.invoke(cli.app, ["certificates", "verify", pending_certificate.id])

        assert listed.exit_code == 0
        assert "Certificates (1)" in listed.output
        assert verified.exit_code == 0
        assert "CERT-" in verified.output

    def test_reject_without_reason_fails(self, pending_certificate):
        result = runner.invoke(cli.app, ["certificates", "reject", pending_certificate.id])

        assert result.exit_code == 1
        assert "MissingReason" in result.output

    def test_reject(self, engine, pending_certificate):
        result = runner.invoke(
            cli.app, ["certificates", "reject", pending_certificate.id, "--reason", "Incomplete"]
        )

        assert result.exit_code == 0
        assert engine.certificates.get_certificate(pending_certificate.id).rejection_reason == "Incomplete"

    def test_student_role_is_refused(self, pending_certificate):
        result = runner.invoke(
            cli.app,
            ["certificates", "verify", pending_certificate.id, "--user", "student-1", "--role", "student"],
        )

        assert result.exit_code == 1
        assert "Unauthorized" in result.output


class TestAnalyticsCommands:
    def test_report(self, engine, student, approved_enrollment, assessment):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        engine.assessments.submit_attempt(attempt, {0: 1, 1: 0})

        result = runner.invoke(cli.app, ["analytics", "report"])

        assert result.exit_code == 0
        assert "Course Performance" in result.output
        assert "Layers quiz" in result.output
