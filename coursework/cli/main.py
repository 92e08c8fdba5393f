"""
Typer CLI for the coursework engine.

Commands:
    coursework db init                   - Create the document table
    coursework db health                 - Check database connectivity
    coursework courses list              - List catalog courses
    coursework enrollments pending       - Show the enrollment review queue
    coursework enrollments decide ID approve|reject
    coursework analytics report          - Completion, performance, engagement
    coursework certificates list         - List certificates (--status pending)
    coursework certificates verify ID    - Verify and number a certificate
    coursework certificates reject ID --reason "..."
    coursework serve                     - Run the API with uvicorn

Operator identity defaults to an admin; override with --user/--role.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from coursework.core.auth import Principal
from coursework.core.errors import LMSError
from coursework.core.log_config import configure_logging
from coursework.engine import LearningEngine, build_engine

app = typer.Typer(
    help="coursework CLI: catalog, enrollment review, certificates and analytics",
    no_args_is_help=True,
)

console = Console()

DEFAULT_OPERATOR = "cli-admin"


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """Lazily builds the engine so `--help` never touches storage."""

    def __init__(self) -> None:
        self.settings = get_settings()
        self._engine: LearningEngine | None = None

    @property
    def engine(self) -> LearningEngine:
        if self._engine is None:
            self._engine = build_engine(self.settings)
        return self._engine


_context: CLIContext | None = None


def get_context() -> CLIContext:
    global _context
    if _context is None:
        _context = CLIContext()
    return _context


def acting_as(user: str, role: str) -> Principal:
    return Principal.of(user, role)


@contextmanager
def engine_errors() -> Iterator[None]:
    """Print engine failures instead of a traceback and exit non-zero."""
    try:
        yield
    except LMSError as e:
        rprint(f"[red]✗[/red] {e.code}: {e.message}")
        raise typer.Exit(code=1) from None


UserOption = typer.Option(DEFAULT_OPERATOR, "--user", "-u", help="Acting user id")
RoleOption = typer.Option("admin", "--role", "-r", help="Acting role: admin, teacher or student")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    configure_logging(level="DEBUG" if verbose else None)


# ========================================
# Database
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Create the document table if it does not exist.

    Safe to run multiple times (idempotent).
    """
    from coursework.db.database import create_db_engine, init_db

    settings = get_context().settings
    logger.info("Initializing database tables...")
    init_db(create_db_engine(settings.database_url))
    rprint("[green]✓[/green] Database initialized!")


@db_app.command("health")
def db_health() -> None:
    """Run a SELECT 1 against the configured database."""
    from coursework.db.database import check_database_health, create_db_engine

    status, error = check_database_health(create_db_engine(get_context().settings.database_url))
    if status != "ok":
        rprint(f"[red]✗[/red] Database unreachable: {error}")
        raise typer.Exit(code=1)
    rprint("[green]✓[/green] Database reachable")


# ========================================
# Courses & enrollments
# ========================================

courses_app = typer.Typer(help="Course catalog")
app.add_typer(courses_app, name="courses")


@courses_app.command("list")
def courses_list(
    active_only: bool = typer.Option(False, "--active", help="Only active courses"),
) -> None:
    with engine_errors():
        courses = get_context().engine.catalog.list_courses(active_only=active_only)

    table = Table(title=f"Courses ({len(courses)})", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Category")
    table.add_column("Difficulty")
    table.add_column("Hours", justify="right")
    table.add_column("Active")
    for course in courses:
        table.add_row(
            course.id,
            course.title,
            course.category,
            course.difficulty.value,
            str(course.duration_hours),
            "yes" if course.is_active else "no",
        )
    console.print(table)


enrollments_app = typer.Typer(help="Enrollment review")
app.add_typer(enrollments_app, name="enrollments")


@enrollments_app.command("pending")
def enrollments_pending(user: str = UserOption, role: str = RoleOption) -> None:
    """Enrollment requests waiting for a decision, oldest first."""
    with engine_errors():
        pending = get_context().engine.enrollments.list_pending_enrollments(acting_as(user, role))

    table = Table(title=f"Pending enrollments ({len(pending)})", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Student", style="cyan")
    table.add_column("Course")
    table.add_column("Requested")
    for enrollment in pending:
        table.add_row(
            enrollment.id,
            enrollment.profile.get("studentName") or enrollment.student_id,
            enrollment.course_name or enrollment.course_id,
            enrollment.enrolled_at.strftime("%Y-%m-%d %H:%M") if enrollment.enrolled_at else "-",
        )
    console.print(table)


@enrollments_app.command("decide")
def enrollments_decide(
    enrollment_id: str = typer.Argument(..., help="Enrollment id"),
    decision: str = typer.Argument(..., help="approve or reject"),
    user: str = UserOption,
    role: str = RoleOption,
) -> None:
    with engine_errors():
        enrollment = get_context().engine.enrollments.decide_enrollment(
            acting_as(user, role), enrollment_id, decision
        )
    rprint(f"[green]✓[/green] Enrollment {enrollment.id} is now {enrollment.status.value}")


# ========================================
# Analytics
# ========================================

analytics_app = typer.Typer(help="Reports")
app.add_typer(analytics_app, name="analytics")


@analytics_app.command("report")
def analytics_report(user: str = UserOption, role: str = RoleOption) -> None:
    """Completion rate, course performance, engagement and recent activity."""
    with engine_errors():
        report = get_context().engine.analytics.report(acting_as(user, role))

    rprint(
        f"[bold]Students[/bold] {report.total_students}  "
        f"[bold]Courses[/bold] {report.total_courses}  "
        f"[bold]Enrollments[/bold] {report.total_enrollments}  "
        f"[bold]Completion[/bold] {report.completion_rate:.1f}%"
    )

    table = Table(title="Course Performance", show_header=True)
    table.add_column("Course", style="cyan")
    table.add_column("Enrollments", justify="right")
    table.add_column("Avg Score %", justify="right", style="green")
    table.add_column("Avg Progress %", justify="right", style="yellow")
    for row in report.course_performance:
        table.add_row(row.title, str(row.enrollments), f"{row.average_score:.1f}", f"{row.average_progress:.1f}")
    console.print(table)

    table = Table(title="Student Engagement", show_header=True)
    table.add_column("Student", style="cyan")
    table.add_column("Courses", justify="right")
    table.add_column("Avg Progress %", justify="right", style="yellow")
    table.add_column("Assessments", justify="right")
    table.add_column("Avg Score %", justify="right", style="green")
    for row in report.student_engagement:
        table.add_row(
            row.student_name,
            str(row.courses),
            f"{row.average_progress:.1f}",
            str(row.assessments),
            f"{row.average_score:.1f}",
        )
    console.print(table)

    if report.recent_activity:
        table = Table(title="Recent Activity", show_header=True)
        table.add_column("Assessment", style="cyan")
        table.add_column("Course")
        table.add_column("Score %", justify="right", style="green")
        table.add_column("Completed")
        for entry in report.recent_activity:
            table.add_row(
                entry.assessment_title,
                entry.course_title,
                f"{entry.percentage:.1f}",
                entry.completed_at.strftime("%Y-%m-%d %H:%M") if entry.completed_at else "-",
            )
        console.print(table)


# ========================================
# Certificates
# ========================================

certificates_app = typer.Typer(help="Certificate review")
app.add_typer(certificates_app, name="certificates")


@certificates_app.command("list")
def certificates_list(
    status: str | None = typer.Option(None, "--status", "-s", help="pending, verified or rejected"),
    user: str = UserOption,
    role: str = RoleOption,
) -> None:
    with engine_errors():
        certificates = get_context().engine.certificates.list_certificates(acting_as(user, role), status)

    table = Table(title=f"Certificates ({len(certificates)})", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Student", style="cyan")
    table.add_column("Course")
    table.add_column("Status")
    table.add_column("Number", style="green")
    for certificate in certificates:
        table.add_row(
            certificate.id,
            certificate.student_name,
            certificate.course_name,
            certificate.status.value,
            certificate.certificate_number or "-",
        )
    console.print(table)


@certificates_app.command("verify")
def certificates_verify(
    certificate_id: str = typer.Argument(..., help="Certificate id"),
    user: str = UserOption,
    role: str = RoleOption,
) -> None:
    with engine_errors():
        certificate = get_context().engine.certificates.verify_certificate(
            acting_as(user, role), certificate_id
        )
    rprint(f"[green]✓[/green] Verified {certificate.id} as {certificate.certificate_number}")


@certificates_app.command("reject")
def certificates_reject(
    certificate_id: str = typer.Argument(..., help="Certificate id"),
    reason: str = typer.Option("", "--reason", help="Why the request is rejected"),
    user: str = UserOption,
    role: str = RoleOption,
) -> None:
    with engine_errors():
        certificate = get_context().engine.certificates.reject_certificate(
            acting_as(user, role), certificate_id, reason
        )
    rprint(f"[yellow]✓[/yellow] Rejected {certificate.id}: {certificate.rejection_reason}")


# ========================================
# Server
# ========================================


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind host (default: settings)"),
    port: int | None = typer.Option(None, "--port", help="Bind port (default: settings)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_context().settings
    uvicorn.run(
        "coursework.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
