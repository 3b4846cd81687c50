"""Invoke tasks for LedgerImport development."""

from invoke import task
from invoke.context import Context


@task
def test(ctx: Context, verbose: bool = False, coverage: bool = False) -> None:
    """Run the test suite.

    Args:
        ctx: Invoke context
        verbose: Enable verbose output
        coverage: Run with coverage report
    """
    cmd = "uv run pytest"
    if verbose:
        cmd += " -v"
    if coverage:
        cmd += " --cov=ledgerimport --cov-report=term-missing"
    ctx.run(cmd, pty=True)


@task
def sheets(ctx: Context, file: str) -> None:
    """List the sheets of an Excel workbook.

    Args:
        ctx: Invoke context
        file: Path to the workbook
    """
    ctx.run(f"uv run ledgerimport sheets {file}", pty=True)


@task
def status(ctx: Context, job: int) -> None:
    """Show the status of an import job.

    Args:
        ctx: Invoke context
        job: Import job id
    """
    ctx.run(f"uv run ledgerimport status {job}", pty=True)


@task
def clean(ctx: Context) -> None:
    """Clean up temporary files."""
    # Clean Python cache
    for pattern in ["__pycache__", "*.pyc", "*.pyo", ".pytest_cache"]:
        ctx.run(f"find . -name '{pattern}' -exec rm -rf {{}} + 2>/dev/null || true", warn=True)

    # Clean build artifacts
    for path in ["build", "dist", "*.egg-info", ".eggs"]:
        ctx.run(f"rm -rf {path} 2>/dev/null || true", warn=True)

    print("Cleanup complete")
