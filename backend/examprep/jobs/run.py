"""CLI entry point for job execution."""

import sys

import click

from examprep.core.logging import bind_log_context, get_logger, setup_logging
from examprep.db.session import SessionLocal
from examprep.services.session_engine import expire_overdue_sessions

logger = get_logger(__name__)

JOB_KEYS = ("expire_sessions",)


@click.command()
@click.argument("job_key")
def run(job_key: str):
    """
    Run a scheduled job.

    Example:
        python -m examprep.jobs.run expire_sessions
    """
    setup_logging()

    if job_key not in JOB_KEYS:
        click.echo(f"Unknown job key: {job_key}", err=True)
        sys.exit(1)

    db = SessionLocal()
    with bind_log_context(job_key=job_key):
        try:
            expired = expire_overdue_sessions(db)
        except Exception as e:
            db.rollback()
            logger.error("job_failed", extra={"error": str(e)}, exc_info=True)
            click.echo(f"Job failed: {e}", err=True)
            sys.exit(1)
        finally:
            db.close()

        logger.info("job_completed", extra={"expired": expired})
    click.echo(f"Job completed: expired {expired} session(s)")


if __name__ == "__main__":
    run()
