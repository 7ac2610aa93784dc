"""
Budget Tracker Intelligence - command line tool
"""
import sys

import click

from budgettracker import __version__
from budgettracker.core.settings import settings
from budgettracker.db import get_db
from budgettracker.db.repositories import RecommendationRepository
from budgettracker.utils import setup_logger
from budgettracker.utils.factories import create_intelligence_services

logger = setup_logger(__name__)


def _require_services():
    services = create_intelligence_services(get_db())
    if services is None:
        click.echo("LLM_API_KEY is not configured", err=True)
        sys.exit(1)
    return services


@click.group()
@click.version_option(version=__version__)
def cli():
    """Budget Tracker Intelligence

    AI recommendations and natural-language questions over imported transactions.
    """
    pass


@cli.command("init-db")
def init_db():
    """Create database tables"""
    db = get_db()
    click.echo(f"Database ready: {db.database_url}")


@cli.command()
@click.option("--user-id", help="Only process this user")
@click.option("--cleanup/--no-cleanup", default=True, help="Expire and delete old recommendations afterwards")
def recommend(user_id, cleanup):
    """Generate recommendations"""
    services = _require_services()
    processor = services.processor

    try:
        if user_id:
            status = processor.process_user(user_id)
            click.echo(f"User {user_id}: {status}")
        else:
            stats = processor.process_all_users()
            click.echo(
                f"Processed {stats['total']} users: {stats['success']} generated, "
                f"{stats['skipped']} skipped, {stats['errors']} errors"
            )
        if cleanup:
            result = processor.cleanup_expired()
            click.echo(f"Cleanup: {result['expired']} expired, {result['deleted']} deleted")
    except Exception as e:
        click.echo(f"Recommendation generation failed: {e}", err=True)
        sys.exit(1)


@cli.command("list-recommendations")
@click.argument("user_id")
@click.option("--limit", default=5, help="Maximum recommendations")
def list_recommendations(user_id, limit):
    """Show a user's active recommendations"""
    db = get_db()
    with db.get_session() as session:
        recommendations = RecommendationRepository.get_active(session, user_id, limit=limit)
        if not recommendations:
            click.echo("No active recommendations")
            return
        for i, item in enumerate(recommendations, 1):
            click.echo(f"{i}. [{item.priority_name}] {item.title} ({item.type})")
            click.echo(f"   {item.message}")


@cli.command()
@click.argument("user_id")
@click.argument("question")
def ask(user_id, question):
    """Ask a question about USER_ID's transactions"""
    services = _require_services()
    response = services.assistant.ask(question, user_id)

    click.echo(response.answer)
    if response.amount is not None:
        click.echo(f"Amount: {response.amount:.2f}")
    for item in response.transactions or []:
        click.echo(f"  {item.date or '':10}  {item.amount if item.amount is not None else '':>10}  {item.description or ''}")


@cli.command()
@click.option("--host", default=None, help="Bind address")
@click.option("--port", default=None, type=int, help="Port")
def serve(host, port):
    """Run the HTTP API"""
    import uvicorn

    uvicorn.run(
        "budgettracker.main:app",
        host=host or settings.API_HOST,
        port=port or settings.API_PORT,
    )


if __name__ == "__main__":
    cli()
