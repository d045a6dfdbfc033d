"""
Command-line interface for alertflow.

Usage:
    alertflow init-db          # Create alert and change-feed tables
    alertflow submit FILE      # Process a JSON alert draft, print its id
    alertflow get ID           # Print a stored alert as JSON
    alertflow delete ID        # Delete a stored alert
    alertflow feed             # Run the change-feed consumer
    alertflow health           # Check database health
    alertflow token USER       # Issue an access token
"""

import asyncio
import json
import signal
import sys

import click
import structlog

from alertflow.config.settings import get_settings
from alertflow.observability.logging import setup_logging
from alertflow.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """alertflow - alert deduplication, correlation and change notification."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command("init-db")
def init_db() -> None:
    """Create the alert tables."""
    from alertflow.alerts.repository import PostgresAlertGateway
    from alertflow.storage.database import Database

    async def run():
        async with Database() as db:
            await PostgresAlertGateway(db).create_tables()
        click.echo("Database initialized successfully")

    asyncio.run(run())


@main.command()
@click.argument("source", type=click.File("r"), default="-")
@click.option(
    "--memory", is_flag=True, help="Use a throwaway in-memory store instead of PostgreSQL"
)
def submit(source, memory: bool) -> None:
    """Process an alert draft read from SOURCE (JSON, default stdin)."""
    from alertflow.alerts.errors import AlertFlowError
    from alertflow.alerts.memory import InMemoryGateway
    from alertflow.alerts.repository import PostgresAlertGateway
    from alertflow.alerts.service import AlertService
    from alertflow.storage.database import Database

    try:
        payload = json.load(source)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}") from e

    async def run() -> str:
        if memory:
            return await AlertService(InMemoryGateway()).process_alert(payload)
        async with Database() as db:
            service = AlertService(PostgresAlertGateway(db))
            return await service.process_alert(payload)

    try:
        alert_id = asyncio.run(run())
    except AlertFlowError as e:
        logger.warning("Alert submission rejected", error=str(e))
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)
    click.echo(alert_id)


@main.command()
@click.argument("alert_id")
def get(alert_id: str) -> None:
    """Print the alert ALERT_ID as JSON."""
    from alertflow.alerts.errors import AlertNotFound
    from alertflow.alerts.repository import PostgresAlertGateway
    from alertflow.alerts.service import AlertService
    from alertflow.storage.database import Database

    async def run():
        async with Database() as db:
            return await AlertService(PostgresAlertGateway(db)).get_alert(alert_id)

    try:
        alert = asyncio.run(run())
    except AlertNotFound as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        sys.exit(1)
    click.echo(json.dumps({"status": "ok", "total": 1, "alert": alert.to_dict()}, indent=2))


@main.command()
@click.argument("alert_id")
def delete(alert_id: str) -> None:
    """Delete the alert ALERT_ID."""
    from alertflow.alerts.errors import AlertNotFound
    from alertflow.alerts.repository import PostgresAlertGateway
    from alertflow.alerts.service import AlertService
    from alertflow.storage.database import Database

    async def run():
        async with Database() as db:
            await AlertService(PostgresAlertGateway(db)).delete_alert(alert_id)

    try:
        asyncio.run(run())
    except AlertNotFound as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        sys.exit(1)
    click.echo(f"Deleted {alert_id}")


@main.command()
@click.option("--interval", type=float, default=None, help="Poll interval in seconds")
@click.option(
    "--from-start", is_flag=True, help="Replay the feed from the first change"
)
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def feed(interval: float | None, from_start: bool, metrics: bool) -> None:
    """Run the change-feed consumer until SIGINT/SIGTERM."""
    from alertflow.alerts.repository import PostgresAlertGateway
    from alertflow.feed.config import FeedConfig
    from alertflow.feed.consumer import ChangeFeedConsumer
    from alertflow.notifications.dispatcher import NotificationDispatcher
    from alertflow.notifications.notifiers import build_notifiers
    from alertflow.storage.database import Database

    overrides: dict = {}
    if interval is not None:
        overrides["poll_interval_seconds"] = interval
    if from_start:
        overrides["start_from"] = "earliest"
    config = FeedConfig(**overrides)

    async def run():
        if metrics:
            get_metrics().start_server()

        async with Database() as db:
            dispatcher = NotificationDispatcher(build_notifiers())
            consumer = ChangeFeedConsumer(PostgresAlertGateway(db), dispatcher, config)

            # Handle shutdown signals
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda: asyncio.create_task(consumer.stop()))

            logger.info(
                "Feed command running",
                notifiers=[n.name for n in dispatcher.notifiers],
                start_from=config.start_from,
            )
            await consumer.start()

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of the database."""
    from alertflow.storage.database import Database

    async def check() -> bool:
        db = Database()
        try:
            await db.connect()
            return await db.health_check()
        except Exception as e:
            click.echo(click.style(f"  connection failed: {e}", fg="red"))
            return False
        finally:
            await db.close()

    healthy = asyncio.run(check())
    icon = "✓" if healthy else "✗"
    color = "green" if healthy else "red"
    click.echo(click.style(f"  {icon} postgres: {healthy}", fg=color))
    if not healthy:
        sys.exit(1)


@main.command()
@click.argument("username")
@click.password_option(confirmation_prompt=False)
def token(username: str, password: str) -> None:
    """Issue an access token for USERNAME."""
    from alertflow.auth.service import AuthenticationFailed, LoginService

    try:
        issued = asyncio.run(LoginService.from_settings().login(username, password))
    except AuthenticationFailed as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        sys.exit(1)
    click.echo(issued)


if __name__ == "__main__":
    main()
