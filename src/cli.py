"""
Command-line interface for penny-alerts.

Provides commands to run an alert evaluation pass, serve the API,
initialize the database, and run diagnostic checks.

Usage:
    penny-alerts evaluate  # Run one evaluation pass
    penny-alerts serve     # Start the API server
    penny-alerts init-db   # Initialize database
    penny-alerts health    # Check service health
"""

import asyncio
import sys

import click

from src.config.settings import get_settings
from src.observability.logging import setup_logging
from src.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Penny Alerts - Stock alert evaluation and notification."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()

    # Initialize tracing if enabled
    settings = get_settings()
    if settings.tracing_enabled:
        from src.observability.tracing import setup_tracing

        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        )


@main.command()
@click.option("--metrics/--no-metrics", default=False, help="Enable metrics server")
def evaluate(metrics: bool) -> None:
    """Run one alert evaluation pass.

    Exits with status 1 when the run reported errors, so a scheduler
    can alert on it. A run skipped because another holds the lock exits 0.

    Example:
        penny-alerts evaluate
    """
    from src.alerts.service import create_alert_service
    from src.storage.database import Database

    async def run():
        if metrics:
            get_metrics().start_server()

        db = Database()
        await db.connect()
        try:
            service = create_alert_service(db)
            return await service.run_evaluation()
        finally:
            await db.close()

    click.echo("Starting alert evaluation...")
    result = asyncio.run(run())

    click.echo("\nAlert evaluation completed:")
    click.echo("-" * 40)
    click.echo(f"  Evaluated: {result.evaluated}")
    click.echo(f"  Triggered: {result.triggered}")
    click.echo(f"  Sent:      {result.sent}")
    click.echo(f"  Failed:    {result.failed}")
    click.echo("-" * 40)

    if result.skipped:
        click.echo(click.style("Skipped: another evaluation is running", fg="yellow"))
        sys.exit(0)

    if result.errors:
        click.echo(click.style(f"Errors ({len(result.errors)}):", fg="red"))
        for error in result.errors:
            click.echo(click.style(f"  - {error}", fg="red"))
        sys.exit(1)


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from src.storage.database import Database
    from src.storage.schema import create_tables

    async def run():
        db = Database()
        await db.connect()

        try:
            await create_tables(db)
            click.echo("Database initialized successfully")
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    from src.observability.logging import get_logger
    logger = get_logger()

    async def check():
        results: dict[str, bool] = {}

        # Check PostgreSQL
        try:
            from src.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        settings = get_settings()
        results["email_configured"] = settings.email_configured
        results["cron_configured"] = settings.cron_configured

        # Print results
        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name == "postgres" and not status:
                all_healthy = False

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=8000, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int) -> None:
    """Start the alert API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    # Start metrics server on separate port
    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
