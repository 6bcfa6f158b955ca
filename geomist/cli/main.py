"""Command-line interface for GEO MIST."""

import json
import logging
import sys
from pathlib import Path

import click

from geomist import __version__
from geomist.core.config import Config, get_config
from geomist.monitoring.alerts import AlertEvaluator
from geomist.monitoring.models import Reading
from geomist.monitoring.realtime import generate_reading

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True), help="Configuration file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--debug", is_flag=True, help="Debug mode")
@click.pass_context
def cli(ctx, config, verbose, debug):
    """GEO MIST - Real-time sensor telemetry hub."""
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if config:
        ctx.obj = Config.from_yaml(Path(config))
    else:
        ctx.obj = get_config()

    logger.info(f"GEO MIST v{__version__} initialized")


@cli.command()
@click.pass_context
def config(ctx):
    """Display current configuration."""
    click.echo(json.dumps(ctx.obj.dict(), indent=2))


@cli.command()
@click.pass_context
def info(ctx):
    """Display system information."""
    cfg = ctx.obj
    click.echo(f"GEO MIST Version: {__version__}")
    click.echo(f"Python Version: {sys.version.split()[0]}")
    click.echo(f"Configuration: {cfg.environment}")
    click.echo(f"Listen: {cfg.api_host}:{cfg.api_port}")
    click.echo(
        f"Thresholds: maxTemp={cfg.thresholds.max_temp} "
        f"minMoisture={cfg.thresholds.min_moisture} minHumidity={cfg.thresholds.min_humidity}"
    )


@cli.command()
@click.option("--sensor", "-s", "sensors", multiple=True, default=["GMS-001"], help="Sensor id(s)")
@click.option("--count", "-n", type=int, default=1, help="Readings per sensor")
@click.pass_context
def simulate(ctx, sensors, count):
    """Print synthetic readings as JSON lines."""
    for _ in range(count):
        for sensor_id in sensors:
            click.echo(json.dumps(generate_reading(sensor_id).to_dict()))


@cli.command()
@click.argument("reading_file", type=click.Path(exists=True))
@click.option("--name", help="Sensor display name used in alert messages")
@click.pass_context
def evaluate(ctx, reading_file, name):
    """Evaluate a JSON reading file against the alert thresholds."""
    with open(reading_file, "r") as f:
        data = json.load(f)
    if not data.get("sensorId"):
        click.echo("sensorId required", err=True)
        sys.exit(2)
    reading = Reading(
        sensor_id=data["sensorId"],
        temperature=data.get("temperature"),
        humidity=data.get("humidity"),
        moisture=data.get("moisture"),
        battery=data.get("battery"),
        rssi=data.get("rssi"),
    )
    alerts = AlertEvaluator(ctx.obj.thresholds).evaluate(reading, name)
    click.echo(json.dumps([a.to_dict() for a in alerts], indent=2))


@cli.group()
@click.pass_context
def api(ctx):
    """API operations."""
    pass


@api.command("serve")
@click.option("--host", default=None, help="Host (defaults to configuration)")
@click.option("--port", type=int, default=None, help="Port (defaults to $PORT or 3000)")
@click.pass_context
def serve_api(ctx, host, port):
    """Serve the FastAPI application using Uvicorn."""
    import uvicorn

    from geomist.api.app import create_app

    cfg = ctx.obj
    uvicorn.run(
        create_app(cfg),
        host=host or cfg.api_host,
        port=port or cfg.api_port,
        log_level=cfg.log_level.lower(),
    )


if __name__ == "__main__":
    cli()
