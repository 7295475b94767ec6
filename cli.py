# CLI for the DipSip relay
import sys
import click

from app.containers import AppContainer
from core.config.validator import ensure_valid_configuration
from core.logging import configure_logging
from core.utils.exceptions import ConfigurationError


def _print_summary(summary) -> None:
    for warning in summary["warning_details"]:
        click.echo(f"⚠️  {warning['component']}: {warning['message']}")
    for error in summary["error_details"]:
        click.echo(f"❌ {error['component']}: {error['message']}", err=True)


def _check_configuration(container: AppContainer) -> bool:
    try:
        summary = ensure_valid_configuration(container.settings())
    except ConfigurationError as e:
        _print_summary(e.details["summary"])
        return False
    _print_summary(summary)
    return True


@click.group()
@click.pass_context
def cli(ctx):
    """DipSip relay CLI"""
    ctx.obj = AppContainer()


@cli.command()
@click.pass_obj
def api(container: AppContainer):
    """Validate configuration, then run the API server"""
    if not _check_configuration(container):
        click.echo("Configuration invalid, refusing to start", err=True)
        sys.exit(1)
    click.echo("🚀 Starting DipSip relay API server...")
    from api.main import run as run_api
    run_api(container)


@cli.command("validate-config")
@click.pass_obj
def validate_config(container: AppContainer):
    """Check settings and exit non-zero on errors"""
    if not _check_configuration(container):
        sys.exit(1)
    click.echo("✅ Configuration valid")


@cli.command()
@click.argument("body_file", type=click.File("rb"))
@click.option("--timestamp", type=int, default=None, help="Unix seconds; defaults to now")
@click.pass_obj
def sign(container: AppContainer, body_file, timestamp):
    """Print signature headers for the raw bytes of BODY_FILE"""
    from services.webhook.security import build_signature_headers

    settings = container.settings()
    secret = settings.effective_webhook_secret()
    if not secret:
        click.echo("No webhook secret configured", err=True)
        sys.exit(1)
    headers = build_signature_headers(
        secret,
        body_file.read(),
        timestamp=timestamp,
        header_prefix=settings.webhook.header_prefix,
    )
    for name, value in headers.items():
        click.echo(f"{name}: {value}")


@cli.command("sweep-tokens")
@click.pass_obj
def sweep_tokens(container: AppContainer):
    """Delete credential files for every date other than today"""
    configure_logging(container.settings())
    deleted = container.credential_sweeper().sweep_once()
    click.echo(f"🧹 Deleted {deleted} expired token file(s)")


if __name__ == "__main__":
    cli()
