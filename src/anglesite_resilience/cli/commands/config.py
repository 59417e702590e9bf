"""Show the loaded configuration."""

import click

from anglesite_resilience.cli.output import emit_success
from anglesite_resilience.config import AppConfig


@click.command("config")
@click.option("--show-secrets", is_flag=True, help="Include the telemetry API key")
@click.pass_obj
def config_cmd(config: AppConfig, show_secrets: bool) -> None:
    """Print the merged configuration (file layers plus environment)."""
    emit_success(config.to_dict(redact_secrets=not show_secrets))
