"""Entry point for the ``anglesite-resilience`` diagnostics CLI."""

import logging
from typing import Optional

import click

from anglesite_resilience.cli.commands import config_cmd, policy_cmd, translate_cmd
from anglesite_resilience.config import _PACKAGE_VERSION, AppConfig, set_config

logger = logging.getLogger(__name__)


@click.group("anglesite-resilience")
@click.version_option(_PACKAGE_VERSION, prog_name="anglesite-resilience")
@click.option(
    "--config-file",
    type=click.Path(dir_okay=False),
    envvar="ANGLESITE_CONFIG_FILE",
    help="TOML config file (default: ./anglesite.toml, then XDG config)",
)
@click.option("--log-level", help="Override the configured log level")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], log_level: Optional[str]) -> None:
    """Inspect retry policies, error translation and configuration."""
    config = AppConfig.from_env(config_file)
    if log_level:
        config.log_level = log_level.upper()
    config.setup_logging()
    set_config(config)
    ctx.obj = config
    logger.debug("Loaded configuration from %s", [str(p) for p in config.loaded_files] or "defaults")


cli.add_command(translate_cmd)
cli.add_command(policy_cmd)
cli.add_command(config_cmd)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
