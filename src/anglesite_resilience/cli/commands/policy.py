"""Show the effective retry policy for a channel."""

import click

from anglesite_resilience.cli.output import emit_error, emit_success
from anglesite_resilience.config import AppConfig
from anglesite_resilience.core.resilience import RetryPolicyRegistry


@click.command("policy")
@click.argument("channel")
@click.pass_obj
def policy_cmd(config: AppConfig, channel: str) -> None:
    """Print the retry policy CHANNEL would run with.

    Examples:
        anglesite-resilience policy get-website-schema
        anglesite-resilience policy create-new-page
    """
    if not channel.strip():
        emit_error("Channel name must not be empty", code="VALIDATION_ERROR")
    registry = RetryPolicyRegistry.from_settings(config.retry)
    effective = registry.effective(channel)
    emit_success(
        {
            "channel": channel,
            "blacklisted": registry.is_blacklisted(channel),
            "has_override": channel in registry.channels(),
            "policy": effective.to_dict(),
        }
    )
