"""Translate a raw error message into its user-facing form."""

from typing import Optional

import click

from anglesite_resilience.cli.output import emit_error, emit_success
from anglesite_resilience.config import AppConfig
from anglesite_resilience.core.errors import ErrorCategory, create_error
from anglesite_resilience.core.translation import TranslationContext, translate_error


@click.command("translate")
@click.argument("message")
@click.option("--code", help="Machine error code (e.g. ENOENT, PORT_IN_USE)")
@click.option("--channel", help="Channel the error came from")
@click.option(
    "--env",
    "environment",
    type=click.Choice(["development", "production"]),
    help="Translation environment (default: configured)",
)
@click.pass_obj
def translate_cmd(
    config: AppConfig,
    message: str,
    code: Optional[str],
    channel: Optional[str],
    environment: Optional[str],
) -> None:
    """Show the friendly error a user would see for MESSAGE.

    Examples:
        anglesite-resilience translate "ENOENT: /home/me/site/index.md"
        anglesite-resilience translate "bind failed" --code PORT_IN_USE --env development
    """
    if not message.strip():
        emit_error(
            "Message must not be empty",
            code="VALIDATION_ERROR",
            remediation='Pass the raw error text, e.g. "connect ECONNREFUSED 127.0.0.1:3000"',
        )
    error = create_error(message, code, ErrorCategory.SYSTEM) if code else message
    friendly = translate_error(
        error,
        TranslationContext(channel=channel),
        environment=environment or config.translation.environment,
        max_message_length=config.translation.max_message_length,
    )
    emit_success(friendly.to_dict())
