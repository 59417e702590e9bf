"""CLI commands.

Each command loads nothing itself; it reads the AppConfig placed on the
click context by the ``anglesite-resilience`` group.
"""

from anglesite_resilience.cli.commands.config import config_cmd
from anglesite_resilience.cli.commands.policy import policy_cmd
from anglesite_resilience.cli.commands.translate import translate_cmd

__all__ = [
    "config_cmd",
    "policy_cmd",
    "translate_cmd",
]
