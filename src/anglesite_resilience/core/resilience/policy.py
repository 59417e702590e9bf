"""Channel-specific retry policies.

Maps invocation channel names to tuned RetryConfig overrides and keeps
the blacklist of channels that must never be retried.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from anglesite_resilience.core.resilience.models import RetryConfig

if TYPE_CHECKING:
    from anglesite_resilience.config import RetrySettings

logger = logging.getLogger(__name__)

DEFAULT_RETRY_CONFIG = RetryConfig()

# Channels with side effects that must run at most once
RETRY_BLACKLIST: FrozenSet[str] = frozenset(
    {
        "diagnostics:clear-errors",
        "diagnostics:export-errors",
        "diagnostics:toggle-window",
        "create-new-page",
        "start-website-dev-server",
        "diagnostics:subscribe-errors",
        "diagnostics:unsubscribe-errors",
        "diagnostics:dismiss-notification",
    }
)

# Partial overrides merged over the default config
CHANNEL_POLICIES: Dict[str, Dict[str, Any]] = {
    # Reads: quick retries
    "get-website-schema": {"max_attempts": 3, "base_delay_ms": 1000, "max_delay_ms": 3000},
    "get-file-content": {"max_attempts": 3, "base_delay_ms": 1000, "max_delay_ms": 3000},
    "get-website-files": {"max_attempts": 3, "base_delay_ms": 1000, "max_delay_ms": 3000},
    "list-websites": {"max_attempts": 3, "base_delay_ms": 1000, "max_delay_ms": 3000},
    # Writes: fewer, slower retries
    "save-file-content": {"max_attempts": 2, "base_delay_ms": 2000, "max_delay_ms": 5000},
    "rename-website": {"max_attempts": 2, "base_delay_ms": 2000, "max_delay_ms": 5000},
    # Diagnostics
    "diagnostics:get-errors": {"max_attempts": 2, "base_delay_ms": 1000, "max_delay_ms": 3000},
}


class RetryPolicyRegistry:
    """Resolves the effective retry configuration per channel.

    Lookups are exact-match on the channel name and have no side effects.
    The blacklist always wins over any override.

    Example:
        >>> registry = RetryPolicyRegistry()
        >>> registry.resolve("save-file-content").max_attempts
        2
        >>> registry.effective("create-new-page").max_attempts
        1
    """

    def __init__(
        self,
        default: Optional[RetryConfig] = None,
        overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
        blacklist: Optional[Iterable[str]] = None,
    ):
        self._default = default or DEFAULT_RETRY_CONFIG
        self._overrides: Dict[str, Dict[str, Any]] = {
            channel: dict(values) for channel, values in (CHANNEL_POLICIES if overrides is None else overrides).items()
        }
        self._blacklist = frozenset(RETRY_BLACKLIST if blacklist is None else blacklist)

    @classmethod
    def from_settings(cls, settings: "RetrySettings") -> "RetryPolicyRegistry":
        """Build a registry from loaded configuration.

        Configured channel overrides are layered over the built-in table and
        configured blacklist entries are added to the built-in blacklist.
        """
        default = DEFAULT_RETRY_CONFIG.merged(
            max_attempts=settings.max_attempts,
            base_delay_ms=settings.base_delay_ms,
            max_delay_ms=settings.max_delay_ms,
            retryable_error_codes=settings.retryable_error_codes or None,
        )
        overrides = {channel: dict(values) for channel, values in CHANNEL_POLICIES.items()}
        for channel, values in settings.channels.items():
            overrides.setdefault(channel, {}).update(values)
        return cls(default, overrides, RETRY_BLACKLIST | frozenset(settings.blacklist))

    @property
    def default(self) -> RetryConfig:
        return self._default

    def resolve(self, channel: str) -> RetryConfig:
        """Merge the default config with the channel's partial override."""
        override = self._overrides.get(channel)
        if not override:
            return self._default
        try:
            return self._default.merged(override)
        except ValueError as e:
            logger.warning("Ignoring invalid retry override for %s: %s", channel, e)
            return self._default

    def is_blacklisted(self, channel: str) -> bool:
        return channel in self._blacklist

    def effective(self, channel: str, overrides: Optional[Mapping[str, Any]] = None) -> RetryConfig:
        """Resolve ``channel`` with caller ``overrides``, then force one attempt if blacklisted."""
        config = self.resolve(channel)
        if overrides:
            config = config.merged(dict(overrides))
        if self.is_blacklisted(channel):
            config = config.merged(max_attempts=1)
        return config

    def set_override(self, channel: str, **fields: Any) -> None:
        self._overrides.setdefault(channel, {}).update(
            {key: value for key, value in fields.items() if value is not None}
        )

    def channels(self) -> List[str]:
        return sorted(self._overrides)

    def blacklist(self) -> FrozenSet[str]:
        return self._blacklist
