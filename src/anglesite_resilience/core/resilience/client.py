"""Named-channel invocation boundary.

``InvocationClient`` is what display layers call: a channel name plus
positional arguments in, an ``InvocationOutcome`` out. It resolves the
channel's policy, runs the call through the retry orchestrator and hands
terminal failures to the error registry in the background.

Example:
    client = InvocationClient(ipc.invoke, registry=errors)
    outcome = await client.invoke("get-website-schema", site_name)
    if isinstance(outcome, Failure):
        show(translate_error(outcome.error, TranslationContext(channel="get-website-schema")))
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Optional

from anglesite_resilience.core.resilience.models import Failure, InvocationOutcome
from anglesite_resilience.core.resilience.policy import RetryPolicyRegistry
from anglesite_resilience.core.resilience.retry import (
    FailureCallback,
    RetryCallback,
    RetryOrchestrator,
    SuccessCallback,
)

if TYPE_CHECKING:
    from anglesite_resilience.core.observability.registry import ErrorRegistry

logger = logging.getLogger(__name__)

Invoker = Callable[..., Awaitable[Any]]


class InvocationClient:
    """Invoke named operations with per-channel retry policy.

    Args:
        invoker: Async callable taking ``(channel, *args)``; performs the
            actual cross-process call.
        policies: Channel policy registry (built-in table by default).
        orchestrator: Retry orchestrator; carries telemetry and sleep.
        registry: Error registry notified of terminal failures.
    """

    def __init__(
        self,
        invoker: Invoker,
        *,
        policies: Optional[RetryPolicyRegistry] = None,
        orchestrator: Optional[RetryOrchestrator] = None,
        registry: Optional["ErrorRegistry"] = None,
    ):
        self._invoker = invoker
        self.policies = policies or RetryPolicyRegistry()
        self.orchestrator = orchestrator or RetryOrchestrator()
        self.registry = registry

    async def invoke(
        self,
        channel: str,
        *args: Any,
        cancel_event: Optional[asyncio.Event] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        on_retry: Optional[RetryCallback] = None,
        on_success: Optional[SuccessCallback] = None,
        on_failure: Optional[FailureCallback] = None,
    ) -> InvocationOutcome[Any]:
        """Invoke ``channel`` with ``args`` under its effective retry policy.

        ``overrides`` are partial RetryConfig fields for this call only; a
        blacklisted channel still gets exactly one attempt.
        """
        config = self.policies.effective(channel, overrides)
        outcome = await self.orchestrator.run(
            lambda: self._invoker(channel, *args),
            config,
            channel=channel,
            blacklisted=self.policies.is_blacklisted(channel),
            cancel_event=cancel_event,
            on_retry=on_retry,
            on_success=on_success,
            on_failure=on_failure,
        )
        if isinstance(outcome, Failure) and self.registry is not None:
            self.registry.dispatch(outcome.error, {"channel": channel})
        return outcome

    async def invoke_or_raise(self, channel: str, *args: Any, **kwargs: Any) -> Any:
        """Like ``invoke`` but returns the value, raising the classified error on failure.

        An aborted invocation returns None.
        """
        outcome = await self.invoke(channel, *args, **kwargs)
        return outcome.unwrap()
