"""Retry policy resolution and bounded, cancellable invocation.

Usage:
    from anglesite_resilience.core.resilience import InvocationClient, Failure

    client = InvocationClient(ipc.invoke)
    outcome = await client.invoke("list-websites")
"""

# --- Models ---
from anglesite_resilience.core.resilience.models import (
    DEFAULT_RETRYABLE_ERRORS,
    Aborted,
    Failure,
    InvocationOutcome,
    RetryConfig,
    SleepFunc,
    Success,
    TelemetryEmitter,
    TelemetryEvent,
    TelemetryOutcome,
)

# --- Policy ---
from anglesite_resilience.core.resilience.policy import (
    CHANNEL_POLICIES,
    DEFAULT_RETRY_CONFIG,
    RETRY_BLACKLIST,
    RetryPolicyRegistry,
)

# --- Orchestration ---
from anglesite_resilience.core.resilience.retry import (
    RetryOrchestrator,
    calculate_backoff,
    compute_retry_delay,
    is_error_retryable,
    with_retry,
)

# --- Invocation boundary ---
from anglesite_resilience.core.resilience.client import InvocationClient

__all__ = [
    # Models
    "DEFAULT_RETRYABLE_ERRORS",
    "Aborted",
    "Failure",
    "InvocationOutcome",
    "RetryConfig",
    "SleepFunc",
    "Success",
    "TelemetryEmitter",
    "TelemetryEvent",
    "TelemetryOutcome",
    # Policy
    "CHANNEL_POLICIES",
    "DEFAULT_RETRY_CONFIG",
    "RETRY_BLACKLIST",
    "RetryPolicyRegistry",
    # Orchestration
    "RetryOrchestrator",
    "calculate_backoff",
    "compute_retry_delay",
    "is_error_retryable",
    "with_retry",
    # Invocation boundary
    "InvocationClient",
]
