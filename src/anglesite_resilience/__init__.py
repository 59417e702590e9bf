"""Resilient invocation and error-handling core for Anglesite."""

from anglesite_resilience.config import _PACKAGE_VERSION as __version__

__all__ = ["__version__"]
