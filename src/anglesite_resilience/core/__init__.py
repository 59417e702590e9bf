"""Core building blocks: structured errors, retry orchestration, translation and observability.

Import from the subpackages:
    anglesite_resilience.core.errors
    anglesite_resilience.core.resilience
    anglesite_resilience.core.translation
    anglesite_resilience.core.observability
"""
