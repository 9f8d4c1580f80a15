"""Pipeline errors.

Only SubscriptionError is allowed to escape the service at runtime; the
rest are raised at a boundary and handled right above it.
"""
from __future__ import annotations


class PipelineError(Exception):
    """Base class for all stockflow errors."""
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class SubscriptionError(PipelineError):
    """Broker unreachable or topic subscription failed at startup."""
    def __init__(self, topics: list[str], reason: str):
        super().__init__(
            code="SUBSCRIPTION_FAILED",
            message=f"Cannot subscribe to {', '.join(topics)}: {reason}",
        )
        self.topics = topics


class MalformedEventError(PipelineError):
    def __init__(self, reason: str, raw: str | None = None):
        super().__init__(code="MALFORMED_EVENT", message=f"Malformed event: {reason}")
        self.raw = raw


class PublishError(PipelineError):
    def __init__(self, topic: str, reason: str):
        super().__init__(code="PUBLISH_FAILED", message=f"Publish to {topic} failed: {reason}")
        self.topic = topic


class RestorationFailed(PipelineError):
    def __init__(self, pass_name: str, attempts: int):
        super().__init__(
            code="RESTORATION_FAILED",
            message=f"Counter restoration '{pass_name}' gave up after {attempts} attempts",
        )
        self.pass_name = pass_name
        self.attempts = attempts
