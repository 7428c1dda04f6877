"""Error types shared by the playback framework.

Every failure caused by recorded traffic diverging from live traffic is a
MockFrameworkError. None of them are retryable: a mismatch means the fixture
and the client under test disagree and the test must fail.
"""

from __future__ import annotations

from azure.core.exceptions import AzureError


class MockFrameworkError(AzureError):
    """Base error for the record/playback framework."""

    pass


class TransactionNotFoundError(MockFrameworkError):
    """Raised when a transaction directory does not exist in playback mode."""

    def __init__(self, name: str, path: str) -> None:
        self.name = name
        self.path = path
        super().__init__(f"the transaction location '{path}' does not exist (transaction '{name}')")


class FixtureNotFoundError(MockFrameworkError):
    """Raised when the fixture file for the current step is missing or unreadable."""

    def __init__(self, subject: str, path: str, step: int) -> None:
        self.subject = subject
        self.path = path
        self.step = step
        super().__init__(f"fixture '{subject}' for step {step} not found at '{path}'")


class FixtureParseError(MockFrameworkError):
    """Raised when a fixture file does not match the expected JSON shape.

    Carries the raw file body so broken fixtures can be debugged from the
    error alone.
    """

    def __init__(self, subject: str, body: str, reason: str) -> None:
        self.subject = subject
        self.body = body
        self.reason = reason
        super().__init__(f"failed to parse fixture '{subject}': {reason}. Body: {body!r}")


class PipelineContractError(AssertionError):
    """Raised when a terminal stage is installed with policies after it."""

    pass
