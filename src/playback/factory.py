"""Build the mock transport for a test from configuration.

In replay mode the transport serves fixtures; in record mode it wraps a
real transport and writes fixtures. Test code asks for a transport by
transaction name and never branches on the mode itself.
"""

from __future__ import annotations

import logging

from azure.core.pipeline.transport import AsyncHttpTransport, HttpTransport

from .comparator import RequestComparator
from .config import ConfigurationError, PlaybackConfig, PlaybackMode
from .player import AsyncPlaybackTransport, PlaybackTransport
from .recorder import AsyncRecordingTransport, RecordingTransport
from .transaction import Transaction

logger = logging.getLogger(__name__)


def new_mock_transport(
    transaction_name: str,
    config: PlaybackConfig | None = None,
    inner: HttpTransport | None = None,
) -> HttpTransport:
    """Create the terminal transport for a transaction.

    Args:
        transaction_name: Name of the recorded scenario.
        config: Playback configuration. Loaded from the environment if omitted.
        inner: Real transport to record through. Required in record mode.

    Returns:
        PlaybackTransport in replay mode, RecordingTransport in record mode.

    Raises:
        ConfigurationError: If record mode is selected without a real transport.
    """
    config = config or PlaybackConfig.from_env()
    transaction = Transaction(transaction_name, config.recordings_dir)

    logger.info(
        "Creating mock transport",
        extra={"transaction": transaction_name, "mode": config.mode.value},
    )

    if config.mode == PlaybackMode.RECORD:
        if inner is None:
            raise ConfigurationError("record mode requires a real transport to record through")
        return RecordingTransport(transaction, inner, config.redacted_headers)

    return PlaybackTransport(transaction, RequestComparator(config.excluded_headers))


def new_async_mock_transport(
    transaction_name: str,
    config: PlaybackConfig | None = None,
    inner: AsyncHttpTransport | None = None,
) -> AsyncHttpTransport:
    """Async variant of new_mock_transport."""
    config = config or PlaybackConfig.from_env()
    transaction = Transaction(transaction_name, config.recordings_dir)

    logger.info(
        "Creating async mock transport",
        extra={"transaction": transaction_name, "mode": config.mode.value},
    )

    if config.mode == PlaybackMode.RECORD:
        if inner is None:
            raise ConfigurationError("record mode requires a real transport to record through")
        return AsyncRecordingTransport(transaction, inner, config.redacted_headers)

    return AsyncPlaybackTransport(transaction, RequestComparator(config.excluded_headers))
