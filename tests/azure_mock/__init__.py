"""Fake Azure service for recording tests.

Provides transports that answer like a live service so the recorder can be
exercised without network access.

Usage:
    from azure_mock import MockServiceTransport, create_keyvault_service

    state = create_keyvault_service()
    transport = RecordingTransport(transaction, MockServiceTransport(state))

    # Assert on what the fake service received
    assert len(state.received) == 1
"""

from .service import (
    AsyncMockServiceTransport,
    MockServiceState,
    MockServiceTransport,
    create_keyvault_service,
)

__all__ = [
    "AsyncMockServiceTransport",
    "MockServiceState",
    "MockServiceTransport",
    "create_keyvault_service",
]
