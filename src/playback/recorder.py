"""Recording: capture live traffic as transaction fixtures.

The recorder sits where the playback transport would: at the end of the
pipeline. It forwards each request to a real transport, writes the request
and response for the current step, and advances the cursor. Replaying the
same transaction later yields the same responses in the same order.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from azure.core.pipeline import PipelineContext
from azure.core.pipeline.transport import AsyncHttpTransport, HttpResponse, HttpTransport

from .config import DEFAULT_REDACTED_HEADERS, REDACTED_VALUE
from .errors import PipelineContractError
from .models import MockRequest, MockResponse, body_bytes
from .transaction import Transaction

logger = logging.getLogger(__name__)


def redact_headers(headers: Mapping[str, str], redacted: frozenset[str]) -> dict[str, str]:
    """Mask the values of sensitive headers. Names match case-insensitively."""
    return {
        name: REDACTED_VALUE if name.lower() in redacted else value
        for name, value in headers.items()
    }


class _Recorder:
    """Writes fixtures for one transaction. Callers serialize access."""

    def __init__(
        self,
        transaction: Transaction,
        redacted_headers: Iterable[str] = DEFAULT_REDACTED_HEADERS,
    ) -> None:
        self._transaction = transaction
        self._redacted = frozenset(name.lower() for name in redacted_headers)

    @property
    def transaction(self) -> Transaction:
        return self._transaction

    def prepare(self, request: Any) -> MockRequest:
        """Capture a live request before it is sent.

        Raises:
            NotImplementedError: If the body is streaming. Raised before any
                network call so nothing goes unrecorded.
        """
        live_request = MockRequest.from_http_request(request)
        body_bytes(live_request.body, "recorded")
        return live_request

    def record(self, live_request: MockRequest, live_response: MockResponse) -> None:
        step = self._transaction.number
        self._transaction.write_step(
            MockRequest(
                uri=live_request.uri,
                method=live_request.method,
                headers=redact_headers(live_request.headers, self._redacted),
                body=live_request.body,
            ),
            MockResponse(
                status=live_response.status,
                headers=redact_headers(live_response.headers, self._redacted),
                body=live_response.body,
            ),
        )
        self._transaction.increment_number()

        logger.debug(
            "Recorded request",
            extra={
                "transaction": self._transaction.name,
                "step": step,
                "method": live_request.method.value,
                "uri": live_request.path_and_query,
                "status": live_response.status,
            },
        )


class RecordingPolicy(_Recorder):
    """Forwards requests to a real transport and records each exchange."""

    def __init__(
        self,
        transaction: Transaction,
        inner: HttpTransport,
        redacted_headers: Iterable[str] = DEFAULT_REDACTED_HEADERS,
    ) -> None:
        super().__init__(transaction, redacted_headers)
        self._inner = inner
        self._lock = threading.Lock()

    @property
    def inner(self) -> HttpTransport:
        return self._inner

    def send(
        self,
        context: PipelineContext | None,
        request: Any,
        remaining_policies: Sequence[Any] = (),
    ) -> Any:
        """Send a request through the real transport and record it.

        Raises:
            PipelineContractError: If any policy follows this stage.
            NotImplementedError: If the request body is streaming.
        """
        if remaining_policies:
            raise PipelineContractError(
                "recording must be the last stage of the pipeline, "
                f"but {len(remaining_policies)} policies follow it"
            )

        live_request = self.prepare(request)
        options = dict(context.options) if context is not None else {}

        with self._lock:
            response = self._inner.send(request, **options)
            self.record(live_request, MockResponse.from_http_response(response))
        return response


class RecordingTransport(HttpTransport):
    """azure-core transport that records through an inner transport."""

    def __init__(
        self,
        transaction: Transaction,
        inner: HttpTransport,
        redacted_headers: Iterable[str] = DEFAULT_REDACTED_HEADERS,
    ) -> None:
        self._policy = RecordingPolicy(transaction, inner, redacted_headers)

    @property
    def policy(self) -> RecordingPolicy:
        return self._policy

    def send(self, request: Any, **kwargs: Any) -> Any:
        return self._policy.send(PipelineContext(self, **kwargs), request)

    def open(self) -> None:
        self._policy.inner.open()

    def close(self) -> None:
        self._policy.inner.close()

    def __enter__(self) -> RecordingTransport:
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


async def _read_async_body(response: Any) -> bytes:
    if isinstance(response, HttpResponse):
        return response.body()
    load_body = getattr(response, "load_body", None)
    if load_body is not None:
        # legacy async transport responses
        await load_body()
        return response.body()
    return await response.read()


class AsyncRecordingTransport(AsyncHttpTransport):
    """Async variant of RecordingTransport."""

    def __init__(
        self,
        transaction: Transaction,
        inner: AsyncHttpTransport,
        redacted_headers: Iterable[str] = DEFAULT_REDACTED_HEADERS,
    ) -> None:
        self._recorder = _Recorder(transaction, redacted_headers)
        self._inner = inner
        self._lock = asyncio.Lock()

    @property
    def transaction(self) -> Transaction:
        return self._recorder.transaction

    async def send(self, request: Any, **kwargs: Any) -> Any:
        live_request = self._recorder.prepare(request)

        async with self._lock:
            response = await self._inner.send(request, **kwargs)
            body = await _read_async_body(response)
            self._recorder.record(
                live_request,
                MockResponse(
                    status=response.status_code,
                    headers={str(k): str(v) for k, v in response.headers.items()},
                    body=body or b"",
                ),
            )
        return response

    async def open(self) -> None:
        await self._inner.open()

    async def close(self) -> None:
        await self._inner.close()

    async def __aenter__(self) -> AsyncRecordingTransport:
        await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
