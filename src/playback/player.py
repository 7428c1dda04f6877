"""Playback: replay recorded responses instead of calling the network.

The playback stage is the terminal element of an azure-core pipeline. For
each outbound request it loads the fixture pair at the transaction cursor,
checks the live request against the recorded one, and returns the recorded
response. The cursor advances only after every check passes, so a failed
call leaves the transaction where it was.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from typing import Any

from azure.core.pipeline import PipelineContext
from azure.core.pipeline.transport import AsyncHttpTransport, HttpTransport

from .comparator import RequestComparator, RequestMismatchError
from .errors import PipelineContractError
from .models import MockRequest
from .transaction import Transaction

logger = logging.getLogger(__name__)


class PlaybackPolicy:
    """Replays one transaction, one step per request.

    One instance per transaction. The cursor is owned by the instance and
    the read-compare-advance sequence is serialized, so concurrent callers
    sharing an instance never replay the same step twice.

    Responses match the request type: `azure.core.rest` requests get rest
    responses (async ones when `asynchronous` is set), legacy requests get
    legacy responses.
    """

    def __init__(
        self,
        transaction: Transaction,
        comparator: RequestComparator | None = None,
        *,
        asynchronous: bool = False,
    ) -> None:
        self._transaction = transaction
        self._comparator = comparator or RequestComparator()
        self._asynchronous = asynchronous
        self._lock = threading.Lock()

    @property
    def transaction(self) -> Transaction:
        return self._transaction

    @property
    def comparator(self) -> RequestComparator:
        return self._comparator

    def send(
        self,
        context: PipelineContext | None,
        request: Any,
        remaining_policies: Sequence[Any] = (),
    ) -> Any:
        """Replay the recorded response for a live request.

        Args:
            context: Pipeline context of the call.
            request: The live azure-core request.
            remaining_policies: Policies that would run after this stage. Must be empty.

        Returns:
            The recorded response for the current step.

        Raises:
            PipelineContractError: If any policy follows this stage.
            MockFrameworkError: If the fixture is missing, malformed, or does
                not match the live request.
            NotImplementedError: If either request body is streaming.
        """
        if remaining_policies:
            raise PipelineContractError(
                "playback must be the last stage of the pipeline, "
                f"but {len(remaining_policies)} policies follow it"
            )

        live_request = MockRequest.from_http_request(request)

        with self._lock:
            step = self._transaction.number
            expected_request, expected_response = self._transaction.read_step()

            try:
                self._comparator.compare(live_request, expected_request)
            except RequestMismatchError as e:
                logger.warning(
                    "Live request does not match recording",
                    extra={
                        "transaction": self._transaction.name,
                        "step": step,
                        "error": str(e),
                    },
                )
                raise

            self._transaction.increment_number()

        logger.debug(
            "Replayed recorded response",
            extra={
                "transaction": self._transaction.name,
                "step": step,
                "method": live_request.method.value,
                "uri": live_request.path_and_query,
                "status": expected_response.status,
            },
        )
        return expected_response.to_http_response(request, asynchronous=self._asynchronous)


class PlaybackTransport(HttpTransport):
    """azure-core transport that serves every request from a transaction.

    Usage:
        transport = PlaybackTransport(Transaction("get_secret", "tests/transactions"))
        pipeline = Pipeline(transport, policies=[HeadersPolicy()])
        response = pipeline.run(HttpRequest("GET", url)).http_response
    """

    def __init__(
        self,
        transaction: Transaction,
        comparator: RequestComparator | None = None,
    ) -> None:
        self._policy = PlaybackPolicy(transaction, comparator)

    @property
    def policy(self) -> PlaybackPolicy:
        return self._policy

    def send(self, request: Any, **kwargs: Any) -> Any:
        # The transport is the end of the chain: nothing runs after it
        return self._policy.send(PipelineContext(self, **kwargs), request)

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> PlaybackTransport:
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class AsyncPlaybackTransport(AsyncHttpTransport):
    """Async variant of PlaybackTransport for AsyncPipeline clients.

    Fixture reads complete before the comparison starts; there is no await
    inside a step, so a cancelled call never leaves a half-advanced cursor.
    """

    def __init__(
        self,
        transaction: Transaction,
        comparator: RequestComparator | None = None,
    ) -> None:
        self._policy = PlaybackPolicy(transaction, comparator, asynchronous=True)

    @property
    def policy(self) -> PlaybackPolicy:
        return self._policy

    async def send(self, request: Any, **kwargs: Any) -> Any:
        return self._policy.send(PipelineContext(self, **kwargs), request)

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def __aenter__(self) -> AsyncPlaybackTransport:
        await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
