"""Canonical request and response models for recorded traffic.

These models provide:
1. One representation for fixtures and live requests, so both sides of a
   comparison go through the same accessors
2. Validation of fixture files at the boundary (fail fast, fail loudly)
3. Conversion into azure-core response objects for the caller
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import AsyncIterator, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from typing import Annotated, Any, Union
from urllib.parse import urlencode, urlsplit

from azure.core.pipeline.transport import HttpResponse
from azure.core.rest import HttpRequest as RestHttpRequest
from azure.core.rest._http_response_impl import HttpResponseImpl
from azure.core.rest._http_response_impl_async import AsyncHttpResponseImpl
from azure.core.utils import CaseInsensitiveDict
from pydantic import BaseModel, Field, ValidationError, field_serializer, field_validator

from .errors import FixtureParseError


class HttpMethod(str, Enum):
    """HTTP methods a recorded request may carry."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
    CONNECT = "CONNECT"

    @classmethod
    def parse(cls, value: Any) -> HttpMethod:
        """Parse a method name case-insensitively.

        Raises:
            ValueError: If the method is not a known HTTP verb.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError as e:
            raise ValueError(f"unsupported HTTP method: {value!r}") from e


# =============================================================================
# Request Bodies
# =============================================================================


@dataclass(frozen=True)
class BytesBody:
    """A fully buffered body. The only form a fixture can hold."""

    data: bytes = b""


@dataclass(frozen=True)
class StreamBody:
    """A streaming or seekable body. Its content cannot be compared."""

    stream: Any


Body = Union[BytesBody, StreamBody]


def body_bytes(body: Body, side: str) -> bytes:
    """Get the bytes of a buffered body.

    Args:
        body: The body to read.
        side: Which side of a comparison the body belongs to, for the error.

    Raises:
        NotImplementedError: If the body is streaming.
    """
    if isinstance(body, BytesBody):
        return body.data
    raise NotImplementedError(
        f"the {side} request body is streaming; only buffered bodies can be compared or recorded"
    )


_FORM_SCALARS = (str, bytes, int, float)


def _is_form_value(value: Any) -> bool:
    if isinstance(value, (list, tuple)):
        return all(isinstance(item, _FORM_SCALARS) for item in value)
    return isinstance(value, _FORM_SCALARS)


def _to_body(raw: Any) -> Body:
    """Classify a live request body.

    Form field dicts are buffered as the urlencoded bytes the requests
    transport would send. Anything else that is not text or bytes
    (multipart uploads, file objects, generators) stays streaming.
    """
    if raw is None:
        return BytesBody(b"")
    if isinstance(raw, (bytes, bytearray)):
        return BytesBody(bytes(raw))
    if isinstance(raw, str):
        return BytesBody(raw.encode("utf-8"))
    if isinstance(raw, Mapping) and all(_is_form_value(v) for v in raw.values()):
        return BytesBody(urlencode(raw, doseq=True).encode("utf-8"))
    # File objects, generators, multipart uploads
    return StreamBody(raw)


# =============================================================================
# Fixture Schema
# =============================================================================


class _FixtureModel(BaseModel):
    """Body handling shared by request and response fixture files."""

    model_config = {"extra": "forbid"}

    @field_validator("body", mode="before", check_fields=False)
    @classmethod
    def decode_body(cls, v: Any) -> bytes:
        if v is None:
            return b""
        if isinstance(v, (bytes, bytearray)):
            return bytes(v)
        if isinstance(v, str):
            try:
                return base64.b64decode(v, validate=True)
            except binascii.Error as e:
                raise ValueError(f"body is not valid base64: {e}") from e
        raise ValueError("body must be base64 text or null")

    @field_serializer("body", check_fields=False)
    def encode_body(self, body: bytes) -> str:
        return base64.b64encode(body).decode("ascii")


class RequestFixture(_FixtureModel):
    """On-disk shape of `{n}_request.json`."""

    uri: Annotated[str, Field(min_length=1)]
    method: HttpMethod
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v: Any) -> HttpMethod:
        return HttpMethod.parse(v)


class ResponseFixture(_FixtureModel):
    """On-disk shape of `{n}_response.json`."""

    status: Annotated[int, Field(ge=100, le=599)]
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""


def _describe_validation_error(error: ValidationError) -> str:
    problems = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "<root>"
        problems.append(f"{location}: {err['msg']}")
    return "; ".join(problems)


# =============================================================================
# Canonical Models
# =============================================================================


@dataclass(frozen=True)
class MockRequest:
    """Canonical HTTP request, built from a fixture or from a live request.

    Header names keep the casing they were stored with; values are opaque.
    """

    uri: str
    method: HttpMethod
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Body = field(default_factory=BytesBody)

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", HttpMethod.parse(self.method))
        object.__setattr__(self, "headers", dict(self.headers))

    @property
    def path_and_query(self) -> str:
        """Path plus query string exactly as sent, without scheme or host."""
        parts = urlsplit(self.uri)
        path = parts.path or "/"
        if parts.query:
            return f"{path}?{parts.query}"
        return path

    @classmethod
    def from_http_request(cls, request: Any) -> MockRequest:
        """Build from an azure-core request.

        Accepts both `azure.core.rest.HttpRequest` and the legacy
        `azure.core.pipeline.transport.HttpRequest`.
        """
        # rest requests expose `content`, legacy ones `body`; both keep
        # multipart uploads apart from urlencoded form fields
        is_rest = isinstance(request, RestHttpRequest)
        files = getattr(request, "_files" if is_rest else "files", None)
        if files:
            body: Body = StreamBody(files)
        else:
            body = _to_body(request.content if is_rest else request.body)
        return cls(
            uri=request.url,
            method=HttpMethod.parse(request.method),
            headers={str(name): str(value) for name, value in request.headers.items()},
            body=body,
        )

    @classmethod
    def from_fixture(cls, fixture: RequestFixture) -> MockRequest:
        return cls(
            uri=fixture.uri,
            method=fixture.method,
            headers=fixture.headers,
            body=BytesBody(fixture.body),
        )

    def to_fixture(self) -> RequestFixture:
        """Convert to the on-disk shape.

        Raises:
            NotImplementedError: If the body is streaming.
        """
        return RequestFixture(
            uri=self.uri,
            method=self.method,
            headers=dict(self.headers),
            body=body_bytes(self.body, "recorded"),
        )


@dataclass(frozen=True)
class MockResponse:
    """Canonical HTTP response. Only ever produced from a fixture or a live response."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", dict(self.headers))

    @classmethod
    def from_fixture(cls, fixture: ResponseFixture) -> MockResponse:
        return cls(status=fixture.status, headers=fixture.headers, body=fixture.body)

    @classmethod
    def from_http_response(cls, response: Any) -> MockResponse:
        """Build from a live azure-core response, loading its body."""
        # legacy transport responses expose body(), rest responses read()
        body = response.body() if isinstance(response, HttpResponse) else response.read()
        return cls(
            status=response.status_code,
            headers={str(name): str(value) for name, value in response.headers.items()},
            body=body or b"",
        )

    def to_fixture(self) -> ResponseFixture:
        return ResponseFixture(status=self.status, headers=dict(self.headers), body=self.body)

    def to_http_response(self, request: Any, *, asynchronous: bool = False) -> Any:
        """Convert to the response type the caller's request expects.

        Requests from `azure.core.rest` get a rest response with the body
        already loaded, as `PipelineClient.send_request` returns it to callers
        unchanged. Legacy transport requests get a legacy response.

        Args:
            request: The live request the response answers.
            asynchronous: Build the async rest response (AsyncPipeline).
        """
        if isinstance(request, RestHttpRequest):
            if asynchronous:
                return AsyncPlaybackRestResponse(request, self)
            return PlaybackRestResponse(request, self)
        return PlaybackHttpResponse(request, self)


class PlaybackHttpResponse(HttpResponse):
    """Legacy azure-core transport response backed by a recorded response."""

    def __init__(self, request: Any, recorded: MockResponse) -> None:
        super().__init__(request, None)
        self.status_code = recorded.status
        self.headers = CaseInsensitiveDict(recorded.headers)
        self.reason = _reason_phrase(recorded.status)
        self.content_type = self.headers.get("Content-Type")
        self._body = recorded.body

    def body(self) -> bytes:
        return self._body


RESPONSE_CHUNK_SIZE = 4096


def _rest_response_fields(request: Any, recorded: MockResponse) -> dict[str, Any]:
    headers = CaseInsensitiveDict(recorded.headers)
    return {
        "request": request,
        "internal_response": None,
        "status_code": recorded.status,
        "reason": _reason_phrase(recorded.status),
        "content_type": headers.get("Content-Type"),
        "headers": headers,
    }


def _recorded_chunks(response: Any, pipeline: Any = None, **kwargs: Any) -> Iterator[bytes]:
    content = response.content
    for start in range(0, len(content), RESPONSE_CHUNK_SIZE):
        yield content[start : start + RESPONSE_CHUNK_SIZE]


async def _async_recorded_chunks(response: Any, pipeline: Any = None, **kwargs: Any) -> AsyncIterator[bytes]:
    for chunk in _recorded_chunks(response):
        yield chunk


class PlaybackRestResponse(HttpResponseImpl):
    """`azure.core.rest` response backed by a recorded response.

    The content is loaded up front, so `read()`, `json()` and `iter_bytes()`
    work without a network connection behind them.
    """

    def __init__(self, request: Any, recorded: MockResponse) -> None:
        super().__init__(
            stream_download_generator=_recorded_chunks,
            **_rest_response_fields(request, recorded),
        )
        self._content = recorded.body

    def close(self) -> None:
        self._is_closed = True


class AsyncPlaybackRestResponse(AsyncHttpResponseImpl):
    """Async variant of PlaybackRestResponse."""

    def __init__(self, request: Any, recorded: MockResponse) -> None:
        super().__init__(
            stream_download_generator=_async_recorded_chunks,
            **_rest_response_fields(request, recorded),
        )
        self._content = recorded.body

    async def close(self) -> None:
        self._is_closed = True


def _reason_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


# =============================================================================
# Fixture I/O
# =============================================================================


def parse_request_fixture(text: str, subject: str) -> MockRequest:
    """Parse a request fixture.

    Args:
        text: Raw JSON content of the fixture file.
        subject: Name of the fixture, used in errors.

    Raises:
        FixtureParseError: If the JSON is malformed or has the wrong shape.
    """
    try:
        fixture = RequestFixture.model_validate_json(text)
    except ValidationError as e:
        raise FixtureParseError(subject, text, _describe_validation_error(e)) from e
    return MockRequest.from_fixture(fixture)


def parse_response_fixture(text: str, subject: str) -> MockResponse:
    """Parse a response fixture.

    Raises:
        FixtureParseError: If the JSON is malformed or has the wrong shape.
    """
    try:
        fixture = ResponseFixture.model_validate_json(text)
    except ValidationError as e:
        raise FixtureParseError(subject, text, _describe_validation_error(e)) from e
    return MockResponse.from_fixture(fixture)


def dump_request_fixture(request: MockRequest) -> str:
    return request.to_fixture().model_dump_json(indent=2)


def dump_response_fixture(response: MockResponse) -> str:
    return response.to_fixture().model_dump_json(indent=2)
