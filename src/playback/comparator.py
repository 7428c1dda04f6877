"""Request comparison for playback.

A live request matches a recorded one when, in this order:
1. The path and query string are identical
2. Headers match, ignoring names in the exclusion set
3. The HTTP method is identical
4. The buffered bodies are byte-for-byte identical

The first failing check is reported; mismatches are not aggregated.

Header names are compared case-insensitively for both exclusion and
equality, matching HTTP semantics. Header values are opaque strings and
must match exactly, except a recorded value of "REDACTED": the recorder
masked it, so any live value is accepted as long as the header is sent.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from .config import DEFAULT_EXCLUDED_HEADERS, REDACTED_VALUE
from .errors import MockFrameworkError
from .models import MockRequest, body_bytes


class MismatchKind(str, Enum):
    """Which check rejected the live request."""

    URI = "uri"
    MISSING_HEADER = "missing_header"
    UNEXPECTED_HEADER = "unexpected_header"
    HEADER_VALUE = "header_value"
    METHOD = "method"
    BODY = "body"


class RequestMismatchError(MockFrameworkError):
    """A live request diverged from the recorded one."""

    def __init__(
        self,
        message: str,
        *,
        actual: object = None,
        expected: object = None,
        header: str | None = None,
    ) -> None:
        self.actual = actual
        self.expected = expected
        self.header = header
        super().__init__(message)


class UriMismatchError(RequestMismatchError):
    pass


class MissingHeaderError(RequestMismatchError):
    pass


class UnexpectedHeaderError(RequestMismatchError):
    pass


class HeaderValueMismatchError(RequestMismatchError):
    pass


class MethodMismatchError(RequestMismatchError):
    pass


class BodyMismatchError(RequestMismatchError):
    pass


_ERROR_TYPES: dict[MismatchKind, type[RequestMismatchError]] = {
    MismatchKind.URI: UriMismatchError,
    MismatchKind.MISSING_HEADER: MissingHeaderError,
    MismatchKind.UNEXPECTED_HEADER: UnexpectedHeaderError,
    MismatchKind.HEADER_VALUE: HeaderValueMismatchError,
    MismatchKind.METHOD: MethodMismatchError,
    MismatchKind.BODY: BodyMismatchError,
}


@dataclass(frozen=True)
class Mismatch:
    """Structured description of the first difference found."""

    kind: MismatchKind
    message: str
    actual: object = None
    expected: object = None
    header: str | None = None

    def to_error(self) -> RequestMismatchError:
        error_type = _ERROR_TYPES[self.kind]
        return error_type(
            self.message,
            actual=self.actual,
            expected=self.expected,
            header=self.header,
        )


class RequestComparator:
    """Decides whether a live request matches a recorded one."""

    def __init__(self, excluded_headers: Iterable[str] = DEFAULT_EXCLUDED_HEADERS) -> None:
        self._excluded = frozenset(name.lower() for name in excluded_headers)

    @property
    def excluded_headers(self) -> frozenset[str]:
        """Excluded names, lower-cased."""
        return self._excluded

    def is_excluded(self, name: str) -> bool:
        return name.lower() in self._excluded

    def find_mismatch(self, actual: MockRequest, expected: MockRequest) -> Mismatch | None:
        """Find the first difference between a live and a recorded request.

        Returns:
            The mismatch, or None if the requests match.

        Raises:
            NotImplementedError: If either body is streaming.
        """
        actual_uri = actual.path_and_query
        expected_uri = expected.path_and_query
        if actual_uri != expected_uri:
            return Mismatch(
                kind=MismatchKind.URI,
                message=f"mismatched request uri. Actual: '{actual_uri}', Expected: '{expected_uri}'",
                actual=actual_uri,
                expected=expected_uri,
            )

        header_mismatch = self._find_header_mismatch(actual.headers, expected.headers)
        if header_mismatch is not None:
            return header_mismatch

        if actual.method != expected.method:
            return Mismatch(
                kind=MismatchKind.METHOD,
                message=(
                    f"mismatched HTTP request method. "
                    f"Actual: {actual.method.value}, Expected: {expected.method.value}"
                ),
                actual=actual.method,
                expected=expected.method,
            )

        actual_body = body_bytes(actual.body, "actual")
        expected_body = body_bytes(expected.body, "expected")
        if actual_body != expected_body:
            return Mismatch(
                kind=MismatchKind.BODY,
                message=f"mismatched request body. Actual: {actual_body!r}, Expected: {expected_body!r}",
                actual=actual_body,
                expected=expected_body,
            )

        return None

    def compare(self, actual: MockRequest, expected: MockRequest) -> None:
        """Check a live request against a recorded one.

        Raises:
            RequestMismatchError: The subclass naming the first failed check.
            NotImplementedError: If either body is streaming.
        """
        mismatch = self.find_mismatch(actual, expected)
        if mismatch is not None:
            raise mismatch.to_error()

    def _find_header_mismatch(
        self,
        actual: Mapping[str, str],
        expected: Mapping[str, str],
    ) -> Mismatch | None:
        actual_by_key = self._index_headers(actual)
        expected_by_key = self._index_headers(expected)

        # Walk the union so equal-sized but different header sets are caught
        for key in sorted(actual_by_key.keys() | expected_by_key.keys()):
            actual_entry = actual_by_key.get(key)
            expected_entry = expected_by_key.get(key)

            if actual_entry is None and expected_entry is not None:
                name = expected_entry[0]
                return Mismatch(
                    kind=MismatchKind.MISSING_HEADER,
                    message=f"actual request does not have header '{name}' but it was expected",
                    expected=expected_entry[1],
                    header=name,
                )
            if expected_entry is None and actual_entry is not None:
                name = actual_entry[0]
                return Mismatch(
                    kind=MismatchKind.UNEXPECTED_HEADER,
                    message=f"actual request has header '{name}' but it was not expected",
                    actual=actual_entry[1],
                    header=name,
                )
            if actual_entry is not None and expected_entry is not None:
                # A redacted recording only pins the header's presence
                if expected_entry[1] == REDACTED_VALUE:
                    continue
                if actual_entry[1] != expected_entry[1]:
                    name = expected_entry[0]
                    return Mismatch(
                        kind=MismatchKind.HEADER_VALUE,
                        message=(
                            f"request header '{name}' is different. "
                            f"Actual: {actual_entry[1]}, Expected: {expected_entry[1]}"
                        ),
                        actual=actual_entry[1],
                        expected=expected_entry[1],
                        header=name,
                    )
        return None

    def _index_headers(self, headers: Mapping[str, str]) -> dict[str, tuple[str, str]]:
        """Key headers by lower-cased name, dropping excluded ones.

        Keeps the stored casing of the name for error messages.
        """
        indexed: dict[str, tuple[str, str]] = {}
        for name, value in headers.items():
            key = name.lower()
            if key in self._excluded:
                continue
            indexed[key] = (name, value)
        return indexed
