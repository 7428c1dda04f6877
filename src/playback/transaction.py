"""Transaction store: named, numbered request/response fixtures on disk.

Layout under the recordings directory:

    {recordings_dir}/{transaction name}/
        1_request.json
        1_response.json
        2_request.json
        ...

The cursor starts at 1 and only moves forward. A missing file for the
current step is always an error; steps are never skipped.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePosixPath

from .errors import FixtureNotFoundError, TransactionNotFoundError
from .models import (
    MockRequest,
    MockResponse,
    dump_request_fixture,
    dump_response_fixture,
    parse_request_fixture,
    parse_response_fixture,
)

logger = logging.getLogger(__name__)

VALID_NAME_SEGMENT_PATTERN = r"^[A-Za-z0-9_.-]+$"
STEP_FILE_PATTERN = re.compile(r"^(\d+)_(request|response)\.json$")
REQUEST_FILE_SUFFIX = "_request.json"
RESPONSE_FILE_SUFFIX = "_response.json"


def validate_transaction_name(name: str) -> str:
    """Check a transaction name maps to a directory inside the recordings root.

    Names may use "/" to group transactions, e.g. "keyvault/get_secret".

    Raises:
        ValueError: If the name is empty, absolute, or escapes the root.
    """
    if not name:
        raise ValueError("transaction name cannot be empty")
    if name.startswith("/"):
        raise ValueError(f"transaction name must be relative: {name!r}")
    # PurePosixPath would collapse "a//b" and "a/./b" into "a/b"
    for segment in name.split("/"):
        if not segment:
            raise ValueError(f"transaction name has an empty segment: {name!r}")
        if segment in (".", ".."):
            raise ValueError(f"transaction name cannot contain '{segment}': {name!r}")
        if not re.match(VALID_NAME_SEGMENT_PATTERN, segment):
            raise ValueError(f"transaction name has invalid characters: {name!r}")
    return name


class Transaction:
    """A named sequence of recorded request/response pairs and its cursor.

    Not thread-safe. The policy owning the transaction serializes access.
    """

    def __init__(self, name: str, recordings_dir: str | Path) -> None:
        self._name = validate_transaction_name(name)
        self._recordings_dir = Path(recordings_dir)
        self._number = 1

    @property
    def name(self) -> str:
        return self._name

    @property
    def number(self) -> int:
        """Current step (starts at 1)."""
        return self._number

    def increment_number(self) -> None:
        """Advance to the next step."""
        self._number += 1

    def file_path(self, create: bool = False) -> Path:
        """Get the directory holding this transaction's fixtures.

        Args:
            create: Create the directory if it is missing (recording).

        Raises:
            TransactionNotFoundError: If the directory is missing and create is False.
        """
        path = self._recordings_dir.joinpath(*PurePosixPath(self._name).parts)
        if not path.is_dir():
            if not create:
                raise TransactionNotFoundError(self._name, str(path))
            path.mkdir(parents=True, exist_ok=True)
            logger.info("Created transaction directory", extra={"path": str(path)})
        return path

    def request_path(self, create: bool = False) -> Path:
        return self.file_path(create) / f"{self._number}{REQUEST_FILE_SUFFIX}"

    def response_path(self, create: bool = False) -> Path:
        return self.file_path(create) / f"{self._number}{RESPONSE_FILE_SUFFIX}"

    def read_step(self) -> tuple[MockRequest, MockResponse]:
        """Load the expected request and response for the current step.

        Raises:
            TransactionNotFoundError: If the transaction directory is missing.
            FixtureNotFoundError: If either fixture file is missing or unreadable.
            FixtureParseError: If either fixture has the wrong shape.
        """
        request_path = self.request_path()
        response_path = self.response_path()

        request_text = self._read(request_path)
        response_text = self._read(response_path)

        request = parse_request_fixture(request_text, str(request_path))
        response = parse_response_fixture(response_text, str(response_path))
        return request, response

    def write_step(self, request: MockRequest, response: MockResponse) -> None:
        """Write fixtures for the current step, creating the directory if needed.

        Raises:
            NotImplementedError: If the request body is streaming.
        """
        # Serialize both first so a streaming body leaves nothing on disk
        request_text = dump_request_fixture(request)
        response_text = dump_response_fixture(response)

        self.request_path(create=True).write_text(request_text, encoding="utf-8")
        self.response_path(create=True).write_text(response_text, encoding="utf-8")

    def steps(self) -> dict[int, set[str]]:
        """List the fixture files present on disk, keyed by step number.

        Returns:
            Mapping of step number to the kinds present ("request", "response").

        Raises:
            TransactionNotFoundError: If the transaction directory is missing.
        """
        found: dict[int, set[str]] = {}
        for entry in self.file_path().iterdir():
            match = STEP_FILE_PATTERN.match(entry.name)
            if match and entry.is_file():
                found.setdefault(int(match.group(1)), set()).add(match.group(2))
        return dict(sorted(found.items()))

    def _read(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise FixtureNotFoundError(path.name, str(path), self._number) from e

    def __repr__(self) -> str:
        return f"Transaction(name={self._name!r}, number={self._number})"
