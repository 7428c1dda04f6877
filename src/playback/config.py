"""Configuration management with validation.

Header comparison rules and the recordings location are fixed when a
transport is built. Invalid values are rejected at load time rather than
surfacing as confusing mismatches during a test run.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


class PlaybackMode(str, Enum):
    """How mock transports treat outbound requests."""

    REPLAY = "replay"
    RECORD = "record"


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Headers that change on every invocation and are never compared
DEFAULT_EXCLUDED_HEADERS: frozenset[str] = frozenset(
    {"Date", "x-ms-date", "authorization", "user-agent"}
)

# Headers whose values are replaced before a fixture is written
DEFAULT_REDACTED_HEADERS: frozenset[str] = frozenset({"authorization"})
REDACTED_VALUE = "REDACTED"

DEFAULT_RECORDINGS_DIR = "tests/transactions"

# RFC 7230 token characters
VALID_HEADER_NAME_PATTERN = r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$"

# Environment variable names
ENV_TESTING_MODE = "TESTING_MODE"
ENV_RECORDINGS_DIR = "PLAYBACK_RECORDINGS_DIR"
ENV_EXCLUDED_HEADERS = "PLAYBACK_EXCLUDED_HEADERS"
ENV_RULES_FILE = "PLAYBACK_RULES_FILE"


def _validate_header_names(names: frozenset[str], label: str) -> list[str]:
    errors: list[str] = []
    for name in sorted(names):
        if not re.match(VALID_HEADER_NAME_PATTERN, name):
            errors.append(f"{label} contains an invalid header name: {name!r}")
    return errors


@dataclass(frozen=True)
class HeaderRules:
    """Header names to exclude from comparison or redact when recording.

    Attributes:
        excluded_headers: Extra names ignored by the comparator.
        redacted_headers: Extra names whose values are masked in fixtures.
        enable_default_exclusions: Whether DEFAULT_EXCLUDED_HEADERS apply too.
    """

    excluded_headers: frozenset[str] = frozenset()
    redacted_headers: frozenset[str] = frozenset()
    enable_default_exclusions: bool = True

    def effective_exclusions(self) -> frozenset[str]:
        """Get the exclusion set with defaults applied."""
        if self.enable_default_exclusions:
            return DEFAULT_EXCLUDED_HEADERS | self.excluded_headers
        return self.excluded_headers

    def effective_redactions(self) -> frozenset[str]:
        """Get the redaction set with defaults applied."""
        return DEFAULT_REDACTED_HEADERS | self.redacted_headers

    @classmethod
    def from_yaml(cls, yaml_content: str) -> HeaderRules:
        """Parse header rules from YAML content.

        Expected format:
            excludedHeaders:
              - x-ms-client-request-id
            redactedHeaders:
              - x-ms-encryption-key
            enableDefaultExclusions: true

        Raises:
            ConfigurationError: If YAML is invalid or malformed.
        """
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in header rules: {e}") from e

        if data is None:
            return cls()

        if not isinstance(data, dict):
            raise ConfigurationError("Header rules must be a YAML object")

        def get_names(key: str) -> frozenset[str]:
            raw = data.get(key, [])
            if raw is None:
                return frozenset()
            if not isinstance(raw, list):
                raise ConfigurationError(f"'{key}' must be a list")
            for name in raw:
                if not isinstance(name, str):
                    raise ConfigurationError(f"'{key}' entries must be strings")
            return frozenset(raw)

        enable_defaults = data.get("enableDefaultExclusions", True)
        if not isinstance(enable_defaults, bool):
            raise ConfigurationError("'enableDefaultExclusions' must be a boolean")

        return cls(
            excluded_headers=get_names("excludedHeaders"),
            redacted_headers=get_names("redactedHeaders"),
            enable_default_exclusions=enable_defaults,
        )

    @classmethod
    def from_file(cls, path: str | Path) -> HeaderRules:
        """Load header rules from a YAML file.

        Raises:
            ConfigurationError: If file cannot be read or parsed.
        """
        try:
            with open(path, encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read header rules file: {e}") from e

        return cls.from_yaml(content)


@dataclass(frozen=True)
class PlaybackConfig:
    """Playback configuration.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-test.
    A string recordings_dir and plain header sets are normalized to
    Path and frozenset.
    """

    recordings_dir: Path = field(default_factory=lambda: Path(DEFAULT_RECORDINGS_DIR))
    mode: PlaybackMode = PlaybackMode.REPLAY
    excluded_headers: frozenset[str] = DEFAULT_EXCLUDED_HEADERS
    redacted_headers: frozenset[str] = DEFAULT_REDACTED_HEADERS

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        object.__setattr__(self, "recordings_dir", Path(self.recordings_dir))
        object.__setattr__(self, "excluded_headers", frozenset(self.excluded_headers))
        object.__setattr__(self, "redacted_headers", frozenset(self.redacted_headers))
        errors: list[str] = []

        if self.recordings_dir.exists() and not self.recordings_dir.is_dir():
            errors.append(f"Recordings path is not a directory: {self.recordings_dir}")

        errors.extend(_validate_header_names(self.excluded_headers, "excluded_headers"))
        errors.extend(_validate_header_names(self.redacted_headers, "redacted_headers"))

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_rules(
        cls,
        rules: HeaderRules,
        *,
        recordings_dir: Path | None = None,
        mode: PlaybackMode = PlaybackMode.REPLAY,
    ) -> PlaybackConfig:
        """Build a configuration from parsed header rules."""
        return cls(
            recordings_dir=recordings_dir or Path(DEFAULT_RECORDINGS_DIR),
            mode=mode,
            excluded_headers=rules.effective_exclusions(),
            redacted_headers=rules.effective_redactions(),
        )

    @classmethod
    def from_env(cls) -> PlaybackConfig:
        """Load configuration from environment variables.

        Environment Variables:
            TESTING_MODE: "replay" (default) or "record"
            PLAYBACK_RECORDINGS_DIR: Root of transaction directories
                (default: tests/transactions)
            PLAYBACK_EXCLUDED_HEADERS: Comma-separated header names excluded
                from comparison in addition to the defaults
            PLAYBACK_RULES_FILE: Path to a YAML header rules file
        """

        def get_mode(value: str | None) -> PlaybackMode:
            if not value:
                return PlaybackMode.REPLAY
            try:
                return PlaybackMode(value.strip().lower())
            except ValueError as e:
                valid = [m.value for m in PlaybackMode]
                raise ConfigurationError(f"{ENV_TESTING_MODE} must be one of {valid}: {value}") from e

        rules = HeaderRules()
        rules_file = os.environ.get(ENV_RULES_FILE)
        if rules_file:
            rules = HeaderRules.from_file(rules_file)
            logger.debug("Loaded header rules file", extra={"path": rules_file})

        extra_exclusions = frozenset(
            name.strip()
            for name in os.environ.get(ENV_EXCLUDED_HEADERS, "").split(",")
            if name.strip()
        )
        if extra_exclusions:
            rules = HeaderRules(
                excluded_headers=rules.excluded_headers | extra_exclusions,
                redacted_headers=rules.redacted_headers,
                enable_default_exclusions=rules.enable_default_exclusions,
            )

        return cls.from_rules(
            rules,
            recordings_dir=Path(os.environ.get(ENV_RECORDINGS_DIR, DEFAULT_RECORDINGS_DIR)),
            mode=get_mode(os.environ.get(ENV_TESTING_MODE)),
        )
