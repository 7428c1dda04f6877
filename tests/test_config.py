"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from playback.config import (
    DEFAULT_EXCLUDED_HEADERS,
    DEFAULT_REDACTED_HEADERS,
    ConfigurationError,
    HeaderRules,
    PlaybackConfig,
    PlaybackMode,
)

ENV_VARS = (
    "TESTING_MODE",
    "PLAYBACK_RECORDINGS_DIR",
    "PLAYBACK_EXCLUDED_HEADERS",
    "PLAYBACK_RULES_FILE",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


class TestPlaybackConfig:
    """Tests for PlaybackConfig class."""

    def test_defaults(self) -> None:
        config = PlaybackConfig()

        assert config.mode == PlaybackMode.REPLAY
        assert config.recordings_dir == Path("tests/transactions")
        assert config.excluded_headers == {"Date", "x-ms-date", "authorization", "user-agent"}
        assert config.redacted_headers == {"authorization"}

    def test_recordings_dir_must_be_directory(self, tmp_path: Path) -> None:
        not_a_dir = tmp_path / "file.txt"
        not_a_dir.write_text("x")

        with pytest.raises(ConfigurationError) as exc_info:
            PlaybackConfig(recordings_dir=not_a_dir)

        assert "not a directory" in str(exc_info.value)

    def test_missing_recordings_dir_is_allowed(self, tmp_path: Path) -> None:
        config = PlaybackConfig(recordings_dir=tmp_path / "later")
        assert config.recordings_dir == tmp_path / "later"

    def test_string_recordings_dir_is_converted(self, tmp_path: Path) -> None:
        config = PlaybackConfig(recordings_dir=str(tmp_path))

        assert config.recordings_dir == tmp_path
        assert isinstance(config.recordings_dir, Path)

    def test_plain_header_sets_are_frozen(self) -> None:
        config = PlaybackConfig(excluded_headers={"traceparent"}, redacted_headers=["x-ms-key"])

        assert config.excluded_headers == frozenset({"traceparent"})
        assert config.redacted_headers == frozenset({"x-ms-key"})

    def test_invalid_header_names_are_collected(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            PlaybackConfig(
                excluded_headers=frozenset({"bad header"}),
                redacted_headers=frozenset({"also:bad"}),
            )

        message = str(exc_info.value)
        assert "bad header" in message
        assert "also:bad" in message


class TestFromEnv:
    """Tests for PlaybackConfig.from_env."""

    def test_empty_environment(self, clean_env: pytest.MonkeyPatch) -> None:
        config = PlaybackConfig.from_env()
        assert config == PlaybackConfig()

    def test_record_mode(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("TESTING_MODE", "RECORD")
        assert PlaybackConfig.from_env().mode == PlaybackMode.RECORD

    def test_invalid_mode(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("TESTING_MODE", "live")

        with pytest.raises(ConfigurationError) as exc_info:
            PlaybackConfig.from_env()

        assert "TESTING_MODE" in str(exc_info.value)

    def test_recordings_dir(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        clean_env.setenv("PLAYBACK_RECORDINGS_DIR", str(tmp_path))
        assert PlaybackConfig.from_env().recordings_dir == tmp_path

    def test_extra_exclusions_extend_defaults(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("PLAYBACK_EXCLUDED_HEADERS", "x-ms-client-request-id, traceparent,")

        config = PlaybackConfig.from_env()

        assert config.excluded_headers == DEFAULT_EXCLUDED_HEADERS | {
            "x-ms-client-request-id",
            "traceparent",
        }

    def test_rules_file(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        rules_file = tmp_path / "rules.yaml"
        rules_file.write_text(
            "excludedHeaders:\n"
            "  - x-ms-client-request-id\n"
            "redactedHeaders:\n"
            "  - x-ms-encryption-key\n"
            "enableDefaultExclusions: false\n"
        )
        clean_env.setenv("PLAYBACK_RULES_FILE", str(rules_file))
        clean_env.setenv("PLAYBACK_EXCLUDED_HEADERS", "traceparent")

        config = PlaybackConfig.from_env()

        assert config.excluded_headers == {"x-ms-client-request-id", "traceparent"}
        assert config.redacted_headers == DEFAULT_REDACTED_HEADERS | {"x-ms-encryption-key"}

    def test_missing_rules_file(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        clean_env.setenv("PLAYBACK_RULES_FILE", str(tmp_path / "missing.yaml"))

        with pytest.raises(ConfigurationError, match="Cannot read header rules file"):
            PlaybackConfig.from_env()


class TestHeaderRules:
    """Tests for HeaderRules YAML parsing."""

    def test_empty_yaml(self) -> None:
        rules = HeaderRules.from_yaml("")
        assert rules.effective_exclusions() == DEFAULT_EXCLUDED_HEADERS

    def test_defaults_can_be_disabled(self) -> None:
        rules = HeaderRules.from_yaml("enableDefaultExclusions: false\n")
        assert rules.effective_exclusions() == frozenset()

    def test_invalid_yaml(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            HeaderRules.from_yaml("excludedHeaders: [unclosed")

    def test_not_an_object(self) -> None:
        with pytest.raises(ConfigurationError, match="YAML object"):
            HeaderRules.from_yaml("- a\n- b\n")

    def test_list_required(self) -> None:
        with pytest.raises(ConfigurationError, match="'excludedHeaders' must be a list"):
            HeaderRules.from_yaml("excludedHeaders: x-ms-date\n")

    def test_string_entries_required(self) -> None:
        with pytest.raises(ConfigurationError, match="must be strings"):
            HeaderRules.from_yaml("redactedHeaders:\n  - 42\n")

    def test_boolean_flag_required(self) -> None:
        with pytest.raises(ConfigurationError, match="boolean"):
            HeaderRules.from_yaml("enableDefaultExclusions: sometimes\n")

    def test_from_rules(self, tmp_path: Path) -> None:
        rules = HeaderRules(excluded_headers=frozenset({"traceparent"}))

        config = PlaybackConfig.from_rules(rules, recordings_dir=tmp_path, mode=PlaybackMode.RECORD)

        assert config.mode == PlaybackMode.RECORD
        assert config.recordings_dir == tmp_path
        assert "traceparent" in config.excluded_headers
        assert "authorization" in config.excluded_headers
