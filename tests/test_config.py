"""Tests for environment-driven configuration."""

from __future__ import annotations

import pytest

from chessreview.config import AnalysisSettings, EngineConfig, EngineMode


def test_defaults_without_environment() -> None:
    config = EngineConfig.from_env({})
    assert config == EngineConfig()
    assert config.mode is EngineMode.LOCAL


def test_reads_prefixed_variables() -> None:
    config = EngineConfig.from_env(
        {
            "CHESSREVIEW_ENGINE_MODE": " Server ",
            "CHESSREVIEW_SERVER_URL": "http://engine.internal:9000",
            "CHESSREVIEW_THREADS": "4",
            "CHESSREVIEW_HASH_MB": "256",
            "CHESSREVIEW_REQUEST_TIMEOUT": "12.5",
            "ENGINE_PATH": "/ignored/without/prefix",
        }
    )
    assert config.mode is EngineMode.SERVER
    assert config.server_url == "http://engine.internal:9000"
    assert config.threads == 4
    assert config.hash_mb == 256
    assert config.request_timeout_s == 12.5
    assert config.engine_path == "stockfish"


def test_blank_values_fall_back_to_defaults() -> None:
    config = EngineConfig.from_env({"CHESSREVIEW_ENGINE_PATH": "   "})
    assert config.engine_path == "stockfish"


def test_unknown_mode_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown engine mode"):
        EngineConfig.from_env({"CHESSREVIEW_ENGINE_MODE": "cloud"})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"depth": 0},
        {"multipv": 0},
        {"live_start_depth": 0},
        {"live_start_depth": 12, "live_target_depth": 8},
    ],
)
def test_analysis_settings_validation(kwargs: dict[str, int]) -> None:
    with pytest.raises(ValueError):
        AnalysisSettings(**kwargs)


def test_analysis_settings_defaults_are_valid() -> None:
    settings = AnalysisSettings()
    assert settings.live_start_depth <= settings.live_target_depth
