"""Runtime configuration for engines and analysis runs."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

_ENV_PREFIX = "CHESSREVIEW_"


class EngineMode(StrEnum):
    """Which evaluation backend the oracle talks to."""

    LOCAL = "local"
    SERVER = "server"


@dataclass(slots=True, frozen=True)
class EngineConfig:
    """Connection settings for the evaluation oracle."""

    mode: EngineMode = EngineMode.LOCAL
    engine_path: str = "stockfish"
    server_url: str = "http://127.0.0.1:8080"
    threads: int = 1
    hash_mb: int = 64
    request_timeout_s: float = 60.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineConfig:
        """Build a config from ``CHESSREVIEW_*`` environment variables."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def _get(name: str) -> str | None:
            value = env.get(_ENV_PREFIX + name)
            return value.strip() if value and value.strip() else None

        mode_raw = _get("ENGINE_MODE")
        try:
            mode = EngineMode(mode_raw.lower()) if mode_raw else defaults.mode
        except ValueError:
            raise ValueError(f"Unknown engine mode: {mode_raw!r}") from None

        return cls(
            mode=mode,
            engine_path=_get("ENGINE_PATH") or defaults.engine_path,
            server_url=_get("SERVER_URL") or defaults.server_url,
            threads=int(_get("THREADS") or defaults.threads),
            hash_mb=int(_get("HASH_MB") or defaults.hash_mb),
            request_timeout_s=float(
                _get("REQUEST_TIMEOUT") or defaults.request_timeout_s
            ),
        )


@dataclass(slots=True, frozen=True)
class AnalysisSettings:
    """Depth and line-count limits for full-game and live analysis."""

    depth: int = 16
    multipv: int = 3
    live_start_depth: int = 10
    live_target_depth: int = 20

    def __post_init__(self) -> None:
        if self.depth < 1:
            raise ValueError("Analysis depth must be >= 1")
        if self.multipv < 1:
            raise ValueError("MultiPV must be >= 1")
        if not 1 <= self.live_start_depth <= self.live_target_depth:
            raise ValueError("Live depth range must satisfy 1 <= start <= target")
