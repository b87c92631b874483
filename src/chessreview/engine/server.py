"""Oracle backend calling a remote evaluation server over HTTP."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from chessreview.config import EngineConfig
from chessreview.engine.oracle import LineBatch, LineInfo
from chessreview.errors import OracleError

_LOGGER = logging.getLogger(__name__)

_EVALUATE_PATH = "/api/v1/evaluate/position"


class _WireLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pv: list[str]
    cp: int | None = None
    mate: int | None = None
    depth: int = 0
    multipv: int = Field(default=1, alias="multiPv")

    @model_validator(mode="after")
    def _one_score(self) -> _WireLine:
        if (self.cp is None) == (self.mate is None):
            raise ValueError("line must carry exactly one of cp or mate")
        return self


class _WireResponse(BaseModel):
    lines: list[_WireLine]
    best_move: str | None = Field(default=None, alias="bestMove")


class ServerOracle:
    """Evaluates positions with ``POST /api/v1/evaluate/position``.

    The server answers once per request, so each evaluation yields a
    single batch at the requested depth.
    """

    __slots__ = ("name", "_config", "_session", "_owns_session")

    def __init__(
        self,
        config: EngineConfig,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.name = f"server:{config.server_url}"
        self._config = config
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.request_timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def evaluate(
        self, fen: str, depth: int, multipv: int
    ) -> AsyncIterator[LineBatch]:
        url = self._config.server_url.rstrip("/") + _EVALUATE_PATH
        payload = {"fen": fen, "depth": depth, "multiPv": multipv}
        session = self._get_session()
        try:
            async with session.post(url, json=payload) as response:
                if not 200 <= response.status < 300:
                    body = await response.text()
                    raise OracleError(
                        f"Evaluation server returned {response.status}: {body[:200]}"
                    )
                raw = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise OracleError(f"Evaluation request failed: {exc}") from exc

        try:
            parsed = _WireResponse.model_validate_json(raw)
        except ValidationError as exc:
            raise OracleError(f"Malformed evaluation response: {exc}") from exc

        lines = tuple(
            LineInfo(
                pv=tuple(line.pv),
                cp=line.cp,
                mate=line.mate,
                depth=line.depth or depth,
                multipv=line.multipv,
            )
            for line in sorted(parsed.lines, key=lambda line: line.multipv)
        )[:multipv]
        _LOGGER.debug("Server returned %d lines for %s", len(lines), fen)
        yield LineBatch(fen=fen, depth=depth, lines=lines)

    async def aclose(self) -> None:
        session, self._session = self._session, None
        if session is not None and self._owns_session and not session.closed:
            await session.close()
