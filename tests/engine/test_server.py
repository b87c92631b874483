"""Tests for the HTTP evaluation server backend."""

from __future__ import annotations

import json

import aiohttp
import pytest

from chessreview.config import EngineConfig, EngineMode
from chessreview.engine.oracle import LineBatch
from chessreview.engine.server import ServerOracle
from chessreview.errors import OracleError

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"


class _FakeResponse:
    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self._body = body

    async def text(self) -> str:
        return self._body

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc_info: object) -> bool:
        return False


class _FakeSession:
    def __init__(
        self,
        status: int = 200,
        body: object = None,
        error: Exception | None = None,
    ) -> None:
        self.status = status
        self.body = body if isinstance(body, str) else json.dumps(body)
        self.error = error
        self.requests: list[tuple[str, object]] = []
        self.closed = False

    def post(self, url: str, json: object = None) -> _FakeResponse:
        self.requests.append((url, json))
        if self.error is not None:
            raise self.error
        return _FakeResponse(self.status, self.body)

    async def close(self) -> None:
        self.closed = True


def _oracle(session: _FakeSession) -> ServerOracle:
    config = EngineConfig(mode=EngineMode.SERVER, server_url="http://eval.local/")
    return ServerOracle(config, session=session)  # type: ignore[arg-type]


async def _collect(oracle: ServerOracle, depth: int = 14, multipv: int = 2) -> list[LineBatch]:
    return [batch async for batch in oracle.evaluate(AFTER_E4, depth, multipv)]


@pytest.mark.asyncio
async def test_evaluate_posts_request_and_parses_lines() -> None:
    session = _FakeSession(
        body={
            "lines": [
                {"pv": ["c7c5", "g1f3"], "cp": 18, "depth": 14, "multiPv": 2},
                {"pv": ["e7e5"], "cp": 21, "depth": 14, "multiPv": 1},
                {"pv": ["a7a6"], "mate": -3, "depth": 14, "multiPv": 3},
            ],
            "bestMove": "e7e5",
        }
    )

    (batch,) = await _collect(_oracle(session))

    assert session.requests == [
        (
            "http://eval.local/api/v1/evaluate/position",
            {"fen": AFTER_E4, "depth": 14, "multiPv": 2},
        )
    ]
    assert batch.fen == AFTER_E4
    assert batch.depth == 14
    assert [(line.pv, line.cp, line.multipv) for line in batch.lines] == [
        (("e7e5",), 21, 1),
        (("c7c5", "g1f3"), 18, 2),
    ]


@pytest.mark.asyncio
async def test_missing_line_depth_defaults_to_requested_depth() -> None:
    session = _FakeSession(body={"lines": [{"pv": ["e7e5"], "mate": 2}]})

    (batch,) = await _collect(_oracle(session), depth=9, multipv=1)

    assert batch.lines[0].depth == 9
    assert batch.lines[0].mate == 2


@pytest.mark.asyncio
async def test_any_success_status_is_accepted() -> None:
    session = _FakeSession(
        status=203, body={"lines": [{"pv": ["e7e5"], "cp": 21, "depth": 14, "multiPv": 1}]}
    )

    (batch,) = await _collect(_oracle(session), multipv=1)

    assert batch.lines[0].cp == 21


@pytest.mark.asyncio
async def test_error_status_raises_oracle_error() -> None:
    session = _FakeSession(status=503, body="busy")
    with pytest.raises(OracleError, match="503"):
        await _collect(_oracle(session))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        "not json",
        {"lines": [{"pv": ["e7e5"]}]},
        {"lines": [{"pv": ["e7e5"], "cp": 3, "mate": 1}]},
        {"result": []},
    ],
)
async def test_malformed_response_raises_oracle_error(body: object) -> None:
    with pytest.raises(OracleError):
        await _collect(_oracle(_FakeSession(body=body)))


@pytest.mark.asyncio
async def test_transport_error_raises_oracle_error() -> None:
    session = _FakeSession(error=aiohttp.ClientConnectionError("refused"))
    with pytest.raises(OracleError, match="refused"):
        await _collect(_oracle(session))


@pytest.mark.asyncio
async def test_injected_session_is_not_closed() -> None:
    session = _FakeSession(body={"lines": []})
    oracle = _oracle(session)

    await oracle.aclose()

    assert session.closed is False
