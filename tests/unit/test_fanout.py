"""Unit tests for the best-effort concurrent fan-out."""
from __future__ import annotations

import pytest

from scallop_risk.errors import InvariantViolation, RequiredObjectNotFound
from scallop_risk.services.fanout import gather_best_effort


async def _value(value):
    return value


async def _fail(exc: BaseException):
    raise exc


class TestGatherBestEffort:
    @pytest.mark.asyncio
    async def test_splits_results_from_failures(self, caplog: pytest.LogCaptureFixture) -> None:
        results, failed = await gather_best_effort(
            "pool",
            [
                ("sui", _value(1)),
                ("usdc", _fail(ConnectionError("timeout"))),
                ("sca", _value(3)),
            ],
        )
        assert results == {"sui": 1, "sca": 3}
        assert failed == ["usdc"]
        assert "Failed to fetch pool for usdc" in caplog.text

    @pytest.mark.asyncio
    async def test_empty(self) -> None:
        assert await gather_best_effort("pool", []) == ({}, [])

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exc",
        [RequiredObjectNotFound("market", "0xMARKET"), InvariantViolation("cash < 0")],
    )
    async def test_terminal_errors_propagate(self, exc: Exception) -> None:
        with pytest.raises(type(exc)):
            await gather_best_effort("pool", [("sui", _value(1)), ("usdc", _fail(exc))])
