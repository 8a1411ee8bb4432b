"""Governance lock (veSCA) queries."""
from __future__ import annotations

from typing import Callable

from ..calculators.vesca import SCA_DECIMALS, calculate_vesca
from ..config import AppConfig
from ..interfaces.fetcher import LedgerFetcher
from ..models import VeScaMetrics
from .clock import unix_now


class VeScaQueryService:
    def __init__(
        self,
        fetcher: LedgerFetcher,
        config: AppConfig,
        clock: Callable[[], int] = unix_now,
    ) -> None:
        self._fetcher = fetcher
        self._config = config
        self._clock = clock

    @property
    def governance_decimals(self) -> int:
        coin = self._config.coins.get(self._config.market.governance_coin)
        return coin.decimals if coin else SCA_DECIMALS

    async def get_vescas(self, owner: str) -> list[VeScaMetrics]:
        raw_locks = await self._fetcher.fetch_vescas(owner)
        now = self._clock()
        return [
            calculate_vesca(raw, now, decimals=self.governance_decimals)
            for raw in raw_locks
        ]
