"""Pending-reward valuation helpers."""
from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Iterable

from ..config import AppConfig
from ..decimal_math import ZERO, add, mul, to_coin
from ..models import PendingReward


def pending_reward(
    config: AppConfig, coin_name: str, amount: Decimal, price: Decimal
) -> PendingReward:
    """Value a raw reward amount; unknown coins are treated as 0 decimals."""
    coin = config.coins.get(coin_name)
    decimals = coin.decimals if coin else 0
    symbol = coin.symbol if coin else coin_name.upper()
    reward_coin = to_coin(amount, decimals)
    return PendingReward(
        coin_name=coin_name,
        symbol=symbol,
        amount=amount,
        coin=reward_coin,
        value=mul(reward_coin, price),
    )


def value_rewards(
    config: AppConfig,
    amounts: dict[str, Decimal],
    prices: dict[str, Decimal],
) -> dict[str, PendingReward]:
    """Value raw reward amounts per coin, skipping empty ones.

    Coins without a price keep their amount and report a zero value.
    """
    return {
        coin_name: pending_reward(config, coin_name, amount, prices.get(coin_name, ZERO))
        for coin_name, amount in amounts.items()
        if amount > 0
    }


def add_amounts(total: dict[str, Decimal], coin_name: str, amount: Decimal) -> None:
    total[coin_name] = add(total.get(coin_name, ZERO), amount)


def merge_rewards(rewards: Iterable[PendingReward]) -> dict[str, PendingReward]:
    """Sum pending rewards of the same coin."""
    merged: dict[str, PendingReward] = {}
    for reward in rewards:
        current = merged.get(reward.coin_name)
        if current is None:
            merged[reward.coin_name] = reward
            continue
        merged[reward.coin_name] = replace(
            current,
            amount=add(current.amount, reward.amount),
            coin=add(current.coin, reward.coin),
            value=add(current.value, reward.value),
        )
    return merged
