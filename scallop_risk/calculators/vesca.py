"""veSCA (vote-escrowed SCA) valuation."""
from __future__ import annotations

from decimal import Decimal

from ..decimal_math import div, mul, to_coin
from ..models import RawVeSca, VeScaMetrics

SECONDS_IN_A_DAY = 86_400
MAX_LOCK_ROUNDS = 1_460
MAX_LOCK_DURATION = MAX_LOCK_ROUNDS * SECONDS_IN_A_DAY

SCA_DECIMALS = 9


def vesca_balance(locked_coin: Decimal, unlock_at: int, now: int) -> Decimal:
    """Voting power decays linearly to zero at ``unlock_at``."""
    remaining = max(0, unlock_at - now)
    return div(mul(locked_coin, remaining), MAX_LOCK_DURATION)


def calculate_vesca(raw: RawVeSca, now: int, decimals: int = SCA_DECIMALS) -> VeScaMetrics:
    locked_coin = to_coin(raw.locked_amount, decimals)
    return VeScaMetrics(
        key_id=raw.key_id,
        object_id=raw.object_id,
        locked_amount=raw.locked_amount,
        locked_coin=locked_coin,
        current_balance=vesca_balance(locked_coin, raw.unlock_at, now),
        unlock_at=raw.unlock_at,
        remaining_seconds=max(0, raw.unlock_at - now),
    )
