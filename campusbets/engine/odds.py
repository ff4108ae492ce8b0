from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from campusbets.models.schemas import Pool, normalize_side

EMPTY_POOL_ODDS = "1:1"
ONE_SIDED_ODDS = "1:0"
DEFAULT_PERCENTAGE = 50

_CENTS = Decimal("0.01")
_UNITS = Decimal("1")


def _half_up(value: Decimal, step: Decimal = _UNITS) -> Decimal:
    return value.quantize(step, rounding=ROUND_HALF_UP)


def odds_ratio(pool: Pool, side: str) -> Optional[Decimal]:
    """Opposing stake per unit staked on ``side``, to 2 places; None for the sentinels."""
    losing = pool.stake(side)
    if pool.total == 0 or losing == 0:
        return None
    return _half_up(Decimal(pool.opposing(side)) / Decimal(losing), _CENTS)


def odds(pool: Pool, side: str) -> str:
    """Odds for ``side`` formatted as ``ratio:1``.

    An empty pool reads ``1:1``. When nothing is staked on ``side`` yet the
    result is ``1:0``: there is no counterparty stake to price against.
    """
    if pool.total == 0:
        return EMPTY_POOL_ODDS
    ratio = odds_ratio(pool, side)
    if ratio is None:
        return ONE_SIDED_ODDS
    return f"{format(ratio.normalize(), 'f')}:1"


def percentage(pool: Pool, side: str) -> int:
    """Share of the pool on ``side`` as a whole percent (display only).

    Each side is rounded on its own, so yes + no can land on 99 or 101.
    """
    if pool.total == 0:
        return DEFAULT_PERCENTAGE
    share = Decimal(100 * pool.stake(side)) / Decimal(pool.total)
    return int(_half_up(share))


def projected_payout(pool: Pool, amount: int, side: str) -> int:
    """What ``amount`` on ``side`` returns if ``side`` wins, given the pool before the wager.

    The first stake on a side is paid at even money, whether or not the
    other side already holds stake.
    """
    stake = pool.stake(side)
    if pool.total == 0 or stake == 0:
        return amount * 2
    proportion = Decimal(amount) / Decimal(stake)
    return int(_half_up(Decimal(amount) + Decimal(pool.opposing(side)) * proportion))


def pool_after(pool: Pool, side: str, amount: int) -> Pool:
    """Snapshot with ``amount`` added to ``side``."""
    if normalize_side(side) == "yes":
        return Pool(yes=pool.yes + amount, no=pool.no)
    return Pool(yes=pool.yes, no=pool.no + amount)
