from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from campusbets.engine.odds import odds, percentage
from campusbets.models.schemas import Market, normalize_side


@dataclass(frozen=True)
class BoardRow:
    market_id: str
    headline: str
    yes_percent: int
    no_percent: int
    yes_odds: str
    no_odds: str
    total_staked: int
    is_open: bool


class MarketRegistry:
    """Last-fetched snapshot of every market on screen.

    Snapshots go stale as soon as other users bet; ``update`` replaces them
    wholesale after each fetch.
    """

    def __init__(self) -> None:
        self._markets: Dict[str, Market] = {}

    def update(self, markets: Iterable[Market]) -> None:
        # dicts keep insertion order, so the store's newest-first order survives
        self._markets = {m.id: m for m in markets}

    def put(self, market: Market) -> None:
        self._markets[market.id] = market

    def get(self, market_id: str) -> Optional[Market]:
        return self._markets.get(market_id)

    def markets(self) -> List[Market]:
        return list(self._markets.values())

    def search(self, text: str) -> List[Market]:
        """Markets whose headline or a tag contains ``text`` (case-insensitive)."""
        needle = text.strip().lower()
        if not needle:
            return self.markets()
        return [
            m
            for m in self._markets.values()
            if needle in m.headline.lower() or any(needle in tag.lower() for tag in m.tags)
        ]

    def apply_wager(self, market_id: str, side: str, amount: int) -> Optional[Market]:
        """Bump the cached stake locally until the next fetch."""
        market = self._markets.get(market_id)
        if market is None:
            return None
        field = "yes_stake" if normalize_side(side) == "yes" else "no_stake"
        bumped = market.model_copy(update={field: getattr(market, field) + amount})
        self._markets[market_id] = bumped
        return bumped

    def board(self, markets: Optional[Iterable[Market]] = None) -> List[BoardRow]:
        rows = []
        for market in self.markets() if markets is None else markets:
            pool = market.pool
            rows.append(
                BoardRow(
                    market_id=market.id,
                    headline=market.headline,
                    yes_percent=percentage(pool, "yes"),
                    no_percent=percentage(pool, "no"),
                    yes_odds=odds(pool, "yes"),
                    no_odds=odds(pool, "no"),
                    total_staked=pool.total,
                    is_open=market.is_open(),
                )
            )
        return rows
