from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from campusbets.api.supabase_client import DuplicateKeyError, StoreError
from campusbets.data.market_registry import MarketRegistry
from campusbets.data.stores import AccountStore, MarketStore, WagerStore
from campusbets.engine.odds import odds, percentage, pool_after, projected_payout
from campusbets.errors import (
    ALREADY_WAGERED,
    INSUFFICIENT_BALANCE,
    MARKET_CLOSED,
    NON_POSITIVE_AMOUNT,
    NOT_SIGNED_IN,
    UNKNOWN_MARKET,
    PartialPlacementError,
    WagerRejected,
)
from campusbets.models.schemas import Market, Profile, Session, Wager, normalize_side

logger = logging.getLogger(__name__)

INSERT_WAGER = "insert wager"
INCREMENT_STAKE = "increment stake"
DEBIT_BALANCE = "debit balance"


@dataclass(frozen=True)
class WagerRequest:
    market_id: str
    side: str
    amount: int


@dataclass(frozen=True)
class PayoutPreview:
    side: str
    amount: int
    payout: int
    odds_before: str
    odds_after: str
    percent_before: int
    percent_after: int


@dataclass(frozen=True)
class PlacementResult:
    wager: Wager
    market: Optional[Market]
    payout: int
    balance_after: int


PlacementLog = Tuple[WagerRequest, str]
PositionKey = Tuple[str, str]


class WagerCoordinator:
    """Validate a wager locally, then write it to the store one step at a time.

    The three writes are separate remote calls with no transaction around
    them. A failure after the first one raises ``PartialPlacementError`` and
    leaves the store as it is.
    """

    def __init__(
        self,
        markets: MarketStore,
        wagers: WagerStore,
        accounts: AccountStore,
        registry: MarketRegistry,
    ) -> None:
        self.markets = markets
        self.wagers = wagers
        self.accounts = accounts
        self.registry = registry
        # None means the store reported a wager we have not loaded
        self.positions: Dict[PositionKey, Optional[Wager]] = {}
        self.placement_log: List[PlacementLog] = []

    def can_place(
        self,
        session: Optional[Session],
        profile: Optional[Profile],
        market_id: str,
        side: str,
        amount: int,
        now: Optional[datetime] = None,
    ) -> Tuple[bool, str]:
        normalize_side(side)
        if session is None:
            return False, NOT_SIGNED_IN
        market = self.registry.get(market_id)
        if market is None:
            return False, UNKNOWN_MARKET
        if not market.is_open(now):
            return False, MARKET_CLOSED
        if (session.user_id, market_id) in self.positions:
            return False, ALREADY_WAGERED
        if amount <= 0:
            return False, NON_POSITIVE_AMOUNT
        if profile is None or amount > profile.balance:
            return False, INSUFFICIENT_BALANCE
        return True, ""

    def preview(self, profile: Optional[Profile], market_id: str, side: str, amount: int) -> PayoutPreview:
        """Payout and odds before and after a prospective wager. Never touches the store."""
        side = normalize_side(side)
        market = self.registry.get(market_id)
        if market is None:
            raise WagerRejected(UNKNOWN_MARKET)
        if amount <= 0:
            raise WagerRejected(NON_POSITIVE_AMOUNT)
        if profile is None or amount > profile.balance:
            raise WagerRejected(INSUFFICIENT_BALANCE)

        before = market.pool
        after = pool_after(before, side, amount)
        return PayoutPreview(
            side=side,
            amount=amount,
            payout=projected_payout(before, amount, side),
            odds_before=odds(before, side),
            odds_after=odds(after, side),
            percent_before=percentage(before, side),
            percent_after=percentage(after, side),
        )

    def place(
        self,
        session: Optional[Session],
        profile: Optional[Profile],
        market_id: str,
        side: str,
        amount: int,
        now: Optional[datetime] = None,
    ) -> PlacementResult:
        side = normalize_side(side)
        request = WagerRequest(market_id=market_id, side=side, amount=amount)
        ok, reason = self.can_place(session, profile, market_id, side, amount, now)
        if not ok:
            self._reject(request, reason)

        market = self.registry.get(market_id)
        payout = projected_payout(market.pool, amount, side)
        key = (session.user_id, market_id)
        wager = Wager(
            market_id=market_id,
            user_id=session.user_id,
            side=side,
            amount=amount,
            created_at=now or datetime.now(timezone.utc),
        )

        try:
            stored = self.wagers.insert(wager, session=session)
        except DuplicateKeyError:
            self.positions[key] = None
            self._reject(request, ALREADY_WAGERED)
        self.positions[key] = stored

        completed = [INSERT_WAGER]
        steps: List[Tuple[str, Callable[[], None]]] = [
            (INCREMENT_STAKE, lambda: self.markets.increment(market_id, side, amount, session=session)),
            (DEBIT_BALANCE, lambda: self.accounts.add_to_balance(session.user_id, -amount, session=session)),
        ]
        for name, step in steps:
            try:
                step()
            except StoreError as exc:
                self.placement_log.append((request, f"partial:{name}"))
                logger.error(
                    "Wager by %s on %s partly recorded (%s done, %s failed): %s",
                    session.user_id,
                    market_id,
                    ", ".join(completed),
                    name,
                    exc,
                )
                raise PartialPlacementError(completed, name, exc) from exc
            completed.append(name)

        refreshed = self._refresh_market(market_id, side, amount, session)
        self.placement_log.append((request, "placed"))
        logger.info("Placed %d on %s for %s (projected payout %d)", amount, side, market_id, payout)
        return PlacementResult(
            wager=stored,
            market=refreshed,
            payout=payout,
            balance_after=profile.balance - amount,
        )

    def sync_position(self, session: Session, market_id: str) -> Optional[Wager]:
        """Load the user's existing wager on ``market_id`` into the local cache."""
        key = (session.user_id, market_id)
        wager = self.wagers.get_for_user(session.user_id, market_id, session=session)
        if wager is None:
            self.positions.pop(key, None)
        else:
            self.positions[key] = wager
        return wager

    def _reject(self, request: WagerRequest, reason: str) -> None:
        self.placement_log.append((request, f"rejected:{reason}"))
        logger.info("Wager on %s rejected: %s", request.market_id, reason)
        raise WagerRejected(reason)

    def _refresh_market(self, market_id: str, side: str, amount: int, session: Session) -> Optional[Market]:
        try:
            market = self.markets.get(market_id, session=session)
        except StoreError as exc:
            logger.warning("Could not refresh %s after wager, using local estimate: %s", market_id, exc)
            return self.registry.apply_wager(market_id, side, amount)
        self.registry.put(market)
        return market
