from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from campusbets.api.supabase_client import NotFoundError, SupabaseClient, eq
from campusbets.models.schemas import Market, Profile, Session, Wager, normalize_side

logger = logging.getLogger(__name__)

STARTING_BALANCE = 1000

INCREMENT_RPC = {"yes": "increment_yes_votes", "no": "increment_no_votes"}
BALANCE_RPC = "update_balance"


def _token(session: Optional[Session]) -> Optional[str]:
    return session.access_token if session is not None else None


def _row_to_market(row: Dict[str, Any]) -> Market:
    resolution = "unresolved"
    if row.get("resolved") and row.get("outcome"):
        resolution = row["outcome"]
    return Market.model_validate(
        {
            "id": str(row["id"]),
            "headline": row["headline"],
            "yes_stake": row.get("yes_votes") or 0,
            "no_stake": row.get("no_votes") or 0,
            "created_at": row["created_at"],
            "expires_at": row["expires_at"],
            "created_by": str(row["created_by"]),
            "resolution": resolution,
            "tags": row.get("tags") or [],
        }
    )


def _row_to_wager(row: Dict[str, Any]) -> Wager:
    return Wager.model_validate(
        {
            "id": str(row["id"]) if row.get("id") is not None else None,
            "market_id": str(row["bet_id"]),
            "user_id": str(row["user_id"]),
            "side": row["position"],
            "amount": row["amount"],
            "created_at": row["created_at"],
        }
    )


class MarketStore:
    """Markets live in the ``bets`` table; stakes only move through RPCs."""

    table = "bets"

    def __init__(self, client: SupabaseClient) -> None:
        self.client = client

    def list(self, session: Optional[Session] = None) -> List[Market]:
        rows = self.client.select(self.table, order="created_at.desc", token=_token(session)) or []
        return [_row_to_market(row) for row in rows]

    def get(self, market_id: str, session: Optional[Session] = None) -> Market:
        row = self.client.select(
            self.table, filters={"id": eq(market_id)}, single=True, token=_token(session)
        )
        return _row_to_market(row)

    def create(
        self,
        headline: str,
        created_by: str,
        expires_at: datetime,
        tags: Iterable[str] = (),
        session: Optional[Session] = None,
        now: Optional[datetime] = None,
    ) -> Market:
        now = now or datetime.now(timezone.utc)
        row: Dict[str, Any] = {
            "headline": headline,
            "yes_votes": 0,
            "no_votes": 0,
            "created_at": now.isoformat(),
            "expires_at": expires_at.isoformat(),
            "created_by": created_by,
        }
        tags = list(tags)
        if tags:
            row["tags"] = tags
        logger.info("Creating market %r expiring %s", headline, row["expires_at"])
        return _row_to_market(self.client.insert(self.table, row, token=_token(session)))

    def increment(self, market_id: str, side: str, amount: int, session: Optional[Session] = None) -> None:
        function = INCREMENT_RPC[normalize_side(side)]
        self.client.rpc(function, {"bet_id": market_id, "amount": amount}, token=_token(session))


class WagerStore:
    """User positions in ``user_bets``, unique on (user_id, bet_id)."""

    table = "user_bets"

    def __init__(self, client: SupabaseClient) -> None:
        self.client = client

    def insert(self, wager: Wager, session: Optional[Session] = None) -> Wager:
        row = {
            "user_id": wager.user_id,
            "bet_id": wager.market_id,
            "position": wager.side,
            "amount": wager.amount,
            "created_at": wager.created_at.isoformat(),
        }
        return _row_to_wager(self.client.insert(self.table, row, token=_token(session)))

    def get_for_user(self, user_id: str, market_id: str, session: Optional[Session] = None) -> Optional[Wager]:
        rows = self.client.select(
            self.table,
            filters={"user_id": eq(user_id), "bet_id": eq(market_id)},
            token=_token(session),
        ) or []
        return _row_to_wager(rows[0]) if rows else None


class AccountStore:
    """Balances in ``profiles``."""

    table = "profiles"

    def __init__(self, client: SupabaseClient, starting_balance: int = STARTING_BALANCE) -> None:
        self.client = client
        self.starting_balance = starting_balance

    def get(self, user_id: str, session: Optional[Session] = None) -> Profile:
        row = self.client.select(
            self.table, filters={"id": eq(user_id)}, single=True, token=_token(session)
        )
        return Profile.model_validate(row)

    def create_default(
        self,
        user_id: str,
        email: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> Profile:
        row: Dict[str, Any] = {
            "id": user_id,
            "balance": self.starting_balance,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        if email:
            row["email"] = email
        return Profile.model_validate(self.client.insert(self.table, row, token=_token(session)))

    def get_or_create(
        self,
        user_id: str,
        email: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> Profile:
        try:
            return self.get(user_id, session=session)
        except NotFoundError:
            logger.info("No profile for %s; creating one with balance %d", user_id, self.starting_balance)
            return self.create_default(user_id, email=email, session=session)

    def add_to_balance(self, user_id: str, delta: int, session: Optional[Session] = None) -> None:
        """Atomic server-side ``balance += delta``; ``delta`` may be negative."""
        self.client.rpc(BALANCE_RPC, {"user_id": user_id, "amount": delta}, token=_token(session))
