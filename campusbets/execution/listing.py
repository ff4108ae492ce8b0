from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from campusbets.data.stores import MarketStore
from campusbets.errors import MarketRejected
from campusbets.models.schemas import Market, Session

DEFAULT_EXPIRY_DAYS = 7
MIN_EXPIRY_DAYS = 1
MAX_EXPIRY_DAYS = 30


def clean_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Trimmed, lower-cased, de-duplicated, in first-seen order."""
    seen: List[str] = []
    for tag in tags or ():
        value = tag.strip().lower()
        if value and value not in seen:
            seen.append(value)
    return seen


def create_market(
    store: MarketStore,
    session: Optional[Session],
    headline: str,
    expires_in_days: int = DEFAULT_EXPIRY_DAYS,
    tags: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None,
) -> Market:
    if session is None:
        raise MarketRejected("You must be signed in to create a bet")
    headline = headline.strip()
    if not headline:
        raise MarketRejected("Please enter a headline for the bet")
    if not MIN_EXPIRY_DAYS <= expires_in_days <= MAX_EXPIRY_DAYS:
        raise MarketRejected(
            f"Expiry must be between {MIN_EXPIRY_DAYS} and {MAX_EXPIRY_DAYS} days"
        )

    now = now or datetime.now(timezone.utc)
    return store.create(
        headline=headline,
        created_by=session.user_id,
        expires_at=now + timedelta(days=expires_in_days),
        tags=clean_tags(tags),
        session=session,
        now=now,
    )
